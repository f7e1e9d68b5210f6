"""
zkchannel/core/field.py

Scalar-field arithmetic shared by the commitment tree, the proof gateway
and the group public key encoding.

FIELD_MODULUS is the BLS12-381 scalar field order. Every commitment leaf,
tree node and public input is an integer in [0, FIELD_MODULUS).

field_hash() is a SHA-256 based two-to-one (or n-to-one) compression:
each input is encoded as a 32-byte big-endian word, the concatenation is
hashed and the digest is reduced modulo the field order. It is the only
hash used to build commitment trees.
"""

import hashlib
from typing import Iterable

from Crypto.Hash import keccak

FIELD_MODULUS = 0x73EDA753299D7D483339D80809A1D80553BDA402FFFE5BFEFFFFFFFF00000001

WORD_BYTES = 32


def is_field_element(value) -> bool:
    """True iff value is a non-bool int in [0, FIELD_MODULUS)."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value < FIELD_MODULUS
    )


def to_field(value: int) -> int:
    """Reduce an arbitrary non-negative integer into the field."""
    if value < 0:
        raise ValueError(f"field input must be non-negative, got {value}")
    return value % FIELD_MODULUS


def to_word(value: int) -> bytes:
    """32-byte big-endian encoding. Raises OverflowError above 256 bits."""
    return int(value).to_bytes(WORD_BYTES, "big")


def field_hash(*elements: int) -> int:
    """
    Hash field elements to a single field element.

    Args:
        *elements: integers below 2**256 (normally field elements).

    Returns:
        SHA-256(word(e0) || word(e1) || ...) mod FIELD_MODULUS
    """
    data = b"".join(to_word(e) for e in elements)
    return int.from_bytes(hashlib.sha256(data).digest(), "big") % FIELD_MODULUS


def words_digest(words: Iterable[int]) -> str:
    """
    Keccak-256 over 32-byte big-endian words, as 0x-prefixed hex.

    Used for function-instance hashes of registered targets. This is the
    Ethereum keccak256 (original Keccak padding), not FIPS SHA3-256.
    """
    data = b"".join(to_word(w) for w in words)
    return "0x" + keccak.new(data=data, digest_bits=256).hexdigest()
