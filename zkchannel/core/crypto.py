"""
zkchannel/core/crypto.py

Ed25519 key handling and group public keys.

Key contracts:
    public_key_hex          : @property → 64-char lowercase hex  (NO parentheses)
    sign(data)              : bytes → base64url str, no padding
    verify_detached(...)    : @staticmethod — verifies with ONLY a pubkey hex string
    GroupPublicKey          : the registered channel key as two field elements
    derive_signer_address() : deterministic signer identity of a group key

A threshold group (FROST over Ed25519) produces an ordinary Ed25519
signature under its group public key once the shares are aggregated.
Aggregation happens off-protocol; this module only ever sees the final,
aggregated signature and verifies it like any other Ed25519 signature.

CRITICAL:
    public_key_hex is a @property. Access as key.public_key_hex, NOT key.public_key_hex().
    verify_detached() never raises. It returns False for ANY failure.
"""

import base64
import hashlib
from dataclasses import dataclass
from pathlib import Path

from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from zkchannel.core.field import is_field_element

_PUBLIC_KEY_BYTES = 32
_HALF_KEY_BYTES   = _PUBLIC_KEY_BYTES // 2
_ADDRESS_BYTES    = 20


class Ed25519KeyManager:
    """
    Ed25519 key manager.

    Public surface:
        Ed25519KeyManager.generate()                        → new random key
        Ed25519KeyManager.from_file(path)                  → load PEM private key
        Ed25519KeyManager.from_private_bytes(seed)         → load from raw 32-byte seed
        Ed25519KeyManager.verify_detached(data, sig, hex)  → @staticmethod, no instance needed

        key.public_key_hex          (@property) → 64-char lowercase hex
        key.group_public_key        (@property) → GroupPublicKey
        key.sign(data: bytes)                   → base64url str (no padding)
        key.save(path)                          → write PEM private key
    """

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key:    Ed25519PrivateKey = private_key
        self._public_key:     Ed25519PublicKey  = private_key.public_key()
        # Cached; never recomputed on access
        self._public_key_hex: str = (
            self._public_key
            .public_bytes(Encoding.Raw, PublicFormat.Raw)
            .hex()
        )

    # ── Construction ──────────────────────────────────────────

    @classmethod
    def generate(cls) -> "Ed25519KeyManager":
        """Generate a new random Ed25519 key pair."""
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_file(cls, path: Path) -> "Ed25519KeyManager":
        """
        Load an Ed25519 private key from a PEM file.
        Raises FileNotFoundError if path does not exist.
        Raises ValueError if the file is not a valid Ed25519 PEM key.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Key file not found: {path}")
        pem_bytes = path.read_bytes()
        from cryptography.hazmat.primitives.serialization import (
            load_pem_private_key,
        )
        try:
            private_key = load_pem_private_key(pem_bytes, password=None)
        except (ValueError, TypeError) as exc:
            raise ValueError(
                f"Failed to load Ed25519 key from {path}: {exc}"
            ) from exc
        if not isinstance(private_key, Ed25519PrivateKey):
            raise ValueError(
                f"Key file {path} does not contain an Ed25519 private key"
            )
        return cls(private_key)

    @classmethod
    def from_private_bytes(cls, seed: bytes) -> "Ed25519KeyManager":
        """
        Load an Ed25519 key from a raw 32-byte seed.
        Raises ValueError if seed is not exactly 32 bytes.
        """
        if len(seed) != 32:
            raise ValueError(
                f"Ed25519 seed must be 32 bytes, got {len(seed)}"
            )
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    # ── Public Key ────────────────────────────────────────────

    @property
    def public_key_hex(self) -> str:
        """
        64-character lowercase hex string of the Ed25519 public key (32 bytes).

        THIS IS A @property — access as key.public_key_hex (NO parentheses).
        """
        return self._public_key_hex

    @property
    def group_public_key(self) -> "GroupPublicKey":
        """This key's public half in registered (two field element) form."""
        return GroupPublicKey.from_hex(self._public_key_hex)

    # ── Signing ───────────────────────────────────────────────

    def sign(self, data: bytes) -> str:
        """
        Sign data with Ed25519. Returns base64url string, no '=' padding.

        Caller is responsible for canonicalization.
        """
        raw_sig = self._private_key.sign(data)
        return base64.urlsafe_b64encode(raw_sig).rstrip(b"=").decode("ascii")

    # ── Verification ──────────────────────────────────────────

    @staticmethod
    def verify_detached(
        data:           bytes,
        signature_b64:  str,
        public_key_hex: str,
    ) -> bool:
        """
        Verify an Ed25519 signature using ONLY a public key hex string.

        Args:
            data:           Raw bytes that were signed (canonical bytes).
            signature_b64:  base64url signature string (with or without padding).
            public_key_hex: 64-char lowercase hex string of the signer's public key.

        Returns:
            True if the signature is valid over data with the given public key.
            False for ANY failure — wrong key, bad encoding, wrong length,
            corrupted signature. Never raises.
        """
        try:
            if not isinstance(public_key_hex, str) or len(public_key_hex) != 64:
                return False
            if not isinstance(signature_b64, str) or not signature_b64:
                return False

            raw_pub = bytes.fromhex(public_key_hex)
            pub     = Ed25519PublicKey.from_public_bytes(raw_pub)

            # Re-add base64url padding if stripped
            padding    = 4 - len(signature_b64) % 4
            padded_sig = signature_b64 + "=" * (padding % 4)
            raw_sig    = base64.urlsafe_b64decode(padded_sig)

            if len(raw_sig) != 64:
                return False

            pub.verify(raw_sig, data)
            return True

        except Exception:
            return False

    # ── Persistence ───────────────────────────────────────────

    def save(self, path: Path) -> None:
        """
        Write the private key to disk as a PEM file.
        Creates parent directories if needed.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        pem = self._private_key.private_bytes(
            encoding=             Encoding.PEM,
            format=               PrivateFormat.PKCS8,
            encryption_algorithm= NoEncryption(),
        )
        path.write_bytes(pem)

    def __repr__(self) -> str:
        return (
            f"Ed25519KeyManager(public_key_hex={self._public_key_hex[:16]}...)"
        )


# ─────────────────────────────────────────────────────────────
# Group public key
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GroupPublicKey:
    """
    A channel's registered group public key, as two field elements.

    x holds the high 16 bytes of the raw 32-byte Ed25519 key and y the
    low 16 bytes, so both halves are always valid field elements and the
    encoding round-trips exactly.
    """

    x: int
    y: int

    def __post_init__(self) -> None:
        limit = 1 << (8 * _HALF_KEY_BYTES)
        for name, value in (("x", self.x), ("y", self.y)):
            if not is_field_element(value) or value >= limit:
                raise ValueError(
                    f"group public key component {name} must be a "
                    f"{_HALF_KEY_BYTES}-byte field element, got {value!r}"
                )

    @classmethod
    def from_bytes(cls, raw: bytes) -> "GroupPublicKey":
        if len(raw) != _PUBLIC_KEY_BYTES:
            raise ValueError(
                f"group public key must be {_PUBLIC_KEY_BYTES} bytes, got {len(raw)}"
            )
        return cls(
            x=int.from_bytes(raw[:_HALF_KEY_BYTES], "big"),
            y=int.from_bytes(raw[_HALF_KEY_BYTES:], "big"),
        )

    @classmethod
    def from_hex(cls, public_key_hex: str) -> "GroupPublicKey":
        return cls.from_bytes(bytes.fromhex(public_key_hex))

    def to_bytes(self) -> bytes:
        return (
            self.x.to_bytes(_HALF_KEY_BYTES, "big")
            + self.y.to_bytes(_HALF_KEY_BYTES, "big")
        )

    @property
    def public_key_hex(self) -> str:
        return self.to_bytes().hex()

    def to_dict(self) -> dict:
        return {"x": hex(self.x), "y": hex(self.y)}


def derive_signer_address(group_public_key: GroupPublicKey) -> str:
    """
    Deterministic signer identity of a group key.

    address = "0x" + last 20 bytes of SHA3-256(raw public key)

    Computed once when a channel opens and stored on the channel record.
    """
    digest = hashlib.sha3_256(group_public_key.to_bytes()).digest()
    return "0x" + digest[-_ADDRESS_BYTES:].hex()
