"""
zkchannel: Canonical JSON Encoding — RFC 8785 (JCS)

This is the ONLY canonicalization permitted in zkchannel.
Closure messages, attestation payloads and journal chaining MUST use it.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785
"""

import hashlib

try:
    import jcs as _jcs
except ImportError as exc:
    raise ImportError(
        "zkchannel requires the 'jcs' package for RFC 8785 compliance.\n"
        "Install with: pip install jcs\n"
        f"Original error: {exc}"
    ) from exc


def canonicalize(obj) -> bytes:
    """
    Encode a JSON-primitive structure to RFC 8785 canonical JSON bytes.

    Output is deterministic regardless of key insertion order.

    Field elements are larger than the IEEE-754 safe integer range, so
    callers pass them as hex strings (see field_hex()), never as ints.

    Returns:
        UTF-8 encoded canonical JSON bytes, suitable for signing.
    """
    return _jcs.canonicalize(obj)


def canonical_hash(obj) -> str:
    """
    SHA-256 of the RFC 8785 canonical form.

    Returns:
        Lowercase hex-encoded SHA-256 digest (64 characters).
    """
    return hashlib.sha256(canonicalize(obj)).hexdigest()


def field_hex(value: int) -> str:
    """Fixed-width (64 hex chars) encoding of a field element or amount."""
    return f"{value:064x}"
