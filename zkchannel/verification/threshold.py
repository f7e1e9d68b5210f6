"""
zkchannel Threshold Signature Verifier

Checks an already-aggregated group signature over a closure message.

Two checks, both required:
1. The group key derives to the signer address stored on the channel
   (derived once at open time).
2. The signature verifies under that group key.

No share handling and no aggregation live here.
"""

import logging

from zkchannel.core.canonical import canonicalize, field_hex
from zkchannel.core.crypto import (
    Ed25519KeyManager,
    GroupPublicKey,
    derive_signer_address,
)

logger = logging.getLogger(__name__)

CLOSURE_DOMAIN = "zkchannel.closure.v1"


def closure_message(
    channel_id:     int,
    initial_root:   int,
    final_root:     int,
    signer_address: str,
) -> bytes:
    """Canonical bytes the channel group signs to attest a final state."""
    return canonicalize({
        "domain":       CLOSURE_DOMAIN,
        "channel_id":   channel_id,
        "initial_root": field_hex(initial_root),
        "final_root":   field_hex(final_root),
        "signer":       signer_address,
    })


class ThresholdSignatureVerifier:
    """Stateless verifier for aggregated group signatures."""

    def verify(
        self,
        message:          bytes,
        group_public_key: GroupPublicKey,
        signature:        str,
        expected_signer:  str,
    ) -> bool:
        """
        Returns True iff group_public_key derives to expected_signer and
        signature is valid over message under it. Never raises.
        """
        if derive_signer_address(group_public_key) != expected_signer:
            logger.warning(
                "group key does not derive to registered signer %s", expected_signer
            )
            return False
        ok = Ed25519KeyManager.verify_detached(
            message, signature, group_public_key.public_key_hex
        )
        if not ok:
            logger.warning("threshold signature rejected for signer %s", expected_signer)
        return ok
