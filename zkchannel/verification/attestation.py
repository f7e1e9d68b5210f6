"""
zkchannel/verification/attestation.py

Attestation proofs — the shipped Verifier binding.

An attestation is an Ed25519 signature by a prover key over the RFC 8785
canonical encoding of:

    {
      "domain":            "zkchannel.attestation.v1",
      "tree_size":         N,
      "public_inputs":     [64-hex, ...],
      "function_instance": [64-hex, ...]
    }

It stands where a Groth16 verifier sits in a deployed system: it binds a
proof to the exact public-input vector (and function instance), and any
change to either invalidates it. Producing attestations (AttestationProver)
is an off-protocol responsibility; the core only ever verifies.
"""

from typing import Sequence

from zkchannel.core.canonical import canonicalize, field_hex
from zkchannel.core.crypto import Ed25519KeyManager
from zkchannel.core.models import Proof, TreeSize
from zkchannel.verification.gateway import Verifier

ATTESTATION_DOMAIN = "zkchannel.attestation.v1"


def attestation_bytes(
    tree_size:         TreeSize,
    public_inputs:     Sequence[int],
    function_instance: Sequence[int] = (),
) -> bytes:
    """Canonical bytes an attestation signs."""
    return canonicalize({
        "domain":            ATTESTATION_DOMAIN,
        "tree_size":         int(tree_size),
        "public_inputs":     [field_hex(v) for v in public_inputs],
        "function_instance": [field_hex(w) for w in function_instance],
    })


class AttestationVerifier(Verifier):
    """Verifies attestations from one prover key for one tree size."""

    def __init__(self, prover_public_key_hex: str, tree_size: TreeSize) -> None:
        self.prover_public_key_hex = prover_public_key_hex
        self.tree_size = TreeSize(int(tree_size))

    def verify_proof(self, proof: Proof, public_inputs: Sequence[int]) -> bool:
        if not isinstance(proof, Proof):
            return False
        try:
            data = attestation_bytes(
                self.tree_size, public_inputs, proof.function_instance
            )
        except (OverflowError, TypeError, ValueError):
            return False
        return Ed25519KeyManager.verify_detached(
            data, proof.data, self.prover_public_key_hex
        )

    def __repr__(self) -> str:
        return (
            f"AttestationVerifier(tree_size={int(self.tree_size)}, "
            f"prover={self.prover_public_key_hex[:16]}...)"
        )


class AttestationProver:
    """Off-protocol producer of attestation proofs (tooling and tests)."""

    def __init__(self, key_manager: Ed25519KeyManager) -> None:
        self.key_manager = key_manager

    def prove(
        self,
        tree_size:         TreeSize,
        public_inputs:     Sequence[int],
        function_instance: Sequence[int] = (),
    ) -> Proof:
        data = attestation_bytes(tree_size, public_inputs, function_instance)
        return Proof(
            data=self.key_manager.sign(data),
            function_instance=tuple(function_instance),
        )

    def verifiers(self) -> dict:
        """One AttestationVerifier per TreeSize, all bound to this prover."""
        return {
            size: AttestationVerifier(self.key_manager.public_key_hex, size)
            for size in TreeSize
        }
