"""
zkchannel Proof Verification Gateway

Single entry point for succinct-proof checks:

    gateway.verify(tree_size, proof, public_inputs) -> bool

Dispatch is a closed table keyed by TreeSize. Each binding enforces the
fixed public-input length of its size (2N + 1). A vector of any other
length raises InvalidPublicInputLength; it is never padded or truncated.

The gateway holds nothing but its bindings. It never retries: a False
result is final for that submission.
"""

import logging
from typing import Mapping, Sequence, Union

from zkchannel.core.exceptions import (
    ConfigurationError,
    InvalidPublicInputLength,
    UnsupportedTreeSize,
)
from zkchannel.core.field import is_field_element
from zkchannel.core.models import Proof, TreeSize

logger = logging.getLogger(__name__)


class Verifier:
    """
    Interface of an external succinct-proof verifier for one tree size.

    Implementations must be pure: same (proof, public_inputs) → same answer,
    and must return False rather than raise on malformed proofs.
    """

    def verify_proof(self, proof: Proof, public_inputs: Sequence[int]) -> bool:
        raise NotImplementedError


class ProofVerificationGateway:
    """Dispatches proofs to the verifier bound to their tree size."""

    def __init__(self, verifiers: Mapping[Union[TreeSize, int], Verifier]) -> None:
        self._verifiers = {}
        for size, verifier in verifiers.items():
            try:
                tree_size = TreeSize(int(size))
            except ValueError as exc:
                raise ConfigurationError(
                    "Verifier bound to an unsupported tree size",
                    {"tree_size": size},
                ) from exc
            self._verifiers[tree_size] = verifier

    @property
    def supported_sizes(self):
        return sorted(self._verifiers)

    def verify(
        self,
        tree_size:     Union[TreeSize, int],
        proof:         Proof,
        public_inputs: Sequence[int],
    ) -> bool:
        """
        Check proof against public_inputs with the verifier for tree_size.

        Raises:
            UnsupportedTreeSize       tree_size is not a TreeSize value
            ConfigurationError        no verifier bound for tree_size
            InvalidPublicInputLength  len(public_inputs) != 2 * tree_size + 1

        Returns:
            True iff the bound verifier accepts. Non-field inputs → False.
        """
        try:
            size = TreeSize(int(tree_size))
        except ValueError as exc:
            raise UnsupportedTreeSize(
                "Unsupported tree size", {"tree_size": tree_size}
            ) from exc

        verifier = self._verifiers.get(size)
        if verifier is None:
            raise ConfigurationError(
                "No verifier bound for tree size", {"tree_size": int(size)}
            )

        expected = size.public_input_length
        if len(public_inputs) != expected:
            raise InvalidPublicInputLength(
                "Public input length does not match tree size",
                {"tree_size": int(size), "expected": expected, "got": len(public_inputs)},
            )

        if not all(is_field_element(v) for v in public_inputs):
            logger.warning("rejecting proof: public input outside field (size=%d)", size)
            return False

        accepted = verifier.verify_proof(proof, list(public_inputs))
        if not accepted:
            logger.warning("verifier for tree size %d rejected proof", size)
        return bool(accepted)
