"""
zkchannel Balance Commitment Tree

Builds fixed-arity Merkle trees over RLC-encoded account leaves.

Critical Invariants:
- Same leaves, same arity → same root, bit for bit
- Leaf order is part of the commitment
- Root history is append-only
"""

from zkchannel.commitment.history import RootHistory
from zkchannel.commitment.rlc import build_leaves, chaining_seed, public_inputs, rlc_leaf
from zkchannel.commitment.tree import (
    DEFAULT_ARITY,
    ZERO_LEAF,
    CommitmentTree,
    InclusionProof,
    compute_root,
    verify_inclusion,
)

__all__ = [
    "CommitmentTree",
    "InclusionProof",
    "RootHistory",
    "compute_root",
    "verify_inclusion",
    "rlc_leaf",
    "build_leaves",
    "chaining_seed",
    "public_inputs",
    "DEFAULT_ARITY",
    "ZERO_LEAF",
]
