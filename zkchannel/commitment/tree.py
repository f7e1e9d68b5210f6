"""
zkchannel/commitment/tree.py

Fixed-arity Merkle commitment tree over field-element leaves.

Construction (must be reproducible bit-for-bit by any verifier):
    level_0  = leaves, in the order given
    level_k+1[i] = field_hash(level_k[i*A], ..., level_k[i*A + A-1])
    incomplete groups are padded with ZERO_LEAF
    folding stops at the first level with a single node, after at least
    one fold (a single leaf still hashes once)

Arity A is 2 (binary) or 4 (quaternary). Leaves are NOT hashed before
folding: they are already field elements (see rlc.rlc_leaf()).

Inclusion proofs carry, for every level, the A-1 siblings of the node on
the path, in left-to-right order with the path node removed.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from zkchannel.core.field import field_hash, is_field_element

ZERO_LEAF = 0

SUPPORTED_ARITIES = (2, 4)
DEFAULT_ARITY     = 4


@dataclass(frozen=True)
class InclusionProof:
    """Path from one leaf to the root."""

    index:    int
    siblings: Tuple[Tuple[int, ...], ...]

    def to_dict(self) -> dict:
        return {
            "index":    self.index,
            "siblings": [[hex(s) for s in level] for level in self.siblings],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InclusionProof":
        return cls(
            index=int(data["index"]),
            siblings=tuple(
                tuple(_parse_int(s) for s in level) for level in data["siblings"]
            ),
        )


def _check_arity(arity: int) -> None:
    if arity not in SUPPORTED_ARITIES:
        raise ValueError(
            f"arity must be one of {SUPPORTED_ARITIES}, got {arity!r}"
        )


def _fold(level: Sequence[int], arity: int) -> List[int]:
    parents = []
    for start in range(0, len(level), arity):
        group = list(level[start:start + arity])
        group.extend([ZERO_LEAF] * (arity - len(group)))
        parents.append(field_hash(*group))
    return parents


def _build_levels(leaves: Sequence[int], arity: int) -> List[List[int]]:
    _check_arity(arity)
    if not leaves:
        raise ValueError("cannot build a commitment tree without leaves")
    for i, leaf in enumerate(leaves):
        if not is_field_element(leaf):
            raise ValueError(f"leaf {i} is not a field element: {leaf!r}")

    levels = [list(leaves)]
    while True:
        levels.append(_fold(levels[-1], arity))
        if len(levels[-1]) == 1:
            return levels


def compute_root(leaves: Sequence[int], arity: int = DEFAULT_ARITY) -> int:
    """
    Root of the tree over leaves. Pure function of (leaves, arity).

    Raises ValueError on empty input, non-field leaves or bad arity.
    """
    return _build_levels(leaves, arity)[-1][0]


def verify_inclusion(
    root:     int,
    leaf:     int,
    index:    int,
    siblings: Sequence[Sequence[int]],
    arity:    int = DEFAULT_ARITY,
) -> bool:
    """
    Recompute the path from leaf to root and compare with root.

    Returns False (never raises) for any malformed input: wrong sibling
    count per level, negative or out-of-range index, non-field values.
    """
    if arity not in SUPPORTED_ARITIES:
        return False
    if not isinstance(index, int) or index < 0 or not siblings:
        return False
    if not is_field_element(leaf) or not is_field_element(root):
        return False

    node = leaf
    position = index
    for level in siblings:
        if len(level) != arity - 1:
            return False
        if not all(is_field_element(s) for s in level):
            return False
        slot = position % arity
        group = list(level[:slot]) + [node] + list(level[slot:])
        node = field_hash(*group)
        position //= arity

    # An index beyond the tree's capacity leaves a remainder
    if position != 0:
        return False
    return node == root


class CommitmentTree:
    """
    A built tree that can hand out inclusion proofs.

    Usage:
        tree  = CommitmentTree(leaves, arity=4)
        root  = tree.root
        proof = tree.proof(3)
        assert verify_inclusion(root, leaves[3], proof.index, proof.siblings, 4)
    """

    def __init__(self, leaves: Sequence[int], arity: int = DEFAULT_ARITY) -> None:
        self.arity = arity
        self._levels = _build_levels(leaves, arity)

    @property
    def root(self) -> int:
        return self._levels[-1][0]

    @property
    def leaves(self) -> List[int]:
        return list(self._levels[0])

    @property
    def depth(self) -> int:
        return len(self._levels) - 1

    def proof(self, index: int) -> InclusionProof:
        """Inclusion proof for the leaf at index."""
        if not 0 <= index < len(self._levels[0]):
            raise IndexError(
                f"leaf index {index} out of range (leaves={len(self._levels[0])})"
            )
        siblings = []
        position = index
        for level in self._levels[:-1]:
            start = (position // self.arity) * self.arity
            group = list(level[start:start + self.arity])
            group.extend([ZERO_LEAF] * (self.arity - len(group)))
            slot = position % self.arity
            siblings.append(tuple(group[:slot] + group[slot + 1:]))
            position //= self.arity
        return InclusionProof(index=index, siblings=tuple(siblings))

    def __repr__(self) -> str:
        return (
            f"CommitmentTree(leaves={len(self._levels[0])}, arity={self.arity}, "
            f"root={hex(self.root)[:18]}...)"
        )


def _parse_int(value) -> int:
    if isinstance(value, str):
        return int(value, 0)
    return int(value)
