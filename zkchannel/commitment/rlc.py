"""
zkchannel/commitment/rlc.py

Randomized-linear-combination (RLC) leaf encoding.

    gamma = field_hash(prev_root, key)
    leaf  = (key + gamma * value) mod r

prev_root is the previous committed root of the same channel. The first
round of a channel has no previous root, so it chains on the channel id
(chaining_seed()). Binding every leaf to the previous root makes a
balance table that was not derived from the committed history produce a
different root.

Account order is fixed when the channel opens: participant-major,
token-minor. Unused capacity up to the tree size is filled with
ZERO_LEAF, and the matching key/value slots of the public-input vector
with 0.
"""

from typing import List, Sequence

from zkchannel.commitment.tree import ZERO_LEAF
from zkchannel.core.field import FIELD_MODULUS, field_hash, is_field_element
from zkchannel.core.models import TreeSize


def chaining_seed(channel_id: int) -> int:
    """prev_root term of a channel's first commitment round."""
    return channel_id % FIELD_MODULUS


def rlc_leaf(prev_root: int, key: int, value: int) -> int:
    """Commitment leaf of one account. Pure function of its inputs."""
    if not is_field_element(prev_root):
        raise ValueError(f"previous root is not a field element: {prev_root!r}")
    if not is_field_element(key):
        raise ValueError(f"leaf key is not a field element: {key!r}")
    if not isinstance(value, int) or value < 0:
        raise ValueError(f"leaf value must be a non-negative int, got {value!r}")
    gamma = field_hash(prev_root, key)
    return (key + gamma * value) % FIELD_MODULUS


def build_leaves(
    prev_root: int,
    keys:      Sequence[int],
    values:    Sequence[int],
    tree_size: TreeSize,
) -> List[int]:
    """
    Encode accounts and pad to the tree size.

    Raises ValueError if keys/values differ in length or overflow the tree.
    """
    if len(keys) != len(values):
        raise ValueError(
            f"keys and values differ in length ({len(keys)} != {len(values)})"
        )
    if len(keys) > int(tree_size):
        raise ValueError(
            f"{len(keys)} accounts do not fit a tree of size {int(tree_size)}"
        )
    leaves = [rlc_leaf(prev_root, k, v) for k, v in zip(keys, values)]
    leaves.extend([ZERO_LEAF] * (int(tree_size) - len(leaves)))
    return leaves


def public_inputs(
    keys:      Sequence[int],
    values:    Sequence[int],
    root:      int,
    tree_size: TreeSize,
) -> List[int]:
    """
    Public-input vector for a commitment proof.

    Layout: keys[N] ‖ values[N] ‖ [root], zero-filled to N = tree_size.
    """
    size = int(tree_size)
    if len(keys) > size or len(values) > size:
        raise ValueError(
            f"{max(len(keys), len(values))} accounts do not fit a tree of size {size}"
        )
    padded_keys   = list(keys) + [0] * (size - len(keys))
    padded_values = list(values) + [0] * (size - len(values))
    return padded_keys + padded_values + [root]
