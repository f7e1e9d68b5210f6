"""
tests/test_commitment_tree.py

Commitment tree, RLC leaves and root history.

    determinism     same leaves + arity → same root
    order           leaf order is part of the commitment
    inclusion       every leaf proves against the root, tampering fails
    malformed       verify_inclusion returns False, never raises
    chaining        the previous root changes every leaf
"""

import pytest

from zkchannel.commitment.history import RootHistory
from zkchannel.commitment.rlc import build_leaves, chaining_seed, public_inputs, rlc_leaf
from zkchannel.commitment.tree import (
    ZERO_LEAF,
    CommitmentTree,
    InclusionProof,
    compute_root,
    verify_inclusion,
)
from zkchannel.core.exceptions import InvalidStateForOperation, UnsupportedTreeSize
from zkchannel.core.field import FIELD_MODULUS, field_hash
from zkchannel.core.models import TreeSize


LEAVES = [11, 22, 33, 44, 55, 66, 77]


class TestComputeRoot:

    @pytest.mark.parametrize("arity", [2, 4])
    def test_deterministic(self, arity):
        assert compute_root(LEAVES, arity) == compute_root(list(LEAVES), arity)

    def test_order_matters(self):
        swapped = [LEAVES[1], LEAVES[0]] + LEAVES[2:]
        assert compute_root(LEAVES) != compute_root(swapped)

    def test_arity_matters(self):
        assert compute_root(LEAVES, 2) != compute_root(LEAVES, 4)

    def test_single_leaf_is_folded_once(self):
        assert compute_root([5], 4) == field_hash(5, ZERO_LEAF, ZERO_LEAF, ZERO_LEAF)
        assert compute_root([5], 2) == field_hash(5, ZERO_LEAF)

    def test_quaternary_two_levels(self):
        leaves = list(range(1, 17))
        level1 = [field_hash(*leaves[i:i + 4]) for i in range(0, 16, 4)]
        assert compute_root(leaves, 4) == field_hash(*level1)

    def test_incomplete_group_padded_with_zero(self):
        assert compute_root([1, 2, 3], 4) == compute_root([1, 2, 3, ZERO_LEAF], 4)

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            compute_root([])

    def test_bad_arity_rejected(self):
        with pytest.raises(ValueError):
            compute_root(LEAVES, 3)

    def test_non_field_leaf_rejected(self):
        with pytest.raises(ValueError):
            compute_root([FIELD_MODULUS])


class TestInclusion:

    @pytest.mark.parametrize("arity", [2, 4])
    def test_every_leaf_proves(self, arity):
        tree = CommitmentTree(LEAVES, arity)
        for i, leaf in enumerate(LEAVES):
            proof = tree.proof(i)
            assert verify_inclusion(tree.root, leaf, proof.index, proof.siblings, arity)

    def test_wrong_leaf_fails(self):
        tree = CommitmentTree(LEAVES)
        proof = tree.proof(2)
        assert not verify_inclusion(tree.root, LEAVES[2] + 1, 2, proof.siblings)

    def test_wrong_index_fails(self):
        tree = CommitmentTree(LEAVES)
        proof = tree.proof(2)
        assert not verify_inclusion(tree.root, LEAVES[2], 3, proof.siblings)

    def test_index_beyond_capacity_fails(self):
        tree = CommitmentTree(LEAVES)
        proof = tree.proof(2)
        capacity = 4 ** tree.depth
        assert not verify_inclusion(tree.root, LEAVES[2], 2 + capacity, proof.siblings)

    def test_tampered_sibling_fails(self):
        tree = CommitmentTree(LEAVES)
        proof = tree.proof(0)
        first = (proof.siblings[0][0] + 1,) + proof.siblings[0][1:]
        tampered = (first,) + proof.siblings[1:]
        assert not verify_inclusion(tree.root, LEAVES[0], 0, tampered)

    @pytest.mark.parametrize("siblings", [
        (),
        ((1, 2),),
        (("x", 2, 3),),
        ((FIELD_MODULUS, 0, 0),),
    ])
    def test_malformed_returns_false(self, siblings):
        assert verify_inclusion(123, 1, 0, siblings) is False

    def test_negative_index_returns_false(self):
        tree = CommitmentTree(LEAVES)
        assert verify_inclusion(tree.root, LEAVES[0], -1, tree.proof(0).siblings) is False

    def test_unsupported_arity_returns_false(self):
        assert verify_inclusion(1, 1, 0, ((0, 0),), arity=3) is False

    def test_proof_out_of_range(self):
        with pytest.raises(IndexError):
            CommitmentTree(LEAVES).proof(len(LEAVES))

    def test_proof_dict_round_trip(self):
        proof = CommitmentTree(LEAVES).proof(5)
        assert InclusionProof.from_dict(proof.to_dict()) == proof


class TestRlc:

    def test_leaf_formula(self):
        prev_root, key, value = 99, 7, 1000
        gamma = field_hash(prev_root, key)
        assert rlc_leaf(prev_root, key, value) == (key + gamma * value) % FIELD_MODULUS

    def test_previous_root_changes_leaf(self):
        assert rlc_leaf(1, 7, 1000) != rlc_leaf(2, 7, 1000)

    def test_zero_value_leaf_is_key(self):
        assert rlc_leaf(123, 7, 0) == 7

    @pytest.mark.parametrize("prev_root", [FIELD_MODULUS, 2**300, -1])
    def test_previous_root_outside_field(self, prev_root):
        with pytest.raises(ValueError):
            rlc_leaf(prev_root, 7, 1000)

    def test_chaining_seed_is_channel_id(self):
        assert chaining_seed(42) == 42

    def test_build_leaves_pads_to_tree_size(self):
        leaves = build_leaves(1, [7, 8], [10, 20], TreeSize.S16)
        assert len(leaves) == 16
        assert leaves[2:] == [ZERO_LEAF] * 14

    def test_build_leaves_rejects_overflow(self):
        with pytest.raises(ValueError):
            build_leaves(1, list(range(1, 18)), [0] * 17, TreeSize.S16)

    def test_build_leaves_rejects_length_mismatch(self):
        with pytest.raises(ValueError):
            build_leaves(1, [7, 8], [10], TreeSize.S16)

    def test_public_input_layout(self):
        inputs = public_inputs([7, 8], [10, 20], 999, TreeSize.S16)
        assert len(inputs) == TreeSize.S16.public_input_length == 33
        assert inputs[:2] == [7, 8]
        assert inputs[16:18] == [10, 20]
        assert inputs[-1] == 999


class TestTreeSize:

    @pytest.mark.parametrize("leaves,expected", [
        (1, TreeSize.S16), (16, TreeSize.S16), (17, TreeSize.S32),
        (64, TreeSize.S64), (100, TreeSize.S128), (128, TreeSize.S128),
    ])
    def test_smallest_size_that_fits(self, leaves, expected):
        assert TreeSize.for_leaf_count(leaves) == expected

    def test_too_many_leaves(self):
        with pytest.raises(UnsupportedTreeSize):
            TreeSize.for_leaf_count(129)

    def test_restricted_sizes(self):
        assert TreeSize.for_leaf_count(3, [32, 64]) == TreeSize.S32


class TestRootHistory:

    def test_append_in_order(self):
        history = RootHistory()
        history.register(1)
        history.append(1, 0, 111)
        history.append(1, 1, 222)
        assert history.sequence(1) == [111, 222]
        assert history.latest(1) == 222
        assert history.rounds(1) == 2

    def test_stale_round_rejected(self):
        history = RootHistory()
        history.append(1, 0, 111)
        with pytest.raises(InvalidStateForOperation):
            history.append(1, 0, 333)
        assert history.sequence(1) == [111]

    def test_channels_are_independent(self):
        history = RootHistory()
        history.append(1, 0, 111)
        assert history.latest(2) is None
        assert history.sequence(2) == []
