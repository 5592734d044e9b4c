"""
Module 02 - Merkle Tree Unit Tests
Tests for core/merkle/merkle_tree.py and core/merkle/merkle_proofs.py

1. Root determinism - same allocations -> same root
2. Order sensitivity - reordering changes the root
3. Proof verification - every index verifies against the root
4. Tamper detection - flipped bits in leaf, sibling, root or amount fail
5. Empty list - rejected
6. Single leaf - root equals leaf, empty proof
7. Odd levels - last node promoted unchanged
"""
import pytest

from core.crypto.hashing import hash_pair, keccak256, to_hex
from core.merkle.leaf_codec import encode_leaf
from core.merkle.merkle_tree import (
    InclusionProof,
    merkle_parent,
    build_merkle_levels,
    build_merkle_root,
    build_merkle_proof,
    build_tree,
    verify_proof,
    verify_merkle_proof,
    compute_tree_depth,
)
from core.merkle.merkle_proofs import MerkleProver, MerkleVerifier, tree_stats
from core.schemas.allocation import Allocation

from fixtures.common import ADDR_A, ADDR_B, ADDR_C, make_allocations


def leaves(n: int) -> list[bytes]:
    return [keccak256(f"leaf-{i}".encode()) for i in range(n)]


def allocations(raw: list[dict]) -> list[Allocation]:
    return [Allocation(**a) for a in raw]


def flip(data: bytes, bit: int = 0) -> bytes:
    out = bytearray(data)
    out[bit // 8] ^= 1 << (bit % 8)
    return bytes(out)


class TestEmptyAndSingle:
    def test_empty_root_rejected(self):
        with pytest.raises(ValueError, match="empty"):
            build_merkle_root([])

    def test_empty_proof_rejected(self):
        with pytest.raises(ValueError, match="empty"):
            build_merkle_proof([], 0)

    def test_empty_tree_rejected(self):
        with pytest.raises(ValueError, match="without allocations"):
            build_tree([])

    def test_single_leaf_root_equals_leaf(self):
        leaf = keccak256(b"only")
        assert build_merkle_root([leaf]) == leaf

    def test_single_leaf_empty_proof(self):
        leaf = keccak256(b"only")
        proof = build_merkle_proof([leaf], 0)

        assert proof.siblings == []
        assert proof.root == leaf
        assert verify_merkle_proof(proof)

    def test_single_allocation_tree(self):
        tree = build_tree(allocations([{"address": ADDR_A, "amount": 100}]))

        assert tree.root == encode_leaf(0, ADDR_A, 100)
        assert tree.proof(0) == []
        assert tree.depth == 0


class TestStructure:
    def test_two_leaves(self):
        a, b = leaves(2)
        assert build_merkle_root([a, b]) == hash_pair(a, b)

    def test_three_leaves_promotes_last(self):
        a, b, c = leaves(3)
        expected = hash_pair(hash_pair(a, b), c)

        assert build_merkle_root([a, b, c]) == expected

    def test_five_leaves_promotes_through_levels(self):
        a, b, c, d, e = leaves(5)
        expected = hash_pair(hash_pair(hash_pair(a, b), hash_pair(c, d)), e)

        assert build_merkle_root([a, b, c, d, e]) == expected

    def test_promoted_leaf_is_not_duplicated(self):
        a, b, c = leaves(3)
        assert build_merkle_root([a, b, c]) != build_merkle_root([a, b, c, c])

    def test_levels_shape(self):
        levels = build_merkle_levels(leaves(5))
        assert [len(level) for level in levels] == [5, 3, 2, 1]

    def test_parent_is_sorted_pair(self):
        a, b = leaves(2)
        assert merkle_parent(a, b) == merkle_parent(b, a)

    @pytest.mark.parametrize("n,depth", [(1, 0), (2, 1), (3, 2), (4, 2), (5, 3), (8, 3), (9, 4), (1000, 10)])
    def test_depth(self, n, depth):
        assert compute_tree_depth(n) == depth

    @pytest.mark.parametrize("n", [2, 3, 5, 8, 13])
    def test_proof_length_bounded_by_depth(self, n):
        hashes = leaves(n)
        for i in range(n):
            assert len(build_merkle_proof(hashes, i).siblings) <= compute_tree_depth(n)


class TestDeterminism:
    def test_same_allocations_same_root(self):
        raw = make_allocations(17)
        assert build_tree(allocations(raw)).root == build_tree(allocations(raw)).root

    def test_order_changes_root(self):
        raw = make_allocations(4)
        reordered = [raw[1], raw[0]] + raw[2:]

        assert build_tree(allocations(raw)).root != build_tree(allocations(reordered)).root

    def test_address_case_does_not_change_root(self):
        raw = [{"address": ADDR_A.upper().replace("0X", "0x"), "amount": 1}]
        assert build_tree(allocations(raw)).root == build_tree(
            allocations([{"address": ADDR_A, "amount": 1}])
        ).root

    def test_indices_follow_input_order(self):
        tree = build_tree(allocations([
            {"address": ADDR_C, "amount": 50},
            {"address": ADDR_A, "amount": 100},
        ]))

        assert [(leaf.index, leaf.address) for leaf in tree.leaves] == [(0, ADDR_C), (1, ADDR_A)]
        assert tree.index_of(ADDR_A) == 1
        assert tree.index_of(ADDR_B) is None


class TestProofs:
    @pytest.mark.parametrize("n", [1, 2, 3, 4, 5, 7, 16, 33])
    def test_every_index_verifies(self, n):
        raw = make_allocations(n)
        tree = build_tree(allocations(raw))

        for leaf in tree.leaves:
            assert MerkleVerifier.verify_claim(
                leaf.index,
                leaf.address,
                leaf.amount,
                [to_hex(s) for s in tree.proof(leaf.index)],
                tree.root_hex,
            )

    def test_proof_out_of_range(self):
        with pytest.raises(IndexError):
            build_merkle_proof(leaves(3), 3)

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError):
            InclusionProof(leaf=b"\x00" * 32, index=-1, siblings=[], root=b"\x00" * 32)

    def test_tampered_leaf_fails(self):
        hashes = leaves(6)
        proof = build_merkle_proof(hashes, 2)
        assert not verify_proof(flip(proof.leaf), proof.siblings, proof.root)

    def test_tampered_sibling_fails(self):
        hashes = leaves(6)
        proof = build_merkle_proof(hashes, 2)
        siblings = [flip(proof.siblings[0], 255)] + proof.siblings[1:]

        assert not verify_proof(proof.leaf, siblings, proof.root)

    def test_tampered_sibling_fails_at_every_level(self):
        hashes = leaves(9)
        proof = build_merkle_proof(hashes, 5)
        assert len(proof.siblings) > 1

        for level, sibling in enumerate(proof.siblings):
            for bit in (0, 131, 255):
                siblings = list(proof.siblings)
                siblings[level] = flip(sibling, bit)
                assert not verify_proof(proof.leaf, siblings, proof.root), (level, bit)

    def test_tampered_root_fails(self):
        hashes = leaves(6)
        proof = build_merkle_proof(hashes, 4)
        assert not verify_proof(proof.leaf, proof.siblings, flip(proof.root, 7))

    def test_wrong_amount_fails(self):
        tree = build_tree(allocations(make_allocations(5)))
        leaf = tree.leaves[3]

        assert not MerkleVerifier.verify_claim(
            leaf.index, leaf.address, leaf.amount + 1,
            [to_hex(s) for s in tree.proof(3)], tree.root_hex,
        )

    def test_wrong_address_fails(self):
        tree = build_tree(allocations(make_allocations(5)))
        leaf = tree.leaves[3]
        proof = [to_hex(s) for s in tree.proof(3)]

        for position in range(2, 42):
            digit = leaf.address[position]
            changed = leaf.address[:position] + ("1" if digit == "0" else "0") + leaf.address[position + 1:]
            assert not MerkleVerifier.verify_claim(
                leaf.index, changed, leaf.amount, proof, tree.root_hex,
            ), changed

    def test_wrong_index_fails(self):
        tree = build_tree(allocations(make_allocations(5)))
        leaf = tree.leaves[3]

        assert not MerkleVerifier.verify_claim(
            2, leaf.address, leaf.amount,
            [to_hex(s) for s in tree.proof(3)], tree.root_hex,
        )

    def test_malformed_proof_returns_false(self):
        tree = build_tree(allocations(make_allocations(2)))
        leaf = tree.leaves[0]

        assert not MerkleVerifier.verify_claim(
            0, leaf.address, leaf.amount, ["0x1234"], tree.root_hex,
        )

    def test_prover_by_address(self):
        tree = build_tree(allocations(make_allocations(4)))
        address = tree.leaves[1].address

        assert MerkleProver.prove_address(tree, address) == [to_hex(s) for s in tree.proof(1)]
        assert MerkleProver.prove_address(tree, "0x" + "f" * 40) is None


class TestReferenceDistribution:
    """0xaa.. 100, 0xbb.. 200, 0xcc.. 50."""

    def test_root_and_totals(self):
        tree = build_tree(allocations([
            {"address": ADDR_A, "amount": 100},
            {"address": ADDR_B, "amount": 200},
            {"address": ADDR_C, "amount": 50},
        ]))
        l0 = encode_leaf(0, ADDR_A, 100)
        l1 = encode_leaf(1, ADDR_B, 200)
        l2 = encode_leaf(2, ADDR_C, 50)

        assert tree.root == hash_pair(hash_pair(l0, l1), l2)
        assert tree.total_amount == 350
        assert tree.proof(1) == [l0, l2]
        assert tree.proof(2) == [hash_pair(l0, l1)]

    def test_stats(self):
        tree = build_tree(allocations([
            {"address": ADDR_A, "amount": 100},
            {"address": ADDR_B, "amount": 200},
            {"address": ADDR_C, "amount": 50},
        ]))
        stats = tree_stats(tree)

        assert stats.recipient_count == 3
        assert stats.total_amount == 350
        assert stats.min_allocation == 50
        assert stats.max_allocation == 200
        assert stats.average_allocation == 116
        assert stats.tree_depth == 2
        assert stats.to_dict()["total_amount"] == "350"
