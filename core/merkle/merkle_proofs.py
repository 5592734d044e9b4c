"""
Module 02 - Merkle Proofs Convenience Wrappers
Allocation-level wrappers around the core Merkle tree functions.

Owner: Protocol/Crypto Engineer
Module ID: M02

This module provides class-based interfaces:
- MerkleProver: Generate proofs for allocations
- MerkleVerifier: Verify a claim (index, address, amount, proof) against a root
- tree_stats: Summary numbers for a built tree
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from core.crypto.hashing import hash_from_hex, to_hex
from core.merkle.leaf_codec import encode_leaf
from core.merkle.merkle_tree import (
    InclusionProof,
    MerkleTree,
    verify_merkle_proof,
    verify_proof,
)
from core.schemas.versioning import LEAF_ENCODING_VERSION


class MerkleProver:
    """
    Convenience class for generating Merkle proofs.

    Example:
        >>> tree = build_tree(allocations)
        >>> siblings = MerkleProver.prove_address(tree, "0xabc...")
    """

    @staticmethod
    def prove_address(tree: MerkleTree, address: str) -> list[str] | None:
        """
        Hex sibling list for an address in a built tree.

        Returns None when the address has no leaf.
        """
        index = tree.index_of(address)
        if index is None:
            return None
        return [to_hex(s) for s in tree.proof(index)]


class MerkleVerifier:
    """
    Convenience class for verifying Merkle proofs.

    Verification happens on-chain in production; this replays the same
    algorithm off-chain for tests, the CLI and integrity checks.
    """

    @staticmethod
    def verify(proof: InclusionProof) -> bool:
        return verify_merkle_proof(proof)

    @staticmethod
    def verify_claim(
        index: int,
        address: str,
        amount: int,
        proof: Sequence[str],
        root: str,
        leaf_encoding: str = LEAF_ENCODING_VERSION,
    ) -> bool:
        """
        Verify that (index, address, amount) is committed under root.

        Args:
            index: Claimed leaf index
            address: Claimant address
            amount: Claimed amount in base units
            proof: Hex sibling hashes, bottom-up
            root: Hex Merkle root

        Returns:
            True if the proof is valid, False otherwise (including
            malformed input)
        """
        try:
            leaf = encode_leaf(index, address, amount, leaf_encoding)
            siblings = [hash_from_hex(s) for s in proof]
            expected_root = hash_from_hex(root)
        except ValueError:
            return False
        return verify_proof(leaf, siblings, expected_root)


@dataclass(frozen=True)
class TreeStats:
    """Summary numbers for a built distribution tree."""
    recipient_count: int
    total_amount: int
    merkle_root: str
    tree_depth: int
    min_allocation: int
    max_allocation: int
    average_allocation: int

    def to_dict(self) -> dict[str, object]:
        return {
            "recipient_count": self.recipient_count,
            "total_amount": str(self.total_amount),
            "merkle_root": self.merkle_root,
            "tree_depth": self.tree_depth,
            "min_allocation": str(self.min_allocation),
            "max_allocation": str(self.max_allocation),
            "average_allocation": str(self.average_allocation),
        }


def tree_stats(tree: MerkleTree) -> TreeStats:
    """Compute TreeStats for a non-empty tree. Average is floor division."""
    amounts = [leaf.amount for leaf in tree.leaves]
    total = sum(amounts)
    return TreeStats(
        recipient_count=len(amounts),
        total_amount=total,
        merkle_root=tree.root_hex,
        tree_depth=tree.depth,
        min_allocation=min(amounts),
        max_allocation=max(amounts),
        average_allocation=total // len(amounts),
    )


__all__ = [
    "MerkleProver",
    "MerkleVerifier",
    "TreeStats",
    "tree_stats",
]
