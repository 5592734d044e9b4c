"""
Module 02 - Leaf Codec, Merkle Tree and Commitments
Deterministic Merkle tree construction + proof generation/verification.

Owner: Protocol/Crypto Engineer
Module ID: M02

This module provides:
- encode_leaf: keccak256(abi.encodePacked(uint256 index, address, uint256 amount))
- build_tree: Allocations -> indexed leaves + root
- build_merkle_root / build_merkle_proof / verify_merkle_proof over raw leaf hashes
- MerkleProver / MerkleVerifier: allocation-level wrappers

Canonical Commitment Rules:
1. Leaf hashing: keccak256 over the packed (index, address, amount) preimage
2. Parent hashing: keccak256(sorted(left, right))
3. Odd level: last node promoted unchanged
4. Empty tree: rejected
5. Single leaf: root = leaf, empty proof

Usage:
    from core.merkle import build_tree, MerkleVerifier

    tree = build_tree(allocations)
    siblings = tree.proof(2)
    assert MerkleVerifier.verify_claim(
        2, tree.leaves[2].address, tree.leaves[2].amount,
        [to_hex(s) for s in siblings], tree.root_hex,
    )
"""
from .leaf_codec import (
    UINT256_MAX,
    encode_leaf,
    get_leaf_encoder,
    leaf_preimage,
    normalize_address,
)

from .merkle_tree import (
    InclusionProof,
    MerkleTree,
    TreeLeaf,
    merkle_parent,
    build_merkle_levels,
    build_merkle_root,
    build_merkle_proof,
    verify_proof,
    verify_merkle_proof,
    compute_tree_depth,
    build_tree,
)

from .merkle_proofs import (
    MerkleProver,
    MerkleVerifier,
    TreeStats,
    tree_stats,
)


__all__ = [
    # Leaf codec
    "UINT256_MAX",
    "encode_leaf",
    "get_leaf_encoder",
    "leaf_preimage",
    "normalize_address",
    # Core types
    "InclusionProof",
    "MerkleTree",
    "TreeLeaf",
    # Core functions
    "merkle_parent",
    "build_merkle_levels",
    "build_merkle_root",
    "build_merkle_proof",
    "verify_proof",
    "verify_merkle_proof",
    "compute_tree_depth",
    "build_tree",
    # Convenience classes
    "MerkleProver",
    "MerkleVerifier",
    "TreeStats",
    "tree_stats",
]
