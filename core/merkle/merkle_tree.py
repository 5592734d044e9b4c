"""
Module 02 - Merkle Tree Implementation
Deterministic Merkle tree construction, proof generation, and verification.

Owner: Protocol/Crypto Engineer
Module ID: M02

This module provides:
- Deterministic Merkle root computation over leaf hashes
- Proof generation for any leaf index
- Proof verification (the same fold an on-chain verifier performs)
- build_tree(): allocations -> indexed leaves + root

Canonical Commitment Rules (Hard Contracts):
1. Leaf hashing: see core.merkle.leaf_codec (index, address, amount)
2. Parent hashing: keccak256(sorted(left, right)) - OpenZeppelin MerkleProof compatible
3. Odd level: the last node is promoted unchanged to the next level.
   It is never paired with itself or with a zero node, and the proof
   simply has no sibling for that level.
4. Empty leaves: rejected (ValueError)
5. Single leaf: root = leaf, proof = []

Determinism Notes:
- Leaf order is the allocation input order; it is part of the commitment
- This module never sorts leaves - it trusts input order
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from core.crypto.hashing import hash_pair, to_hex
from core.merkle.leaf_codec import encode_leaf, normalize_address
from core.schemas.allocation import Allocation
from core.schemas.versioning import LEAF_ENCODING_VERSION


@dataclass(frozen=True)
class InclusionProof:
    """
    A Merkle proof for a single leaf in a Merkle tree.

    Attributes:
        leaf: The leaf hash being proven
        index: The 0-based index of the leaf in the original leaf list
        siblings: Sibling hashes from bottom to top of tree
        root: The Merkle root this proof is against
    """
    leaf: bytes
    index: int
    siblings: list[bytes]
    root: bytes

    def __post_init__(self) -> None:
        if self.index < 0:
            raise ValueError(f"Leaf index must be non-negative, got {self.index}")


@dataclass(frozen=True)
class TreeLeaf:
    """A leaf with its explicitly assigned index."""
    index: int
    address: str
    amount: int
    leaf_hash: bytes

    @property
    def leaf_hash_hex(self) -> str:
        return to_hex(self.leaf_hash)


@dataclass(frozen=True)
class MerkleTree:
    """Result of build_tree(): root plus the indexed leaves it commits to."""
    root: bytes
    leaves: list[TreeLeaf]
    leaf_encoding: str = LEAF_ENCODING_VERSION
    _address_index: dict[str, int] = field(default_factory=dict, repr=False, compare=False)

    @property
    def root_hex(self) -> str:
        return to_hex(self.root)

    @property
    def leaf_hashes(self) -> list[bytes]:
        return [leaf.leaf_hash for leaf in self.leaves]

    @property
    def total_amount(self) -> int:
        return sum(leaf.amount for leaf in self.leaves)

    @property
    def depth(self) -> int:
        return compute_tree_depth(len(self.leaves))

    def index_of(self, address: str) -> int | None:
        """Leaf index for an address (any hex case), or None."""
        return self._address_index.get(address.lower())

    def proof(self, index: int) -> list[bytes]:
        """Sibling hashes for the leaf at index, bottom-up."""
        return build_merkle_proof(self.leaf_hashes, index).siblings


def merkle_parent(left: bytes, right: bytes) -> bytes:
    """
    Compute the parent hash of two child nodes.

    Uses the sorted-pair rule, so the result does not depend on which
    child is left or right.
    """
    return hash_pair(left, right)


def _next_level(level: Sequence[bytes]) -> list[bytes]:
    """Pair adjacent nodes left-to-right; an unpaired last node is promoted."""
    next_level: list[bytes] = []
    for i in range(0, len(level) - 1, 2):
        next_level.append(merkle_parent(level[i], level[i + 1]))
    if len(level) % 2 == 1:
        next_level.append(level[-1])
    return next_level


def build_merkle_levels(leaves: Sequence[bytes]) -> list[list[bytes]]:
    """
    Build every level of the tree, leaves first and root last.

    Raises:
        ValueError: If leaves is empty
    """
    if len(leaves) == 0:
        raise ValueError("Cannot build a Merkle tree from an empty leaf list")

    levels: list[list[bytes]] = [list(leaves)]
    while len(levels[-1]) > 1:
        levels.append(_next_level(levels[-1]))
    return levels


def build_merkle_root(leaves: Sequence[bytes]) -> bytes:
    """
    Build a Merkle root from a sequence of leaf hashes.

    Example: [a, b, c] -> [parent(a,b), c] -> [parent(parent(a,b), c)]

    Args:
        leaves: Sequence of 32-byte leaf hashes. Order matters and is preserved.

    Returns:
        32-byte Merkle root

    Raises:
        ValueError: If leaves is empty
    """
    return build_merkle_levels(leaves)[-1][0]


def build_merkle_proof(leaves: Sequence[bytes], index: int) -> InclusionProof:
    """
    Generate a Merkle proof for the leaf at the given index.

    Algorithm:
    1. Start at the target leaf index
    2. At each level:
       - If the node has a sibling (index XOR 1 exists), record it
       - A promoted last node has no sibling at that level
       - Move up: index = index // 2
    3. Continue until root level

    Raises:
        IndexError: If index is out of range
        ValueError: If leaves is empty
    """
    if len(leaves) == 0:
        raise ValueError("Cannot generate proof for empty leaf list")

    if index < 0 or index >= len(leaves):
        raise IndexError(
            f"Leaf index {index} out of range for {len(leaves)} leaves"
        )

    levels = build_merkle_levels(leaves)
    siblings: list[bytes] = []
    current_index = index

    for level in levels[:-1]:
        sibling_index = current_index ^ 1
        if sibling_index < len(level):
            siblings.append(level[sibling_index])
        current_index //= 2

    return InclusionProof(
        leaf=leaves[index],
        index=index,
        siblings=siblings,
        root=levels[-1][0],
    )


def verify_proof(leaf: bytes, siblings: Iterable[bytes], root: bytes) -> bool:
    """
    Replay the sorted-pair fold from leaf through siblings and compare with root.

    This mirrors OpenZeppelin's MerkleProof.verify().
    """
    current = leaf
    for sibling in siblings:
        current = merkle_parent(current, sibling)
    return current == root


def verify_merkle_proof(proof: InclusionProof) -> bool:
    """Verify an InclusionProof against its claimed root."""
    return verify_proof(proof.leaf, proof.siblings, proof.root)


def compute_tree_depth(num_leaves: int) -> int:
    """
    Number of hashing levels above the leaves: ceil(log2(n)).

    This is also the maximum proof length. A single leaf has depth 0.
    """
    if num_leaves <= 1:
        return 0
    return math.ceil(math.log2(num_leaves))


def build_tree(
    allocations: Sequence[Allocation],
    leaf_encoding: str = LEAF_ENCODING_VERSION,
) -> MerkleTree:
    """
    Build the distribution tree for an allocation list.

    Leaf indices are assigned explicitly in input order, each leaf hash is
    computed with the leaf codec, and the root is folded bottom-up.

    Args:
        allocations: Validated allocations, in committed order
        leaf_encoding: Leaf codec version tag

    Returns:
        MerkleTree with root and indexed leaves

    Raises:
        ValueError: On an empty list or an allocation the codec rejects
    """
    if len(allocations) == 0:
        raise ValueError("Cannot build a distribution tree without allocations")

    leaves: list[TreeLeaf] = []
    address_index: dict[str, int] = {}
    for index, allocation in enumerate(allocations):
        address = normalize_address(allocation.address)
        leaf_hash = encode_leaf(index, address, allocation.amount, leaf_encoding)
        leaves.append(TreeLeaf(
            index=index,
            address=address,
            amount=allocation.amount,
            leaf_hash=leaf_hash,
        ))
        address_index.setdefault(address, index)

    root = build_merkle_root([leaf.leaf_hash for leaf in leaves])
    return MerkleTree(
        root=root,
        leaves=leaves,
        leaf_encoding=leaf_encoding,
        _address_index=address_index,
    )


__all__ = [
    "InclusionProof",
    "TreeLeaf",
    "MerkleTree",
    "merkle_parent",
    "build_merkle_levels",
    "build_merkle_root",
    "build_merkle_proof",
    "verify_proof",
    "verify_merkle_proof",
    "compute_tree_depth",
    "build_tree",
]
