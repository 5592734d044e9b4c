"""
Module 02 - Hashing Utilities
Keccak-256 hashing and hex helpers for Merkle commitments.

Owner: Protocol/Crypto Engineer
Module ID: M02

This module provides:
- Keccak-256 hashing for raw bytes (Ethereum flavour, not NIST SHA3-256)
- Sorted-pair parent hashing compatible with OpenZeppelin MerkleProof
- Hex encoding/decoding with 0x prefix

Security/Determinism Notes:
- Always hash raw bytes exactly as specified
- All operations are deterministic
"""
from __future__ import annotations

from eth_utils import keccak


HASH_LENGTH: int = 32


def keccak256(data: bytes) -> bytes:
    """
    Compute the Keccak-256 hash of raw bytes.

    This is the hash used by the EVM (``keccak256`` in Solidity).

    Args:
        data: Raw bytes to hash

    Returns:
        32-byte Keccak-256 digest

    Example:
        >>> keccak256(b"").hex()
        'c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470'
    """
    return keccak(primitive=data)


def hash_pair(a: bytes, b: bytes) -> bytes:
    """
    Hash two sibling nodes using the sorted-pair rule.

    The two children are ordered byte-wise before concatenation, so
    hash_pair(a, b) == hash_pair(b, a). This matches the commutative
    hashing used by OpenZeppelin's MerkleProof.verify().

    Args:
        a: First child hash
        b: Second child hash

    Returns:
        32-byte parent hash
    """
    if a <= b:
        return keccak256(a + b)
    return keccak256(b + a)


def to_hex(data: bytes) -> str:
    """
    Convert bytes to hexadecimal string with 0x prefix.

    Example:
        >>> to_hex(bytes.fromhex("deadbeef"))
        '0xdeadbeef'
    """
    return "0x" + data.hex()


def from_hex(hex_string: str) -> bytes:
    """
    Convert hexadecimal string (with 0x prefix) to bytes.

    Args:
        hex_string: Hex string with 0x prefix

    Returns:
        Decoded bytes

    Raises:
        ValueError: If string doesn't start with 0x, has odd length,
                   or contains invalid hex characters
    """
    if not isinstance(hex_string, str) or not hex_string.startswith("0x"):
        raise ValueError(
            f"Hex string must start with '0x' prefix, got: {str(hex_string)[:10]}..."
        )

    hex_content = hex_string[2:]

    if len(hex_content) % 2 != 0:
        raise ValueError(
            f"Hex string must have even length after 0x prefix, "
            f"got length {len(hex_content)}"
        )

    try:
        return bytes.fromhex(hex_content)
    except ValueError as e:
        raise ValueError(f"Invalid hex characters in string: {e}") from e


def hash_from_hex(hex_string: str) -> bytes:
    """Decode a 0x-prefixed 32-byte hash, rejecting any other length."""
    data = from_hex(hex_string)
    if len(data) != HASH_LENGTH:
        raise ValueError(
            f"Expected a {HASH_LENGTH}-byte hash, got {len(data)} bytes"
        )
    return data


__all__ = [
    "HASH_LENGTH",
    "keccak256",
    "hash_pair",
    "to_hex",
    "from_hex",
    "hash_from_hex",
]
