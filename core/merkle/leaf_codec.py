"""
Module 02 - Leaf Codec
Deterministic encoding of (index, address, amount) into a leaf hash.

Owner: Protocol/Crypto Engineer
Module ID: M02

Encoding v1 (Hard Contract):
    leaf = keccak256(abi.encodePacked(uint256 index, address account, uint256 amount))

    - index:   32-byte big-endian unsigned integer
    - account: 20 raw address bytes (address is lowercased first)
    - amount:  32-byte big-endian unsigned integer

The same preimage can be rebuilt in Solidity with
``keccak256(abi.encodePacked(index, account, amount))``. Fields have fixed
widths, so swapping index and amount, or shifting bytes between fields,
cannot produce the same preimage.

Any change to this encoding invalidates every committed root. New
encodings are registered under a new version tag; existing tags are never
redefined.
"""
from __future__ import annotations

from typing import Callable

from eth_utils import is_hex_address

from core.crypto.hashing import keccak256
from core.schemas.versioning import (
    LEAF_ENCODING_VERSION,
    UnsupportedLeafEncodingError,
)


UINT256_MAX: int = 2**256 - 1

LeafEncoder = Callable[[int, str, int], bytes]


def normalize_address(address: str) -> str:
    """
    Return the lowercase 0x-prefixed form of a 20-byte hex address.

    Raises:
        ValueError: If the value is not a 0x-prefixed 40-hex-digit string
    """
    if not isinstance(address, str) or not address.startswith("0x") or not is_hex_address(address):
        raise ValueError(f"Malformed address: {address!r}")
    return address.lower()


def _uint256(value: int, field: str) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field} must be an integer, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"{field} out of uint256 range: {value}")
    return value.to_bytes(32, byteorder="big")


def leaf_preimage(index: int, address: str, amount: int) -> bytes:
    """Packed v1 preimage: index(32) || address(20) || amount(32)."""
    address_bytes = bytes.fromhex(normalize_address(address)[2:])
    return _uint256(index, "index") + address_bytes + _uint256(amount, "amount")


def _encode_leaf_v1(index: int, address: str, amount: int) -> bytes:
    return keccak256(leaf_preimage(index, address, amount))


_LEAF_ENCODERS: dict[str, LeafEncoder] = {
    "v1": _encode_leaf_v1,
}


def get_leaf_encoder(version: str = LEAF_ENCODING_VERSION) -> LeafEncoder:
    """
    Look up the leaf encoder registered under a version tag.

    Raises:
        UnsupportedLeafEncodingError: If no encoder is registered
    """
    try:
        return _LEAF_ENCODERS[version]
    except KeyError:
        raise UnsupportedLeafEncodingError(version, frozenset(_LEAF_ENCODERS)) from None


def encode_leaf(
    index: int,
    address: str,
    amount: int,
    version: str = LEAF_ENCODING_VERSION,
) -> bytes:
    """
    Compute the leaf hash for one allocation.

    Args:
        index: 0-based leaf position in the committed ordering
        address: Recipient address (any hex case)
        amount: Allocation in base units

    Returns:
        32-byte leaf hash

    Raises:
        ValueError: On malformed address or out-of-range integers
        UnsupportedLeafEncodingError: On an unknown version tag
    """
    return get_leaf_encoder(version)(index, address, amount)


__all__ = [
    "UINT256_MAX",
    "LeafEncoder",
    "normalize_address",
    "leaf_preimage",
    "get_leaf_encoder",
    "encode_leaf",
]
