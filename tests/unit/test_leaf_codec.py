"""
Module 02 - Leaf Codec Unit Tests
Tests for core/merkle/leaf_codec.py
"""
import pytest
from eth_abi.packed import encode_packed

from core.crypto.hashing import keccak256
from core.merkle.leaf_codec import (
    UINT256_MAX,
    encode_leaf,
    get_leaf_encoder,
    leaf_preimage,
    normalize_address,
)
from core.schemas.versioning import UnsupportedLeafEncodingError


ADDRESS = "0x" + "ab" * 20


class TestPreimage:
    """The v1 preimage is abi.encodePacked(uint256, address, uint256)."""

    def test_layout(self):
        preimage = leaf_preimage(7, ADDRESS, 1000)

        assert len(preimage) == 32 + 20 + 32
        assert preimage[:32] == (7).to_bytes(32, "big")
        assert preimage[32:52] == bytes.fromhex("ab" * 20)
        assert preimage[52:] == (1000).to_bytes(32, "big")

    def test_matches_abi_encode_packed(self):
        expected = encode_packed(["uint256", "address", "uint256"], [3, ADDRESS, 12345])
        assert leaf_preimage(3, ADDRESS, 12345) == expected

    def test_leaf_is_keccak_of_preimage(self):
        assert encode_leaf(3, ADDRESS, 12345) == keccak256(leaf_preimage(3, ADDRESS, 12345))


class TestEncodeLeaf:
    """Tests for encode_leaf()."""

    def test_address_case_does_not_matter(self):
        mixed = "0x" + "aB" * 20
        assert encode_leaf(0, mixed, 5) == encode_leaf(0, mixed.lower(), 5)

    def test_index_is_bound_into_leaf(self):
        assert encode_leaf(0, ADDRESS, 5) != encode_leaf(1, ADDRESS, 5)

    def test_index_and_amount_not_interchangeable(self):
        assert encode_leaf(5, ADDRESS, 9) != encode_leaf(9, ADDRESS, 5)

    def test_max_amount_accepted(self):
        assert len(encode_leaf(0, ADDRESS, UINT256_MAX)) == 32

    def test_amount_overflow_rejected(self):
        with pytest.raises(ValueError, match="uint256"):
            encode_leaf(0, ADDRESS, UINT256_MAX + 1)

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError):
            encode_leaf(-1, ADDRESS, 1)

    def test_bool_amount_rejected(self):
        with pytest.raises(ValueError, match="integer"):
            encode_leaf(0, ADDRESS, True)

    @pytest.mark.parametrize("address", [
        "ab" * 20,
        "0x" + "ab" * 19,
        "0x" + "zz" * 20,
        "",
    ])
    def test_malformed_address_rejected(self, address):
        with pytest.raises(ValueError, match="Malformed address"):
            encode_leaf(0, address, 1)


class TestVersions:
    def test_v1_registered(self):
        encoder = get_leaf_encoder("v1")
        assert encoder(1, ADDRESS, 2) == encode_leaf(1, ADDRESS, 2)

    def test_unknown_version(self):
        with pytest.raises(UnsupportedLeafEncodingError):
            get_leaf_encoder("v0")

    def test_unknown_version_is_value_error(self):
        with pytest.raises(ValueError):
            encode_leaf(0, ADDRESS, 1, "v99")


def test_normalize_address_lowercases():
    assert normalize_address("0x" + "AB" * 20) == ADDRESS
