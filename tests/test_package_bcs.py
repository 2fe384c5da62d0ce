"""
Tests for sui_archive/package_bcs.py

Covers:
  - Decoding a hand-assembled MovePackage
  - ULEB128 lengths
  - Truncated, trailing and badly encoded payloads
  - Base64 handling
"""

import base64
import struct

import pytest

from sui_archive.errors import DecodeError
from sui_archive.models import Package, canonical_address
from sui_archive.package_bcs import (
    BcsReader,
    decode_package_base64,
    decode_package_bcs,
    encode_package_bcs,
)

TWO = canonical_address("0x2")


def _address(hex_address):
    return bytes.fromhex(canonical_address(hex_address, with_prefix=False))


def _hand_built_package():
    """id 0x2, version 7, two modules, one type origin, one linkage entry."""
    return (
        _address("0x2")
        + struct.pack("<Q", 7)
        + b"\x02"
        + b"\x04coin" + b"\x03\x01\x02\x03"
        + b"\x03sui" + b"\x01\xff"
        + b"\x01"
        + b"\x04coin" + b"\x04Coin" + _address("0x2")
        + b"\x01"
        + _address("0x1") + _address("0x1") + struct.pack("<Q", 3)
    )


class TestBcsReader:
    def test_uleb128_single_byte(self):
        assert BcsReader(b"\x7f").read_uleb128() == 127

    def test_uleb128_multi_byte(self):
        assert BcsReader(b"\x80\x01").read_uleb128() == 128
        assert BcsReader(b"\xac\x02").read_uleb128() == 300

    def test_uleb128_overflow(self):
        with pytest.raises(ValueError):
            BcsReader(b"\xff" * 10).read_uleb128()

    def test_read_past_end(self):
        reader = BcsReader(b"\x01\x02")
        with pytest.raises(ValueError, match="Unexpected end of input"):
            reader.read_u64()

    def test_read_string(self):
        reader = BcsReader(b"\x03sui")
        assert reader.read_string() == "sui"
        assert reader.remaining() == 0


class TestDecodePackage:
    def test_hand_built(self):
        package = decode_package_bcs(_hand_built_package())
        assert package.id == TWO
        assert package.version == 7
        assert package.module_map == {"coin": b"\x01\x02\x03", "sui": b"\xff"}
        assert package.type_origin_table == [
            {"module_name": "coin", "datatype_name": "Coin", "package": TWO},
        ]
        assert package.linkage_table == {
            canonical_address("0x1"): {
                "upgraded_id": canonical_address("0x1"),
                "upgraded_version": 3,
            },
        }

    def test_encoder_matches_hand_built(self):
        package = decode_package_bcs(_hand_built_package())
        assert encode_package_bcs(package) == _hand_built_package()

    def test_truncated(self):
        with pytest.raises(DecodeError, match="Failed to deserialize package"):
            decode_package_bcs(_hand_built_package()[:-4], package_id="0x2")

    def test_trailing_bytes(self):
        with pytest.raises(DecodeError, match="trailing bytes"):
            decode_package_bcs(_hand_built_package() + b"\x00")

    def test_bad_utf8_module_name(self):
        data = _address("0x2") + struct.pack("<Q", 1) + b"\x01" + b"\x02\xff\xfe" + b"\x00" + b"\x00\x00"
        with pytest.raises(DecodeError):
            decode_package_bcs(data)

    def test_error_carries_package_id(self):
        with pytest.raises(DecodeError) as excinfo:
            decode_package_bcs(b"\x00", package_id="0xabc")
        assert excinfo.value.package_id == "0xabc"


class TestDecodeBase64:
    def test_valid(self):
        encoded = base64.b64encode(_hand_built_package()).decode("ascii")
        assert decode_package_base64(encoded).version == 7

    def test_invalid_base64(self):
        with pytest.raises(DecodeError, match="Failed to decode package bcs"):
            decode_package_base64("not base64!!", package_id="0x2")

    def test_empty_package(self):
        package = Package(id="0x5", version=1)
        encoded = base64.b64encode(encode_package_bcs(package)).decode("ascii")
        decoded = decode_package_base64(encoded)
        assert decoded.id == canonical_address("0x5")
        assert decoded.module_map == {}
