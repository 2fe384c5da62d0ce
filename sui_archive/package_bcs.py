"""
Package envelope decoding.

GraphQL (``packageBcs``) and the CSV export both carry a package as the
base64 of its BCS-encoded ``MovePackage``:

    id                 32 raw bytes
    version            u64, little endian
    module_map         map<string, bytes>
    type_origin_table  vec<{module_name: string, datatype_name: string, package: 32 bytes}>
    linkage_table      map<32 bytes, {upgraded_id: 32 bytes, upgraded_version: u64}>

Lengths are ULEB128. Module bytes are kept raw; decoding them is the
bytecode reader's job.
"""

import base64
import binascii
import struct
from typing import Any, Dict, List, Optional

from .errors import DecodeError
from .models import ADDRESS_LENGTH, Package, canonical_address

# ULEB128 lengths in BCS are capped at u32.
_MAX_ULEB_SHIFT = 32


class BcsReader:
    """Sequential reader over a BCS byte string."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def read_bytes(self, n: int) -> bytes:
        if n < 0 or self.offset + n > len(self.data):
            raise ValueError(
                f"Unexpected end of input: need {n} bytes at offset {self.offset}, "
                f"have {self.remaining()}"
            )
        chunk = self.data[self.offset:self.offset + n]
        self.offset += n
        return chunk

    def read_u64(self) -> int:
        return struct.unpack("<Q", self.read_bytes(8))[0]

    def read_uleb128(self) -> int:
        value = 0
        shift = 0
        while True:
            byte = self.read_bytes(1)[0]
            value |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return value
            shift += 7
            if shift >= _MAX_ULEB_SHIFT + 7:
                raise ValueError("ULEB128 length overflows u32")

    def read_byte_vector(self) -> bytes:
        return self.read_bytes(self.read_uleb128())

    def read_string(self) -> str:
        return self.read_byte_vector().decode("utf-8")

    def read_address(self) -> str:
        return canonical_address(self.read_bytes(ADDRESS_LENGTH))


def _read_type_origin(reader: BcsReader) -> Dict[str, Any]:
    return {
        "module_name": reader.read_string(),
        "datatype_name": reader.read_string(),
        "package": reader.read_address(),
    }


def _read_upgrade_info(reader: BcsReader) -> Dict[str, Any]:
    return {
        "upgraded_id": reader.read_address(),
        "upgraded_version": reader.read_u64(),
    }


def decode_package_bcs(data: bytes, package_id: Optional[str] = None) -> Package:
    """
    Decode a BCS-encoded ``MovePackage``.

    Args:
        data: Raw BCS bytes.
        package_id: Id used in error messages when the payload is too broken
            to yield its own.

    Raises:
        DecodeError: on truncated, overlong or otherwise malformed input.
    """
    reader = BcsReader(data)
    try:
        pkg_id = reader.read_address()
        version = reader.read_u64()

        module_map: Dict[str, bytes] = {}
        for _ in range(reader.read_uleb128()):
            name = reader.read_string()
            module_map[name] = reader.read_byte_vector()

        type_origin_table: List[Dict[str, Any]] = [
            _read_type_origin(reader) for _ in range(reader.read_uleb128())
        ]

        linkage_table: Dict[str, Dict[str, Any]] = {}
        for _ in range(reader.read_uleb128()):
            dependency = reader.read_address()
            linkage_table[dependency] = _read_upgrade_info(reader)
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodeError(f"Failed to deserialize package: {e}", package_id) from e

    if reader.remaining():
        raise DecodeError(
            f"Failed to deserialize package: {reader.remaining()} trailing bytes",
            package_id or pkg_id,
        )

    return Package(
        id=pkg_id,
        version=version,
        module_map=module_map,
        type_origin_table=type_origin_table,
        linkage_table=linkage_table,
    )


def decode_package_base64(encoded: str, package_id: Optional[str] = None) -> Package:
    """Decode the base64 of a BCS-encoded package."""
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Failed to decode package bcs: {e}", package_id) from e
    return decode_package_bcs(raw, package_id)


def encode_package_bcs(package: Package) -> bytes:
    """Inverse of :func:`decode_package_bcs`; used to build fixtures and replay files."""
    out = bytearray()

    def uleb(n: int) -> None:
        while True:
            byte = n & 0x7F
            n >>= 7
            if n:
                out.append(byte | 0x80)
            else:
                out.append(byte)
                return

    def blob(b: bytes) -> None:
        uleb(len(b))
        out.extend(b)

    def address(a: str) -> None:
        out.extend(bytes.fromhex(canonical_address(a, with_prefix=False)))

    address(package.id)
    out.extend(struct.pack("<Q", package.version))
    uleb(len(package.module_map))
    for name, code in sorted(package.module_map.items()):
        blob(name.encode("utf-8"))
        blob(code)
    uleb(len(package.type_origin_table))
    for origin in package.type_origin_table:
        blob(origin["module_name"].encode("utf-8"))
        blob(origin["datatype_name"].encode("utf-8"))
        address(origin["package"])
    uleb(len(package.linkage_table))
    for dependency, info in sorted(package.linkage_table.items()):
        address(dependency)
        address(info["upgraded_id"])
        out.extend(struct.pack("<Q", info["upgraded_version"]))
    return bytes(out)
