"""
Core records passed between the fetchers, the introspection passes and the
archive store.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from eth_utils import encode_hex, is_hexstr, remove_0x_prefix

ADDRESS_LENGTH = 32
ADDRESS_HEX_LENGTH = ADDRESS_LENGTH * 2

# Version number every package is published at.
PACKAGE_START_VERSION = 1


def canonical_address(value: Union[str, bytes, bytearray], with_prefix: bool = True) -> str:
    """
    Normalise an address to its full, zero-padded, lowercase hex form.

    Accepts raw 32-byte values as well as hex strings in short (``0x2``) or
    long form, with or without the ``0x`` prefix.

    Raises:
        ValueError: if the value is not a valid 32-byte address.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != ADDRESS_LENGTH:
            raise ValueError(f"Address must be {ADDRESS_LENGTH} bytes, got {len(value)}")
        digits = remove_0x_prefix(encode_hex(bytes(value)))
    else:
        text = value.strip()
        if not text or not is_hexstr(text):
            raise ValueError(f"Not a hex address: {value!r}")
        digits = remove_0x_prefix(text).lower()
        if not digits or len(digits) > ADDRESS_HEX_LENGTH:
            raise ValueError(f"Not a hex address: {value!r}")
        digits = digits.rjust(ADDRESS_HEX_LENGTH, "0")
    return "0x" + digits if with_prefix else digits


@dataclass
class Package:
    """A published Move package as stored on chain."""
    id: str
    version: int
    module_map: Dict[str, bytes] = field(default_factory=dict)
    type_origin_table: List[Dict[str, Any]] = field(default_factory=list)
    linkage_table: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self):
        self.id = canonical_address(self.id)
        # Modules are kept in name order, like the on-chain ordered map.
        self.module_map = dict(sorted(self.module_map.items()))


@dataclass
class PackageWithMetadata:
    """A package together with the provenance of its creating transaction."""
    package: Package
    checkpoint: int
    transaction_digest: str
    sender: Optional[str] = None

    @property
    def package_id(self) -> str:
        return self.package.id


@dataclass(frozen=True)
class PackageMetadata:
    """Contents of a package's metadata.json."""
    id: str
    original_package_id: str
    version: int
    sender: Optional[str]
    transaction_digest: str
    checkpoint: int

    @classmethod
    def from_record(
        cls, record: PackageWithMetadata, original_package_id: str
    ) -> "PackageMetadata":
        return cls(
            id=record.package.id,
            original_package_id=canonical_address(original_package_id),
            version=record.package.version,
            sender=record.sender,
            transaction_digest=record.transaction_digest,
            checkpoint=record.checkpoint,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageMetadata":
        """Build from a parsed metadata.json; raises KeyError/TypeError/ValueError on bad input."""
        checkpoint = data["checkpoint"]
        version = data["version"]
        if not isinstance(checkpoint, int) or isinstance(checkpoint, bool):
            raise ValueError(f"checkpoint must be an integer, got {checkpoint!r}")
        if not isinstance(version, int) or isinstance(version, bool):
            raise ValueError(f"version must be an integer, got {version!r}")
        return cls(
            id=data["id"],
            original_package_id=data["originalPackageId"],
            version=version,
            sender=data.get("sender"),
            transaction_digest=data["transactionDigest"],
            checkpoint=checkpoint,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "originalPackageId": self.original_package_id,
            "version": self.version,
            "sender": self.sender,
            "transactionDigest": self.transaction_digest,
            "checkpoint": self.checkpoint,
        }
