"""
CSV package export reader.

Reads a warehouse export with one published package per row:

    PACKAGE_ID, PACKAGE_VERSION, CHECKPOINT, BCS, TRANSACTION_DIGEST, SENDER

``BCS`` is the base64 of the BCS-encoded package, ``SENDER`` may be empty.
Rows are yielded in file order; the first bad row stops the import.
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, Union

import pandas as pd

from .errors import DecodeError, FilesystemError
from .models import PackageWithMetadata, canonical_address
from .package_bcs import decode_package_base64

logger = logging.getLogger(__name__)

CSV_COLUMNS = (
    "PACKAGE_ID",
    "PACKAGE_VERSION",
    "CHECKPOINT",
    "BCS",
    "TRANSACTION_DIGEST",
    "SENDER",
)
REQUIRED_COLUMNS = CSV_COLUMNS[:5]
CHUNK_SIZE = 1000


def _normalise_id(value: str) -> str:
    try:
        return canonical_address(value)
    except ValueError:
        return value


def row_to_package(row: Dict[str, str]) -> PackageWithMetadata:
    """Decode one CSV row."""
    package_id = row.get("PACKAGE_ID") or None
    try:
        checkpoint = int(row["CHECKPOINT"])
        version = int(row["PACKAGE_VERSION"])
    except (KeyError, TypeError, ValueError) as e:
        raise DecodeError(f"Bad CHECKPOINT/PACKAGE_VERSION in csv row: {e}", package_id) from e

    package = decode_package_base64(row["BCS"], package_id)
    if package_id and _normalise_id(package_id) != package.id:
        logger.warning("Row PACKAGE_ID %s differs from decoded id %s", package_id, package.id)
    if package.version != version:
        logger.warning(
            "Row version %d differs from decoded version %d for %s",
            version, package.version, package.id,
        )
    return PackageWithMetadata(
        package=package,
        checkpoint=checkpoint,
        transaction_digest=row["TRANSACTION_DIGEST"],
        sender=row.get("SENDER") or None,
    )


def read_packages_csv(
    path: Union[str, Path], chunk_size: int = CHUNK_SIZE
) -> Iterator[PackageWithMetadata]:
    """Yield packages from a CSV export, reading it in chunks."""
    try:
        reader = pd.read_csv(
            path,
            dtype=str,
            keep_default_na=False,
            chunksize=chunk_size,
        )
    except OSError as e:
        raise FilesystemError(f"Error opening {path}: {e}") from e
    except pd.errors.EmptyDataError:
        logger.warning("%s is empty", path)
        return

    with reader:
        for chunk in reader:
            missing = [c for c in REQUIRED_COLUMNS if c not in chunk.columns]
            if missing:
                raise DecodeError(f"{path} is missing columns: {', '.join(missing)}")
            for row in chunk.to_dict(orient="records"):
                yield row_to_package(row)
