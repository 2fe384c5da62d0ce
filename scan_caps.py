#!/usr/bin/env python3
"""
List capability structs with extra fields across the archive

Reads every archived package back from its bcs.json and prints the structs
whose name ends in "Cap" and that declare more than one field.

Usage:
    python scan_caps.py --packages-dir packages --bytecode-reader my_decoder.readers:MoveReader
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List

from sui_archive.archive_store import ArchiveStore
from sui_archive.errors import ArchiveError
from sui_archive.interface import find_capability_structs
from sui_archive.module_reader import BytecodeReader, load_bytecode_reader
from sui_archive.settings import load_settings, setup_logging

logger = logging.getLogger(__name__)


def scan_archive(store: ArchiveStore, reader: BytecodeReader) -> List[str]:
    """Capability structs of every module of every archived package."""
    found = []
    for package_id in store.package_ids():
        for module_name, code in store.load_package_modules(package_id).items():
            module = reader.read_module(module_name, code, package_id)
            found.extend(find_capability_structs(module))
    return found


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="List capability structs with extra fields.")
    parser.add_argument("--packages-dir", type=Path, default=None,
                        help="Archive root directory (default: from settings).")
    parser.add_argument("--bytecode-reader", type=str, default=None,
                        help="Bytecode reader as 'package.module:ClassName'.")
    parser.add_argument("--settings", type=str, default=None,
                        help="YAML settings file (default: settings.yaml if present).")
    args = parser.parse_args(argv)

    setup_logging()
    settings = load_settings(args.settings)
    reader_path = args.bytecode_reader or settings.get("bytecode_reader")
    if not reader_path:
        logger.error("A bytecode reader is required (--bytecode-reader)")
        return 2

    store = ArchiveStore(args.packages_dir or settings["packages_dir"])
    try:
        caps = scan_archive(store, load_bytecode_reader(reader_path))
    except ArchiveError as e:
        logger.error("%s error: %s", e.kind.value, e)
        return 1
    except (ValueError, ImportError) as e:
        logger.error("Configuration error: %s", e)
        return 2
    for cap in caps:
        print(cap)
    logger.info("%d capability structs found in %d packages", len(caps), len(store.package_ids()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
