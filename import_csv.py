#!/usr/bin/env python3
"""
Archive Sui packages from a CSV export

The CSV holds one package per row with the columns PACKAGE_ID,
PACKAGE_VERSION, CHECKPOINT, BCS (base64), TRANSACTION_DIGEST and SENDER.

Usage:
    python import_csv.py --package-bcs-csv packages.csv \\
        --move-decompiler-path bin/move-decompiler \\
        --bytecode-reader my_decoder.readers:MoveReader
"""

import argparse
import sys
from pathlib import Path

from sui_archive.cli import add_common_arguments, run_pipeline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Archive packages listed in a CSV export.",
    )
    parser.add_argument("--package-bcs-csv", type=Path, required=True,
                        help="CSV export to import.")
    add_common_arguments(parser)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return run_pipeline(args, lambda pipeline: pipeline.run_csv(args.package_bcs_csv))


if __name__ == "__main__":
    sys.exit(main())
