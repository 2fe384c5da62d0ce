#!/usr/bin/env python3
"""
Archive the Sui framework packages

Fetches 0x1, 0x2, 0x3, 0xb and 0xdee9 by address. Framework packages are
upgraded in place, so existing artifacts are overwritten unless --no-force
is given.

Usage:
    python fetch_framework.py --move-decompiler-path bin/move-decompiler \\
        --bytecode-reader my_decoder.readers:MoveReader
"""

import argparse
import sys

from sui_archive.cli import add_common_arguments, run_pipeline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fetch the framework packages and archive them.",
    )
    add_common_arguments(parser, force_default=True)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return run_pipeline(args, lambda pipeline: pipeline.run_framework())


if __name__ == "__main__":
    sys.exit(main())
