#!/usr/bin/env python3
"""
Archive Sui packages from GraphQL

Fetches every package published after a checkpoint and archives it. Without
--initial-checkpoint the import resumes from the highest checkpoint already
recorded in the archive.

Usage:
    python fetch_graphql.py --move-decompiler-path bin/move-decompiler \\
        --bytecode-reader my_decoder.readers:MoveReader
    python fetch_graphql.py --initial-checkpoint 150317860 --last-checkpoint-file last.txt
    python fetch_graphql.py --from-file page.json       # replay a saved page
"""

import argparse
import sys

from sui_archive.cli import add_common_arguments, run_pipeline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fetch packages from the Sui GraphQL endpoint and archive them.",
    )
    add_common_arguments(parser)
    parser.add_argument("--initial-checkpoint", type=int, default=None,
                        help="Fetch packages created after this checkpoint "
                             "(default: highest checkpoint in the archive).")
    parser.add_argument("--from-file", type=str, default=None,
                        help="Replay a saved GraphQL page response instead of fetching.")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.from_file:
        return run_pipeline(args, lambda pipeline: pipeline.run_file(args.from_file))
    return run_pipeline(args, lambda pipeline: pipeline.run_graphql(args.initial_checkpoint))


if __name__ == "__main__":
    sys.exit(main())
