"""Argument handling shared by the command line entry points."""

import argparse
import logging
from pathlib import Path
from typing import Callable, List

from .errors import ArchiveError
from .pipeline_orchestrator import ArchivePipeline, ArtifactKind, PipelineConfig, PipelineResult
from .settings import load_settings, setup_logging

logger = logging.getLogger(__name__)


def add_common_arguments(parser: argparse.ArgumentParser, force_default: bool = False) -> None:
    parser.add_argument("--packages-dir", type=Path, default=None,
                        help="Archive root directory (default: from settings, 'packages').")
    parser.add_argument("--move-decompiler-path", type=Path, default=None,
                        help="Path to the move-decompiler executable.")
    parser.add_argument("--bytecode-reader", type=str, default=None,
                        help="Bytecode reader as 'package.module:ClassName'.")
    parser.add_argument("--artifacts", nargs="+", default=None,
                        choices=[a.value for a in ArtifactKind],
                        help="Artifacts to write (default: all).")
    parser.add_argument("--last-checkpoint-file", type=Path, default=None,
                        help="Write the archive's highest checkpoint to this file when done.")
    parser.add_argument("--settings", type=str, default=None,
                        help="YAML settings file (default: settings.yaml if present).")
    parser.add_argument("--log-file", type=str, default=None,
                        help="Also write logs to this file.")
    force = parser.add_mutually_exclusive_group()
    force.add_argument("--force", dest="force", action="store_true",
                       help="Overwrite existing artifacts.")
    force.add_argument("--no-force", dest="force", action="store_false",
                       help="Keep existing artifacts.")
    parser.set_defaults(force=force_default)


def build_config(args: argparse.Namespace) -> PipelineConfig:
    settings = load_settings(args.settings)
    artifacts = [ArtifactKind(a) for a in args.artifacts] if args.artifacts else None
    return PipelineConfig.from_settings(
        settings,
        packages_dir=args.packages_dir,
        move_decompiler_path=args.move_decompiler_path,
        bytecode_reader=args.bytecode_reader,
        artifacts=artifacts,
        force=args.force,
        last_checkpoint_file=args.last_checkpoint_file,
    )


def run_pipeline(
    args: argparse.Namespace, run: Callable[[ArchivePipeline], List[PipelineResult]]
) -> int:
    """Set up logging, build the pipeline, run it and map failures to an exit code."""
    setup_logging(args.log_file)
    try:
        pipeline = ArchivePipeline(build_config(args))
        results = run(pipeline)
    except ArchiveError as e:
        logger.error("%s error: %s", e.kind.value, e)
        return 1
    except (ValueError, ImportError) as e:
        logger.error("Configuration error: %s", e)
        return 2
    logger.info("Done: %d packages processed", len(results))
    return 0
