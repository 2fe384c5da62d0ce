"""
On-disk Package Archive

Packages live in a two-level sharded tree derived from their canonical id:

    <root>/0x<first 2 hex digits>/<remaining 62 hex digits>/
        bcs.json
        call_graph.json
        metadata.json
        bytecode_modules/<module>.mv
        decompiled_modules/<module>.move

Every artifact is written only when missing (or when forced), so re-running
an import over an existing archive is cheap: nothing is re-derived and the
decompiler is not invoked again. The highest checkpoint recorded in the
metadata files is the point a GraphQL import resumes from.

Concurrent writers against the same root are not supported.
"""

import base64
import binascii
import json
import logging
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .errors import DecodeError, DecompilerError, FilesystemError, ResponseParseError
from .introspection import PackageIntrospector
from .models import PackageMetadata, PackageWithMetadata, canonical_address

logger = logging.getLogger(__name__)

BCS_JSON = "bcs.json"
CALL_GRAPH_JSON = "call_graph.json"
METADATA_JSON = "metadata.json"
BYTECODE_DIR = "bytecode_modules"
DECOMPILED_DIR = "decompiled_modules"

SHARD_PREFIX_LENGTH = 4  # "0x" + two hex digits
_SHARD_NAME_RE = re.compile(r"^[0-9a-f]{62}$")


@dataclass
class SaveOptions:
    """Which artifacts to write and how."""
    bcs: bool = True
    bytecode: bool = True
    call_graph: bool = True
    metadata: bool = True
    move_code: bool = True
    force: bool = False
    decompiler_path: Optional[Path] = None

    def __post_init__(self):
        if self.move_code and not self.bytecode:
            raise ValueError("Decompiled sources are produced from bytecode files; enable bytecode too")
        if self.move_code and self.decompiler_path is None:
            raise ValueError("move_code requires decompiler_path")


@dataclass
class SaveResult:
    """Paths written and skipped while saving one package."""
    package_id: str
    written: List[Path] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)


class ArchiveStore:
    """A sharded package archive rooted at one directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    # ------------------------------------------------------------------ #
    #  Layout
    # ------------------------------------------------------------------ #

    def package_dir(self, package_id: str) -> Path:
        """Shard directory of a package id (short ids are canonicalised first)."""
        canonical = canonical_address(package_id)
        return self.root / canonical[:SHARD_PREFIX_LENGTH] / canonical[SHARD_PREFIX_LENGTH:]

    def create_package_dir(self, package_id: str) -> Path:
        package_dir = self.package_dir(package_id)
        self._mkdir(package_dir, package_id)
        return package_dir

    def list_package_dirs(self) -> List[Path]:
        """All package directories in the archive, sorted."""
        if not self.root.is_dir():
            return []
        package_dirs = []
        try:
            for first_level in self.root.iterdir():
                if not (first_level.is_dir() and first_level.name.startswith("0x")):
                    continue
                for second_level in first_level.iterdir():
                    if second_level.is_dir() and _SHARD_NAME_RE.match(second_level.name):
                        package_dirs.append(second_level)
        except OSError as e:
            raise FilesystemError(f"Error listing archive {self.root}: {e}") from e
        return sorted(package_dirs)

    def package_ids(self) -> List[str]:
        """Ids reconstructed from the shard paths."""
        return [d.parent.name + d.name for d in self.list_package_dirs()]

    # ------------------------------------------------------------------ #
    #  Reading
    # ------------------------------------------------------------------ #

    def read_metadata(self, package_dir: Path) -> PackageMetadata:
        metadata_file = package_dir / METADATA_JSON
        try:
            text = metadata_file.read_text(encoding="utf-8")
        except OSError as e:
            raise FilesystemError(f"Error reading {metadata_file}: {e}") from e
        try:
            return PackageMetadata.from_dict(json.loads(text))
        except (ValueError, KeyError, TypeError) as e:
            raise ResponseParseError(f"Corrupt {metadata_file}: {e}") from e

    def latest_checkpoint(self) -> int:
        """
        Highest checkpoint recorded in the archive, 0 when it is empty.

        Every package directory must hold a readable metadata.json; a resume
        point computed from a partial scan could skip packages.
        """
        latest = 0
        for package_dir in self.list_package_dirs():
            metadata = self.read_metadata(package_dir)
            if metadata.checkpoint > latest:
                latest = metadata.checkpoint
        return latest

    def write_last_checkpoint(self, path: Union[str, Path]) -> int:
        """Write the current high-water mark to ``path`` and return it."""
        checkpoint = self.latest_checkpoint()
        try:
            Path(path).write_text(f"{checkpoint}\n", encoding="utf-8")
        except OSError as e:
            raise FilesystemError(f"Error writing last checkpoint to {path}: {e}") from e
        logger.info("Last checkpoint %d written to %s", checkpoint, path)
        return checkpoint

    def load_package_modules(self, package_id: str) -> Dict[str, bytes]:
        """Module name -> bytecode, read back from a package's bcs.json."""
        bcs_file = self.package_dir(package_id) / BCS_JSON
        try:
            bcs_json = json.loads(bcs_file.read_text(encoding="utf-8"))
        except OSError as e:
            raise FilesystemError(f"Error reading {bcs_file}: {e}", package_id) from e
        except ValueError as e:
            raise ResponseParseError(f"Corrupt {bcs_file}: {e}", package_id) from e
        modules = {}
        for name, encoded in bcs_json.get("moduleMap", {}).items():
            try:
                modules[name] = base64.b64decode(encoded, validate=True)
            except (binascii.Error, ValueError) as e:
                raise DecodeError(f"Bad base64 for module {name}: {e}", package_id) from e
        return modules

    # ------------------------------------------------------------------ #
    #  Writing
    # ------------------------------------------------------------------ #

    def save_package(
        self,
        record: PackageWithMetadata,
        options: SaveOptions,
        introspector: PackageIntrospector,
    ) -> SaveResult:
        """Write every enabled artifact of a package that is not already present."""
        result = SaveResult(package_id=record.package_id)
        self.save_bcs(record, options, introspector, result)
        self.save_code_files(record, options, result)
        self.save_call_graph(record, options, introspector, result)
        self.save_metadata(record, options, introspector, result)
        return result

    def save_bcs(
        self,
        record: PackageWithMetadata,
        options: SaveOptions,
        introspector: PackageIntrospector,
        result: SaveResult,
    ) -> None:
        if not options.bcs:
            return
        package = record.package
        path = self.create_package_dir(package.id) / BCS_JSON
        self._write_json_once(
            path, lambda: introspector.interface_report(package), options.force, package.id, result
        )

    def save_code_files(
        self, record: PackageWithMetadata, options: SaveOptions, result: SaveResult
    ) -> None:
        """Write bytecode_modules/*.mv and, when enabled, decompiled_modules/*.move."""
        if not options.bytecode:
            return
        package = record.package
        package_dir = self.create_package_dir(package.id)
        bytecode_dir = package_dir / BYTECODE_DIR
        decompiled_dir = package_dir / DECOMPILED_DIR
        self._mkdir(bytecode_dir, package.id)
        if options.move_code:
            self._mkdir(decompiled_dir, package.id)

        for module_name, module_bytes in package.module_map.items():
            bytecode_path = bytecode_dir / f"{module_name}.mv"
            if self._should_write(bytecode_path, options.force, result):
                self._write_bytes(bytecode_path, module_bytes, package.id, result)

            if not options.move_code:
                continue
            decompiled_path = decompiled_dir / f"{module_name}.move"
            if self._should_write(decompiled_path, options.force, result):
                source = self.decompile(options.decompiler_path, bytecode_path, package.id)
                self._write_bytes(decompiled_path, source, package.id, result)

    def save_call_graph(
        self,
        record: PackageWithMetadata,
        options: SaveOptions,
        introspector: PackageIntrospector,
        result: SaveResult,
    ) -> None:
        if not options.call_graph:
            return
        package = record.package
        path = self.create_package_dir(package.id) / CALL_GRAPH_JSON
        self._write_json_once(
            path, lambda: introspector.call_graph_report(package), options.force, package.id, result
        )

    def save_metadata(
        self,
        record: PackageWithMetadata,
        options: SaveOptions,
        introspector: PackageIntrospector,
        result: SaveResult,
    ) -> None:
        if not options.metadata:
            return
        package = record.package
        path = self.create_package_dir(package.id) / METADATA_JSON

        def build():
            original_id = introspector.original_package_id(package)
            return PackageMetadata.from_record(record, original_id).to_dict()

        self._write_json_once(path, build, options.force, package.id, result)

    @staticmethod
    def decompile(decompiler_path: Path, bytecode_path: Path, package_id: str) -> bytes:
        """Run the external decompiler on one .mv file and return its stdout."""
        command = [str(decompiler_path), "--bytecode", str(bytecode_path)]
        try:
            completed = subprocess.run(command, capture_output=True, check=False)
        except OSError as e:
            raise DecompilerError(f"Error running move-decompiler: {e}", package_id) from e
        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", errors="replace").strip()
            raise DecompilerError(
                f"move-decompiler exited with status {completed.returncode} "
                f"on {bytecode_path.name}: {stderr}",
                package_id,
            )
        return completed.stdout

    # ------------------------------------------------------------------ #
    #  Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _should_write(path: Path, force: bool, result: SaveResult) -> bool:
        if force or not path.exists():
            return True
        logger.debug("Skipping existing %s", path)
        result.skipped.append(path)
        return False

    def _write_json_once(
        self,
        path: Path,
        build: Callable[[], Dict[str, Any]],
        force: bool,
        package_id: str,
        result: SaveResult,
    ) -> None:
        if not self._should_write(path, force, result):
            return
        report = build()
        try:
            text = json.dumps(report, indent=2)
        except TypeError as e:
            raise FilesystemError(f"Error serializing {path.name}: {e}", package_id) from e
        self._write_bytes(path, text.encode("utf-8"), package_id, result)

    @staticmethod
    def _write_bytes(path: Path, data: bytes, package_id: str, result: SaveResult) -> None:
        logger.info("Saving %s", path)
        try:
            path.write_bytes(data)
        except OSError as e:
            raise FilesystemError(f"Error writing {path}: {e}", package_id) from e
        result.written.append(path)

    @staticmethod
    def _mkdir(path: Path, package_id: str) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Error creating directory {path}: {e}", package_id) from e
