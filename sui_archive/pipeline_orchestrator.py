"""
Pipeline Orchestrator for Package Archiving

Coordinates the archive pipeline, one package at a time:
1. Obtain packages (GraphQL pages, a captured page file, a CSV export or
   the framework package list)
2. Introspect them (interface + call graph)
3. Write the enabled artifacts into the archive

Any error aborts the run. Re-running is cheap: existing artifacts are
skipped and a GraphQL import resumes from the archive's highest checkpoint.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from tqdm import tqdm

from .archive_store import ArchiveStore, SaveOptions
from .csv_source import read_packages_csv
from .graphql_fetcher import DEFAULT_GRAPHQL_ENDPOINT, PackageGraphQLFetcher
from .introspection import PackageIntrospector
from .json_rpc import DEFAULT_JSON_RPC_ENDPOINT, JsonRpcClient
from .models import PackageWithMetadata, canonical_address
from .module_reader import BytecodeReader, load_bytecode_reader

logger = logging.getLogger(__name__)

FRAMEWORK_PACKAGES = [
    canonical_address(a) for a in ("0x1", "0x2", "0x3", "0xb", "0xdee9")
]


class ArtifactKind(Enum):
    """Artifacts written per package."""
    BCS = "bcs"
    BYTECODE = "bytecode"
    DECOMPILED = "decompiled"
    CALL_GRAPH = "call_graph"
    METADATA = "metadata"


@dataclass
class PipelineConfig:
    """Configuration for the archive pipeline."""
    packages_dir: Path = Path("packages")
    artifacts: List[ArtifactKind] = field(default_factory=lambda: list(ArtifactKind))
    move_decompiler_path: Optional[Path] = None
    bytecode_reader: Optional[str] = None
    force: bool = False
    graphql_endpoint: str = DEFAULT_GRAPHQL_ENDPOINT
    json_rpc_endpoint: str = DEFAULT_JSON_RPC_ENDPOINT
    http_timeout: float = 60.0
    last_checkpoint_file: Optional[Path] = None

    @classmethod
    def from_settings(cls, settings: Dict[str, Any], **overrides) -> "PipelineConfig":
        """Build from ``load_settings()`` output; non-None overrides win."""
        values = {
            "packages_dir": settings.get("packages_dir"),
            "move_decompiler_path": settings.get("move_decompiler_path"),
            "bytecode_reader": settings.get("bytecode_reader"),
            "graphql_endpoint": settings.get("graphql_endpoint"),
            "json_rpc_endpoint": settings.get("json_rpc_endpoint"),
            "http_timeout": settings.get("http_timeout"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        values = {k: v for k, v in values.items() if v is not None}
        for key in ("packages_dir", "move_decompiler_path", "last_checkpoint_file"):
            if key in values:
                values[key] = Path(values[key])
        return cls(**values)

    def save_options(self) -> SaveOptions:
        return SaveOptions(
            bcs=ArtifactKind.BCS in self.artifacts,
            bytecode=ArtifactKind.BYTECODE in self.artifacts,
            call_graph=ArtifactKind.CALL_GRAPH in self.artifacts,
            metadata=ArtifactKind.METADATA in self.artifacts,
            move_code=ArtifactKind.DECOMPILED in self.artifacts,
            force=self.force,
            decompiler_path=self.move_decompiler_path,
        )


@dataclass
class PipelineResult:
    """Outcome of archiving one package."""
    package_id: str = ""
    checkpoint: int = 0
    written: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def up_to_date(self) -> bool:
        return len(self.written) == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "package_id": self.package_id,
            "checkpoint": self.checkpoint,
            "written": self.written,
            "skipped": self.skipped,
            "up_to_date": self.up_to_date,
        }


class ArchivePipeline:
    """
    Orchestrates fetching, introspection and archiving.

    Components are created lazily by ``initialize`` from the configuration;
    a store or reader passed to the constructor is used as is.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        store: Optional[ArchiveStore] = None,
        reader: Optional[BytecodeReader] = None,
    ):
        self.config = config or PipelineConfig()
        self.store = store
        self.reader = reader
        self._introspector: Optional[PackageIntrospector] = None
        self._save_options: Optional[SaveOptions] = None
        self._initialized = False

    def initialize(self) -> None:
        """Initialize pipeline components based on configuration."""
        if self._initialized:
            return

        if self.store is None:
            self.store = ArchiveStore(self.config.packages_dir)
        if self.reader is None and self.config.bytecode_reader:
            self.reader = load_bytecode_reader(self.config.bytecode_reader)
        self._introspector = PackageIntrospector(self.reader)
        self._save_options = self.config.save_options()

        self._initialized = True
        logger.info(
            "Pipeline initialized: archive=%s artifacts=%s force=%s",
            self.store.root,
            [a.value for a in self.config.artifacts],
            self.config.force,
        )

    # ------------------------------------------------------------------ #
    #  Archiving
    # ------------------------------------------------------------------ #

    def archive(self, record: PackageWithMetadata) -> PipelineResult:
        """Write every missing artifact of one package."""
        if not self._initialized:
            self.initialize()

        logger.info("Processing %s", record.package_id)
        saved = self.store.save_package(record, self._save_options, self._introspector)
        return PipelineResult(
            package_id=record.package_id,
            checkpoint=record.checkpoint,
            written=[str(p) for p in saved.written],
            skipped=[str(p) for p in saved.skipped],
        )

    def archive_batch(
        self, records: Iterable[PackageWithMetadata], desc: str = "Archiving packages"
    ) -> List[PipelineResult]:
        """Archive packages in order; the first failure aborts the batch."""
        results = []
        for record in tqdm(records, desc=desc, unit="pkg"):
            results.append(self.archive(record))
        written = sum(1 for r in results if not r.up_to_date)
        logger.info("Archived %d packages (%d already up to date)", len(results), len(results) - written)
        self._write_last_checkpoint()
        return results

    # ------------------------------------------------------------------ #
    #  Sources
    # ------------------------------------------------------------------ #

    def graphql_fetcher(self, initial_checkpoint: int) -> PackageGraphQLFetcher:
        json_rpc = JsonRpcClient(
            endpoint=self.config.json_rpc_endpoint, timeout=self.config.http_timeout
        )
        return PackageGraphQLFetcher(
            initial_checkpoint,
            endpoint=self.config.graphql_endpoint,
            timeout=self.config.http_timeout,
            json_rpc=json_rpc,
        )

    def run_graphql(self, initial_checkpoint: Optional[int] = None) -> List[PipelineResult]:
        """Archive everything published after ``initial_checkpoint`` (default: resume point)."""
        self.initialize()
        if initial_checkpoint is None:
            initial_checkpoint = self.store.latest_checkpoint()
        logger.info("Fetching packages from graphql starting from checkpoint %d", initial_checkpoint)
        fetcher = self.graphql_fetcher(initial_checkpoint)
        # Every page must resolve before anything is saved: the resume point
        # is read back from saved metadata.
        records = fetcher.fetch_all()
        return self.archive_batch(records, desc="GraphQL packages")

    def run_file(self, path: Path) -> List[PipelineResult]:
        """Archive the packages of a captured GraphQL page response."""
        self.initialize()
        fetcher = self.graphql_fetcher(0)
        return self.archive_batch(fetcher.parse_from_file(path), desc="Replayed packages")

    def run_csv(self, path: Path) -> List[PipelineResult]:
        """Archive the packages of a CSV export."""
        self.initialize()
        return self.archive_batch(read_packages_csv(path), desc="CSV packages")

    def run_framework(self, addresses: Optional[List[str]] = None) -> List[PipelineResult]:
        """Fetch and archive the framework packages one by one."""
        self.initialize()
        fetcher = self.graphql_fetcher(0)
        addresses = addresses or FRAMEWORK_PACKAGES
        records = [fetcher.fetch_single_package(a) for a in addresses]
        return self.archive_batch(records, desc="Framework packages")

    def _write_last_checkpoint(self) -> None:
        if self.config.last_checkpoint_file is not None:
            self.store.write_last_checkpoint(self.config.last_checkpoint_file)
