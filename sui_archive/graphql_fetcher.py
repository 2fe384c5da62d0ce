"""
GraphQL Package Fetcher

Pages through every package published after a given checkpoint using the
cursor-based ``packages`` query. Each node carries the package BCS and,
normally, its creating transaction. When the node's history has been pruned
the provenance is resolved through full-node JSON-RPC instead; if that fails
too the whole fetch fails.

A captured page response can be replayed from disk with ``parse_from_file``.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import requests

from .errors import (
    ArchiveError,
    FilesystemError,
    ProvenanceUnavailableError,
    ResponseParseError,
    ServerError,
    TransportError,
)
from .json_rpc import USER_AGENT, JsonRpcClient
from .models import PackageWithMetadata
from .package_bcs import decode_package_base64

logger = logging.getLogger(__name__)

DEFAULT_GRAPHQL_ENDPOINT = "https://graphql.mainnet.sui.io/graphql"
PAGE_SIZE = 50

_PREVIOUS_TRANSACTION_FIELDS = """
      previousTransaction {
        digest
        sender {
          address
        }
        effects {
          checkpoint {
            sequenceNumber
            epoch {
              epochId
            }
          }
        }
      }
"""

PACKAGES_QUERY = """
query($cursor: String, $afterCheckpoint: UInt53) {
  packages(first: %d, after: $cursor, filter: {
    afterCheckpoint: $afterCheckpoint
  }) {
    pageInfo {
      hasNextPage
      endCursor
    }
    nodes {
      address
      packageBcs
%s
    }
  }
}
""" % (PAGE_SIZE, _PREVIOUS_TRANSACTION_FIELDS)

SINGLE_PACKAGE_QUERY = """
query($address: SuiAddress!) {
  package(address: $address) {
    address
    version
    packageBcs
%s
  }
}
""" % _PREVIOUS_TRANSACTION_FIELDS


def _join_errors(errors: List[Any]) -> str:
    messages = []
    for error in errors:
        if isinstance(error, dict):
            messages.append(str(error.get("message", error)))
        else:
            messages.append(str(error))
    return ", ".join(messages)


class PackageGraphQLFetcher:
    """
    Fetches packages created after ``initial_checkpoint``.

    The fetcher is stateful: ``cursor`` and ``has_next_page`` advance once
    every node of a page has been resolved, so an interrupted
    ``iter_packages`` can be continued with the same instance and restarts
    at the page that failed.
    """

    def __init__(
        self,
        initial_checkpoint: int,
        initial_cursor: Optional[str] = None,
        endpoint: str = DEFAULT_GRAPHQL_ENDPOINT,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
        json_rpc: Optional[JsonRpcClient] = None,
    ):
        self.initial_checkpoint = initial_checkpoint
        self.cursor = initial_cursor
        self.has_next_page = True
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        })
        self.json_rpc = json_rpc or JsonRpcClient(timeout=timeout)

    # ------------------------------------------------------------------ #
    #  Transport
    # ------------------------------------------------------------------ #

    def _post(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.post(
                self.endpoint,
                json={"query": query, "variables": variables},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise TransportError(f"Failed to send request: {e}") from e
        try:
            payload = response.json()
        except ValueError as e:
            raise ResponseParseError(f"Failed to parse response: {e}") from e
        if not isinstance(payload, dict):
            raise ResponseParseError("Failed to parse response: expected a JSON object")
        return payload

    def fetch_once(self) -> Dict[str, Any]:
        """Request the page at the current cursor."""
        variables = {"cursor": self.cursor, "afterCheckpoint": self.initial_checkpoint}
        logger.debug("Fetching page after cursor %s", self.cursor)
        return self._post(PACKAGES_QUERY, variables)

    # ------------------------------------------------------------------ #
    #  Bulk
    # ------------------------------------------------------------------ #

    def iter_packages(self) -> Iterator[PackageWithMetadata]:
        """Yield resolved packages page by page until the last page."""
        while self.has_next_page:
            response = self.fetch_once()
            packages = self._packages_connection(response)
            page_info = packages.get("pageInfo") or {}
            nodes = packages.get("nodes") or []

            has_next_page = bool(page_info.get("hasNextPage"))
            end_cursor = page_info.get("endCursor")
            if has_next_page and not end_cursor:
                raise ResponseParseError("Page reports hasNextPage without an endCursor")

            for node in nodes:
                record = self.node_to_package(node)
                logger.info("Fetched package: %s", record.package_id)
                yield record

            self.has_next_page = has_next_page
            self.cursor = end_cursor

    def fetch_all(self) -> List[PackageWithMetadata]:
        """Every page's packages, in order."""
        return list(self.iter_packages())

    @staticmethod
    def _packages_connection(response: Dict[str, Any]) -> Dict[str, Any]:
        data = response.get("data")
        if not data:
            errors = response.get("errors")
            if errors:
                raise ServerError(f"Server-side graphql errors: {_join_errors(errors)}")
            raise ResponseParseError("Response carried neither data nor errors")
        if response.get("errors"):
            logger.warning("Partial graphql errors: %s", _join_errors(response["errors"]))
        packages = data.get("packages")
        if not isinstance(packages, dict):
            raise ResponseParseError("Response data has no packages connection")
        return packages

    # ------------------------------------------------------------------ #
    #  Single package / replay
    # ------------------------------------------------------------------ #

    def fetch_single_package(self, address: str) -> PackageWithMetadata:
        """Fetch one package directly by address."""
        response = self._post(SINGLE_PACKAGE_QUERY, {"address": address})
        if response.get("errors"):
            raise ServerError(f"Server-side graphql errors: {_join_errors(response['errors'])}", address)
        data = response.get("data")
        if not data:
            raise ServerError("No data returned", address)
        node = data.get("package")
        if not node:
            raise ServerError("Package not found", address)
        record = self.node_to_package(node)
        logger.info("Fetched package: %s", record.package_id)
        return record

    def parse_from_file(self, file_path: Union[str, Path]) -> List[PackageWithMetadata]:
        """Resolve the nodes of a page response saved to disk."""
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                response = json.load(f)
        except OSError as e:
            raise FilesystemError(f"Failed to open file {file_path}: {e}") from e
        except ValueError as e:
            raise ResponseParseError(f"Failed to parse {file_path}: {e}") from e
        if not isinstance(response, dict):
            raise ResponseParseError(f"Failed to parse {file_path}: expected a JSON object")

        records = []
        for node in self._packages_connection(response).get("nodes") or []:
            record = self.node_to_package(node)
            logger.info("Fetched package: %s", record.package_id)
            records.append(record)
        return records

    # ------------------------------------------------------------------ #
    #  Node resolution
    # ------------------------------------------------------------------ #

    def node_to_package(self, node: Dict[str, Any]) -> PackageWithMetadata:
        """Turn one response node into a package with provenance."""
        try:
            address = node["address"]
            package_bcs = node["packageBcs"]
        except (KeyError, TypeError) as e:
            raise ResponseParseError(f"Malformed package node: missing {e}") from e

        provenance = self._inline_provenance(node.get("previousTransaction"))
        if provenance is None:
            provenance = self._fallback_provenance(address)
        sender, transaction_digest, checkpoint = provenance

        package = decode_package_base64(package_bcs, address)
        return PackageWithMetadata(
            package=package,
            checkpoint=checkpoint,
            transaction_digest=transaction_digest,
            sender=sender,
        )

    @staticmethod
    def _inline_provenance(
        previous_transaction: Optional[Dict[str, Any]],
    ) -> Optional[Tuple[Optional[str], str, int]]:
        if not previous_transaction:
            return None
        digest = previous_transaction.get("digest")
        checkpoint = ((previous_transaction.get("effects") or {}).get("checkpoint") or {}).get(
            "sequenceNumber"
        )
        if not digest or checkpoint is None:
            return None
        sender = (previous_transaction.get("sender") or {}).get("address")
        try:
            return sender, digest, int(checkpoint)
        except (TypeError, ValueError) as e:
            raise ResponseParseError(f"Bad checkpoint sequence number: {checkpoint!r}") from e

    def _fallback_provenance(self, address: str) -> Tuple[Optional[str], str, int]:
        logger.info("No previous transaction for %s, falling back to JSON-RPC", address)
        try:
            digest = self.json_rpc.get_package_creation_transaction(address)
            metadata = self.json_rpc.get_transaction_metadata(digest)
        except ArchiveError as e:
            raise ProvenanceUnavailableError(address) from e
        return metadata.sender, digest, metadata.checkpoint
