"""
Full-node JSON-RPC lookups.

Used as the fallback path for packages whose creating transaction is no
longer served by GraphQL (pruned history): first the package object gives
the digest of the transaction that created it, then that transaction gives
its sender and checkpoint.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from . import __version__
from .errors import ResponseParseError, ServerError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_JSON_RPC_ENDPOINT = "https://fullnode.mainnet.sui.io/"
USER_AGENT = f"sui-archive/{__version__}"


@dataclass
class TransactionMetadata:
    """Sender and checkpoint of one transaction."""
    transaction_digest: str
    sender: str
    checkpoint: int


class JsonRpcClient:
    """Minimal client for the two full-node methods the fallback needs."""

    def __init__(
        self,
        endpoint: str = DEFAULT_JSON_RPC_ENDPOINT,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        })

    def call(self, method: str, params: List[Any]) -> Dict[str, Any]:
        """
        Issue one JSON-RPC request and return its ``result`` object.

        Raises:
            TransportError: the request failed or returned an HTTP error status.
            ResponseParseError: the body is not a JSON object.
            ServerError: the response carries a JSON-RPC error.
        """
        body = {"id": 1, "jsonrpc": "2.0", "method": method, "params": params}
        try:
            response = self.session.post(self.endpoint, json=body, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise TransportError(f"{method} request failed: {e}") from e
        try:
            payload = response.json()
        except ValueError as e:
            raise ResponseParseError(f"{method} returned a non-JSON body") from e
        if not isinstance(payload, dict):
            raise ResponseParseError(f"{method} returned {type(payload).__name__}, expected an object")
        if payload.get("error"):
            error = payload["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise ServerError(f"Server-side jsonrpc error in {method}: {message}")
        result = payload.get("result")
        if not isinstance(result, dict):
            raise ServerError(f"{method} returned no result")
        return result

    def get_package_creation_transaction(self, object_id: str) -> str:
        """Digest of the transaction that created (published) an object."""
        result = self.call("sui_getObject", [
            object_id,
            {
                "showBcs": False,
                "showContent": False,
                "showDisplay": False,
                "showOwner": True,
                "showPreviousTransaction": True,
                "showType": True,
            },
        ])
        digest = (result.get("data") or {}).get("previousTransaction")
        if not isinstance(digest, str) or not digest:
            raise ServerError("Transaction digest not found", object_id)
        return digest

    def get_transaction_metadata(self, transaction_digest: str) -> TransactionMetadata:
        """Sender and checkpoint of a transaction."""
        result = self.call("sui_getTransactionBlock", [transaction_digest, {"showInput": True}])
        sender = (((result.get("transaction") or {}).get("data")) or {}).get("sender")
        if not isinstance(sender, str) or not sender:
            raise ServerError(f"Sender not found for transaction {transaction_digest}")
        checkpoint_str = result.get("checkpoint")
        if checkpoint_str is None:
            raise ServerError(f"Checkpoint not found for transaction {transaction_digest}")
        try:
            checkpoint = int(checkpoint_str)
        except (TypeError, ValueError) as e:
            raise ServerError(f"Bad checkpoint: {checkpoint_str}") from e
        return TransactionMetadata(
            transaction_digest=transaction_digest,
            sender=sender,
            checkpoint=checkpoint,
        )
