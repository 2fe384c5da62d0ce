"""
Tests for sui_archive/json_rpc.py

Covers:
  - Request shape
  - Creation transaction and transaction metadata lookups
  - Transport, parse and server error mapping
"""

from unittest.mock import MagicMock

import pytest
import requests

from sui_archive.errors import ResponseParseError, ServerError, TransportError
from sui_archive.json_rpc import JsonRpcClient, TransactionMetadata

ENDPOINT = "https://fullnode.test/"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return JsonRpcClient(endpoint=ENDPOINT, timeout=5.0, session=session)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

class TestLookups:
    def test_creation_transaction(self, client, session):
        session.post.return_value = _response({
            "jsonrpc": "2.0", "id": 1,
            "result": {"data": {"objectId": "0x2", "previousTransaction": "Dgst1"}},
        })
        assert client.get_package_creation_transaction("0x2") == "Dgst1"

        args, kwargs = session.post.call_args
        assert args[0] == ENDPOINT
        assert kwargs["timeout"] == 5.0
        assert kwargs["json"]["method"] == "sui_getObject"
        assert kwargs["json"]["params"][0] == "0x2"
        assert kwargs["json"]["params"][1]["showPreviousTransaction"] is True

    def test_transaction_metadata(self, client, session):
        session.post.return_value = _response({
            "result": {
                "digest": "Dgst1",
                "transaction": {"data": {"sender": "0xfeed"}},
                "checkpoint": "1234",
            },
        })
        assert client.get_transaction_metadata("Dgst1") == TransactionMetadata(
            transaction_digest="Dgst1", sender="0xfeed", checkpoint=1234,
        )
        assert session.post.call_args.kwargs["json"]["method"] == "sui_getTransactionBlock"

    def test_missing_digest(self, client, session):
        session.post.return_value = _response({"result": {"data": {}}})
        with pytest.raises(ServerError, match="Transaction digest not found"):
            client.get_package_creation_transaction("0x2")

    def test_missing_sender(self, client, session):
        session.post.return_value = _response({"result": {"checkpoint": "5"}})
        with pytest.raises(ServerError, match="Sender not found"):
            client.get_transaction_metadata("Dgst1")

    def test_missing_checkpoint(self, client, session):
        session.post.return_value = _response({
            "result": {"transaction": {"data": {"sender": "0xfeed"}}},
        })
        with pytest.raises(ServerError, match="Checkpoint not found"):
            client.get_transaction_metadata("Dgst1")


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

class TestErrors:
    def test_connection_error(self, client, session):
        session.post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(TransportError):
            client.call("sui_getObject", [])

    def test_http_error_status(self, client, session):
        response = _response({})
        response.raise_for_status.side_effect = requests.HTTPError("503")
        session.post.return_value = response
        with pytest.raises(TransportError):
            client.call("sui_getObject", [])

    def test_non_json_body(self, client, session):
        response = MagicMock()
        response.json.side_effect = ValueError("not json")
        session.post.return_value = response
        with pytest.raises(ResponseParseError):
            client.call("sui_getObject", [])

    def test_rpc_error_object(self, client, session):
        session.post.return_value = _response({"error": {"code": -32602, "message": "Invalid params"}})
        with pytest.raises(ServerError, match="Invalid params"):
            client.call("sui_getObject", [])

    def test_missing_result(self, client, session):
        session.post.return_value = _response({"jsonrpc": "2.0"})
        with pytest.raises(ServerError):
            client.call("sui_getObject", [])
