"""Tests for the Sui JSON-RPC ledger client.

All HTTP goes through httpx.MockTransport; nothing touches the network.
"""

import base64
import json

import httpx
import pytest

from app.core import config
from app.kyc.exceptions import EvaluationError, TransportError
from app.kyc.ledger.client import SuiLedgerClient
from tests.ledger_fakes import ATTESTATION_TYPE, ISSUER, STATUS_TYPE, SUBJECT, make_record, object_id

REGISTRY_TYPE = config.qualified_name(config.ISSUER_REGISTRY_STRUCT_NAME)


class RpcRecorder:
    """MockTransport handler answering JSON-RPC methods from a script.

    Each method maps to a list of replies consumed in order; a reply is a
    result value, or an httpx.Response to send as-is.
    """

    def __init__(self, **replies):
        self.replies = {method: list(values) for method, values in replies.items()}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        reply = self.replies[body["method"]].pop(0)
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": reply})

    def methods(self):
        return [r["method"] for r in self.requests]


def client_for(recorder) -> SuiLedgerClient:
    return SuiLedgerClient(
        rpc_url="http://fullnode.test",
        transport=httpx.MockTransport(recorder),
        page_limit=2,
    )


def inspect_result(value_bytes, type_name=STATUS_TYPE, status="success", error=None):
    effects_status = {"status": status}
    if error:
        effects_status["error"] = error
    return {
        "effects": {"status": effects_status},
        "results": [{"returnValues": [[value_bytes, type_name]]}],
    }


# =============================================================================
# Enumeration
# =============================================================================


class TestListCredentialRecords:

    @pytest.mark.asyncio
    async def test_follows_pagination(self):
        recorder = RpcRecorder(suix_getOwnedObjects=[
            {"data": [make_record(object_id(1)), make_record(object_id(2))],
             "hasNextPage": True, "nextCursor": "cursor-1"},
            {"data": [make_record(object_id(3))], "hasNextPage": False, "nextCursor": None},
        ])
        records = await client_for(recorder).list_credential_records(SUBJECT, ATTESTATION_TYPE)

        assert [r["data"]["objectId"] for r in records] == [object_id(n) for n in (1, 2, 3)]
        first, second = recorder.requests
        assert first["params"][0] == SUBJECT
        assert first["params"][1]["filter"] == {"StructType": ATTESTATION_TYPE}
        assert first["params"][2] is None
        assert second["params"][2] == "cursor-1"
        assert second["params"][3] == 2

    @pytest.mark.asyncio
    async def test_empty(self):
        recorder = RpcRecorder(suix_getOwnedObjects=[{"data": [], "hasNextPage": False}])
        assert await client_for(recorder).list_credential_records(SUBJECT, ATTESTATION_TYPE) == []

    @pytest.mark.asyncio
    async def test_repeated_cursor_stops(self):
        """A fullnode echoing the same cursor does not loop forever."""
        page = {"data": [make_record(object_id(1))], "hasNextPage": True, "nextCursor": "c"}
        recorder = RpcRecorder(suix_getOwnedObjects=[page, page])
        records = await client_for(recorder).list_credential_records(SUBJECT, ATTESTATION_TYPE)

        assert len(records) == 2
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_malformed_page(self):
        recorder = RpcRecorder(suix_getOwnedObjects=[{"data": "nope"}])
        with pytest.raises(TransportError, match="Malformed"):
            await client_for(recorder).list_credential_records(SUBJECT, ATTESTATION_TYPE)


# =============================================================================
# JSON-RPC envelope
# =============================================================================


class TestRpcEnvelope:
    """Every transport-level problem surfaces as TransportError."""

    @pytest.mark.asyncio
    async def test_rpc_error_member(self):
        recorder = RpcRecorder(suix_getOwnedObjects=[
            httpx.Response(200, json={"jsonrpc": "2.0", "id": 1,
                                      "error": {"code": -32602, "message": "Invalid params"}}),
        ])
        with pytest.raises(TransportError, match="Invalid params"):
            await client_for(recorder).list_credential_records(SUBJECT, ATTESTATION_TYPE)

    @pytest.mark.asyncio
    async def test_http_status(self):
        recorder = RpcRecorder(suix_getOwnedObjects=[httpx.Response(503, text="busy")])
        with pytest.raises(TransportError, match="503"):
            await client_for(recorder).list_credential_records(SUBJECT, ATTESTATION_TYPE)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        recorder = RpcRecorder(suix_getOwnedObjects=[httpx.Response(200, text="<html>")])
        with pytest.raises(TransportError, match="invalid JSON"):
            await client_for(recorder).list_credential_records(SUBJECT, ATTESTATION_TYPE)

    @pytest.mark.asyncio
    async def test_missing_result(self):
        recorder = RpcRecorder(suix_getOwnedObjects=[httpx.Response(200, json={"jsonrpc": "2.0", "id": 1})])
        with pytest.raises(TransportError, match="no result"):
            await client_for(recorder).list_credential_records(SUBJECT, ATTESTATION_TYPE)

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = SuiLedgerClient(rpc_url="http://fullnode.test", transport=httpx.MockTransport(refuse))
        with pytest.raises(TransportError, match="ConnectError"):
            await client.list_credential_records(SUBJECT, ATTESTATION_TYPE)

    @pytest.mark.asyncio
    async def test_request_ids_increase(self):
        recorder = RpcRecorder(suix_getOwnedObjects=[{"data": [], "hasNextPage": False}] * 2)
        client = client_for(recorder)
        await client.list_credential_records(SUBJECT, ATTESTATION_TYPE)
        await client.list_credential_records(SUBJECT, ATTESTATION_TYPE)

        assert [r["id"] for r in recorder.requests] == [1, 2]
        assert all(r["jsonrpc"] == "2.0" for r in recorder.requests)


# =============================================================================
# Effective status evaluation
# =============================================================================


class TestEvaluateEffectiveStatus:

    @pytest.mark.asyncio
    async def test_returns_value_and_type(self):
        recorder = RpcRecorder(sui_devInspectTransactionBlock=[inspect_result([1])])
        value, type_name = await client_for(recorder).evaluate_effective_status(
            object_id(1), version=7, digest="1" * 32
        )

        assert value == [1]
        assert type_name == STATUS_TYPE
        params = recorder.requests[0]["params"]
        assert params[0] == config.ZERO_ADDRESS
        assert base64.b64decode(params[1])[0] == 0  # ProgrammableTransaction

    @pytest.mark.asyncio
    async def test_looks_up_object_ref(self):
        recorder = RpcRecorder(
            sui_getObject=[{"data": {"objectId": object_id(1), "version": "12", "digest": "1" * 32}}],
            sui_devInspectTransactionBlock=[inspect_result([0])],
        )
        await client_for(recorder).evaluate_effective_status(object_id(1))

        assert recorder.methods() == ["sui_getObject", "sui_devInspectTransactionBlock"]

    @pytest.mark.asyncio
    async def test_missing_object(self):
        recorder = RpcRecorder(sui_getObject=[{"error": {"code": "notExists"}}])
        with pytest.raises(EvaluationError, match="not found"):
            await client_for(recorder).evaluate_effective_status(object_id(1))

    @pytest.mark.asyncio
    async def test_execution_failure(self):
        recorder = RpcRecorder(sui_devInspectTransactionBlock=[
            inspect_result([], status="failure", error="MoveAbort(..., 3)"),
        ])
        with pytest.raises(EvaluationError, match="MoveAbort"):
            await client_for(recorder).evaluate_effective_status(object_id(1), 7, "1" * 32)

    @pytest.mark.asyncio
    async def test_no_return_values(self):
        result = inspect_result([0])
        result["results"] = []
        recorder = RpcRecorder(sui_devInspectTransactionBlock=[result])
        with pytest.raises(EvaluationError, match="return value"):
            await client_for(recorder).evaluate_effective_status(object_id(1), 7, "1" * 32)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "return_value",
        [[5, STATUS_TYPE], [[0], 7], [["x"], STATUS_TYPE], [[256], STATUS_TYPE], [None, STATUS_TYPE]],
    )
    async def test_malformed_return_value(self, return_value):
        """Return values that are not (bytes, type name) are transport errors."""
        result = inspect_result([0])
        result["results"][0]["returnValues"] = [return_value]
        recorder = RpcRecorder(sui_devInspectTransactionBlock=[result])
        with pytest.raises(TransportError, match="Malformed"):
            await client_for(recorder).evaluate_effective_status(object_id(1), 7, "1" * 32)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("effects", [None, "success", {"status": "success"}, []])
    async def test_malformed_effects(self, effects):
        result = inspect_result([0])
        result["effects"] = effects
        recorder = RpcRecorder(sui_devInspectTransactionBlock=[result])
        with pytest.raises(TransportError, match="Malformed"):
            await client_for(recorder).evaluate_effective_status(object_id(1), 7, "1" * 32)

    @pytest.mark.asyncio
    async def test_unbuildable_query(self):
        """A digest that is not 32 bytes never reaches the fullnode."""
        recorder = RpcRecorder()
        with pytest.raises(EvaluationError, match="Cannot build"):
            await client_for(recorder).evaluate_effective_status(object_id(1), 7, "abc")
        assert recorder.requests == []


# =============================================================================
# Issuer registry
# =============================================================================


def registry_object(fields, type_name=REGISTRY_TYPE):
    return {"data": {"content": {"dataType": "moveObject", "type": type_name, "fields": fields}}}


class TestFetchIssuerRegistry:

    @pytest.mark.asyncio
    async def test_plain_vector(self):
        recorder = RpcRecorder(sui_getObject=[registry_object({"issuers": [ISSUER, "0x6"]})])
        issuers = await client_for(recorder).fetch_issuer_registry()

        assert issuers == frozenset({ISSUER, "0x" + "0" * 63 + "6"})
        assert recorder.requests[0]["params"][0] == config.ISSUER_REGISTRY_ID

    @pytest.mark.asyncio
    async def test_vec_set(self):
        vec_set = {"type": "0x2::vec_set::VecSet<address>", "fields": {"contents": [ISSUER.upper().replace("0X", "0x")]}}
        recorder = RpcRecorder(sui_getObject=[registry_object({"authorized_issuers": vec_set})])

        assert await client_for(recorder).fetch_issuer_registry() == frozenset({ISSUER})

    @pytest.mark.asyncio
    async def test_wrong_type(self):
        recorder = RpcRecorder(sui_getObject=[registry_object({"issuers": []}, type_name="0x2::coin::Coin")])
        with pytest.raises(TransportError, match="unexpected type"):
            await client_for(recorder).fetch_issuer_registry()

    @pytest.mark.asyncio
    async def test_missing_object(self):
        recorder = RpcRecorder(sui_getObject=[{"error": {"code": "notExists"}}])
        with pytest.raises(TransportError, match="not found"):
            await client_for(recorder).fetch_issuer_registry()

    @pytest.mark.asyncio
    async def test_no_issuer_field(self):
        recorder = RpcRecorder(sui_getObject=[registry_object({"admin": ISSUER})])
        with pytest.raises(TransportError, match="no readable issuer list"):
            await client_for(recorder).fetch_issuer_registry()
