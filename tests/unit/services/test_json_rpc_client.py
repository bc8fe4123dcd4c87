"""Tests for JsonRpcClient."""

import json

import httpx
import pytest
import respx

from tokenwatch.core.exceptions import ExternalServiceError
from tokenwatch.services.rpc.client import JsonRpcClient

RPC_URL = "https://rpc.example.com"


@pytest.fixture
async def client():
    client = JsonRpcClient(RPC_URL)
    yield client
    await client.close()


class TestJsonRpcClient:
    """Tests for JSON-RPC request handling."""

    @respx.mock
    async def test_request_payload(self, client: JsonRpcClient) -> None:
        route = respx.post(host="rpc.example.com").mock(
            return_value=httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x1"})
        )

        result = await client.chain_id()

        assert result == "0x1"
        body = json.loads(route.calls.last.request.content)
        assert body["method"] == "eth_chainId"
        assert body["params"] == []
        assert body["jsonrpc"] == "2.0"

    @respx.mock
    async def test_request_ids_increase(self, client: JsonRpcClient) -> None:
        route = respx.post(host="rpc.example.com").mock(
            return_value=httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x1"})
        )

        await client.request("eth_blockNumber")
        await client.request("eth_blockNumber")

        ids = [json.loads(call.request.content)["id"] for call in route.calls]
        assert ids == [1, 2]

    @respx.mock
    async def test_eth_call_params(self, client: JsonRpcClient) -> None:
        route = respx.post(host="rpc.example.com").mock(
            return_value=httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0xabcd"})
        )

        result = await client.eth_call("0x" + "11" * 20, "0xf0002ea9")

        assert result == "0xabcd"
        body = json.loads(route.calls.last.request.content)
        assert body["method"] == "eth_call"
        assert body["params"] == [{"to": "0x" + "11" * 20, "data": "0xf0002ea9"}, "latest"]

    @respx.mock
    async def test_error_object_raises(self, client: JsonRpcClient) -> None:
        respx.post(host="rpc.example.com").mock(
            return_value=httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "reverted"}},
            )
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.request("eth_call", [])

        assert "reverted" in str(exc_info.value)

    @respx.mock
    async def test_missing_result_raises(self, client: JsonRpcClient) -> None:
        respx.post(host="rpc.example.com").mock(
            return_value=httpx.Response(200, json={"jsonrpc": "2.0", "id": 1})
        )

        with pytest.raises(ExternalServiceError):
            await client.request("eth_chainId")

    @respx.mock
    async def test_invalid_json_raises(self, client: JsonRpcClient) -> None:
        respx.post(host="rpc.example.com").mock(
            return_value=httpx.Response(200, content=b"<html>")
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.request("eth_chainId")

        assert "Invalid JSON" in str(exc_info.value)
