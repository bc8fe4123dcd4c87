"""JSON-RPC 2.0 client for EVM nodes.

Used as the ``provider`` handle of a ChainContext.
"""

import itertools
from typing import Any

import structlog

from tokenwatch.core.exceptions import ExternalServiceError
from tokenwatch.services.base import BaseAPIClient

log = structlog.get_logger(__name__)


class JsonRpcClient(BaseAPIClient):
    """Minimal EVM JSON-RPC client over HTTP.

    Example:
        provider = JsonRpcClient("https://mainnet.infura.io/v3/<key>")
        try:
            chain_id = await provider.chain_id()
        finally:
            await provider.close()
    """

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        rpc_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        circuit_breaker_threshold: int = 5,
        circuit_breaker_cooldown: int = 30,
    ) -> None:
        super().__init__(
            base_url=rpc_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            circuit_breaker_threshold=circuit_breaker_threshold,
            circuit_breaker_cooldown=circuit_breaker_cooldown,
            service_name="json-rpc",
        )
        self.rpc_url = rpc_url
        self._ids = itertools.count(1)

    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        """Send one JSON-RPC call and return its ``result``.

        Raises:
            ExternalServiceError: On transport failure or a JSON-RPC error object.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        response = await self.post("", json=payload)
        try:
            body = response.json()
        except ValueError as e:
            raise ExternalServiceError(
                service=self.service_name, message=f"Invalid JSON for {method}: {e}"
            ) from e

        if not isinstance(body, dict):
            raise ExternalServiceError(
                service=self.service_name,
                message=f"Unexpected response for {method}: {type(body).__name__}",
            )

        error = body.get("error")
        if error:
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            log.warning("json_rpc_error", method=method, error=message)
            raise ExternalServiceError(service=self.service_name, message=f"{method}: {message}")

        if "result" not in body:
            raise ExternalServiceError(
                service=self.service_name, message=f"{method}: response has no result"
            )
        return body["result"]

    async def chain_id(self) -> str:
        """Return the node's chain id as 0x-prefixed hex."""
        result = await self.request("eth_chainId")
        return str(result).lower()

    async def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        """Execute a read-only contract call and return the raw hex result."""
        result = await self.request("eth_call", [{"to": to, "data": data}, block])
        return str(result)
