"""Registry of configured network clients, the bundled NetworkClientResolver."""

import structlog

from tokenwatch.constants.chains import normalize_chain_id
from tokenwatch.core.exceptions import ConfigurationError
from tokenwatch.models.chain import ChainContext
from tokenwatch.services.rpc.client import JsonRpcClient

log = structlog.get_logger(__name__)


class NetworkClientRegistry:
    """Maps network client ids to the ChainContext used to poll them.

    Example:
        registry = NetworkClientRegistry()
        registry.register("mainnet", "0x1", rpc_url="https://mainnet.infura.io/v3/<key>")
        context = registry.resolve("mainnet")
    """

    def __init__(self) -> None:
        self._contexts: dict[str, ChainContext] = {}

    def register(
        self,
        network_client_id: str,
        chain_id: str | int,
        rpc_url: str | None = None,
        provider: object | None = None,
        block_tracker: object | None = None,
    ) -> ChainContext:
        """Add or replace a network client.

        A JsonRpcClient is created for ``rpc_url`` when no provider is given.
        """
        if provider is None and rpc_url is not None:
            provider = JsonRpcClient(rpc_url)

        context = ChainContext(
            chain_id=normalize_chain_id(chain_id),
            network_client_id=network_client_id,
            provider=provider,
            block_tracker=block_tracker,
        )
        self._contexts[network_client_id] = context
        log.info(
            "network_client_registered",
            network_client_id=network_client_id,
            chain_id=context.chain_id,
        )
        return context

    def resolve(self, network_client_id: str) -> ChainContext:
        """Return the context of ``network_client_id``.

        Raises:
            ConfigurationError: If the id is not registered.
        """
        context = self._contexts.get(network_client_id)
        if context is None:
            raise ConfigurationError(f"Unknown network client: {network_client_id}")
        return context

    def network_client_ids(self) -> list[str]:
        return list(self._contexts)

    async def remove(self, network_client_id: str) -> None:
        """Forget a network client and close its provider."""
        context = self._contexts.pop(network_client_id, None)
        if context is not None and isinstance(context.provider, JsonRpcClient):
            await context.provider.close()

    async def close(self) -> None:
        """Close every provider created by this registry."""
        for network_client_id in list(self._contexts):
            await self.remove(network_client_id)
