"""tokenwatch - standalone runner.

Watches one account on one network until interrupted:

    RPC_URL=https://mainnet.infura.io/v3/<key> \
    WATCH_ADDRESS=0x... \
    tokenwatch
"""

import asyncio
import contextlib

import structlog

from tokenwatch.config import get_settings
from tokenwatch.config.logging import configure_logging
from tokenwatch.core.exceptions import ConfigurationError
from tokenwatch.data.network_clients import NetworkClientRegistry
from tokenwatch.data.token_store import InMemoryTokenStore
from tokenwatch.detection.service import TokenDetectionService
from tokenwatch.events import (
    EventBus,
    SelectedAddressChanged,
    TrackedTokensChanged,
    VisibilityChanged,
    WalletUnlocked,
)
from tokenwatch.scheduler.scheduler import shutdown_scheduler
from tokenwatch.services.rpc.balance_checker import BalanceChecker
from tokenwatch.services.token_api.client import TokenApiClient

log = structlog.get_logger()


async def run() -> None:
    """Start detection for the configured account and run until cancelled."""
    settings = get_settings()
    if not settings.rpc_url:
        raise ConfigurationError("Missing required env var: RPC_URL")
    if not settings.watch_address:
        raise ConfigurationError("Missing required env var: WATCH_ADDRESS")

    bus = EventBus()
    registry = NetworkClientRegistry()
    store = InMemoryTokenStore(bus=bus)
    service = TokenDetectionService(
        candidate_source=TokenApiClient(
            base_url=settings.token_api_url,
            timeout=settings.http_timeout_seconds,
        ),
        token_store=store,
        balance_fetcher=BalanceChecker(),
        network_clients=registry,
        bus=bus,
        settings=settings,
    )

    registry.register(settings.network_client_id, settings.chain_id, rpc_url=settings.rpc_url)

    def report(event: TrackedTokensChanged) -> None:
        for token in store.detected_tokens(event.chain_id):
            log.info(
                "token_held",
                chain_id=event.chain_id,
                symbol=token.symbol,
                address=token.address,
                balance=str(token.balance),
            )

    bus.subscribe(TrackedTokensChanged, report)

    await service.start(active_network_client_id=settings.network_client_id)
    bus.publish(VisibilityChanged(is_open=True))
    bus.publish(SelectedAddressChanged(address=settings.watch_address))
    bus.publish(WalletUnlocked())

    try:
        await asyncio.Event().wait()
    finally:
        await service.close()
        await shutdown_scheduler()


def main() -> None:
    """Console entry point."""
    configure_logging()
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run())


if __name__ == "__main__":
    main()
