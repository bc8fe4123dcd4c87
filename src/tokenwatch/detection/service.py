"""Token detection service: wires gate, cycle, schedulers and events.

Usage:
    bus = EventBus()
    service = TokenDetectionService.with_default_adapters(bus=bus)
    service.network_clients.register("mainnet", "0x1", rpc_url=MAINNET_RPC_URL)

    await service.start(active_network_client_id="mainnet")
    bus.publish(VisibilityChanged(is_open=True))
    bus.publish(SelectedAddressChanged(address=account))
    bus.publish(WalletUnlocked())
    ...
    await service.stop()
"""

from __future__ import annotations

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from tokenwatch.config.settings import Settings, get_settings
from tokenwatch.detection.binder import EventBinder
from tokenwatch.detection.cycle import DetectionCycle
from tokenwatch.detection.gate import ActivationGate
from tokenwatch.detection.merger import ResultMerger
from tokenwatch.detection.protocols import (
    BalanceFetcher,
    CandidateSource,
    NetworkClientResolver,
    TokenStore,
)
from tokenwatch.events.bus import EventBus
from tokenwatch.models.chain import ActivationState
from tokenwatch.models.detection import CycleResult
from tokenwatch.scheduler.polling import (
    LegacyPollScheduler,
    NetworkClientPollScheduler,
    PollingLoop,
)
from tokenwatch.scheduler.scheduler import get_scheduler

log = structlog.get_logger(__name__)


class TokenDetectionService:
    """Entry point of the detection engine.

    Attributes:
        state: Activation state shared by the gate and the event binder.
        gate: Activation gate.
        cycle: Detection cycle shared by every trigger.
        legacy_scheduler: Loop following the active network (None when disabled).
        network_client_scheduler: Per network client loops.
        binder: Event subscriptions.
    """

    def __init__(
        self,
        candidate_source: CandidateSource,
        token_store: TokenStore,
        balance_fetcher: BalanceFetcher,
        network_clients: NetworkClientResolver,
        bus: EventBus | None = None,
        settings: Settings | None = None,
        scheduler: AsyncIOScheduler | None = None,
        state: ActivationState | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.bus = bus or EventBus()
        self.network_clients = network_clients
        self.candidate_source = candidate_source
        self.token_store = token_store
        self.balance_fetcher = balance_fetcher
        self._scheduler = scheduler

        self.state = state or ActivationState()
        self.gate = ActivationGate(self.state, self.settings.supported_chains)
        self.cycle = DetectionCycle(
            gate=self.gate,
            candidate_source=candidate_source,
            token_store=token_store,
            balance_fetcher=balance_fetcher,
            merger=ResultMerger(),
            max_batch_width=self.settings.max_batch_width,
        )

        interval_ms = self.settings.detection_interval_ms
        self.legacy_scheduler: LegacyPollScheduler | None = None
        if self.settings.legacy_polling_enabled:
            self.legacy_scheduler = LegacyPollScheduler(
                self.cycle, interval_ms=interval_ms, scheduler=scheduler
            )
        self.network_client_scheduler = NetworkClientPollScheduler(
            self.cycle, network_clients, interval_ms=interval_ms, scheduler=scheduler
        )
        self.binder = EventBinder(
            bus=self.bus,
            state=self.state,
            cycle=self.cycle,
            legacy_scheduler=self.legacy_scheduler,
        )
        self._started = False

    @classmethod
    def with_default_adapters(
        cls,
        bus: EventBus | None = None,
        settings: Settings | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ) -> TokenDetectionService:
        """Build a service on the bundled HTTP/JSON-RPC/in-memory adapters."""
        from tokenwatch.data.network_clients import NetworkClientRegistry  # noqa: PLC0415
        from tokenwatch.data.token_store import InMemoryTokenStore  # noqa: PLC0415
        from tokenwatch.services.rpc.balance_checker import BalanceChecker  # noqa: PLC0415
        from tokenwatch.services.token_api.client import TokenApiClient  # noqa: PLC0415

        settings = settings or get_settings()
        bus = bus or EventBus()
        return cls(
            candidate_source=TokenApiClient(
                base_url=settings.token_api_url,
                timeout=settings.http_timeout_seconds,
                circuit_breaker_threshold=settings.circuit_breaker_threshold,
                circuit_breaker_cooldown=settings.circuit_breaker_cooldown,
            ),
            token_store=InMemoryTokenStore(bus=bus),
            balance_fetcher=BalanceChecker(),
            network_clients=NetworkClientRegistry(),
            bus=bus,
            settings=settings,
            scheduler=scheduler,
        )

    @property
    def scheduler(self) -> AsyncIOScheduler:
        if self._scheduler is None:
            self._scheduler = get_scheduler()
        return self._scheduler

    @property
    def is_active(self) -> bool:
        """UI open and wallet unlocked."""
        return self.gate.is_active

    @property
    def is_running(self) -> bool:
        return self._started

    async def start(self, active_network_client_id: str | None = None) -> None:
        """Bind events and arm the legacy loop.

        Args:
            active_network_client_id: Network the wallet currently uses.
                Becomes the target of event-triggered runs and of the
                legacy loop.

        Raises:
            ConfigurationError: If the network client id is unknown.
        """
        if self._started:
            log.warning("token_detection_already_running")
            return

        if active_network_client_id is not None:
            self.binder.current_context = self.network_clients.resolve(active_network_client_id)

        self.binder.bind()
        if self.legacy_scheduler is not None and self.binder.current_context is not None:
            self.legacy_scheduler.start(self.binder.current_context)

        if not self.scheduler.running:
            self.scheduler.start()

        self._started = True
        log.info(
            "token_detection_started",
            legacy_polling=self.legacy_scheduler is not None,
            interval_ms=self.settings.detection_interval_ms,
            chain_id=(
                self.binder.current_context.chain_id if self.binder.current_context else None
            ),
        )

    async def stop(self) -> None:
        """Stop every loop and unbind events.

        In-flight cycles are not cancelled.
        """
        if self.legacy_scheduler is not None:
            self.legacy_scheduler.stop()
        self.network_client_scheduler.stop_all_polling()
        self.binder.unbind()
        self._started = False
        log.info("token_detection_stopped")

    async def close(self) -> None:
        """Stop, then release adapter resources that need closing."""
        await self.stop()
        for resource in (self.candidate_source, self.network_clients):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()

    def start_polling_by_network_client_id(self, network_client_id: str) -> PollingLoop:
        return self.network_client_scheduler.start_polling_by_network_client_id(
            network_client_id
        )

    def stop_polling_by_network_client_id(self, network_client_id: str) -> bool:
        return self.network_client_scheduler.stop_polling_by_network_client_id(network_client_id)

    async def detect_new_tokens(self, network_client_id: str | None = None) -> CycleResult | None:
        """Run one cycle now.

        Args:
            network_client_id: Network to scan; defaults to the active one.

        Returns:
            The cycle result, or None when no network is known.

        Raises:
            AddTokensError: If the token store rejects the detected tokens.
        """
        if network_client_id is not None:
            context = self.network_clients.resolve(network_client_id)
        else:
            context = self.binder.current_context
        if context is None:
            log.debug("detect_new_tokens_no_context")
            return None
        return await self.cycle.run(context)
