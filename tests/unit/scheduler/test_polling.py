"""Tests for the legacy and per network client polling loops."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from tokenwatch.core.exceptions import ConfigurationError
from tokenwatch.data.network_clients import NetworkClientRegistry
from tokenwatch.models.chain import ChainContext
from tokenwatch.scheduler.polling import (
    JOB_ID_PREFIX,
    LEGACY_LOOP_ID,
    LegacyPollScheduler,
    NetworkClientPollScheduler,
)


@pytest.fixture
def mock_cycle() -> MagicMock:
    mock = MagicMock()
    mock.run = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def registry() -> NetworkClientRegistry:
    registry = NetworkClientRegistry()
    registry.register("mainnet", "0x1")
    registry.register("polygon", "0x89")
    registry.register("bsc", "0x38")
    return registry


@pytest.fixture
def polygon_context() -> ChainContext:
    return ChainContext(chain_id="0x89", network_client_id="polygon")


class TestBasePollScheduler:
    """Behaviour shared by both schedulers."""

    def test_interval_must_be_positive(self, mock_cycle: MagicMock) -> None:
        with pytest.raises(ValueError):
            LegacyPollScheduler(mock_cycle, interval_ms=0)

    async def test_job_uses_interval(
        self,
        mock_cycle: MagicMock,
        mainnet_context: ChainContext,
        scheduler: AsyncIOScheduler,
    ) -> None:
        legacy = LegacyPollScheduler(mock_cycle, interval_ms=180_000, scheduler=scheduler)

        loop = legacy.start(mainnet_context)

        assert loop.job is not None
        assert loop.job.trigger.interval == timedelta(seconds=180)
        assert loop.job_id == f"{JOB_ID_PREFIX}:legacy:{LEGACY_LOOP_ID}"

    async def test_set_interval_rearms_loops(
        self,
        mock_cycle: MagicMock,
        registry: NetworkClientRegistry,
        scheduler: AsyncIOScheduler,
    ) -> None:
        per_client = NetworkClientPollScheduler(
            mock_cycle, registry, interval_ms=1000, scheduler=scheduler
        )
        per_client.start_polling_by_network_client_id("mainnet")
        per_client.start_polling_by_network_client_id("polygon")

        per_client.set_interval(5000)

        assert per_client.interval_ms == 5000
        assert sorted(per_client.polling_keys()) == ["mainnet", "polygon"]
        for loop_id in ("mainnet", "polygon"):
            loop = per_client.get_loop(loop_id)
            assert loop.interval_ms == 5000
            assert loop.job.trigger.interval == timedelta(seconds=5)
        assert len(scheduler.get_jobs()) == 2

    async def test_set_interval_rejects_zero(
        self, mock_cycle: MagicMock, scheduler: AsyncIOScheduler
    ) -> None:
        legacy = LegacyPollScheduler(mock_cycle, scheduler=scheduler)
        with pytest.raises(ValueError):
            legacy.set_interval(0)

    async def test_tick_failure_is_logged(
        self,
        mock_cycle: MagicMock,
        mainnet_context: ChainContext,
        scheduler: AsyncIOScheduler,
    ) -> None:
        """A failing cycle never propagates out of the timer callback."""
        mock_cycle.run.side_effect = RuntimeError("boom")
        legacy = LegacyPollScheduler(mock_cycle, scheduler=scheduler)
        legacy.start(mainnet_context)

        await legacy._tick(LEGACY_LOOP_ID)

        mock_cycle.run.assert_awaited_once_with(mainnet_context)
        assert legacy.is_running

    async def test_tick_for_stopped_loop_is_noop(
        self,
        mock_cycle: MagicMock,
        mainnet_context: ChainContext,
        scheduler: AsyncIOScheduler,
    ) -> None:
        legacy = LegacyPollScheduler(mock_cycle, scheduler=scheduler)
        legacy.start(mainnet_context)
        legacy.stop()

        await legacy._tick(LEGACY_LOOP_ID)

        mock_cycle.run.assert_not_called()


class TestLegacyPollScheduler:
    """Tests for the loop following the active network."""

    async def test_start_requires_context(
        self, mock_cycle: MagicMock, scheduler: AsyncIOScheduler
    ) -> None:
        legacy = LegacyPollScheduler(mock_cycle, scheduler=scheduler)
        with pytest.raises(ConfigurationError):
            legacy.start()

    async def test_first_tick_after_one_interval(
        self,
        mock_cycle: MagicMock,
        mainnet_context: ChainContext,
        running_scheduler: AsyncIOScheduler,
    ) -> None:
        """
        Given: A legacy loop started on a running scheduler
        When: Less than one interval has elapsed
        Then: No cycle has run and the next run is one interval away
        """
        legacy = LegacyPollScheduler(
            mock_cycle, interval_ms=180_000, scheduler=running_scheduler
        )

        loop = legacy.start(mainnet_context)
        await asyncio.sleep(0.05)

        mock_cycle.run.assert_not_called()
        delay = loop.job.next_run_time - loop.started_at
        assert timedelta(seconds=179) < delay <= timedelta(seconds=181)

    async def test_start_twice_reuses_loop(
        self,
        mock_cycle: MagicMock,
        mainnet_context: ChainContext,
        polygon_context: ChainContext,
        scheduler: AsyncIOScheduler,
    ) -> None:
        legacy = LegacyPollScheduler(mock_cycle, scheduler=scheduler)
        first = legacy.start(mainnet_context)

        second = legacy.start(polygon_context)

        assert second is first
        assert second.context == polygon_context
        assert len(scheduler.get_jobs()) == 1

    async def test_retarget_keeps_timer(
        self,
        mock_cycle: MagicMock,
        mainnet_context: ChainContext,
        polygon_context: ChainContext,
        scheduler: AsyncIOScheduler,
    ) -> None:
        """
        Given: A running legacy loop on mainnet
        When: The active network switches to polygon
        Then: The same job stays armed and the next tick runs on polygon
        """
        legacy = LegacyPollScheduler(mock_cycle, scheduler=scheduler)
        loop = legacy.start(mainnet_context)
        job = loop.job

        legacy.retarget(polygon_context)
        await legacy._tick(LEGACY_LOOP_ID)

        assert legacy.get_loop(LEGACY_LOOP_ID).job is job
        assert legacy.context == polygon_context
        mock_cycle.run.assert_awaited_once_with(polygon_context)

    async def test_retarget_before_start(
        self,
        mock_cycle: MagicMock,
        polygon_context: ChainContext,
        scheduler: AsyncIOScheduler,
    ) -> None:
        legacy = LegacyPollScheduler(mock_cycle, scheduler=scheduler)

        legacy.retarget(polygon_context)
        loop = legacy.start()

        assert loop.context == polygon_context

    async def test_stop_removes_job(
        self,
        mock_cycle: MagicMock,
        mainnet_context: ChainContext,
        scheduler: AsyncIOScheduler,
    ) -> None:
        legacy = LegacyPollScheduler(mock_cycle, scheduler=scheduler)
        legacy.start(mainnet_context)

        legacy.stop()

        assert not legacy.is_running
        assert scheduler.get_jobs() == []


class TestNetworkClientPollScheduler:
    """Tests for per network client loops."""

    async def test_start_fires_immediately(
        self,
        mock_cycle: MagicMock,
        registry: NetworkClientRegistry,
        running_scheduler: AsyncIOScheduler,
    ) -> None:
        """
        Given: A running scheduler and an interval far in the future
        When: Polling starts for "mainnet"
        Then: One cycle runs right away with chain id 0x1
        """
        per_client = NetworkClientPollScheduler(
            mock_cycle, registry, interval_ms=180_000, scheduler=running_scheduler
        )

        per_client.start_polling_by_network_client_id("mainnet")
        for _ in range(50):
            if mock_cycle.run.await_count:
                break
            await asyncio.sleep(0.02)

        mock_cycle.run.assert_awaited_once()
        (context,) = mock_cycle.run.await_args.args
        assert context.chain_id == "0x1"
        assert context.network_client_id == "mainnet"

    @pytest.mark.slow
    async def test_repeats_every_interval(
        self,
        mock_cycle: MagicMock,
        registry: NetworkClientRegistry,
        running_scheduler: AsyncIOScheduler,
    ) -> None:
        per_client = NetworkClientPollScheduler(
            mock_cycle, registry, interval_ms=200, scheduler=running_scheduler
        )

        per_client.start_polling_by_network_client_id("mainnet")
        await asyncio.sleep(0.75)
        per_client.stop_all_polling()

        # Immediate tick plus roughly three interval ticks
        assert 2 <= mock_cycle.run.await_count <= 5
        for call in mock_cycle.run.await_args_list:
            assert call.args[0].chain_id == "0x1"

    async def test_next_run_is_immediate(
        self,
        mock_cycle: MagicMock,
        registry: NetworkClientRegistry,
        scheduler: AsyncIOScheduler,
    ) -> None:
        per_client = NetworkClientPollScheduler(
            mock_cycle, registry, interval_ms=180_000, scheduler=scheduler
        )

        loop = per_client.start_polling_by_network_client_id("polygon")

        assert loop.job.next_run_time <= loop.started_at + timedelta(seconds=1)
        assert loop.context.chain_id == "0x89"

    async def test_start_twice_reuses_loop(
        self,
        mock_cycle: MagicMock,
        registry: NetworkClientRegistry,
        scheduler: AsyncIOScheduler,
    ) -> None:
        per_client = NetworkClientPollScheduler(mock_cycle, registry, scheduler=scheduler)

        first = per_client.start_polling_by_network_client_id("mainnet")
        second = per_client.start_polling_by_network_client_id("mainnet")

        assert first is second
        assert len(scheduler.get_jobs()) == 1

    async def test_unknown_network_client_raises(
        self,
        mock_cycle: MagicMock,
        registry: NetworkClientRegistry,
        scheduler: AsyncIOScheduler,
    ) -> None:
        per_client = NetworkClientPollScheduler(mock_cycle, registry, scheduler=scheduler)

        with pytest.raises(ConfigurationError):
            per_client.start_polling_by_network_client_id("goerli")

        assert per_client.polling_keys() == []

    async def test_stop_leaves_other_loops(
        self,
        mock_cycle: MagicMock,
        registry: NetworkClientRegistry,
        scheduler: AsyncIOScheduler,
    ) -> None:
        per_client = NetworkClientPollScheduler(mock_cycle, registry, scheduler=scheduler)
        per_client.start_polling_by_network_client_id("mainnet")
        per_client.start_polling_by_network_client_id("polygon")

        stopped = per_client.stop_polling_by_network_client_id("mainnet")

        assert stopped is True
        assert per_client.polling_keys() == ["polygon"]
        assert [job.id for job in scheduler.get_jobs()] == [
            f"{JOB_ID_PREFIX}:network_client:polygon"
        ]

    async def test_stop_unknown_returns_false(
        self,
        mock_cycle: MagicMock,
        registry: NetworkClientRegistry,
        scheduler: AsyncIOScheduler,
    ) -> None:
        per_client = NetworkClientPollScheduler(mock_cycle, registry, scheduler=scheduler)
        assert per_client.stop_polling_by_network_client_id("mainnet") is False

    async def test_loop_context_is_not_re_resolved(
        self,
        mock_cycle: MagicMock,
        registry: NetworkClientRegistry,
        scheduler: AsyncIOScheduler,
    ) -> None:
        """A loop keeps the context resolved when it started."""
        per_client = NetworkClientPollScheduler(mock_cycle, registry, scheduler=scheduler)
        loop = per_client.start_polling_by_network_client_id("mainnet")
        original = loop.context

        registry.register("mainnet", "0x38")
        await per_client._tick("mainnet")

        mock_cycle.run.assert_awaited_once_with(original)

    async def test_stop_all_polling(
        self,
        mock_cycle: MagicMock,
        registry: NetworkClientRegistry,
        scheduler: AsyncIOScheduler,
    ) -> None:
        per_client = NetworkClientPollScheduler(mock_cycle, registry, scheduler=scheduler)
        for network_client_id in ("mainnet", "polygon", "bsc"):
            per_client.start_polling_by_network_client_id(network_client_id)

        per_client.stop_all_polling()

        assert per_client.polling_keys() == []
        assert scheduler.get_jobs() == []

    async def test_legacy_and_network_client_jobs_coexist(
        self,
        mock_cycle: MagicMock,
        registry: NetworkClientRegistry,
        mainnet_context: ChainContext,
        scheduler: AsyncIOScheduler,
    ) -> None:
        """A per client loop for "legacy" never replaces the legacy loop's job."""
        registry.register(LEGACY_LOOP_ID, "0x1")
        legacy = LegacyPollScheduler(mock_cycle, scheduler=scheduler)
        per_client = NetworkClientPollScheduler(mock_cycle, registry, scheduler=scheduler)

        legacy.start(mainnet_context)
        per_client.start_polling_by_network_client_id(LEGACY_LOOP_ID)

        assert len(scheduler.get_jobs()) == 2
