"""Polling loops that drive detection cycles.

Two schedulers share one DetectionCycle:

- LegacyPollScheduler: a single loop following the active network.
  The first tick fires one full interval after start; retargeting to a
  new network keeps the timer's phase.
- NetworkClientPollScheduler: one loop per network client id. Each loop
  fires immediately on start and then every interval, always against the
  context resolved when the loop started.

Each loop's timer is an APScheduler interval job. Stopping a loop removes
its job, which only prevents future ticks; a cycle already running is
left to finish.

Example:
    legacy = LegacyPollScheduler(cycle, interval_ms=180_000)
    legacy.start(mainnet_context)

    per_client = NetworkClientPollScheduler(cycle, resolver, interval_ms=1000)
    per_client.start_polling_by_network_client_id("mainnet")
    per_client.stop_polling_by_network_client_id("mainnet")
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tokenwatch.constants.chains import DEFAULT_DETECTION_INTERVAL_MS
from tokenwatch.core.exceptions import ConfigurationError
from tokenwatch.detection.cycle import DetectionCycle
from tokenwatch.detection.protocols import NetworkClientResolver
from tokenwatch.models.chain import ChainContext
from tokenwatch.scheduler.scheduler import get_scheduler

log = structlog.get_logger(__name__)

# Job ID prefix for every detection loop
JOB_ID_PREFIX = "token_detection"
LEGACY_LOOP_ID = "legacy"


@dataclass
class PollingLoop:
    """One periodic detection loop.

    Attributes:
        id: Loop key (network client id, or "legacy").
        job_id: Id of the APScheduler job.
        interval_ms: Milliseconds between ticks.
        context: Chain context every tick runs against.
        job: APScheduler job acting as the timer handle.
        active: False once the loop has been stopped.
        started_at: When the loop was armed.
    """

    id: str
    job_id: str
    interval_ms: int
    context: ChainContext
    job: Job | None = None
    active: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class BasePollScheduler:
    """Owns a set of polling loops keyed by id.

    Subclasses decide when loops are created and which context they use.
    """

    loop_kind = "loop"

    def __init__(
        self,
        cycle: DetectionCycle,
        interval_ms: int = DEFAULT_DETECTION_INTERVAL_MS,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        if interval_ms < 1:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")

        self.cycle = cycle
        self._interval_ms = interval_ms
        self._scheduler = scheduler
        self._loops: dict[str, PollingLoop] = {}

    @property
    def scheduler(self) -> AsyncIOScheduler:
        """Scheduler hosting the loop jobs (shared singleton by default)."""
        if self._scheduler is None:
            self._scheduler = get_scheduler()
        return self._scheduler

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def set_interval(self, interval_ms: int) -> None:
        """Change the interval of every loop.

        Each loop's job is cleared and re-armed with the new interval, so
        the next tick is one new interval from now.
        """
        if interval_ms < 1:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")

        self._interval_ms = interval_ms
        for loop_id, loop in list(self._loops.items()):
            self._disarm(loop_id)
            self._arm(loop_id, loop.context, immediate=False)

        log.info("polling_interval_changed", interval_ms=interval_ms, loops=len(self._loops))

    def get_loop(self, loop_id: str) -> PollingLoop | None:
        return self._loops.get(loop_id)

    def polling_keys(self) -> list[str]:
        """Ids of the loops currently armed."""
        return [loop_id for loop_id, loop in self._loops.items() if loop.active]

    def _arm(self, loop_id: str, context: ChainContext, immediate: bool) -> PollingLoop:
        """Create the loop and its interval job, replacing any old one."""
        if loop_id in self._loops:
            self._disarm(loop_id)

        loop = PollingLoop(
            id=loop_id,
            job_id=f"{JOB_ID_PREFIX}:{self.loop_kind}:{loop_id}",
            interval_ms=self._interval_ms,
            context=context,
        )
        trigger = IntervalTrigger(seconds=self._interval_ms / 1000)
        job_kwargs: dict[str, datetime] = {}
        if immediate:
            job_kwargs["next_run_time"] = datetime.now(UTC)

        loop.job = self.scheduler.add_job(
            self._tick,
            trigger=trigger,
            args=(loop_id,),
            id=loop.job_id,
            name=f"Token detection ({loop_id})",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=None,
            **job_kwargs,
        )
        loop.active = True
        self._loops[loop_id] = loop

        log.info(
            "polling_loop_started",
            loop_id=loop_id,
            chain_id=context.chain_id,
            interval_ms=self._interval_ms,
            immediate=immediate,
        )
        return loop

    def _disarm(self, loop_id: str) -> bool:
        """Clear the loop's job and forget the loop."""
        loop = self._loops.pop(loop_id, None)
        if loop is None:
            return False

        loop.active = False
        if loop.job is not None:
            if self.scheduler.get_job(loop.job_id):
                self.scheduler.remove_job(loop.job_id)
            loop.job = None

        log.info("polling_loop_stopped", loop_id=loop_id, chain_id=loop.context.chain_id)
        return True

    async def _tick(self, loop_id: str) -> None:
        """Timer callback: run one cycle for the loop's context.

        Errors are logged so a failing cycle never kills the loop; the
        next tick retries.
        """
        loop = self._loops.get(loop_id)
        if loop is None or not loop.active:
            return

        try:
            await self.cycle.run(loop.context)
        except Exception as e:
            log.error(
                "detection_tick_failed",
                loop_id=loop_id,
                chain_id=loop.context.chain_id,
                error=str(e),
            )


class LegacyPollScheduler(BasePollScheduler):
    """Single loop that follows whichever network is active."""

    loop_kind = "legacy"

    def __init__(
        self,
        cycle: DetectionCycle,
        interval_ms: int = DEFAULT_DETECTION_INTERVAL_MS,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        super().__init__(cycle, interval_ms=interval_ms, scheduler=scheduler)
        self._context: ChainContext | None = None

    @property
    def context(self) -> ChainContext | None:
        """Context the loop runs against (or will, once started)."""
        return self._context

    @property
    def is_running(self) -> bool:
        loop = self._loops.get(LEGACY_LOOP_ID)
        return loop is not None and loop.active

    def start(self, context: ChainContext | None = None) -> PollingLoop:
        """Arm the loop; the first tick fires one interval from now.

        Args:
            context: Chain to poll. Defaults to the last retargeted context.

        Raises:
            ConfigurationError: If no context is known yet.
        """
        if context is not None:
            self._context = context
        if self._context is None:
            raise ConfigurationError("Legacy polling needs an active network context")

        loop = self._loops.get(LEGACY_LOOP_ID)
        if loop is not None and loop.active:
            loop.context = self._context
            log.debug("legacy_polling_already_running", chain_id=self._context.chain_id)
            return loop

        return self._arm(LEGACY_LOOP_ID, self._context, immediate=False)

    def stop(self) -> None:
        """Clear the loop's timer."""
        self._disarm(LEGACY_LOOP_ID)

    def retarget(self, context: ChainContext) -> None:
        """Point the loop at a new network without touching its timer."""
        previous = self._context
        self._context = context

        loop = self._loops.get(LEGACY_LOOP_ID)
        if loop is not None:
            loop.context = context

        log.info(
            "legacy_polling_retargeted",
            from_chain_id=previous.chain_id if previous else None,
            to_chain_id=context.chain_id,
            running=loop is not None,
        )


class NetworkClientPollScheduler(BasePollScheduler):
    """One loop per network client id."""

    loop_kind = "network_client"

    def __init__(
        self,
        cycle: DetectionCycle,
        resolver: NetworkClientResolver,
        interval_ms: int = DEFAULT_DETECTION_INTERVAL_MS,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        super().__init__(cycle, interval_ms=interval_ms, scheduler=scheduler)
        self.resolver = resolver

    def start_polling_by_network_client_id(self, network_client_id: str) -> PollingLoop:
        """Start (or reuse) the loop for ``network_client_id``.

        The id is resolved to a ChainContext once, here. A new loop fires
        an immediate cycle, then repeats every interval.

        Raises:
            ConfigurationError: If the resolver does not know the id.
        """
        loop = self._loops.get(network_client_id)
        if loop is not None and loop.active:
            log.debug("network_client_polling_already_running", loop_id=network_client_id)
            return loop

        context = self.resolver.resolve(network_client_id)
        return self._arm(network_client_id, context, immediate=True)

    def stop_polling_by_network_client_id(self, network_client_id: str) -> bool:
        """Stop the loop for ``network_client_id``; other loops keep running.

        Returns:
            True if a loop was stopped.
        """
        return self._disarm(network_client_id)

    def stop_all_polling(self) -> None:
        """Stop every loop this scheduler owns."""
        for loop_id in list(self._loops):
            self._disarm(loop_id)
