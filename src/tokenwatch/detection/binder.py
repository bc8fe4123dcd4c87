"""Wires wallet events to activation state and detection triggers.

Handlers are synchronous: each reads and updates ActivationState without
yielding, then at most schedules a detection cycle as an asyncio task.
No handler performs network I/O itself.

Event reactions:
    WalletUnlocked          -> is_unlocked = True, detect now
    WalletLocked            -> is_unlocked = False (loops keep ticking, gated)
    VisibilityChanged       -> is_open updated, detect now when opened
    SelectedAddressChanged  -> selected_address updated, detect now
    NetworkChanged          -> legacy loop retargeted (timer phase kept), armed if idle
    CandidateListChanged    -> detect now if it is the current chain's list
    PreferencesChanged      -> use_token_detection updated, detect now when enabled
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from tokenwatch.core.address import normalize_address, truncate_address
from tokenwatch.core.exceptions import ValidationError
from tokenwatch.events.bus import EventBus
from tokenwatch.events.models import (
    CandidateListChanged,
    NetworkChanged,
    PreferencesChanged,
    SelectedAddressChanged,
    VisibilityChanged,
    WalletLocked,
    WalletUnlocked,
)
from tokenwatch.models.chain import ActivationState, ChainContext

if TYPE_CHECKING:
    from tokenwatch.detection.cycle import DetectionCycle
    from tokenwatch.scheduler.polling import LegacyPollScheduler

log = structlog.get_logger(__name__)


class EventBinder:
    """Subscribes the detection engine to wallet events.

    Attributes:
        state: Activation state this binder is the only writer of.
        cycle: Detection cycle triggered on relevant events.
        legacy_scheduler: Legacy loop to retarget on network change, if enabled.
        current_context: Context of the active network, target of immediate runs.
    """

    def __init__(
        self,
        bus: EventBus,
        state: ActivationState,
        cycle: DetectionCycle,
        legacy_scheduler: LegacyPollScheduler | None = None,
        current_context: ChainContext | None = None,
    ) -> None:
        self.bus = bus
        self.state = state
        self.cycle = cycle
        self.legacy_scheduler = legacy_scheduler
        self.current_context = current_context
        self._unsubscribers: list[Callable[[], None]] = []
        self._tasks: set[asyncio.Task[object]] = set()

    def bind(self) -> None:
        """Subscribe every handler. Calling twice is a no-op."""
        if self._unsubscribers:
            return

        self._unsubscribers = [
            self.bus.subscribe(WalletUnlocked, self.on_unlock),
            self.bus.subscribe(WalletLocked, self.on_lock),
            self.bus.subscribe(VisibilityChanged, self.on_visibility_changed),
            self.bus.subscribe(SelectedAddressChanged, self.on_selected_address_changed),
            self.bus.subscribe(NetworkChanged, self.on_network_changed),
            self.bus.subscribe(CandidateListChanged, self.on_candidate_list_changed),
            self.bus.subscribe(PreferencesChanged, self.on_preferences_changed),
        ]
        log.debug("event_binder_bound", handlers=len(self._unsubscribers))

    def unbind(self) -> None:
        """Remove every subscription made by bind()."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    @property
    def pending_tasks(self) -> frozenset[asyncio.Task[object]]:
        """Detection runs triggered by events that have not finished yet."""
        return frozenset(self._tasks)

    def on_unlock(self, _event: WalletUnlocked) -> None:
        self.state.is_unlocked = True
        log.info("wallet_unlocked")
        self.trigger_detection("unlock")

    def on_lock(self, _event: WalletLocked) -> None:
        self.state.is_unlocked = False
        log.info("wallet_locked")

    def on_visibility_changed(self, event: VisibilityChanged) -> None:
        was_open = self.state.is_open
        self.state.is_open = event.is_open
        if event.is_open and not was_open:
            self.trigger_detection("opened")

    def on_selected_address_changed(self, event: SelectedAddressChanged) -> None:
        try:
            address = normalize_address(event.address)
        except ValidationError as e:
            log.warning("selected_address_invalid", error=str(e))
            return

        if address == self.state.selected_address:
            return
        self.state.selected_address = address
        log.info("selected_address_changed", address=truncate_address(address))
        self.trigger_detection("address_changed")

    def on_network_changed(self, event: NetworkChanged) -> None:
        self.current_context = event.context
        if self.legacy_scheduler is None:
            return
        # First known network after start arms the loop; later ones keep its phase.
        if self.legacy_scheduler.is_running:
            self.legacy_scheduler.retarget(event.context)
        else:
            self.legacy_scheduler.start(event.context)

    def on_candidate_list_changed(self, event: CandidateListChanged) -> None:
        context = self.current_context
        if context is None or event.token_count == 0:
            return
        if event.chain_id.lower() != context.chain_id.lower():
            return
        self.trigger_detection("candidate_list_changed")

    def on_preferences_changed(self, event: PreferencesChanged) -> None:
        was_enabled = self.state.use_token_detection
        self.state.use_token_detection = event.use_token_detection
        if event.use_token_detection and not was_enabled:
            self.trigger_detection("detection_enabled")

    def trigger_detection(self, reason: str) -> asyncio.Task[object] | None:
        """Schedule an immediate cycle for the current context.

        Returns:
            The scheduled task, or None when there is no current context
            or no running event loop.
        """
        context = self.current_context
        if context is None:
            log.debug("detection_trigger_no_context", reason=reason)
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.warning("detection_trigger_no_event_loop", reason=reason)
            return None

        task: asyncio.Task[object] = loop.create_task(self._run(context, reason))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        log.debug("detection_triggered", reason=reason, chain_id=context.chain_id)
        return task

    async def _run(self, context: ChainContext, reason: str) -> object:
        try:
            return await self.cycle.run(context)
        except Exception as e:
            log.error(
                "triggered_detection_failed",
                reason=reason,
                chain_id=context.chain_id,
                error=str(e),
            )
            return None
