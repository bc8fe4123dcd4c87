"""Scheduling for detection polling loops."""

from tokenwatch.scheduler.polling import (
    LegacyPollScheduler,
    NetworkClientPollScheduler,
    PollingLoop,
)
from tokenwatch.scheduler.scheduler import get_scheduler, shutdown_scheduler, start_scheduler

__all__ = [
    "LegacyPollScheduler",
    "NetworkClientPollScheduler",
    "PollingLoop",
    "get_scheduler",
    "shutdown_scheduler",
    "start_scheduler",
]
