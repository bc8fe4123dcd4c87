"""Event bus and event models."""

from tokenwatch.events.bus import EventBus
from tokenwatch.events.models import (
    CandidateListChanged,
    Event,
    NetworkChanged,
    PreferencesChanged,
    SelectedAddressChanged,
    TrackedTokensChanged,
    VisibilityChanged,
    WalletLocked,
    WalletUnlocked,
)

__all__ = [
    "CandidateListChanged",
    "Event",
    "EventBus",
    "NetworkChanged",
    "PreferencesChanged",
    "SelectedAddressChanged",
    "TrackedTokensChanged",
    "VisibilityChanged",
    "WalletLocked",
    "WalletUnlocked",
]
