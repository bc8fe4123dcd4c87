"""Events consumed by the detection engine.

Each event is an immutable pydantic model; the bus dispatches on the
event's concrete type.
"""

from pydantic import BaseModel, ConfigDict

from tokenwatch.models.chain import ChainContext


class Event(BaseModel):
    """Base class for bus events."""

    model_config = ConfigDict(frozen=True)


class WalletUnlocked(Event):
    """Keyring was unlocked."""


class WalletLocked(Event):
    """Keyring was locked."""


class VisibilityChanged(Event):
    """Wallet UI was opened or closed."""

    is_open: bool


class SelectedAddressChanged(Event):
    """User switched the selected account."""

    address: str


class NetworkChanged(Event):
    """The active network switched to ``context``."""

    context: ChainContext


class CandidateListChanged(Event):
    """The candidate token list for ``chain_id`` was refreshed."""

    chain_id: str
    token_count: int


class PreferencesChanged(Event):
    """User toggled token detection."""

    use_token_detection: bool


class TrackedTokensChanged(Event):
    """The tracked or ignored tokens of ``chain_id`` changed."""

    chain_id: str
