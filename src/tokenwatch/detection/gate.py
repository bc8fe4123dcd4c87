"""Decides whether detection may run right now."""

from collections.abc import Iterable

from tokenwatch.constants.chains import normalize_chain_id
from tokenwatch.models.chain import ActivationState


class ActivationGate:
    """Pure check over the current ActivationState and chain support.

    The gate holds a reference to the live state object, so every call
    sees the latest values; nothing is cached between calls.

    Attributes:
        state: Shared activation state, mutated by the event binder.
        supported_chains: Chain ids with a candidate token source.
    """

    def __init__(self, state: ActivationState, supported_chains: Iterable[str]) -> None:
        self.state = state
        self.supported_chains = frozenset(normalize_chain_id(c) for c in supported_chains)

    def is_supported(self, chain_id: str) -> bool:
        """Whether ``chain_id`` is in the allow-list."""
        try:
            return normalize_chain_id(chain_id) in self.supported_chains
        except ValueError:
            return False

    @property
    def is_active(self) -> bool:
        """UI open and wallet unlocked."""
        return self.state.is_active

    def can_detect(self, chain_id: str) -> bool:
        """Whether a detection cycle for ``chain_id`` is permitted now."""
        state = self.state
        return (
            state.is_active
            and state.use_token_detection
            and bool(state.selected_address)
            and self.is_supported(chain_id)
        )
