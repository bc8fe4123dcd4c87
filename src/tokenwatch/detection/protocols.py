"""Interfaces of the collaborators the detection engine depends on.

The engine never imports a concrete adapter; anything matching these
protocols can be wired in (see tokenwatch.services and tokenwatch.data
for the bundled implementations).
"""

from collections.abc import Mapping, Sequence
from typing import Protocol

from tokenwatch.models.chain import ChainContext
from tokenwatch.models.token import CandidateToken, DetectedToken


class CandidateSource(Protocol):
    """Supplies the candidate token list of a chain."""

    async def get_candidates(self, chain_id: str) -> list[CandidateToken]:
        """Return candidates for ``chain_id``.

        Raises:
            ChainNotSupportedError: If the source has no list for the chain.
        """
        ...


class TokenStore(Protocol):
    """Registry of tokens the user tracks or ignores."""

    async def get_ignored(self, chain_id: str) -> set[str]: ...

    async def get_tracked(self, chain_id: str) -> set[str]: ...

    async def add_detected(self, chain_id: str, tokens: Sequence[DetectedToken]) -> None: ...


class BalanceFetcher(Protocol):
    """Batched token balance lookup."""

    async def get_balances(
        self,
        addresses: Sequence[str],
        context: ChainContext,
        account: str,
    ) -> Mapping[str, int]:
        """Return balances of ``account`` keyed by token address."""
        ...


class NetworkClientResolver(Protocol):
    """Resolves a network client id to the context used to poll it."""

    def resolve(self, network_client_id: str) -> ChainContext:
        """Raises ConfigurationError for unknown ids."""
        ...
