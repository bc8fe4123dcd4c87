"""In-memory token registry, the bundled TokenStore.

Per chain it keeps three disjoint collections:
    - tracked: tokens the user added
    - detected: tokens handed over by detection, not yet added by the user
    - ignored: addresses the user never wants surfaced

Detection treats tracked and detected tokens alike: neither is queried
again. Nothing is persisted.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import structlog

from tokenwatch.constants.chains import normalize_chain_id
from tokenwatch.core.address import normalize_address
from tokenwatch.events.bus import EventBus
from tokenwatch.events.models import TrackedTokensChanged
from tokenwatch.models.token import CandidateToken, DetectedToken

log = structlog.get_logger(__name__)


@dataclass
class _ChainTokens:
    tracked: dict[str, CandidateToken] = field(default_factory=dict)
    detected: dict[str, DetectedToken] = field(default_factory=dict)
    ignored: set[str] = field(default_factory=set)


class InMemoryTokenStore:
    """Tracked, detected and ignored tokens keyed by chain.

    Every mutation publishes TrackedTokensChanged when a bus is given.

    Example:
        store = InMemoryTokenStore()
        await store.ignore_tokens("0x1", ["0x514910771af9ca656af840dff83e8264ecf986ca"])
        await store.get_ignored("0x1")
    """

    def __init__(self, bus: EventBus | None = None) -> None:
        self.bus = bus
        self._chains: defaultdict[str, _ChainTokens] = defaultdict(_ChainTokens)

    def _chain(self, chain_id: str) -> _ChainTokens:
        return self._chains[normalize_chain_id(chain_id)]

    def _changed(self, chain_id: str) -> None:
        if self.bus is not None:
            self.bus.publish(TrackedTokensChanged(chain_id=normalize_chain_id(chain_id)))

    async def get_ignored(self, chain_id: str) -> set[str]:
        return set(self._chain(chain_id).ignored)

    async def get_tracked(self, chain_id: str) -> set[str]:
        chain = self._chain(chain_id)
        return set(chain.tracked) | set(chain.detected)

    async def add_detected(self, chain_id: str, tokens: Sequence[DetectedToken]) -> None:
        """Record detected tokens; ignored and already known ones are skipped."""
        chain = self._chain(chain_id)
        added = 0
        for token in tokens:
            if (
                token.address in chain.ignored
                or token.address in chain.tracked
                or token.address in chain.detected
            ):
                continue
            chain.detected[token.address] = token
            added += 1

        if added:
            log.info("detected_tokens_added", chain_id=chain_id, count=added)
            self._changed(chain_id)

    async def add_tokens(self, chain_id: str, tokens: Iterable[CandidateToken]) -> None:
        """Track tokens explicitly (e.g. the user accepted detected tokens)."""
        chain = self._chain(chain_id)
        for token in tokens:
            chain.detected.pop(token.address, None)
            chain.ignored.discard(token.address)
            chain.tracked[token.address] = token
        self._changed(chain_id)

    async def ignore_tokens(self, chain_id: str, addresses: Iterable[str]) -> None:
        """Ignore addresses and drop them from tracked and detected."""
        chain = self._chain(chain_id)
        for address in addresses:
            normalized = normalize_address(address)
            chain.tracked.pop(normalized, None)
            chain.detected.pop(normalized, None)
            chain.ignored.add(normalized)
        self._changed(chain_id)

    def detected_tokens(self, chain_id: str) -> list[DetectedToken]:
        """Detected tokens in the order they were added."""
        return list(self._chain(chain_id).detected.values())

    def tracked_tokens(self, chain_id: str) -> list[CandidateToken]:
        return list(self._chain(chain_id).tracked.values())
