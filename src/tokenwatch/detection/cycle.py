"""One detection pass over the candidate tokens of a chain.

Steps, always in this order:
    1. Check the activation gate (no network calls when closed)
    2. Fetch candidates for the chain
    3. Drop candidates already tracked or ignored
    4. Query balances in batches of at most ``max_batch_width``, concurrently
    5. Keep candidates with a balance strictly above zero
    6. Merge and hand the result to the token store

Failure policy:
    - Unsupported chain or candidate source failure: empty candidate list
    - Failed balance batch: logged, that batch is dropped for this cycle
    - Token store add failure: raised to the caller as AddTokensError

Example:
    cycle = DetectionCycle(
        gate=gate,
        candidate_source=token_api,
        token_store=store,
        balance_fetcher=balance_checker,
        max_batch_width=100,
    )
    result = await cycle.run(context)
"""

import asyncio
from collections.abc import Mapping, Sequence

import structlog

from tokenwatch.constants.chains import DEFAULT_MAX_BATCH_WIDTH
from tokenwatch.core.address import normalize_address, normalize_addresses
from tokenwatch.core.exceptions import AddTokensError, ChainNotSupportedError, ValidationError
from tokenwatch.detection.gate import ActivationGate
from tokenwatch.detection.merger import ResultMerger
from tokenwatch.detection.protocols import BalanceFetcher, CandidateSource, TokenStore
from tokenwatch.models.chain import ChainContext
from tokenwatch.models.detection import CycleResult, CycleStatus
from tokenwatch.models.token import CandidateToken, DetectedToken

log = structlog.get_logger(__name__)


def _to_int(value: object) -> int:
    """Coerce a balance returned by a fetcher to an int."""
    if isinstance(value, str) and value.lower().startswith("0x"):
        return int(value, 16)
    return int(value)  # type: ignore[call-overload]


class DetectionCycle:
    """Runs detection for a ChainContext, one cycle per context at a time.

    A second ``run()`` for a context whose cycle is still in flight is
    dropped, not queued. The guard key is ``(chain_id, network_client_id)``.

    Attributes:
        gate: Activation gate evaluated at the start of every cycle.
        candidate_source: Supplies candidate tokens per chain.
        token_store: Supplies ignored/tracked sets, receives detected tokens.
        balance_fetcher: Batched balance lookup.
        merger: Final reconciliation step.
        max_batch_width: Maximum addresses per balance query.
    """

    def __init__(
        self,
        gate: ActivationGate,
        candidate_source: CandidateSource,
        token_store: TokenStore,
        balance_fetcher: BalanceFetcher,
        merger: ResultMerger | None = None,
        max_batch_width: int = DEFAULT_MAX_BATCH_WIDTH,
    ) -> None:
        if max_batch_width < 1:
            raise ValueError(f"max_batch_width must be positive, got {max_batch_width}")

        self.gate = gate
        self.candidate_source = candidate_source
        self.token_store = token_store
        self.balance_fetcher = balance_fetcher
        self.merger = merger or ResultMerger()
        self.max_batch_width = max_batch_width
        self._in_flight: set[tuple[str, str]] = set()

    def is_running(self, context: ChainContext) -> bool:
        """Whether a cycle for ``context`` is in flight."""
        return context.key in self._in_flight

    @property
    def in_flight(self) -> frozenset[tuple[str, str]]:
        """Keys of the contexts with a cycle in flight."""
        return frozenset(self._in_flight)

    async def run(self, context: ChainContext) -> CycleResult:
        """Run one detection cycle for ``context``.

        Returns:
            CycleResult describing how the cycle ended.

        Raises:
            AddTokensError: If the token store rejects the detected tokens.
        """
        chain_id = context.chain_id
        network_client_id = context.network_client_id

        # Gate check and guard insert happen with no await in between
        if not self.gate.can_detect(chain_id):
            log.debug(
                "detection_skipped_inactive",
                chain_id=chain_id,
                network_client_id=network_client_id,
            )
            return CycleResult(
                chain_id=chain_id,
                network_client_id=network_client_id,
                status=CycleStatus.INACTIVE,
            )

        if context.key in self._in_flight:
            log.debug(
                "detection_skipped_in_flight",
                chain_id=chain_id,
                network_client_id=network_client_id,
            )
            return CycleResult(
                chain_id=chain_id,
                network_client_id=network_client_id,
                status=CycleStatus.BUSY,
            )

        account = self.gate.state.selected_address or ""
        self._in_flight.add(context.key)
        try:
            return await self._detect(context, account)
        finally:
            self._in_flight.discard(context.key)

    async def _detect(self, context: ChainContext, account: str) -> CycleResult:
        chain_id = context.chain_id
        network_client_id = context.network_client_id

        candidates = await self._fetch_candidates(chain_id)
        if not candidates:
            return CycleResult(
                chain_id=chain_id,
                network_client_id=network_client_id,
                status=CycleStatus.NO_CANDIDATES,
            )

        ignored, tracked = await asyncio.gather(
            self.token_store.get_ignored(chain_id),
            self.token_store.get_tracked(chain_id),
        )
        to_query = self._filter_candidates(candidates, ignored, tracked)
        if not to_query:
            log.debug(
                "detection_nothing_to_query",
                chain_id=chain_id,
                candidates=len(candidates),
            )
            return CycleResult(
                chain_id=chain_id,
                network_client_id=network_client_id,
                status=CycleStatus.NO_CANDIDATES,
            )

        batches = [
            to_query[i : i + self.max_batch_width]
            for i in range(0, len(to_query), self.max_batch_width)
        ]
        batch_results = await asyncio.gather(
            *(self._query_batch(batch, context, account) for batch in batches)
        )

        detected: list[DetectedToken] = []
        failed_batches = 0
        for batch, balances in zip(batches, batch_results, strict=True):
            if balances is None:
                failed_batches += 1
                continue
            for candidate in batch:
                balance = balances.get(candidate.address, 0)
                if balance > 0:
                    detected.append(DetectedToken.from_candidate(candidate, balance))

        # Ignore/tracked sets may have changed while balances were in flight
        ignored, tracked = await asyncio.gather(
            self.token_store.get_ignored(chain_id),
            self.token_store.get_tracked(chain_id),
        )
        merged = self.merger.merge(detected, ignored=ignored, tracked=tracked)

        if merged:
            await self._add_detected(chain_id, merged)

        log.info(
            "detection_cycle_completed",
            chain_id=chain_id,
            network_client_id=network_client_id,
            candidates=len(candidates),
            queried=len(to_query),
            batches=len(batches),
            failed_batches=failed_batches,
            detected=len(merged),
        )
        return CycleResult(
            chain_id=chain_id,
            network_client_id=network_client_id,
            status=CycleStatus.COMPLETED,
            detected=merged,
            queried=len(to_query),
            failed_batches=failed_batches,
        )

    async def _fetch_candidates(self, chain_id: str) -> list[CandidateToken]:
        """Fetch candidates; unsupported chains and failures yield []."""
        try:
            return list(await self.candidate_source.get_candidates(chain_id))
        except ChainNotSupportedError:
            log.debug("candidate_source_chain_not_supported", chain_id=chain_id)
            return []
        except Exception as e:
            log.warning("candidate_source_failed", chain_id=chain_id, error=str(e))
            return []

    @staticmethod
    def _filter_candidates(
        candidates: Sequence[CandidateToken],
        ignored: set[str],
        tracked: set[str],
    ) -> list[CandidateToken]:
        """Drop tracked, ignored and repeated candidates."""
        excluded = normalize_addresses(ignored) | normalize_addresses(tracked)
        seen: set[str] = set()
        remaining: list[CandidateToken] = []
        for candidate in candidates:
            if candidate.address in excluded or candidate.address in seen:
                continue
            seen.add(candidate.address)
            remaining.append(candidate)
        return remaining

    async def _query_batch(
        self,
        batch: Sequence[CandidateToken],
        context: ChainContext,
        account: str,
    ) -> dict[str, int] | None:
        """Query one batch; returns None when the query fails."""
        addresses = [candidate.address for candidate in batch]
        try:
            raw = await self.balance_fetcher.get_balances(addresses, context, account)
        except Exception as e:
            log.warning(
                "balance_batch_failed",
                chain_id=context.chain_id,
                network_client_id=context.network_client_id,
                batch_size=len(batch),
                error=str(e),
            )
            return None
        if not isinstance(raw, Mapping):
            log.warning(
                "balance_batch_invalid",
                chain_id=context.chain_id,
                network_client_id=context.network_client_id,
                batch_size=len(batch),
                result_type=type(raw).__name__,
            )
            return None
        return self._normalize_balances(raw, context.chain_id)

    @staticmethod
    def _normalize_balances(raw: Mapping[str, object], chain_id: str) -> dict[str, int]:
        balances: dict[str, int] = {}
        for address, value in raw.items():
            try:
                balances[normalize_address(address)] = _to_int(value)
            except (ValidationError, TypeError, ValueError):
                log.warning(
                    "balance_entry_invalid",
                    chain_id=chain_id,
                    address=address,
                    value=repr(value),
                )
        return balances

    async def _add_detected(self, chain_id: str, tokens: list[DetectedToken]) -> None:
        try:
            await self.token_store.add_detected(chain_id, tokens)
        except Exception as e:
            log.error(
                "add_detected_tokens_failed",
                chain_id=chain_id,
                count=len(tokens),
                error=str(e),
            )
            raise AddTokensError(
                f"Failed to add {len(tokens)} detected tokens: {e}",
                chain_id=chain_id,
                addresses=[token.address for token in tokens],
            ) from e
