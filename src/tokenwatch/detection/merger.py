"""Final reconciliation of a cycle's detected tokens."""

from collections.abc import Iterable, Sequence

from tokenwatch.core.address import normalize_addresses
from tokenwatch.models.token import DetectedToken


class ResultMerger:
    """Builds the list handed to the token store.

    Ignored and tracked sets are re-applied because they can change while
    balance queries are in flight. Duplicates collapse onto the first
    occurrence, so the input order is kept.
    """

    def merge(
        self,
        detected: Sequence[DetectedToken],
        *,
        ignored: Iterable[str] = (),
        tracked: Iterable[str] = (),
    ) -> list[DetectedToken]:
        excluded = normalize_addresses(ignored) | normalize_addresses(tracked)
        seen: set[str] = set()
        merged: list[DetectedToken] = []
        for token in detected:
            # Addresses are checksummed by the model validator
            if token.address in excluded or token.address in seen:
                continue
            seen.add(token.address)
            merged.append(token)
        return merged
