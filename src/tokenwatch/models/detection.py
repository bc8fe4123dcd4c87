"""Detection cycle result models."""

from enum import Enum

from pydantic import BaseModel, Field

from tokenwatch.models.token import DetectedToken


class CycleStatus(str, Enum):
    """How a detection cycle ended."""

    INACTIVE = "inactive"  # Gate closed, no network calls
    BUSY = "busy"  # Another cycle for the same context was in flight
    NO_CANDIDATES = "no_candidates"  # Nothing left to query
    COMPLETED = "completed"


class CycleResult(BaseModel):
    """Summary of one detection cycle.

    Attributes:
        chain_id: Chain the cycle ran against.
        network_client_id: Network client the cycle ran against.
        status: How the cycle ended.
        detected: Tokens handed to the token store.
        queried: Number of candidate addresses sent to balance queries.
        failed_batches: Balance batches dropped because their query failed.
    """

    chain_id: str
    network_client_id: str
    status: CycleStatus
    detected: list[DetectedToken] = Field(default_factory=list)
    queried: int = 0
    failed_batches: int = 0
