"""Pydantic models for tokenwatch."""

from tokenwatch.models.chain import ActivationState, ChainContext
from tokenwatch.models.detection import CycleResult, CycleStatus
from tokenwatch.models.token import CandidateToken, DetectedToken

__all__ = [
    "ActivationState",
    "CandidateToken",
    "ChainContext",
    "CycleResult",
    "CycleStatus",
    "DetectedToken",
]
