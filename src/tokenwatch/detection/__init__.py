"""Token detection engine.

Components:
    - ActivationGate: may detection run now
    - DetectionCycle: one scan of a chain's candidate tokens
    - ResultMerger: final reconciliation of detected tokens
    - EventBinder: wallet events to state changes and triggers
    - TokenDetectionService: wiring and lifecycle (tokenwatch.detection.service)
"""

from tokenwatch.detection.binder import EventBinder
from tokenwatch.detection.cycle import DetectionCycle
from tokenwatch.detection.gate import ActivationGate
from tokenwatch.detection.merger import ResultMerger

__all__ = [
    "ActivationGate",
    "DetectionCycle",
    "EventBinder",
    "ResultMerger",
]
