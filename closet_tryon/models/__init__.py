"""Data models for the closet try-on service."""

from .garment import GarmentRef, TryOnRequest
from .events import (
    Progress,
    ModelProgress,
    ItemComplete,
    Complete,
    Error,
    ProgressEvent,
    progress_event_adapter,
    is_terminal,
)
from .result import PipelineResult
from .credits import CreditBalance, DeductCreditsRequest, LedgerSnapshot

__all__ = [
    "GarmentRef",
    "TryOnRequest",
    "Progress",
    "ModelProgress",
    "ItemComplete",
    "Complete",
    "Error",
    "ProgressEvent",
    "progress_event_adapter",
    "is_terminal",
    "PipelineResult",
    "CreditBalance",
    "DeductCreditsRequest",
    "LedgerSnapshot",
]
