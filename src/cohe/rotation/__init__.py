"""Account rotation: strategies, the rotation engine and the retry wrapper."""

from cohe.rotation.engine import (
    RotationEngine,
    RotationResult,
    UsageSample,
    pick_least_used,
    sample_usage,
    select_next,
)
from cohe.rotation.retry import with_retry


__all__ = [
    "RotationEngine",
    "RotationResult",
    "UsageSample",
    "pick_least_used",
    "sample_usage",
    "select_next",
    "with_retry",
]
