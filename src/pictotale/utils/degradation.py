"""
Fatal vs degradable pipeline steps.

A fatal step lets its error propagate and fails the run. A degradable step
converts any failure into a logged ``DegradableAssetError`` and returns a
fallback value so the run can continue.
"""

import logging
from enum import Enum
from typing import Callable, Optional, TypeVar

from .errors import DegradableAssetError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StepKind(str, Enum):
    """How a step's failure affects the run."""
    FATAL = "fatal"
    DEGRADABLE = "degradable"


def run_step(
    kind: StepKind,
    label: str,
    operation: Callable[[], T],
    fallback: Optional[Callable[[], T]] = None,
    on_degraded: Optional[Callable[[DegradableAssetError], None]] = None,
) -> T:
    """
    Run one pipeline step under the given failure policy.

    Args:
        kind: FATAL or DEGRADABLE
        label: Asset name used in logs and in the degradation record
        operation: Zero-argument callable producing the step result
        fallback: Zero-argument callable producing the substitute value
            (required for DEGRADABLE steps)
        on_degraded: Called with the DegradableAssetError when a fallback is used

    Returns:
        The operation's result, or the fallback's when a degradable step failed
    """
    if kind is StepKind.FATAL:
        return operation()

    if fallback is None:
        raise ValueError(f"Degradable step '{label}' needs a fallback")

    try:
        return operation()
    except Exception as e:
        degraded = DegradableAssetError(label, e)
        logger.warning(str(degraded))
        if on_degraded is not None:
            on_degraded(degraded)
        return fallback()
