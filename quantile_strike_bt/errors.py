"""
Error taxonomy for the backtest engine.

Configuration-level problems are fatal and raised before any computation.
Per-index data problems are never raised: they are recorded as a SkipReason
on the affected row and the run continues.
"""

from typing import Tuple


class BacktestError(Exception):
    """Base class for engine errors"""


class InvalidHorizon(BacktestError, ValueError):
    """Horizon n is <= 0 or not smaller than the price series length"""


class InvalidConfidenceLevel(BacktestError, ValueError):
    """Confidence level is outside the open interval (0, 1)"""


class InvalidBacktestWindow(BacktestError, ValueError):
    """Backtest window selects no evaluation index"""


class BacktestCancelled(BacktestError):
    """Run was aborted between evaluation indices"""


class SkipReason:
    """Reason codes for evaluation indices whose outputs are missing"""
    INSUFFICIENT_HISTORY = "insufficient_history"
    MISSING_REFERENCE_PRICE = "missing_reference_price"
    ZERO_REFERENCE_PRICE = "zero_reference_price"
    MISSING_ACTUAL_PRICE = "missing_actual_price"

    # Precedence when several apply to one index
    ALL: Tuple[str, ...] = (
        MISSING_REFERENCE_PRICE,
        ZERO_REFERENCE_PRICE,
        INSUFFICIENT_HISTORY,
        MISSING_ACTUAL_PRICE,
    )


def validate_confidence_level(alpha: float) -> float:
    """Return alpha as float, raising InvalidConfidenceLevel unless 0 < alpha < 1."""
    try:
        a = float(alpha)
    except (TypeError, ValueError):
        raise InvalidConfidenceLevel(f"Confidence level must be a number, got {alpha!r}")
    if not (0.0 < a < 1.0):
        raise InvalidConfidenceLevel(f"Confidence level must be in (0, 1), got {a}")
    return a


def validate_horizon(horizon: int, series_length: int) -> int:
    """Return horizon as int, raising InvalidHorizon unless 0 < horizon < series_length."""
    try:
        n = int(horizon)
    except (TypeError, ValueError):
        raise InvalidHorizon(f"Horizon must be a positive integer, got {horizon!r}")
    if isinstance(horizon, bool) or n != horizon:
        raise InvalidHorizon(f"Horizon must be a positive integer, got {horizon!r}")
    if n <= 0:
        raise InvalidHorizon(f"Horizon must be positive, got {n}")
    if n >= series_length:
        raise InvalidHorizon(
            f"Horizon ({n}) must be smaller than the price series length ({series_length})"
        )
    return n
