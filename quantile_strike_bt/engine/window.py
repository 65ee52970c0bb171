"""
Backtest window: which evaluation indices have both a forecast date and a realized expiry.

Evaluation index i forecasts as of date[i-1] and settles at date[i+n-1], so valid
indices satisfy 1 <= i <= N - n. The window keeps indices whose as-of date falls on
or after latest_date - window_years.
"""

import logging
from typing import Optional
import numpy as np
import pandas as pd

from ..data.models import PriceSeries
from ..errors import InvalidBacktestWindow, validate_horizon

logger = logging.getLogger(__name__)


def evaluation_indices(
    prices: PriceSeries,
    horizon: int,
    window_years: Optional[float] = None,
) -> np.ndarray:
    """
    Evaluation indices for a backtest window.

    Args:
        prices: Price series
        horizon: Sessions n to expiry
        window_years: Calendar years back from the latest date; None uses every valid index

    Returns:
        Increasing int array of evaluation indices

    Raises:
        InvalidHorizon: If n is out of range for the series
        InvalidBacktestWindow: If the window selects no index
    """
    n = validate_horizon(horizon, len(prices))
    last = len(prices) - n
    first = 1

    if window_years is not None:
        if window_years <= 0:
            raise InvalidBacktestWindow(f"Backtest window must be positive, got {window_years}")
        start_date = window_start_date(prices.latest_date, window_years)
        # First as-of date (date[i-1]) on or after the window start
        first = int(prices.dates.searchsorted(start_date, side="left")) + 1
        first = max(first, 1)

    if first > last:
        raise InvalidBacktestWindow(
            f"Backtest window selects no evaluation index (first={first}, last={last}, "
            f"horizon={n}, window_years={window_years})"
        )

    logger.info(
        f"Evaluation window: {prices.dates[first - 1].date()} to {prices.dates[last - 1].date()} "
        f"({last - first + 1} indices)"
    )
    return np.arange(first, last + 1, dtype=np.int64)


def window_start_date(latest_date: pd.Timestamp, window_years: float) -> pd.Timestamp:
    """latest_date minus window_years; fractional years are converted to days"""
    whole = int(window_years)
    frac = float(window_years) - whole
    start = pd.Timestamp(latest_date) - pd.DateOffset(years=whole)
    if frac > 0:
        start -= pd.Timedelta(days=round(frac * 365.25))
    return start
