"""
Return series builder: n-period forward returns aligned with the price series.
"""

from dataclasses import dataclass
from typing import Literal
import numpy as np

from ..data.models import PriceSeries
from ..errors import validate_horizon

ReturnMode = Literal["discrete", "log"]


@dataclass(frozen=True)
class ReturnSeries:
    """
    n-period returns aligned index-for-index with a PriceSeries.

    values[i] = price[i] / price[i - n] - 1 (discrete) or log(price[i] / price[i - n]) (log).
    The first n entries are NaN, as is any entry touching a missing or non-positive price.
    """
    values: np.ndarray
    horizon: int
    mode: ReturnMode = "discrete"

    def __len__(self) -> int:
        return len(self.values)

    def defined_count(self) -> int:
        return int(np.count_nonzero(~np.isnan(self.values)))


def build_return_series(prices: PriceSeries, horizon: int, mode: ReturnMode = "discrete") -> ReturnSeries:
    """
    Build the n-period return series.

    Args:
        prices: Price series
        horizon: Number of trading sessions n (0 < n < len(prices))
        mode: "discrete" or "log"

    Returns:
        ReturnSeries of the same length as prices

    Raises:
        InvalidHorizon: If n <= 0 or n >= len(prices)
    """
    n = validate_horizon(horizon, len(prices))
    if mode not in ("discrete", "log"):
        raise ValueError(f"Invalid return mode: {mode}. Use 'discrete' or 'log'")

    p = np.asarray(prices.values, dtype=float)
    out = np.full(len(p), np.nan)

    start = p[:-n]
    end = p[n:]
    # Undefined where either leg is missing or the base price cannot be divided by
    valid = np.isfinite(start) & np.isfinite(end) & (start > 0)
    if mode == "log":
        valid &= end > 0

    ratio = np.full(len(end), np.nan)
    np.divide(end, start, out=ratio, where=valid)
    if mode == "discrete":
        out[n:] = ratio - 1.0
    else:
        out[n:] = np.log(ratio, out=np.full(len(ratio), np.nan), where=valid)

    out.setflags(write=False)
    return ReturnSeries(values=out, horizon=n, mode=mode)
