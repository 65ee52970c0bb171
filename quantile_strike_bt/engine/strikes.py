"""
Strike projection: quantile return forecast + reference price -> absolute strikes.
"""

from dataclasses import dataclass
import numpy as np
import pandas as pd

from ..data.models import PriceSeries
from .quantiles import QuantileForecasts


@dataclass
class StrikePairs:
    """Put/call strikes aligned with the QuantileForecasts they were projected from"""
    indices: np.ndarray
    reference_price: np.ndarray
    put_strike: np.ndarray
    call_strike: np.ndarray

    def __len__(self) -> int:
        return len(self.indices)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "eval_index": self.indices,
                "reference_price": self.reference_price,
                "put_strike": self.put_strike,
                "call_strike": self.call_strike,
            }
        )


def project_strike(reference_price: float, quantile: float) -> float:
    """reference_price * (1 + quantile); NaN when either input is missing"""
    if reference_price is None or quantile is None:
        return float("nan")
    return float(reference_price) * (1.0 + float(quantile))


def reference_prices(prices: PriceSeries, indices: np.ndarray) -> np.ndarray:
    """price[i - 1] for each evaluation index i (NaN for i = 0)"""
    idx = np.asarray(indices, dtype=np.int64)
    out = np.full(len(idx), np.nan)
    has_ref = idx >= 1
    out[has_ref] = prices.values[idx[has_ref] - 1]
    return out


def project_strikes(forecasts: QuantileForecasts, prices: PriceSeries) -> StrikePairs:
    """
    Project put/call strikes from the price observable at forecast time.

    put_strike = price[i-1] * (1 + put_quantile), call_strike = price[i-1] * (1 + call_quantile).
    Missing forecasts or reference prices propagate as NaN.
    """
    ref = reference_prices(prices, forecasts.indices)
    # NaN propagates through the arithmetic
    return StrikePairs(
        indices=forecasts.indices,
        reference_price=ref,
        put_strike=ref * (1.0 + forecasts.put_quantile),
        call_strike=ref * (1.0 + forecasts.call_quantile),
    )
