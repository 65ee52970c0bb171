"""
Trade simulator: realized returns of a cash-secured put and a covered call per evaluation index.

Each trade opens at price[i-1] with strikes projected from the quantile forecast and
settles at expiry price[i+n-1]. European exercise only: the option is either
exercised at expiry or expires worthless.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
import pandas as pd

from ..data.models import PriceSeries
from ..errors import SkipReason
from .quantiles import QuantileForecasts
from .strikes import StrikePairs

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray]


def _as_result(arr: np.ndarray):
    return float(arr) if np.ndim(arr) == 0 else arr


def put_exercised(put_strike: ArrayLike, actual_price: ArrayLike):
    """Put is exercised when the expiry price is strictly below the strike"""
    return np.less(actual_price, put_strike)


def call_assigned(call_strike: ArrayLike, actual_price: ArrayLike):
    """Call is assigned when the expiry price is at or above the strike"""
    return np.greater_equal(actual_price, call_strike)


def naked_put_return(put_strike: ArrayLike, actual_price: ArrayLike, premium_rate: float) -> ArrayLike:
    """
    Return of a cash-secured put, per unit of strike.

    Not exercised: premium_rate. Exercised: (actual - strike + premium) / strike,
    with premium = premium_rate * strike. NaN when the strike or actual price is
    missing, or the strike is zero.
    """
    ps = np.asarray(put_strike, dtype=float)
    ap = np.asarray(actual_price, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        premium = premium_rate * ps
        ret = np.where(put_exercised(ps, ap), (ap - ps + premium) / ps, premium_rate)
    ok = np.isfinite(ps) & np.isfinite(ap) & (ps != 0)
    return _as_result(np.where(ok, ret, np.nan))


def covered_call_return(
    call_strike: ArrayLike,
    actual_price: ArrayLike,
    reference_price: ArrayLike,
    premium_rate: float,
) -> ArrayLike:
    """
    Return of a covered call, anchored to the underlying's price at inception.

    Not assigned: (premium + actual - reference) / reference.
    Assigned: (premium + strike - reference) / reference, with premium = premium_rate * strike.
    NaN when any input is missing or the reference price is zero.
    """
    cs = np.asarray(call_strike, dtype=float)
    ap = np.asarray(actual_price, dtype=float)
    ref = np.asarray(reference_price, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        premium = premium_rate * cs
        settle = np.where(call_assigned(cs, ap), cs, ap)
        ret = (premium + settle - ref) / ref
    ok = np.isfinite(cs) & np.isfinite(ap) & np.isfinite(ref) & (ref != 0)
    return _as_result(np.where(ok, ret, np.nan))


@dataclass
class SimulatedTrade:
    """Outcome of one evaluation index; missing values are NaN / None"""
    eval_index: int
    reference_price: float
    actual_price: float
    put_strike: float
    call_strike: float
    put_exercised: Optional[bool]
    call_exercised: Optional[bool]
    put_return: float
    call_return: float
    skip_reason: Optional[str] = None

    @property
    def is_skipped(self) -> bool:
        return self.skip_reason is not None


def skip_reason_for(
    forecast_missing: bool,
    reference_price: float,
    actual_price: float,
) -> Optional[str]:
    """First applicable SkipReason for one index, or None if the trade can be simulated"""
    if reference_price is None or not np.isfinite(reference_price):
        return SkipReason.MISSING_REFERENCE_PRICE
    if reference_price == 0:
        return SkipReason.ZERO_REFERENCE_PRICE
    if forecast_missing:
        return SkipReason.INSUFFICIENT_HISTORY
    if actual_price is None or not np.isfinite(actual_price):
        return SkipReason.MISSING_ACTUAL_PRICE
    return None


def simulate_trade(
    eval_index: int,
    put_strike: float,
    call_strike: float,
    actual_price: float,
    reference_price: float,
    put_premium_rate: float,
    call_premium_rate: float,
) -> SimulatedTrade:
    """Simulate both strategies for a single evaluation index"""
    put_strike = float("nan") if put_strike is None else float(put_strike)
    call_strike = float("nan") if call_strike is None else float(call_strike)
    forecast_missing = not (np.isfinite(put_strike) and np.isfinite(call_strike))
    reason = skip_reason_for(forecast_missing, reference_price, actual_price)
    if reason is not None:
        return SimulatedTrade(
            eval_index=int(eval_index),
            reference_price=float(reference_price) if reference_price is not None else float("nan"),
            actual_price=float(actual_price) if actual_price is not None else float("nan"),
            put_strike=put_strike,
            call_strike=call_strike,
            put_exercised=None,
            call_exercised=None,
            put_return=float("nan"),
            call_return=float("nan"),
            skip_reason=reason,
        )
    return SimulatedTrade(
        eval_index=int(eval_index),
        reference_price=float(reference_price),
        actual_price=float(actual_price),
        put_strike=put_strike,
        call_strike=call_strike,
        put_exercised=bool(put_exercised(put_strike, actual_price)),
        call_exercised=bool(call_assigned(call_strike, actual_price)),
        put_return=naked_put_return(put_strike, actual_price, put_premium_rate),
        call_return=covered_call_return(call_strike, actual_price, reference_price, call_premium_rate),
    )


@dataclass
class TradeSimulator:
    """
    Vectorized simulation over all evaluation indices.

    Args:
        horizon: Sessions n between forecast and expiry; expiry price is price[i+n-1]
        put_premium_rate: Put premium as a fraction of the put strike
        call_premium_rate: Call premium as a fraction of the call strike
    """
    horizon: int
    put_premium_rate: float
    call_premium_rate: float

    def expiry_positions(self, indices: np.ndarray) -> np.ndarray:
        return np.asarray(indices, dtype=np.int64) + int(self.horizon) - 1

    def simulate(self, forecasts: QuantileForecasts, strikes: StrikePairs, prices: PriceSeries) -> pd.DataFrame:
        """
        Build the SimulatedTrade table.

        Returns:
            DataFrame with one row per evaluation index, in forecast order. Rows with a
            skip_reason carry NaN returns and missing exercise flags.
        """
        idx = np.asarray(forecasts.indices, dtype=np.int64)
        exp_pos = self.expiry_positions(idx)
        n_prices = len(prices)
        if idx.size and (idx.min() < 1 or exp_pos.max() > n_prices - 1):
            raise ValueError(
                f"Evaluation indices must satisfy 1 <= i and i + {self.horizon} - 1 < {n_prices}"
            )

        ref = strikes.reference_price
        actual = prices.values[exp_pos] if idx.size else np.array([], dtype=float)
        forecast_missing = forecasts.missing_mask()

        reasons = [
            skip_reason_for(bool(fm), float(r), float(a))
            for fm, r, a in zip(forecast_missing, ref, actual)
        ]
        valid = np.array([r is None for r in reasons], dtype=bool)

        put_ret = np.where(valid, naked_put_return(strikes.put_strike, actual, self.put_premium_rate), np.nan)
        call_ret = np.where(
            valid,
            covered_call_return(strikes.call_strike, actual, ref, self.call_premium_rate),
            np.nan,
        )

        put_ex = pd.array(put_exercised(strikes.put_strike, actual), dtype="boolean")
        call_ex = pd.array(call_assigned(strikes.call_strike, actual), dtype="boolean")
        put_ex[~valid] = pd.NA
        call_ex[~valid] = pd.NA

        dates = prices.dates
        trades = pd.DataFrame(
            {
                "eval_index": idx,
                "as_of_date": dates[idx - 1] if idx.size else pd.DatetimeIndex([]),
                "expiry_date": dates[exp_pos] if idx.size else pd.DatetimeIndex([]),
                "reference_price": ref,
                "actual_price": actual,
                "n_obs": forecasts.n_obs,
                "put_quantile": forecasts.put_quantile,
                "call_quantile": forecasts.call_quantile,
                "put_strike": strikes.put_strike,
                "call_strike": strikes.call_strike,
                "put_exercised": put_ex,
                "call_exercised": call_ex,
                "put_return": put_ret,
                "call_return": call_ret,
                "skip_reason": pd.Series(reasons, dtype="object"),
            }
        )

        skipped = int((~valid).sum())
        if skipped:
            logger.debug(f"Skipped indices: {trades.loc[~valid, 'eval_index'].tolist()}")
        logger.info(f"Simulated {len(trades)} trades ({skipped} skipped)")
        return trades
