"""
Performance aggregation over the simulated trade table.

Missing values are excluded explicitly: every statistic is computed on the rows
without a skip_reason, and the number of skipped rows is reported next to it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..engine.quantiles import defined_values, empirical_quantile

logger = logging.getLogger(__name__)

DEFAULT_DRAWDOWN_QUANTILE = 0.025

# strategy name -> trade table column
STRATEGY_COLUMNS: Dict[str, str] = {
    "naked_put": "put_return",
    "covered_call": "call_return",
    "buy_and_hold": "buy_hold_return",
}


def buy_and_hold_returns(reference_price, actual_price) -> np.ndarray:
    """actual / reference - 1 per trade; NaN when either price is missing or the reference is zero"""
    ref = np.asarray(reference_price, dtype=float)
    act = np.asarray(actual_price, dtype=float)
    out = np.full(ref.shape, np.nan)
    ok = np.isfinite(ref) & np.isfinite(act) & (ref != 0)
    np.divide(act, ref, out=out, where=ok)
    return out - 1.0


@dataclass
class StrategyPerformance:
    strategy: str
    mean_return: float
    std_return: float
    tail_quantile: float
    n_obs: int


def summarize_returns(
    strategy: str,
    returns: np.ndarray,
    drawdown_quantile: float = DEFAULT_DRAWDOWN_QUANTILE,
) -> StrategyPerformance:
    """
    Mean, sample standard deviation and lower-tail quantile of the defined returns.

    Undefined statistics (empty sample, or std with one observation) are NaN.
    """
    sample = defined_values(returns)
    n = int(sample.size)
    mean = float(sample.mean()) if n > 0 else float("nan")
    std = float(sample.std(ddof=1)) if n > 1 else float("nan")
    return StrategyPerformance(
        strategy=strategy,
        mean_return=mean,
        std_return=std,
        tail_quantile=empirical_quantile(sample, drawdown_quantile),
        n_obs=n,
    )


@dataclass
class PerformanceSummary:
    """
    Summary statistics per strategy plus calibration and data-loss diagnostics.

    put_hit_rate is the fraction of simulated trades whose put expired unexercised,
    call_hit_rate the fraction whose call was not assigned. For a well-calibrated
    forecast both approximate the confidence level.
    """
    strategies: Dict[str, StrategyPerformance]
    drawdown_quantile: float
    put_hit_rate: float
    call_hit_rate: float
    n_evaluated: int
    n_simulated: int
    skip_counts: Dict[str, int] = field(default_factory=dict)
    confidence_level: Optional[float] = None

    @property
    def n_skipped(self) -> int:
        return self.n_evaluated - self.n_simulated

    @property
    def skipped_fraction(self) -> float:
        return self.n_skipped / self.n_evaluated if self.n_evaluated else 0.0

    def to_frame(self) -> pd.DataFrame:
        rows = [
            {
                "strategy": s.strategy,
                "mean_return": s.mean_return,
                "std_return": s.std_return,
                "tail_quantile": s.tail_quantile,
                "n_obs": s.n_obs,
            }
            for s in self.strategies.values()
        ]
        return pd.DataFrame(rows, columns=["strategy", "mean_return", "std_return", "tail_quantile", "n_obs"])

    def to_dict(self) -> Dict[str, Any]:
        metrics: Dict[str, Any] = {
            "confidence_level": self.confidence_level,
            "drawdown_quantile": self.drawdown_quantile,
            "n_evaluated": self.n_evaluated,
            "n_simulated": self.n_simulated,
            "n_skipped": self.n_skipped,
            "skipped_fraction": self.skipped_fraction,
            "skip_counts": dict(self.skip_counts),
            "put_hit_rate": self.put_hit_rate,
            "call_hit_rate": self.call_hit_rate,
        }
        for name, s in self.strategies.items():
            metrics[name] = {
                "mean_return": s.mean_return,
                "std_return": s.std_return,
                "tail_quantile": s.tail_quantile,
                "n_obs": s.n_obs,
            }
        return metrics


class PerformanceAggregator:
    """
    Reduce the simulated trade table to a PerformanceSummary.

    Args:
        drawdown_quantile: Lower-tail quantile level used as the drawdown proxy
        confidence_level: Forecast alpha, carried into the summary for the calibration check
    """

    def __init__(self, drawdown_quantile: float = DEFAULT_DRAWDOWN_QUANTILE, confidence_level: Optional[float] = None):
        if not (0.0 < float(drawdown_quantile) < 1.0):
            raise ValueError(f"drawdown_quantile must be in (0, 1), got {drawdown_quantile}")
        self.drawdown_quantile = float(drawdown_quantile)
        self.confidence_level = confidence_level

    def aggregate(self, trades: pd.DataFrame) -> PerformanceSummary:
        if "buy_hold_return" not in trades.columns:
            trades = trades.assign(
                buy_hold_return=buy_and_hold_returns(trades["reference_price"], trades["actual_price"])
            )

        simulated = trades["skip_reason"].isna().to_numpy()
        rows = trades.loc[simulated]

        strategies = {
            name: summarize_returns(name, rows[col].to_numpy(dtype=float), self.drawdown_quantile)
            for name, col in STRATEGY_COLUMNS.items()
        }

        n_sim = int(simulated.sum())
        if n_sim:
            put_hit = float((~rows["put_exercised"].astype(bool)).mean())
            call_hit = float((~rows["call_exercised"].astype(bool)).mean())
        else:
            put_hit = call_hit = float("nan")

        skip_counts = {
            str(k): int(v) for k, v in trades.loc[~simulated, "skip_reason"].value_counts().items()
        }
        summary = PerformanceSummary(
            strategies=strategies,
            drawdown_quantile=self.drawdown_quantile,
            put_hit_rate=put_hit,
            call_hit_rate=call_hit,
            n_evaluated=int(len(trades)),
            n_simulated=n_sim,
            skip_counts=skip_counts,
            confidence_level=self.confidence_level,
        )

        if summary.n_skipped:
            logger.info(
                f"Aggregated {n_sim} of {summary.n_evaluated} trades; "
                f"skipped {summary.n_skipped} ({summary.skipped_fraction:.1%}): {skip_counts}"
            )
        else:
            logger.info(f"Aggregated {n_sim} trades")
        return summary
