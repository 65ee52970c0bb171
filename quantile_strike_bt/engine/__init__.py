"""
Simulation core: returns -> rolling quantiles -> strikes -> simulated trades
"""

from .returns import ReturnSeries, build_return_series
from .quantiles import (
    QuantileForecasts,
    RollingQuantileEstimator,
    empirical_quantile,
    prefix_quantiles,
)
from .strikes import StrikePairs, project_strike, project_strikes
from .simulator import (
    SimulatedTrade,
    TradeSimulator,
    simulate_trade,
    naked_put_return,
    covered_call_return,
)
from .window import evaluation_indices

__all__ = [
    "ReturnSeries",
    "build_return_series",
    "QuantileForecasts",
    "RollingQuantileEstimator",
    "empirical_quantile",
    "prefix_quantiles",
    "StrikePairs",
    "project_strike",
    "project_strikes",
    "SimulatedTrade",
    "TradeSimulator",
    "simulate_trade",
    "naked_put_return",
    "covered_call_return",
    "evaluation_indices",
]
