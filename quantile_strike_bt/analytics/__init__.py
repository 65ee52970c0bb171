"""
Analytics: performance aggregation and calibration diagnostics
"""

from .performance import (
    PerformanceAggregator,
    PerformanceSummary,
    StrategyPerformance,
    buy_and_hold_returns,
    summarize_returns,
    STRATEGY_COLUMNS,
)

__all__ = [
    "PerformanceAggregator",
    "PerformanceSummary",
    "StrategyPerformance",
    "buy_and_hold_returns",
    "summarize_returns",
    "STRATEGY_COLUMNS",
]
