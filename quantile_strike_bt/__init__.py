"""
Quantile Strike Backtest Engine

Forecasts option strikes from expanding-window empirical return quantiles and
backtests cash-secured puts and covered calls against buy-and-hold.
Every forecast is built only from returns observable before its evaluation date.
"""

__version__ = "0.1.0"
