"""
Shared fixtures: synthetic price series.
"""

import numpy as np
import pandas as pd
import pytest

from quantile_strike_bt.data.models import PriceSeries


def _gbm_prices(n: int = 600, seed: int = 7, start: str = "2010-01-04", ticker: str = "SYN") -> PriceSeries:
    """Geometric random walk with i.i.d. normal daily log returns"""
    rng = np.random.default_rng(seed)
    log_ret = rng.normal(0.0003, 0.01, n - 1)
    values = 100.0 * np.exp(np.concatenate([[0.0], np.cumsum(log_ret)]))
    return PriceSeries(dates=pd.bdate_range(start, periods=n), values=values, ticker=ticker)


@pytest.fixture
def price_factory():
    """Build seeded synthetic price series: price_factory(n=..., seed=...)"""
    return _gbm_prices


@pytest.fixture
def gbm_prices():
    return _gbm_prices()


@pytest.fixture
def price_csv(tmp_path, gbm_prices):
    """Synthetic prices written to a CSV with date/adjusted columns"""
    path = tmp_path / "SYN.csv"
    pd.DataFrame({"date": gbm_prices.dates.strftime("%Y-%m-%d"), "adjusted": gbm_prices.values}).to_csv(
        path, index=False
    )
    return path
