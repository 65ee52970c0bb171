"""
Tests for the return series builder.
"""

import numpy as np
import pandas as pd
import pytest

from quantile_strike_bt.data.models import PriceSeries
from quantile_strike_bt.engine.returns import build_return_series
from quantile_strike_bt.errors import InvalidHorizon


def _prices(values):
    return PriceSeries(dates=pd.bdate_range("2024-01-02", periods=len(values)), values=values)


def test_discrete_returns_single_period():
    """Test one-period discrete returns"""
    r = build_return_series(_prices([100.0, 110.0, 121.0, 133.1]), horizon=1)
    assert np.isnan(r.values[0])
    np.testing.assert_allclose(r.values[1:], [0.1, 0.1, 0.1])
    assert r.horizon == 1 and r.mode == "discrete"


def test_discrete_returns_multi_period_are_aligned():
    """Test n-period returns aligned with prices"""
    r = build_return_series(_prices([100.0, 110.0, 121.0, 133.1]), horizon=2)
    assert len(r) == 4
    assert np.isnan(r.values[:2]).all()
    np.testing.assert_allclose(r.values[2:], [0.21, 0.21])
    assert r.defined_count() == 2


def test_log_returns():
    """Test log returns"""
    r = build_return_series(_prices([100.0, 110.0, 121.0]), horizon=1, mode="log")
    np.testing.assert_allclose(r.values[1:], [np.log(1.1), np.log(1.1)])


def test_missing_and_zero_prices_give_missing_returns():
    """Test missing returns around missing or zero prices"""
    r = build_return_series(_prices([100.0, np.nan, 120.0, 130.0]), horizon=1)
    assert np.isnan(r.values[1]) and np.isnan(r.values[2])
    assert abs(r.values[3] - (130.0 / 120.0 - 1.0)) < 1e-12

    r = build_return_series(_prices([0.0, 10.0, 20.0]), horizon=1)
    assert np.isnan(r.values[1])
    assert abs(r.values[2] - 1.0) < 1e-12


def test_returns_are_read_only():
    """Test that return values cannot be modified"""
    r = build_return_series(_prices([1.0, 2.0, 3.0]), horizon=1)
    with pytest.raises(ValueError):
        r.values[1] = 0.0


@pytest.mark.parametrize("horizon", [0, -1, 4, 10])
def test_invalid_horizon(horizon):
    """Test horizon bounds"""
    with pytest.raises(InvalidHorizon):
        build_return_series(_prices([1.0, 2.0, 3.0, 4.0]), horizon=horizon)


def test_invalid_mode():
    """Test unsupported return mode"""
    with pytest.raises(ValueError, match="return mode"):
        build_return_series(_prices([1.0, 2.0, 3.0]), horizon=1, mode="pct")
