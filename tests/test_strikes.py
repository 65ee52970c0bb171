"""
Tests for strike projection.
"""

import numpy as np
import pandas as pd
import pytest

from quantile_strike_bt.data.models import PriceSeries
from quantile_strike_bt.engine import (
    RollingQuantileEstimator,
    build_return_series,
    project_strike,
    project_strikes,
)
from quantile_strike_bt.engine.quantiles import QuantileForecasts
from quantile_strike_bt.engine.strikes import reference_prices


def _forecasts(indices, put_q, call_q, alpha=0.9):
    return QuantileForecasts(
        indices=np.asarray(indices, dtype=np.int64),
        put_quantile=np.asarray(put_q, dtype=float),
        call_quantile=np.asarray(call_q, dtype=float),
        n_obs=np.full(len(indices), 10, dtype=np.int64),
        confidence_level=alpha,
    )


def test_project_strike_scalar():
    """Test single strike projection"""
    assert project_strike(100.0, -0.05) == pytest.approx(95.0)
    assert project_strike(200.0, 0.1) == pytest.approx(220.0)
    assert np.isnan(project_strike(100.0, float("nan")))
    assert np.isnan(project_strike(None, 0.1))


def test_reference_price_is_previous_session():
    """Test reference price is the previous session's price"""
    prices = PriceSeries(pd.bdate_range("2024-01-01", periods=4), [10.0, 11.0, 12.0, 13.0])
    ref = reference_prices(prices, np.array([0, 1, 3]))
    assert np.isnan(ref[0])
    assert ref[1] == 10.0
    assert ref[2] == 12.0


def test_project_strikes_uses_reference_price():
    """Test strike arrays and missing forecasts"""
    prices = PriceSeries(pd.bdate_range("2024-01-01", periods=5), [100.0, 102.0, 101.0, 105.0, 104.0])
    fc = _forecasts([1, 3, 4], [-0.02, -0.05, np.nan], [0.03, 0.04, np.nan])
    strikes = project_strikes(fc, prices)

    np.testing.assert_allclose(strikes.reference_price, [100.0, 101.0, 105.0])
    np.testing.assert_allclose(strikes.put_strike[:2], [98.0, 95.95])
    np.testing.assert_allclose(strikes.call_strike[:2], [103.0, 105.04])
    # Missing forecasts stay missing
    assert np.isnan(strikes.put_strike[2]) and np.isnan(strikes.call_strike[2])
    assert list(strikes.to_frame()["eval_index"]) == [1, 3, 4]


def test_missing_reference_price_propagates():
    """Test missing reference prices give missing strikes"""
    prices = PriceSeries(pd.bdate_range("2024-01-01", periods=3), [np.nan, 102.0, 101.0])
    strikes = project_strikes(_forecasts([1, 2], [-0.01, -0.01], [0.01, 0.01]), prices)
    assert np.isnan(strikes.put_strike[0]) and np.isnan(strikes.call_strike[0])
    assert strikes.put_strike[1] == pytest.approx(100.98)


def test_strikes_move_apart_as_confidence_rises(gbm_prices):
    """Test strike monotonicity in alpha"""
    returns = build_return_series(gbm_prices, 5)
    indices = np.array([100, 250, 500])
    previous = None
    for alpha in (0.6, 0.75, 0.9, 0.97):
        fc = RollingQuantileEstimator(alpha, backend="sequential").estimate(returns, indices)
        strikes = project_strikes(fc, gbm_prices)
        assert (strikes.put_strike < strikes.call_strike).all()
        if previous is not None:
            assert (strikes.call_strike > previous.call_strike).all()
            assert (strikes.put_strike < previous.put_strike).all()
        previous = strikes
