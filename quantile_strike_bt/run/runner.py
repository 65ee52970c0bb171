"""
Backtest runner: orchestrates the backtest execution.

run_pipeline() is the pure simulation core (no I/O): prices -> returns -> rolling
quantiles -> strikes -> simulated trades -> performance summary.
run_backtest() resolves prices from the configured provider, runs the pipeline and
writes run artifacts. Both CLI and programmatic callers go through run_backtest().
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence

import numpy as np
import pandas as pd

from ..analytics.performance import (
    DEFAULT_DRAWDOWN_QUANTILE,
    PerformanceAggregator,
    PerformanceSummary,
    buy_and_hold_returns,
)
from ..config import EngineConfig, PremiumConfig, RunConfig
from ..data import CSVPriceProvider, PriceSeries
from ..engine import (
    QuantileForecasts,
    RollingQuantileEstimator,
    TradeSimulator,
    build_return_series,
    evaluation_indices,
    project_strikes,
)
from .artifacts import RunArtifacts, generate_run_id

logger = logging.getLogger(__name__)


@dataclass
class BacktestResult:
    """In-memory outputs of one pipeline run"""
    ticker: str
    trades: pd.DataFrame
    summary: PerformanceSummary
    forecasts: QuantileForecasts
    elapsed_seconds: float = 0.0

    @property
    def metrics(self) -> Dict[str, Any]:
        return self.summary.to_dict()


@dataclass
class RunResult:
    """Result of a backtest run"""
    run_id: str
    run_dir: Path
    ticker: str = ""
    metrics: Dict[str, Any] = field(default_factory=dict)
    trades: pd.DataFrame = field(default_factory=pd.DataFrame)
    summary: pd.DataFrame = field(default_factory=pd.DataFrame)
    config: Dict[str, Any] = field(default_factory=dict)


def run_pipeline(
    prices: PriceSeries,
    engine: EngineConfig,
    premiums: Optional[PremiumConfig] = None,
    drawdown_quantile: float = DEFAULT_DRAWDOWN_QUANTILE,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> BacktestResult:
    """
    Run the forecast and simulation pipeline on a price series.

    Args:
        prices: Gap-free adjusted price series
        engine: Engine configuration (alpha, horizon, window, worker pool)
        premiums: Premium rates (defaults to PremiumConfig())
        drawdown_quantile: Lower-tail quantile reported as drawdown
        should_cancel: Polled between evaluation chunks; True aborts with BacktestCancelled

    Returns:
        BacktestResult with the ordered trade table and the performance summary

    Raises:
        InvalidHorizon, InvalidConfidenceLevel, InvalidBacktestWindow: Before any computation
    """
    premiums = premiums or PremiumConfig()
    t0 = time.time()

    # Fatal configuration checks happen here, before any forecasting
    indices = evaluation_indices(prices, engine.horizon, engine.backtest_window_years)
    estimator = RollingQuantileEstimator(
        confidence_level=engine.confidence_level,
        n_jobs=engine.n_jobs,
        backend=engine.backend,
        chunks_per_worker=engine.chunks_per_worker,
        min_observations=engine.min_observations,
        progress=engine.progress,
    )
    aggregator = PerformanceAggregator(drawdown_quantile=drawdown_quantile, confidence_level=engine.confidence_level)

    returns = build_return_series(prices, engine.horizon, engine.return_mode)
    logger.info(
        f"{prices.ticker or 'series'}: {len(prices)} prices, {returns.defined_count()} defined "
        f"{engine.horizon}-session {engine.return_mode} returns"
    )

    forecasts = estimator.estimate(returns, indices, should_cancel=should_cancel)
    strikes = project_strikes(forecasts, prices)

    simulator = TradeSimulator(
        horizon=engine.horizon,
        put_premium_rate=premiums.put_premium_rate,
        call_premium_rate=premiums.call_premium_rate,
    )
    trades = simulator.simulate(forecasts, strikes, prices)
    trades["buy_hold_return"] = buy_and_hold_returns(trades["reference_price"], trades["actual_price"])
    # Keep skip_reason as the last column
    trades = trades[[c for c in trades.columns if c != "skip_reason"] + ["skip_reason"]]

    summary = aggregator.aggregate(trades)
    elapsed = time.time() - t0
    logger.info(f"Pipeline finished in {elapsed:.2f}s")

    return BacktestResult(
        ticker=prices.ticker,
        trades=trades,
        summary=summary,
        forecasts=forecasts,
        elapsed_seconds=elapsed,
    )


def load_prices(config: RunConfig) -> PriceSeries:
    """Resolve the price series from the configured provider"""
    if config.data.provider == "csv":
        if not config.data.csv_path:
            raise ValueError("csv_path is required for CSV provider")
        provider = CSVPriceProvider(
            csv_path=config.data.csv_path,
            date_column=config.data.date_column,
            price_column=config.data.price_column,
            ticker=config.data.ticker,
            fill_missing=config.data.fill_missing,
        )
        return provider.load()
    raise ValueError(f"Unsupported data provider: {config.data.provider}")


def run_backtest(
    config: RunConfig,
    run_id_mode: str = "timestamp",
    prices: Optional[PriceSeries] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> RunResult:
    """
    Run a backtest with the given configuration.

    Args:
        config: RunConfig instance
        run_id_mode: "deterministic" or "timestamp" for run ID generation
        prices: Pre-loaded price series (skips the configured provider)
        should_cancel: Optional cancellation poll, see run_pipeline()

    Returns:
        RunResult with metrics, DataFrames, and run_dir
    """
    logger.info("Starting backtest run...")

    config_dict = config.model_dump()
    run_id = generate_run_id(config_dict, mode=run_id_mode)
    artifacts = RunArtifacts(
        Path(config.reporting.run_dir_root), run_id, config_dict, save_log=config.reporting.save_log
    )

    try:
        logger.info(f"Run ID: {run_id}")
        logger.info(f"Run directory: {artifacts.run_dir}")

        artifacts.write_config_resolved()

        if prices is None:
            prices = load_prices(config)
        if config.data.ticker and not prices.ticker:
            prices = PriceSeries(prices.dates, prices.values, ticker=config.data.ticker)

        result = run_pipeline(
            prices,
            config.engine,
            config.premiums,
            drawdown_quantile=config.reporting.drawdown_quantile,
            should_cancel=should_cancel,
        )

        summary_df = result.summary.to_frame()
        metrics = result.metrics
        metrics["elapsed_seconds"] = result.elapsed_seconds

        trades = result.trades
        artifacts.write_manifest({
            "ticker": result.ticker,
            "n_prices": len(prices),
            "first_date": str(prices.dates[0].date()),
            "latest_date": str(prices.latest_date.date()),
            "first_as_of_date": str(trades["as_of_date"].iloc[0].date()) if len(trades) else None,
            "last_as_of_date": str(trades["as_of_date"].iloc[-1].date()) if len(trades) else None,
            "n_evaluated": result.summary.n_evaluated,
            "n_skipped": result.summary.n_skipped,
        })
        if config.reporting.save_csv:
            artifacts.write_trades(trades)
            artifacts.write_summary(summary_df)
        artifacts.write_metrics(metrics)

        if config.reporting.save_excel:
            from .excel_export import export_to_excel
            export_to_excel(artifacts.run_dir, trades=trades, summary=summary_df, metrics=metrics)

        logger.info(f"Backtest complete. Run ID: {run_id}")

        return RunResult(
            run_id=run_id,
            run_dir=artifacts.run_dir,
            ticker=result.ticker,
            metrics=metrics,
            trades=trades,
            summary=summary_df,
            config=config_dict,
        )

    except Exception as e:
        logger.error(f"Backtest failed: {e}", exc_info=True)
        raise
    finally:
        artifacts.close()


def sweep_confidence_levels(
    prices: PriceSeries,
    confidence_levels: Sequence[float],
    engine: EngineConfig,
    premiums: Optional[PremiumConfig] = None,
    drawdown_quantile: float = DEFAULT_DRAWDOWN_QUANTILE,
) -> pd.DataFrame:
    """
    Run the pipeline once per confidence level.

    Returns:
        DataFrame with one row per alpha: mean strikes, hit rates, calibration gaps
        and mean return per strategy
    """
    rows = []
    for alpha in confidence_levels:
        # Re-validated, so a bad alpha fails like a bad config
        eng = EngineConfig(**{**engine.model_dump(), "confidence_level": float(alpha)})
        res = run_pipeline(prices, eng, premiums, drawdown_quantile=drawdown_quantile)
        t = res.trades
        ok = t["skip_reason"].isna()
        row = {
            "confidence_level": eng.confidence_level,
            "mean_put_strike": float(np.nanmean(t.loc[ok, "put_strike"])) if ok.any() else float("nan"),
            "mean_call_strike": float(np.nanmean(t.loc[ok, "call_strike"])) if ok.any() else float("nan"),
            "put_hit_rate": res.summary.put_hit_rate,
            "call_hit_rate": res.summary.call_hit_rate,
            "put_calibration_gap": res.summary.put_hit_rate - eng.confidence_level,
            "call_calibration_gap": res.summary.call_hit_rate - eng.confidence_level,
            "n_simulated": res.summary.n_simulated,
        }
        for name, perf in res.summary.strategies.items():
            row[f"{name}_mean_return"] = perf.mean_return
        rows.append(row)
    return pd.DataFrame(rows)
