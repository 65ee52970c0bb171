"""
CLI entrypoint for running backtests.
"""

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from ..config import RunConfig, build_run_config, cli_overrides, env_overrides, load_config_dict, merge_overrides
from .runner import run_backtest, RunResult

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO"):
    """Setup logging configuration"""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _fmt_pct(x: Optional[float]) -> str:
    if x is None or x != x:
        return "n/a"
    return f"{x * 100:.2f}%"


def print_summary(result: RunResult):
    """Print backtest summary to console"""
    metrics = result.metrics

    print("\n" + "=" * 70)
    print("BACKTEST SUMMARY")
    print("=" * 70)
    print(f"Run ID: {result.run_id}")
    print(f"Run Directory: {result.run_dir}")
    print(f"Ticker: {result.ticker}")
    print("-" * 70)
    print(f"{'Strategy':<16}{'Mean':>12}{'Std Dev':>12}{'Drawdown':>12}{'N':>8}")
    for _, row in result.summary.iterrows():
        print(
            f"{row['strategy']:<16}{_fmt_pct(row['mean_return']):>12}{_fmt_pct(row['std_return']):>12}"
            f"{_fmt_pct(row['tail_quantile']):>12}{int(row['n_obs']):>8}"
        )
    print("-" * 70)
    print(f"Confidence Level: {metrics.get('confidence_level')}")
    print(f"Put Not Exercised: {_fmt_pct(metrics.get('put_hit_rate'))}")
    print(f"Call Not Assigned: {_fmt_pct(metrics.get('call_hit_rate'))}")
    print(
        f"Skipped Indices: {metrics.get('n_skipped', 0)} of {metrics.get('n_evaluated', 0)} "
        f"({_fmt_pct(metrics.get('skipped_fraction'))})"
    )
    for reason, count in (metrics.get("skip_counts") or {}).items():
        print(f"  - {reason}: {count}")
    print("=" * 70 + "\n")


def build_config(args: argparse.Namespace) -> RunConfig:
    """
    Resolve configuration: config file -> environment -> --set -> dedicated flags.

    Validation happens once, after every layer is merged.
    """
    config_dict: Dict[str, Any] = load_config_dict(args.config) if args.config else {}
    config_dict = merge_overrides(config_dict, env_overrides())
    config_dict = merge_overrides(config_dict, cli_overrides(args.sets or []))

    flags: Dict[str, Any] = {}
    if args.csv:
        flags.setdefault("data", {})["csv_path"] = args.csv
    if args.ticker:
        flags.setdefault("data", {})["ticker"] = args.ticker
    if args.confidence is not None:
        flags.setdefault("engine", {})["confidence_level"] = args.confidence
    if args.horizon is not None:
        flags.setdefault("engine", {})["horizon"] = args.horizon
    if args.window_years is not None:
        flags.setdefault("engine", {})["backtest_window_years"] = args.window_years
    if args.n_jobs is not None:
        flags.setdefault("engine", {})["n_jobs"] = args.n_jobs
    if args.excel:
        flags.setdefault("reporting", {})["save_excel"] = True
    config_dict = merge_overrides(config_dict, flags)

    config = build_run_config(config_dict)
    if config.data.provider == "csv" and not config.data.csv_path:
        raise ValueError("csv_path is required: pass --csv or set data.csv_path")
    return config


def cmd_dry_run(config: RunConfig, run_id_mode: str) -> str:
    """Dry run: resolve config and print run ID without executing"""
    from .artifacts import generate_run_id

    run_id = generate_run_id(config.model_dump(), mode=run_id_mode)

    print("\n" + "=" * 70)
    print("DRY RUN - Configuration Resolved")
    print("=" * 70)
    print(f"Run ID (mode: {run_id_mode}): {run_id}")
    print(f"Price CSV: {config.data.csv_path}")
    print(f"Confidence Level: {config.engine.confidence_level}")
    print(f"Horizon: {config.engine.horizon} sessions")
    print(f"Backtest Window: {config.engine.backtest_window_years or 'all'} years")
    print(f"Premiums: put {config.premiums.put_premium_rate}, call {config.premiums.call_premium_rate}")
    print("=" * 70 + "\n")

    return run_id


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Quantile Strike Backtest Engine - CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with config file
  python -m quantile_strike_bt.run --config configs/spy_weekly.yaml

  # Run without a config file
  qsbt --csv data/SPY.csv --ticker SPY --confidence 0.95 --horizon 5 --window-years 10

  # Override config values
  qsbt --config configs/spy_weekly.yaml --set premiums.put_premium_rate=0.009 --n-jobs -1

  # Dry run (resolve config without executing)
  qsbt --config configs/spy_weekly.yaml --dry-run
        """,
    )

    parser.add_argument("--config", type=str, help="Path to config file (YAML or JSON)")
    parser.add_argument("--csv", type=str, help="Path to price CSV (overrides data.csv_path)")
    parser.add_argument("--ticker", type=str, help="Ticker label for reports")
    parser.add_argument("--confidence", type=float, help="Confidence level alpha in (0, 1)")
    parser.add_argument("--horizon", type=int, help="Trading sessions to option expiry")
    parser.add_argument("--window-years", type=float, help="Backtest window in years")
    parser.add_argument("--n-jobs", type=int, help="Worker processes (-1 = all cores)")
    parser.add_argument(
        "--set",
        action="append",
        dest="sets",
        metavar="KEY=VALUE",
        help="Override config value (can be used multiple times). Use nested keys: engine.horizon=10",
    )
    parser.add_argument(
        "--run-id-mode",
        choices=["deterministic", "timestamp"],
        default="timestamp",
        help="Run ID generation mode (default: timestamp)",
    )
    parser.add_argument("--excel", action="store_true", help="Also write results.xlsx")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Resolve config and print run ID without executing",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint"""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    try:
        config = build_config(args)
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        logger.debug("Config resolution failed", exc_info=True)
        return 1

    if args.dry_run:
        cmd_dry_run(config, args.run_id_mode)
        return 0

    try:
        result = run_backtest(config, run_id_mode=args.run_id_mode)
        print_summary(result)
        return 0

    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130

    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        logger.exception("Backtest failed")
        return 1


if __name__ == "__main__":
    sys.exit(main())
