"""
Example runner script demonstrating programmatic backtest execution.

This calls the same run_backtest() function used by the CLI, then sweeps a few
confidence levels on the same prices to show how calibration moves with alpha.
"""

import sys
from pathlib import Path

from quantile_strike_bt.config import load_config
from quantile_strike_bt.run import run_backtest, sweep_confidence_levels
from quantile_strike_bt.run.runner import load_prices


def main():
    """Run example backtest"""
    config_path = Path(__file__).parent.parent / "configs" / "spy_weekly.yaml"

    if not config_path.exists():
        print(f"ERROR: Config file not found: {config_path}")
        return 1

    try:
        config = load_config(str(config_path))

        print(f"Running backtest with config: {config_path}")
        result = run_backtest(config, run_id_mode="timestamp")

        print("\n" + "=" * 70)
        print("BACKTEST COMPLETE")
        print("=" * 70)
        print(f"Run ID: {result.run_id}")
        print(f"Run Directory: {result.run_dir}")
        print("-" * 70)
        print(result.summary.to_string(index=False))
        metrics = result.metrics
        print(f"Put Not Exercised: {metrics['put_hit_rate']:.2%}")
        print(f"Call Not Assigned: {metrics['call_hit_rate']:.2%}")
        print("=" * 70)

        prices = load_prices(config)
        sweep = sweep_confidence_levels(prices, [0.8, 0.9, 0.95, 0.99], config.engine, config.premiums)
        print("\nConfidence sweep:")
        print(sweep[["confidence_level", "put_hit_rate", "call_hit_rate", "put_calibration_gap"]].to_string(index=False))

        return 0

    except Exception as e:
        print(f"ERROR: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
