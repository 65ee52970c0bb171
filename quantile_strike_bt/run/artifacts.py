"""
Run artifacts: standardized output files for each backtest run.
"""

import json
import hashlib
import logging
import math
import random
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Dict, Any
import pandas as pd

logger = logging.getLogger(__name__)

# Run logs capture every module of the package
PACKAGE_LOGGER = "quantile_strike_bt"

TRADE_COLUMNS = [
    "eval_index",
    "as_of_date",
    "expiry_date",
    "reference_price",
    "actual_price",
    "n_obs",
    "put_quantile",
    "call_quantile",
    "put_strike",
    "call_strike",
    "put_exercised",
    "call_exercised",
    "put_return",
    "call_return",
    "buy_hold_return",
    "skip_reason",
]


def json_safe(value: Any) -> Any:
    """Replace NaN/inf with None (recursively) so the output is strict JSON"""
    if isinstance(value, dict):
        return {k: json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


class RunArtifacts:
    """
    Manages run artifacts (output files) for a backtest run.

    Each run writes to: runs/<run_id>/
    - config_resolved.json
    - manifest.json
    - trades.csv
    - summary.csv
    - metrics.json
    - results.xlsx (optional)
    - run.log
    """

    def __init__(
        self,
        run_dir: Path,
        run_id: str,
        config: Dict[str, Any],
        save_log: bool = True,
    ):
        """
        Initialize run artifacts writer.

        Args:
            run_dir: Root directory for runs (e.g., Path("runs"))
            run_id: Unique run ID (deterministic hash or timestamp-based)
            config: Resolved RunConfig as dictionary
            save_log: Attach a run.log file handler to the package logger
        """
        self.run_dir = Path(run_dir) / run_id
        self.run_id = run_id
        self.config = config

        # Create run directory
        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.log_file = self.run_dir / "run.log"
        self._file_handler = None
        if save_log:
            self._setup_logging()

    def _setup_logging(self):
        """Setup file logging for this run"""
        file_handler = logging.FileHandler(self.log_file, encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        file_handler.setFormatter(formatter)
        pkg_logger = logging.getLogger(PACKAGE_LOGGER)
        pkg_logger.addHandler(file_handler)
        if pkg_logger.getEffectiveLevel() > logging.INFO:
            pkg_logger.setLevel(logging.INFO)
        self._file_handler = file_handler

    def close(self):
        """Close file handlers"""
        if self._file_handler is not None:
            logging.getLogger(PACKAGE_LOGGER).removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def write_config_resolved(self):
        """Write resolved configuration file"""
        with open(self.run_dir / "config_resolved.json", "w", encoding="utf-8") as f:
            json.dump(json_safe(self.config), f, indent=2, default=str)

    def write_manifest(self, metadata: Dict[str, Any]):
        """Write manifest.json with run metadata"""
        manifest = {
            "run_id": self.run_id,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "config": self.config,
            **metadata,
        }

        with open(self.run_dir / "manifest.json", "w", encoding="utf-8") as f:
            json.dump(json_safe(manifest), f, indent=2, default=str)

    def write_trades(self, trades: pd.DataFrame):
        """
        Write trades.csv (one row per evaluation index, skipped rows included)
        """
        if trades.empty:
            trades = pd.DataFrame(columns=TRADE_COLUMNS)

        trades.to_csv(self.run_dir / "trades.csv", index=False)

    def write_summary(self, summary: pd.DataFrame):
        """
        Write summary.csv

        Expected columns: strategy, mean_return, std_return, tail_quantile, n_obs
        """
        summary.to_csv(self.run_dir / "summary.csv", index=False)

    def write_metrics(self, metrics: Dict[str, Any]):
        """Write metrics.json"""
        with open(self.run_dir / "metrics.json", "w", encoding="utf-8") as f:
            json.dump(json_safe(metrics), f, indent=2, default=str)


def generate_run_id(
    config: Dict[str, Any],
    mode: Literal["deterministic", "timestamp"] = "timestamp",
) -> str:
    """
    Generate run ID.

    Args:
        config: Resolved RunConfig as dictionary
        mode: "deterministic" (hash of config) or "timestamp" (YYYYMMDD-HHMMSS-<suffix>)

    Returns:
        Run ID string
    """
    if mode == "deterministic":
        # Hash of canonical JSON representation
        config_json = json.dumps(config, sort_keys=True, default=str)
        hash_hex = hashlib.sha256(config_json.encode("utf-8")).hexdigest()[:12]
        return f"run-{hash_hex}"

    elif mode == "timestamp":
        now = datetime.now(timezone.utc)
        timestamp_str = now.strftime("%Y%m%d-%H%M%S")
        # Short random suffix to avoid collisions
        suffix = random.randint(100, 999)
        return f"run-{timestamp_str}-{suffix}"

    else:
        raise ValueError(f"Invalid run_id_mode: {mode}")
