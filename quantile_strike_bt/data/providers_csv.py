"""
CSV price provider.

Reads a date/price CSV into a PriceSeries. Non-trading gaps inside the series
can be forward/backward filled so the engine receives a gap-free series.
"""

import logging
from pathlib import Path
from typing import Literal, Optional
import pandas as pd

from .models import PriceSeries

logger = logging.getLogger(__name__)

FillMode = Literal["ffill_bfill", "none"]


class CSVPriceProvider:
    """
    Load adjusted prices from a CSV file.

    Expected columns: a date column and a price column (names configurable).
    Unparseable prices become NaN, duplicate dates keep the last row.
    """

    def __init__(
        self,
        csv_path: str,
        date_column: str = "date",
        price_column: str = "adjusted",
        ticker: Optional[str] = None,
        fill_missing: FillMode = "ffill_bfill",
    ):
        self.csv_path = Path(csv_path)
        self.date_column = date_column
        self.price_column = price_column
        self.ticker = ticker
        self.fill_missing = fill_missing

    def load(self) -> PriceSeries:
        if not self.csv_path.exists():
            raise FileNotFoundError(f"Price CSV not found: {self.csv_path}")

        df = pd.read_csv(self.csv_path)
        for col in (self.date_column, self.price_column):
            if col not in df.columns:
                raise ValueError(
                    f"Column '{col}' not found in {self.csv_path}. Available: {list(df.columns)}"
                )

        dates = pd.to_datetime(df[self.date_column], errors="coerce")
        prices = pd.to_numeric(df[self.price_column], errors="coerce")
        series = pd.Series(prices.to_numpy(dtype=float), index=dates)

        # Rows without a parseable date cannot be placed in time
        bad_dates = int(series.index.isna().sum())
        if bad_dates:
            logger.warning(f"Dropping {bad_dates} rows with unparseable dates")
            series = series[series.index.notna()]

        series = series.sort_index(kind="mergesort")
        dupes = int(series.index.duplicated(keep="last").sum())
        if dupes:
            logger.warning(f"Dropping {dupes} duplicate dates (keeping last)")
            series = series[~series.index.duplicated(keep="last")]

        filled = fill_price_gaps(series, self.fill_missing)
        prices_out = PriceSeries.from_series(filled, ticker=self.ticker or self.csv_path.stem)
        if len(prices_out):
            logger.info(
                f"Loaded {len(prices_out)} prices for {prices_out.ticker} "
                f"({prices_out.dates[0].date()} to {prices_out.latest_date.date()})"
            )
        return prices_out


def fill_price_gaps(series: pd.Series, mode: FillMode = "ffill_bfill") -> pd.Series:
    """
    Fill missing prices.

    Args:
        series: Price series sorted by date
        mode: "ffill_bfill" (carry last price forward, then back-fill leading gaps) or "none"

    Returns:
        New series with gaps filled according to mode
    """
    missing = int(series.isna().sum())
    if mode == "none" or missing == 0:
        return series.copy()
    if mode != "ffill_bfill":
        raise ValueError(f"Unsupported fill mode: {mode}")
    logger.info(f"Filling {missing} missing prices (forward, then backward)")
    return series.ffill().bfill()
