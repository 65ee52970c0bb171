"""
Excel export utility for backtest results.

Writes the summary table, calibration diagnostics and the per-date trade table to a
formatted workbook.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional
import pandas as pd

logger = logging.getLogger(__name__)

PCT_COLUMNS = [
    "put_quantile",
    "call_quantile",
    "put_return",
    "call_return",
    "buy_hold_return",
    "mean_return",
    "std_return",
    "tail_quantile",
]


def format_excel_sheet(writer, sheet_name: str, df: pd.DataFrame, freeze_panes: tuple = (1, 0)):
    """
    Format Excel sheet with proper styling using openpyxl.

    Args:
        writer: ExcelWriter object
        sheet_name: Name of the sheet
        df: DataFrame to format
        freeze_panes: Tuple of (row, col) to freeze panes
    """
    from openpyxl.styles import Font, PatternFill, Alignment, Border, Side

    worksheet = writer.sheets[sheet_name]

    # Header styling
    header_fill = PatternFill(start_color="D7E4BD", end_color="D7E4BD", fill_type="solid")
    header_font = Font(bold=True)
    header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
    thin = Side(style="thin")
    header_border = Border(left=thin, right=thin, top=thin, bottom=thin)

    for col_num, _ in enumerate(df.columns.values, start=1):
        cell = worksheet.cell(row=1, column=col_num)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = header_alignment
        cell.border = header_border

    for i, col in enumerate(df.columns, start=1):
        max_len = max(
            df[col].astype(str).str.len().max() if len(df) > 0 else 0,
            len(str(col))
        ) + 2
        column_letter = worksheet.cell(row=1, column=i).column_letter
        worksheet.column_dimensions[column_letter].width = min(max_len, 40)

        # Returns and quantiles read better as percentages
        if col in PCT_COLUMNS:
            for row in range(2, len(df) + 2):
                worksheet.cell(row=row, column=i).number_format = "0.00%"

    if freeze_panes:
        # openpyxl uses 1-indexed cells
        freeze_cell = worksheet.cell(row=freeze_panes[0] + 1, column=freeze_panes[1] + 1)
        worksheet.freeze_panes = freeze_cell


def _overview_rows(metrics: Dict[str, Any], manifest: Dict[str, Any]) -> pd.DataFrame:
    rows = []
    if manifest:
        rows.append(["Run ID", manifest.get("run_id", "N/A")])
        rows.append(["Ticker", manifest.get("ticker", "N/A")])
        rows.append(["First As-Of Date", manifest.get("first_as_of_date", "N/A")])
        rows.append(["Last As-Of Date", manifest.get("last_as_of_date", "N/A")])
        rows.append(["", ""])

    rows.append(["=== Calibration ===", ""])
    rows.append(["Confidence Level", metrics.get("confidence_level")])
    rows.append(["Put Not Exercised (%)", _pct(metrics.get("put_hit_rate"))])
    rows.append(["Call Not Assigned (%)", _pct(metrics.get("call_hit_rate"))])
    rows.append(["", ""])
    rows.append(["=== Coverage ===", ""])
    rows.append(["Evaluated Indices", metrics.get("n_evaluated", 0)])
    rows.append(["Simulated Trades", metrics.get("n_simulated", 0)])
    rows.append(["Skipped Indices", metrics.get("n_skipped", 0)])
    rows.append(["Skipped (%)", _pct(metrics.get("skipped_fraction"))])
    for reason, count in (metrics.get("skip_counts") or {}).items():
        rows.append([f"  {reason}", count])
    return pd.DataFrame(rows, columns=["Metric", "Value"])


def _pct(x: Optional[float]) -> str:
    if x is None or pd.isna(x):
        return "N/A"
    return f"{x * 100:.2f}"


def export_to_excel(
    run_dir: Path,
    output_path: Optional[Path] = None,
    trades: Optional[pd.DataFrame] = None,
    summary: Optional[pd.DataFrame] = None,
    metrics: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Export backtest results to Excel.

    Tables not passed in are read from the run directory (trades.csv, summary.csv,
    metrics.json, manifest.json).

    Args:
        run_dir: Path to run directory
        output_path: Optional custom output path (default: <run_dir>/results.xlsx)
        trades: Trade table
        summary: Performance summary table
        metrics: Metrics dictionary

    Returns:
        Path to created Excel file
    """
    run_dir = Path(run_dir)
    if output_path is None:
        output_path = run_dir / "results.xlsx"

    logger.info(f"Exporting backtest results to Excel: {output_path}")

    if trades is None and (run_dir / "trades.csv").exists():
        trades = pd.read_csv(run_dir / "trades.csv", parse_dates=["as_of_date", "expiry_date"])
    if summary is None and (run_dir / "summary.csv").exists():
        summary = pd.read_csv(run_dir / "summary.csv")
    if metrics is None and (run_dir / "metrics.json").exists():
        with open(run_dir / "metrics.json", "r", encoding="utf-8") as f:
            metrics = json.load(f)
    manifest: Dict[str, Any] = {}
    if (run_dir / "manifest.json").exists():
        with open(run_dir / "manifest.json", "r", encoding="utf-8") as f:
            manifest = json.load(f)

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        # 1. Overview
        overview = _overview_rows(metrics or {}, manifest)
        overview.to_excel(writer, sheet_name="Overview", index=False)
        format_excel_sheet(writer, "Overview", overview)

        # 2. Performance
        if summary is not None:
            summary.to_excel(writer, sheet_name="Performance", index=False)
            format_excel_sheet(writer, "Performance", summary)

        # 3. Trades
        if trades is not None:
            trades_out = trades.copy()
            for col in ("as_of_date", "expiry_date"):
                if col in trades_out.columns:
                    trades_out[col] = pd.to_datetime(trades_out[col]).dt.date
            trades_out.to_excel(writer, sheet_name="Trades", index=False)
            format_excel_sheet(writer, "Trades", trades_out)
            logger.info(f"Exported {len(trades_out)} trades to Excel")

    logger.info(f"Excel export complete: {output_path}")
    return output_path


def export_run_to_excel(run_id: str, runs_root: Path = Path("runs")) -> Path:
    """
    Export a specific run to Excel by run ID.

    Args:
        run_id: Run ID (e.g., "run-20260111-104522-948")
        runs_root: Root directory containing run folders

    Returns:
        Path to created Excel file
    """
    run_dir = Path(runs_root) / run_id

    if not run_dir.exists():
        raise FileNotFoundError(f"Run directory not found: {run_dir}")

    return export_to_excel(run_dir)
