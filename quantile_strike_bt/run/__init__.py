"""
Run module: backtest runner, CLI, and artifacts.
"""

from .runner import run_backtest, run_pipeline, sweep_confidence_levels, BacktestResult, RunResult
from .artifacts import RunArtifacts, generate_run_id
from .excel_export import export_to_excel, export_run_to_excel

__all__ = [
    "run_backtest",
    "run_pipeline",
    "sweep_confidence_levels",
    "BacktestResult",
    "RunResult",
    "RunArtifacts",
    "generate_run_id",
    "export_to_excel",
    "export_run_to_excel",
]
