"""
Configuration schemas using Pydantic for validation and type safety.
"""

from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator

from ..errors import InvalidHorizon, validate_confidence_level


class DataConfig(BaseModel):
    """Price data source configuration"""
    provider: Literal["csv"] = Field(default="csv", description="Data provider type")
    csv_path: Optional[str] = Field(default=None, description="Path to price CSV file (required unless prices are passed in)")
    date_column: str = Field(default="date", description="Date column in the CSV")
    price_column: str = Field(default="adjusted", description="Adjusted price column in the CSV")
    ticker: Optional[str] = Field(default=None, description="Ticker label for reports (defaults to file stem)")
    fill_missing: Literal["ffill_bfill", "none"] = Field(
        default="ffill_bfill", description="How to fill missing prices before the run"
    )


class EngineConfig(BaseModel):
    """Forecast and simulation engine configuration"""
    confidence_level: float = Field(description="Confidence level alpha in (0, 1)")
    horizon: int = Field(description="Trading sessions between forecast and expiry")
    backtest_window_years: Optional[float] = Field(
        default=None, gt=0, description="Years back from the latest date to evaluate (None = all)"
    )
    return_mode: Literal["discrete", "log"] = Field(default="discrete", description="Return definition")
    min_observations: int = Field(default=2, ge=1, description="Minimum prefix observations per forecast")

    # Worker pool
    n_jobs: int = Field(default=1, description="joblib workers (-1 = all cores)")
    backend: Literal["loky", "threading", "sequential"] = Field(default="loky", description="joblib backend")
    chunks_per_worker: int = Field(default=4, ge=1, description="Interleaved chunks per worker")
    progress: bool = Field(default=False, description="Show a progress bar")

    @field_validator("confidence_level", mode="after")
    @classmethod
    def validate_confidence(cls, v):
        """Confidence level must lie strictly between 0 and 1"""
        return validate_confidence_level(v)

    @field_validator("horizon", mode="after")
    @classmethod
    def validate_horizon(cls, v):
        """Horizon must be positive; the upper bound depends on the price series"""
        if v <= 0:
            raise InvalidHorizon(f"Horizon must be positive, got {v}")
        return v

    @field_validator("n_jobs", mode="after")
    @classmethod
    def validate_n_jobs(cls, v):
        if v == 0:
            raise ValueError("n_jobs must be non-zero (use -1 for all cores)")
        return v


class PremiumConfig(BaseModel):
    """Option premium rates, as fractions of strike"""
    put_premium_rate: float = Field(default=0.0072, ge=0, description="Put premium / put strike")
    call_premium_rate: float = Field(default=0.0019, ge=0, description="Call premium / call strike")


class ReportingConfig(BaseModel):
    """Reporting configuration"""
    run_dir_root: str = Field(default="runs", description="Root directory for run outputs")
    drawdown_quantile: float = Field(default=0.025, gt=0, lt=1, description="Lower-tail quantile for drawdown")
    save_csv: bool = Field(default=True, description="Save CSV files")
    save_log: bool = Field(default=True, description="Save run log")
    save_excel: bool = Field(default=False, description="Save results.xlsx (openpyxl)")


class RunConfig(BaseModel):
    """Complete run configuration"""
    data: DataConfig = Field(default_factory=DataConfig)
    engine: EngineConfig
    premiums: PremiumConfig = Field(default_factory=PremiumConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)
