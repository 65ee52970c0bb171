"""
Configuration system: schemas and loaders
"""

from .schemas import (
    DataConfig,
    EngineConfig,
    PremiumConfig,
    ReportingConfig,
    RunConfig,
)
from .loader import (
    build_run_config,
    load_config,
    load_config_dict,
    apply_env_overrides,
    apply_cli_overrides,
    env_overrides,
    cli_overrides,
    merge_overrides,
)

__all__ = [
    "DataConfig",
    "EngineConfig",
    "PremiumConfig",
    "ReportingConfig",
    "RunConfig",
    "build_run_config",
    "load_config",
    "load_config_dict",
    "apply_env_overrides",
    "apply_cli_overrides",
    "env_overrides",
    "cli_overrides",
    "merge_overrides",
]
