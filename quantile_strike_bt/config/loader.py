"""
Configuration loader with YAML/JSON support, environment overrides, and CLI overrides.
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml
from pydantic import ValidationError

from ..errors import BacktestError
from .schemas import RunConfig

ENV_PREFIX = "QSBT__"


def load_config_dict(path: str) -> Dict[str, Any]:
    """
    Read a YAML or JSON config file without validating it.

    Args:
        path: Path to config file

    Returns:
        Raw configuration dictionary

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file format is unsupported
    """
    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    suffix = config_path.suffix.lower()

    if suffix in [".yaml", ".yml"]:
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)
    elif suffix == ".json":
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = json.load(f)
    else:
        raise ValueError(f"Unsupported config file format: {suffix}. Use .yaml, .yml, or .json")

    return config_dict or {}


def load_config(path: str) -> RunConfig:
    """
    Load configuration from YAML or JSON file.

    Args:
        path: Path to config file

    Returns:
        RunConfig validated instance
    """
    return build_run_config(load_config_dict(path))


def build_run_config(config_dict: Dict[str, Any]) -> RunConfig:
    """
    Validate a configuration dictionary.

    Raises:
        InvalidConfidenceLevel, InvalidHorizon: When one of the engine validators rejected
            the value (the typed error is re-raised from the pydantic error)
        ValidationError: For every other invalid field
    """
    try:
        return RunConfig(**config_dict)
    except ValidationError as e:
        for err in e.errors():
            cause = (err.get("ctx") or {}).get("error")
            if isinstance(cause, BacktestError):
                raise cause from e
        raise


def parse_override_value(value: str) -> Any:
    """
    Parse an override value: JSON first, then true/false/null, numbers, and finally the raw string.
    """
    try:
        return json.loads(value)
    except (json.JSONDecodeError, ValueError):
        pass

    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "null":
        return None
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _set_nested(overrides: Dict[str, Any], key_parts: List[str], value: Any) -> None:
    """Place value at overrides[section][k1]...[kn]"""
    current = overrides
    for key in key_parts[:-1]:
        if key not in current or not isinstance(current[key], dict):
            current[key] = {}
        current = current[key]
    current[key_parts[-1]] = value


def merge_overrides(config_dict: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge section overrides into a config dictionary"""
    merged = dict(config_dict)
    for section, values in overrides.items():
        if isinstance(merged.get(section), dict) and isinstance(values, dict):
            merged[section] = _deep_merge(merged[section], values)
        else:
            merged[section] = values
    return merged


def env_overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Collect overrides from environment variables.

    Environment variables must follow pattern: QSBT__{section}__{key}
    Example: QSBT__engine__n_jobs=4
    """
    environ = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}

    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        # Normalize to lowercase for Windows compatibility (env vars are often uppercase)
        parts = key[len(ENV_PREFIX):].lower().split("__")
        if len(parts) < 2:
            continue

        _set_nested(overrides, parts, parse_override_value(value))

    return overrides


def cli_overrides(sets: List[str]) -> Dict[str, Any]:
    """
    Collect overrides from CLI --set key=value strings.

    Supports nested keys: engine.confidence_level=0.9 or premiums.put_premium_rate=0.01
    """
    overrides: Dict[str, Any] = {}

    for set_str in sets or []:
        if "=" not in set_str:
            raise ValueError(f"Invalid --set format: {set_str}. Expected 'key=value'")

        key_str, value_str = set_str.split("=", 1)
        key_parts = key_str.strip().split(".")
        if len(key_parts) < 2:
            raise ValueError(f"Invalid --set key format: {key_str}. Expected 'section.key' or 'section.nested.key'")

        _set_nested(overrides, key_parts, parse_override_value(value_str))

    return overrides


def apply_env_overrides(cfg: RunConfig) -> RunConfig:
    """
    Apply environment variable overrides to configuration.

    Args:
        cfg: Base RunConfig

    Returns:
        RunConfig with environment overrides applied (re-validated)
    """
    overrides = env_overrides()
    if not overrides:
        return cfg
    return build_run_config(merge_overrides(cfg.model_dump(), overrides))


def apply_cli_overrides(cfg: RunConfig, sets: List[str]) -> RunConfig:
    """
    Apply CLI --set key=value overrides to configuration.

    Args:
        cfg: Base RunConfig
        sets: List of "key=value" strings from CLI --set flags

    Returns:
        RunConfig with CLI overrides applied (re-validated)
    """
    if not sets:
        return cfg
    return build_run_config(merge_overrides(cfg.model_dump(), cli_overrides(sets)))


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries"""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
