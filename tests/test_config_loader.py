"""
Tests for config loader with overrides.
"""

import json
import os
import tempfile
import pytest
import yaml
from pathlib import Path
from pydantic import ValidationError

from quantile_strike_bt.config import (
    RunConfig,
    apply_cli_overrides,
    apply_env_overrides,
    build_run_config,
    cli_overrides,
    env_overrides,
    load_config,
    merge_overrides,
)
from quantile_strike_bt.config.loader import parse_override_value
from quantile_strike_bt.errors import InvalidConfidenceLevel, InvalidHorizon


BASE_CONFIG = {
    "data": {
        "provider": "csv",
        "csv_path": "/tmp/SPY.csv",
        "ticker": "SPY",
    },
    "engine": {
        "confidence_level": 0.95,
        "horizon": 5,
        "backtest_window_years": 10,
    },
    "premiums": {
        "put_premium_rate": 0.0072,
    },
}


@pytest.fixture
def temp_config_json():
    """Create a temporary JSON config file"""
    fd, path = tempfile.mkstemp(suffix=".json")
    with open(fd, "w") as f:
        json.dump(BASE_CONFIG, f)

    yield path

    Path(path).unlink()


def test_load_config_json(temp_config_json):
    """Test loading JSON config"""
    config = load_config(temp_config_json)
    assert isinstance(config, RunConfig)
    assert config.data.csv_path == "/tmp/SPY.csv"
    assert config.engine.confidence_level == 0.95
    assert config.engine.backtest_window_years == 10
    # Defaults fill the omitted sections
    assert config.premiums.call_premium_rate == 0.0019
    assert config.reporting.drawdown_quantile == 0.025
    assert config.engine.n_jobs == 1


def test_load_config_yaml(tmp_path):
    """Test loading YAML config"""
    path = tmp_path / "run.yaml"
    with open(path, "w") as f:
        yaml.safe_dump(BASE_CONFIG, f)

    config = load_config(str(path))
    assert isinstance(config, RunConfig)
    assert config.data.ticker == "SPY"


def test_load_config_errors(tmp_path):
    """Test missing files and unsupported formats"""
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))

    bad = tmp_path / "run.toml"
    bad.write_text("x = 1")
    with pytest.raises(ValueError):
        load_config(str(bad))


def test_csv_path_optional():
    """Test that a config without csv_path validates (prices may be passed in directly)"""
    config = RunConfig(engine={"confidence_level": 0.9, "horizon": 5})
    assert config.data.csv_path is None
    assert config.data.provider == "csv"


def test_typed_errors_from_config_files(tmp_path):
    """Test that bad alpha or horizon raise the engine error types"""
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({**BASE_CONFIG, "engine": {"confidence_level": 1.5, "horizon": 5}}))
    with pytest.raises(InvalidConfidenceLevel):
        load_config(str(path))

    path.write_text(json.dumps({**BASE_CONFIG, "engine": {"confidence_level": 0.9, "horizon": 0}}))
    with pytest.raises(InvalidHorizon):
        load_config(str(path))

    # Other invalid fields keep the pydantic error
    with pytest.raises(ValidationError):
        build_run_config({**BASE_CONFIG, "premiums": {"put_premium_rate": -1}})


def test_typed_errors_from_overrides(temp_config_json):
    """Test that overrides are re-validated with the engine error types"""
    config = load_config(temp_config_json)
    with pytest.raises(InvalidConfidenceLevel):
        apply_cli_overrides(config, ["engine.confidence_level=0"])
    with pytest.raises(InvalidHorizon):
        apply_cli_overrides(config, ["engine.horizon=-3"])


def test_engine_validation():
    """Test engine field constraints"""
    with pytest.raises(ValidationError):
        RunConfig(data=BASE_CONFIG["data"], engine={"confidence_level": 0.0, "horizon": 5})
    with pytest.raises(ValidationError):
        RunConfig(data=BASE_CONFIG["data"], engine={"confidence_level": 0.9, "horizon": 5, "n_jobs": 0})
    with pytest.raises(ValidationError):
        RunConfig(data=BASE_CONFIG["data"], engine={"confidence_level": 0.9, "horizon": 5, "backtest_window_years": -1})


def test_apply_env_overrides(temp_config_json):
    """Test environment variable overrides"""
    os.environ["QSBT__engine__n_jobs"] = "4"

    try:
        config = load_config(temp_config_json)
        config = apply_env_overrides(config)

        assert config.engine.n_jobs == 4

    finally:
        os.environ.pop("QSBT__engine__n_jobs", None)


def test_env_overrides_uppercase_keys():
    """Test that uppercase environment keys are normalized"""
    overrides = env_overrides({"QSBT__ENGINE__HORIZON": "10", "QSBT__nosection": "1", "OTHER": "x"})
    assert overrides == {"engine": {"horizon": 10}}


def test_apply_cli_overrides(temp_config_json):
    """Test CLI --set overrides"""
    config = load_config(temp_config_json)

    config = apply_cli_overrides(config, ["engine.horizon=10"])
    assert config.engine.horizon == 10
    # Untouched keys survive the merge
    assert config.engine.confidence_level == 0.95


def test_apply_cli_overrides_typed(temp_config_json):
    """Test that CLI overrides parse types correctly"""
    config = load_config(temp_config_json)

    # Integer
    config = apply_cli_overrides(config, ["engine.n_jobs=8"])
    assert config.engine.n_jobs == 8
    assert isinstance(config.engine.n_jobs, int)

    # Float
    config = apply_cli_overrides(config, ["premiums.put_premium_rate=0.009"])
    assert config.premiums.put_premium_rate == 0.009

    # Boolean
    config = apply_cli_overrides(config, ["reporting.save_excel=true"])
    assert config.reporting.save_excel is True

    # Null
    config = apply_cli_overrides(config, ["engine.backtest_window_years=null"])
    assert config.engine.backtest_window_years is None

    # JSON parsing
    config = apply_cli_overrides(config, ['data.ticker="QQQ"'])
    assert config.data.ticker == "QQQ"


def test_cli_override_format_errors():
    """Test malformed --set strings"""
    with pytest.raises(ValueError):
        cli_overrides(["engine.horizon"])
    with pytest.raises(ValueError):
        cli_overrides(["horizon=5"])


def test_parse_override_value():
    """Test override value parsing"""
    assert parse_override_value("5") == 5
    assert parse_override_value("0.5") == 0.5
    assert parse_override_value("True") is True
    assert parse_override_value("SPY") == "SPY"


def test_merge_overrides_is_deep():
    """Test that merging keeps sibling keys and leaves the input untouched"""
    merged = merge_overrides(BASE_CONFIG, {"engine": {"horizon": 20}})
    assert merged["engine"] == {"confidence_level": 0.95, "horizon": 20, "backtest_window_years": 10}
    assert BASE_CONFIG["engine"]["horizon"] == 5
