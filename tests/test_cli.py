"""
Tests for the command-line entrypoint.
"""

import json

from quantile_strike_bt.run.cli import build_config, build_parser, main


def test_dry_run(price_csv, tmp_path, capsys):
    """Test dry run resolves config without writing a run"""
    code = main(["--csv", str(price_csv), "--confidence", "0.9", "--horizon", "5", "--dry-run"])
    assert code == 0
    out = capsys.readouterr().out
    assert "DRY RUN" in out
    assert "Confidence Level: 0.9" in out
    assert not (tmp_path / "runs").exists()


def test_full_run(price_csv, tmp_path, capsys):
    """Test a complete CLI run with flags and --set overrides"""
    runs = tmp_path / "runs"
    code = main([
        "--csv", str(price_csv),
        "--ticker", "SYN",
        "--confidence", "0.85",
        "--horizon", "5",
        "--window-years", "1",
        "--set", f"reporting.run_dir_root={runs}",
        "--set", "engine.backend=threading",
        "--n-jobs", "2",
        "--run-id-mode", "deterministic",
    ])
    assert code == 0
    out = capsys.readouterr().out
    assert "BACKTEST SUMMARY" in out
    assert "naked_put" in out

    run_dirs = list(runs.iterdir())
    assert len(run_dirs) == 1
    with open(run_dirs[0] / "config_resolved.json") as f:
        resolved = json.load(f)
    assert resolved["engine"]["n_jobs"] == 2
    assert resolved["engine"]["backtest_window_years"] == 1.0


def test_flags_override_config_file(tmp_path, price_csv, monkeypatch):
    """Test precedence: config file, then environment, then --set, then flags"""
    cfg = tmp_path / "run.json"
    cfg.write_text(json.dumps({
        "data": {"csv_path": str(price_csv)},
        "engine": {"confidence_level": 0.9, "horizon": 5},
    }))
    monkeypatch.setenv("QSBT__engine__horizon", "10")

    args = build_parser().parse_args(["--config", str(cfg), "--set", "engine.horizon=15"])
    assert build_config(args).engine.horizon == 15

    args = build_parser().parse_args(["--config", str(cfg), "--set", "engine.horizon=15", "--horizon", "20"])
    assert build_config(args).engine.horizon == 20

    args = build_parser().parse_args(["--config", str(cfg)])
    assert build_config(args).engine.horizon == 10


def test_invalid_configuration_returns_error(price_csv, capsys):
    """Test that invalid configuration exits with code 1"""
    # Missing confidence level
    assert main(["--csv", str(price_csv), "--horizon", "5", "--dry-run"]) == 1
    assert "ERROR" in capsys.readouterr().err

    assert main(["--csv", str(price_csv), "--confidence", "1.5", "--horizon", "5", "--dry-run"]) == 1


def test_horizon_too_long_fails_run(price_csv, tmp_path):
    """Test that a horizon longer than the series fails the run"""
    code = main([
        "--csv", str(price_csv),
        "--confidence", "0.9",
        "--horizon", "5000",
        "--set", f"reporting.run_dir_root={tmp_path / 'runs'}",
    ])
    assert code == 1


def test_missing_csv_returns_error(capsys):
    """Test that the CLI requires a price source"""
    assert main(["--confidence", "0.9", "--horizon", "5", "--dry-run"]) == 1
    assert "csv_path" in capsys.readouterr().err
