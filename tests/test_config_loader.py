import pytest

from shared.config.config_loader import expand_env, load_config
from shared.config.schema import MainConfig


def _write(tmp_path, text):
    path = tmp_path / "cfg.yml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_example_config_expands_env(monkeypatch, repo_root):
    monkeypatch.setenv("DEEPSEEK_API_KEY", "dummy_key")
    cfg = load_config(str(repo_root / "config" / "config.yml"), load_env=False)
    assert isinstance(cfg, MainConfig)
    assert cfg.decision.api_key == "dummy_key"
    assert cfg.timeframe_minutes == 5
    assert cfg.risk.circuit_breaker_recovery_minutes == 60
    assert cfg.backtest is not None and cfg.backtest.start < cfg.backtest.end
    assert cfg.indicators.factors == [{"name": "atr", "period": 14}]


def test_missing_env_var_raises(monkeypatch, repo_root):
    monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)
    with pytest.raises(ValueError) as exc:
        load_config(str(repo_root / "config" / "config.yml"), load_env=False)
    assert "Missing environment variable: DEEPSEEK_API_KEY" in str(exc.value)


def test_offline_config_needs_no_secrets(repo_root):
    cfg = load_config(str(repo_root / "config" / "offline.yml"), load_env=False)
    assert cfg.decision.provider == "hold"
    assert cfg.market_data.source == "fake"


def test_unknown_key_suggests_fix(tmp_path):
    path = _write(tmp_path, "risk:\n  max_drawdwn: 0.1\n")
    with pytest.raises(ValueError, match="did you mean 'max_drawdown'"):
        load_config(path, load_env=False)


def test_unknown_top_level_key(tmp_path):
    with pytest.raises(ValueError, match="config contains unknown keys: timeframes"):
        load_config(_write(tmp_path, "timeframes: 5m\n"), load_env=False)


def test_backtest_range_must_be_ordered(tmp_path):
    path = _write(tmp_path, 'backtest:\n  start: "2024-02-01T00:00:00Z"\n  end: "2024-01-01T00:00:00Z"\n')
    with pytest.raises(ValueError, match="backtest.start must be before backtest.end"):
        load_config(path, load_env=False)


def test_backtest_requires_start_and_end(tmp_path):
    with pytest.raises(ValueError, match="config.backtest.end"):
        load_config(_write(tmp_path, 'backtest:\n  start: "2024-01-01"\n'), load_env=False)


def test_invalid_timeframe_rejected(tmp_path):
    with pytest.raises(ValueError, match="Invalid timeframe format"):
        load_config(_write(tmp_path, "timeframe: 5x\n"), load_env=False)


def test_deepseek_provider_requires_key(tmp_path):
    with pytest.raises(ValueError, match="decision.api_key is required"):
        load_config(_write(tmp_path, "decision:\n  provider: deepseek\n"), load_env=False)


def test_risk_ranges_validated(tmp_path):
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, "risk:\n  max_position_size: 1.5\n"), load_env=False)


def test_missing_file():
    with pytest.raises(FileNotFoundError):
        load_config("does/not/exist.yml")


def test_dotenv_file_is_loaded(tmp_path, monkeypatch):
    monkeypatch.delenv("CW_TEST_KEY", raising=False)
    (tmp_path / ".env").write_text("CW_TEST_KEY=from_dotenv\n", encoding="utf-8")
    path = _write(tmp_path, "decision:\n  provider: deepseek\n  api_key: ${CW_TEST_KEY}\n")
    cfg = load_config(path)
    assert cfg.decision.api_key == "from_dotenv"
    monkeypatch.delenv("CW_TEST_KEY", raising=False)


def test_expand_env_recurses(monkeypatch):
    monkeypatch.setenv("CW_A", "x")
    assert expand_env({"a": ["${CW_A}", {"b": "pre-${CW_A}"}], "n": 3}) == {"a": ["x", {"b": "pre-x"}], "n": 3}
