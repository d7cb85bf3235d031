"""Tests for configuration loading and validation."""

import pytest

from momentum_engine.config.loader import (
    deep_merge,
    load_config,
    load_trading_plan,
    resolved_config_hash,
    save_config,
)
from momentum_engine.config.schema import EngineConfig, EngineSettings

PLAN_YAML = """
settings:
  dry_run: true
plans:
  TSLA:
    atr:
      average: 12.5
    analysis:
      single_momentum_key_levels:
        - high: 250.5
          low: 250.0
  nvda:
    atr:
      average: 4.0
    market_cap_in_millions: 2500000
"""


def test_load_defaults_only():
    """Test loading the packaged defaults."""
    config = load_config()

    assert config.name == "momentum_engine"
    assert config.plans == {}
    assert config.settings == EngineSettings()


def test_load_user_config_merges_plan_defaults(tmp_path):
    """Test plans pick up plan_defaults and their symbol from the key."""
    path = tmp_path / "session.yaml"
    path.write_text(PLAN_YAML)

    config = load_config(path)

    assert config.settings.dry_run is True
    assert config.settings.batch_count == 10
    assert set(config.plans) == {"TSLA", "nvda"}

    tsla = config.plans["TSLA"]
    assert tsla.symbol == "TSLA"
    assert tsla.single_momentum_level().high == 250.5
    assert tsla.default_targets.initial_targets.rrr[0] == 0.85
    assert tsla.default_configs.sizing_count == 10

    nvda = config.plans["nvda"]
    assert nvda.symbol == "NVDA"
    assert nvda.market_cap_in_millions == 2500000


def test_plan_overrides_plan_defaults(tmp_path):
    """Test a plan's own values win over plan_defaults."""
    path = tmp_path / "session.yaml"
    path.write_text(
        """
plans:
  TSLA:
    atr:
      average: 12.5
    default_configs:
      sizing_count: 4
"""
    )

    config = load_config(path)

    assert config.plans["TSLA"].default_configs.sizing_count == 4


def test_missing_file(tmp_path):
    """Test a missing user file raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_invalid_settings(tmp_path):
    """Test invalid values are reported as ValueError."""
    path = tmp_path / "bad.yaml"
    path.write_text("settings:\n  batch_count: 0\n")

    with pytest.raises(ValueError, match="Config validation failed"):
        load_config(path)


def test_plan_without_atr(tmp_path):
    """Test a plan missing its ATR is rejected."""
    path = tmp_path / "bad.yaml"
    path.write_text("plans:\n  TSLA:\n    market_cap_in_millions: 10\n")

    with pytest.raises(ValueError, match="Config validation failed"):
        load_config(path)


def test_invalid_log_level(tmp_path):
    """Test unknown log levels are rejected."""
    path = tmp_path / "bad.yaml"
    path.write_text("log_level: LOUD\n")

    with pytest.raises(ValueError, match="Config validation failed"):
        load_config(path)


def test_exit_windows_order():
    """Test the hours window must be later than the seconds window."""
    with pytest.raises(ValueError, match="must be later"):
        EngineSettings(allow_all_exits_after_seconds=7200, allow_all_exits_after_hours=1.0)


def test_load_without_defaults(tmp_path):
    """Test use_defaults=False skips the packaged values."""
    path = tmp_path / "session.yaml"
    path.write_text("name: replay\n")

    config = load_config(path, use_defaults=False)

    assert config.name == "replay"
    assert config.settings == EngineSettings()


def test_deep_merge_does_not_mutate():
    """Test nested dicts merge without touching the inputs."""
    base = {"settings": {"dry_run": False, "batch_count": 10}, "name": "a"}
    override = {"settings": {"dry_run": True}}

    merged = deep_merge(base, override)

    assert merged == {"settings": {"dry_run": True, "batch_count": 10}, "name": "a"}
    assert base["settings"]["dry_run"] is False


def test_load_trading_plan():
    """Test validating a single plan dict."""
    plan = load_trading_plan({"symbol": " amd ", "atr": {"average": 3.0}})

    assert plan.symbol == "AMD"


def test_load_trading_plan_invalid():
    """Test malformed plans raise ValueError."""
    with pytest.raises(ValueError, match="Trading plan validation failed"):
        load_trading_plan({"symbol": "", "atr": {"average": 3.0}})


def test_config_hash_stable(trading_plan):
    """Test equal configs hash equally and changes alter the hash."""
    config = EngineConfig(plans={"TSLA": trading_plan})
    same = EngineConfig(plans={"TSLA": trading_plan})
    other = EngineConfig(plans={"TSLA": trading_plan}, settings=EngineSettings(dry_run=True))

    config_hash = resolved_config_hash(config)

    assert len(config_hash) == 16
    assert config_hash == resolved_config_hash(same)
    assert config_hash != resolved_config_hash(other)


def test_save_and_reload(tmp_path, trading_plan):
    """Test a saved config loads back to the same values."""
    config = EngineConfig(plans={"TSLA": trading_plan})
    path = tmp_path / "out" / "saved.yaml"

    save_config(config, path)
    loaded = load_config(path, use_defaults=False)

    assert resolved_config_hash(loaded) == resolved_config_hash(config)
