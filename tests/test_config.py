import pytest

from fallen_angel.config import ConfigError, Settings, require_credentials
from fallen_angel.scanner.classifier import Thresholds


def test_defaults():
    cfg = Settings(_env_file=None)

    assert cfg.min_drawdown_pct == 60.0
    assert cfg.min_volume_change_pct == 15.0
    assert cfg.min_volume_change_pct_microcap == 50.0
    assert cfg.microcap_mcap_threshold == 100_000.0
    assert cfg.scan_interval_seconds == 300
    assert cfg.ath_refresh_margin == 1.05


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MIN_DRAWDOWN_PCT", "70")
    monkeypatch.setenv("SCAN_INTERVAL_SECONDS", "120")

    cfg = Settings(_env_file=None)

    assert cfg.min_drawdown_pct == 70.0
    assert cfg.scan_interval_seconds == 120
    assert Thresholds.from_settings(cfg).min_drawdown_pct == 70.0


def test_missing_credentials_are_reported_together():
    cfg = Settings(_env_file=None, jupiter_api_key="", solana_tracker_api_key="  ")

    with pytest.raises(ConfigError) as exc_info:
        require_credentials(cfg)

    assert "JUPITER_API_KEY" in str(exc_info.value)
    assert "SOLANA_TRACKER_API_KEY" in str(exc_info.value)


def test_credentials_present():
    cfg = Settings(_env_file=None, jupiter_api_key="a", solana_tracker_api_key="b")
    require_credentials(cfg)
