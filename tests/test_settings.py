from __future__ import annotations

import pytest

from nearby.config.settings import SearchSettings, get_logging_config, get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    # Settings are cached process-wide; clear around each test so env overrides apply.
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_packaged_defaults_load():
    settings = get_settings()
    assert settings.search.default_radius_km == 10
    assert settings.search.expand_step_km == 10
    assert settings.search.default_price_range == (0, 1000)
    assert settings.search.fallback_location.label == "Search Area"
    assert settings.location.retry_timeout_seconds > settings.location.fast_timeout_seconds
    assert settings.location.retry_maximum_age_seconds > settings.location.fast_maximum_age_seconds
    assert settings.history.recent_limit == 5


def test_env_overrides_are_applied(monkeypatch):
    monkeypatch.setenv("NEARBY_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("NEARBY_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("NEARBY_STATE_PATH", "/tmp/nearby-test-state.json")
    settings = get_settings()
    assert settings.app.log_level == "DEBUG"
    assert settings.app.timezone == "Europe/Berlin"
    assert settings.location.state_path == "/tmp/nearby-test-state.json"


def test_external_config_file(monkeypatch, tmp_path):
    cfg = tmp_path / "nearby.yaml"
    cfg.write_text("search:\n  default_radius_km: 25\n  max_radius_km: 50\n", encoding="utf-8")
    monkeypatch.setenv("NEARBY_CONFIG_PATH", str(cfg))
    settings = get_settings()
    assert settings.search.default_radius_km == 25
    assert settings.search.max_radius_km == 50
    assert settings.location.fast_timeout_seconds == 5


def test_inconsistent_search_settings_are_rejected():
    with pytest.raises(ValueError):
        SearchSettings(default_radius_km=200, max_radius_km=100)
    with pytest.raises(ValueError):
        SearchSettings(default_price_range=(10, 1))


def test_logging_config_is_a_dict_config():
    config = get_logging_config()
    assert config["version"] == 1
    assert "console" in config["handlers"]
