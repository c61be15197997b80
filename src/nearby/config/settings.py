# src/nearby/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/nearby/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `NEARBY_LOG_LEVEL`, `NEARBY_TIMEZONE`)
- an external YAML file via `NEARBY_CONFIG_PATH`

Design rule:
- Tuning knobs (radii, timeouts, history size) live in YAML, not hard-coded in search logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from nearby.core.env import load_dotenv_if_present


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `nearby.config`."""
    text = resources.files("nearby.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "Nearby"
    timezone: str = "America/New_York"
    log_level: str = "INFO"


class FallbackLocationSettings(BaseModel):
    latitude: float = Field(40.7128, ge=-90, le=90)
    longitude: float = Field(-74.006, ge=-180, le=180)
    label: str = "Search Area"


class SearchSettings(BaseModel):
    default_radius_km: float = Field(10.0, gt=0)
    expand_step_km: float = Field(10.0, gt=0)
    max_radius_km: float = Field(100.0, gt=0)
    min_results: int = Field(1, ge=0)
    default_price_range: tuple[float, float] = (0.0, 1000.0)
    fallback_location: FallbackLocationSettings = Field(default_factory=FallbackLocationSettings)

    @model_validator(mode="after")
    def _validate_radii(self) -> "SearchSettings":
        if self.default_radius_km > self.max_radius_km:
            raise ValueError("search.default_radius_km must not exceed search.max_radius_km")
        lo, hi = self.default_price_range
        if lo > hi:
            raise ValueError("search.default_price_range must be [min, max]")
        return self


class LocationSettings(BaseModel):
    fast_timeout_seconds: float = Field(5.0, gt=0)
    fast_maximum_age_seconds: float = Field(60.0, ge=0)
    retry_timeout_seconds: float = Field(10.0, gt=0)
    retry_maximum_age_seconds: float = Field(300.0, ge=0)
    # Extra allowance on top of each attempt's timeout before we stop waiting on the platform.
    grace_seconds: float = Field(1.0, ge=0)
    state_path: str = ".nearby/state.json"


class HistorySettings(BaseModel):
    recent_limit: int = Field(5, ge=1)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    location: LocationSettings = Field(default_factory=LocationSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("NEARBY_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    timezone = os.getenv("NEARBY_TIMEZONE")
    if timezone:
        data.setdefault("app", {})["timezone"] = timezone

    state_path = os.getenv("NEARBY_STATE_PATH")
    if state_path:
        data.setdefault("location", {})["state_path"] = state_path

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("NEARBY_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
