# src/nearby/location/provider.py
"""
Current-position provider.

Location is an optimization, never a requirement: every failure here (no
platform support, permission denied, no fix, timeout) degrades to `None` and a
log line, and the caller falls back to a typed-in address or a default area.

Fix strategy:
- a fast, low-accuracy attempt that accepts a recently cached position;
- on timeout only, one retry with a longer timeout and an older cache tolerance;
- each attempt is bounded by `asyncio.wait_for`, so the total wait is bounded
  even if the platform never calls back.

A permission denial is remembered through the injected `PermissionMemory`, so the
next session reports `denied` immediately instead of triggering a prompt that is
known to fail. `clear_denied_flag()` forgets it when the user asks to retry.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal, Protocol

from nearby.config.settings import LocationSettings, Settings
from nearby.core.env import resolve_project_path
from nearby.core.errors import InvalidCoordinateError
from nearby.core.geo import Coordinate, check_coordinate
from nearby.core.state import JsonFileStateStore, StateStore
from nearby.domain.models import PermissionState

logger = logging.getLogger(__name__)

DENIED_FLAG_KEY = "location_permission_denied"

PositionErrorCode = Literal["permission_denied", "position_unavailable", "timeout"]

# The denial memo only needs get/set/delete, so any StateStore will do.
PermissionMemory = StateStore


class PositionError(Exception):
    """Failure reported by the platform geolocation capability."""

    def __init__(self, code: PositionErrorCode, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code


class GeolocationCapability(Protocol):
    """What the host platform must provide (browser, OS service, or a test stub)."""

    async def request_current_position(
        self, *, high_accuracy: bool, timeout_seconds: float, maximum_age_seconds: float
    ) -> Coordinate: ...

    async def query_permission(self) -> PermissionState:
        """Return the platform permission status; raise NotImplementedError if unknown."""
        ...


@dataclass(frozen=True)
class FixAttempt:
    high_accuracy: bool
    timeout_seconds: float
    maximum_age_seconds: float


def fix_attempts(settings: LocationSettings) -> tuple[FixAttempt, FixAttempt]:
    return (
        FixAttempt(
            high_accuracy=False,
            timeout_seconds=settings.fast_timeout_seconds,
            maximum_age_seconds=settings.fast_maximum_age_seconds,
        ),
        FixAttempt(
            high_accuracy=False,
            timeout_seconds=settings.retry_timeout_seconds,
            maximum_age_seconds=settings.retry_maximum_age_seconds,
        ),
    )


class LocationProvider:
    def __init__(
        self,
        geolocation: GeolocationCapability | None,
        memory: PermissionMemory,
        *,
        settings: LocationSettings | None = None,
    ) -> None:
        self._geolocation = geolocation
        self._memory = memory
        self._settings = settings or LocationSettings()
        self._attempts = fix_attempts(self._settings)

    @classmethod
    def from_settings(cls, settings: Settings, geolocation: GeolocationCapability | None) -> "LocationProvider":
        """Provider with a durable JSON-file denial memo at `location.state_path`."""
        memory = JsonFileStateStore(resolve_project_path(settings.location.state_path))
        return cls(geolocation, memory, settings=settings.location)

    @property
    def max_wait_seconds(self) -> float:
        """Upper bound on how long `get_current_location` can take."""
        return sum(a.timeout_seconds + self._settings.grace_seconds for a in self._attempts)

    def is_denied_remembered(self) -> bool:
        return bool(self._memory.get(DENIED_FLAG_KEY))

    def clear_denied_flag(self) -> None:
        self._memory.delete(DENIED_FLAG_KEY)
        logger.info("Cleared remembered location permission denial.")

    def _remember_denied(self) -> None:
        try:
            self._memory.set(DENIED_FLAG_KEY, True)
        except OSError as exc:
            logger.warning("Could not persist location denial: %s", exc)

    async def get_permission_state(self) -> PermissionState:
        if self._geolocation is None:
            return "unsupported"
        if self.is_denied_remembered():
            return "denied"
        try:
            return await self._geolocation.query_permission()
        except NotImplementedError:
            return "prompt"
        except Exception as exc:
            logger.warning("Geolocation permission query failed; assuming prompt: %s", exc)
            return "prompt"

    async def get_current_location(self) -> Coordinate | None:
        """Best-effort current position; None means "not available, use manual entry"."""
        if self._geolocation is None:
            logger.debug("Geolocation unsupported on this platform.")
            return None
        if self.is_denied_remembered():
            logger.debug("Location permission previously denied; skipping prompt.")
            return None

        geolocation = self._geolocation
        for attempt_no, attempt in enumerate(self._attempts, start=1):
            outcome = await self._try_fix(geolocation, attempt)
            if isinstance(outcome, Coordinate):
                return outcome
            if outcome == "permission_denied":
                logger.info("Location permission denied; remembering for future sessions.")
                self._remember_denied()
                return None
            if outcome != "timeout":
                logger.info("Location unavailable (%s).", outcome)
                return None
            if attempt_no < len(self._attempts):
                logger.info(
                    "Location fix timed out after %.1fs; retrying with a longer timeout.",
                    attempt.timeout_seconds,
                )
        logger.info("Location fix timed out; giving up.")
        return None

    async def _try_fix(
        self, geolocation: GeolocationCapability, attempt: FixAttempt
    ) -> Coordinate | PositionErrorCode:
        request = geolocation.request_current_position(
            high_accuracy=attempt.high_accuracy,
            timeout_seconds=attempt.timeout_seconds,
            maximum_age_seconds=attempt.maximum_age_seconds,
        )
        try:
            coord = await asyncio.wait_for(request, timeout=attempt.timeout_seconds + self._settings.grace_seconds)
        except asyncio.TimeoutError:
            return "timeout"
        except PositionError as exc:
            return exc.code
        except Exception as exc:
            logger.warning("Geolocation capability failed: %s", exc)
            return "position_unavailable"

        try:
            return check_coordinate(coord)
        except InvalidCoordinateError as exc:
            logger.warning("Discarding invalid position from platform: %s", exc)
            return "position_unavailable"
