import asyncio
import time

import pytest

from nearby.config.settings import LocationSettings, Settings
from nearby.core.geo import Coordinate
from nearby.core.state import InMemoryStateStore, JsonFileStateStore
from nearby.location.provider import DENIED_FLAG_KEY, LocationProvider, PositionError, fix_attempts

HERE = Coordinate(latitude=40.7128, longitude=-74.006)

FAST = LocationSettings(
    fast_timeout_seconds=0.05,
    fast_maximum_age_seconds=60,
    retry_timeout_seconds=0.1,
    retry_maximum_age_seconds=300,
    grace_seconds=0.0,
)


class StubGeolocation:
    """Scripted platform: each request pops the next outcome (Coordinate, exception, or "hang")."""

    def __init__(self, outcomes, permission="prompt"):
        self.outcomes = list(outcomes)
        self.permission = permission
        self.requests = []
        self.permission_queries = 0

    async def request_current_position(self, *, high_accuracy, timeout_seconds, maximum_age_seconds):
        self.requests.append((high_accuracy, timeout_seconds, maximum_age_seconds))
        outcome = self.outcomes.pop(0)
        if outcome == "hang":
            await asyncio.sleep(3600)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def query_permission(self):
        self.permission_queries += 1
        if self.permission is None:
            raise NotImplementedError
        return self.permission


def run(coro):
    return asyncio.run(coro)


def test_unsupported_platform_degrades_without_error():
    provider = LocationProvider(None, InMemoryStateStore(), settings=FAST)
    assert run(provider.get_permission_state()) == "unsupported"
    assert run(provider.get_current_location()) is None


def test_first_fast_fix_is_returned():
    geo = StubGeolocation([HERE])
    provider = LocationProvider(geo, InMemoryStateStore(), settings=FAST)
    assert run(provider.get_current_location()) == HERE
    assert geo.requests == [(False, 0.05, 60)]


def test_timeout_retries_once_with_longer_timeout_and_older_cache():
    geo = StubGeolocation([PositionError("timeout"), HERE])
    provider = LocationProvider(geo, InMemoryStateStore(), settings=FAST)
    assert run(provider.get_current_location()) == HERE
    assert geo.requests == [(False, 0.05, 60), (False, 0.1, 300)]


def test_fix_attempt_queries_the_capability_passed_in():
    geo = StubGeolocation([HERE])
    provider = LocationProvider(None, InMemoryStateStore(), settings=FAST)
    fast, _ = fix_attempts(FAST)
    assert run(provider._try_fix(geo, fast)) == HERE
    assert geo.requests == [(False, 0.05, 60)]


def test_two_timeouts_give_up():
    geo = StubGeolocation([PositionError("timeout"), PositionError("timeout"), HERE])
    provider = LocationProvider(geo, InMemoryStateStore(), settings=FAST)
    assert run(provider.get_current_location()) is None
    assert len(geo.requests) == 2


def test_platform_that_never_answers_is_bounded():
    geo = StubGeolocation(["hang", "hang"])
    provider = LocationProvider(geo, InMemoryStateStore(), settings=FAST)

    started = time.monotonic()
    assert run(provider.get_current_location()) is None
    elapsed = time.monotonic() - started

    assert len(geo.requests) == 2
    assert elapsed < provider.max_wait_seconds + 1.0


def test_unavailable_position_does_not_retry():
    geo = StubGeolocation([PositionError("position_unavailable"), HERE])
    provider = LocationProvider(geo, InMemoryStateStore(), settings=FAST)
    assert run(provider.get_current_location()) is None
    assert len(geo.requests) == 1


def test_unexpected_platform_error_is_absorbed():
    geo = StubGeolocation([RuntimeError("bridge crashed")])
    provider = LocationProvider(geo, InMemoryStateStore(), settings=FAST)
    assert run(provider.get_current_location()) is None


def test_invalid_platform_coordinate_is_discarded():
    geo = StubGeolocation([Coordinate(latitude=123.0, longitude=0.0)])
    provider = LocationProvider(geo, InMemoryStateStore(), settings=FAST)
    assert run(provider.get_current_location()) is None


def test_denied_location_is_remembered_until_cleared():
    memory = InMemoryStateStore()
    geo = StubGeolocation([PositionError("permission_denied")], permission="prompt")
    provider = LocationProvider(geo, memory, settings=FAST)

    assert run(provider.get_current_location()) is None
    assert memory.get(DENIED_FLAG_KEY) is True

    # Next check answers from memory, without asking the platform or prompting again.
    assert run(provider.get_permission_state()) == "denied"
    assert geo.permission_queries == 0
    assert run(provider.get_current_location()) is None
    assert len(geo.requests) == 1

    provider.clear_denied_flag()
    assert run(provider.get_permission_state()) == "prompt"
    assert geo.permission_queries == 1


def test_permission_state_comes_from_platform_or_defaults_to_prompt():
    granted = LocationProvider(StubGeolocation([], permission="granted"), InMemoryStateStore(), settings=FAST)
    unknown = LocationProvider(StubGeolocation([], permission=None), InMemoryStateStore(), settings=FAST)
    assert run(granted.get_permission_state()) == "granted"
    assert run(unknown.get_permission_state()) == "prompt"


def test_denial_survives_a_new_session_with_file_store(tmp_path):
    path = tmp_path / "state" / "nearby.json"
    first = LocationProvider(StubGeolocation([PositionError("permission_denied")]), JsonFileStateStore(path), settings=FAST)
    assert run(first.get_current_location()) is None

    second = LocationProvider(StubGeolocation([]), JsonFileStateStore(path), settings=FAST)
    assert second.is_denied_remembered()
    assert run(second.get_permission_state()) == "denied"

    second.clear_denied_flag()
    assert not JsonFileStateStore(path).get(DENIED_FLAG_KEY)


def test_from_settings_uses_configured_state_path(tmp_path):
    settings = Settings(location=FAST.model_copy(update={"state_path": str(tmp_path / "loc.json")}))
    provider = LocationProvider.from_settings(settings, StubGeolocation([PositionError("permission_denied")]))
    assert run(provider.get_current_location()) is None
    assert JsonFileStateStore(tmp_path / "loc.json").get(DENIED_FLAG_KEY) is True
    assert provider.max_wait_seconds == pytest.approx(0.15)
