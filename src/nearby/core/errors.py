"""
Engine error types.

Only caller contract violations are errors here. Location unavailability is a
normal outcome (the provider returns None), so it has no exception type.

Both concrete errors subclass `ValueError` so they can be raised from Pydantic
validators and caught by code that already treats bad input as `ValueError`.
"""

from __future__ import annotations


class DiscoveryError(Exception):
    """Base class for discovery engine errors."""


class InvalidCoordinateError(DiscoveryError, ValueError):
    """Latitude/longitude outside [-90, 90] / [-180, 180]."""


class InvalidFilterSpecError(DiscoveryError, ValueError):
    """Malformed FilterSpec (inverted price range, non-positive radius, ...)."""
