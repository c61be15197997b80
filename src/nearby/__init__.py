"""Proximity-based discovery of nearby listings and events."""

__version__ = "0.1.0"
