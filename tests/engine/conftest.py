"""Fixtures for engine tests."""

from widget_app import engine, recorder, registry, requesting, widgets  # noqa: F401
