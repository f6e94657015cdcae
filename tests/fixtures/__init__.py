# tests/fixtures/__init__.py
"""Shared test doubles for hydropulse tests."""

from tests.fixtures.backends import PluginBackend, RecordingBackend

__all__ = [
    "PluginBackend",
    "RecordingBackend",
]
