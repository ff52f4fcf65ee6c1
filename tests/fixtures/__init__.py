"""Test fixtures for pytest.

This module re-exports the in-memory gateway used by most unit tests.
"""

from .gateway import FakeChannel, FakeGateway, RecordedBinding

__all__ = [
    "FakeChannel",
    "FakeGateway",
    "RecordedBinding",
]
