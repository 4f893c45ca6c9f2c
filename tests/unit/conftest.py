"""Shared fixtures for unit tests."""

import pytest
from fakes import FakeBackend


@pytest.fixture
def backend() -> FakeBackend:
    """Create an empty in-memory backend."""
    return FakeBackend()
