"""Pytest configuration and shared fixtures."""

import pytest

from fakes import InMemoryStore


@pytest.fixture
def store():
    return InMemoryStore()
