"""Pytest configuration and shared fixtures."""

import pytest

from webview_ipc.channel import MockChannel


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
def channel() -> MockChannel:
    """Open in-memory channel standing in for the host."""
    return MockChannel()
