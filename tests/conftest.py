"""Shared fixtures for perch tests."""

import pytest


@pytest.fixture
def anyio_backend() -> str:
    """Run async tests on asyncio only (uvicorn, the host server, is asyncio-based)."""
    return "asyncio"
