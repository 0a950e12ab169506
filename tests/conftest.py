"""Root conftest: test infrastructure for all tests.

The timeline builder relies on asyncio primitives (asyncio.timeout,
asyncio.Semaphore), so anyio tests run on the asyncio backend only.
"""

from __future__ import annotations

import pytest


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
