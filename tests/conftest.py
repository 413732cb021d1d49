"""Shared fixtures.

Tool tests run against an AsyncMock standing in for MedplumClient, so no
real Medplum server is needed. Every coroutine method of the mock is an
AsyncMock whose calls are recorded, which lets tests assert that a
rejected call never reached Medplum.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from medplum_tools.catalog import build_catalog
from medplum_tools.dispatcher import Dispatcher
from medplum_tools.tools import ALL_TOOLS


@pytest.fixture
def client() -> AsyncMock:
    """A mock MedplumClient with a session that is always available."""
    mock = AsyncMock()
    mock.ensure_session.return_value = None
    return mock


@pytest.fixture
def dispatcher(client: AsyncMock) -> Dispatcher:
    """A dispatcher over the full tool set, wired to the mock client."""
    return Dispatcher(build_catalog(ALL_TOOLS), client=client)


@pytest.fixture
def remote_calls(client: AsyncMock):  # type: ignore[no-untyped-def]
    """Names of the client methods called so far, except the session gate."""

    def calls() -> list[str]:
        return [name for name, _, _ in client.method_calls if name != "ensure_session"]

    return calls
