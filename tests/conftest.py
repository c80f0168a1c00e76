from __future__ import annotations

import pytest

from german_legal_mcp.core.browser import BeckBrowser
from german_legal_mcp.core.session_store import InMemorySessionStore
from tests.fakes import FakeLauncher, FakeSite, make_settings


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def launcher(site: FakeSite) -> FakeLauncher:
    return FakeLauncher(site)


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def browser(launcher: FakeLauncher, store: InMemorySessionStore) -> BeckBrowser:
    return BeckBrowser(make_settings(), store, launcher=launcher)
