"""Shared test fixtures and helpers to reduce duplication."""

import asyncio
import typing as _t

import pytest

from dnet_tui.api.client import ApiClient
from dnet_tui.app import App
from dnet_tui.config import Config
from tests.fakes import FakeClient, FakeClock


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep config files written by tests out of the real home and cwd."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    for var in ("DNET_TUI_API_HOST", "DNET_TUI_API_PORT"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def fake_http(monkeypatch):
    """Install a FakeClient as httpx.AsyncClient and return it for setup."""
    fake = FakeClient()
    monkeypatch.setattr("httpx.AsyncClient", lambda: fake)
    return fake


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_app(clock):
    """Build an App against the default local API with a hand-driven clock."""

    def _make(config: _t.Optional[Config] = None) -> App:
        config = config or Config()
        return App(config, api=ApiClient.from_config(config), clock=clock)

    return _make


@pytest.fixture
def tick_until():
    """Run App.tick until ``cond`` holds, yielding to background tasks between ticks.

    Usage:
      assert await tick_until(app, lambda: app.is_api_online)
    """

    async def _tick(
        app: App, cond: _t.Callable[[], bool], max_ticks: int = 50
    ) -> bool:
        for _ in range(max_ticks):
            await app.tick()
            if cond():
                return True
            await asyncio.sleep(0.005)
        return False

    return _tick
