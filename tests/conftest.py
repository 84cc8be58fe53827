"""Shared fixtures: a real aiohttp server and add-on files pointing at it."""

import asyncio
import json
import socket
import threading
from collections.abc import Generator
from contextlib import closing
from pathlib import Path

import pytest
from aiohttp import web

from addon_fetcher.config import load_addons
from addon_fetcher.data_types import AddonConfig
from tests.mock_server import (
    ADDONS,
    AUTHOR,
    ApiState,
    create_app,
    generate_curseforge_html,
    generate_wowinterface_html,
)


@pytest.fixture
def curseforge_html() -> str:
    return generate_curseforge_html(ADDONS[0])


@pytest.fixture
def wowinterface_html() -> str:
    return generate_wowinterface_html(ADDONS)


def find_free_port() -> int:
    """Find a free port on localhost."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


class AioHttpTestServer:
    """Wrapper to run aiohttp server in a background thread."""

    def __init__(self, app: web.Application, port: int) -> None:
        self.app = app
        self.port = port
        self.host = "127.0.0.1"
        self._loop: asyncio.AbstractEventLoop | None = None
        self._runner: web.AppRunner | None = None
        self._thread: threading.Thread | None = None
        self._started = threading.Event()

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run_server, daemon=True)
        self._thread.start()
        self._started.wait(timeout=5.0)

    def _run_server(self) -> None:
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        async def start() -> None:
            self._runner = web.AppRunner(self.app)
            await self._runner.setup()
            site = web.TCPSite(self._runner, self.host, self.port)
            await site.start()

        self._loop.run_until_complete(start())
        self._started.set()
        self._loop.run_forever()

    def stop(self) -> None:
        if self._loop and self._runner:
            runner = self._runner
            future = asyncio.run_coroutine_threadsafe(
                runner.cleanup(), self._loop
            )
            try:
                future.result(timeout=2.0)
            except Exception:
                pass  # Best effort cleanup

        if self._loop:
            self._loop.call_soon_threadsafe(self._loop.stop)

        if self._thread:
            self._thread.join(timeout=2.0)


@pytest.fixture
def api_state() -> ApiState:
    """State of the mock collection API, shared with the server."""
    return ApiState()


@pytest.fixture
def fetcher_server(
    api_state: ApiState,
) -> Generator[AioHttpTestServer, None, None]:
    """Start the mock sites and API on a random port."""
    server = AioHttpTestServer(create_app(api_state), find_free_port())
    server.start()
    yield server
    server.stop()


@pytest.fixture
def server_url(fetcher_server: AioHttpTestServer) -> str:
    return fetcher_server.url


@pytest.fixture
def api_url(server_url: str) -> str:
    return f"{server_url}/api"


def write_addons_file(path: Path, entries: list[dict]) -> Path:
    path.write_text(json.dumps(entries), encoding="utf-8")
    return path


@pytest.fixture
def addon_entries(server_url: str) -> list[dict]:
    """Config entries for every mock add-on, pointing at the test server."""
    return [
        {
            "name": addon.name,
            "curseforge": f"{server_url}/curseforge/{addon.slug}",
            "wowinterface": f"{server_url}/wowinterface/author-{AUTHOR}.html",
        }
        for addon in ADDONS
    ]


@pytest.fixture
def addons_file(tmp_path: Path, addon_entries: list[dict]) -> Path:
    return write_addons_file(tmp_path / "addons.json", addon_entries)


@pytest.fixture
def addon_config(addons_file: Path) -> AddonConfig:
    return load_addons(addons_file)


@pytest.fixture
def unused_url() -> str:
    """A URL nothing is listening on."""
    return f"http://127.0.0.1:{find_free_port()}/nothing-here"

