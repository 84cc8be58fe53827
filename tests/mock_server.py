"""Mock CurseForge, WoWInterface and collection API for tests.

One aiohttp application serves all three:

- ``/curseforge/{slug}``: a project page with ``<dt>Downloads</dt><dd>N</dd>``.
- ``/wowinterface/author-{author}.html``: an author listing, one table row
  per add-on with the download count in the last cell.
- ``/api/addons`` and friends: a collection API that records every call.
- ``/status/{code}``: replies with that status.
- ``/broken``: a page with none of the expected structure.
"""

from dataclasses import dataclass, field
from typing import Any

from aiohttp import web


@dataclass
class MockAddon:
    """An add-on published on both sites."""

    name: str
    slug: str
    curseforge_downloads: int
    wowinterface_downloads: int


ADDONS: list[MockAddon] = [
    MockAddon("GoldCounter", "goldcounter", 1234, 5678),
    MockAddon("Bag Sorter", "bag-sorter", 10, 20),
    MockAddon("QuestLog Plus", "questlog-plus", 12500, 3400),
]

AUTHOR = "318870"


def generate_curseforge_html(addon: MockAddon) -> str:
    return f"""
    <html>
    <head><title>{addon.name} - Addons - CurseForge</title></head>
    <body>
        <div class="project-details">
            <dl>
                <dt>Game Version</dt>
                <dd>10.2.0</dd>
                <dt>Downloads</dt>
                <dd>{addon.curseforge_downloads}</dd>
                <dt>Last Released File</dt>
                <dd>2024-01-15</dd>
            </dl>
        </div>
    </body>
    </html>
    """


def generate_wowinterface_row(name: str, downloads: str) -> str:
    return f"""
            <tr>
                <td class="title">
                    <div class="name">
                        <a href="/downloads/info-{name}.html">{name}</a>
                    </div>
                </td>
                <td class="version">1.0</td>
                <td class="stats"><div class="downloads">{downloads}</div><div class="favs">12</div></td>
            </tr>
    """


def generate_wowinterface_html(addons: list[MockAddon]) -> str:
    rows = "".join(
        generate_wowinterface_row(a.name, str(a.wowinterface_downloads))
        for a in addons
    )
    return f"""
    <html>
    <head><title>WoWInterface : Author Portal</title></head>
    <body>
        <table class="author-files">
            <tbody>
            {rows}
            </tbody>
        </table>
    </body>
    </html>
    """


@dataclass
class ApiState:
    """What the mock collection API knows and what it was asked."""

    known: set[str] = field(default_factory=set)
    calls: list[tuple[str, str, Any]] = field(default_factory=list)
    headers: list[dict[str, str]] = field(default_factory=list)
    fail: dict[str, int] = field(default_factory=dict)

    def status_for(self, route: str) -> int:
        return self.fail.get(route, 200)


def create_app(api_state: ApiState | None = None) -> web.Application:
    """Create the aiohttp application.

    Args:
        api_state: Shared state for the collection API. Tests keep a
            reference to inspect calls; failures are injected through
            ``api_state.fail[route] = status`` where route is
            ``"list"``, ``"create"`` or ``"update"``.
    """
    state = api_state or ApiState()
    app = web.Application()
    app["api_state"] = state
    by_slug = {a.slug: a for a in ADDONS}

    async def curseforge(request: web.Request) -> web.Response:
        addon = by_slug.get(request.match_info["slug"])
        if addon is None:
            return web.Response(status=404, text="Not Found")
        return web.Response(
            text=generate_curseforge_html(addon), content_type="text/html"
        )

    async def wowinterface(request: web.Request) -> web.Response:
        if request.match_info["author"] != AUTHOR:
            return web.Response(status=404, text="Not Found")
        return web.Response(
            text=generate_wowinterface_html(ADDONS), content_type="text/html"
        )

    async def status(request: web.Request) -> web.Response:
        code = int(request.match_info["code"])
        return web.Response(status=code, text=f"status {code}")

    async def broken(request: web.Request) -> web.Response:
        return web.Response(
            text="<html><body><p>Maintenance</p></body></html>",
            content_type="text/html",
        )

    def _record(request: web.Request, route: str, body: Any) -> int:
        state.calls.append((route, request.match_info.get("name", ""), body))
        state.headers.append(
            {key.lower(): value for key, value in request.headers.items()}
        )
        return state.status_for(route)

    async def list_addons(request: web.Request) -> web.Response:
        code = _record(request, "list", None)
        if code != 200:
            return web.Response(status=code, text="list failed")
        return web.json_response(sorted(state.known))

    async def create_addon(request: web.Request) -> web.Response:
        body = await request.json()
        code = _record(request, "create", body)
        if code != 200:
            return web.Response(status=code, text="create failed")
        state.known.add(request.match_info["name"])
        return web.json_response({"ok": True})

    async def update_downloads(request: web.Request) -> web.Response:
        body = await request.json()
        code = _record(request, "update", body)
        if code != 200:
            return web.Response(status=code, text="update failed")
        return web.json_response({"ok": True})

    app.router.add_get("/curseforge/{slug}", curseforge)
    app.router.add_get(r"/wowinterface/author-{author:\d+}.html", wowinterface)
    app.router.add_get("/status/{code}", status)
    app.router.add_get("/broken", broken)
    app.router.add_get("/api/addons", list_addons)
    app.router.add_post("/api/addons/{name}", create_addon)
    app.router.add_post("/api/addons/{name}/downloads", update_downloads)
    return app
