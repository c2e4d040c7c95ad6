import asyncio
from urllib.parse import urlsplit

import aiohttp
from aiohttp import web
from aiohttp.test_utils import TestServer

from dirsweep.controller import PauseFlag
from dirsweep.models import ScanConfig
from dirsweep.reporter import Channel
from dirsweep.scanner import DirScanner

PAGES = {
    "/": "root",
    "/login": "login page",
    "/admin/": "admin home",
    "/admin/login": "admin login form",
    "/admin/users/": "users",
    "/admin/users/login": "user login",
}


def make_app(fallback_status=404, fallback_body="nope"):
    async def handler(request):
        path = request.path
        if path in ("/admin", "/admin/users"):
            raise web.HTTPMovedPermanently(location=path + "/")
        if path in PAGES:
            return web.Response(text=PAGES[path])
        return web.Response(status=fallback_status, text=fallback_body)

    app = web.Application()
    app.router.add_route("GET", "/{tail:.*}", handler)
    return app


async def _scan(words, app=None, pause=None, on_start=None, **options):
    server = TestServer(app or make_app())
    await server.start_server()
    base = str(server.make_url("/")).rstrip("/")
    config = ScanConfig(target_url=base, quiet=True, threads=4, **options)
    chan = Channel()
    tx_term = chan.sender()
    tx_file = Channel().sender()
    try:
        async with aiohttp.ClientSession() as session:
            scanner = DirScanner(config, session, pause or PauseFlag())
            task = asyncio.create_task(
                scanner.scan_url(base, frozenset(words), 0, tx_term, tx_file)
            )
            if on_start is not None:
                await on_start(task, chan)
            await task
    finally:
        await server.close()
    tx_term.close()
    return {(r.status, urlsplit(r.url).path) async for r in chan}


def test_recurses_into_discovered_directories():
    found = asyncio.run(_scan({"admin", "login", "users", "nothing"}))
    assert found == {
        (301, "/admin"),
        (200, "/login"),
        (200, "/admin/login"),
        (301, "/admin/users"),
        (200, "/admin/users/login"),
    }


def test_recursion_stops_at_max_depth():
    found = asyncio.run(_scan({"admin", "login", "users"}, depth=1))
    assert found == {(301, "/admin"), (200, "/login")}


def test_only_requested_status_codes_are_reported():
    found = asyncio.run(_scan({"admin", "login"}, status_codes=[200]))
    # /admin is not reported but is still recursed into
    assert found == {(200, "/login"), (200, "/admin/login")}


def test_extensions_and_trailing_slash():
    app = web.Application()

    async def handler(request):
        if request.path in ("/index.php", "/files/"):
            return web.Response(text="hit")
        return web.Response(status=404)

    app.router.add_route("GET", "/{tail:.*}", handler)
    found = asyncio.run(
        _scan({"index", "files"}, app=app, extensions=["php"], add_slash=True, depth=1)
    )
    assert found == {(200, "/index.php"), (200, "/files/")}


def test_wildcard_responses_are_filtered():
    found = asyncio.run(
        _scan({"login", "missing", "gone"}, app=make_app(200, "x" * 500), depth=1)
    )
    assert found == {(200, "/login")}


def test_paused_scan_sends_nothing_until_resumed():
    pause = PauseFlag(True)

    async def on_start(task, chan):
        await asyncio.sleep(0.3)
        assert not task.done()
        assert chan._queue.empty()
        pause.toggle()

    found = asyncio.run(_scan({"login"}, pause=pause, on_start=on_start, depth=1))
    assert found == {(200, "/login")}


def test_each_directory_scanned_once():
    app = web.Application()
    hits = []

    async def handler(request):
        hits.append(request.path)
        if request.path == "/a":
            raise web.HTTPFound(location="/a/")
        if request.path == "/a/":
            return web.Response(text="dir")
        return web.Response(status=404)

    app.router.add_route("GET", "/{tail:.*}", handler)
    # both words lead to the same directory
    asyncio.run(_scan({"a", "a/"}, app=app, depth=3))
    assert hits.count("/a/a") == 1


def _slow_tree_app():
    async def handler(request):
        path = request.path
        if path == "/admin":
            raise web.HTTPMovedPermanently(location="/admin/")
        if path == "/evil":
            return web.Response(status=301, headers={"Location": "http://[bad"})
        if path.startswith("/admin/"):
            await asyncio.sleep(0.2)
            if path == "/admin/admin":
                return web.Response(text="deep")
        return web.Response(status=404)

    app = web.Application()
    app.router.add_route("GET", "/{tail:.*}", handler)
    return app


def test_malformed_location_does_not_orphan_sub_scans():
    found = asyncio.run(_scan({"admin", "evil"}, app=_slow_tree_app(), depth=2))
    assert found == {(301, "/admin"), (301, "/evil"), (200, "/admin/admin")}


def test_handling_error_keeps_scan_and_sub_scans_alive(monkeypatch):
    real = DirScanner._handle

    def flaky(self, result, wildcard, base_depth, tx_term):
        if result is not None and result[0].url.endswith("/evil"):
            raise ValueError("Invalid IPv6 URL")
        return real(self, result, wildcard, base_depth, tx_term)

    monkeypatch.setattr(DirScanner, "_handle", flaky)
    found = asyncio.run(_scan({"admin", "evil"}, app=_slow_tree_app(), depth=2))
    assert found == {(301, "/admin"), (200, "/admin/admin")}
