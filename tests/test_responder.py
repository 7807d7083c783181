import asyncio
import json

import httpx
from websockets.asyncio.client import connect

from models import wall_ms
from static_server import escape_js_string, render_index, resolve_asset


def ws_url(base_url):
    return base_url.replace("http://", "ws://") + "/ws/latency"


def test_latency_endpoint_returns_server_time(latency_server):
    async def run_test():
        async with latency_server() as base_url:
            before = wall_ms()
            async with httpx.AsyncClient(base_url=base_url) as client:
                resp = await client.get("/api/latency")
            after = wall_ms()
        return resp, before, after

    resp, before, after = asyncio.run(run_test())
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/json"
    body = resp.json()
    assert set(body) == {"time"}
    assert before <= body["time"] <= after


def test_latency_endpoint_ignores_query_string(latency_server):
    async def run_test():
        async with latency_server() as base_url:
            async with httpx.AsyncClient(base_url=base_url) as client:
                return await client.get("/api/latency?cache=1")

    resp = asyncio.run(run_test())
    assert resp.status_code == 200
    assert isinstance(resp.json()["time"], int)


def test_echo_is_byte_identical_for_text_and_binary(latency_server):
    async def run_test():
        async with latency_server() as base_url:
            async with connect(ws_url(base_url)) as ws:
                text = json.dumps({"t": 1717171717171})
                await ws.send(text)
                text_echo = await ws.recv()
                await ws.send(b'{"t":42}\x00\xff')
                binary_echo = await ws.recv()
        return text, text_echo, binary_echo

    text, text_echo, binary_echo = asyncio.run(run_test())
    assert text_echo == text
    assert isinstance(text_echo, str)
    assert binary_echo == b'{"t":42}\x00\xff'
    assert isinstance(binary_echo, bytes)


def test_echo_channels_are_independent(latency_server):
    async def run_test():
        async with latency_server() as base_url:
            async with connect(ws_url(base_url)) as first, connect(ws_url(base_url)) as second:
                await first.send('{"t":1}')
                await second.send('{"t":2}')
                await first.send('{"t":3}')
                second_echo = await second.recv()
                first_echoes = [await first.recv(), await first.recv()]
            # A closed channel does not affect a new one.
            async with connect(ws_url(base_url)) as third:
                await third.send('{"t":4}')
                third_echo = await third.recv()
        return first_echoes, second_echo, third_echo

    first_echoes, second_echo, third_echo = asyncio.run(run_test())
    assert first_echoes == ['{"t":1}', '{"t":3}']
    assert second_echo == '{"t":2}'
    assert third_echo == '{"t":4}'


def test_plain_get_on_echo_path_is_rejected_without_stopping_server(latency_server):
    async def run_test():
        async with latency_server() as base_url:
            async with httpx.AsyncClient(base_url=base_url) as client:
                rejected = await client.get("/ws/latency")
                after = await client.get("/api/latency")
        return rejected, after

    rejected, after = asyncio.run(run_test())
    assert rejected.status_code == 426
    assert after.status_code == 200


def test_index_gets_escaped_page_suffix(latency_server, monkeypatch):
    import config

    monkeypatch.setattr(config, "PAGE_SUFFIX", 'eu "west" \\ 1')

    async def run_test():
        async with latency_server() as base_url:
            async with httpx.AsyncClient(base_url=base_url) as client:
                return await client.get("/"), await client.get("/index.html")

    root, index = asyncio.run(run_test())
    assert root.status_code == 200
    assert root.headers["content-type"].startswith("text/html")
    assert 'window.PAGE_SUFFIX = "eu \\"west\\" \\\\ 1";' in root.text
    assert "%%PAGE_SUFFIX%%" not in root.text
    assert index.text == root.text


def test_static_assets_and_missing_files(latency_server):
    async def run_test():
        async with latency_server() as base_url:
            async with httpx.AsyncClient(base_url=base_url) as client:
                return await client.get("/pingWorker.js"), await client.get("/nope.css")

    asset, missing = asyncio.run(run_test())
    assert asset.status_code == 200
    assert "javascript" in asset.headers["content-type"]
    assert asset.text == "postMessage({});\n"
    assert missing.status_code == 404


def test_resolve_asset_stays_inside_directory(static_dir, tmp_path):
    (tmp_path / "secret.txt").write_text("nope")
    assert resolve_asset(static_dir, "/pingWorker.js") == (static_dir / "pingWorker.js").resolve()
    assert resolve_asset(static_dir, "/../secret.txt") is None
    assert resolve_asset(static_dir, "/") is None


def test_render_index_and_escaping(static_dir):
    assert escape_js_string('a"b\\c') == 'a\\"b\\\\c'
    page = render_index(static_dir, "staging").decode("utf-8")
    assert 'window.PAGE_SUFFIX = "staging";' in page
