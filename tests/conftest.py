import contextlib
import socket

import pytest
from websockets.asyncio.server import serve

import config
from responder import handle_echo, process_request


def base_url_of(server):
    port = server.sockets[0].getsockname()[1]
    return f"http://127.0.0.1:{port}"


@pytest.fixture
def static_dir(tmp_path, monkeypatch):
    directory = tmp_path / "static"
    directory.mkdir()
    (directory / "index.html").write_text(
        '<h1>Latency Server</h1><script>window.PAGE_SUFFIX = "%%PAGE_SUFFIX%%";</script>',
        encoding="utf-8",
    )
    (directory / "pingWorker.js").write_text("postMessage({});\n", encoding="utf-8")
    monkeypatch.setattr(config, "STATIC_DIR", str(directory))
    monkeypatch.setattr(config, "PAGE_SUFFIX", "")
    return directory


@pytest.fixture
def latency_server(static_dir):
    """Async context manager factory: runs the real server on an ephemeral port, yields its base URL."""

    @contextlib.asynccontextmanager
    async def start(handler=handle_echo):
        async with serve(handler, "127.0.0.1", 0, process_request=process_request, ping_interval=None) as server:
            yield base_url_of(server)

    return start


@pytest.fixture
def closed_port_url():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}"
