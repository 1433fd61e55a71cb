"""Fixtures for integration tests: a local content server and real Chromium."""

import asyncio
import shutil
import socket
import ssl
import stat
import sys
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from aiohttp import web
from yarl import URL

from signed_url_audit.browser import BrowserEngine, ContentFetcher, PageRenderer
from signed_url_audit.process import execute
from signed_url_audit.testing.content import PHISHING_PAGE, SVG_IMAGE

BLOB = bytes(range(256)) * 8

DELAYED_CONTENT_PAGE = """<!DOCTYPE html>
<html><head><title>Delayed</title></head>
<body><div id="out">waiting</div>
<script>
  setTimeout(function () {
    var xhr = new XMLHttpRequest();
    xhr.open("GET", "/late");
    xhr.onload = function () {
      document.getElementById("out").textContent = xhr.responseText;
    };
    xhr.send();
  }, 100);
</script>
</body></html>"""

LATE_REDIRECT_PAGE = """<!DOCTYPE html>
<html><head><title>Redirecting</title></head>
<body>
<script>
  setTimeout(function () { window.location = "/image.svg"; }, 600);
</script>
</body></html>"""

FAKE_CLI = """
import os
import sys

base = os.environ.get("FAKE_SIGNED_URL_BASE", "https://storage.example.com/")
args = sys.argv[1:]
if args == ["version"]:
    print("Fake Cloud SDK 1.0.0")
elif args[:2] == ["storage", "cp"]:
    if "missing" in args[2]:
        print(
            "ERROR: (gcloud.storage.cp) The following URLs matched no objects "
            "or files:\\n-" + args[2],
            file=sys.stderr,
        )
        sys.exit(1)
    print("Copying " + args[2] + " to " + args[3])
elif args[:2] == ["storage", "sign-url"]:
    print("---")
    print("resource: " + args[2])
    print("signed_url: " + base + args[2][5:] + "?sig=abc")
else:
    print("unknown command: " + " ".join(args), file=sys.stderr)
    sys.exit(2)
"""


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Run integration tests in the session loop that owns the browser."""
    session_loop = pytest.mark.asyncio(loop_scope="session")
    for item in items:
        if "integration" in item.path.parts and pytest_asyncio.is_async_test(item):
            item.add_marker(session_loop, append=False)


async def delayed(request: web.Request) -> web.Response:
    await asyncio.sleep(0.5)
    return web.Response(text="late-content")


async def slow(request: web.Request) -> web.Response:
    await asyncio.sleep(5)
    return web.Response(text="too late")


async def unsized(request: web.Request) -> web.StreamResponse:
    response = web.StreamResponse(headers={"Content-Type": "text/plain"})
    response.enable_chunked_encoding()
    await response.prepare(request)
    await response.write(b"chunk-one ")
    await response.write(b"chunk-two")
    await response.write_eof()
    return response


def build_app() -> web.Application:
    """Serve the fixtures a signed URL would point at."""

    def static(body: bytes | str, content_type: str):  # type: ignore[no-untyped-def]
        async def handler(request: web.Request) -> web.Response:
            data = body.encode() if isinstance(body, str) else body
            return web.Response(body=data, content_type=content_type)

        return handler

    async def redirect(request: web.Request) -> web.Response:
        raise web.HTTPFound("/image.svg")

    async def loop(request: web.Request) -> web.Response:
        raise web.HTTPFound("/loop")

    bucket = {
        "image.svg": (SVG_IMAGE, "image/svg+xml"),
        "phishing.html": (PHISHING_PAGE, "text/html"),
    }

    async def bucket_object(request: web.Request) -> web.Response:
        if request.match_info["name"] not in bucket:
            raise web.HTTPNotFound()
        body, content_type = bucket[request.match_info["name"]]
        return web.Response(text=body, content_type=content_type)

    app = web.Application()
    app.add_routes(
        [
            web.get("/phishing.html", static(PHISHING_PAGE, "text/html")),
            web.get("/image.svg", static(SVG_IMAGE, "image/svg+xml")),
            web.get("/blob", static(BLOB, "application/octet-stream")),
            web.get("/delayed.html", static(DELAYED_CONTENT_PAGE, "text/html")),
            web.get("/late-redirect.html", static(LATE_REDIRECT_PAGE, "text/html")),
            web.get("/late", delayed),
            web.get("/slow", slow),
            web.get("/unsized", unsized),
            web.get("/redirect", redirect),
            web.get("/loop", loop),
            web.get("/{bucket}/{name}", bucket_object),
        ]
    )
    return app


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def server_runner() -> AsyncGenerator[web.AppRunner, None]:
    """Set up the content app; sites are added by the server fixtures."""
    runner = web.AppRunner(build_app())
    await runner.setup()
    try:
        yield runner
    finally:
        await runner.cleanup()


async def start_site(
    runner: web.AppRunner, ssl_context: ssl.SSLContext | None = None
) -> int:
    """Serve runner on a free local port and return the port."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    await web.SockSite(runner, sock, ssl_context=ssl_context).start()
    return sock.getsockname()[1]


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def content_server(server_runner: web.AppRunner) -> URL:
    """Plain HTTP address of the content server."""
    port = await start_site(server_runner)
    return URL.build(scheme="http", host="127.0.0.1", port=port)


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def tls_content_server(
    server_runner: web.AppRunner, tmp_path_factory: pytest.TempPathFactory
) -> URL:
    """HTTPS address of the content server, with a self-signed certificate."""
    if shutil.which("openssl") is None:
        pytest.skip("openssl is needed to create a test certificate")
    certs = tmp_path_factory.mktemp("certs")
    cert, key = certs / "cert.pem", certs / "key.pem"
    command = "openssl req -x509 -newkey rsa:2048 -nodes -days 1 -subj /CN=127.0.0.1"
    result = await execute(
        [*command.split(), "-keyout", str(key), "-out", str(cert)]
    )
    assert result.succeeded, result.stderr
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    context.load_cert_chain(cert, key)
    port = await start_site(server_runner, context)
    return URL.build(scheme="https", host="127.0.0.1", port=port)


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def engine() -> AsyncGenerator[BrowserEngine, None]:
    """Launch one Chromium for the whole session."""
    async with BrowserEngine.launch() as browser_engine:
        yield browser_engine


@pytest.fixture
def blob() -> bytes:
    """Payload served at /blob."""
    return BLOB


@pytest.fixture
def fetcher(engine: BrowserEngine) -> ContentFetcher:
    """Create fetcher with a short timeout."""
    return ContentFetcher(engine=engine, timeout_ms=2_000)


@pytest.fixture
def renderer(engine: BrowserEngine) -> PageRenderer:
    """Create renderer on the shared engine."""
    return PageRenderer(engine=engine)


@pytest.fixture
def fake_cli(tmp_path: Path) -> Path:
    """Write an executable that mimics the storage CLI's output."""
    script = tmp_path / "fake-gcloud"
    script.write_text(f"#!{sys.executable}\n{FAKE_CLI}")
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return script
