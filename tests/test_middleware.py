"""Tests for the instrumenting ASGI middleware."""

import pytest
from fastapi.testclient import TestClient
from starlette.applications import Starlette
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from browser_coverage.api.middleware import (
    CoverageMiddleware,
    log_event,
    package_relative_path,
)


async def _original(request):
    return PlainTextResponse(f"original {request.url.path}")


@pytest.fixture
def base_app():
    return Starlette(
        routes=[Route("/{path:path}", _original, methods=["GET", "HEAD", "POST"])]
    )


@pytest.fixture
def events():
    return []


@pytest.fixture
def client(base_app, context, events):
    app = CoverageMiddleware(
        base_app,
        context,
        client_root="/components/",
        package_name="my-pkg",
        sink=lambda *event: events.append(event),
    )
    return TestClient(app)


@pytest.mark.parametrize(
    "request_path, client_root, package, expected",
    [
        ("/components/my-pkg/a.js", "/components/", "my-pkg", "a.js"),
        ("/components/my-pkg/src/util.js", "/components", "my-pkg", "src/util.js"),
        ("\\components\\my-pkg\\a.js", "/components/", "my-pkg", "a.js"),
        ("/components/other/a.js", "/components/", "my-pkg", None),
        ("/components/my-pkg-extra/a.js", "/components/", "my-pkg", None),
        ("/components/my-pkg/../other/a.js", "/components/", "my-pkg", None),
        ("/my-pkg/a.js", "/", "my-pkg", "a.js"),
        ("/a.js", "/", "", "a.js"),
    ],
)
def test_package_relative_path(request_path, client_root, package, expected):
    assert package_relative_path(request_path, client_root, package) == expected


def test_serves_instrumented_script(client, context, events, served_root):
    response = client.get("/components/my-pkg/a.js")

    assert response.status_code == 200
    assert response.text.startswith("/* instrumented")
    assert "javascript" in response.headers["content-type"]
    assert str((served_root / "a.js").resolve()) in context.cache.keys()
    assert events == [
        ("debug", "coverage", "instrument", str((served_root / "a.js").resolve()))
    ]


def test_serves_instrumented_html(client):
    response = client.get("/components/my-pkg/index.html")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "/* instrumented" in response.text


def test_outside_package_passes_through(client, context, events):
    response = client.get("/components/web-component-tester/browser.js")

    assert response.text == "original /components/web-component-tester/browser.js"
    assert len(context.cache) == 0
    assert events[0][2] == "skip"


def test_excluded_asset_passes_through(client, context, events):
    response = client.get("/components/my-pkg/vendor/lib.js")

    assert response.text == "original /components/my-pkg/vendor/lib.js"
    assert len(context.cache) == 0
    assert events == [("debug", "coverage", "skip", "vendor/lib.js")]


def test_missing_asset_passes_through(client):
    response = client.get("/components/my-pkg/missing.js")

    assert response.text == "original /components/my-pkg/missing.js"


def test_html_without_scripts_passes_through(client):
    response = client.get("/components/my-pkg/static.html")

    assert response.text == "original /components/my-pkg/static.html"


def test_html_with_split_inline_scripts_passes_through(client, context, served_root):
    (served_root / "suite.html").write_text(
        "<script>window.WCT = {};</script>"
        '<script src="../web-component-tester/browser.js"></script>'
        "<script>suite('a', function() {});</script>"
    )

    response = client.get("/components/my-pkg/suite.html")

    assert response.text == "original /components/my-pkg/suite.html"
    assert len(context.cache) == 0


def test_post_is_never_instrumented(client, context):
    response = client.post("/components/my-pkg/a.js")

    assert response.text == "original /components/my-pkg/a.js"
    assert len(context.cache) == 0


def test_repeated_requests_instrument_once(client, instrumenter):
    first = client.get("/components/my-pkg/b.js")
    second = client.get("/components/my-pkg/b.js")

    assert first.text == second.text
    assert len(instrumenter.calls) == 1


def test_log_event_forwards_to_logging(caplog):
    with caplog.at_level("DEBUG", logger="browser_coverage.api.middleware"):
        log_event("debug", "coverage", "instrument", "/srv/a.js")

    assert "coverage instrument" in caplog.text
    assert "/srv/a.js" in caplog.text


class TestAsgiInterface:
    """Drive the middleware as a raw ASGI app."""

    @pytest.mark.asyncio
    async def test_non_http_scope_is_forwarded(self, context):
        seen = []

        async def app(scope, receive, send):
            seen.append(scope["type"])

        middleware = CoverageMiddleware(app, context, sink=lambda *event: None)
        await middleware({"type": "lifespan"}, None, None)

        assert seen == ["lifespan"]
        assert len(context.cache) == 0

    @pytest.mark.asyncio
    async def test_instrumented_response_messages(self, context):
        async def app(scope, receive, send):
            raise AssertionError("wrapped app must not be called")

        async def receive():
            return {"type": "http.request", "body": b"", "more_body": False}

        sent = []

        async def send(message):
            sent.append(message)

        middleware = CoverageMiddleware(app, context, sink=lambda *event: None)
        scope = {"type": "http", "method": "GET", "path": "/b.js", "headers": []}
        await middleware(scope, receive, send)

        assert sent[0]["type"] == "http.response.start"
        assert sent[0]["status"] == 200
        assert sent[1]["body"].startswith(b"/* instrumented")
