"""Tests for the runner plugin and its run-end sequence."""

import json
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from starlette.applications import Starlette
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from browser_coverage.config import CoverageSettings, Metric
from browser_coverage.errors import CoverageThresholdError
from browser_coverage.plugin import CoveragePlugin


class FakeEmitter:
    """Minimal stand-in for the runner's event emitter."""

    def __init__(self, root, client_root="/components/"):
        self.options = SimpleNamespace(
            root=str(root), client_options=SimpleNamespace(root=client_root)
        )
        self.handlers = {}
        self.hooks = {}
        self.emitted = []

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def hook(self, name, handler):
        self.hooks[name] = handler

    def emit(self, event, *args):
        self.emitted.append((event, *args))


async def _original(request):
    return PlainTextResponse("original")


def _base_app():
    return Starlette(routes=[Route("/{path:path}", _original)])


def _full_coverage(record):
    """Pretend a browser executed everything in ``record`` once."""
    return record.model_copy(
        update={
            "s": {key: 1 for key in record.s},
            "f": {key: 1 for key in record.f},
            "b": {key: [1] * len(hits) for key, hits in record.b.items()},
        }
    )


@pytest.fixture
def scenario_root(tmp_path):
    root = tmp_path / "pkg"
    root.mkdir()
    (root / "a.js").write_text("var a = 1;\nvar b = a + 1;\n")
    (root / "b.js").write_text("var unused = 1;\n")
    return root


def _plugin(root, instrumenter, **options):
    settings = CoverageSettings(include=["*.js"], exclude=[], **options)
    return CoveragePlugin(
        settings,
        root,
        client_root="/components/",
        package_name="pkg",
        instrumenter=instrumenter,
    )


def test_end_to_end_each_threshold_names_unrequested_file(scenario_root, instrumenter):
    plugin = _plugin(
        scenario_root, instrumenter, reporters=["json-summary"], thresholds={"each": 50}
    )
    replaced = []
    plugin.define_webserver(_base_app(), replaced.append)
    client = TestClient(replaced[0])

    # ↳ the test run only requests a.js, and executes all of it
    response = client.get("/components/pkg/a.js")
    assert response.text.startswith("/* instrumented")
    entry = plugin.context.cache.get_instrumented(scenario_root / "a.js")
    plugin.on_sub_suite_end(
        "chrome", {"__coverage__": {entry.coverage.path: _full_coverage(entry.coverage)}}
    )

    with pytest.raises(CoverageThresholdError) as exc_info:
        plugin.on_run_end()

    a_path = str((scenario_root / "a.js").resolve())
    b_path = str((scenario_root / "b.js").resolve())
    failed = {check.metric: check for check in exc_info.value.failures}
    assert failed[Metric.STATEMENTS].failures == [b_path]
    assert b_path in str(exc_info.value)

    # ↳ the report was written before the failure surfaced
    summary = json.loads((scenario_root / "coverage" / "coverage-summary.json").read_text())
    assert summary[a_path]["statements"]["pct"] == 100.0
    assert summary[b_path]["statements"]["pct"] == 0.0

    # ↳ the cache starts empty for the next run
    assert len(plugin.context.cache) == 0


def test_run_end_passes_when_thresholds_met(scenario_root, instrumenter):
    plugin = _plugin(scenario_root, instrumenter, reporters=["json"], thresholds={"global": 30})

    entry = plugin.context.cache.get_instrumented(scenario_root / "a.js")
    plugin.on_sub_suite_end("firefox", {"__coverage__": {entry.coverage.path: _full_coverage(entry.coverage)}})

    plugin.on_run_end()

    final = json.loads((scenario_root / "coverage" / "coverage-final.json").read_text())
    assert len(final) == 2


def test_failed_run_skips_report_and_validation(scenario_root, instrumenter):
    plugin = _plugin(scenario_root, instrumenter, reporters=["json"], thresholds={"global": 100})
    plugin.context.cache.get_instrumented(scenario_root / "a.js")

    plugin.on_run_end(error=RuntimeError("tests failed"))

    assert not (scenario_root / "coverage").exists()
    assert len(plugin.context.cache) == 0


def test_collector_restarts_after_run_end(scenario_root, instrumenter, coverage_factory):
    plugin = _plugin(scenario_root, instrumenter, reporters=["json"])
    plugin.on_sub_suite_end("chrome", {"__coverage__": {"/x.js": coverage_factory("/x.js", [1])}})

    plugin.on_run_end()

    assert len(plugin.collector) == 0


@pytest.mark.parametrize("data", [None, {}, {"__coverage__": None}, {"tests": 3}])
def test_sub_suite_end_without_coverage(scenario_root, instrumenter, data):
    plugin = _plugin(scenario_root, instrumenter)

    plugin.on_sub_suite_end("chrome", data)

    assert len(plugin.collector) == 0


def test_from_emitter_registers_handlers(scenario_root, instrumenter):
    emitter = FakeEmitter(scenario_root)

    plugin = CoveragePlugin.from_emitter(
        emitter,
        {"include": ["*.js"], "reporters": ["json"], "unrelated": True},
        instrumenter=instrumenter,
    )

    assert plugin.context.root == scenario_root.resolve()
    assert plugin.client_root == "/components/"
    assert emitter.handlers["sub-suite-end"] == [plugin.on_sub_suite_end]
    assert emitter.handlers["run-end"] == [plugin.on_run_end]
    assert emitter.hooks["define:webserver"] == plugin.define_webserver


def test_define_webserver_hook_routes_diagnostics(scenario_root, instrumenter):
    emitter = FakeEmitter(scenario_root)
    plugin = CoveragePlugin.from_emitter(
        emitter, {"include": ["*.js"]}, instrumenter=instrumenter
    )
    replaced = []
    done = []

    emitter.hooks["define:webserver"](
        _base_app(),
        replaced.append,
        SimpleNamespace(package_name="pkg"),
        lambda: done.append(True),
    )
    client = TestClient(replaced[0])
    client.get("/components/pkg/a.js")
    client.get("/components/other/a.js")

    assert done == [True]
    assert plugin.package_name == "pkg"
    assert emitter.emitted == [
        ("log:debug", "coverage", "instrument", str((scenario_root / "a.js").resolve())),
        ("log:debug", "coverage", "skip", "/components/other/a.js"),
    ]
