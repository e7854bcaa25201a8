import threading
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from browser_coverage.config import CoverageSettings
from browser_coverage.core.context import RunContext
from browser_coverage.core.instrumenter import InstrumentResult
from browser_coverage.core.matcher import RuleSet
from browser_coverage.errors import InstrumentationError
from browser_coverage.models.coverage import FileCoverage


def make_coverage(
    path: str,
    statements: List[int],
    functions: Optional[List[int]] = None,
    branches: Optional[Dict[str, List[int]]] = None,
) -> FileCoverage:
    """Build a record with one statement per line, numbered from 1."""
    functions = functions or []
    branches = branches or {}
    return FileCoverage(
        path=path,
        statement_map={
            str(i): {
                "start": {"line": i + 1, "column": 0},
                "end": {"line": i + 1, "column": 10},
            }
            for i in range(len(statements))
        },
        fn_map={
            str(i): {
                "name": f"fn{i}",
                "line": 1,
                "loc": {"start": {"line": 1, "column": 0}, "end": {"line": 1, "column": 5}},
            }
            for i in range(len(functions))
        },
        branch_map={
            key: {
                "type": "if",
                "line": 1,
                "locations": [
                    {"start": {"line": 1, "column": 0}, "end": {"line": 1, "column": 1}}
                    for _ in hits
                ],
            }
            for key, hits in branches.items()
        },
        s={str(i): hits for i, hits in enumerate(statements)},
        f={str(i): hits for i, hits in enumerate(functions)},
        b={key: list(hits) for key, hits in branches.items()},
    )


class FakeInstrumenter:
    """Deterministic engine: one statement per non-blank line.

    Code containing ``SYNTAX ERROR`` is rejected like unparsable JavaScript.
    """

    def __init__(self):
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def instrument(self, code: str, file_id: str) -> InstrumentResult:
        with self._lock:
            self.calls.append(file_id)
        if "SYNTAX ERROR" in code:
            raise InstrumentationError(f"Unexpected token in {file_id}")
        statements = [0 for line in code.splitlines() if line.strip()]
        coverage = make_coverage(file_id, statements)
        return InstrumentResult(
            code=f"/* instrumented {file_id} */\n{code}", coverage=coverage
        )


@pytest.fixture
def instrumenter():
    return FakeInstrumenter()


@pytest.fixture
def coverage_factory():
    return make_coverage


@pytest.fixture
def served_root(tmp_path: Path) -> Path:
    """A small package tree: scripts, an HTML page, vendored and platform files."""
    root = tmp_path / "pkg"
    (root / "src").mkdir(parents=True)
    (root / "vendor").mkdir()
    (root / "web-component-tester").mkdir()

    (root / "a.js").write_text("var a = 1;\nfunction f() {\n  return a;\n}\n")
    (root / "b.js").write_text("var b = 2;\n")
    (root / "src" / "util.js").write_text("export const x = 1;\n")
    (root / "vendor" / "lib.js").write_text("var lib = true;\n")
    (root / "web-component-tester" / "browser.js").write_text("var wct = 1;\n")
    (root / "index.html").write_text(
        "<html><head>"
        '<script src="vendor/lib.js"></script>'
        "<script>var page = 1;</script>"
        "</head><body>"
        "<script>// just a comment</script>"
        "<script>page += 1;</script>"
        "</body></html>"
    )
    (root / "static.html").write_text("<html><body><p>No scripts</p></body></html>")
    return root


@pytest.fixture
def context(served_root: Path, instrumenter: FakeInstrumenter) -> RunContext:
    rules = RuleSet(include=["**/*.js", "**/*.html"], exclude=["vendor/**"])
    return RunContext(served_root, rules, instrumenter)


@pytest.fixture
def settings() -> CoverageSettings:
    return CoverageSettings(include=["**/*.js"], exclude=[], reporters=["json"])
