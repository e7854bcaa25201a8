"""Instrumentation engine boundary.

The engine rewrites a piece of JavaScript so that it records coverage counters
at runtime. It is used as a black box: code goes in, instrumented code and the
zero-count coverage shape of that code come out together, so callers never
have to ask the engine afterwards which file it handled last.
"""

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol

from browser_coverage.errors import CoverageError, InstrumentationError
from browser_coverage.models.coverage import FileCoverage

logger = logging.getLogger(__name__)

# Exit status the bridge uses for code the engine rejects (syntax errors etc.)
NOT_INSTRUMENTABLE_EXIT = 2

# Runs istanbul-lib-instrument on one request read from stdin
ISTANBUL_BRIDGE = """
const { createInstrumenter } = require("istanbul-lib-instrument");
let input = "";
process.stdin.setEncoding("utf8");
process.stdin.on("data", (chunk) => { input += chunk; });
process.stdin.on("end", () => {
  const request = JSON.parse(input);
  const instrumenter = createInstrumenter({
    coverageVariable: request.coverageVariable,
    esModules: true,
  });
  let code;
  try {
    code = instrumenter.instrumentSync(request.code, request.filename);
  } catch (err) {
    process.stderr.write(String((err && err.message) || err));
    process.exit(2);
  }
  process.stdout.write(
    JSON.stringify({ code: code, coverage: instrumenter.lastFileCoverage() })
  );
});
"""


@dataclass(frozen=True)
class InstrumentResult:
    code: str
    coverage: FileCoverage


class Instrumenter(Protocol):
    def instrument(self, code: str, file_id: str) -> InstrumentResult:
        """Instrument ``code`` and attribute its counters to ``file_id``.

        Raises:
            InstrumentationError: If the code cannot be instrumented
        """
        ...


class IstanbulInstrumenter:
    """Instruments code with istanbul-lib-instrument through a Node.js process."""

    def __init__(
        self,
        node_path: str = "node",
        coverage_variable: str = "WCT.share.__coverage__",
        timeout: float = 60.0,
    ):
        self.node_path = node_path
        self.coverage_variable = coverage_variable
        self.timeout = timeout

    def instrument(self, code: str, file_id: str) -> InstrumentResult:
        request = json.dumps(
            {
                "code": code,
                "filename": file_id,
                "coverageVariable": self.coverage_variable,
            }
        )
        # A missing node executable is a broken environment: let it propagate
        completed = subprocess.run(
            [self.node_path, "-e", ISTANBUL_BRIDGE],
            input=request,
            capture_output=True,
            text=True,
            encoding="utf-8",
            timeout=self.timeout,
        )

        if completed.returncode == NOT_INSTRUMENTABLE_EXIT:
            raise InstrumentationError(
                f"Cannot instrument {file_id}: {completed.stderr.strip()}"
            )
        if completed.returncode != 0:
            raise CoverageError(
                f"Instrumentation engine exited with {completed.returncode}: "
                f"{completed.stderr.strip()}"
            )

        try:
            payload = json.loads(completed.stdout)
        except json.JSONDecodeError as e:
            raise CoverageError(f"Invalid engine output for {file_id}: {e}") from e

        logger.debug(f"Instrumented {file_id} ({len(code)} chars)")
        return InstrumentResult(
            code=payload["code"],
            coverage=FileCoverage.model_validate(payload["coverage"]),
        )
