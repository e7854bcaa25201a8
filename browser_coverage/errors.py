"""Exceptions raised by browser-coverage."""


class CoverageError(Exception):
    """Base class for coverage plugin errors."""

    pass


class InstrumentationError(CoverageError):
    """Raised when the engine cannot instrument a piece of code."""

    pass


class CoverageThresholdError(CoverageError):
    """Raised when collected coverage misses a configured threshold."""

    def __init__(self, failures):
        self.failures = list(failures)
        lines = [failure.message for failure in self.failures]
        super().__init__("Coverage failed:\n  " + "\n  ".join(lines))
