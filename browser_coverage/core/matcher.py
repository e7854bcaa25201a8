"""Include/exclude glob rules deciding which assets get instrumented.

Pattern syntax:
- ``*`` matches within one path segment, ``?`` one character of a segment
- ``[...]`` character classes, ``[!...]`` negated
- ``**`` as a whole segment matches zero or more directories
- wildcards never match a leading ``.`` of a segment (dotfiles need an
  explicit ``.`` in the pattern)

Paths and patterns are compared in POSIX form.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Pattern, Sequence, Union

__all__ = [
    "PLATFORM_PATTERNS",
    "RuleSet",
    "compile_glob",
    "matches",
    "path_is_eligible",
]

# Test harness files are served next to the package but never measured
PLATFORM_PATTERNS = ("web-component-tester/*",)

_SEGMENT_CHAR = "[^/]"
_NOT_DOT = r"(?!\.)"


def _to_posix(path: str) -> str:
    return path.replace("\\", "/")


def _translate_class(pattern: str, start: int) -> tuple[str, int] | None:
    """Translate the ``[...]`` class at ``start``; None if it never closes."""
    i = start + 1
    negate = i < len(pattern) and pattern[i] in "!^"
    if negate:
        i += 1
    # A ']' right after the opening bracket is a literal member
    if i < len(pattern) and pattern[i] == "]":
        i += 1
    end = pattern.find("]", i)
    if end < 0:
        return None
    body = pattern[start + 1 + int(negate) : end]
    body = body.replace("\\", "\\\\").replace("[", "\\[").replace("]", "\\]")
    if negate:
        # A negated class must not cross a separator either
        return f"[^/{body}]", end + 1
    return f"[{body}]", end + 1


def compile_glob(pattern: str) -> Pattern[str]:
    """Compile one glob pattern into an anchored regular expression."""
    pattern = _to_posix(pattern)
    parts = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        segment_start = i == 0 or pattern[i - 1] == "/"
        if c == "*":
            globstar = (
                pattern.startswith("**", i)
                and segment_start
                and (i + 2 == n or pattern[i + 2] == "/")
            )
            if globstar and i + 2 == n:
                parts.append(f"(?:{_NOT_DOT}{_SEGMENT_CHAR}*(?:/{_NOT_DOT}{_SEGMENT_CHAR}*)*)?")
                i += 2
                continue
            if globstar:
                parts.append(f"(?:{_NOT_DOT}{_SEGMENT_CHAR}*/)*")
                i += 3
                continue
            while i < n and pattern[i] == "*":
                i += 1
            parts.append((_NOT_DOT if segment_start else "") + f"{_SEGMENT_CHAR}*")
            continue
        if c == "?":
            parts.append((_NOT_DOT if segment_start else "") + _SEGMENT_CHAR)
        elif c == "[":
            translated = _translate_class(pattern, i)
            if translated is None:
                parts.append(re.escape(c))
            else:
                regex, i = translated
                parts.append((_NOT_DOT if segment_start else "") + regex)
                continue
        else:
            parts.append(re.escape(c))
        i += 1
    return re.compile("(?s:" + "".join(parts) + r")\Z")


GlobRule = Union[str, Pattern[str]]


def matches(path: str, patterns: Iterable[GlobRule]) -> bool:
    """Return True if ``path`` matches at least one of ``patterns``.

    An empty pattern collection matches nothing.
    """
    path = _to_posix(path)
    for pattern in patterns:
        compiled = compile_glob(pattern) if isinstance(pattern, str) else pattern
        if compiled.match(path):
            return True
    return False


@dataclass(frozen=True)
class RuleSet:
    """Compiled include and exclude rules for one run."""

    include: Sequence[str] = ()
    exclude: Sequence[str] = ()
    _include: tuple[Pattern[str], ...] = field(init=False, repr=False, compare=False)
    _exclude: tuple[Pattern[str], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "include", tuple(self.include))
        object.__setattr__(self, "exclude", tuple(self.exclude))
        object.__setattr__(
            self, "_include", tuple(compile_glob(p) for p in self.include)
        )
        object.__setattr__(
            self,
            "_exclude",
            tuple(compile_glob(p) for p in (*PLATFORM_PATTERNS, *self.exclude)),
        )

    def is_eligible(self, relative_path: str) -> bool:
        if not matches(relative_path, self._include):
            return False
        return not matches(relative_path, self._exclude)


def path_is_eligible(relative_path: str, rules: RuleSet) -> bool:
    """Return True if the asset at ``relative_path`` should be instrumented.

    Exclusion always wins over inclusion; platform files are always excluded.
    """
    return rules.is_eligible(relative_path)
