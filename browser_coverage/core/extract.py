"""Per asset kind strategies turning file content into an instrumented entry."""

import logging
import mimetypes
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import bs4

from browser_coverage.core.instrumenter import Instrumenter
from browser_coverage.errors import InstrumentationError
from browser_coverage.models.coverage import FileCoverage

logger = logging.getLogger(__name__)

HTML_SUFFIXES = (".html", ".htm")

# Script types browsers execute as JavaScript
JS_SCRIPT_TYPES = {
    "",
    "module",
    "text/javascript",
    "application/javascript",
    "text/ecmascript",
    "application/ecmascript",
}

# Block and line comments, including the HTML-like line comments of scripts
_COMMENT_RE = re.compile(r"/\*.*?\*/|//[^\n]*|<!--[^\n]*|-->[^\n]*", re.DOTALL)


@dataclass(frozen=True)
class InstrumentedEntry:
    """What is served for an asset, plus the coverage shape of its code."""

    content: str
    coverage: FileCoverage
    media_type: str


def is_comment_only(code: str) -> bool:
    return not _COMMENT_RE.sub("", code).strip()


def _script_kind(tag: bs4.Tag) -> Optional[str]:
    """``"module"`` or ``"classic"`` for JavaScript blocks, None otherwise."""
    script_type = (tag.get("type") or "").strip().lower()
    if script_type not in JS_SCRIPT_TYPES:
        return None
    return "module" if script_type == "module" else "classic"


def inline_scripts(soup: bs4.BeautifulSoup) -> List[bs4.Tag]:
    """Return the inline JavaScript blocks of a document, in document order.

    Blocks without code (comment-only or empty) and non-JavaScript types are
    left out. The blocks returned can run as one unit in place of the first.

    Raises:
        InstrumentationError: If the blocks mix classic and module scripts,
            or an external script sits between two of them
    """
    tags: List[bs4.Tag] = []
    external = None
    for tag in soup.find_all("script"):
        if tag.has_attr("src"):
            if tags:
                external = tag
            continue
        kind = _script_kind(tag)
        if kind is None or is_comment_only(tag.string or ""):
            continue
        if tags:
            if external is not None:
                raise InstrumentationError(
                    f"external script {external['src']} runs between inline scripts"
                )
            if kind != _script_kind(tags[0]):
                raise InstrumentationError("inline scripts mix classic and module code")
        tags.append(tag)
    return tags


class ScriptStrategy:
    """Plain script assets are instrumented as they are."""

    def instrument(
        self, path: Path, text: str, instrumenter: Instrumenter
    ) -> Optional[InstrumentedEntry]:
        result = instrumenter.instrument(text, str(path))
        media_type = mimetypes.guess_type(path.name)[0] or "application/javascript"
        return InstrumentedEntry(
            content=result.code, coverage=result.coverage, media_type=media_type
        )


class HtmlStrategy:
    """HTML assets have their inline scripts instrumented as one unit.

    The joined unit takes the place of the first inline script and the other
    inline scripts are emptied. Pages where that would change what runs, or
    in which order, are served unchanged.
    """

    def instrument(
        self, path: Path, text: str, instrumenter: Instrumenter
    ) -> Optional[InstrumentedEntry]:
        soup = bs4.BeautifulSoup(text, features="html.parser")
        try:
            tags = inline_scripts(soup)
        except InstrumentationError as e:
            logger.debug(f"Serving {path} unchanged: {e}")
            return None
        if not tags:
            return None

        unit = ";\n".join(tag.string for tag in tags)
        result = instrumenter.instrument(unit, str(path))

        first, *rest = tags
        first.string = result.code
        for tag in rest:
            tag.string = ""

        return InstrumentedEntry(
            content=str(soup), coverage=result.coverage, media_type="text/html"
        )


def strategy_for(path: Path):
    """Pick the extraction strategy for an asset from its file extension."""
    if path.suffix.lower() in HTML_SUFFIXES:
        return HtmlStrategy()
    return ScriptStrategy()
