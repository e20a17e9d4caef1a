"""Markup helpers — HTML stripping for model input, rendering for display."""

from __future__ import annotations

import html
import re
from abc import ABC, abstractmethod
from html.parser import HTMLParser

STREAMING_CURSOR = '<span class="streaming-cursor">▊</span>'


class _TextExtractor(HTMLParser):
    """Collects character data, dropping tags and non-visible elements.

    Block boundaries and ``<br>`` become newlines so paragraphs and lines
    stay apart in the extracted text.
    """

    _SKIP_TAGS = frozenset({"script", "style", "head", "noscript"})
    _BLOCK_TAGS = frozenset(
        {"p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "blockquote", "pre", "ul", "ol", "table"}
    )
    _LINE_TAGS = frozenset({"li", "tr"})

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.parts: list[str] = []
        self._skip_depth = 0
        # separator owed before the next text; dropped at the end of input
        self._pending = ""

    def _owe(self, separator: str) -> None:
        if len(separator) > len(self._pending):
            self._pending = separator

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in self._SKIP_TAGS:
            self._skip_depth += 1
        elif tag == "br":
            self._pending += "\n"
        elif tag == "hr":
            self._owe("\n\n")

    def handle_endtag(self, tag: str) -> None:
        if tag in self._SKIP_TAGS and self._skip_depth:
            self._skip_depth -= 1
        elif tag in self._BLOCK_TAGS:
            self._owe("\n\n")
        elif tag in self._LINE_TAGS:
            self._owe("\n")

    def handle_data(self, data: str) -> None:
        if self._skip_depth:
            return
        if self._pending:
            if self.parts:
                self.parts.append(self._pending)
            self._pending = ""
        self.parts.append(data)


def strip_html(markup: str | None) -> str:
    """Reduce HTML to its plain text content."""
    if not markup:
        return ""
    parser = _TextExtractor()
    parser.feed(markup)
    parser.close()
    return "".join(parser.parts)


def escape_html(text: str | None) -> str:
    if not text:
        return ""
    return html.escape(text, quote=False)


def has_unclosed_formatting(text: str) -> bool:
    """Detect markdown emphasis, code or link syntax left open on the last line."""
    last_line = text.split("\n")[-1]
    return (
        last_line.count("*") % 2 != 0
        or last_line.count("_") % 2 != 0
        or last_line.count("`") % 2 != 0
        or last_line.endswith("[")
        or last_line.endswith("](")
    )


class ContentRenderer(ABC):
    """Turns model markdown into display content."""

    @abstractmethod
    def render(self, markdown: str) -> str:
        """Render a complete response."""

    @abstractmethod
    def render_partial(self, markdown: str) -> str:
        """Render an in-progress streamed response."""


class EscapingRenderer(ContentRenderer):
    """Safe default renderer: escaped text in paragraphs with line breaks."""

    _PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")

    def render(self, markdown: str) -> str:
        if not markdown:
            return ""
        paragraphs = [p for p in self._PARAGRAPH_SPLIT.split(markdown.strip()) if p]
        return "".join(
            "<p>" + escape_html(p).replace("\n", "<br>") + "</p>" for p in paragraphs
        )

    def render_partial(self, markdown: str) -> str:
        rendered = self.render(markdown)
        if rendered.endswith("</p>") and has_unclosed_formatting(markdown):
            rendered = rendered[: -len("</p>")] + STREAMING_CURSOR + "</p>"
        return rendered
