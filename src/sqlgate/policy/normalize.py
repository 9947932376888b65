"""Normalizer and statement splitter.

Both are purely textual: neither tracks whether a `--`, `/*` or `;` sits
inside a quoted literal, so such literals are altered or split. Keyword and
pattern matching downstream is built around this behaviour.
"""

from __future__ import annotations

import re

from sqlgate.diagnostics import Span

_LINE_COMMENT = re.compile(r"--[^\n]*")
_CONTROL_WS = re.compile(r"[\t\n\r]")
_SPACE_RUN = re.compile(r" {2,}")


def _block_comments(text: str) -> list[Span]:
    """Spans of non-nested `/* ... */` comments, delimiters included.

    An unclosed opener ends the scan: nothing after it can be closed either.
    """
    spans: list[Span] = []
    pos = 0
    while True:
        start = text.find("/*", pos)
        if start == -1:
            break
        end = text.find("*/", start + 2)
        if end == -1:
            break
        spans.append(Span(start, end + 2))
        pos = end + 2
    return spans


def _strip_block_comments(text: str) -> str:
    parts: list[str] = []
    pos = 0
    for span in _block_comments(text):
        parts.append(text[pos : span.start])
        pos = span.end
    parts.append(text[pos:])
    return "".join(parts)


def comment_bodies(sql: str) -> list[Span]:
    """Spans of comment text (delimiters excluded) in the raw, unstripped SQL.

    Line and block comments are located independently, so a `--` inside a
    block comment (or the reverse) is reported by both scans.
    """
    bodies = [Span(m.start() + 2, m.end()) for m in _LINE_COMMENT.finditer(sql)]
    bodies.extend(Span(s.start + 2, s.end - 2) for s in _block_comments(sql))
    return bodies


def strip_comments(sql: str) -> str:
    """Remove `--` line comments, then `/* ... */` block comments.

    Repeats until stable: removing a block comment can splice its neighbours
    into a new comment opener (`-/**/-` becomes `--`).
    """
    text = sql
    while True:
        stripped = _strip_block_comments(_LINE_COMMENT.sub("", text))
        if stripped == text:
            return stripped
        text = stripped


def normalize(sql: str) -> str:
    """Strip comments, fold tabs/newlines into spaces, collapse runs, trim."""
    text = _CONTROL_WS.sub(" ", strip_comments(sql))
    return _SPACE_RUN.sub(" ", text).strip()


def split_statements(normalized: str) -> list[str]:
    """Split normalized text on `;` into non-empty, trimmed statements."""
    return [s.strip() for s in normalized.split(";") if s.strip()]
