"""Keyword scanner: boundary-aware denylist matching.

A keyword only matches as a standalone token: it must not touch a letter,
digit or underscore on either side. `DELETED_FLAG` is not `DELETE`, while
`DROP;TABLE` and `(DELETE` still are.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

from sqlgate.diagnostics import Span


@lru_cache(maxsize=512)
def keyword_regex(keyword: str) -> re.Pattern[str]:
    """Compile the boundary regex for one keyword (spaces match any whitespace run)."""
    body = r"\s+".join(re.escape(part) for part in keyword.upper().split())
    return re.compile(rf"(?<![A-Za-z0-9_]){body}(?![A-Za-z0-9_])", re.IGNORECASE)


def find_keyword(text: str, keywords: Iterable[str]) -> tuple[str, Span] | None:
    """Return the first keyword (in iteration order) found in `text`, with its span."""
    upper = text.upper()
    for keyword in keywords:
        match = keyword_regex(keyword).search(upper)
        if match is not None:
            return keyword.upper(), Span(match.start(), match.end())
    return None


def starts_with_keyword(text: str, keyword: str) -> bool:
    """True if `text` opens with `keyword` as a standalone token."""
    return keyword_regex(keyword).match(text.upper()) is not None
