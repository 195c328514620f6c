from __future__ import annotations

import re
from functools import lru_cache
from typing import Pattern

_HTML_ENTITIES = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#039;",
    }
)


def escape_html(text: object) -> str:
    """
    Escape the five HTML special characters, the way DOT HTML-like labels and
    quoted attribute values expect them.
    """
    return str(text).translate(_HTML_ENTITIES)


@lru_cache(maxsize=32)
def _wrap_pattern(limit: int) -> Pattern[str]:
    # Either an unbreakable run of at least `limit` non-space characters, or the
    # longest run up to `limit` characters that ends right before whitespace.
    return re.compile(r"\S{%d,}|\S.{0,%d}(?=\s+|$)" % (limit, limit - 1))


def word_wrap(text: str, limit: int, separator: str = "\n") -> str:
    """
    Greedy word wrap: lines never exceed `limit` characters unless a single word
    is longer than that, in which case the word is kept whole on its own line.
    """
    if limit < 1:
        raise ValueError(f"Word wrap limit must be a positive integer, got {limit}")
    if not text:
        return ""
    return separator.join(_wrap_pattern(limit).findall(text))
