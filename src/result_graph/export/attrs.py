from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from ..util.text import escape_html

Attrs = Dict[str, Any]

# Values that are already DOT strings or HTML-like labels go out verbatim.
_VERBATIM_RE = re.compile(r'".*"|<.*>', re.DOTALL)


class AttrMode(Enum):
    BRACKETED = "bracketed"  # node, edge and attr statements: [k="v", k2="v2"]
    BARE = "bare"  # pseudo-HTML tag attributes: k="v" k2="v2"
    ROOT = "root"  # statements in a graph or subgraph body, one per line


ATTR_WRAPPERS: Dict[AttrMode, Tuple[str, str, str]] = {
    AttrMode.BRACKETED: ("[", ", ", "]"),
    AttrMode.BARE: ("", " ", ""),
    AttrMode.ROOT: ("", "\n", "\n"),
}


def is_verbatim(value: str) -> bool:
    return _VERBATIM_RE.fullmatch(value) is not None


def quote(text: str) -> str:
    return f'"{escape_html(text)}"'


def format_value(value: Any) -> str:
    text = str(value)
    if is_verbatim(text):
        return text
    return quote(text)


def compact_attrs(attrs: Optional[Mapping[str, Any]]) -> Attrs:
    """
    Drop keys with None values; an absent attribute is never serialised.
    """
    return {k: v for k, v in (attrs or {}).items() if v is not None}


def serialize_attrs(attrs: Optional[Mapping[str, Any]], mode: AttrMode = AttrMode.BRACKETED) -> str:
    """
    Convert an ordered mapping of attributes into DOT syntax.

    Returns an empty string when nothing is left after dropping None values.
    """
    present = compact_attrs(attrs)
    if not present:
        return ""
    start, separator, end = ATTR_WRAPPERS[mode]
    return start + separator.join(f"{name}={format_value(value)}" for name, value in present.items()) + end
