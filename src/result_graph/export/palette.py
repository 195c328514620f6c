from __future__ import annotations

from typing import Any, MutableMapping, Sequence, Tuple, Union

# A subset of SVG colour names, distinct enough for neighbouring printouts.
PALETTE: Tuple[str, ...] = (
    "black",
    "red",
    "green",
    "blue",
    "darkviolet",
    "gold",
    "deeppink",
    "brown",
    "bisque",
    "darkgreen",
    "yellow",
    "darkblue",
    "magenta",
    "steelblue2",
)

# Schemes whose colours are addressed by name; anything else gets 1-based indices.
NAMED_SCHEMES = {"named", "svg", "x11"}
COLOR_ATTRS = ("color", "fontcolor")


def is_named_scheme(scheme: str) -> bool:
    return scheme.strip().lower() in NAMED_SCHEMES


class PaletteCycle:
    """
    Hands out palette colours to printouts in order.

    One instance covers one graph build, so sibling printouts get distinct
    colours while separate builds stay reproducible.
    """

    def __init__(self, palette: Sequence[str] = PALETTE) -> None:
        if not palette:
            raise ValueError("Palette must contain at least one colour")
        self._palette = tuple(palette)
        self._counter = 0

    @property
    def position(self) -> int:
        return self._counter

    def reset(self) -> None:
        self._counter = 0

    def current(self, scheme: str) -> Union[str, int]:
        if is_named_scheme(scheme):
            return self._palette[self._counter]
        return self._counter + 1

    def assign(
        self,
        node_attrs: MutableMapping[str, Any],
        edge_attrs: MutableMapping[str, Any],
        *,
        node_scheme: str = "named",
        edge_scheme: str = "named",
    ) -> bool:
        """
        Fill color/fontcolor of both contexts unless the caller set either one.
        Returns True when the cycle advanced.
        """
        used = False
        for attrs, scheme in ((node_attrs, node_scheme), (edge_attrs, edge_scheme)):
            if any(attrs.get(attr) is not None for attr in COLOR_ATTRS):
                continue
            color = self.current(scheme)
            for attr in COLOR_ATTRS:
                attrs[attr] = color
            used = True
        if used:
            self._counter = (self._counter + 1) % len(self._palette)
        return used
