from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, TypedDict


class ColumnSpec(TypedDict, total=False):
    hash: str
    chain: str
    label: str
    type: str
    main_column: bool
    parameters: Dict[str, Any]


# One query result row: printout hash -> values of that column, in order.
Row = Mapping[str, Sequence[Mapping[str, Any]]]


@dataclass(frozen=True)
class PrintoutDescriptor:
    hash: str
    chain: str
    prefix: str = ""
    label: str = ""
    type: str = ""
    is_node: bool = False
    is_page: bool = False
    main_column: bool = False
    label_for: Optional[str] = None
    node_attrs: Dict[str, Any] = field(default_factory=dict)
    edge_attrs: Dict[str, Any] = field(default_factory=dict)
    parent_hash: Optional[str] = None

    def with_attrs(self, node_attrs: Mapping[str, Any], edge_attrs: Mapping[str, Any]) -> PrintoutDescriptor:
        return replace(self, node_attrs=dict(node_attrs), edge_attrs=dict(edge_attrs))

    def field_label(self) -> str:
        label = self.edge_attrs.get("label")
        return str(label) if label is not None else self.label


@dataclass
class Value:
    text: str
    image: Optional[str] = None
    href: Optional[str] = None


@dataclass
class Field:
    label: str
    type: str = ""
    align: str = "left"
    values: List[Value] = field(default_factory=list)
    href: Optional[str] = None
    color: Optional[str] = None

    def copy(self) -> Field:
        return replace(self, values=list(self.values))

    def merge(self, other: Field) -> None:
        """
        Append the other field's values (order preserving, no duplicates).
        Scalars already set on this field win.
        """
        for value in other.values:
            if value not in self.values:
                self.values.append(value)
        if self.href is None:
            self.href = other.href
        if self.color is None:
            self.color = other.color


@dataclass
class Node:
    label: Optional[str] = None
    url: Optional[str] = None
    image: Optional[str] = None
    fields: Dict[str, Field] = field(default_factory=dict)

    def add_field(self, chain: str, new: Field) -> None:
        if not new.values:
            return
        existing = self.fields.get(chain)
        if existing is None:
            self.fields[chain] = new.copy()
        else:
            existing.merge(new)

    def merge(self, other: Node) -> Node:
        """
        Merge another record of the same entity into this one, in place.
        Earlier attributes win; absent ones are filled; fields deep-merge.
        """
        if other is self:
            return self
        if self.label is None:
            self.label = other.label
        if self.url is None:
            self.url = other.url
        if self.image is None:
            self.image = other.image
        for chain, other_field in other.fields.items():
            self.add_field(chain, other_field)
        return self


@dataclass(frozen=True)
class Edge:
    source: str
    target: str


@dataclass
class PrintoutGroup:
    descriptor: PrintoutDescriptor
    nodes: Dict[str, Node] = field(default_factory=dict)
    edges: List[Edge] = field(default_factory=list)

    @property
    def hash(self) -> str:
        return self.descriptor.hash


@dataclass(frozen=True)
class OutputPaths:
    root: Path
    graph_dot: Path
    legend_dot: Path
    legend_html: Path
    markup: Path
    debug_log: Path


def resolve_output_paths(outdir: Path) -> OutputPaths:
    root = outdir
    return OutputPaths(
        root=root,
        graph_dot=root / "graph.dot",
        legend_dot=root / "legend.dot",
        legend_html=root / "legend.html",
        markup=root / "graph.markup",
        debug_log=root / "logs" / "debug.log",
    )


# SMW type ids whose values are right-aligned in on-node fields.
RIGHT_ALIGNED_TYPES: List[str] = ["_num", "_qty", "_dat", "_tem"]

# SMW type ids that reference addressable pages and are nodes by default.
PAGE_TYPES: List[str] = ["_wpg", "_wpp", "_wps", "_wpu", "__sup", "__sin", "__suc", "__con"]


def align_for_type(type_id: str) -> str:
    return "right" if type_id in RIGHT_ALIGNED_TYPES else "left"
