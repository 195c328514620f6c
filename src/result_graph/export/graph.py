from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from ..logging import get_logger
from ..normalize.schema import (
    Edge,
    Field,
    Node,
    PrintoutDescriptor,
    PrintoutGroup,
    Row,
    Value,
    align_for_type,
)
from ..util.errors import UnknownPrintoutError

LOG = get_logger(__name__)

_LEADING_INT_RE = re.compile(r"^\s*(\d+)")

# Nodes of one printout seen in the current row, by id, in insertion order.
Pool = Dict[str, Node]


@dataclass(frozen=True)
class ResultValue:
    id: str
    caption: str
    long: str
    is_file: bool = False


def _leading_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    match = _LEADING_INT_RE.match(str(value or ""))
    return int(match.group(1)) if match else 0


def image_reference(long_name: str, node_attrs: Mapping[str, Any]) -> str:
    """
    Markup image reference for a file value, e.g. [[File:Duck.jpg|width=120|height=80]].
    """
    width = _leading_int(node_attrs.get("imagewidth"))
    height = _leading_int(node_attrs.get("imageheight"))
    options = (f"|width={width}" if width else "") + (f"|height={height}" if height else "")
    return f"[[{long_name}{options}]]"


def normalize_value(raw: Mapping[str, Any]) -> Optional[ResultValue]:
    """
    Coerce one raw result value. Returns None for values without an id.
    """
    raw_id = raw.get("id")
    if raw_id is None or str(raw_id) == "":
        return None
    value_id = str(raw_id)
    long_name = str(raw.get("long") or value_id)
    caption = str(raw.get("caption") or long_name)
    is_file = raw.get("is_file", raw.get("is file", False))
    return ResultValue(id=value_id, caption=caption, long=long_name, is_file=bool(is_file))


class GraphAggregator:
    """
    Folds query result rows into printout groups of nodes and edges.

    The aggregator owns the node identity index: a node id seen in several rows
    or printouts is one Node object, shared by every group that lists it, so
    merges and relabelling are visible everywhere.
    """

    def __init__(
        self,
        descriptors: Sequence[PrintoutDescriptor],
        *,
        link: bool = False,
        fields: bool = True,
    ) -> None:
        self._descriptors: Dict[str, PrintoutDescriptor] = {d.hash: d for d in descriptors}
        self._link = link
        self._fields = fields
        self._nodes: Dict[str, Node] = {}
        self._groups: Dict[str, PrintoutGroup] = {d.hash: PrintoutGroup(descriptor=d) for d in descriptors}
        self._edge_keys: Dict[str, Set[Edge]] = {d.hash: set() for d in descriptors}
        self.rows_consumed = 0

    @property
    def nodes(self) -> Mapping[str, Node]:
        return self._nodes

    def consume(self, rows: Iterable[Row]) -> Dict[str, PrintoutGroup]:
        for row in rows:
            self.consume_row(row)
        LOG.debug(
            "Aggregated result rows",
            extra={
                "step": "aggregate",
                "phase": "done",
                "rows": self.rows_consumed,
                "nodes": len(self._nodes),
                "edges": sum(len(g.edges) for g in self._groups.values()),
            },
        )
        return self._groups

    def consume_row(self, row: Row) -> None:
        unknown = [h for h in row if h not in self._descriptors]
        if unknown:
            raise UnknownPrintoutError(unknown[0])

        values: Dict[str, List[ResultValue]] = {}
        for printout_hash, raw_values in row.items():
            kept: List[ResultValue] = []
            for raw in raw_values or ():
                value = normalize_value(raw)
                if value is None:
                    LOG.debug("Dropped value without id", extra={"printout": printout_hash})
                    continue
                kept.append(value)
            values[printout_hash] = kept

        pools, targets = self._collect_nodes(values)
        self._resolve_edges(pools, targets)
        self._attach_fields(pools, values)
        self.rows_consumed += 1

    def _upsert(self, value: ResultValue, descriptor: PrintoutDescriptor) -> Node:
        record = Node(
            label=value.caption,
            url=value.long if self._link else None,
            image=image_reference(value.long, descriptor.node_attrs) if value.is_file else None,
        )
        existing = self._nodes.get(value.id)
        if existing is None:
            self._nodes[value.id] = record
            return record
        return existing.merge(record)

    def _collect_nodes(
        self, values: Mapping[str, List[ResultValue]]
    ) -> Tuple[Dict[str, Pool], List[Tuple[str, str, str]]]:
        pools: Dict[str, Pool] = {}
        targets: List[Tuple[str, str, str]] = []
        for printout_hash, column in values.items():
            descriptor = self._descriptors[printout_hash]
            if not descriptor.is_node:
                continue
            pool = pools.setdefault(printout_hash, {})
            group = self._groups[printout_hash]
            for value in column:
                node = self._upsert(value, descriptor)
                pool[value.id] = node
                group.nodes[value.id] = node
                if not descriptor.main_column and descriptor.parent_hash is not None:
                    targets.append((descriptor.parent_hash, printout_hash, value.id))
        return pools, targets

    def _parent_node(self, pools: Mapping[str, Pool], parent_hash: Optional[str]) -> Optional[Tuple[str, Node]]:
        # Several parents in one row cannot be told apart: the first one wins.
        pool = pools.get(parent_hash or "")
        if not pool:
            return None
        node_id = next(iter(pool))
        return node_id, pool[node_id]

    def _resolve_edges(self, pools: Mapping[str, Pool], targets: List[Tuple[str, str, str]]) -> None:
        for parent_hash, printout_hash, target in targets:
            parent = self._parent_node(pools, parent_hash)
            if parent is None:
                LOG.debug(
                    "No parent node for edge target",
                    extra={"printout": printout_hash, "parent": parent_hash, "target": target},
                )
                continue
            edge = Edge(source=parent[0], target=target)
            if edge in self._edge_keys[printout_hash]:
                continue
            self._edge_keys[printout_hash].add(edge)
            self._groups[printout_hash].edges.append(edge)

    def _field(self, descriptor: PrintoutDescriptor, column: List[ResultValue]) -> Field:
        href = descriptor.edge_attrs.get("URL") if self._link else None
        color = descriptor.edge_attrs.get("fontcolor")
        field = Field(
            label=descriptor.field_label(),
            type=descriptor.type,
            align=align_for_type(descriptor.type),
            href=str(href) if href is not None else None,
            color=str(color) if color is not None else None,
        )
        for value in column:
            field.values.append(
                Value(
                    text=value.caption,
                    image=image_reference(value.long, descriptor.node_attrs) if value.is_file else None,
                    href=f"[[{value.long}]]" if descriptor.is_page and self._link else None,
                )
            )
        return field

    def _attach_fields(self, pools: Mapping[str, Pool], values: Mapping[str, List[ResultValue]]) -> None:
        for printout_hash, column in values.items():
            descriptor = self._descriptors[printout_hash]
            if descriptor.is_node or not column:
                continue
            if descriptor.label_for is not None:
                for node in pools.get(descriptor.parent_hash or "", {}).values():
                    node.label = column[0].caption
                continue
            if not self._fields:
                # On-node fields are off: the column is not rendered at all.
                continue
            parent =self._parent_node(pools, descriptor.parent_hash)
            if parent is None:
                LOG.debug(
                    "No parent node for field",
                    extra={"printout": printout_hash, "parent": descriptor.parent_hash},
                )
                continue
            parent[1].add_field(descriptor.chain, self._field(descriptor, column))


def build_graph(
    descriptors: Sequence[PrintoutDescriptor],
    rows: Iterable[Row],
    *,
    link: bool = False,
    fields: bool = True,
) -> Dict[str, PrintoutGroup]:
    aggregator = GraphAggregator(descriptors, link=link, fields=fields)
    return aggregator.consume(rows)
