from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..config import RELATION_NONE, RELATION_PARENT, GraphOptions
from ..logging import get_logger
from ..normalize.printouts import IMAGE_SIZE_ATTRS
from ..normalize.schema import Edge, PrintoutGroup
from ..util.text import escape_html
from .attrs import AttrMode, serialize_attrs
from .labels import NodeLabeler

LOG = get_logger(__name__)

Groups = Union[Mapping[str, PrintoutGroup], Iterable[PrintoutGroup]]

LEGEND_ARROW = "⟶"
LEGEND_TABLE_OPEN = '<table border="0" cellpadding="2" cellspacing="0" cellborder="0">'


def _as_list(groups: Groups) -> List[PrintoutGroup]:
    if isinstance(groups, Mapping):
        return list(groups.values())
    return list(groups)


def _graphviz_attrs(attrs: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in attrs.items() if k not in IMAGE_SIZE_ATTRS}


def _statement(subject: str, attrs: Optional[Mapping[str, Any]]) -> str:
    serialized = serialize_attrs(attrs)
    return f"{subject} {serialized}" if serialized else subject


class DotGraphBuilder:
    """
    Serialises printout groups into a DOT document: one subgraph of nodes and
    one subgraph of edges per printout, under the root graph defaults.
    """

    def __init__(self, options: GraphOptions) -> None:
        self.options = options
        self.labeler = NodeLabeler(options)

    @property
    def graph_keyword(self) -> str:
        return "digraph" if self.options.directed else "graph"

    def arrow(self, source: str, target: str) -> str:
        relation = self.options.relation
        if relation == RELATION_NONE:
            return f"{target} -- {source}"
        if relation == RELATION_PARENT:
            return f"{target} -> {source}"
        return f"{source} -> {target}"

    def header(self) -> str:
        roots = self.options.root_attrs()
        lines = [f'{self.graph_keyword} "{escape_html(self.options.graph_name)}" {{\n']
        lines.append(serialize_attrs(roots["graph"], AttrMode.ROOT))
        for context in ("node", "edge"):
            serialized = serialize_attrs(roots[context])
            if serialized:
                lines.append(f"{context} {serialized}\n")
        return "".join(lines)

    def _subgraph(self, name: str, context: str, attrs: Mapping[str, Any], body: List[str]) -> str:
        lines = [f'subgraph "{escape_html(name)}" {{\n']
        defaults = serialize_attrs(_graphviz_attrs(attrs))
        if defaults:
            lines.append(f"{context} {defaults}\n")
        lines.extend(body)
        lines.append("}\n")
        return "".join(lines)

    def node_statement(self, node_id: str, group: PrintoutGroup) -> str:
        node = group.nodes[node_id]
        return _statement(f'"{escape_html(node_id)}"', self.labeler.attributes(node_id, node)) + ";\n"

    def edge_statement(self, edge: Edge) -> str:
        return self.arrow(f'"{escape_html(edge.source)}"', f'"{escape_html(edge.target)}"') + "\n"

    def build(self, groups: Groups) -> str:
        ordered = _as_list(groups)
        parts = [self.header()]
        for group in ordered:
            if not group.nodes:
                continue
            body = [self.node_statement(node_id, group) for node_id in group.nodes]
            parts.append(self._subgraph(f"{group.hash}_nodes", "node", group.descriptor.node_attrs, body))
        for group in ordered:
            if not group.edges:
                continue
            body = [self.edge_statement(edge) for edge in group.edges]
            parts.append(self._subgraph(f"{group.hash}_edges", "edge", group.descriptor.edge_attrs, body))
        parts.append("}")
        LOG.debug(
            "Serialised graph",
            extra={"step": "dot", "phase": "done", "groups": len(ordered)},
        )
        return "".join(parts)

    def legend_arrow(self, port: str) -> str:
        left = f'"key":"{port}":e'
        right = f'"key2":"{port}":w'
        if self.options.relation == RELATION_NONE:
            return f"{left} -- {right}"
        if self.options.relation == RELATION_PARENT:
            return f"{right} -> {left}"
        return f"{left} -> {right}"

    def dot_legend(self, groups: Groups) -> str:
        """
        A separate DOT document explaining edge colours: two plaintext tables
        with one port row per printout that has edges, joined by sample edges
        styled like the real ones.
        """
        rows: List[str] = []
        arrows: List[str] = []
        for index, group in enumerate(g for g in _as_list(groups) if g.edges):
            port = f"p{index}"
            rows.append(f'<tr><td port="{port}">&nbsp;</td></tr>')
            arrows.append(_statement(self.legend_arrow(port), _graphviz_attrs(group.descriptor.edge_attrs)))
        table = "\n".join(rows)
        return (
            f"{self.graph_keyword} legend {{\n"
            "rankdir=LR;\n"
            f"key [label=<{LEGEND_TABLE_OPEN}\n{table}\n</table>>, shape=plaintext]\n"
            f"key2 [label=<{LEGEND_TABLE_OPEN}\n{table}\n</table>>, shape=plaintext]\n"
            + "".join(f"{arrow}\n" for arrow in arrows)
            + "}"
        )

    def html_legend(self, groups: Groups) -> str:
        items: List[str] = []
        for group in _as_list(groups):
            if not group.edges:
                continue
            attrs = group.descriptor.edge_attrs
            label = escape_html(group.descriptor.field_label())
            url = attrs.get("URL")
            if url is not None:
                url = str(url)
                label = f"{url[:-2]}|{label}]]" if url.endswith("]]") else url
            color = attrs.get("color")
            style = f' style="color: {escape_html(color)}"' if color is not None else ""
            items.append(
                f'<div class="graphlegenditem"{style}><strong>{LEGEND_ARROW}</strong>: {label}</div>'
            )
        return f'<div class="graphlegend">{"".join(items)}</div>'
