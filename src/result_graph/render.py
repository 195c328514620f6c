from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from .config import GraphOptions
from .export.dot import DotGraphBuilder
from .export.graph import GraphAggregator
from .export.palette import PaletteCycle
from .logging import get_logger
from .normalize.printouts import describe_columns, validate_descriptors
from .normalize.schema import ColumnSpec, PrintoutDescriptor, PrintoutGroup, Row

LOG = get_logger(__name__)

MARKUP_TAG = "graphviz"
MARKUP_BREAK = "<br />"


@dataclass(frozen=True)
class RenderedGraph:
    dot: str
    legend_dot: Optional[str] = None
    legend_html: Optional[str] = None
    groups: Dict[str, PrintoutGroup] = field(default_factory=dict, compare=False, repr=False)

    def document(self) -> str:
        """
        Graph, DOT legend and markup legend, in that order, one per line.
        """
        return "\n".join(part for part in (self.dot, self.legend_dot, self.legend_html) if part is not None)

    def markup(self, layout: str = "dot") -> str:
        """
        Wrap the DOT documents in <graphviz> tags for a host that renders them.
        """
        open_tag = f'<{MARKUP_TAG} layout="{layout}">'
        close_tag = f"</{MARKUP_TAG}>"
        result = f"{open_tag}{self.dot}{close_tag}"
        if self.legend_dot is not None:
            result += f"{MARKUP_BREAK}{open_tag}{self.legend_dot}{close_tag}"
        if self.legend_html is not None:
            result += self.legend_html
        return result


def apply_colors(descriptors: Sequence[PrintoutDescriptor], options: GraphOptions) -> List[PrintoutDescriptor]:
    """
    Colour every printout that has no explicit colour, from a fresh palette cycle.
    """
    cycle = PaletteCycle()
    colored: List[PrintoutDescriptor] = []
    for descriptor in descriptors:
        node_attrs = dict(descriptor.node_attrs)
        edge_attrs = dict(descriptor.edge_attrs)
        cycle.assign(
            node_attrs,
            edge_attrs,
            node_scheme=options.node_colorscheme,
            edge_scheme=options.edge_colorscheme,
        )
        colored.append(descriptor.with_attrs(node_attrs, edge_attrs))
    return colored


def render_graph(
    printouts: Sequence[PrintoutDescriptor],
    rows: Iterable[Row],
    options: GraphOptions,
) -> RenderedGraph:
    descriptors = validate_descriptors(printouts)
    if options.color:
        descriptors = apply_colors(descriptors, options)

    aggregator = GraphAggregator(descriptors, link=options.link, fields=options.show_fields)
    groups = aggregator.consume(rows)

    builder = DotGraphBuilder(options)
    rendered = RenderedGraph(
        dot=builder.build(groups),
        legend_dot=builder.dot_legend(groups) if options.dot_legend else None,
        legend_html=builder.html_legend(groups) if options.legend and options.color else None,
        groups=groups,
    )
    LOG.info(
        "Rendered graph",
        extra={
            "step": "render",
            "phase": "done",
            "rows": aggregator.rows_consumed,
            "nodes": len(aggregator.nodes),
            "printouts": len(groups),
        },
    )
    return rendered


def render_columns(
    columns: Sequence[ColumnSpec],
    rows: Iterable[Row],
    options: GraphOptions,
) -> RenderedGraph:
    return render_graph(describe_columns(columns, options), rows, options)
