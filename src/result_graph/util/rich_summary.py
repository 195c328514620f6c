from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional

from rich.console import Console
from rich.table import Table

from ..normalize.schema import PrintoutGroup


def _groups(groups: Mapping[str, PrintoutGroup] | Iterable[PrintoutGroup]) -> Iterable[PrintoutGroup]:
    return groups.values() if isinstance(groups, Mapping) else groups


def build_groups_table(groups: Mapping[str, PrintoutGroup] | Iterable[PrintoutGroup]) -> Table:
    table = Table(title="Printouts", show_header=True, header_style="bold")
    table.add_column("Hash", style="cyan")
    table.add_column("Label")
    table.add_column("Kind")
    table.add_column("Parent", style="dim")
    table.add_column("Nodes", justify="right")
    table.add_column("Edges", justify="right")
    for group in _groups(groups):
        descriptor = group.descriptor
        if descriptor.main_column:
            kind = "main"
        elif descriptor.label_for is not None:
            kind = "label"
        else:
            kind = "node" if descriptor.is_node else "field"
        table.add_row(
            descriptor.hash,
            descriptor.field_label(),
            kind,
            "" if descriptor.main_column else str(descriptor.parent_hash or ""),
            str(len(group.nodes)),
            str(len(group.edges)),
        )
    return table


def render_groups_table(
    groups: Mapping[str, PrintoutGroup] | Iterable[PrintoutGroup],
    *,
    console: Optional[Console] = None,
) -> None:
    (console or Console()).print(build_groups_table(groups))


def render_build_summary_table(
    *,
    enabled: bool,
    metrics: Dict[str, Any],
    outdir: Optional[str],
    console: Optional[Console] = None,
) -> None:
    if not enabled:
        return
    table = Table(title="Graph Summary", show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Rows", str(metrics.get("rows", 0)))
    table.add_row("Printouts", str(metrics.get("printouts", 0)))
    table.add_row("Nodes", str(metrics.get("nodes", 0)))
    table.add_row("Edges", str(metrics.get("edges", 0)))
    table.add_row("Fields", str(metrics.get("fields", 0)))
    table.add_row("Output", outdir or "stdout")
    # stdout may carry the rendered document.
    (console or Console(stderr=True)).print(table)
