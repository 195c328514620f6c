from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml
from rich.console import Console

from .config import GraphOptions, RunConfig, load_run_config
from .export.graph import GraphAggregator
from .logging import LogConfig, add_run_log_file, get_logger, setup_logging
from .normalize.printouts import describe_columns, descriptors_from_dicts, normalize_hash
from .normalize.schema import PrintoutDescriptor, PrintoutGroup, Row, resolve_output_paths
from .render import RenderedGraph, render_graph
from .util.errors import ConfigError, InputError, as_exit_code
from .util.rich_summary import render_build_summary_table, render_groups_table

LOG = get_logger(__name__)


@dataclass(frozen=True)
class InputDocument:
    """
    A query result as read from disk: either raw `columns` or ready-made
    `printouts` (descriptors), plus the `rows`.
    """

    rows: List[Row]
    columns: Optional[List[Dict[str, Any]]] = None
    printouts: Optional[List[Dict[str, Any]]] = None

    def descriptors(self, options: GraphOptions) -> List[PrintoutDescriptor]:
        if self.printouts is not None:
            return descriptors_from_dicts(self.printouts)
        return describe_columns(self.columns or [], options)


class _StepTimers:
    def __init__(self) -> None:
        self._starts: Dict[str, float] = {}

    def start(self, key: str) -> None:
        self._starts[key] = perf_counter()

    def finish(self, key: str) -> Optional[int]:
        started = self._starts.pop(key, None)
        if started is None:
            return None
        return int((perf_counter() - started) * 1000)


def _log_event(
    logger: Any,
    level: int,
    message: str,
    *,
    step: str,
    phase: str,
    timers: Optional[_StepTimers] = None,
    **extra: Any,
) -> None:
    duration_ms = None
    if timers is not None:
        if phase == "start":
            timers.start(step)
        elif phase in {"complete", "error"}:
            duration_ms = timers.finish(step)
    payload: Dict[str, Any] = {"step": step, "phase": phase, "event": f"{step}.{phase}"}
    if duration_ms is not None:
        payload["duration_ms"] = duration_ms
    payload.update(extra)
    logger.log(level, message, extra=payload)


def _parse_document(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise InputError(f"Cannot read input document {path}: {e}") from e
    try:
        if path.suffix.lower() == ".json":
            return json.loads(text)
        # YAML is a superset of JSON
        return yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as e:
        raise InputError(f"Failed to parse input document {path}: {e}") from e


def _list_of_mappings(data: Any, key: str) -> List[Dict[str, Any]]:
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise InputError(f"Input field '{key}' must be a list of objects")
    return [dict(item) for item in data]


def _rows(data: Any, *, normalize_hashes: bool) -> List[Row]:
    rows: List[Row] = []
    for index, row in enumerate(_list_of_mappings(data, "rows")):
        normalized: Dict[str, List[Dict[str, Any]]] = {}
        for printout_hash, values in row.items():
            if values is None:
                values = []
            if not isinstance(values, list):
                raise InputError(f"Row {index}: values of {printout_hash} must be a list")
            key = normalize_hash(printout_hash) if normalize_hashes else str(printout_hash)
            normalized[key] = _list_of_mappings(values, f"rows[{index}].{printout_hash}")
        rows.append(normalized)
    return rows


def load_input_document(path: Path) -> InputDocument:
    data = _parse_document(path)
    if not isinstance(data, dict):
        raise InputError("Top-level input document must be an object")
    has_columns = data.get("columns") is not None
    has_printouts = data.get("printouts") is not None
    if has_columns == has_printouts:
        raise InputError("Input document needs exactly one of 'columns' or 'printouts'")
    # Column hashes are normalised when described, so row keys must follow.
    rows = _rows(data.get("rows") or [], normalize_hashes=has_columns)
    if has_columns:
        return InputDocument(rows=rows, columns=_list_of_mappings(data["columns"], "columns"))
    return InputDocument(rows=rows, printouts=_list_of_mappings(data["printouts"], "printouts"))


def graph_metrics(groups: Mapping[str, PrintoutGroup], rows: Sequence[Row]) -> Dict[str, int]:
    nodes = {node_id: node for group in groups.values() for node_id, node in group.nodes.items()}
    return {
        "rows": len(rows),
        "printouts": len(groups),
        "nodes": len(nodes),
        "edges": sum(len(group.edges) for group in groups.values()),
        "fields": sum(len(node.fields) for node in nodes.values()),
    }


def _require_input(cfg: RunConfig) -> Path:
    if cfg.input is None:
        raise ConfigError("An input document is required (--input or RESULT_GRAPH_INPUT)")
    return cfg.input


def _write_outputs(outdir: Path, cfg: RunConfig, rendered: RenderedGraph) -> List[Path]:
    paths = resolve_output_paths(outdir)
    paths.root.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for path, content in (
        (paths.graph_dot, rendered.dot),
        (paths.legend_dot, rendered.legend_dot),
        (paths.legend_html, rendered.legend_html),
        (paths.markup, rendered.markup(cfg.graph.layout) if cfg.markup else None),
    ):
        if content is None:
            continue
        path.write_text(content, encoding="utf-8")
        written.append(path)
    return written


def cmd_render(cfg: RunConfig) -> int:
    input_path = _require_input(cfg)
    timers = _StepTimers()
    if cfg.outdir is not None:
        add_run_log_file(resolve_output_paths(cfg.outdir).debug_log)
    _log_event(LOG, logging.INFO, "Render started", step="render", phase="start", timers=timers, input=str(input_path))

    document = load_input_document(input_path)
    rendered = render_graph(document.descriptors(cfg.graph), document.rows, cfg.graph)

    if cfg.outdir is not None:
        written = _write_outputs(cfg.outdir, cfg, rendered)
        outputs = [str(p) for p in written]
    else:
        sys.stdout.write(rendered.markup(cfg.graph.layout) if cfg.markup else rendered.document())
        sys.stdout.write("\n")
        outputs = ["stdout"]

    metrics = graph_metrics(rendered.groups, document.rows)
    _log_event(
        LOG,
        logging.INFO,
        "Render complete",
        step="render",
        phase="complete",
        timers=timers,
        outputs=outputs,
        **metrics,
    )
    render_build_summary_table(
        enabled=cfg.summary,
        metrics=metrics,
        outdir=str(cfg.outdir) if cfg.outdir else None,
    )
    return 0


def cmd_describe(cfg: RunConfig) -> int:
    document = load_input_document(_require_input(cfg))
    descriptors = document.descriptors(cfg.graph)
    aggregator = GraphAggregator(descriptors, link=cfg.graph.link, fields=cfg.graph.show_fields)
    groups = aggregator.consume(document.rows)
    render_groups_table(groups, console=Console())
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    try:
        command, cfg = load_run_config(argv=argv)
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))

        if command == "render":
            code = cmd_render(cfg)
        elif command == "describe":
            code = cmd_describe(cfg)
        else:
            raise ConfigError(f"Unknown command: {command}")

        sys.exit(code)
    except SystemExit:
        raise
    except BrokenPipeError:
        # Common when the DOT output is piped to `head` or similar tools.
        sys.exit(0)
    except Exception as e:
        setup_logging(LogConfig())
        LOG.error("Execution failed", extra={"error": str(e)})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()
