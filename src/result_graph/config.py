from __future__ import annotations

import argparse
import json
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

import yaml

from .export.palette import is_named_scheme
from .util.errors import ConfigError

# --------
# Defaults
# --------
DEFAULT_GRAPH_NAME = "QueryResult"
DEFAULT_WORD_WRAP_LIMIT = 25
DEFAULT_LAYOUT = "dot"
DEFAULT_COLORSCHEME = "named"

RELATION_NONE = "none"
RELATION_PARENT = "parent"
RELATION_CHILD = "child"
RELATIONS = (RELATION_PARENT, RELATION_CHILD, RELATION_NONE)
LAYOUTS = {"dot", "neato", "circo", "fdp", "osage", "sfdp", "twopi", "patchwork"}
CONTEXTS = ("graph", "node", "edge")

# Graphviz attributes accepted per context, for root level defaults and per-column overrides.
GRAPH_ATTRIBUTES: FrozenSet[str] = frozenset(
    {
        "bgcolor", "center", "charset", "class", "clusterrank", "colorscheme", "comment", "compound",
        "concentrate", "dpi", "fontcolor", "fontname", "fontnames", "fontpath", "fontsize", "forcelabels",
        "href", "id", "label", "labeljust", "labelloc", "landscape", "margin", "mclimit", "newrank",
        "nodesep", "nslimit", "ordering", "orientation", "outputorder", "pad", "page", "pagedir", "rank",
        "rankdir", "ranksep", "ratio", "remincross", "rotate", "searchsize", "size", "splines", "style",
        "stylesheet", "target", "tooltip", "truecolor", "URL",
    }
)
NODE_ATTRIBUTES: FrozenSet[str] = frozenset(
    {
        "class", "color", "colorscheme", "comment", "distortion", "fillcolor", "fixedsize", "fontcolor",
        "fontname", "fontsize", "gradientangle", "group", "height", "href", "id", "image", "imagepos",
        "imagescale", "label", "labelloc", "margin", "nojustify", "ordering", "orientation", "penwidth",
        "peripheries", "regular", "samplepoints", "shape", "shapefile", "sides", "skew", "sortv", "style",
        "target", "tooltip", "URL", "width", "xlabel",
    }
)
EDGE_ATTRIBUTES: FrozenSet[str] = frozenset(
    {
        "arrowhead", "arrowsize", "arrowtail", "class", "color", "colorscheme", "comment", "constraint",
        "decorate", "dir", "edgehref", "edgetarget", "edgetooltip", "edgeURL", "fillcolor", "fontcolor",
        "fontname", "fontsize", "headclip", "headhref", "headlabel", "headport", "headtarget",
        "headtooltip", "headURL", "href", "id", "label", "labelangle", "labeldistance", "labelfloat",
        "labelfontcolor", "labelfontname", "labelfontsize", "labelhref", "labeltarget", "labeltooltip",
        "labelURL", "lhead", "ltail", "minlen", "penwidth", "samehead", "sametail", "style", "tailclip",
        "tailhref", "taillabel", "tailport", "tailtarget", "tailtooltip", "tailURL", "target", "tooltip",
        "URL", "weight", "xlabel",
    }
)
DEFAULT_ALLOWED_ATTRS: Dict[str, FrozenSet[str]] = {
    "graph": GRAPH_ATTRIBUTES,
    "node": NODE_ATTRIBUTES,
    "edge": EDGE_ATTRIBUTES,
}

ALLOWED_CONFIG_KEYS = {
    "input",
    "outdir",
    "markup",
    "summary",
    "json_logs",
    "log_level",
    "graph_name",
    "relation",
    "color",
    "link",
    "show_fields",
    "oblique",
    "dot_legend",
    "legend",
    "word_wrap_limit",
    "line_separator",
    "label_properties",
    "layout",
    "node_colorscheme",
    "edge_colorscheme",
    "graph_attrs",
    "node_attrs",
    "edge_attrs",
}
BOOL_CONFIG_KEYS = {"markup", "summary", "json_logs", "color", "link", "show_fields", "oblique", "dot_legend", "legend"}
INT_CONFIG_KEYS = {"word_wrap_limit"}
PATH_CONFIG_KEYS = {"input", "outdir"}
STR_CONFIG_KEYS = {
    "log_level",
    "graph_name",
    "relation",
    "line_separator",
    "layout",
    "node_colorscheme",
    "edge_colorscheme",
}
ATTRS_CONFIG_KEYS = {"graph_attrs", "node_attrs", "edge_attrs"}


def filter_allowed_attrs(
    context: str,
    attrs: Optional[Mapping[str, Any]],
    allowed: Mapping[str, Iterable[str]],
) -> Dict[str, Any]:
    """
    Keep only attributes on the allow-list of the given context, preserving order.
    Unknown names are dropped with a warning.
    """
    permitted = set(allowed.get(context, ()))
    kept: Dict[str, Any] = {}
    unknown: List[str] = []
    for name, value in (attrs or {}).items():
        if name in permitted:
            kept[name] = value
        else:
            unknown.append(str(name))
    if unknown:
        warnings.warn(f"Unknown {context} attributes ignored: {', '.join(sorted(unknown))}")
    return kept


@dataclass(frozen=True)
class GraphOptions:
    graph_name: str = DEFAULT_GRAPH_NAME
    relation: str = RELATION_CHILD  # parent|child|none
    color: bool = False
    link: bool = False
    show_fields: bool = False
    oblique: bool = False
    dot_legend: bool = False
    legend: bool = False
    word_wrap_limit: int = DEFAULT_WORD_WRAP_LIMIT
    line_separator: str = "\n"
    label_properties: Tuple[str, ...] = ()
    layout: str = DEFAULT_LAYOUT

    # Colour schemes: named|svg|x11 use palette names, anything else palette indices.
    node_colorscheme: str = DEFAULT_COLORSCHEME
    edge_colorscheme: str = DEFAULT_COLORSCHEME

    # Root level defaults, filtered through allowed_attrs.
    graph_attrs: Dict[str, Any] = field(default_factory=dict)
    node_attrs: Dict[str, Any] = field(default_factory=dict)
    edge_attrs: Dict[str, Any] = field(default_factory=dict)
    allowed_attrs: Mapping[str, FrozenSet[str]] = field(default_factory=lambda: dict(DEFAULT_ALLOWED_ATTRS))

    def __post_init__(self) -> None:
        if self.relation not in RELATIONS:
            raise ConfigError(f"Option 'relation' must be one of: {', '.join(RELATIONS)}")
        if isinstance(self.word_wrap_limit, bool) or not isinstance(self.word_wrap_limit, int):
            raise ConfigError("Option 'word_wrap_limit' must be an integer")
        if self.word_wrap_limit < 1:
            raise ConfigError("Option 'word_wrap_limit' must be positive")
        if self.layout not in LAYOUTS:
            raise ConfigError(f"Option 'layout' must be one of: {', '.join(sorted(LAYOUTS))}")
        allowed = {ctx: frozenset(self.allowed_attrs.get(ctx, ())) for ctx in CONTEXTS}
        object.__setattr__(self, "allowed_attrs", allowed)
        object.__setattr__(self, "label_properties", tuple(self.label_properties))
        for ctx in CONTEXTS:
            attr_name = f"{ctx}_attrs"
            object.__setattr__(self, attr_name, filter_allowed_attrs(ctx, getattr(self, attr_name), allowed))

    @property
    def directed(self) -> bool:
        return self.relation != RELATION_NONE

    def colorscheme(self, context: str) -> str:
        return self.node_colorscheme if context == "node" else self.edge_colorscheme

    def root_attrs(self) -> Dict[str, Dict[str, Any]]:
        """
        Root level defaults per context. A real Graphviz colour scheme (neither
        named nor numeric) is declared on node/edge defaults so indices resolve.
        """
        out: Dict[str, Dict[str, Any]] = {"graph": dict(self.graph_attrs)}
        for ctx in ("node", "edge"):
            attrs = dict(getattr(self, f"{ctx}_attrs"))
            scheme = self.colorscheme(ctx)
            if self.color and not is_named_scheme(scheme) and scheme != "numeric":
                attrs.setdefault("colorscheme", scheme)
            out[ctx] = attrs
        return out


@dataclass(frozen=True)
class RunConfig:
    input: Optional[Path] = None
    outdir: Optional[Path] = None
    markup: bool = False
    summary: bool = False
    json_logs: bool = False
    log_level: str = "INFO"
    graph: GraphOptions = field(default_factory=GraphOptions)


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(text) or {}
        elif path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            # Try YAML first then JSON
            try:
                data = yaml.safe_load(text) or {}
            except Exception:
                data = json.loads(text)
    except Exception as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    return raw


def _env_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip().lower()
    if not raw:
        return None
    return raw in {"1", "true", "yes", "on"}


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except Exception:
        return None


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"Config field '{key}' must be a boolean")


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return int(value)
        except Exception:
            pass
    raise ValueError(f"Config field '{key}' must be an integer")


def _split_list(value: Any, key: str) -> List[str]:
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return [v.strip() for v in value if v.strip()]
    raise ValueError(f"Config field '{key}' must be a list of strings or comma-separated string")


def _parse_assignments(items: Optional[Iterable[str]], key: str) -> Optional[Dict[str, str]]:
    """
    Turn repeated KEY=VALUE command line items into an ordered mapping.
    """
    if not items:
        return None
    out: Dict[str, str] = {}
    for item in items:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise ConfigError(f"Option '{key}' expects KEY=VALUE, got {item!r}")
        out[name.strip()] = value
    return out


def _normalize_config_file(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(data.keys()) - ALLOWED_CONFIG_KEYS)
    if unknown:
        warnings.warn(f"Unknown config keys ignored: {', '.join(unknown)}")
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in ALLOWED_CONFIG_KEYS:
            continue
        if value is None:
            normalized[key] = None
            continue
        if key == "label_properties":
            normalized[key] = _split_list(value, key)
        elif key in BOOL_CONFIG_KEYS:
            normalized[key] = _coerce_bool(key, value)
        elif key in INT_CONFIG_KEYS:
            normalized[key] = _coerce_int(key, value)
        elif key in PATH_CONFIG_KEYS:
            if isinstance(value, (str, Path)):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string path")
        elif key in STR_CONFIG_KEYS:
            if isinstance(value, str):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string")
        elif key in ATTRS_CONFIG_KEYS:
            if not isinstance(value, dict):
                raise ValueError(f"Config field '{key}' must be a mapping")
            normalized[key] = {str(k): v for k, v in value.items()}
        else:
            normalized[key] = value
    relation = normalized.get("relation")
    if relation is not None:
        relation = str(relation).lower()
        if relation not in RELATIONS:
            raise ValueError(f"Config field 'relation' must be one of: {', '.join(RELATIONS)}")
        normalized["relation"] = relation
    return _compact_dict(normalized)


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow merge: values in b override a.
    """
    merged = dict(a)
    merged.update(b)
    return merged


def graph_options_from_mapping(data: Mapping[str, Any]) -> GraphOptions:
    """
    Build GraphOptions from a merged, normalised mapping; unrelated keys are ignored.
    """
    label_properties = data.get("label_properties") or ()
    if isinstance(label_properties, str):
        label_properties = _split_list(label_properties, "label_properties")
    return GraphOptions(
        graph_name=str(data.get("graph_name") or DEFAULT_GRAPH_NAME),
        relation=str(data.get("relation") or RELATION_CHILD).lower(),
        color=bool(data.get("color", False)),
        link=bool(data.get("link", False)),
        show_fields=bool(data.get("show_fields", False)),
        oblique=bool(data.get("oblique", False)),
        dot_legend=bool(data.get("dot_legend", False)),
        legend=bool(data.get("legend", False)),
        word_wrap_limit=_coerce_int("word_wrap_limit", data.get("word_wrap_limit", DEFAULT_WORD_WRAP_LIMIT)),
        line_separator=str(data["line_separator"]) if data.get("line_separator") is not None else "\n",
        label_properties=tuple(label_properties),
        layout=str(data.get("layout") or DEFAULT_LAYOUT),
        node_colorscheme=str(data.get("node_colorscheme") or DEFAULT_COLORSCHEME),
        edge_colorscheme=str(data.get("edge_colorscheme") or DEFAULT_COLORSCHEME),
        graph_attrs=dict(data.get("graph_attrs") or {}),
        node_attrs=dict(data.get("node_attrs") or {}),
        edge_attrs=dict(data.get("edge_attrs") or {}),
    )


def load_run_config(
    args: Optional[argparse.Namespace] = None,
    argv: Optional[list[str]] = None,
    subcommand: Optional[str] = None,
) -> Tuple[str, RunConfig]:
    """
    Build RunConfig by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.

    Returns:
      (command, RunConfig) where command is the subcommand selected: render|describe
    """
    parser = argparse.ArgumentParser(prog="result-graph", description="Render query results as Graphviz graphs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # common flags builder
    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
        p.add_argument("--input", type=Path, default=None, help="Query result document (YAML/JSON)")
        p.add_argument(
            "--json-logs",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Enable JSON logs",
        )
        p.add_argument("--log-level", default=None, help="Log level (INFO, DEBUG, ...)")
        p.add_argument(
            "--fields",
            dest="show_fields",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Show non-page columns as fields on their parent node",
        )
        p.add_argument(
            "--oblique",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Attach chained columns to the column of their prefix instead of the main one",
        )
        p.add_argument(
            "--label-property",
            dest="label_properties",
            action="append",
            default=None,
            help="Column label or chain used to relabel its parent node (repeatable)",
        )

    # render
    p_render = subparsers.add_parser("render", help="Render a query result as DOT")
    add_common(p_render)
    p_render.add_argument("--outdir", type=Path, default=None, help="Write graph.dot/legend files here")
    p_render.add_argument("--graph-name", default=None, help=f"Graph name (default {DEFAULT_GRAPH_NAME})")
    p_render.add_argument("--relation", default=None, choices=list(RELATIONS), help="Edge direction")
    p_render.add_argument("--color", action=argparse.BooleanOptionalAction, default=None, help="Colour printouts")
    p_render.add_argument("--link", action=argparse.BooleanOptionalAction, default=None, help="Add page links")
    p_render.add_argument(
        "--dot-legend", action=argparse.BooleanOptionalAction, default=None, help="Also render a DOT legend"
    )
    p_render.add_argument(
        "--legend", action=argparse.BooleanOptionalAction, default=None, help="Also render a markup legend"
    )
    p_render.add_argument(
        "--word-wrap-limit",
        type=int,
        default=None,
        help=f"Characters per label line (default {DEFAULT_WORD_WRAP_LIMIT})",
    )
    p_render.add_argument("--layout", default=None, help=f"Graphviz layout engine (default {DEFAULT_LAYOUT})")
    p_render.add_argument("--node-colorscheme", default=None, help="named|numeric|<graphviz scheme>")
    p_render.add_argument("--edge-colorscheme", default=None, help="named|numeric|<graphviz scheme>")
    p_render.add_argument("--graph-attr", action="append", default=None, help="Root graph attribute KEY=VALUE")
    p_render.add_argument("--node-attr", action="append", default=None, help="Default node attribute KEY=VALUE")
    p_render.add_argument("--edge-attr", action="append", default=None, help="Default edge attribute KEY=VALUE")
    p_render.add_argument(
        "--markup",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Wrap DOT documents in <graphviz> tags",
    )
    p_render.add_argument(
        "--summary", action=argparse.BooleanOptionalAction, default=None, help="Print a summary table"
    )

    # describe
    p_desc = subparsers.add_parser("describe", help="Summarise printout groups without rendering")
    add_common(p_desc)

    ns = args if args is not None else parser.parse_args(argv)
    command = ns.command if subcommand is None else subcommand

    # defaults
    base: Dict[str, Any] = {
        "input": None,
        "outdir": None,
        "markup": False,
        "summary": False,
        "json_logs": False,
        "log_level": "INFO",
        "graph_name": DEFAULT_GRAPH_NAME,
        "relation": RELATION_CHILD,
        "color": False,
        "link": False,
        "show_fields": False,
        "oblique": False,
        "dot_legend": False,
        "legend": False,
        "word_wrap_limit": DEFAULT_WORD_WRAP_LIMIT,
        "layout": DEFAULT_LAYOUT,
        "node_colorscheme": DEFAULT_COLORSCHEME,
        "edge_colorscheme": DEFAULT_COLORSCHEME,
    }

    # config file
    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize_config_file(_parse_config_file(Path(ns.config)))

    # env
    env_cfg: Dict[str, Any] = _compact_dict(
        {
            "input": _env_str("RESULT_GRAPH_INPUT"),
            "outdir": _env_str("RESULT_GRAPH_OUTDIR"),
            "json_logs": _env_bool("RESULT_GRAPH_JSON_LOGS"),
            "log_level": _env_str("RESULT_GRAPH_LOG_LEVEL"),
            "graph_name": _env_str("RESULT_GRAPH_NAME"),
            "relation": _env_str("RESULT_GRAPH_RELATION"),
            "color": _env_bool("RESULT_GRAPH_COLOR"),
            "link": _env_bool("RESULT_GRAPH_LINK"),
            "show_fields": _env_bool("RESULT_GRAPH_FIELDS"),
            "word_wrap_limit": _env_int("RESULT_GRAPH_WORD_WRAP_LIMIT"),
            "layout": _env_str("RESULT_GRAPH_LAYOUT"),
        }
    )

    # CLI
    cli_cfg: Dict[str, Any] = _compact_dict(
        {
            "input": getattr(ns, "input", None),
            "outdir": getattr(ns, "outdir", None),
            "markup": getattr(ns, "markup", None),
            "summary": getattr(ns, "summary", None),
            "json_logs": getattr(ns, "json_logs", None),
            "log_level": getattr(ns, "log_level", None),
            "graph_name": getattr(ns, "graph_name", None),
            "relation": getattr(ns, "relation", None),
            "color": getattr(ns, "color", None),
            "link": getattr(ns, "link", None),
            "show_fields": getattr(ns, "show_fields", None),
            "oblique": getattr(ns, "oblique", None),
            "dot_legend": getattr(ns, "dot_legend", None),
            "legend": getattr(ns, "legend", None),
            "word_wrap_limit": getattr(ns, "word_wrap_limit", None),
            "label_properties": getattr(ns, "label_properties", None),
            "layout": getattr(ns, "layout", None),
            "node_colorscheme": getattr(ns, "node_colorscheme", None),
            "edge_colorscheme": getattr(ns, "edge_colorscheme", None),
            "graph_attrs": _parse_assignments(getattr(ns, "graph_attr", None), "--graph-attr"),
            "node_attrs": _parse_assignments(getattr(ns, "node_attr", None), "--node-attr"),
            "edge_attrs": _parse_assignments(getattr(ns, "edge_attr", None), "--edge-attr"),
        }
    )

    merged = _merge_dicts(base, _merge_dicts(file_cfg, _merge_dicts(env_cfg, cli_cfg)))

    input_raw = merged.get("input")
    outdir_raw = merged.get("outdir")
    cfg = RunConfig(
        input=Path(input_raw) if input_raw else None,
        outdir=Path(outdir_raw) if outdir_raw else None,
        markup=bool(merged["markup"]),
        summary=bool(merged["summary"]),
        json_logs=bool(merged["json_logs"]),
        log_level=(merged.get("log_level") or "INFO").upper(),
        graph=graph_options_from_mapping(merged),
    )
    return command, cfg


def dump_config(cfg: RunConfig) -> Dict[str, Any]:
    opts = cfg.graph
    return {
        "input": str(cfg.input) if cfg.input else None,
        "outdir": str(cfg.outdir) if cfg.outdir else None,
        "markup": cfg.markup,
        "summary": cfg.summary,
        "json_logs": cfg.json_logs,
        "log_level": cfg.log_level,
        "graph_name": opts.graph_name,
        "relation": opts.relation,
        "color": opts.color,
        "link": opts.link,
        "show_fields": opts.show_fields,
        "oblique": opts.oblique,
        "dot_legend": opts.dot_legend,
        "legend": opts.legend,
        "word_wrap_limit": opts.word_wrap_limit,
        "label_properties": list(opts.label_properties),
        "layout": opts.layout,
        "node_colorscheme": opts.node_colorscheme,
        "edge_colorscheme": opts.edge_colorscheme,
        "graph_attrs": dict(opts.graph_attrs),
        "node_attrs": dict(opts.node_attrs),
        "edge_attrs": dict(opts.edge_attrs),
    }
