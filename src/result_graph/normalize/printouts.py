from __future__ import annotations

import re
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..config import GraphOptions
from ..logging import get_logger
from ..util.errors import ContractError
from .schema import PAGE_TYPES, ColumnSpec, PrintoutDescriptor

LOG = get_logger(__name__)

# Not Graphviz attributes: they size file values rendered as images.
IMAGE_SIZE_ATTRS = ("imagewidth", "imageheight")

ROLE_NODE = "node"
ROLE_FIELD = "field"

_CONTEXT_PREFIX_RE = {
    "node": re.compile(r"^node[_-]?"),
    "edge": re.compile(r"^edge[_-]?"),
}


def _normalize_keys(item: Mapping[str, Any]) -> Dict[str, Any]:
    # Column and descriptor documents may spell keys as "main column" or "main-column".
    return {str(k).strip().replace(" ", "_").replace("-", "_"): v for k, v in item.items()}


def split_chain(chain: str) -> Tuple[str, str]:
    """
    Split a dotted property chain into (prefix, last segment).
    """
    prefix, _, last = chain.rpartition(".")
    return prefix, last


def normalize_hash(printout_hash: str) -> str:
    return str(printout_hash).replace("|", ":")


def property_url(last: str) -> str:
    return f"[[Property:{last}]]"


def attribute_overrides(
    parameters: Optional[Mapping[str, Any]],
    context: str,
    allowed: Mapping[str, Iterable[str]],
    color: bool,
) -> Dict[str, Any]:
    """
    Pick the per-column Graphviz attributes of one context out of column parameters.

    `node_shape`, `node-shape` and `nodeshape` all become `shape` for the node context.
    Colour attributes are skipped when the graph is not coloured.
    """
    prefix_re = _CONTEXT_PREFIX_RE[context]
    permitted = set(allowed.get(context, ()))
    attrs: Dict[str, Any] = {}
    for passed, value in (parameters or {}).items():
        if value is None or value is False:
            continue
        attr = prefix_re.sub("", str(passed), count=1)
        if attr not in IMAGE_SIZE_ATTRS and attr not in permitted:
            continue
        if not color and "color" in attr:
            continue
        attrs[attr] = value
    return attrs


def _is_main(column: Mapping[str, Any]) -> bool:
    if "main_column" in column:
        return bool(column["main_column"])
    return not column.get("chain")


def describe_column(column: ColumnSpec, options: GraphOptions) -> PrintoutDescriptor:
    data = _normalize_keys(column)
    if not data.get("hash"):
        raise ContractError("Column is missing its hash")
    parameters: Dict[str, Any] = dict(data.get("parameters") or {})
    canonical = str(data.get("chain") or "")
    prefix, last = split_chain(canonical)
    label = str(data.get("label") if data.get("label") is not None else last)
    type_id = str(data.get("type") or "")
    role = parameters.get("role")
    main = _is_main(data)
    is_page = type_id in PAGE_TYPES

    label_for: Optional[str] = None
    if label in options.label_properties or canonical in options.label_properties:
        label_for = prefix

    edge_attrs = attribute_overrides(parameters, "edge", options.allowed_attrs, options.color)
    edge_attrs.setdefault("label", label)
    if options.link and "URL" not in edge_attrs:
        edge_attrs["URL"] = property_url(last)

    return PrintoutDescriptor(
        hash=normalize_hash(data["hash"]),
        chain="" if main else canonical,
        prefix=prefix,
        label=label,
        type=type_id,
        is_node=main or (is_page and role != ROLE_FIELD) or role == ROLE_NODE,
        is_page=is_page,
        main_column=main,
        label_for=label_for,
        node_attrs=attribute_overrides(parameters, "node", options.allowed_attrs, options.color),
        edge_attrs=edge_attrs,
    )


def resolve_parents(descriptors: Sequence[PrintoutDescriptor], oblique: bool) -> List[PrintoutDescriptor]:
    """
    Point every descriptor at the column its values hang under: the column of its
    chain prefix in oblique mode, the main column otherwise.
    """
    by_chain: Dict[str, str] = {}
    main_hash: Optional[str] = None
    for descriptor in descriptors:
        by_chain[descriptor.chain] = descriptor.hash
        if descriptor.main_column:
            main_hash = descriptor.hash

    resolved: List[PrintoutDescriptor] = []
    for descriptor in descriptors:
        if oblique and descriptor.prefix in by_chain:
            parent = by_chain[descriptor.prefix]
        else:
            parent = main_hash
        resolved.append(replace(descriptor, parent_hash=parent))
    return resolved


def describe_columns(columns: Sequence[ColumnSpec], options: GraphOptions) -> List[PrintoutDescriptor]:
    descriptors = [describe_column(column, options) for column in columns]
    descriptors = validate_descriptors(resolve_parents(descriptors, options.oblique))
    LOG.debug(
        "Described result columns",
        extra={"step": "describe", "phase": "done", "columns": len(descriptors)},
    )
    return descriptors


def descriptor_from_dict(item: Mapping[str, Any]) -> PrintoutDescriptor:
    data = _normalize_keys(item)
    if not data.get("hash"):
        raise ContractError("Printout descriptor is missing its hash")
    chain = str(data.get("chain") or "")
    type_id = str(data.get("type") or "")
    is_page = bool(data["is_page"]) if "is_page" in data else type_id in PAGE_TYPES
    prefix = data.get("prefix")
    label_for = data.get("label_for")
    parent_hash = data.get("parent_hash")
    main_column = bool(data.get("main_column", False))
    return PrintoutDescriptor(
        hash=str(data["hash"]),
        chain=chain,
        prefix=str(prefix) if prefix is not None else split_chain(chain)[0],
        label=str(data.get("label") or ""),
        type=type_id,
        is_node=bool(data["is_node"]) if "is_node" in data else (is_page or main_column),
        is_page=is_page,
        main_column=main_column,
        label_for=str(label_for) if label_for is not None else None,
        node_attrs=dict(data.get("node_attrs") or {}),
        edge_attrs=dict(data.get("edge_attrs") or {}),
        parent_hash=str(parent_hash) if parent_hash is not None else None,
    )


def descriptors_from_dicts(items: Iterable[Mapping[str, Any]]) -> List[PrintoutDescriptor]:
    """
    Load ready-made printout descriptors, e.g. from a JSON document.
    """
    return validate_descriptors([descriptor_from_dict(item) for item in items])


def validate_descriptors(descriptors: Sequence[PrintoutDescriptor]) -> List[PrintoutDescriptor]:
    """
    Enforce the descriptor table contract and fill missing parents with the main column.

    Raises ContractError for duplicate hashes, a missing or repeated main column,
    and parent hashes that do not name a descriptor.
    """
    seen: Dict[str, PrintoutDescriptor] = {}
    for descriptor in descriptors:
        if descriptor.hash in seen:
            raise ContractError(f"Duplicate printout hash: {descriptor.hash}")
        seen[descriptor.hash] = descriptor

    mains = [d.hash for d in descriptors if d.main_column]
    if len(mains) != 1:
        raise ContractError(f"Exactly one main column is required, found {len(mains)}")
    main_hash = mains[0]

    out: List[PrintoutDescriptor] = []
    for descriptor in descriptors:
        if descriptor.parent_hash is None:
            descriptor = replace(descriptor, parent_hash=main_hash)
        elif descriptor.parent_hash not in seen:
            raise ContractError(
                f"Printout {descriptor.hash} refers to unknown parent {descriptor.parent_hash}"
            )
        out.append(descriptor)
    return out
