from __future__ import annotations

from typing import Any, Dict, List

from result_graph.config import GraphOptions
from result_graph.normalize.printouts import describe_columns
from result_graph.render import RenderedGraph, render_columns, render_graph

TABLE = '<table border="0" cellborder="0" cellspacing="1" columns="*" rows="*">'

COLUMNS: List[Dict[str, Any]] = [
    {"hash": "main", "chain": "", "label": "", "type": "_wpg", "main_column": True},
    {"hash": "author", "chain": "Has author", "label": "Author", "type": "_wpg"},
    {"hash": "version", "chain": "Has version", "label": "Version", "type": "_num"},
]


def v(value_id: str, caption: str = "", **extra: Any) -> Dict[str, Any]:
    return {"id": value_id, "caption": caption or value_id, **extra}


ROWS = [
    {"main": [v("SMW")], "author": [v("Jeroen")], "version": [v("4.1.3")]},
    {"main": [v("SRF")], "author": [v("Markus")], "version": [v("4.2.1")]},
]


def _main_node(node_id: str, version: str) -> str:
    return (
        f'"{node_id}" [tooltip="{node_id}", label=<\n'
        f"{TABLE}\n"
        f'<tr><td colspan="2">{node_id}</td></tr><hr/>\n'
        f'<tr><td align="left" rowspan="1">Version</td><td align="right">{version}</td></tr>\n'
        "</table>\n"
        ">];\n"
    )


def test_fields_with_child_relation() -> None:
    options = GraphOptions(show_fields=True)

    rendered = render_graph(describe_columns(COLUMNS, options), ROWS, options)

    assert rendered.dot == (
        'digraph "QueryResult" {\n'
        'subgraph "main_nodes" {\n'
        + _main_node("SMW", "4.1.3")
        + _main_node("SRF", "4.2.1")
        + "}\n"
        'subgraph "author_nodes" {\n'
        '"Jeroen" [label="Jeroen"];\n'
        '"Markus" [label="Markus"];\n'
        "}\n"
        'subgraph "author_edges" {\n'
        'edge [label="Author"]\n'
        '"SMW" -> "Jeroen"\n'
        '"SRF" -> "Markus"\n'
        "}\n"
        "}"
    )
    assert rendered.legend_dot is None
    assert rendered.legend_html is None
    assert rendered.document() == rendered.dot


def test_fields_disabled_ignores_field_columns() -> None:
    rendered = render_columns(COLUMNS, ROWS, GraphOptions(show_fields=False))

    assert "<table" not in rendered.dot
    assert "4.1.3" not in rendered.dot
    assert "version_" not in rendered.dot
    assert '"SMW" [label="SMW"];\n' in rendered.dot
    assert '"SMW" -> "Jeroen"\n' in rendered.dot
    assert '"SRF" -> "Markus"\n' in rendered.dot
    assert {h: len(g.nodes) for h, g in rendered.groups.items()} == {"main": 2, "author": 2, "version": 0}
    assert rendered.groups["version"].edges == []


def test_main_column_without_type_carries_fields() -> None:
    columns = [
        {"hash": "main", "chain": "", "main_column": True},
        {"hash": "version", "chain": "Has version", "label": "Version", "type": "_num"},
    ]
    rows = [{"main": [v("SMW")], "version": [v("4.1.3")]}]

    dot = render_columns(columns, rows, GraphOptions(show_fields=True)).dot

    assert 'subgraph "main_nodes" {\n' in dot
    assert '<td align="right">4.1.3</td>' in dot


def test_file_values_render_as_images() -> None:
    columns = [
        {"hash": "main", "chain": "", "type": "_wpg", "main_column": True},
        {"hash": "logo", "chain": "Has logo", "label": "Logo", "type": "_wpg"},
        {
            "hash": "image",
            "chain": "Has image",
            "label": "Image",
            "type": "_wpg",
            "parameters": {"role": "field", "imagewidth": "120px"},
        },
    ]
    rows = [
        {
            "main": [v("File:Duck.jpg", "Duck.jpg", is_file=True)],
            "logo": [v("File:Logo.png", "Logo.png", is_file=True)],
            "image": [v("File:Duck2.jpg", "Duck2.jpg", is_file=True)],
        }
    ]

    dot = render_columns(columns, rows, GraphOptions(show_fields=True, link=True)).dot

    assert '<tr><td colspan="2" href="[[File:Duck.jpg]]"><img src="[[File:Duck.jpg]]" scale="true" /></td></tr><hr/>' in dot
    assert (
        '<tr><td align="left" href="[[Property:Has image]]" rowspan="1">Image</td>'
        '<td align="left" href="[[File:Duck2.jpg]]"><img src="[[File:Duck2.jpg|width=120]]" scale="true" /></td></tr>'
    ) in dot
    assert '"File:Logo.png" [image="[[File:Logo.png]]", label="", tooltip="Logo.png", URL="[[File:Logo.png]]"];' in dot
    assert 'edge [label="Logo", URL="[[Property:Has logo]]"]' in dot


def test_colours_and_legends() -> None:
    options = GraphOptions(show_fields=True, color=True, legend=True, dot_legend=True)

    rendered = render_columns(COLUMNS, ROWS, options)

    assert 'subgraph "main_nodes" {\nnode [color="black", fontcolor="black"]\n' in rendered.dot
    assert 'edge [label="Author", color="red", fontcolor="red"]' in rendered.dot
    assert '<font color="green">4.1.3</font>' in rendered.dot
    assert rendered.legend_dot is not None and rendered.legend_dot.startswith("digraph legend {")
    assert rendered.legend_html == (
        '<div class="graphlegend"><div class="graphlegenditem" style="color: red">'
        "<strong>⟶</strong>: Author</div></div>"
    )
    assert rendered.document() == "\n".join([rendered.dot, rendered.legend_dot, rendered.legend_html])


def test_markup_legend_requires_colour() -> None:
    rendered = render_columns(COLUMNS, ROWS, GraphOptions(legend=True))

    assert rendered.legend_html is None


def test_builds_are_reproducible() -> None:
    options = GraphOptions(show_fields=True, color=True)

    assert render_columns(COLUMNS, ROWS, options).dot == render_columns(COLUMNS, ROWS, options).dot


def test_markup_wraps_dot_documents() -> None:
    rendered = RenderedGraph(dot="digraph g {}", legend_dot="digraph legend {}", legend_html='<div class="graphlegend"></div>')

    assert rendered.markup("neato") == (
        '<graphviz layout="neato">digraph g {}</graphviz>'
        '<br /><graphviz layout="neato">digraph legend {}</graphviz>'
        '<div class="graphlegend"></div>'
    )
    assert RenderedGraph(dot="graph g {}").markup() == '<graphviz layout="dot">graph g {}</graphviz>'
