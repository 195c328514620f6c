from __future__ import annotations

from typing import Any, Dict

import pytest

from result_graph.export.graph import GraphAggregator, build_graph, image_reference, normalize_value
from result_graph.normalize.schema import Edge, Field, Node, PrintoutDescriptor, Value
from result_graph.util.errors import UnknownPrintoutError


def v(value_id: str, caption: str = "", **extra: Any) -> Dict[str, Any]:
    return {"id": value_id, "caption": caption or value_id, **extra}


MAIN = PrintoutDescriptor(hash="main", chain="", is_node=True, is_page=True, main_column=True, parent_hash="main")
AUTHOR = PrintoutDescriptor(
    hash="author",
    chain="Has author",
    label="Author",
    type="_wpg",
    is_node=True,
    is_page=True,
    parent_hash="main",
    edge_attrs={"label": "Author"},
)
VERSION = PrintoutDescriptor(
    hash="version",
    chain="Has version",
    label="Version",
    type="_num",
    parent_hash="main",
    edge_attrs={"label": "Version", "URL": "[[Property:Has version]]"},
)
NAME = PrintoutDescriptor(hash="name", chain="Has name", label="Name", type="_txt", label_for="", parent_hash="main")
ATTACHMENT = PrintoutDescriptor(
    hash="attachment",
    chain="Has attachment",
    label="Attachment",
    type="_wpg",
    is_page=True,
    parent_hash="main",
    node_attrs={"imagewidth": "120px"},
    edge_attrs={"label": "Attachment"},
)


def test_rows_become_groups_of_nodes_edges_and_fields() -> None:
    rows = [
        {"main": [v("SMW")], "author": [v("Jeroen"), v("Markus")], "version": [v("4.1.3")]},
        {"main": [v("SRF")], "author": [v("Jeroen"), v("Yaron")], "version": [v("4.2.1")]},
    ]
    aggregator = GraphAggregator([MAIN, AUTHOR, VERSION])
    groups = aggregator.consume(rows)

    assert list(groups["main"].nodes) == ["SMW", "SRF"]
    assert list(groups["author"].nodes) == ["Jeroen", "Markus", "Yaron"]
    assert groups["author"].edges == [
        Edge("SMW", "Jeroen"),
        Edge("SMW", "Markus"),
        Edge("SRF", "Jeroen"),
        Edge("SRF", "Yaron"),
    ]
    assert groups["version"].nodes == {}
    assert groups["version"].edges == []

    field = groups["main"].nodes["SMW"].fields["Has version"]
    assert field.label == "Version"
    assert field.align == "right"
    assert field.values == [Value("4.1.3")]
    assert field.href is None
    assert aggregator.nodes["Jeroen"] is groups["author"].nodes["Jeroen"]
    assert aggregator.rows_consumed == 2


def test_field_values_merge_across_rows() -> None:
    rows = [
        {"main": [v("SMW")], "version": [v("1")]},
        {"main": [v("SMW")], "version": [v("2"), v("1")]},
    ]
    groups = build_graph([MAIN, VERSION], rows)

    assert [value.text for value in groups["main"].nodes["SMW"].fields["Has version"].values] == ["1", "2"]


def test_first_parent_in_row_receives_edges_and_fields() -> None:
    rows = [{"main": [v("A"), v("B")], "author": [v("X")], "version": [v("1.0")]}]
    groups = build_graph([MAIN, AUTHOR, VERSION], rows)

    assert groups["author"].edges == [Edge("A", "X")]
    assert "Has version" in groups["main"].nodes["A"].fields
    assert groups["main"].nodes["B"].fields == {}


def test_repeated_edges_are_kept_once() -> None:
    rows = [{"main": [v("A")], "author": [v("X")]}, {"main": [v("A")], "author": [v("X")]}]

    assert build_graph([MAIN, AUTHOR], rows)["author"].edges == [Edge("A", "X")]


def test_label_column_relabels_the_merged_node() -> None:
    rows = [
        {"main": [v("SMW")], "name": [v("Semantic MediaWiki")]},
        {"main": [v("SRF")], "author": [v("SMW")], "name": []},
    ]
    groups = build_graph([MAIN, AUTHOR, NAME], rows)

    assert groups["main"].nodes["SMW"].label == "Semantic MediaWiki"
    assert groups["author"].nodes["SMW"].label == "Semantic MediaWiki"
    assert groups["main"].nodes["SMW"].fields == {}
    assert groups["main"].nodes["SRF"].label == "SRF"


def test_values_without_id_and_missing_parents_are_skipped() -> None:
    rows = [
        {"main": [{"caption": "No id"}, v("A")]},
        {"author": [v("Orphan")]},
        {"version": [v("9")]},
    ]
    groups = build_graph([MAIN, AUTHOR, VERSION], rows)

    assert list(groups["main"].nodes) == ["A"]
    assert list(groups["author"].nodes) == ["Orphan"]
    assert groups["author"].edges == []
    assert groups["main"].nodes["A"].fields == {}


def test_unknown_printout_hash_is_fatal() -> None:
    aggregator = GraphAggregator([MAIN])

    with pytest.raises(UnknownPrintoutError) as excinfo:
        aggregator.consume([{"main": [v("A")], "nope": []}])

    assert excinfo.value.printout_hash == "nope"
    assert aggregator.nodes == {}


def test_links_and_file_values() -> None:
    rows = [
        {
            "main": [v("File:Logo.png", "Logo.png", is_file=True)],
            "version": [v("4.1.3")],
            "attachment": [v("File:Duck.jpg", "Duck.jpg", **{"is file": True})],
        }
    ]
    groups = build_graph([MAIN, VERSION, ATTACHMENT], rows, link=True)

    node = groups["main"].nodes["File:Logo.png"]
    assert node.url == "File:Logo.png"
    assert node.image == "[[File:Logo.png]]"
    assert node.fields["Has version"].href == "[[Property:Has version]]"
    assert node.fields["Has version"].values == [Value("4.1.3")]
    assert node.fields["Has attachment"].values == [
        Value("Duck.jpg", image="[[File:Duck.jpg|width=120]]", href="[[File:Duck.jpg]]")
    ]


def test_field_colour_comes_from_edge_fontcolor() -> None:
    coloured = VERSION.with_attrs({}, {"label": "Version", "color": "red", "fontcolor": "blue"})
    groups = build_graph([MAIN, coloured], [{"main": [v("A")], "version": [v("1")]}])

    assert groups["main"].nodes["A"].fields["Has version"].color == "blue"


def test_image_reference_sizes() -> None:
    assert image_reference("File:Duck.jpg", {}) == "[[File:Duck.jpg]]"
    assert image_reference("File:Duck.jpg", {"imagewidth": "120px", "imageheight": 80}) == (
        "[[File:Duck.jpg|width=120|height=80]]"
    )


def test_normalize_value_defaults() -> None:
    value = normalize_value({"id": "SMW"})

    assert value is not None
    assert (value.caption, value.long, value.is_file) == ("SMW", "SMW", False)
    assert normalize_value({"id": "", "caption": "x"}) is None
    assert normalize_value({"id": "x", "long": "Long name"}).caption == "Long name"


def test_node_merge_with_itself_is_a_no_op() -> None:
    node = Node(label="A", fields={"f": Field(label="F", values=[Value("1")])})

    assert node.merge(node) is node
    assert node.fields["f"].values == [Value("1")]


def test_node_merge_keeps_earlier_scalars_and_unions_fields() -> None:
    first = Node(label="A", fields={"f": Field(label="F", values=[Value("1"), Value("2")])})
    second = Node(
        label="B",
        url="A page",
        fields={"f": Field(label="G", values=[Value("2"), Value("3")]), "g": Field(label="G", values=[Value("x")])},
    )

    first.merge(second)

    assert first.label == "A"
    assert first.url == "A page"
    assert [value.text for value in first.fields["f"].values] == ["1", "2", "3"]
    assert first.fields["f"].label == "F"
    assert list(first.fields) == ["f", "g"]
    second.fields["g"].values.append(Value("y"))
    assert first.fields["g"].values == [Value("x")]


def test_field_columns_are_ignored_when_fields_are_off() -> None:
    rows = [{"main": [v("SMW")], "author": [v("Jeroen")], "version": [v("4.1.3")], "name": [v("Semantic MediaWiki")]}]

    groups = build_graph([MAIN, AUTHOR, VERSION, NAME], rows, fields=False)

    node = groups["main"].nodes["SMW"]
    assert node.fields == {}
    assert node.label == "Semantic MediaWiki"
    assert groups["version"].nodes == {} and groups["version"].edges == []
    assert groups["author"].edges == [Edge("SMW", "Jeroen")]
