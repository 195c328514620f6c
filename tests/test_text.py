from __future__ import annotations

import pytest

from result_graph.util.text import escape_html, word_wrap


def test_word_wrap_empty_text() -> None:
    assert word_wrap("", 5, "|") == ""


def test_word_wrap_keeps_short_text() -> None:
    assert word_wrap("a", 25) == "a"
    assert word_wrap("Semantic MediaWiki", 25) == "Semantic MediaWiki"


def test_word_wrap_breaks_on_whitespace() -> None:
    assert word_wrap("The quick brown fox jumps", 10, "|") == "The quick|brown fox|jumps"


def test_word_wrap_keeps_long_word_whole() -> None:
    assert word_wrap("Supercalifragilistic is long", 10, "|") == "Supercalifragilistic|is long"


def test_word_wrap_non_ascii() -> None:
    assert word_wrap("Денни Врандечич", 6, "<br />") == "Денни<br />Врандечич"


def test_word_wrap_rejects_non_positive_limit() -> None:
    with pytest.raises(ValueError):
        word_wrap("text", 0)


@pytest.mark.parametrize(
    "text,limit",
    [
        ("Semantic Result Formats is a collection of result printers", 12),
        ("one two three four five six seven eight nine ten", 7),
        ("a bb ccc dddd eeeee ffffff ggggggg", 4),
        ("Markus Krötzsch  and   Denny Vrandečić", 9),
    ],
)
def test_word_wrap_line_lengths_and_content(text: str, limit: int) -> None:
    lines = word_wrap(text, limit, "\n").split("\n")

    for line in lines:
        assert len(line) <= limit or not any(ch.isspace() for ch in line)
    assert "".join(text.split()) == "".join("".join(lines).split())


def test_escape_html() -> None:
    assert escape_html('<a href="x">Tom & Jerry\'s</a>') == (
        "&lt;a href=&quot;x&quot;&gt;Tom &amp; Jerry&#039;s&lt;/a&gt;"
    )
