from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..config import GraphOptions
from ..normalize.schema import Field, Node, Value
from ..util.text import escape_html, word_wrap
from .attrs import AttrMode, quote, serialize_attrs

HTML_BREAK = "<br />"
TABLE_OPEN = '<table border="0" cellborder="0" cellspacing="1" columns="*" rows="*">'


def image_tag(src: str) -> str:
    return f'<img src="{src}" scale="true" />'


def table_cell(content: str, attrs: Mapping[str, Any], *, text: bool = True) -> str:
    """
    Render one <td>. Text content is also wrapped in <font> when the cell has a
    colour, since Graphviz does not apply a cell colour to its text.
    """
    color = attrs.get("color")
    if text and color:
        content = f'<font color="{color}">{content}</font>'
    attributes = serialize_attrs(attrs, AttrMode.BARE)
    return f"<td{' ' + attributes if attributes else ''}>{content}</td>"


class NodeLabeler:
    """
    Turns aggregated nodes into DOT node attributes: a plain wrapped label, an
    image, or an HTML-like table when the node carries fields.
    """

    def __init__(self, options: GraphOptions) -> None:
        self.options = options

    def wrap(self, text: str, separator: Optional[str] = None) -> str:
        if separator is None:
            separator = self.options.line_separator
        return word_wrap(text, self.options.word_wrap_limit, separator)

    def node_url(self, node_id: str) -> Optional[str]:
        # Ids with "=" are not page names and cannot be linked.
        if not self.options.link or "=" in node_id:
            return None
        return f"[[{node_id}]]"

    def attributes(self, node_id: str, node: Node) -> Dict[str, Any]:
        """
        Ordered DOT attributes for one node. Plain captions are escaped and quoted
        here, so the serializer never treats a caption as an HTML-like label.
        """
        caption = node.label or ""
        tooltip = quote(caption) if caption else None
        url = self.node_url(node_id)
        if not node.fields:
            if node.image:
                return {"image": node.image, "label": '""', "tooltip": tooltip, "URL": url}
            # Escaped before wrapping, so an HTML line separator survives.
            return {"label": f'"{self.wrap(escape_html(caption))}"', "URL": url}

        if node.image:
            header = image_tag(node.image)
        else:
            header = self.wrap(escape_html(caption), HTML_BREAK)
        return {"tooltip": tooltip, "label": self.html_like_label(header, url, node.fields.values())}

    def html_like_label(self, header: str, url: Optional[str], fields: Iterable[Field]) -> str:
        href = f' href="{escape_html(url)}"' if url else ""
        rows: List[str] = []
        for field in fields:
            rows.extend(self.field_rows(field))
        return (
            "<\n"
            f"{TABLE_OPEN}\n"
            f'<tr><td colspan="2"{href}>{header}</td></tr><hr/>\n'
            + "\n".join(rows)
            + "\n</table>\n>"
        )

    def field_rows(self, field: Field) -> List[str]:
        if not field.values:
            return []
        label = self.wrap(escape_html(field.label), HTML_BREAK)
        label_td = ""
        if label:
            label_td = table_cell(
                label,
                {"align": "left", "color": field.color, "href": field.href, "rowspan": len(field.values)},
            )
        value_attrs = {
            "align": field.align,
            "color": field.color,
            "href": field.href,
            "colspan": None if label else "2",
        }
        rows: List[str] = []
        for value in field.values:
            rows.append(f"<tr>{label_td}{self.value_cell(value, value_attrs)}</tr>")
            # The label cell spans all values of the field.
            label_td = ""
        return rows

    def value_cell(self, value: Value, attrs: Mapping[str, Any]) -> str:
        cell_attrs = dict(attrs)
        if value.href:
            cell_attrs["href"] = value.href
        if value.image:
            return table_cell(image_tag(value.image), cell_attrs, text=False)
        return table_cell(escape_html(value.text), cell_attrs)
