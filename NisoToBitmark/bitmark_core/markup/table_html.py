"""
Table HTML Flattening
=====================

Flattens a ``table`` subtree into an HTML fragment for the table image
renderer, collecting the plain text of all cells on the way.

Element mapping: ``list`` becomes ``ul``/``ol``, ``list-item`` becomes
``li``, ``italic``/``bold`` become ``i``/``b``, ``table-wrap-foot`` becomes
``tfoot``, ``break`` becomes ``br``, ``fn`` becomes a table row. ``xref``
and ``label`` wrappers are dropped. Footnotes found outside the table
foot are collected and appended as full-width rows at the end of the
table. Formulas are converted through the formula converter; private
characters and graphics become ``img`` elements.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Tuple
import logging

from bitmark_core.tree.node import Node
from bitmark_core.xml.utils import attributes_as_html

if TYPE_CHECKING:
    from bitmark_core.markup.generator import MarkupGenerator

logger = logging.getLogger(__name__)

PRIVATE_CHAR_SIZE = 35

_TAG_MAP = {
    "list-item": "li",
    "list-item-p": "p",
    "italic": "i",
    "bold": "b",
    "table-wrap-foot": "tfoot",
    "break": "br",
    "fn": "tr",
    "xref": "",
    "label": "",
}

_TABLE_PARTS = {"thead": "thead", "tbody": "tbody", "table-wrap-foot": "tfoot"}

# emitted through their own handling instead of an open tag
_NO_OPEN_TAG = ("inline-graphic", "disp-formula", "inline-formula", "disp-formula-group")


@dataclass
class TableHtml:
    """Accumulated output of one flattening pass."""

    parts: List[str] = field(default_factory=list)
    raw_parts: List[str] = field(default_factory=list)
    list_type: str = ""
    list_style_detail: str = ""
    table_part: str = ""
    footer_nodes: List[Node] = field(default_factory=list)

    @property
    def html(self) -> str:
        return "".join(self.parts)

    @property
    def raw_txt(self) -> str:
        return "".join(self.raw_parts)


def _html_tags(node: Node, state: TableHtml) -> Tuple[str, str]:
    html_name = _TAG_MAP.get(node.name, node.name)
    attributes = node.attributes
    style = ""

    if node.name == "list":
        state.list_type = node.attr("list-type") or ""
        state.list_style_detail = node.attr("style-detail") or ""
        html_name = "ol" if state.list_type == "ordered" else "ul"
        attributes = {}
        label = node.find_recursively("label")
        if label is not None and label.parent_node_name == "list-item":
            html_name = "ul"
            style = "list-style-type: none;"

    if node.name in _TABLE_PARTS:
        state.table_part = _TABLE_PARTS[node.name]

    if not html_name:
        return "", ""
    style_attr = f' style="{style}" ' if style else ""
    if node.children:
        return (f"<{html_name}{style_attr}{attributes_as_html(attributes)}>",
                f"</{html_name}>")
    return f"<{html_name}{style_attr}{attributes_as_html(attributes)}/>", ""


def _private_char_html(node: Node, generator: 'MarkupGenerator') -> str:
    graphic = node.find_first_child("inline-graphic")
    href = graphic.attr("xlink:href", "") if graphic is not None else ""
    filename = f"{generator.local_ressource_path}{href}"
    return (f'<span class="img-container"><img style="width: {PRIVATE_CHAR_SIZE}px; '
            f'height: {PRIVATE_CHAR_SIZE}px;" src="file://{filename}"></img></span>')


def make_table_html(node: Node, state: TableHtml, generator: 'MarkupGenerator') -> None:
    """Append the HTML of ``node`` and its subtree to ``state``."""
    open_tag, close_tag = _html_tags(node, state)
    if node.name not in _NO_OPEN_TAG:
        state.parts.append(open_tag)

    children = node.children
    if node.name in ("disp-formula", "inline-formula"):
        state.parts.append(generator.convert_formula(node))
        children = []
    elif node.name in ("graphic", "inline-graphic"):
        state.parts.append(f'<img src="{generator.local_ressource_path}{node.attr("xlink:href", "")}"></img>')
    elif node.name == "fn" and state.table_part == "tfoot":
        state.parts.append("<td colspan='100'>")
    elif node.name == "fn":
        state.footer_nodes.append(node)
        return

    if not children:
        return

    for child in children:
        if child.is_text:
            if open_tag in ("<b>", "<i>"):
                state.parts.append(f" {child.plaintext} ")
            else:
                state.parts.append(child.plaintext)
            state.raw_parts.append("\n" + child.plaintext)
        elif open_tag.startswith("<li") and child.name == "label":
            state.parts.append(child.plaintext + " ")
        elif child.name == "private-char":
            state.parts.append(_private_char_html(child, generator))
        elif child.name == "fn" and state.table_part != "tfoot":
            state.footer_nodes.append(child)
        else:
            make_table_html(child, state, generator)

    if node.name == "fn" and state.table_part == "tfoot":
        state.parts.append("</td>")

    if close_tag == "</table>" and state.footer_nodes:
        in_body = state.table_part == "tbody"
        if in_body:
            state.parts.append("<tfoot>")
        for footer in state.footer_nodes:
            state.parts.append("<tr><td colspan='100'>")
            for child in footer.children:
                if child.is_text:
                    state.parts.append(child.plaintext)
                    state.raw_parts.append("\n" + child.plaintext)
                else:
                    make_table_html(child, state, generator)
            state.parts.append("</td></tr>")
        if in_body:
            state.parts.append("</tfoot>")
        state.footer_nodes = []

    state.parts.append(close_tag)


def table_to_html(table: Optional[Node], generator: 'MarkupGenerator') -> TableHtml:
    state = TableHtml()
    if table is None:
        return state
    make_table_html(table, state, generator)
    return state
