"""
Paragraph Processing
====================

Turns text-bearing nodes into inline bitmark text: emphasis, links,
footnotes, lists, definition lists, index terms, private characters,
inline graphics and formulas.

A paragraph whose children include a complex structure (figure, table,
boxed text, notes group or formula) is processed in parts. Each call of
:func:`split_paragraph` renders the children from the node's cursor up to
the next complex child, moves the cursor past that child and returns it,
so the caller can emit the text as one bit and the complex child as the
next one.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Tuple
import logging

from bitmark_core.mapping.xref_store import ENCODED_HREF_PREFIX, extract_customer_id
from bitmark_core.markup import templates
from bitmark_core.markup.legend import LegendBuilder
from bitmark_core.markup.writers import write_article_or_note
from bitmark_core.tracking.transformer_log import Category
from bitmark_core.tree.node import Node

if TYPE_CHECKING:
    from bitmark_core.markup.visitors import NodeVisitor

logger = logging.getLogger(__name__)

COMPLEX_TAGS = ("notes-group", "fig", "table-wrap", "boxed-text", "inline-formula", "disp-formula")

# source emphasis -> bitmark style; underline is shown as bold
EMPHASIS_STYLES = {
    "bold": "bold",
    "italic": "italic",
    "underline": "bold",
    "strike": "userStrike",
}

SELF_HREF_PREFIX = f"{ENCODED_HREF_PREFIX}self?"
NINONLINE_HOST = "ninonline.ch"

UNDEFINED_FOOTNOTE = "!! Undefined footnote !!"

_EMBEDDED_WARNINGS = {
    "fig": "FigInParagraph",
    "table-wrap": "TableWrapInParagraph",
    "boxed-text": "BoxedTextInParagraph",
}


def is_complex_structure(node: Optional[Node]) -> bool:
    """True when the node is, or contains, a structure that needs its own bit."""
    if node is None:
        return False
    return any(node.find_recursively(tag) is not None for tag in COMPLEX_TAGS)


@dataclass
class ParagraphText:
    """Running state of one paragraph rendering."""

    customer_id: Optional[str] = None
    text: str = ""
    styles: List[str] = field(default_factory=list)
    search_terms: List[str] = field(default_factory=list)
    complex_child: Optional[Node] = None


# ============================================================================
# Entry points
# ============================================================================

def process_paragraph(node: Optional[Node], visitor: 'NodeVisitor', list_level: int = 1) -> str:
    """Render all children of ``node`` as inline text."""
    if node is None:
        return ""
    state = ParagraphText(customer_id=node.customer_id)
    _process_children(node, state, visitor, list_level, resumable=False)
    _apply(node, state)
    return state.text


def split_paragraph(node: Node, visitor: 'NodeVisitor') -> Tuple[str, Optional[Node]]:
    """
    Render children from ``node.cursor`` up to the next complex child.

    Returns:
        Tuple of (text, complex child or None when the end was reached)
    """
    state = ParagraphText(customer_id=node.customer_id)
    _process_children(node, state, visitor, 1, resumable=True)
    _apply(node, state)
    return state.text, state.complex_child


def _apply(node: Node, state: ParagraphText) -> None:
    node.search_terms = node.search_terms + state.search_terms
    # the last text fragment's id keeps split bits distinct
    node.customer_id = state.customer_id


def _process_children(node: Node, state: ParagraphText, visitor: 'NodeVisitor',
                      list_level: int, resumable: bool) -> None:
    children = node.children
    start = node.cursor if resumable else 0
    for index in range(start, len(children)):
        child = children[index]
        child.set_mode_from(node)
        if resumable and not child.is_text and is_complex_structure(child):
            node.cursor = index + 1
            state.complex_child = child
            return
        _process_child(child, node, state, visitor, list_level)
        visitor.mark_visited(child)
    if resumable:
        node.cursor = len(children)


def _process_child(child: Node, parent: Node, state: ParagraphText,
                   visitor: 'NodeVisitor', list_level: int) -> None:
    name = child.name
    generator = visitor.generator

    if child.is_text:
        if child.plaintext:
            _append_text(child, state)
    elif name in EMPHASIS_STYLES:
        state.styles.append(EMPHASIS_STYLES[name])
        _process_children(child, state, visitor, list_level, resumable=False)
        state.styles.pop()
    elif name in ("uri", "ext-link"):
        state.text += external_link(child, visitor)
    elif name == "break":
        state.text += "\n"
    elif name == "private-char":
        state.text += private_char(child, visitor)
    elif name == "index-term":
        state.search_terms.append(index_term(child, visitor))
    elif name in ("math", "mml:math", "inline-formula"):
        state.text += generator.convert_formula(child)
    elif name == "disp-formula":
        state.text += generator.convert_formula(child) + _formula_legend(child, visitor)
    elif name in _EMBEDDED_WARNINGS:
        generator.log.warn(Category.CONTENT, _EMBEDDED_WARNINGS[name], child.customer_id)
        state.text += f" !!{name}: {child.plaintext}!! "
    elif name == "sub":
        state.text = state.text.strip() + f"=={child.plaintext}==|subscript| "
    elif name == "sup":
        state.text = state.text.strip() + f"=={child.plaintext}==|superscript| "
    elif name == "list":
        state.text += process_list(child, visitor, list_level) or ""
    elif name == "def-list":
        state.text += process_def_list_inline(child, visitor)
    elif name == "inline-graphic":
        state.text += generator.inline_graphics.build(child)
    elif name == "xref" and child.attr("ref-type") == "fn":
        state.text = state.text.strip() + footnote(child, parent, visitor)
    elif name == "xref":
        state.text += internal_link(child, visitor)
    elif name == "fn":
        pass
    else:
        generator.log.warn(Category.CONTENT, "UnknownElementInParagraph", child.customer_id)
        state.text += f" !!{name}: {child.plaintext}!! "


def _append_text(fragment: Node, state: ParagraphText) -> None:
    styles = list(dict.fromkeys(state.styles))
    text = fragment.plaintext
    if not text.endswith(" "):
        text += " "
    if styles:
        text = f"=={text}==|" + "".join(f"{style}|" for style in reversed(styles))
    state.text = (state.text + text).strip() + " "
    state.customer_id = fragment.customer_id


def _pseudo_paragraph(node: Node) -> Node:
    """Wrap a bare element so it can be rendered like a paragraph."""
    pseudo = Node(name="p", uuid=node.uuid, customer_id=node.customer_id,
                  parent_id=node.parent_id, children=[node])
    pseudo.set_mode_from(node)
    return pseudo


def _formula_legend(formula: Node, visitor: 'NodeVisitor') -> str:
    legend = formula.find_first_child("legend")
    if legend is None:
        return ""
    title = legend.find_first_child("title")
    def_list = legend.find_first_child("def-list")
    text = f"=={title.plaintext}==|bold|" if title is not None and title.plaintext else ""
    if def_list is not None:
        text += process_def_list_inline(def_list, visitor)
    visitor.mark_visited(title)
    visitor.mark_visited(legend)
    visitor.mark_visited(def_list)
    return text


# ============================================================================
# Inline elements
# ============================================================================

def index_term(node: Node, visitor: 'NodeVisitor') -> str:
    visitor.mark_visited(node)
    term = node.find_first_child("term")
    if term is None:
        return ""
    return term.plaintext or term.text_content()


def process_index_terms(target: Node, node: Optional[Node], visitor: 'NodeVisitor') -> None:
    """Collect the index terms directly below ``node`` into ``target``."""
    if node is None:
        return
    for child in node.children:
        if child.name == "index-term":
            target.search_terms.append(index_term(child, visitor))


def private_char(node: Node, visitor: 'NodeVisitor') -> str:
    """Font glyph for a private character, or its graphic as inline image."""
    generator = visitor.generator
    description = node.attr("description") or ""
    symbol = generator.private_chars.get(description.replace("-", "_", 1).lower())
    if symbol:
        return symbol

    graphic = node.find_first_child("inline-graphic")
    if graphic is None:
        generator.log.warn(Category.CONTENT, "PrivateCharNoGraphic", node.customer_id)
        return f"!!symbol {description}!! "
    visitor.mark_visited(graphic)
    return generator.inline_graphics.build(graphic)


def footnote(xref: Node, parent: Node, visitor: 'NodeVisitor') -> str:
    """
    Inline a footnote body into its reference.

    ``<xref ref-type="fn" rid="fn_1"><sup>1</sup></xref>`` together with
    ``<fn id="fn_1"><p>Text</p></fn>`` becomes ``==1==|footnote: Text |``.
    """
    label_node = xref.find_first_child("sup")
    if label_node is not None:
        label = label_node.plaintext
        visitor.mark_visited(label_node)
    else:
        label = xref.plaintext

    rid = xref.attr("rid")

    def is_target(n: Node) -> bool:
        return n.name == "fn" and n.attr("id") == rid

    fn_node = parent.find_where(is_target) if rid else None
    if fn_node is None and rid:
        fn_node = visitor.generator.find_in_partition(is_target)
    if fn_node is None:
        visitor.generator.log.warn(Category.LINK, "UndefinedFootNote", rid)
        return UNDEFINED_FOOTNOTE

    fn_text = ""
    for child in fn_node.children:
        if child.name == "p":
            fn_text += " " + process_paragraph(child, visitor)
        visitor.mark_visited(child)
    visitor.mark_visited(fn_node)
    return f"=={label}==|footnote:{fn_text}| "


def format_internal_link(text: str, anchor_id: Optional[str]) -> str:
    """Link markup, or a visibly marked placeholder when there is no anchor."""
    if not anchor_id:
        return f" ==!!{text} - unmatched rid !!==|►| "
    ix = text.find("==|")
    if ix > -1:
        # label already carries styles: merge the link into its style chain
        return f" =={text[2:ix]}==|►{anchor_id}{text[ix + 2:]} "
    return f" =={text}==|►{anchor_id}| "


def internal_link(node: Node, visitor: 'NodeVisitor') -> str:
    """
    Same-document link via ``rid``.

    Bibliography references point at the enclosing reference list, since
    single references are not bits of their own.
    """
    generator = visitor.generator
    text = process_paragraph(node, visitor)
    ref_type = node.attr("ref-type")
    rid = node.attr("rid")
    if ref_type == "bibr":
        anchor_id = generator.parent_anchor_for(rid)
    else:
        anchor_id = generator.anchor_for(rid)
    if not anchor_id:
        generator.log.warn(Category.LINK, "linkUnmatchedRid",
                           f" customerid: {node.customer_id} rid: {rid} reftype: {ref_type}")
    return format_internal_link(text, anchor_id)


def _resolve_encoded_anchor(href: str, visitor: 'NodeVisitor', key: str) -> str:
    generator = visitor.generator
    customer_id = extract_customer_id(href)
    anchor_id = generator.anchor_for(customer_id)
    if anchor_id and "ref_" in anchor_id:
        anchor_id = generator.parent_anchor_for(customer_id)
    if not anchor_id:
        generator.log.warn(Category.LINK, key, f"href: {href}")
    return anchor_id or ""


def external_link(node: Node, visitor: 'NodeVisitor') -> str:
    """
    Render ``ext-link`` and ``uri`` elements.

    Encoded editor links whose document belongs to the current document
    are rendered as internal links; other documents resolve through the
    document id map and the shared cross-reference store.
    """
    generator = visitor.generator
    text = process_paragraph(node, visitor)
    href = node.attr("xlink:href") or ""
    ix = text.find("==|")

    if not href:
        return text

    if NINONLINE_HOST in href:
        generator.log.error(Category.LINK, "linkNinonline", f"href: {href}")
        return f" =={text}==|link:|"

    if "http" in href:
        if ix > -1:
            return f" =={text[2:ix]}==|link:{href}{text[ix + 2:]} "
        return f" =={text}==|link:{href}|"

    if SELF_HREF_PREFIX in href:
        return format_internal_link(text, _resolve_encoded_anchor(href, visitor, "linkNoAnchorId(self)"))

    if ENCODED_HREF_PREFIX in href:
        if generator.doc_id_exists_in_specific(href):
            return format_internal_link(text, _resolve_encoded_anchor(href, visitor, "linkNoAnchorId"))

        gmb_doc_id = generator.gmb_doc_id(href)
        gmb_anchor = generator.anchor_for(href) or ""
        # "" is an item id missing from the map
        if not gmb_doc_id or gmb_doc_id == "notdefined":
            generator.log.warn(Category.LINK, "linkNoMappig", f"href: {href}")
            return f" =={text}==|xref:|►undef"
        if not gmb_anchor:
            generator.log.warn(Category.LINK, "linkNoAnchorId", f"href: {href}")
        if ix > -1:
            return f" =={text[2:ix]}==|xref:{gmb_doc_id}|►{gmb_anchor}|{text[ix + 2:]} "
        return f" =={text}==|xref:{gmb_doc_id}|►{gmb_anchor}|"

    generator.log.warn(Category.LINK, "linkNoMappigUndefined", f"customerId: {node.customer_id}")
    return f" =={text}==|xref:|►undef"


# ============================================================================
# Lists
# ============================================================================

def process_list(list_node: Node, visitor: 'NodeVisitor', level: int,
                 path: str = "") -> Optional[str]:
    """
    Render a list as inline text.

    Lists containing complex structures are not rendered inline: each
    element of each list item is dispatched as a bit of its own and None
    is returned.
    """
    if is_complex_structure(list_node):
        visitor.mark_visited(list_node)
        for item in list_node.children:
            item.set_mode_from(list_node)
            for element in item.children:
                if element.name != "label":
                    element.set_mode_from(item)
                    visitor.dispatch(element, path)
        return None
    return _list_items(list_node, visitor, level)


def _list_items(list_node: Node, visitor: 'NodeVisitor', level: int) -> str:
    list_type = list_node.attr("list-type")
    text = ""
    for item in list_node.children:
        visitor.mark_visited(item)
        if item.name != "list-item":
            continue
        content = ""
        first = True
        for element in item.children:
            element.set_mode_from(item)
            visitor.mark_visited(element)
            if element.name == "p":
                content += ("" if first else " ") + process_paragraph(element, visitor, level + 1)
                first = False
            elif element.name == "list":
                content += process_list(element, visitor, level + 1) or ""
                first = False
        text += templates.list_item(list_type, level, content)
    return text


# ============================================================================
# Definition lists, term sections and reference lists
# ============================================================================

def _paragraph_or_pseudo(node: Node, visitor: 'NodeVisitor', list_level: int = 2) -> str:
    if node.name == "p":
        return process_paragraph(node, visitor, list_level)
    return process_paragraph(_pseudo_paragraph(node), visitor, list_level)


def process_def_list(def_list: Node, visitor: 'NodeVisitor') -> str:
    """Render a definition list as legend body."""
    legend = LegendBuilder()
    visitor.mark_visited(def_list)

    for item in def_list.children:
        visitor.mark_visited(item)
        if item.name == "title":
            legend.set_title(process_paragraph(item, visitor, 2))
            continue
        term_text = ""
        def_text = ""
        for element in item.children:
            visitor.mark_visited(element)
            if element.name == "term":
                for n in element.children:
                    if n.name == "inline-graphic":
                        term_text += visitor.generator.inline_graphics.build(n)
                    else:
                        term_text += _paragraph_or_pseudo(n, visitor)
            elif element.name == "def":
                for n in element.children:
                    def_text += _paragraph_or_pseudo(n, visitor)
            else:
                visitor.generator.log.warn(Category.CONTENT, "UnknownElementInDefList",
                                           def_list.customer_id)
                def_text += f"!! UNKNOWN DefList {element.name}!!"
        legend.add_def_item(term_text, def_text)

    return legend.build()


def process_def_list_inline(def_list: Node, visitor: 'NodeVisitor') -> str:
    """Render a definition list as ``•_ term : definition`` lines."""
    text = ""
    visitor.mark_visited(def_list)

    for item in def_list.children:
        if item.name == "title":
            continue
        visitor.mark_visited(item)
        line = "•_ "
        for element in item.children:
            visitor.mark_visited(element)
            if element.name == "term":
                for n in element.children:
                    line += _paragraph_or_pseudo(n, visitor)
                if ":" not in line:
                    line += " : "
            elif element.name == "def":
                for n in element.children:
                    line += _paragraph_or_pseudo(n, visitor)
            elif element.name == "inline-graphic":
                line += visitor.generator.inline_graphics.build(element)
            else:
                visitor.generator.log.warn(Category.CONTENT, "UnknownElementInDefList",
                                           def_list.customer_id)
                line += f"!! UNKNOWN DefList {element.name}!!"
        text += "\n" + line
    return text


def process_term_sec(term_sec: Node, visitor: 'NodeVisitor') -> str:
    """Render a term section as a list of bold terms with definitions."""
    text = ""
    visitor.mark_visited(term_sec)

    for display in term_sec.children:
        visitor.mark_visited(display)
        line = "•_ "
        term = ""
        definition = ""
        for element in display.children:
            visitor.mark_visited(element)
            if element.name == "term":
                term = process_paragraph(element, visitor, 2)
            elif element.name == "def":
                for n in element.children:
                    definition += _paragraph_or_pseudo(n, visitor)
            else:
                visitor.generator.log.warn(Category.CONTENT, "UnknownElementInTermSec",
                                           term_sec.customer_id)
                line += f"!! UNKNOWN TermSec {element.name}!!"

        separator = ":\n" if term else ""
        if "|" not in term:
            line += f"=={term}==|bold|{separator}{definition}"
        else:
            # styled terms cannot be wrapped in bold again
            line += f"{term}{separator}{definition}"
        text += "\n" + line
    return text


def process_term_sec_split(term_sec: Node, visitor: 'NodeVisitor', path: str) -> None:
    """Dispatch terms as paragraphs and definition content as separate bits."""
    visitor.mark_visited(term_sec)
    for display in term_sec.children:
        for element in display.children:
            if element.name == "term":
                element.set_mode_from(term_sec)
                visitor.dispatch(element, path, name="p")
            elif element.name == "def":
                for n in element.children:
                    n.set_mode_from(term_sec)
                    visitor.dispatch(n, path)
            else:
                visitor.generator.log.warn(Category.CONTENT, "UnknownElementInTermSec",
                                           term_sec.customer_id)
            visitor.mark_visited(element)


def process_ref_list(ref_list: Node, visitor: 'NodeVisitor') -> str:
    """
    Render a reference list.

    ``<ref><label>[5]</label><mixed-citation>...</mixed-citation></ref>``
    becomes ``• [5] ...``; standard references render as
    ``• std-ref : title``.
    """
    text = ""
    visitor.mark_visited(ref_list)

    for ref in ref_list.children:
        visitor.mark_visited(ref)
        if ref.name == "title":
            text += process_paragraph(ref, visitor) + ":"
            continue
        line = "• "
        for element in ref.children:
            visitor.mark_visited(element)
            if element.name == "std":
                std_ref = ""
                title = ""
                for n in element.children:
                    if n.name == "std-ref":
                        std_ref = process_paragraph(n, visitor, 2)
                    elif n.name == "title":
                        title = process_paragraph(n, visitor, 2)
                line += std_ref + (" : " if std_ref else "") + title
            elif element.name == "label":
                line += element.plaintext + (" " if element.plaintext else "")
            elif element.name == "mixed-citation":
                line += process_paragraph(element, visitor, 2)
            else:
                visitor.generator.log.warn(Category.CONTENT, "UnknownElementInRefList",
                                           ref_list.customer_id)
                line += f"!! UNKNOWN RefList {element.name}!!"
        text += "\n" + line
    return text


def process_caption_paragraphs(caption: Node, visitor: 'NodeVisitor') -> None:
    """Write the paragraphs of a table caption as one bit with the title as instruction."""
    text = ""
    for element in caption.children:
        if element.name == "p":
            element.set_mode_from(caption)
            visitor.mark_visited(element)
            if text:
                text += "\n"
            text += process_paragraph(element, visitor)
    if text:
        write_article_or_note(caption, text, visitor, show_title_as_instruction=True)
