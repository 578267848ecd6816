"""
Node Visitors
=============

One visitor class per node name. :data:`VISITOR_TABLE` maps names to
visitor classes; unknown names fall back to :class:`PrintVisitor`, which
only descends into the children.

All visitors of one partition share a ``visited`` set keyed by node
uuid, so a node reached both through normal descent and through a
paragraph split is rendered once.
"""

from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Dict, Optional, Set, Type
import hashlib
import logging

from bitmark_core.markup import templates
from bitmark_core.markup.paragraph import (
    is_complex_structure,
    index_term,
    process_caption_paragraphs,
    process_def_list,
    process_index_terms,
    process_list,
    process_paragraph,
    process_ref_list,
    process_term_sec,
    process_term_sec_split,
    split_paragraph,
)
from bitmark_core.markup.table_html import table_to_html
from bitmark_core.markup.writers import (
    get_anchor_and_customer_id,
    write_article_or_note,
    write_formula,
    write_image_figure,
    write_legend,
    write_table,
)
from bitmark_core.tracking.transformer_log import Category
from bitmark_core.tree.node import Node

if TYPE_CHECKING:
    from bitmark_core.markup.generator import MarkupGenerator

logger = logging.getLogger(__name__)

FIG_SIZE_WIDTH = 1580
FIG_SIZE_HEIGHT = 472

# specific-use of a fig -> scale of the full figure size
FIG_SIZE_MAP = {
    "size-xs": 0.075,
    "size-s": 0.125,
    "size-m": 0.25,
    "size-l": 0.375,
    "size-xl": 0.5,
}

# "replaces" in the document languages
SUPERSEDES_TEXT = {
    "de": "ersetzt",
    "fr": "remplace",
    "it": "sostituisce",
}

LANGUAGE_SUFFIXES = (" de", " fr", " it")


def fig_size(specific_use: Optional[str]):
    factor = FIG_SIZE_MAP.get(specific_use or "", 1.0)
    return factor * FIG_SIZE_WIDTH, factor * FIG_SIZE_HEIGHT


def find_title_wrap(node: Node, lang: str) -> Optional[Node]:
    """``title-wrap`` in the given language, falling back to German."""
    for candidate in (lang, "de"):
        found = node.find_where(
            lambda n: n.name == "title-wrap" and n.attr("xml:lang") == candidate)
        if found is not None:
            return found
    return None


# ============================================================================
# Base visitor
# ============================================================================

class NodeVisitor(ABC):
    """
    Base class of all visitors.

    Subclasses implement :meth:`handle`; :meth:`visit` skips nodes that
    were already rendered and extends the visit path.

    Example usage:
        visitor = visitor_for(partition)(generator, set())
        visitor.visit(partition)
    """

    def __init__(self, generator: 'MarkupGenerator', visited: Set[str],
                 parent_node: Optional[Node] = None):
        self.generator = generator
        self.visited = visited
        self.parent_node = parent_node

    def visit(self, node: Node, path: str = "") -> None:
        if not self.mark_visited(node):
            return
        current_path = f"{path} > {node.name}" if path else node.name
        self.handle(node, current_path)

    @abstractmethod
    def handle(self, node: Node, path: str) -> None:
        """Render one node reached at ``path``."""
        pass

    # -- visited bookkeeping ---------------------------------------------

    def mark_visited(self, node: Optional[Node]) -> bool:
        """Mark a node; False when it was already marked."""
        if node is None:
            return True
        if node.uuid in self.visited:
            return False
        self.visited.add(node.uuid)
        return True

    def is_visited(self, node: Node) -> bool:
        return node.uuid in self.visited

    def all_children_visited(self, node: Node) -> bool:
        return all(self.is_visited(child) for child in node.children)

    # -- traversal -------------------------------------------------------

    def write(self, data: str) -> None:
        self.generator.write(data)

    def dispatch(self, node: Node, path: str = "", name: Optional[str] = None,
                 parent: Optional[Node] = None) -> None:
        """Visit ``node`` with the visitor registered for ``name`` (default: its own name)."""
        visitor_class = VISITOR_TABLE.get(name or node.name, PrintVisitor)
        visitor_class(self.generator, self.visited, parent).visit(node, path)

    def descend(self, node: Node, path: str) -> None:
        for child in node.children:
            if not self.is_visited(child):
                child.set_mode_from(node)
                self.dispatch(child, path, parent=node)

    def consume_children(self, node: Node) -> None:
        for child in node.children:
            child.set_mode_from(node)
            self.mark_visited(child)


def visitor_for(node: Node) -> Type[NodeVisitor]:
    return VISITOR_TABLE.get(node.name, PrintVisitor)


# ============================================================================
# Structure
# ============================================================================

class PrintVisitor(NodeVisitor):
    """Fallback: no output of its own, descends into the children."""

    def handle(self, node: Node, path: str) -> None:
        self.descend(node, path)


class SecVisitor(NodeVisitor):
    """Section: chapter bit from label and title, then the content."""

    def handle(self, node: Node, path: str) -> None:
        label_node = node.find_first_child("label")
        title_node = node.find_first_child("title")
        label = label_node.plaintext if label_node is not None else ""
        self.mark_visited(label_node)

        title = ""
        if title_node is not None:
            process_index_terms(node, title_node, self)
            title = process_paragraph(title_node, self).strip()
            self.mark_visited(title_node)
        process_index_terms(node, label_node, self)

        self.write(templates.chapter(
            max(node.seclevel, 0),
            label,
            title,
            get_anchor_and_customer_id(node, self),
            node.search_terms_csv(),
            self.generator.lang,
        ))
        self.descend(node, path)


class SubPartVisitor(NodeVisitor):
    """
    Sub-part of a document.

    A sub-part carrying ``std-meta`` is a rule sheet of its own: the
    chapter is written by :class:`StdMetaVisitor` with the sub-part's ids.
    """

    def handle(self, node: Node, path: str) -> None:
        std_meta = node.find_first_child("std-meta")
        if std_meta is not None:
            std_meta.anchor_id = node.anchor_id
            std_meta.customer_id = node.customer_id
        else:
            label_node = node.find_first_child("label")
            title_node = node.find_first_child("title")
            self.mark_visited(label_node)
            self.mark_visited(title_node)
            self.write(templates.chapter(
                node.seclevel,
                label_node.plaintext if label_node is not None else "",
                title_node.plaintext if title_node is not None else "",
                get_anchor_and_customer_id(node, self),
                "",
                self.generator.lang,
            ))
        self.descend(node, path)


class StdMetaVisitor(NodeVisitor):
    """Rule sheet metadata: chapter from the main title plus an info bit with the dated reference."""

    def handle(self, node: Node, path: str) -> None:
        lang = self.generator.lang
        title_wrap = find_title_wrap(node, lang)
        if title_wrap is None:
            return
        self.mark_visited(title_wrap)

        title_node = node.find_recursively("main")
        title = title_node.plaintext if title_node is not None else ""
        chapter_label = ""
        info_text = ""
        std_ref = node.find_first_child("std_ref_dated")
        supersedes = node.find_first_child("std_xref_supersedes")

        if std_ref is not None:
            supersedes_text = None
            if supersedes is not None:
                self.mark_visited(supersedes)
                supersedes_ref = supersedes.find_first_child("std-ref")
                supersedes_text = supersedes_ref.plaintext if supersedes_ref is not None else None

            doc_ref = std_ref.plaintext
            info_text = doc_ref
            if supersedes_text:
                info_text += f"\n{SUPERSEDES_TEXT.get(lang, SUPERSEDES_TEXT['de'])}: {supersedes_text}"

            chapter_label = doc_ref
            if doc_ref.endswith(LANGUAGE_SUFFIXES):
                chapter_label = doc_ref[:doc_ref.rfind(" ")]

        self.write(templates.chapter(
            node.seclevel,
            chapter_label,
            title,
            get_anchor_and_customer_id(node, self),
            "",
            lang,
        ))
        if info_text:
            self.write(templates.info("", "", info_text, get_anchor_and_customer_id(std_ref, self), ""))


class SecTypeParagraphVisitor(NodeVisitor):
    """
    Numbered paragraph section.

    Label, title and search terms belong to the first bit written by the
    children. When there is a label, that bit also takes the section's
    ids so links to the section land on it.
    """

    def handle(self, node: Node, path: str) -> None:
        node.is_normative = True
        label_node = node.find_first_child("label")
        title_node = node.find_first_child("title")
        label = label_node.plaintext if label_node is not None else ""
        self.mark_visited(label_node)

        title = ""
        if title_node is not None:
            process_index_terms(node, title_node, self)
            title = process_paragraph(title_node, self)
            self.mark_visited(title_node)
        process_index_terms(node, label_node, self)

        search_terms = list(node.search_terms)
        for child in node.children:
            if self.is_visited(child):
                continue
            child.set_mode_from(node)
            child.label = label
            child.title = title
            child.search_terms = search_terms
            if label:
                child.overload_anchor_id = node.anchor_id
                child.overload_customer_id = node.customer_id
            self.dispatch(child, path, parent=node)
            # not yet written: hand over to the next child
            label = child.label or ""
            title = child.title or ""
            search_terms = child.search_terms


class NotesGroupVisitor(NodeVisitor):
    def handle(self, node: Node, path: str) -> None:
        title_node = node.find_first_child("title")
        process_index_terms(node, title_node, self)
        label = title_node.plaintext if title_node is not None else ""
        self.mark_visited(title_node)

        for child in node.children:
            if self.is_visited(child):
                continue
            child.set_mode_from(node)
            child.label = label
            self.dispatch(child, path, parent=node)
            label = child.label


class BoxedTextVisitor(NodeVisitor):
    """Boxed block: children use the non-normative template variants."""

    def handle(self, node: Node, path: str) -> None:
        node.is_boxedtext = True
        title_node = node.find_first_child("title")
        label = title_node.plaintext if title_node is not None else ""
        if label:
            label = f"{node.label}/{label}" if node.label else label
        else:
            label = node.label
        self.mark_visited(title_node)
        process_index_terms(node, title_node, self)

        for child in node.children:
            if self.is_visited(child):
                continue
            child.set_mode_from(node)
            child.label = label
            self.dispatch(child, path, parent=node)
            label = child.label
        node.is_boxedtext = False


class NonNormativeNoteVisitor(NodeVisitor):
    """Explanatory note; ``content-type="annotation"`` marks a remark."""

    def handle(self, node: Node, path: str) -> None:
        node.is_normative = False
        node.is_remark = node.attr("content-type", "") == "annotation"

        for child in node.children:
            if self.is_visited(child):
                continue
            child.set_mode_from(node)
            child.label = node.label
            self.dispatch(child, path, parent=node)
            node.label = child.label

        node.is_normative = True
        node.is_remark = False


class NotesTypeRevisionDescVisitor(NodeVisitor):
    """Revision notes: ``revision-meta: revision-info`` lines in one info bit."""

    def handle(self, node: Node, path: str) -> None:
        lines = []
        for paragraph in node.children:
            if paragraph.name == "p":
                lines.append(self._revision_line(paragraph))
                paragraph.is_normative = True
                paragraph.is_remark = False
            self.mark_visited(paragraph)

        content = "\n".join(lines)
        if content:
            self.write(templates.info("", "", content, get_anchor_and_customer_id(node, self), ""))
        self.consume_children(node)

    def _revision_line(self, paragraph: Node) -> str:
        def named_content(content_type):
            return paragraph.find_where(
                lambda n: n.name == "named-content" and n.attr("content-type") == content_type)

        meta = named_content("revision-meta")
        if meta is None:
            return ""
        self.mark_visited(meta)
        line = process_paragraph(meta, self)
        info = named_content("revision-info")
        if info is not None:
            self.mark_visited(info)
            line += ": " + process_paragraph(info, self)
        return line


# ============================================================================
# Text
# ============================================================================

class ParagraphVisitor(NodeVisitor):
    """
    Paragraph.

    A paragraph containing complex structures becomes several bits: the
    text up to each complex child, the complex child itself, and so on.
    """

    def handle(self, node: Node, path: str) -> None:
        if is_complex_structure(node):
            while True:
                content, complex_child = split_paragraph(node, self)
                if content:
                    write_article_or_note(node, content, self)
                if complex_child is None:
                    break
                complex_child.set_mode_from(node)
                self.dispatch(complex_child, path, parent=node)
        else:
            write_article_or_note(node, process_paragraph(node, self), self)
        self.consume_children(node)


class ListVisitor(NodeVisitor):
    def handle(self, node: Node, path: str) -> None:
        text = process_list(node, self, 1, path)
        if text is not None:
            write_article_or_note(node, text, self)
        self.consume_children(node)


class IndexTermVisitor(NodeVisitor):
    """Index terms outside of titles add to the parent's search terms."""

    def handle(self, node: Node, path: str) -> None:
        if self.parent_node is not None:
            self.parent_node.search_terms.append(index_term(node, self))
        self.consume_children(node)


class RefVisitor(NodeVisitor):
    """Stand-alone reference, addressable on its own."""

    def handle(self, node: Node, path: str) -> None:
        label_node = node.find_first_child("label")
        self.mark_visited(label_node)
        node.label = process_paragraph(label_node, self, 2)

        citation = node.find_first_child("mixed-citation")
        self.mark_visited(citation)
        text = process_paragraph(citation, self, 2)

        write_article_or_note(node, text, self, show_title_as_instruction=True)
        self.consume_children(node)


class RefListVisitor(NodeVisitor):
    def handle(self, node: Node, path: str) -> None:
        write_article_or_note(node, process_ref_list(node, self), self)
        self.consume_children(node)


class DefListVisitor(NodeVisitor):
    def handle(self, node: Node, path: str) -> None:
        write_legend(node, process_def_list(node, self), self)
        self.consume_children(node)


class LegendVisitor(NodeVisitor):
    def handle(self, node: Node, path: str) -> None:
        def_list = node.find_first_child("def-list")
        if def_list is not None:
            write_legend(node, process_def_list(def_list, self), self)
        self.consume_children(node)


class TermSecVisitor(NodeVisitor):
    """Term section; split into separate bits when it holds complex structures."""

    def handle(self, node: Node, path: str) -> None:
        if is_complex_structure(node):
            process_term_sec_split(node, self, path)
        else:
            write_article_or_note(node, process_term_sec(node, self), self)
        self.consume_children(node)


class FormulaVisitor(NodeVisitor):
    """``inline-formula`` and ``disp-formula`` as formula bits."""

    def handle(self, node: Node, path: str) -> None:
        write_formula(node, self.generator.convert_formula(node), self)
        self.descend(node, path)


# ============================================================================
# Figures and tables
# ============================================================================

class FigGroupVisitor(NodeVisitor):
    def handle(self, node: Node, path: str) -> None:
        self.mark_visited(node.find_first_child("label"))
        self.mark_visited(node.find_first_child("caption"))
        self.descend(node, path)


class FigVisitor(NodeVisitor):
    """
    Figure: publishes the graphic and writes an image bit.

    A figure without a graphic is logged and still written, with an
    empty image url.
    """

    def handle(self, node: Node, path: str) -> None:
        generator = self.generator
        label_node = node.find_first_child("label")
        self.mark_visited(label_node)
        label = label_node.plaintext if label_node is not None else ""

        caption = node.find_first_child("caption")
        self.mark_visited(caption)
        caption_title = caption.find_first_child("title") if caption is not None else None
        self.mark_visited(caption_title)
        process_index_terms(node, caption_title, self)
        title = process_paragraph(caption_title, self) if caption_title is not None else ""

        graphics = node.find_children("graphic")
        for graphic in graphics:
            self.mark_visited(graphic)
        if not graphics:
            generator.log.warn(Category.XML_STRUCTURE, "FigureNoGraphic", f"id: {node.customer_id}")
        elif len(graphics) > 1:
            generator.log.warn(Category.XML_STRUCTURE, "FigureToManyGraphics", f"id: {node.customer_id}")

        legend_text = None
        legend = node.find_first_child("legend")
        self.mark_visited(legend)
        if legend is not None:
            def_list = legend.find_first_child("def-list")
            self.mark_visited(def_list)
            if def_list is not None:
                legend_text = process_def_list(def_list, self)

        href = graphics[0].attr("xlink:href") if graphics else None
        url = ""
        if href:
            public_name = PurePosixPath(href.replace("/", "_", 1)).name
            url = generator.publish(f"{generator.local_ressource_path}{href}", public_name)

        width, height = fig_size(node.attr("specific-use"))
        write_image_figure(node, label, title, legend_text, url, width, height, self)
        self.descend(node, path)


class TableWrapVisitor(NodeVisitor):
    """
    Table: queues the flattened HTML for image rendering and writes a
    table bit referencing the future image.
    """

    def handle(self, node: Node, path: str) -> None:
        generator = self.generator
        table_id = (node.attr("id") or node.customer_id or "").replace("-", "_", 1)

        label_node = node.find_first_child("label")
        label = process_paragraph(label_node, self) if label_node is not None else ""
        self.mark_visited(label_node)
        if label_node is None:
            generator.log.warn(Category.XML_STRUCTURE, "TableNoLabel", f"id: {node.customer_id}")

        caption = node.find_first_child("caption")
        self.mark_visited(caption)
        caption_title = caption.find_first_child("title") if caption is not None else None
        title = process_paragraph(caption_title, self) if caption_title is not None else ""
        process_index_terms(node, caption_title, self)
        self.mark_visited(caption_title)

        table = node.find_first_child("table")
        self.mark_visited(table)
        self.mark_visited(node.find_first_child("table-wrap-foot"))

        if caption is not None and caption.find_first_child("p") is not None:
            # caption paragraphs go into a bit of their own ahead of the table
            caption.set_mode_from(node)
            caption.label = label
            caption.title = title
            process_caption_paragraphs(caption, self)
            label = ""
            title = ""

        flattened = table_to_html(table, generator)
        # same table content, same image name
        digest = hashlib.sha256(flattened.html.encode("utf-8")).hexdigest()[:12]
        filename = f"{table_id}_{digest}"
        if generator.image_renderer is not None:
            generator.image_renderer.render(flattened.html, filename)

        write_table(
            node,
            label,
            title,
            flattened.raw_txt if not node.is_remark else "",
            f"{generator.publishing.ressource_base_url}{filename}.png",
            self,
        )
        self.descend(node, path)


VISITOR_TABLE: Dict[str, Type[NodeVisitor]] = {
    "sec": SecVisitor,
    "sub-part": SubPartVisitor,
    "std-meta": StdMetaVisitor,
    "sec_type_paragraph": SecTypeParagraphVisitor,
    "notes_type_revision_desc": NotesTypeRevisionDescVisitor,
    "notes-group": NotesGroupVisitor,
    "non-normative-note": NonNormativeNoteVisitor,
    "boxed-text": BoxedTextVisitor,
    "p": ParagraphVisitor,
    "list": ListVisitor,
    "index-term": IndexTermVisitor,
    "ref": RefVisitor,
    "ref-list": RefListVisitor,
    "def-list": DefListVisitor,
    "legend": LegendVisitor,
    "term-sec": TermSecVisitor,
    "inline-formula": FormulaVisitor,
    "disp-formula": FormulaVisitor,
    "fig-group": FigGroupVisitor,
    "fig": FigVisitor,
    "table-wrap": TableWrapVisitor,
}
