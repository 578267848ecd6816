"""
Markup Generator
================

Walks document partitions and writes bitmark to an output stream.

Workflow:
1. The first partition writes the ``[.book]`` header
2. Each partition (except ``front``) is dispatched to its visitor with a
   fresh visited set
3. Links resolve through the cross-reference store and the document id map
4. Tables are queued on the image renderer; formulas are converted inline
5. After the walk the renderer queue is flushed, then the output is closed
"""

from io import StringIO
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, TextIO, Union
import logging
import tempfile

from bitmark_core.adapters.base import AssetPublisher, FormulaConverter, ImageRenderer
from bitmark_core.adapters.local import MathMLLatexConverter, wrap_mathml
from bitmark_core.config.settings import PublishingConfig
from bitmark_core.mapping.doc_id_mapper import DocIdMapper
from bitmark_core.mapping.xref_store import CrossReferenceStore
from bitmark_core.markup import templates
from bitmark_core.markup.inline_graphic import InlineGraphicBuilder
from bitmark_core.markup.visitors import find_title_wrap, visitor_for
from bitmark_core.tracking.transformer_log import Category, TransformerLog
from bitmark_core.tree.node import Node
from bitmark_core.tree.partitions import PartitionWriter, iter_partitions, read_resource_path
from bitmark_core.xml.utils import attributes_as_html

logger = logging.getLogger(__name__)

NOT_DEFINED = "notdefined"
NO_TITLE = "[no title]"


# ============================================================================
# MathML extraction
# ============================================================================

def _serialize_mathml(node: Node, parts: list) -> None:
    if not node.children:
        parts.append(f"<{node.name}{attributes_as_html(node.attributes)}/>")
        return
    parts.append(f"<{node.name}{attributes_as_html(node.attributes)}>")
    for child in node.children:
        if child.is_text:
            parts.append(child.plaintext)
        elif child.name == "mml:mtext" and not child.plaintext:
            continue
        else:
            _serialize_mathml(child, parts)
    parts.append(f"</{node.name}>")


def extract_mathml(node: Optional[Node]) -> str:
    """
    Serialize the MathML below a formula node.

    Text is already escaped by the tree builder, so the result is
    well-formed once the ``mml`` prefix is declared.
    """
    if node is None:
        return ""
    if node.name in ("math", "mml:math"):
        math = node
    else:
        math = node.find_first_child("mml:math") or node.find_first_child("math")
    if math is None:
        return ""
    parts = []
    _serialize_mathml(math, parts)
    return "".join(parts)


# ============================================================================
# Generator
# ============================================================================

class MarkupGenerator:
    """
    Bitmark generator for one document.

    Example usage:
        store = CrossReferenceStore("mappings")
        generator = MarkupGenerator(store, lang="de", local_ressource_path="/data/NIN2025/")
        with open("out.bitmark", "w", encoding="utf-8") as output:
            generator.transform(builder.parse_file("content.xml"), output)
        print(generator.log.summary())
    """

    def __init__(self, store: CrossReferenceStore,
                 doc_id_mapper: Optional[DocIdMapper] = None,
                 log: Optional[TransformerLog] = None,
                 lang: str = "de",
                 publishing: Optional[PublishingConfig] = None,
                 image_renderer: Optional[ImageRenderer] = None,
                 formula_converter: Optional[FormulaConverter] = None,
                 asset_publisher: Optional[AssetPublisher] = None,
                 local_ressource_path: str = "",
                 private_chars: Optional[Dict[str, str]] = None):
        self.store = store
        self.doc_id_mapper = doc_id_mapper
        self.log = log or TransformerLog()
        self.lang = lang
        self.publishing = publishing or PublishingConfig()
        self.image_renderer = image_renderer
        self.formula_converter = formula_converter or MathMLLatexConverter()
        self.asset_publisher = asset_publisher
        self.private_chars = private_chars or {}
        self.inline_graphics = InlineGraphicBuilder(
            "", self.publishing.ressource_base_url, asset_publisher)
        self.local_ressource_path = ""
        self.set_ressource_path(local_ressource_path)

        self.partitions_rendered = 0
        self._output: Optional[TextIO] = None
        self._partition: Optional[Node] = None
        self._book_written = False

    def set_ressource_path(self, path: str) -> None:
        """Directory the graphics of the document are read from."""
        if path and not path.endswith("/"):
            path += "/"
        self.local_ressource_path = path
        self.inline_graphics.ressource_path = path

    # ====================================================================
    # Output
    # ====================================================================

    def write(self, data: str) -> None:
        if self._output is None:
            raise RuntimeError("MarkupGenerator has no output stream")
        self._output.write(data)

    def book_header(self, partition: Node) -> str:
        """``[.book]`` bit from the document title and dated reference."""
        std_meta = partition.find_first_child("std-meta")
        std_ref = std_meta.find_first_child("std_ref_dated") if std_meta is not None else None

        title = NO_TITLE
        title_wrap = find_title_wrap(partition, self.lang)
        if title_wrap is not None:
            main = title_wrap.find_recursively("main")
            title = main.plaintext if main is not None else NO_TITLE
            if std_ref is not None:
                title += "\n" + std_ref.plaintext

        publishing = self.publishing
        return templates.book(title, self.lang, publishing.publisher,
                              publishing.theme, publishing.cover_color)

    def render_partition(self, partition: Node) -> None:
        if not self._book_written:
            self.write(self.book_header(partition))
            self._book_written = True

        if partition.name == "front":
            return

        self._partition = partition
        visitor_for(partition)(self, set()).visit(partition)
        self._partition = None
        self.partitions_rendered += 1
        logger.debug(f"Rendered partition {partition.subpart_id} ({partition.name})")

    def transform(self, partitions: Iterable[Node], output: TextIO) -> int:
        """
        Render all partitions to ``output``.

        ``partitions`` is drained into a temporary intermediate file before
        the first one is rendered. A tree builder registers its mappings
        when the parse completes, so links into later partitions resolve
        no matter how the source was chunked. The image renderer queue is
        flushed once the walk is complete; the caller closes ``output``
        afterwards.

        Returns:
            Number of partitions rendered
        """
        with tempfile.TemporaryDirectory(prefix="bitmark-") as tmp:
            spool = Path(tmp) / "partitions.json"
            with PartitionWriter(spool) as writer:
                writer.write_all(partitions)
            logger.debug(f"Spooled {writer.count} partitions to {spool}")
            return self._render(iter_partitions(spool), output)

    def _render(self, partitions: Iterable[Node], output: TextIO) -> int:
        self._output = output
        self._book_written = False
        self.partitions_rendered = 0
        try:
            for partition in partitions:
                self.render_partition(partition)
            if self.image_renderer is not None:
                rendered = self.image_renderer.flush()
                logger.info(f"Rendered {rendered} table images")
        finally:
            self._output = None
        logger.info(f"Generated bitmark for {self.partitions_rendered} partitions "
                    f"({len(self.log)} log entries)")
        return self.partitions_rendered

    def transform_to_string(self, partitions: Iterable[Node]) -> str:
        output = StringIO()
        self.transform(partitions, output)
        return output.getvalue()

    def transform_file(self, json_path: Union[str, Path], output_path: Union[str, Path]) -> int:
        """Render an intermediate partition file into a bitmark file."""
        if not self.local_ressource_path:
            self.set_ressource_path(read_resource_path(json_path))
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as output:
            return self._render(iter_partitions(json_path), output)

    # ====================================================================
    # Lookups used by the visitors
    # ====================================================================

    def anchor_for(self, customer_id_or_href: Optional[str]) -> Optional[str]:
        if not customer_id_or_href:
            return None
        return self.store.get_anchor_id(customer_id_or_href)

    def parent_anchor_for(self, customer_id_or_href: Optional[str]) -> Optional[str]:
        if not customer_id_or_href:
            return None
        return self.store.get_parent_anchor_id(customer_id_or_href)

    def gmb_doc_id(self, href: Optional[str]) -> str:
        if self.doc_id_mapper is None:
            return NOT_DEFINED
        return self.doc_id_mapper.get_gmb_doc_id(href)

    def doc_id_exists_in_specific(self, href: Optional[str]) -> bool:
        if self.doc_id_mapper is None:
            return False
        return self.doc_id_mapper.doc_id_exists_in_specific(href)

    def find_in_partition(self, predicate: Callable[[Node], bool]) -> Optional[Node]:
        if self._partition is None:
            return None
        return self._partition.find_where(predicate)

    # ====================================================================
    # Collaborators
    # ====================================================================

    def convert_formula(self, node: Node) -> str:
        mathml = extract_mathml(node)
        if not mathml:
            self.log.warn(Category.CONTENT, "FormulaNoMathML", f"id: {node.customer_id}")
            return ""
        return self.formula_converter.convert(wrap_mathml(mathml))

    def publish(self, local_path: Union[str, Path], public_filename: str) -> str:
        """Publish an asset; the url only depends on the configured base url and the filename."""
        url = f"{self.publishing.ressource_base_url}{public_filename}"
        if self.asset_publisher is not None:
            self.asset_publisher.publish(Path(local_path), public_filename)
        return url
