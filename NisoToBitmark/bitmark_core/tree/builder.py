"""
Document Tree Builder
=====================

Streaming conversion of a standards XML document into addressed node
partitions.

The source is fed chunk by chunk into an lxml target parser; no element
tree is ever built. Every element becomes a :class:`Node` carrying its
structural path, section level, anchor id and customer id. Completed
partitions (front matter, back matter, first-level sub-parts, or
first-level sections for documents without sub-parts) are yielded as
soon as their closing tag is seen and then dropped, so memory stays
bounded by the largest partition.

Anchor ids are registered in the cross-reference store as they are
assigned. The whole parse runs inside one store session; its mappings
reach the file in one short locked cycle once the last partition is read.
Links may point forward, so partitions are rendered only after the parse
has completed.
"""

from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, Iterator, List, Optional, Tuple, Union
import csv
import logging

from lxml import etree

from bitmark_core.addressing import AnchorIdBuilder
from bitmark_core.errors import SourceStreamError
from bitmark_core.mapping.xref_store import CrossReferenceStore
from bitmark_core.tracking.transformer_log import Category, TransformerLog
from bitmark_core.tree.node import TEXT_FRAGMENT, Node
from bitmark_core.xml.utils import (
    eliminate_multiple_spaces,
    escape_xml_text,
    normalize_line_breaks,
    prefixed_name,
)

logger = logging.getLogger(__name__)

DOCTYPES = ("nin", "sng", "no_sub-part")
NO_CUSTOMER_ID = "no_customerId"
DEFAULT_CHUNK_SIZE = 64 * 1024


def remap_tag(name: str, attributes: Dict[str, str]) -> str:
    """
    Synthetic tag names for element variants the generator dispatches on.

    Example:
        >>> remap_tag("sec", {"sec-type": "paragraph"})
        'sec_type_paragraph'
    """
    if attributes.get("sec-type") == "paragraph":
        return "sec_type_paragraph"
    if name == "notes" and attributes.get("specific-use") == "revision-desc":
        return "notes_type_revision_desc"
    if name == "std-ref" and attributes.get("type") == "dated":
        return "std_ref_dated"
    if name == "std-xref" and attributes.get("type") == "supersedes":
        return "std_xref_supersedes"
    return name


def is_sub_sub_part(tag: str, sub_part_level: int, doctype: str) -> bool:
    """Nested sub-parts that open a section level (nin: below level 1, sng: below level 2)."""
    if tag != "sub-part":
        return False
    if doctype == "sng":
        return sub_part_level > 2
    return sub_part_level > 1


@dataclass
class _Frame:
    """One open element."""
    node: Optional[Node]
    tag: str
    partition_root: bool = False
    children_seen: int = 0


@dataclass
class BuildStats:
    elements: int = 0
    text_fragments: int = 0
    partitions: int = 0
    mappings: int = 0
    conflicts: int = 0


class _TreeTarget:
    """lxml parser target building partitions from parse events."""

    def __init__(self, builder: 'DocumentTreeBuilder'):
        self.builder = builder
        self._ns_stack: List[Tuple[str, str]] = []
        self._text: List[str] = []

    def _prefixes(self) -> Dict[str, str]:
        prefixes: Dict[str, str] = {}
        for prefix, uri in self._ns_stack:
            prefixes[uri] = prefix
        return prefixes

    def start_ns(self, prefix, uri):
        self._ns_stack.append((prefix or "", uri))

    def end_ns(self, prefix):
        prefix = prefix or ""
        for index in range(len(self._ns_stack) - 1, -1, -1):
            if self._ns_stack[index][0] == prefix:
                del self._ns_stack[index]
                break

    def start(self, tag, attrib):
        self._flush_text()
        prefixes = self._prefixes()
        name = prefixed_name(tag, prefixes)
        attributes = {prefixed_name(k, prefixes): v for k, v in attrib.items()}
        self.builder.open_element(name, attributes)

    def end(self, tag):
        self._flush_text()
        self.builder.close_element(prefixed_name(tag, self._prefixes()))

    def data(self, data):
        self._text.append(data)

    def comment(self, text):
        self._flush_text()

    def pi(self, target, data=None):
        self._flush_text()

    def close(self):
        self._flush_text()
        return self.builder.stats

    def _flush_text(self) -> None:
        if not self._text:
            return
        text = "".join(self._text).strip()
        self._text = []
        if text:
            self.builder.add_text(text)


class DocumentTreeBuilder:
    """
    Builds addressed node partitions from one source document.

    One instance per document: level counters, path stack and open
    ancestors live inside the instance and are discarded with it.

    Example usage:
        store = CrossReferenceStore(Path("mappings"))
        builder = DocumentTreeBuilder(store=store, external_id="NIN2025")
        with PartitionWriter(Path("work/NIN2025.json")) as writer:
            writer.write_all(builder.parse_file(Path("NIN2025/content.xml")))

    Args:
        store: Cross-reference store receiving ``customer id -> anchor id``
            mappings, or None to skip registration
        external_id: Document id recorded as remark of every mapping
        doctype: ``nin``, ``sng`` or ``no_sub-part``
        log: Structured finding log
        csv_dir: Directory for an ``anchor_id,path`` side file, optional
    """

    def __init__(self, store: Optional[CrossReferenceStore] = None,
                 external_id: str = "", doctype: str = "nin",
                 log: Optional[TransformerLog] = None,
                 csv_dir: Optional[Union[str, Path]] = None,
                 chunk_size: int = DEFAULT_CHUNK_SIZE):
        if doctype not in DOCTYPES:
            raise ValueError(f"Unsupported doctype: {doctype}")
        self.store = store
        self.external_id = external_id
        self.doctype = doctype
        self.log = log if log is not None else TransformerLog()
        self.csv_dir = Path(csv_dir) if csv_dir else None
        self.chunk_size = chunk_size
        self.stats = BuildStats()
        self._csv_writer = None
        self._reset()

    def _reset(self) -> None:
        self.anchor_builder = AnchorIdBuilder()
        self._frames: List[_Frame] = []
        self._path: List[str] = []
        self._doc_part: Optional[str] = None
        self._partition: Optional[Node] = None
        self._subpart_id: Optional[str] = None
        self._section_level = 1
        self._xml_level = 0
        self._sub_part_level = 0
        self._completed: List[Node] = []

    # ====================================================================
    # Driving the parse
    # ====================================================================

    def parse(self, chunks: Iterable[bytes], source_name: str = "<stream>") -> Iterator[Node]:
        """
        Parse a byte stream, yielding partitions as they complete.

        Raises:
            SourceStreamError: If the XML is malformed
        """
        parser = etree.XMLParser(
            target=_TreeTarget(self),
            resolve_entities=False,
            no_network=True,
            huge_tree=True,
        )

        with ExitStack() as stack:
            if self.store is not None:
                stack.enter_context(self.store.session())
            if self.csv_dir is not None:
                self._open_csv(stack, source_name)

            try:
                for chunk in chunks:
                    parser.feed(chunk)
                    yield from self._drain()
                parser.close()
            except etree.XMLSyntaxError as e:
                raise SourceStreamError(f"Malformed XML in {source_name}: {e}",
                                        line=getattr(e, "lineno", None)) from e
            yield from self._drain()

        logger.info(f"Parsed {source_name}: {self.stats.elements} elements, "
                    f"{self.stats.partitions} partitions, {self.stats.mappings} mappings")

    def parse_file(self, path: Union[str, Path]) -> Iterator[Node]:
        path = Path(path)
        with open(path, "rb") as f:
            yield from self.parse(self._read_chunks(f), source_name=str(path))

    def parse_string(self, xml: Union[str, bytes]) -> List[Node]:
        """Parse a complete document held in memory and return all partitions."""
        data = xml.encode("utf-8") if isinstance(xml, str) else xml
        return list(self.parse([data]))

    def _read_chunks(self, f: BinaryIO) -> Iterator[bytes]:
        while True:
            chunk = f.read(self.chunk_size)
            if not chunk:
                return
            yield chunk

    def _drain(self) -> Iterator[Node]:
        while self._completed:
            yield self._completed.pop(0)

    def _open_csv(self, stack: ExitStack, source_name: str) -> None:
        self.csv_dir.mkdir(parents=True, exist_ok=True)
        csv_path = self.csv_dir / f"{self.csv_dir.name}.csv"
        is_new = not csv_path.exists()
        f = stack.enter_context(open(csv_path, "a", encoding="utf-8", newline=""))
        self._csv_writer = csv.writer(f, quoting=csv.QUOTE_NONNUMERIC)
        if is_new:
            f.write("anchor_id,path\n")
        stack.callback(self._close_csv)

    def _close_csv(self) -> None:
        self._csv_writer = None

    # ====================================================================
    # Parse events
    # ====================================================================

    def _is_partition_start(self, tag: str) -> bool:
        if tag == "sub-part" and self._sub_part_level == 1:
            return True
        if self._xml_level == 2 and tag in ("front", "back"):
            return True
        return (self.doctype == "no_sub-part" and tag == "sec"
                and self._xml_level == 3 and self._doc_part != "front")

    def open_element(self, tag: str, attributes: Dict[str, str]) -> None:
        if tag == "standard":
            self._reset()

        self._xml_level += 1
        if tag == "sub-part":
            self._sub_part_level += 1
        if self._xml_level == 2 and tag in ("front", "back", "body"):
            self._doc_part = tag

        name = remap_tag(tag, attributes)
        node = Node(name=name)
        node.set_attributes(attributes)
        node.docpart = self._doc_part
        node.customer_id = attributes.get("id") or None
        node.xmllevel = self._xml_level

        self._path.append(name)
        current_path = "/" + "/".join(self._path)
        node.anchor_id = self.anchor_builder.update_structure(current_path, name)
        node.path = current_path

        starts_partition = self._is_partition_start(tag)
        if starts_partition:
            self._section_level = 1
            node.seclevel = self._section_level
            self._partition = node
            self._subpart_id = attributes.get("id") or tag

        if self._partition is None:
            self._frames.append(_Frame(node=None, tag=tag))
            return

        node.subpart_id = self._subpart_id
        parent_frame = self._frames[-1] if self._frames else None
        current = parent_frame.node if parent_frame else None

        if name == "sec" or is_sub_sub_part(name, self._sub_part_level, self.doctype):
            self._section_level += 1
            node.seclevel = self._section_level
        elif current is not None and current.seclevel > 0:
            node.seclevel = current.seclevel

        if current is not None and current.id:
            node.parent_id = current.id
            node.parent_anchor_id = current.anchor_id
        elif current is not None and current.parent_id:
            node.parent_id = current.parent_id
            node.parent_anchor_id = current.parent_anchor_id

        self._register(node)

        if current is not None:
            node.parent_node_name = current.name
            parent_frame.children_seen += 1
            if not starts_partition:
                current.add_child(node)
            if not node.customer_id:
                node.customer_id = self._child_customer_id(current, parent_frame.children_seen)

        self._write_csv(node.anchor_id, current_path)
        self.stats.elements += 1
        self._frames.append(_Frame(node=node, tag=tag, partition_root=starts_partition))

    def close_element(self, tag: str) -> None:
        frame = self._frames.pop() if self._frames else None
        node = frame.node if frame else None

        if node is not None and (
            (tag == "sec" and node.name != "sec_type_paragraph")
            or is_sub_sub_part(tag, self._sub_part_level, self.doctype)
        ):
            self._section_level -= 1

        if frame is not None and frame.partition_root:
            self._completed.append(node)
            self.stats.partitions += 1
            logger.debug(f"Partition {node.subpart_id} complete ({node.name})")

        self._path.pop()
        self._xml_level -= 1
        if tag == "sub-part":
            self._sub_part_level -= 1

    def add_text(self, text: str) -> None:
        frame = self._frames[-1] if self._frames else None
        current = frame.node if frame else None
        if current is None:
            return

        txt = normalize_line_breaks(text)
        if "mml:" in current.name:
            txt = escape_xml_text(txt)
        cleaned = eliminate_multiple_spaces(txt)
        removed = len(txt) - len(cleaned)
        if removed > 4:
            self.log.warn(Category.CONTENT, "eliminateMultipleSpaces",
                          f"count: {removed}: {current.customer_id}")

        current.add_text(cleaned)

        fragment = Node(name=TEXT_FRAGMENT)
        fragment.parent_node_name = current.name
        fragment.docpart = self._doc_part
        fragment.add_text(cleaned)
        fragment.seclevel = self._section_level
        fragment.parent_id = current.parent_id
        fragment.subpart_id = current.subpart_id
        current.add_child(fragment)
        frame.children_seen += 1

        count = frame.children_seen
        base = current.customer_id or current.parent_id
        if base:
            fragment.customer_id = base if count == 1 else f"{base}-{count}"
        else:
            fragment.customer_id = NO_CUSTOMER_ID
        fragment.id = fragment.customer_id
        fragment.path = current.path
        self.stats.text_fragments += 1

    # ====================================================================
    # Helpers
    # ====================================================================

    @staticmethod
    def _child_customer_id(parent: Node, ordinal: int) -> str:
        if parent.customer_id:
            return f"{parent.customer_id}-{ordinal}"
        if parent.parent_id:
            return f"{parent.parent_id}-{ordinal}"
        return NO_CUSTOMER_ID

    def _register(self, node: Node) -> None:
        if self.store is None or not node.customer_id or not node.anchor_id:
            return
        if node.customer_id.startswith(NO_CUSTOMER_ID):
            return
        result = self.store.put(node.customer_id, node.anchor_id,
                                node.parent_anchor_id, self.external_id)
        self.stats.mappings += 1
        if result.conflict:
            self.stats.conflicts += 1

    def _write_csv(self, anchor_id: Optional[str], path: str) -> None:
        if self._csv_writer is not None and anchor_id:
            self._csv_writer.writerow([anchor_id, path])
