"""
Document Id Mapper
==================

Maps editor item ids (the ``xpublisher-inline-content-id`` values listed
in a document's metadata.xml) to target document ids taken from the book
registry. Cross-document links carry an item id in their href; this map
tells the generator which target document such a link points into.

Two maps are kept:

- the overall map, persisted as ``xpublisherDocId2GmbDocId.json`` and
  built by scanning every document below a base directory;
- the specific map of the document currently being converted, used to
  recognise hrefs that look external but point into the same document.
"""

from pathlib import Path
from typing import Dict, Optional, Union
import json
import logging
import re
import time

from bitmark_core.errors import MissingCompanionFileError
from bitmark_core.mapping.registry import (
    METADATA_FILENAME,
    UNDEFINED_DOC_ID,
    BookMetadata,
    BookRegistry,
    find_document_dirs,
    read_item_ids,
    read_norm_name,
)
from bitmark_core.mapping.xref_store import ENCODED_HREF_PREFIX

logger = logging.getLogger(__name__)

DOC_ID_MAPPING_FILENAME = "xpublisherDocId2GmbDocId.json"
SELF_HREF_PREFIX = ENCODED_HREF_PREFIX + "self?"
ITEM_ID_PATTERN = re.compile(r"fscxeditor://xeditordocument/([^/?]+)")


def extract_doc_id(value: Optional[str]) -> str:
    """
    Item id addressed by an href.

    Returns ``"notfound"`` for self references and undecodable hrefs, and
    plain ids unchanged.
    """
    if not value:
        return ""
    if SELF_HREF_PREFIX in value:
        return "notfound"
    if ENCODED_HREF_PREFIX in value:
        match = ITEM_ID_PATTERN.search(value)
        return match.group(1).strip() if match else "notfound"
    return value


class DocIdMapper:
    """
    Item id to target document id resolution.

    Example usage:
        mapper = DocIdMapper(Path("mappings"), BookRegistry(Path("book_registry.json")))
        mapper.full_scan(Path("documents"))
        mapper.get_gmb_doc_id("fscxeditor://xeditordocument/COO.6505.1000.11.52?xpath=...")
    """

    def __init__(self, mapping_dir: Union[str, Path], registry: BookRegistry):
        self.mapping_dir = Path(mapping_dir)
        self.path = self.mapping_dir / DOC_ID_MAPPING_FILENAME
        self.registry = registry
        self.overall: Dict[str, str] = {}
        self.specific: Dict[str, str] = {}

    # -- building --------------------------------------------------------

    def scan_directory(self, directory: Union[str, Path], target: Dict[str, str]) -> int:
        """Add the item ids of every document below ``directory`` to ``target``."""
        added = 0
        for doc_dir in find_document_dirs(directory):
            added += self._process_document(doc_dir, target)
        return added

    def _process_document(self, doc_dir: Path, target: Dict[str, str]) -> int:
        metadata_path = doc_dir / METADATA_FILENAME
        norm_name = read_norm_name(metadata_path)
        try:
            meta = self.registry.get(norm_name)
        except MissingCompanionFileError as e:
            logger.error(f"Skipping {doc_dir}: {e}")
            return 0

        gmb_doc_id = meta.gmbdocid or UNDEFINED_DOC_ID
        item_ids = read_item_ids(metadata_path)
        for item_id in item_ids:
            previous = target.get(item_id)
            if previous is not None and previous != gmb_doc_id:
                logger.warning(f"Item id {item_id} already mapped to {previous}, now {gmb_doc_id}")
            target[item_id] = gmb_doc_id
        logger.debug(f"{doc_dir}: {len(item_ids)} item ids -> {gmb_doc_id}")
        return len(item_ids)

    def full_scan(self, base_dir: Union[str, Path]) -> int:
        """Rebuild and persist the overall map from every document below ``base_dir``."""
        start = time.monotonic()
        self.overall = {}
        self.scan_directory(base_dir, self.overall)
        self.save()
        logger.info(f"Scanned {base_dir}: {len(self.overall)} item ids "
                    f"({time.monotonic() - start:.2f}s)")
        return len(self.overall)

    def map_norm(self, base_dir: Union[str, Path], norm_id: str) -> int:
        """
        Scoped rebuild for one document.

        Removes every item id mapped to the document's target id, then
        rescans ``base_dir/norm_id``. Other documents' entries stay as they are.

        Returns:
            Number of item ids mapped for the document
        """
        if not self.overall:
            self.load()

        meta = self.registry.get(norm_id)
        gmb_doc_id = meta.gmbdocid
        if not gmb_doc_id:
            logger.error(f"No target document id defined for {norm_id}")
            return 0

        stale = [key for key, value in self.overall.items() if value == gmb_doc_id]
        for key in stale:
            del self.overall[key]

        book_dir = Path(base_dir) / norm_id
        if not book_dir.is_dir():
            logger.error(f"Document directory not found: {book_dir}")
            self.save()
            return 0

        added = self.scan_directory(book_dir, self.overall)
        self.save()
        logger.info(f"Remapped {norm_id}: removed {len(stale)}, added {added}")
        return added

    def load_specific(self, resource_dir: Union[str, Path]) -> int:
        """Load the item ids of the document being converted."""
        self.specific = {}
        self.scan_directory(resource_dir, self.specific)
        logger.debug(f"Specific item ids from {resource_dir}: {len(self.specific)}")
        return len(self.specific)

    # -- persistence -----------------------------------------------------

    def load(self) -> int:
        """Load the persisted overall map; a missing file leaves it empty."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                self.overall = dict(json.load(f))
        except FileNotFoundError:
            logger.warning(f"No document id mapping at {self.path}")
            self.overall = {}
        except json.JSONDecodeError as e:
            logger.error(f"Document id mapping {self.path} is corrupt: {e}")
            self.overall = {}
        return len(self.overall)

    def save(self) -> None:
        self.mapping_dir.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self.overall, f, indent=2, ensure_ascii=False)

    # -- lookups ---------------------------------------------------------

    def get_gmb_doc_id(self, value: Optional[str]) -> str:
        """
        Target document id for an item id or encoded href.

        Returns:
            The target id, ``""`` when the item id is unknown, or
            ``"notdefined"`` when an encoded href carries no item id
        """
        if not value:
            return ""
        if ENCODED_HREF_PREFIX in value:
            match = ITEM_ID_PATTERN.search(value)
            if not match:
                return UNDEFINED_DOC_ID
            return self.overall.get(match.group(1).strip(), "")
        return self.overall.get(value, "")

    def doc_id_exists_in_specific(self, value: Optional[str]) -> bool:
        return extract_doc_id(value) in self.specific

    def read_book_metadata(self, norm_id: str) -> BookMetadata:
        return self.registry.get(norm_id)

    def __len__(self) -> int:
        return len(self.overall)
