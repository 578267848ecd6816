"""
Book Registry
=============

Out-of-band conversion parameters per document.

The registry is a JSON object keyed by norm id (the ``<name>`` of a
document's ``metadata.xml``)::

    {
      "NIN2025": {"parse_type": "nin", "lang": "de", "gmbdocid": "nin2025-de"},
      ...
    }

A document directory holds ``content.xml`` (the standard itself) next to
``metadata.xml`` (norm name and the editor item ids of its parts).
"""

from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union
import json
import logging

from lxml import etree

from bitmark_core.errors import MissingCompanionFileError
from bitmark_core.xml.utils import local_name

logger = logging.getLogger(__name__)

CONTENT_FILENAME = "content.xml"
METADATA_FILENAME = "metadata.xml"
ITEM_ID_ATTRIBUTE = "xpublisher-inline-content-id"
UNDEFINED_DOC_ID = "notdefined"


@dataclass
class BookMetadata:
    """Conversion parameters of one document."""

    norm_id: str
    parse_type: str = "nin"
    lang: str = "de"
    gmbdocid: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


class BookRegistry:
    """
    Read access to the registry file.

    Example usage:
        registry = BookRegistry(Path("book_registry.json"))
        meta = registry.get("NIN2025")
        meta.lang        # 'de'
    """

    def __init__(self, path: Optional[Union[str, Path]] = None,
                 entries: Optional[Dict[str, dict]] = None):
        self.path = Path(path) if path else None
        self._entries = entries

    @property
    def entries(self) -> Dict[str, dict]:
        if self._entries is None:
            self._entries = self._read()
        return self._entries

    def _read(self) -> Dict[str, dict]:
        if self.path is None:
            logger.error("No book registry configured")
            return {}
        # utf-8-sig drops a leading BOM
        with open(self.path, "r", encoding="utf-8-sig") as f:
            data = json.load(f)
        logger.info(f"Loaded book registry {self.path} ({len(data)} documents)")
        return data

    def __contains__(self, norm_id: str) -> bool:
        return norm_id in self.entries

    def get(self, norm_id: str) -> BookMetadata:
        """
        Conversion parameters for a norm id.

        Raises:
            MissingCompanionFileError: If the registry has no entry for it
        """
        data = self.entries.get(norm_id)
        if data is None:
            raise MissingCompanionFileError(f"No registry entry for norm id {norm_id}")
        return BookMetadata(
            norm_id=norm_id,
            parse_type=data.get("parse_type") or "nin",
            lang=data.get("lang") or "de",
            gmbdocid=data.get("gmbdocid") or "",
        )


def _parse_metadata(metadata_path: Path):
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    return etree.parse(str(metadata_path), parser).getroot()


def read_norm_name(metadata_path: Union[str, Path]) -> str:
    """Text of the first ``<name>`` element of a metadata.xml file."""
    root = _parse_metadata(Path(metadata_path))
    for element in root.iter():
        if local_name(element) == "name" and element.text:
            return element.text.strip()
    return ""


def read_item_ids(metadata_path: Union[str, Path]) -> List[str]:
    """Editor item ids listed by the ``<item>`` elements of a metadata.xml file."""
    root = _parse_metadata(Path(metadata_path))
    item_ids = []
    for element in root.iter():
        if local_name(element) != "item":
            continue
        value = (element.get(ITEM_ID_ATTRIBUTE) or "").strip()
        if value:
            item_ids.append(value)
    return item_ids


def find_document_dirs(base_dir: Union[str, Path]) -> Iterator[Path]:
    """Yield every directory below ``base_dir`` holding content.xml and metadata.xml."""
    base_dir = Path(base_dir)
    for metadata_path in sorted(base_dir.rglob(METADATA_FILENAME)):
        if (metadata_path.parent / CONTENT_FILENAME).is_file():
            yield metadata_path.parent


def find_content_files(base_dir: Union[str, Path]) -> List[Path]:
    """Every content.xml below ``base_dir``, in a stable order."""
    return sorted(Path(base_dir).rglob(CONTENT_FILENAME))


def find_norm_id(content_path: Union[str, Path]) -> Optional[str]:
    """
    Norm id of the document a content.xml belongs to.

    Looks for a metadata.xml next to a content.xml, starting in the
    directory of ``content_path`` and descending into subdirectories.
    """
    start = Path(content_path)
    if start.is_file():
        start = start.parent
    if not start.is_dir():
        return None
    if (start / METADATA_FILENAME).is_file():
        name = read_norm_name(start / METADATA_FILENAME)
        if name:
            return name
    for doc_dir in find_document_dirs(start):
        name = read_norm_name(doc_dir / METADATA_FILENAME)
        if name:
            return name
    return None
