"""
Mapping Rebuilds
================

Full and scoped regeneration of the cross-reference store.

A full rebuild deletes the store file and any lock marker, then parses
every content.xml below a base directory, strictly one after the other.
A scoped rebuild removes only the mappings of one document and parses
that document again; mappings of other documents are untouched.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union
import logging

from bitmark_core.errors import MissingCompanionFileError
from bitmark_core.mapping.registry import BookRegistry, find_content_files, find_norm_id
from bitmark_core.mapping.xref_store import CrossReferenceStore
from bitmark_core.tracking.transformer_log import TransformerLog

logger = logging.getLogger(__name__)


@dataclass
class RebuildResult:
    """Outcome of a rebuild run."""

    documents: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    mappings: int = 0
    conflicts: int = 0

    def summary(self) -> str:
        return (f"Rebuilt {len(self.documents)} documents "
                f"({self.mappings} mappings, {self.conflicts} conflicts, "
                f"{len(self.skipped)} skipped)")


def map_document(content_path: Union[str, Path], store: CrossReferenceStore,
                 registry: BookRegistry, log: Optional[TransformerLog] = None,
                 csv_dir: Optional[Path] = None) -> int:
    """
    Parse one document in mapping-only mode.

    Returns:
        Number of mappings registered

    Raises:
        MissingCompanionFileError: If the document has no metadata.xml or
            no registry entry
    """
    from bitmark_core.tree.builder import DocumentTreeBuilder

    norm_id = find_norm_id(content_path)
    if not norm_id:
        raise MissingCompanionFileError(f"No metadata.xml with a norm name for {content_path}")
    meta = registry.get(norm_id)

    builder = DocumentTreeBuilder(store=store, external_id=norm_id,
                                  doctype=meta.parse_type, log=log, csv_dir=csv_dir)
    for _ in builder.parse_file(content_path):
        pass
    logger.info(f"Mapped {norm_id}: {builder.stats.mappings} mappings")
    return builder.stats.mappings


def rebuild_document(content_path: Union[str, Path], store: CrossReferenceStore,
                     registry: BookRegistry, log: Optional[TransformerLog] = None) -> int:
    """Scoped rebuild: drop the document's mappings, then map it again."""
    norm_id = find_norm_id(content_path)
    if not norm_id:
        raise MissingCompanionFileError(f"No metadata.xml with a norm name for {content_path}")
    removed = store.delete_all_where_external_id(norm_id)
    logger.info(f"Scoped rebuild of {norm_id}: removed {removed} mappings")
    return map_document(content_path, store, registry, log)


def rebuild_all_mappings(base_dir: Union[str, Path], store: CrossReferenceStore,
                         registry: BookRegistry,
                         log: Optional[TransformerLog] = None) -> RebuildResult:
    """Reset the store and map every document below ``base_dir`` sequentially."""
    store.reset()
    result = RebuildResult()

    content_files = find_content_files(base_dir)
    logger.info(f"{len(content_files)} content.xml files below {base_dir}")

    for index, content_path in enumerate(content_files, start=1):
        logger.info(f"[{index}/{len(content_files)}] {content_path}")
        try:
            count = map_document(content_path, store, registry, log)
        except MissingCompanionFileError as e:
            logger.error(f"Skipping {content_path}: {e}")
            result.skipped.append(str(content_path))
            continue
        result.documents.append(str(content_path))
        result.mappings += count

    result.conflicts = log.count(key="DuplicateIdentifier") if log is not None else 0
    logger.info(result.summary())
    return result
