"""
Mapping
=======

Persistent identifier maps shared across conversions:

- CrossReferenceStore: customer id -> anchor id (file locked)
- DocIdMapper: editor item id -> target document id
- BookRegistry: per-document conversion parameters
"""

from bitmark_core.mapping.file_lock import AdvisoryFileLock
from bitmark_core.mapping.xref_store import (
    MAPPING_FILENAME,
    CrossReferenceEntry,
    CrossReferenceStore,
    PutResult,
    extract_customer_id,
)
from bitmark_core.mapping.registry import (
    BookMetadata,
    BookRegistry,
    find_content_files,
    find_document_dirs,
    find_norm_id,
    read_item_ids,
    read_norm_name,
)
from bitmark_core.mapping.doc_id_mapper import (
    DOC_ID_MAPPING_FILENAME,
    DocIdMapper,
    extract_doc_id,
)
from bitmark_core.mapping.full_rebuild import (
    RebuildResult,
    map_document,
    rebuild_all_mappings,
    rebuild_document,
)

__all__ = [
    "AdvisoryFileLock",
    "MAPPING_FILENAME",
    "CrossReferenceEntry",
    "CrossReferenceStore",
    "PutResult",
    "extract_customer_id",
    "BookMetadata",
    "BookRegistry",
    "find_content_files",
    "find_document_dirs",
    "find_norm_id",
    "read_item_ids",
    "read_norm_name",
    "DOC_ID_MAPPING_FILENAME",
    "DocIdMapper",
    "extract_doc_id",
    "RebuildResult",
    "map_document",
    "rebuild_all_mappings",
    "rebuild_document",
]
