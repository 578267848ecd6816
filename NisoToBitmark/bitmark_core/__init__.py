"""
Bitmark Core Library
====================

Conversion of NISO STS standards documents into bitmark:

- Hierarchical anchor id assignment
- Streaming tree building with partitioned output
- Visitor based bitmark generation with link resolution
- Concurrency-safe cross-reference store shared between conversions
- Consistency reporting and bit comparison

Architecture
------------

    bitmark_core/
    ├── addressing/    - Anchor id assignment (counter structure)
    ├── tree/          - Node model, streaming builder, partition files
    ├── mapping/       - Cross-reference store, document id map, registry
    ├── markup/        - Templates, visitors, markup generator
    ├── adapters/      - Table rendering, formula conversion, asset publishing
    ├── tracking/      - Transformer log and consistency report
    ├── validation/    - Bit extraction and comparison
    ├── config/        - Configuration management
    └── xml/           - XML name and text helpers

Usage
-----

    from bitmark_core import CrossReferenceStore, DocumentTreeBuilder, MarkupGenerator, PartitionWriter

    store = CrossReferenceStore("mappings")
    builder = DocumentTreeBuilder(store, external_id="NIN2025")
    with PartitionWriter("work/NIN2025.json") as writer:
        writer.write_all(builder.parse_file("NIN2025/content.xml"))

    generator = MarkupGenerator(store, local_ressource_path="NIN2025/")
    generator.transform_file("work/NIN2025.json", "out/NIN2025.bitmark")
"""

__version__ = "1.0.0"
__author__ = "NisoToBitmark Team"

from bitmark_core.errors import (
    BitmarkError,
    LockTimeoutError,
    MissingCompanionFileError,
    SourceStreamError,
    StoreIOError,
)

from bitmark_core.addressing import AnchorIdBuilder, CounterStructure

from bitmark_core.tree import (
    DocumentTreeBuilder,
    Node,
    PartitionWriter,
    iter_partitions,
)

from bitmark_core.mapping import (
    BookRegistry,
    CrossReferenceStore,
    DocIdMapper,
    rebuild_all_mappings,
    rebuild_document,
)

from bitmark_core.markup import MarkupGenerator

from bitmark_core.tracking import (
    Category,
    ConsistencyReport,
    Severity,
    TransformerLog,
)

from bitmark_core.validation import BitExtractor

from bitmark_core.config import ConverterConfig, load_config

__all__ = [
    # Version
    "__version__",
    # Errors
    "BitmarkError",
    "LockTimeoutError",
    "MissingCompanionFileError",
    "SourceStreamError",
    "StoreIOError",
    # Addressing
    "AnchorIdBuilder",
    "CounterStructure",
    # Tree
    "DocumentTreeBuilder",
    "Node",
    "PartitionWriter",
    "iter_partitions",
    # Mapping
    "BookRegistry",
    "CrossReferenceStore",
    "DocIdMapper",
    "rebuild_all_mappings",
    "rebuild_document",
    # Markup
    "MarkupGenerator",
    # Tracking
    "Category",
    "ConsistencyReport",
    "Severity",
    "TransformerLog",
    # Validation
    "BitExtractor",
    # Config
    "ConverterConfig",
    "load_config",
]
