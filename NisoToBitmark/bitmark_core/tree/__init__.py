"""
Document Tree
=============

Node model, streaming tree builder and the intermediate partition file.
"""

from bitmark_core.tree.node import TEXT_FRAGMENT, Node
from bitmark_core.tree.builder import (
    DOCTYPES,
    NO_CUSTOMER_ID,
    BuildStats,
    DocumentTreeBuilder,
    remap_tag,
)
from bitmark_core.tree.partitions import (
    PartitionWriter,
    iter_partitions,
    load_partition_file,
    read_resource_path,
)

__all__ = [
    "TEXT_FRAGMENT",
    "Node",
    "DOCTYPES",
    "NO_CUSTOMER_ID",
    "BuildStats",
    "DocumentTreeBuilder",
    "remap_tag",
    "PartitionWriter",
    "iter_partitions",
    "load_partition_file",
    "read_resource_path",
]
