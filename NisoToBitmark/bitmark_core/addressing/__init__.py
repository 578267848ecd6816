"""
Addressing
==========

Hierarchical anchor id assignment.
"""

from bitmark_core.addressing.counter_structure import (
    COUNTER_ELEMENTS,
    CounterStructure,
    StructureEntry,
)
from bitmark_core.addressing.anchor_builder import (
    STRUCTURAL_TYPES,
    AnchorIdBuilder,
    extract_structural_elements,
)

__all__ = [
    "COUNTER_ELEMENTS",
    "STRUCTURAL_TYPES",
    "CounterStructure",
    "StructureEntry",
    "AnchorIdBuilder",
    "extract_structural_elements",
]
