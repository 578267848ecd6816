"""
Validation
==========

Bit extraction and comparison of generated bitmark.
"""

from bitmark_core.validation.bit_extractor import (
    EXACT,
    NO_MATCH,
    ONLY_IN_FILE2,
    TYPE_ONLY,
    Bit,
    BitComparison,
    BitDefinition,
    BitExtractor,
    ComparisonResult,
)

__all__ = [
    "EXACT",
    "NO_MATCH",
    "ONLY_IN_FILE2",
    "TYPE_ONLY",
    "Bit",
    "BitComparison",
    "BitDefinition",
    "BitExtractor",
    "ComparisonResult",
]
