"""
Conversion Tracking
===================

Structured finding log and the consistency report built from it.
"""

from bitmark_core.tracking.transformer_log import (
    Category,
    LogEntry,
    Severity,
    TransformerLog,
)
from bitmark_core.tracking.consistency_report import (
    ConsistencyReport,
    read_report_entries,
)

__all__ = [
    "Category",
    "LogEntry",
    "Severity",
    "TransformerLog",
    "ConsistencyReport",
    "read_report_entries",
]
