"""
Transformer Log
===============

Structured collection of non-fatal conversion findings.

Each entry carries a severity, a category, a message key and a free-text
reference. Entries are returned alongside the converted output and feed
the consistency report reviewers inspect before sign-off.
"""

from collections import Counter
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


class Severity(Enum):
    """Severity of a log entry."""
    INFO = 1
    WARN = 2
    ERROR = 3


class Category(Enum):
    """Area a log entry belongs to."""
    LINK = 1
    XML_STRUCTURE = 2
    CONTENT = 3


_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARN: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


@dataclass
class LogEntry:
    """A single finding."""

    severity: Severity
    category: Category
    key: str
    reference: str = ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data["severity"] = self.severity.name
        data["category"] = self.category.name
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'LogEntry':
        return cls(
            severity=Severity[data["severity"]],
            category=Category[data["category"]],
            key=data["key"],
            reference=data.get("reference", ""),
        )


class TransformerLog:
    """
    Accumulates findings during one conversion.

    Findings are never raised; they are collected here and mirrored to the
    module logger.

    Example usage:
        log = TransformerLog()
        log.warn(Category.LINK, "linkUnmatchedRid", "rid: fig-3")
        log.count(key="linkUnmatchedRid")   # 1
        print(log.summary())
    """

    def __init__(self, mirror: Optional[logging.Logger] = None):
        self.entries: List[LogEntry] = []
        self._mirror = mirror or logger

    def log(self, severity: Severity, category: Category, key: str,
            reference: str = "") -> LogEntry:
        entry = LogEntry(severity, category, key, reference)
        self.entries.append(entry)
        self._mirror.log(_LEVELS[severity], f"[{category.name}] {key}: {reference}")
        return entry

    def info(self, category: Category, key: str, reference: str = "") -> LogEntry:
        return self.log(Severity.INFO, category, key, reference)

    def warn(self, category: Category, key: str, reference: str = "") -> LogEntry:
        return self.log(Severity.WARN, category, key, reference)

    def error(self, category: Category, key: str, reference: str = "") -> LogEntry:
        return self.log(Severity.ERROR, category, key, reference)

    def clear(self) -> None:
        self.entries = []

    def count(self, key: Optional[str] = None,
              severity: Optional[Severity] = None,
              category: Optional[Category] = None) -> int:
        """Count entries matching every given filter."""
        return sum(
            1 for e in self.entries
            if (key is None or e.key == key)
            and (severity is None or e.severity == severity)
            and (category is None or e.category == category)
        )

    def count_by_key(self) -> Dict[Tuple[str, str, str], int]:
        """Entry counts grouped by (severity, category, key)."""
        return dict(Counter(
            (e.severity.name, e.category.name, e.key) for e in self.entries
        ))

    def to_list(self) -> List[dict]:
        return [e.to_dict() for e in self.entries]

    def summary(self) -> str:
        """Generate a text summary."""
        lines = [f"Findings: {len(self.entries)}"]
        for severity in Severity:
            lines.append(f"  {severity.name}: {self.count(severity=severity)}")
        for (sev, cat, key), n in sorted(self.count_by_key().items()):
            lines.append(f"  - {sev}/{cat} {key}: {n}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.entries)
