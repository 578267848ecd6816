"""
Legend Builder
==============

Collects a title and term/definition pairs and renders them as the body
of a legend bit.
"""

from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass
class LegendBuilder:
    """
    Builder for legend bodies.

    Example usage:
        legend = LegendBuilder().set_title("Legend")
        legend.add_def_item("①", "Main switch")
        text = legend.build()
    """

    title: str = ""
    items: List[Tuple[str, str]] = field(default_factory=list)

    def set_title(self, title: str) -> 'LegendBuilder':
        self.title = title
        return self

    def add_def_item(self, term: str, definition: str) -> 'LegendBuilder':
        self.items.append((term, definition))
        return self

    def build(self) -> str:
        parts = []
        if self.title:
            parts.append(f"\n====\n[#{self.title.strip()}]\n--\n[#]\n")
        for term, definition in self.items:
            parts.append(f"\n====\n{term}\n--\n{definition}")
        # list items inside a legend are never indented
        return "".join(parts).replace("\t•", "•")
