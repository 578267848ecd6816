"""
Counter Structure
=================

Hierarchical counter bookkeeping behind anchor ids.

The structure is an append-only log of entries, one per structural
element encountered. Each entry records its structural path, its depth,
up to ten level counters and a counter per countable element type.
Anchor ids are rendered from an entry as::

    <tag>_<level1>-<level2>-...[_<counter>]

e.g. ``sec_2-1`` for the first section below the second top-level
section, or ``table-wrap_2-1_3`` for the third table inside it.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

MAX_LEVELS = 10

# Element types that carry a running counter within their structural scope
COUNTER_ELEMENTS = (
    "table-wrap",
    "fig",
    "fig-group",
    "disp-formula",
    "title-wrap",
    "ref-list",
    "legend",
    "list",
    "ref",
    "glossary",
    "non-normative-note",
    "normative-note",
    "term-display",
    "notes-group",
)


def _new_counters() -> Dict[str, int]:
    return {name: 0 for name in COUNTER_ELEMENTS}


@dataclass
class StructureEntry:
    """One occurrence of a structural element."""

    index: int
    structural_path: str
    depth: int
    original_path: Optional[str] = None
    levels: List[int] = field(default_factory=lambda: [0] * MAX_LEVELS)
    element_counter: Dict[str, int] = field(default_factory=_new_counters)

    def level(self, depth: int) -> int:
        """Level counter at a 1-based depth (0 when out of range)."""
        if 1 <= depth <= MAX_LEVELS:
            return self.levels[depth - 1]
        return 0

    def set_level(self, depth: int, value: int) -> None:
        if 1 <= depth <= MAX_LEVELS:
            self.levels[depth - 1] = value


class CounterStructure:
    """
    Deterministic level and counter tracker.

    Example usage:
        structure = CounterStructure()
        structure.enter_level("sec/", "sec")             # 'sec_1'
        structure.enter_counter("sec/", "table-wrap")    # 'table-wrap_1_1'
        structure.enter_counter("sec/", "table-wrap")    # 'table-wrap_1_2'
        structure.enter_level("sec/sec/", "sec")         # 'sec_1-1'
    """

    def __init__(self):
        self.entries: List[StructureEntry] = []
        # Most recent entry per structural path and per depth
        self._last_by_path: Dict[str, StructureEntry] = {}
        self._last_by_depth: Dict[int, StructureEntry] = {}

    @staticmethod
    def calculate_depth(structural_path: str) -> int:
        """Number of non-empty segments in a structural path."""
        return len([part for part in structural_path.split("/") if part])

    def find_last_entry_by_path(self, structural_path: str) -> Optional[StructureEntry]:
        return self._last_by_path.get(structural_path)

    def find_last_entry_by_depth(self, depth: int) -> Optional[StructureEntry]:
        return self._last_by_depth.get(depth)

    def enter_level(self, structural_path: str, tag_name: str,
                    original_path: Optional[str] = None) -> str:
        """
        Register a level-defining element and return its address.

        The parent entry is the most recent entry when it has the same or
        a smaller depth. When the most recent entry is deeper, the latest
        entry at the new depth is used, walking upward one depth at a time
        until an entry is found.

        Args:
            structural_path: Structural path ending with the element itself
            tag_name: Tag used as the address prefix
            original_path: Full element path, kept for debugging

        Returns:
            Formatted address, e.g. ``sec_1-2``
        """
        new_depth = self.calculate_depth(structural_path)
        parent: Optional[StructureEntry] = None

        if self.entries:
            last = self.entries[-1]
            if new_depth < last.depth:
                depth = new_depth
                parent = self.find_last_entry_by_depth(depth)
                while parent is None and depth > 0:
                    depth -= 1
                    parent = self.find_last_entry_by_depth(depth)
            else:
                parent = last

        entry = StructureEntry(
            index=len(self.entries),
            structural_path=structural_path,
            depth=new_depth,
            original_path=original_path,
            levels=list(parent.levels) if parent else [0] * MAX_LEVELS,
        )

        if parent is not None and new_depth > parent.depth:
            for depth in range(parent.depth + 1, new_depth + 1):
                entry.set_level(depth, 1)
        elif parent is not None and parent.depth == new_depth:
            entry.set_level(new_depth, parent.level(new_depth) + 1)
        else:
            entry.set_level(new_depth, 1)

        self._append(entry)
        return self.format_address(entry, tag_name)

    def enter_counter(self, structural_path: str, tag_name: str) -> str:
        """
        Increment the counter of ``tag_name`` in the scope of a structural path.

        Returns:
            Formatted address, or an empty string when the structural path
            has not been entered yet
        """
        entry = self.find_last_entry_by_path(structural_path)
        if entry is None:
            logger.debug(f"No structure entry for path '{structural_path}' ({tag_name})")
            return ""

        if tag_name in entry.element_counter:
            entry.element_counter[tag_name] += 1
        return self.format_address(entry, tag_name)

    @staticmethod
    def format_address(entry: StructureEntry, tag_name: str) -> str:
        """Render ``tag_`` + non-zero leading levels + optional counter suffix."""
        levels = []
        for value in entry.levels:
            if value == 0:
                break
            levels.append(str(value))

        address = f"{tag_name}_" + "-".join(levels)
        count = entry.element_counter.get(tag_name, 0)
        if count:
            address += f"_{count}"
        return address

    def _append(self, entry: StructureEntry) -> None:
        self.entries.append(entry)
        self._last_by_path[entry.structural_path] = entry
        self._last_by_depth[entry.depth] = entry

    def dump(self) -> List[dict]:
        """Entries as plain dictionaries (debugging aid)."""
        return [
            {
                "index": e.index,
                "structuralPath": e.structural_path,
                "originalPath": e.original_path,
                "depth": e.depth,
                "levels": [v for v in e.levels if v],
                "counters": {k: v for k, v in e.element_counter.items() if v},
            }
            for e in self.entries
        ]
