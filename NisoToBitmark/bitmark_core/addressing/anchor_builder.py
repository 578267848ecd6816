"""
Anchor Id Builder
=================

Routes element paths to the counter structure. Elements whose tag is a
structural type open a new level; countable elements increment a counter
in the scope of their enclosing structural path; everything else gets no
anchor id.
"""

from typing import List, NamedTuple, Optional

from bitmark_core.addressing.counter_structure import COUNTER_ELEMENTS, CounterStructure

STRUCTURAL_TYPES = (
    "front",
    "back",
    "sub-part",
    "sec",
    "sec_type_paragraph",
)


class StructuralElements(NamedTuple):
    parts: List[str]
    structural_path: str
    ending_part: Optional[str]


def extract_structural_elements(path: str) -> StructuralElements:
    """
    Reduce an element path to its structural part.

    Example:
        >>> extract_structural_elements("/standard/body/sec/p/table-wrap")
        StructuralElements(parts=['sec'], structural_path='sec/', ending_part='table-wrap')
    """
    parts = [part for part in path.split("/") if part]
    structural = [part for part in parts if part in STRUCTURAL_TYPES]
    return StructuralElements(
        parts=structural,
        structural_path="".join(f"{part}/" for part in structural),
        ending_part=parts[-1] if parts else None,
    )


class AnchorIdBuilder:
    """
    Assigns anchor ids while a document is parsed.

    One instance per document; the counter state never outlives a
    single conversion.

    Example usage:
        builder = AnchorIdBuilder()
        builder.update_structure("/standard/body/sec", "sec")          # 'sec_1'
        builder.update_structure("/standard/body/sec/table-wrap",
                                 "table-wrap")                         # 'table-wrap_1_1'
        builder.update_structure("/standard/body/sec/p", "p")          # None
    """

    def __init__(self):
        self.counter_structure = CounterStructure()

    @staticmethod
    def is_structural(tag_name: Optional[str]) -> bool:
        return tag_name in STRUCTURAL_TYPES

    @staticmethod
    def is_counter_element(tag_name: Optional[str]) -> bool:
        return tag_name in COUNTER_ELEMENTS

    def update_structure(self, path: str, tag_name: str) -> Optional[str]:
        """
        Compute the anchor id for the element at ``path``.

        Args:
            path: Slash separated element path ending with the element
            tag_name: Tag used as address prefix

        Returns:
            Address string, ``""`` for a countable element outside any
            structural scope, or None for elements that are not addressed
        """
        elements = extract_structural_elements(path)

        if self.is_counter_element(elements.ending_part):
            return self.counter_structure.enter_counter(elements.structural_path, tag_name)
        if self.is_structural(elements.ending_part):
            return self.counter_structure.enter_level(elements.structural_path, tag_name, path)
        return None
