"""
Anchor Id Assignment Tests

Run with: pytest NisoToBitmark/tests/test_addressing.py -v
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from bitmark_core.addressing import (
    AnchorIdBuilder,
    CounterStructure,
    extract_structural_elements,
)


class TestCounterStructure:
    """Tests for level and counter bookkeeping."""

    def test_first_section_is_level_one(self):
        structure = CounterStructure()
        assert structure.enter_level("sec/", "sec") == "sec_1"

    def test_sibling_sections_increment(self):
        structure = CounterStructure()
        structure.enter_level("sec/", "sec")
        assert structure.enter_level("sec/", "sec") == "sec_2"

    def test_nested_section_starts_at_one(self):
        structure = CounterStructure()
        structure.enter_level("sec/", "sec")
        assert structure.enter_level("sec/sec/", "sec") == "sec_1-1"
        assert structure.enter_level("sec/sec/", "sec") == "sec_1-2"

    def test_return_to_upper_level_continues_numbering(self):
        structure = CounterStructure()
        structure.enter_level("sec/", "sec")
        structure.enter_level("sec/sec/", "sec")
        structure.enter_level("sec/sec/sec/", "sec")
        assert structure.enter_level("sec/", "sec") == "sec_2"
        assert structure.enter_level("sec/sec/", "sec") == "sec_2-1"

    def test_skipped_depth_fills_intermediate_levels(self):
        structure = CounterStructure()
        structure.enter_level("sec/", "sec")
        assert structure.enter_level("sec/sec/sec/", "sec") == "sec_1-1-1"

    def test_counters_are_scoped_to_their_section(self):
        structure = CounterStructure()
        structure.enter_level("sec/", "sec")
        assert structure.enter_counter("sec/", "table-wrap") == "table-wrap_1_1"
        assert structure.enter_counter("sec/", "table-wrap") == "table-wrap_1_2"
        assert structure.enter_counter("sec/", "fig") == "fig_1_1"

        structure.enter_level("sec/sec/", "sec")
        assert structure.enter_counter("sec/sec/", "table-wrap") == "table-wrap_1-1_1"

    def test_counter_outside_any_scope_is_empty(self):
        structure = CounterStructure()
        assert structure.enter_counter("back/", "fig") == ""

    def test_dump_lists_entries(self):
        structure = CounterStructure()
        structure.enter_level("sec/", "sec")
        structure.enter_counter("sec/", "fig")
        dump = structure.dump()
        assert len(dump) == 1
        assert dump[0]["levels"] == [1]
        assert dump[0]["counters"] == {"fig": 1}


class TestStructuralElements:
    """Tests for path reduction."""

    def test_extracts_structural_path(self):
        elements = extract_structural_elements("/standard/body/sec/p/table-wrap")
        assert elements.parts == ["sec"]
        assert elements.structural_path == "sec/"
        assert elements.ending_part == "table-wrap"

    def test_empty_path(self):
        elements = extract_structural_elements("")
        assert elements.parts == []
        assert elements.ending_part is None


class TestAnchorIdBuilder:
    """Tests for element path routing."""

    def test_section_and_table(self):
        builder = AnchorIdBuilder()
        assert builder.update_structure("/standard/body/sec", "sec") == "sec_1"
        assert builder.update_structure("/standard/body/sec/table-wrap", "table-wrap") == "table-wrap_1_1"

    def test_plain_element_has_no_anchor(self):
        builder = AnchorIdBuilder()
        builder.update_structure("/standard/body/sec", "sec")
        assert builder.update_structure("/standard/body/sec/p", "p") is None

    def test_countable_element_without_scope(self):
        builder = AnchorIdBuilder()
        assert builder.update_structure("/standard/body/table-wrap", "table-wrap") == ""

    def test_sub_part_after_front_matter(self):
        builder = AnchorIdBuilder()
        assert builder.update_structure("/standard/front", "front") == "front_1"
        assert builder.update_structure("/standard/body/sub-part", "sub-part") == "sub-part_2"
        assert builder.update_structure("/standard/body/sub-part/sec", "sec") == "sec_2-1"

    def test_paragraph_section_is_structural(self):
        builder = AnchorIdBuilder()
        builder.update_structure("/standard/body/sec", "sec")
        assert builder.update_structure(
            "/standard/body/sec/sec_type_paragraph", "sec_type_paragraph") == "sec_type_paragraph_1-1"

    def test_deterministic_across_instances(self):
        paths = [
            ("/standard/body/sec", "sec"),
            ("/standard/body/sec/fig", "fig"),
            ("/standard/body/sec/sec", "sec"),
            ("/standard/body/sec/sec/fig", "fig"),
            ("/standard/body/sec", "sec"),
        ]
        builder1 = AnchorIdBuilder()
        builder2 = AnchorIdBuilder()
        first = [builder1.update_structure(p, t) for p, t in paths]
        second = [builder2.update_structure(p, t) for p, t in paths]
        assert first == second
        assert first == ["sec_1", "fig_1_1", "sec_1-1", "fig_1-1_1", "sec_2"]
