"""
Document Tree Builder Tests

Run with: pytest NisoToBitmark/tests/test_builder.py -v
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from bitmark_core.errors import SourceStreamError
from bitmark_core.tree import (
    DocumentTreeBuilder,
    Node,
    PartitionWriter,
    iter_partitions,
    load_partition_file,
    read_resource_path,
    remap_tag,
)


def find(partition: Node, node_id: str) -> Node:
    node = partition.find_by_id(node_id)
    assert node is not None, f"{node_id} not found"
    return node


class TestPartitioning:
    """Tests for partition boundaries."""

    def test_front_and_sub_part(self, sample_xml):
        partitions = DocumentTreeBuilder().parse_string(sample_xml)
        assert [p.name for p in partitions] == ["front", "sub-part"]
        assert partitions[1].subpart_id == "part-1"

    def test_front_is_yielded_before_body_is_read(self, sample_xml):
        data = sample_xml.encode("utf-8")
        split = data.index(b"<body>")
        consumed = []

        def chunks():
            for part in (data[:split], data[split:]):
                consumed.append(part)
                yield part

        first = next(DocumentTreeBuilder().parse(chunks()))
        assert first.name == "front"
        assert len(consumed) == 1

    def test_documents_without_sub_parts(self):
        xml = ("<standard><front><std-meta/></front><body>"
               "<sec id='s1'><title>A</title></sec><sec id='s2'><title>B</title></sec>"
               "</body><back><ref-list/></back></standard>")
        partitions = DocumentTreeBuilder(doctype="no_sub-part").parse_string(xml)
        assert [p.name for p in partitions] == ["front", "sec", "sec", "back"]
        assert [p.subpart_id for p in partitions[1:3]] == ["s1", "s2"]

    def test_unknown_doctype_rejected(self):
        with pytest.raises(ValueError):
            DocumentTreeBuilder(doctype="iso")

    def test_small_chunks_give_same_result(self, sample_document):
        whole = DocumentTreeBuilder().parse_string(sample_document.read_text(encoding="utf-8"))
        chunked = list(DocumentTreeBuilder(chunk_size=7).parse_file(sample_document))

        def anchors(partitions):
            return [n.anchor_id for p in partitions for n in p.iter_descendants()]

        assert anchors(whole) == anchors(chunked)

    def test_malformed_xml(self):
        with pytest.raises(SourceStreamError):
            DocumentTreeBuilder().parse_string("<standard><front></standard>")


class TestAddressing:
    """Tests for anchor ids, levels and customer ids on nodes."""

    @pytest.fixture
    def body(self, sample_xml):
        return DocumentTreeBuilder().parse_string(sample_xml)[1]

    def test_anchor_ids(self, body):
        assert body.anchor_id == "sub-part_2"
        assert find(body, "sec-1").anchor_id == "sec_2-1"
        assert find(body, "fig-1").anchor_id == "fig_2-1_1"
        assert find(body, "tab-1").anchor_id == "table-wrap_2-1_1"
        assert find(body, "p-1").anchor_id is None

    def test_section_levels(self, body):
        assert body.seclevel == 1
        assert find(body, "sec-1").seclevel == 2
        assert find(body, "p-1").seclevel == 2

    def test_parent_ids(self, body):
        sec = find(body, "sec-1")
        assert sec.parent_id == "part-1"
        assert sec.parent_anchor_id == "sub-part_2"
        assert find(body, "p-1").parent_anchor_id == "sec_2-1"

    def test_text_fragment_customer_ids(self, body):
        paragraph = find(body, "p-1")
        assert [c.customer_id for c in paragraph.children] == ["p-1", "p-1-2", "p-1-3", "p-1-4", "p-1-5"]
        assert paragraph.children[0].is_text
        assert paragraph.children[0].plaintext == "Siehe"

    def test_namespaced_names(self, sample_xml):
        front, body = DocumentTreeBuilder().parse_string(sample_xml)
        title_wrap = front.find_recursively("title-wrap")
        assert title_wrap.attr("xml:lang") == "de"
        assert find(body, "fig-1").find_first_child("graphic").attr("xlink:href") == "images/fig1.png"
        assert find(body, "f-1").find_first_child("mml:math") is not None

    def test_remapped_tags(self, sample_xml):
        front = DocumentTreeBuilder().parse_string(sample_xml)[0]
        assert front.find_recursively("std_ref_dated").plaintext == "NIN 2025 de"


class TestRegistration:
    """Tests for cross-reference registration while parsing."""

    def test_mappings_registered(self, sample_xml, store):
        builder = DocumentTreeBuilder(store=store, external_id="NIN2025")
        builder.parse_string(sample_xml)

        assert builder.stats.mappings == 4
        assert builder.stats.conflicts == 0
        assert len(store) == 4
        assert store.get_anchor_id("fig-1") == "fig_2-1_1"
        assert store.get("sec-1").parent_anchor_id == "sub-part_2"
        assert store.get("sec-1").remark == "NIN2025"

    def test_placeholder_ids_not_registered(self, sample_xml, store):
        DocumentTreeBuilder(store=store, external_id="NIN2025").parse_string(sample_xml)
        assert not any(e.customer_id.startswith("no_customerId") for e in store.get_all())

    def test_reparse_is_idempotent(self, sample_xml, store, log):
        DocumentTreeBuilder(store=store, external_id="NIN2025").parse_string(sample_xml)
        builder = DocumentTreeBuilder(store=store, external_id="NIN2025", log=log)
        builder.parse_string(sample_xml)
        assert builder.stats.conflicts == 0
        assert log.count(key="DuplicateIdentifier") == 0
        assert len(store) == 4

    def test_csv_side_output(self, sample_xml, tmp_path):
        csv_dir = tmp_path / "anchors"
        DocumentTreeBuilder(csv_dir=csv_dir).parse_string(sample_xml)
        lines = (csv_dir / "anchors.csv").read_text(encoding="utf-8").splitlines()
        assert lines[0] == "anchor_id,path"
        assert '"sec_2-1","/standard/body/sub-part/sec"' in lines


class TestRemapTag:
    """Tests for synthetic tag names."""

    def test_paragraph_section(self):
        assert remap_tag("sec", {"sec-type": "paragraph"}) == "sec_type_paragraph"

    def test_revision_notes(self):
        assert remap_tag("notes", {"specific-use": "revision-desc"}) == "notes_type_revision_desc"

    def test_dated_reference(self):
        assert remap_tag("std-ref", {"type": "dated"}) == "std_ref_dated"

    def test_supersedes(self):
        assert remap_tag("std-xref", {"type": "supersedes"}) == "std_xref_supersedes"

    def test_other_tags_unchanged(self):
        assert remap_tag("sec", {}) == "sec"


class TestPartitionFile:
    """Tests for the intermediate partition file."""

    def test_write_and_replay(self, sample_xml, tmp_path):
        path = tmp_path / "work" / "NIN2025.json"
        with PartitionWriter(path, resource_path="/data/NIN2025") as writer:
            count = writer.write_all(DocumentTreeBuilder().parse_string(sample_xml))

        assert count == 2
        assert read_resource_path(path) == "/data/NIN2025"
        replayed = list(iter_partitions(path))
        assert [p.name for p in replayed] == ["front", "sub-part"]
        assert find(replayed[1], "fig-1").anchor_id == "fig_2-1_1"

    def test_file_is_plain_json(self, sample_xml, tmp_path):
        path = tmp_path / "NIN2025.json"
        with PartitionWriter(path, resource_path="/data") as writer:
            writer.write_all(DocumentTreeBuilder().parse_string(sample_xml))

        resource_path, partitions = load_partition_file(path)
        assert resource_path == "/data"
        assert len(partitions) == 2

    def test_node_round_trip_keeps_ids(self, sample_xml):
        body = DocumentTreeBuilder().parse_string(sample_xml)[1]
        restored = Node.from_dict(body.to_dict())
        assert restored.uuid == body.uuid
        assert restored.anchor_id == body.anchor_id
        assert len(list(restored.iter_descendants())) == len(list(body.iter_descendants()))
