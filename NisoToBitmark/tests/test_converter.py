"""
Command Line Tests for bitmark_converter

Run with: pytest NisoToBitmark/tests/test_converter.py -v
"""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from bitmark_converter import main
from bitmark_core.mapping import DOC_ID_MAPPING_FILENAME, MAPPING_FILENAME, CrossReferenceStore
from bitmark_core.tracking import read_report_entries


@pytest.fixture
def workspace(tmp_path, monkeypatch, sample_document):
    """Run the converter from inside the temporary directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def registry_file(workspace):
    path = workspace / "book_registry.json"
    path.write_text(json.dumps({"NIN2025": {"parse_type": "nin", "lang": "de",
                                            "gmbdocid": "nin2025-de"}}), encoding="utf-8")
    return path


def convert(*extra: str) -> int:
    return main(["convert", "documents/NIN2025", "--out", "out", "--mapping-dir", "mappings", *extra])


class TestConvert:
    """Tests for the convert command."""

    def test_outputs_written(self, workspace):
        """Convert should write the partition file, the bitmark and the report."""
        assert convert("--skip-tables") == 0

        out = workspace / "out"
        assert (out / "NIN2025.json").is_file()
        bitmark = (out / "NIN2025.bitmark").read_text(encoding="utf-8")
        assert bitmark.startswith("[.book]")
        assert "[▼sec_2-1]" in bitmark
        assert "|►fig_2-1_1|" in bitmark

    def test_report_lists_findings(self, workspace):
        convert("--skip-tables")
        entries = read_report_entries(workspace / "out" / "NIN2025_consistency.xlsx")
        assert [e["key"] for e in entries if e["key"] == "linkUnmatchedRid"] == ["linkUnmatchedRid"]

    def test_mappings_persisted(self, workspace):
        convert("--skip-tables")
        assert (workspace / "mappings" / MAPPING_FILENAME).is_file()
        store = CrossReferenceStore(workspace / "mappings")
        assert store.get("sec-1").remark == "NIN2025"

    def test_reconvert_replaces_mappings(self, workspace):
        convert("--skip-tables")
        convert("--skip-tables")
        assert len(CrossReferenceStore(workspace / "mappings")) == 4

    def test_table_pages_queued(self, workspace):
        assert convert() == 0
        pages = list((workspace / "out" / "images").glob("tab_1_*.html"))
        assert len(pages) == 1

    def test_with_registry(self, workspace, registry_file):
        assert convert("--skip-tables", "--registry", str(registry_file), "--lang", "fr") == 0
        bitmark = (workspace / "out" / "NIN2025.bitmark").read_text(encoding="utf-8")
        assert "[@language:fr]" in bitmark

    def test_missing_input(self, workspace):
        assert main(["convert", "documents/UNKNOWN", "--out", "out"]) == 2

    def test_missing_metadata(self, workspace, make_document):
        doc = make_document(workspace / "other", "X", "<standard/>")
        (doc.parent / "metadata.xml").unlink()
        assert main(["convert", str(doc), "--out", "out", "--mapping-dir", "mappings"]) == 1

    def test_unknown_document_in_registry(self, workspace, registry_file, make_document):
        make_document(workspace / "documents", "SNG1", "<standard/>")
        assert main(["convert", "documents/SNG1", "--out", "out", "--mapping-dir", "mappings",
                     "--registry", str(registry_file)]) == 1

    def test_missing_config(self, workspace):
        assert convert("--config", "missing.yaml") == 2


class TestRebuild:
    """Tests for the maintenance commands."""

    def test_rebuild_mappings(self, workspace, registry_file):
        code = main(["rebuild-mappings", "documents", "--registry", str(registry_file),
                     "--mapping-dir", "mappings"])
        assert code == 0
        assert len(CrossReferenceStore(workspace / "mappings")) == 4
        doc_ids = json.loads((workspace / "mappings" / DOC_ID_MAPPING_FILENAME).read_text(encoding="utf-8"))
        assert doc_ids == {"COO.6505.1": "nin2025-de", "COO.6505.2": "nin2025-de"}

    def test_rebuild_requires_registry(self, workspace):
        assert main(["rebuild-mappings", "documents", "--mapping-dir", "mappings"]) == 2

    def test_rebuild_doc(self, workspace, registry_file):
        code = main(["rebuild-doc", "documents/NIN2025", "--registry", str(registry_file),
                     "--mapping-dir", "mappings", "--base-dir", "documents"])
        assert code == 0
        assert CrossReferenceStore(workspace / "mappings").get_anchor_id("tab-1") == "table-wrap_2-1_1"
        assert (workspace / "mappings" / DOC_ID_MAPPING_FILENAME).is_file()


class TestValidationCommands:
    """Tests for compare and extract."""

    def test_extract(self, workspace):
        convert("--skip-tables")
        assert main(["extract", "out/NIN2025.bitmark"]) == 0
        assert (workspace / "out" / "NIN2025.extract").is_file()

    def test_compare(self, workspace):
        convert("--skip-tables")
        bitmark = workspace / "out" / "NIN2025.bitmark"
        copy = workspace / "copy.bitmark"
        copy.write_text(bitmark.read_text(encoding="utf-8"), encoding="utf-8")

        assert main(["compare", str(bitmark), str(copy), "--out", "report.comparison"]) == 0
        assert "- No Matches: 0" in (workspace / "report.comparison").read_text(encoding="utf-8")

    def test_compare_missing_file(self, workspace):
        assert main(["compare", "a.bitmark", "b.bitmark"]) == 2
