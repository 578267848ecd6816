"""
Shared fixtures for the converter tests.

Run with: pytest NisoToBitmark/tests -v
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from bitmark_core.mapping import CrossReferenceStore
from bitmark_core.tracking import TransformerLog


SAMPLE_STANDARD = """<?xml version="1.0" encoding="UTF-8"?>
<standard xmlns:xlink="http://www.w3.org/1999/xlink" xmlns:mml="http://www.w3.org/1998/Math/MathML">
  <front>
    <std-meta>
      <title-wrap xml:lang="de"><main>Niederspannungs-Installationsnorm</main></title-wrap>
      <std-ref type="dated">NIN 2025 de</std-ref>
    </std-meta>
  </front>
  <body>
    <sub-part id="part-1">
      <label>1</label>
      <title>Allgemeines</title>
      <sec id="sec-1">
        <label>1.1</label>
        <title>Geltungsbereich</title>
        <p id="p-1">Siehe <xref ref-type="fig" rid="fig-1">Bild 1</xref> und <xref ref-type="table" rid="tab-9">Tabelle 9</xref>.</p>
        <p id="p-2">Vorher <fig id="fig-1"><label>Bild 1</label><caption><title>Übersicht</title></caption><graphic xlink:href="images/fig1.png"/></fig> nachher</p>
        <table-wrap id="tab-1">
          <label>Tabelle 1</label>
          <caption><title>Werte</title></caption>
          <table><tbody><tr><td>A</td><td>B</td></tr></tbody></table>
        </table-wrap>
        <p id="p-3">Es gilt <inline-formula id="f-1"><mml:math><mml:mi>U</mml:mi><mml:mo>=</mml:mo><mml:mi>R</mml:mi></mml:math></inline-formula></p>
      </sec>
    </sub-part>
  </body>
</standard>
"""

SAMPLE_METADATA = """<?xml version="1.0" encoding="UTF-8"?>
<metadata>
  <name>{name}</name>
  <items>
{items}
  </items>
</metadata>
"""


def write_document(base_dir: Path, name: str, content: str, item_ids=()) -> Path:
    """Create ``base_dir/name`` with content.xml and metadata.xml; returns the content.xml path."""
    doc_dir = base_dir / name
    doc_dir.mkdir(parents=True, exist_ok=True)
    items = "\n".join(f'    <item xpublisher-inline-content-id="{item_id}"/>' for item_id in item_ids)
    (doc_dir / "metadata.xml").write_text(SAMPLE_METADATA.format(name=name, items=items),
                                          encoding="utf-8")
    content_path = doc_dir / "content.xml"
    content_path.write_text(content, encoding="utf-8")
    return content_path


@pytest.fixture
def log():
    """Fresh transformer log."""
    return TransformerLog()


@pytest.fixture
def mapping_dir(tmp_path):
    return tmp_path / "mappings"


@pytest.fixture
def store(mapping_dir, log):
    """Empty cross-reference store in a temporary directory."""
    return CrossReferenceStore(mapping_dir, lock_timeout=2.0, log=log)


@pytest.fixture
def sample_document(tmp_path):
    """Document directory holding the sample standard."""
    return write_document(tmp_path / "documents", "NIN2025", SAMPLE_STANDARD,
                          item_ids=("COO.6505.1", "COO.6505.2"))


@pytest.fixture
def sample_xml():
    return SAMPLE_STANDARD


@pytest.fixture
def make_document():
    """Factory writing a document directory (see :func:`write_document`)."""
    return write_document
