"""
Bit Extractor
=============

Splits generated bitmark into bits and compares two outputs.

Each bit starts at a ``[.type]`` tag and runs to the next one. Per bit
the extractor collects:
- anchors ``[▼...]``
- hierarchies ``[#...]`` (chapter levels)
- titles ``[%...]``

Two outputs are compared bit by bit. The first file leads; a bit of the
first file matches a bit of the second file when type and anchors are
equal (EXACT), otherwise when the type is equal (TYPE_ONLY). Hierarchies
and titles are reported for information only.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union
import csv
import io
import logging
import re

logger = logging.getLogger(__name__)

BIT_START_RE = re.compile(r"\[\..*?\]")
ANCHOR_RE = re.compile(r"\[▼(.*?)\]")
HIERARCHY_RE = re.compile(r"\[(#{1,})(.*?)\]")
TITLE_RE = re.compile(r"\[%(.*?)\]")

CSV_HEADER = ["Bit-Type", "Anchors", "Hierarchies", "Titles"]

EXACT = "EXACT"
TYPE_ONLY = "TYPE_ONLY"
NO_MATCH = "NO_MATCH"
ONLY_IN_FILE2 = "ONLY_IN_FILE2"

_MATCH_SYMBOLS = {EXACT: "✓✓", TYPE_ONLY: "~~", NO_MATCH: "XX"}


@dataclass
class BitDefinition:
    """Identifying parts of one bit."""

    bit_type: str = ""
    anchors: List[str] = field(default_factory=list)
    hierarchies: List[str] = field(default_factory=list)
    titles: List[str] = field(default_factory=list)

    def to_row(self) -> List[str]:
        return [self.bit_type, ";".join(self.anchors), ";".join(self.hierarchies), ";".join(self.titles)]


@dataclass
class Bit:
    start: int
    end: int
    content: str
    definition: BitDefinition


@dataclass
class BitComparison:
    index1: int
    bit1: Optional[BitDefinition]
    index2: int
    bit2: Optional[BitDefinition]
    match_type: str
    differences: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class ComparisonResult:
    comparisons: List[BitComparison] = field(default_factory=list)
    only_in_file2: List[BitComparison] = field(default_factory=list)
    statistics: Dict[str, int] = field(default_factory=dict)


class BitExtractor:
    """
    Bit extraction and comparison of bitmark files.

    Example usage:
        extractor = BitExtractor()
        extractor.extract_from_file(Path("NIN2025.bitmark"))       # writes NIN2025.extract
        result = extractor.compare_files(Path("old.bitmark"), Path("new.bitmark"))
        print(result.statistics)
    """

    # ====================================================================
    # Extraction
    # ====================================================================

    def extract_definitions(self, content: str) -> BitDefinition:
        bit_type = BIT_START_RE.match(content)
        return BitDefinition(
            bit_type=bit_type.group(0) if bit_type else "",
            anchors=[m.group(0) for m in ANCHOR_RE.finditer(content)],
            hierarchies=[m.group(0) for m in HIERARCHY_RE.finditer(content)],
            titles=[m.group(0) for m in TITLE_RE.finditer(content)],
        )

    def parse_bits(self, content: str) -> List[Bit]:
        """Split bitmark text at every bit start."""
        starts = [m.start() for m in BIT_START_RE.finditer(content)]
        bits = []
        for i, start in enumerate(starts):
            end = starts[i + 1] if i + 1 < len(starts) else len(content)
            text = content[start:end]
            bits.append(Bit(start, end, text, self.extract_definitions(text)))
        return bits

    def to_csv(self, bits: List[Bit]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for bit in bits:
            writer.writerow(bit.definition.to_row())
        return buffer.getvalue()

    def extract_from_file(self, input_path: Union[str, Path],
                          output_path: Optional[Union[str, Path]] = None) -> Dict[str, object]:
        """
        Write the CSV extract of a bitmark file.

        Args:
            input_path: Bitmark file
            output_path: CSV target, defaults to ``<input stem>.extract`` beside the input

        Returns:
            Dictionary with bit counts and the output path

        Raises:
            FileNotFoundError: If the input file does not exist
        """
        input_path = Path(input_path)
        if not input_path.is_file():
            raise FileNotFoundError(f"Input file not found: {input_path}")

        bits = self.parse_bits(input_path.read_text(encoding="utf-8"))
        output_path = Path(output_path) if output_path else input_path.with_suffix(".extract")
        output_path.write_text(self.to_csv(bits), encoding="utf-8")

        stats = {
            "total_bits": len(bits),
            "output_file": str(output_path),
            "bits_with_anchors": sum(1 for b in bits if b.definition.anchors),
            "bits_with_hierarchies": sum(1 for b in bits if b.definition.hierarchies),
            "bits_with_titles": sum(1 for b in bits if b.definition.titles),
        }
        logger.info(f"Extracted {len(bits)} bits from {input_path} to {output_path}")
        return stats

    # ====================================================================
    # Comparison
    # ====================================================================

    @staticmethod
    def find_differences(def1: BitDefinition, def2: BitDefinition) -> List[Dict[str, str]]:
        differences = []
        for name in ("hierarchies", "titles"):
            value1 = getattr(def1, name)
            value2 = getattr(def2, name)
            if value1 != value2:
                differences.append({"field": name, "value1": ";".join(value1),
                                    "value2": ";".join(value2)})
        return differences

    def compare_bits(self, bits1: List[Bit], bits2: List[Bit]) -> ComparisonResult:
        """Match every bit of the first list against the unused bits of the second."""
        by_key: Dict[str, List[int]] = {}
        for index, bit in enumerate(bits2):
            key = f"{bit.definition.bit_type}|{';'.join(bit.definition.anchors)}"
            by_key.setdefault(key, []).append(index)

        used = set()
        result = ComparisonResult()
        stats = {
            "total_bits1": len(bits1),
            "total_bits2": len(bits2),
            "exact_matches": 0,
            "type_only_matches": 0,
            "no_matches": 0,
            "only_in_file1": 0,
            "only_in_file2": 0,
        }

        for index1, bit1 in enumerate(bits1):
            def1 = bit1.definition
            key = f"{def1.bit_type}|{';'.join(def1.anchors)}"
            match_index = next((i for i in by_key.get(key, [])
                                if i not in used and bits2[i].definition.anchors == def1.anchors), -1)
            match_type = EXACT if match_index >= 0 else NO_MATCH

            if match_index < 0:
                match_index = next((i for i, b in enumerate(bits2)
                                    if i not in used and b.definition.bit_type == def1.bit_type), -1)
                if match_index >= 0:
                    match_type = TYPE_ONLY

            def2 = bits2[match_index].definition if match_index >= 0 else None
            if match_index >= 0:
                used.add(match_index)

            result.comparisons.append(BitComparison(
                index1=index1,
                bit1=def1,
                index2=match_index,
                bit2=def2,
                match_type=match_type,
                differences=self.find_differences(def1, def2) if def2 else [],
            ))
            stats[{EXACT: "exact_matches", TYPE_ONLY: "type_only_matches",
                   NO_MATCH: "no_matches"}[match_type]] += 1

        for index2, bit2 in enumerate(bits2):
            if index2 not in used:
                result.only_in_file2.append(BitComparison(
                    index1=-1, bit1=None, index2=index2, bit2=bit2.definition,
                    match_type=ONLY_IN_FILE2))
        stats["only_in_file2"] = len(result.only_in_file2)
        stats["only_in_file1"] = stats["no_matches"]
        result.statistics = stats
        return result

    def compare_files(self, file1: Union[str, Path], file2: Union[str, Path],
                      output_path: Optional[Union[str, Path]] = None) -> ComparisonResult:
        """
        Compare two bitmark files and write a text report.

        The report defaults to ``<stem1>_vs_<stem2>.comparison`` beside
        the first file.

        Raises:
            FileNotFoundError: If either file does not exist
        """
        file1 = Path(file1)
        file2 = Path(file2)
        for path in (file1, file2):
            if not path.is_file():
                raise FileNotFoundError(f"File not found: {path}")

        bits1 = self.parse_bits(file1.read_text(encoding="utf-8"))
        bits2 = self.parse_bits(file2.read_text(encoding="utf-8"))
        result = self.compare_bits(bits1, bits2)

        if output_path is None:
            output_path = file1.parent / f"{file1.stem}_vs_{file2.stem}.comparison"
        Path(output_path).write_text(self.comparison_report(result, file1, file2), encoding="utf-8")
        logger.info(f"Compared {len(bits1)} / {len(bits2)} bits, report: {output_path}")
        return result

    @staticmethod
    def _info_line(label: str, values1: List[str], values2: Optional[List[str]]) -> Optional[str]:
        if not values1 and not values2:
            return None
        joined1 = ";".join(values1) or "(none)"
        joined2 = (";".join(values2) if values2 else "") or "(none)"
        return f'    └─ {label}: "{joined1}" <-> "{joined2}"'

    def comparison_report(self, result: ComparisonResult, file1: Path, file2: Path) -> str:
        stats = result.statistics
        lines = [
            "# Bit Comparison Report",
            f"Generated on: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            f"File 1 (leading): {Path(file1).name}",
            f"File 2: {Path(file2).name}",
            "",
            "## Statistics",
            f"- Bits in File 1: {stats['total_bits1']}",
            f"- Bits in File 2: {stats['total_bits2']}",
            f"- Exact Matches (Type + Anchor): {stats['exact_matches']}",
            f"- Type Only Matches: {stats['type_only_matches']}",
            f"- No Matches: {stats['no_matches']}",
            f"- Only in File 2: {stats['only_in_file2']}",
            "",
            "## Detailed Comparison",
            "Format: [Index1] [MatchType] [Index2] | BitType1 -> BitType2",
            "Note: Hierarchies and Titles are shown for info only",
            "",
        ]

        for comp in result.comparisons:
            index2 = f"{comp.index2:3d}" if comp.index2 >= 0 else "---"
            type2 = comp.bit2.bit_type if comp.bit2 else "(none)"
            lines.append(f"[{comp.index1:3d}] {_MATCH_SYMBOLS[comp.match_type]} [{index2}] | "
                         f"{comp.bit1.bit_type or '(none)'} -> {type2}")
            for diff in comp.differences:
                lines.append(f'    └─ Info {diff["field"]}: "{diff["value1"]}" != "{diff["value2"]}"')
            for label, name in (("Anchors", "anchors"), ("Hierarchies (Info)", "hierarchies"),
                                ("Titles (Info)", "titles")):
                line = self._info_line(label, getattr(comp.bit1, name),
                                       getattr(comp.bit2, name) if comp.bit2 else None)
                if line:
                    lines.append(line)

        if result.only_in_file2:
            lines.append("")
            lines.append(f"## Only in File 2 ({len(result.only_in_file2)})")
            for item in result.only_in_file2:
                lines.append(f"[---] ++ [{item.index2:3d}] | {item.bit2.bit_type}")
                if item.bit2.anchors:
                    lines.append(f'    └─ Anchors: "{";".join(item.bit2.anchors)}"')

        lines.append("")
        lines.append("## CSV Export")
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(["Index1", "MatchType", "Index2", "BitType1", "BitType2",
                         "Anchors1", "Anchors2", "Hierarchies1", "Hierarchies2",
                         "Titles1", "Titles2"])
        for comp in result.comparisons:
            row2 = comp.bit2.to_row() if comp.bit2 else ["", "", "", ""]
            row1 = comp.bit1.to_row()
            writer.writerow([comp.index1, comp.match_type,
                             comp.index2 if comp.index2 >= 0 else "",
                             row1[0], row2[0], row1[1], row2[1], row1[2], row2[2], row1[3], row2[3]])
        lines.append(buffer.getvalue().rstrip("\n"))
        return "\n".join(lines) + "\n"
