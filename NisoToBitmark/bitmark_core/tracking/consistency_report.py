"""
Consistency Report
==================

Excel workbook derived from a :class:`TransformerLog`. Reviewers inspect
it before promoting converted output; an empty report is not required,
but its contents gate manual sign-off.

Sheets:
    Summary  - document info and counts per severity, category and key
    Entries  - one row per finding, severity cell colour coded
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional
import logging

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from bitmark_core.tracking.transformer_log import Severity, TransformerLog

logger = logging.getLogger(__name__)

_SEVERITY_STYLES = {
    Severity.INFO: ("C6EFCE", "006100"),
    Severity.WARN: ("FFEB9C", "9C6500"),
    Severity.ERROR: ("FFC7CE", "9C0006"),
}


class ConsistencyReport:
    """
    Writes the consistency workbook for one converted document.

    Example usage:
        report = ConsistencyReport(log, document="NIN2025_XML",
                                   output_file="NIN2025.bitmark")
        report.save(Path("out/NIN2025_consistency.xlsx"))
    """

    SUMMARY_SHEET = "Summary"
    ENTRIES_SHEET = "Entries"
    ENTRY_HEADERS = ["#", "Severity", "Category", "Message Key", "Reference"]
    SUMMARY_HEADERS = ["Severity", "Category", "Message Key", "Count"]

    def __init__(self, log: TransformerLog, document: str = "",
                 output_file: str = "", generated_at: Optional[datetime] = None):
        self.log = log
        self.document = document
        self.output_file = output_file
        self.generated_at = generated_at or datetime.now()

    def build(self) -> openpyxl.Workbook:
        """Create the workbook in memory."""
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = self.SUMMARY_SHEET
        self._fill_summary(ws)

        entries = wb.create_sheet(self.ENTRIES_SHEET)
        self._fill_entries(entries)
        return wb

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        wb = self.build()
        wb.save(path)
        logger.info(f"Saved consistency report to {path} ({len(self.log)} entries)")
        return path

    def _fill_summary(self, ws) -> None:
        ws.append(["Document", self.document])
        ws.append(["Output", self.output_file])
        ws.append(["Generated", self.generated_at.strftime("%Y-%m-%d %H:%M:%S")])
        ws.append(["Total findings", len(self.log)])
        for severity in Severity:
            ws.append([severity.name, self.log.count(severity=severity)])
        for row in ws.iter_rows(min_row=1, max_row=ws.max_row, max_col=1):
            row[0].font = Font(bold=True)

        ws.append([])
        ws.append(self.SUMMARY_HEADERS)
        self._format_header_row(ws, ws.max_row)

        for (severity, category, key), count in sorted(self.log.count_by_key().items()):
            ws.append([severity, category, key, count])
            self._format_severity_cell(ws.cell(ws.max_row, 1), Severity[severity])

        self._auto_size_columns(ws)

    def _fill_entries(self, ws) -> None:
        ws.append(self.ENTRY_HEADERS)
        self._format_header_row(ws, 1)

        for index, entry in enumerate(self.log.entries, start=1):
            ws.append([index, entry.severity.name, entry.category.name,
                       entry.key, entry.reference])
            self._format_severity_cell(ws.cell(ws.max_row, 2), entry.severity)

        ws.freeze_panes = "A2"
        self._auto_size_columns(ws)

    def _format_header_row(self, ws, row_idx: int) -> None:
        header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        header_font = Font(bold=True, color="FFFFFF", size=11)
        alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

        for cell in ws[row_idx]:
            cell.fill = header_fill
            cell.font = header_font
            cell.alignment = alignment

    @staticmethod
    def _format_severity_cell(cell, severity: Severity) -> None:
        background, color = _SEVERITY_STYLES[severity]
        cell.fill = PatternFill(start_color=background, end_color=background, fill_type="solid")
        cell.font = Font(color=color)

    @staticmethod
    def _auto_size_columns(ws) -> None:
        for column in ws.columns:
            column_letter = get_column_letter(column[0].column)
            max_length = max((len(str(c.value)) for c in column if c.value is not None), default=0)
            ws.column_dimensions[column_letter].width = min(max_length + 2, 50)


def read_report_entries(path: Path) -> List[Dict[str, str]]:
    """Load the Entries sheet of a saved report back into dictionaries."""
    wb = openpyxl.load_workbook(path, read_only=True)
    ws = wb[ConsistencyReport.ENTRIES_SHEET]
    rows = ws.iter_rows(min_row=2, values_only=True)
    entries = [
        {"severity": r[1], "category": r[2], "key": r[3], "reference": r[4] or ""}
        for r in rows if r and r[0] is not None
    ]
    wb.close()
    return entries
