"""
Excel report generator for bulk deduplication results.
Creates multi-sheet workbooks with formatted output.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Border, Side
from openpyxl.worksheet.worksheet import Worksheet

from ..config import DedupConfig
from ..models.transaction import MaintenanceResult, RecordId, TransactionRecord
from ..utils.exceptions import ReportGenerationError

logger = logging.getLogger(__name__)

# Style definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
CANONICAL_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
DUPLICATE_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
CLEARED_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)


class ExcelReportGenerator:
    """Generates Excel deduplication reports with multiple sheets."""

    def __init__(self, config: DedupConfig):
        """
        Initialize the report generator.

        Args:
            config: Application configuration
        """
        self.config = config
        self.sheet_config = config.output.sheets

    def generate_report(
        self,
        result: MaintenanceResult,
        records: Sequence[TransactionRecord],
        output_path: Path,
        source_filename: Optional[str] = None,
    ) -> Path:
        """
        Generate the complete deduplication report.

        Args:
            result: Bulk clustering result
            records: Records the run was performed on
            output_path: Path for output file
            source_filename: Name of the input file, shown on the summary sheet

        Returns:
            Path to generated report

        Raises:
            ReportGenerationError: If the workbook cannot be written
        """
        logger.info(f"Generating Excel report: {output_path}")
        by_id = {r.id: r for r in records}

        wb = Workbook()
        if wb.active:
            wb.remove(wb.active)

        if self.sheet_config.summary.enabled:
            self._create_summary_sheet(wb, result, source_filename)
        if self.sheet_config.groups.enabled:
            self._create_groups_sheet(wb, result, by_id)
        if self.sheet_config.updates.enabled:
            self._create_updates_sheet(wb, result, by_id)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(output_path)
        except OSError as e:
            raise ReportGenerationError(f"Failed to write report {output_path}: {e}") from e

        logger.info(f"Report saved: {output_path}")
        return output_path

    def _create_summary_sheet(
        self,
        wb: Workbook,
        result: MaintenanceResult,
        source_filename: Optional[str],
    ) -> None:
        """Create the summary sheet with key metrics."""
        ws = wb.create_sheet(self.sheet_config.summary.name)

        ws["A1"] = "Duplicate Detection Summary"
        ws["A1"].font = Font(size=16, bold=True)
        ws.merge_cells("A1:D1")

        settings = self.config.dedup
        sections = [
            (
                "Run Information",
                [
                    ("Input File:", source_filename or "-"),
                    ("Run Started:", result.started_at.strftime("%Y-%m-%d %H:%M:%S")),
                    ("Generated At:", datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
                    ("Config File:", self.config.config_file_path or "Default"),
                    ("Processing Time:", f"{result.processing_time_seconds:.2f} seconds"),
                    ("Cancelled:", "Yes" if result.cancelled else "No"),
                ],
            ),
            (
                "Counts",
                [
                    ("Total Records:", result.total_records),
                    ("Batches Processed:", result.batches_processed),
                    ("Buckets Processed:", result.buckets_processed),
                    ("Duplicate Groups:", len(result.groups)),
                    ("Records In Groups:", sum(g.size for g in result.groups)),
                    ("Newly Marked:", result.newly_marked),
                    ("Flags Cleared:", result.unmarked),
                ],
            ),
            (
                "Settings",
                [
                    ("Similarity Threshold:", settings.similarity_threshold),
                    ("Soft Similarity Threshold:", settings.soft_similarity_threshold),
                    ("Date Window (Days):", settings.date_window_days),
                    ("Amount Tolerance:", settings.amount_tolerance),
                    ("Amount Tolerance %:", f"{settings.amount_tolerance_percent:.1%}"),
                    ("Bucket Amount Width:", settings.bucket_amount_width),
                    ("Batch Size:", settings.batch_size),
                ],
            ),
        ]

        row = 3
        for title, items in sections:
            ws[f"A{row}"] = title
            ws[f"A{row}"].font = Font(bold=True)
            row += 1
            for label, value in items:
                ws[f"A{row}"] = label
                ws[f"B{row}"] = value
                row += 1
            row += 1

        ws.column_dimensions["A"].width = 30
        ws.column_dimensions["B"].width = 40

    def _create_groups_sheet(
        self,
        wb: Workbook,
        result: MaintenanceResult,
        by_id: dict[RecordId, TransactionRecord],
    ) -> None:
        """One row per group member; canonical rows are highlighted."""
        ws = wb.create_sheet(self.sheet_config.groups.name)

        headers = [
            "Group",
            "Record ID",
            "Role",
            "Date",
            "Amount",
            "Description",
            "Source",
            "Canonical ID",
        ]
        self._write_headers(ws, headers)

        row_num = 2
        for group_no, group in enumerate(result.groups, start=1):
            for member_id in group.member_ids:
                record = by_id.get(member_id)
                is_canonical = member_id == group.canonical_id
                row_data = [
                    group_no,
                    str(member_id),
                    "Canonical" if is_canonical else "Duplicate",
                    record.date if record else "",
                    float(record.amount) if record else "",
                    record.description if record else "",
                    record.source if record else "",
                    str(group.canonical_id),
                ]

                for col, value in enumerate(row_data, start=1):
                    cell = ws.cell(row=row_num, column=col, value=value)
                    cell.border = THIN_BORDER
                    cell.fill = CANONICAL_FILL if is_canonical else DUPLICATE_FILL
                row_num += 1

        self._auto_fit_columns(ws)

    def _create_updates_sheet(
        self,
        wb: Workbook,
        result: MaintenanceResult,
        by_id: dict[RecordId, TransactionRecord],
    ) -> None:
        """Create the sheet listing every duplicate-state change."""
        ws = wb.create_sheet(self.sheet_config.updates.name)

        headers = [
            "Record ID",
            "Was Duplicate",
            "Previous Canonical ID",
            "Is Duplicate",
            "Canonical ID",
        ]
        self._write_headers(ws, headers)

        for row_num, update in enumerate(result.updates, start=2):
            previous = by_id.get(update.id)
            row_data = [
                str(update.id),
                "Yes" if previous and previous.is_duplicate else "No",
                str(previous.canonical_id) if previous and previous.canonical_id is not None else "",
                "Yes" if update.is_duplicate else "No",
                str(update.canonical_id) if update.canonical_id is not None else "",
            ]

            for col, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_num, column=col, value=value)
                cell.border = THIN_BORDER
                if not update.is_duplicate:
                    cell.fill = CLEARED_FILL

        self._auto_fit_columns(ws)

    def _write_headers(self, ws: Worksheet, headers: list[str]) -> None:
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.columns:
            column = column_cells[0].column_letter
            max_length = max(
                (len(str(cell.value)) for cell in column_cells if cell.value is not None),
                default=0,
            )
            ws.column_dimensions[column].width = min(max_length + 2, 50)
