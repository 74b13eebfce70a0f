# backend/modules/exports/services/export_writers.py

"""
File writers for dashboard exports.

Every writer takes the destination path, the serialized master records
and the export metadata (``exportDate``, ``template``, ``templateTitle``,
``recordCount``, ``filters``, ``kpis``) and writes one file.
"""

from typing import Any, Callable, Dict, List
import csv
import json
import logging

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from core.config import settings
from modules.revenue.services.master_view_service import RECORD_FIELDS

from ..constants import KPI_LABELS, PDF_COLUMNS

logger = logging.getLogger(__name__)

Writer = Callable[[str, List[Dict[str, Any]], Dict[str, Any]], None]


def _headers(records: List[Dict[str, Any]]) -> List[str]:
    return list(records[0].keys()) if records else list(RECORD_FIELDS)


def write_json(path: str, records: List[Dict[str, Any]], metadata: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"metadata": metadata, "data": records}, f, indent=2, default=str)


def write_csv(path: str, records: List[Dict[str, Any]], metadata: Dict[str, Any]) -> None:
    headers = _headers(records)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(f"# Export Date: {metadata['exportDate']}\n")
        f.write(f"# Template: {metadata['template']}\n")
        f.write(f"# Record Count: {metadata['recordCount']}\n")
        f.write(f"# Filters: {json.dumps(metadata['filters'], default=str)}\n")
        f.write("\n")

        writer = csv.writer(f)
        writer.writerow(headers)
        for record in records:
            writer.writerow(["" if record.get(h) is None else record.get(h) for h in headers])


def write_excel(path: str, records: List[Dict[str, Any]], metadata: Dict[str, Any]) -> None:
    """Summary sheet with the KPIs, Data sheet with every record"""
    wb = openpyxl.Workbook()

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    center_alignment = Alignment(horizontal="center", vertical="center")

    summary = wb.active
    summary.title = "Summary"
    summary["A1"] = metadata["templateTitle"]
    summary["A1"].font = Font(bold=True, size=14)
    summary["A2"] = f"Generated: {metadata['exportDate']}"
    summary["A3"] = f"Records: {metadata['recordCount']}"

    for col, label in enumerate(["Metric", "Value"], 1):
        cell = summary.cell(row=5, column=col, value=label)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = center_alignment

    kpis = metadata.get("kpis") or {}
    for row, (key, label) in enumerate(KPI_LABELS, 6):
        summary.cell(row=row, column=1, value=label)
        summary.cell(row=row, column=2, value=kpis.get(key, 0))
    summary.column_dimensions["A"].width = 28
    summary.column_dimensions["B"].width = 20

    data = wb.create_sheet("Data")
    headers = _headers(records)
    for col, header in enumerate(headers, 1):
        cell = data.cell(row=1, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = center_alignment

    for row_idx, record in enumerate(records, 2):
        for col_idx, header in enumerate(headers, 1):
            data.cell(row=row_idx, column=col_idx, value=record.get(header))

    # Auto-adjust column widths
    for column in data.columns:
        max_length = max(len(str(cell.value)) for cell in column if cell.value is not None)
        data.column_dimensions[get_column_letter(column[0].column)].width = min(max_length + 2, 50)

    wb.save(path)


def _pdf_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:,.2f}"
    return str(value)[:30]


def write_pdf(path: str, records: List[Dict[str, Any]], metadata: Dict[str, Any]) -> None:
    max_rows = settings.export_pdf_max_rows
    doc = SimpleDocTemplate(path, pagesize=landscape(A4))
    styles = getSampleStyleSheet()
    elements = []

    title_style = ParagraphStyle(
        "ExportTitle",
        parent=styles["Heading1"],
        fontSize=16,
        spaceAfter=20,
        alignment=1,
    )
    elements.append(Paragraph(metadata["templateTitle"], title_style))
    elements.append(
        Paragraph(
            f"Generated: {metadata['exportDate']}<br/>Total Records: {metadata['recordCount']}",
            styles["Normal"],
        )
    )
    elements.append(Spacer(1, 16))

    kpis = metadata.get("kpis") or {}
    kpi_table = Table([["Metric", "Value"]] + [[label, _pdf_value(kpis.get(key, 0))] for key, label in KPI_LABELS])
    kpi_table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("ALIGN", (1, 1), (1, -1), "RIGHT"),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
            ]
        )
    )
    elements.append(kpi_table)
    elements.append(Spacer(1, 20))

    if not records:
        elements.append(Paragraph("No data available for the selected criteria.", styles["Normal"]))
    else:
        shown = records[:max_rows]
        if len(records) > max_rows:
            elements.append(
                Paragraph(f"Showing the first {max_rows} of {len(records)} records.", styles["Italic"])
            )
            elements.append(Spacer(1, 8))

        table_data = [[label for _, label in PDF_COLUMNS]]
        for record in shown:
            table_data.append([_pdf_value(record.get(field)) for field, _ in PDF_COLUMNS])

        table = Table(table_data, repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                    ("ALIGN", (0, 0), (-1, -1), "CENTER"),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, 0), 8),
                    ("BACKGROUND", (0, 1), (-1, -1), colors.beige),
                    ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
                    ("FONTSIZE", (0, 1), (-1, -1), 7),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
                ]
            )
        )
        elements.append(table)

    doc.build(elements)


WRITERS: Dict[str, Writer] = {
    "json": write_json,
    "csv": write_csv,
    "excel": write_excel,
    "pdf": write_pdf,
}
