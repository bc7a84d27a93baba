"""
Submission report rendering (PDF + HTML).

Both renderers take the submission detail dict produced by
ReportService.get_submission():

    {"submission_uuid", "agency", "system_name", "module_name", "api_name",
     "created_at", "answers": [...], "grid": [...], "duplicate_names": [...]}
"""

import html
from io import BytesIO
from datetime import datetime
from typing import Any, Dict, List

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from dataconfirm.core.config import settings
from dataconfirm.core.logging_config import logger

UNGROUPED_LABEL = "ungrouped"

GRID_HEADERS = ["Data Element", "Group", "Nama", "Jenis", "Saiz", "Nullable", "Rules"]


def display_group(group) -> str:
    return group if group else UNGROUPED_LABEL


def _grid_cells(row: Dict[str, Any]) -> List[str]:
    return [
        row.get("data_element") or "",
        display_group(row.get("group_name")),
        row.get("field_name") or "",
        row.get("data_type") or "",
        row.get("size") or "",
        row.get("nullable") or "",
        row.get("rules") or "",
    ]


def _format_date(value) -> str:
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y %H:%M")
    return str(value or "")


def _esc(value) -> str:
    return html.escape(str(value if value is not None else ""))


def render_pdf(report: Dict[str, Any]) -> bytes:
    """Render a submission report to PDF bytes"""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        title=f"Submission {report['submission_uuid']}",
        leftMargin=0.6 * inch,
        rightMargin=0.6 * inch,
    )
    styles = getSampleStyleSheet()
    cell_style = ParagraphStyle("Cell", parent=styles["BodyText"], fontSize=8, leading=10)
    title_style = ParagraphStyle(
        "ReportTitle",
        parent=styles["Heading1"],
        fontSize=18,
        textColor=colors.HexColor("#1f3a93"),
        spaceAfter=12,
        alignment=TA_CENTER,
    )

    story = [
        Paragraph(_esc(settings.APP_NAME), title_style),
        Paragraph("Laporan Keperluan Data Inbound", styles["Heading2"]),
        Spacer(1, 0.1 * inch),
    ]

    meta = [
        ["Submission ID", report["submission_uuid"]],
        ["Agensi", report.get("agency") or "-"],
        ["Nama Sistem", report.get("system_name") or "-"],
        ["Nama Modul", report.get("module_name") or "-"],
        ["Nama API", report.get("api_name") or "-"],
        ["Tarikh", _format_date(report.get("created_at"))],
    ]
    meta_table = Table(
        [[Paragraph(_esc(k), cell_style), Paragraph(_esc(v), cell_style)] for k, v in meta],
        colWidths=[1.6 * inch, 6.5 * inch],
    )
    meta_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#e8ecf7")),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    story.extend([meta_table, Spacer(1, 0.2 * inch)])

    answers = report.get("answers") or []
    if answers:
        story.append(Paragraph("Jawapan", styles["Heading3"]))
        rows = [[Paragraph("<b>Soalan</b>", cell_style), Paragraph("<b>Jawapan</b>", cell_style)]]
        for answer in answers:
            text = answer.get("answer") or "-"
            if answer.get("file_path"):
                text = f"{text} (fail: {answer['file_path']})"
            rows.append([
                Paragraph(_esc(answer.get("question_text") or answer.get("question_id")), cell_style),
                Paragraph(_esc(text), cell_style),
            ])
        answer_table = Table(rows, colWidths=[3 * inch, 6.5 * inch], repeatRows=1)
        answer_table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1f3a93")),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]))
        story.extend([answer_table, Spacer(1, 0.2 * inch)])

    grid = report.get("grid") or []
    story.append(Paragraph("Data yang Terlibat", styles["Heading3"]))
    if grid:
        rows = [[Paragraph(f"<b>{h}</b>", cell_style) for h in GRID_HEADERS]]
        for row in grid:
            rows.append([Paragraph(_esc(cell), cell_style) for cell in _grid_cells(row)])
        grid_table = Table(rows, repeatRows=1)
        grid_table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1f3a93")),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f5f7fb")]),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]))
        story.append(grid_table)
    else:
        story.append(Paragraph("Tiada data.", styles["BodyText"]))

    duplicates = report.get("duplicate_names") or []
    if duplicates:
        story.append(Spacer(1, 0.15 * inch))
        story.append(Paragraph(
            f"<b>Amaran:</b> nama data berulang dalam kumpulan berbeza: {_esc(', '.join(duplicates))}",
            styles["BodyText"],
        ))

    doc.build(story)
    pdf = buffer.getvalue()
    logger.debug(f"[Report] Rendered PDF for {report['submission_uuid']} ({len(pdf)} bytes)")
    return pdf


def render_html(report: Dict[str, Any]) -> str:
    """HTML summary used as the notification email body"""
    answer_rows = "".join(
        f"<tr><td>{_esc(a.get('question_text') or a.get('question_id'))}</td>"
        f"<td>{_esc(a.get('answer') or '-')}</td></tr>"
        for a in report.get("answers") or []
    )
    grid_rows = "".join(
        "<tr>" + "".join(f"<td>{_esc(cell)}</td>" for cell in _grid_cells(row)) + "</tr>"
        for row in report.get("grid") or []
    )
    grid_header = "".join(f"<th>{h}</th>" for h in GRID_HEADERS)
    duplicates = report.get("duplicate_names") or []
    warning = (
        f'<p class="warning">Nama data berulang dalam kumpulan berbeza: {_esc(", ".join(duplicates))}</p>'
        if duplicates else ""
    )

    return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>
                body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.5; color: #333; }}
                table {{ border-collapse: collapse; width: 100%; margin-bottom: 16px; }}
                th, td {{ border: 1px solid #d1d5db; padding: 6px 8px; text-align: left; font-size: 13px; }}
                th {{ background: #1f3a93; color: white; }}
                .warning {{ background: #fef3cd; border: 1px solid #ffc107; padding: 10px; border-radius: 6px; }}
            </style>
        </head>
        <body>
            <h2>Penghantaran Keperluan Data Baharu</h2>
            <p>
                <strong>Agensi:</strong> {_esc(report.get('agency') or '-')}<br>
                <strong>Sistem:</strong> {_esc(report.get('system_name'))}<br>
                <strong>Modul:</strong> {_esc(report.get('module_name'))}<br>
                <strong>API:</strong> {_esc(report.get('api_name'))}<br>
                <strong>Submission ID:</strong> {_esc(report['submission_uuid'])}<br>
                <strong>Tarikh:</strong> {_esc(_format_date(report.get('created_at')))}
            </p>
            <h3>Jawapan</h3>
            <table><tr><th>Soalan</th><th>Jawapan</th></tr>{answer_rows}</table>
            <h3>Data yang Terlibat</h3>
            <table><tr>{grid_header}</tr>{grid_rows}</table>
            {warning}
        </body>
        </html>
        """


def render_text(report: Dict[str, Any]) -> str:
    """Plain-text fallback for the notification email"""
    lines = [
        "Penghantaran Keperluan Data Baharu",
        "",
        f"Sistem: {report.get('system_name')}",
        f"Modul: {report.get('module_name')}",
        f"API: {report.get('api_name')}",
        f"Submission ID: {report['submission_uuid']}",
        "",
    ]
    for row in report.get("grid") or []:
        lines.append(" | ".join(_grid_cells(row)))
    return "\n".join(lines)
