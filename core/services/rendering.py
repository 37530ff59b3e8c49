"""Rendering collaborators: turn a computed project summary into a document."""

from __future__ import annotations

from io import BytesIO
from typing import Any, Protocol

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter


class SummaryRenderer(Protocol):
    media_type: str
    extension: str

    def render(self, title: str, summary: dict[str, Any]) -> BytesIO:
        ...


class ExcelSummaryRenderer:
    media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    extension = "xlsx"

    def render(self, title: str, summary: dict[str, Any]) -> BytesIO:
        wb = Workbook()
        ws = wb.active
        ws.title = "Summary"

        head_fill = PatternFill("solid", fgColor="F2F3F5")
        bold = Font(bold=True)
        center = Alignment(horizontal="center", vertical="center")
        thin = Side(style="thin", color="DDDDDD")
        border = Border(top=thin, left=thin, right=thin, bottom=thin)
        money = "#,##0.00"

        ws.append([title])
        ws.cell(row=1, column=1).font = Font(bold=True, size=14)
        ws.append(["Total items", summary.get("totalItems", 0)])
        ws.append(["Total cost", summary.get("totalCost", 0)])
        ws.cell(row=3, column=2).number_format = money
        ws.append(["Overall progress (%)", summary.get("overallProgress", 0)])
        ws.append([])

        header_row = ws.max_row + 1
        ws.append(["Division", "Items", "Cost"])
        for division in summary.get("divisionBreakdown", []):
            ws.append([division.get("divisionName", ""), division.get("itemCount", 0), division.get("totalCost", 0)])
            ws.cell(row=ws.max_row, column=3).number_format = money
        for c in range(1, 4):
            cell = ws.cell(row=header_row, column=c)
            cell.fill = head_fill
            cell.font = bold
            cell.alignment = center
            cell.border = border
        ws.append([])

        priority_row = ws.max_row + 1
        ws.append(["Priority", "Items", "Cost"])
        counts = summary.get("countByPriority", {})
        for priority, cost in summary.get("costByPriority", {}).items():
            ws.append([priority, counts.get(priority, 0), cost])
            ws.cell(row=ws.max_row, column=3).number_format = money
        for c in range(1, 4):
            cell = ws.cell(row=priority_row, column=c)
            cell.fill = head_fill
            cell.font = bold
            cell.border = border
        ws.append([])

        status_row = ws.max_row + 1
        ws.append(["Status", "Items"])
        for status, count in summary.get("statusBreakdown", {}).items():
            ws.append([status, count])
        for c in range(1, 3):
            cell = ws.cell(row=status_row, column=c)
            cell.fill = head_fill
            cell.font = bold
            cell.border = border

        for col_idx in range(1, ws.max_column + 1):
            max_len = 0
            for row_idx in range(2, ws.max_row + 1):
                val = ws.cell(row=row_idx, column=col_idx).value
                max_len = max(max_len, len(str(val)) if val is not None else 0)
            ws.column_dimensions[get_column_letter(col_idx)].width = min(40, max(10, max_len + 2))

        bio = BytesIO()
        wb.save(bio)
        bio.seek(0)
        return bio
