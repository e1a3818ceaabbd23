"""Plain-text report rendering."""

from __future__ import annotations

from collections.abc import Iterable

from store_report.cells import format_quantity
from store_report.models import DateBlock, SheetReport, Store, WorkbookReport


def render_range_label(anchor_column: str, first_row: int, last_row: int) -> str:
    """``H列范围：H3 - H40`` for 0-based sheet rows 2 and 39."""
    col = anchor_column.upper()
    return f"{col}列范围：{col}{first_row + 1} - {col}{last_row + 1}"


def render_block(block: DateBlock, stores: Iterable[Store], *, unit: str = "pcs") -> str:
    """Date label, then one section per store that has at least one item."""
    lines = [block.date_label]
    for store in stores:
        if not store.items:
            continue
        lines.append(store.name)
        for item in store.items:
            lines.append(f"- {item.product}：{format_quantity(item.quantity)} {unit}")
    return "\n".join(lines)


def render_sheet(report: SheetReport) -> str:
    if report.is_empty:
        return ""
    return "\n".join([report.range_label, *report.blocks])


def render_fallback(file_name: str) -> str:
    return f"未能从 {file_name} 中提取到数据。"


def render_workbook(report: WorkbookReport) -> str:
    """Join every non-empty sheet section into the final report text.

    Sections are labelled with ``【sheet】`` whenever the workbook has more
    than one sheet.
    """
    sections = [(sheet.sheet_name, render_sheet(sheet)) for sheet in report.sheets]
    sections = [(name, text) for name, text in sections if text]
    if not sections:
        return render_fallback(report.file_name)

    labelled = len(sections) > 1 or report.sheet_count > 1
    parts = [f"【{name}】\n{text}" if labelled else text for name, text in sections]
    return "\n".join(parts)
