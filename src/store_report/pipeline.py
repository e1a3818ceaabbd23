"""Date-block extraction pipeline — pure functions, no side effects."""

from __future__ import annotations

import logging
from collections.abc import Callable

from store_report.cells import (
    format_date_label,
    is_meaningful,
    looks_like_date,
    parse_quantity,
    sanitize_text,
)
from store_report.errors import EmptyWorkbookError
from store_report.grid import detect_bounds, extract_grid
from store_report.models import (
    DEFAULT_LAYOUT,
    DateBlock,
    Grid,
    Item,
    ReportLayout,
    SheetReport,
    Store,
    Workbook,
    WorkbookReport,
    column_index,
)
from store_report.report import render_block, render_range_label, render_workbook

logger = logging.getLogger(__name__)

NameResolver = Callable[[Grid, int], str]


# ── Segmentation ────────────────────────────────────────────────


def anchor_row_span(grid: Grid, layout: ReportLayout = DEFAULT_LAYOUT) -> tuple[int, int] | None:
    """Return ``(first_row_index, last_row_index)`` of the anchor column.

    Only the first ``layout.max_scan_rows`` rows are considered. None when
    the anchor column holds no meaningful cell.
    """
    anchor = grid.column_for(layout.anchor_column)
    capped_end = min(len(grid), layout.max_scan_rows) - 1

    first_row = -1
    last_value_row = -1
    for r in range(capped_end + 1):
        cell = grid.cell(r, anchor)
        if first_row < 0 and sanitize_text(cell):
            first_row = r
        if is_meaningful(cell):
            last_value_row = r

    if first_row < 0 or last_value_row < 0:
        return None
    return first_row, max(last_value_row, capped_end)


def segment_date_blocks(grid: Grid, layout: ReportLayout = DEFAULT_LAYOUT) -> list[DateBlock]:
    """Split the anchor column into consecutive blocks, each opened by a date row."""
    span = anchor_row_span(grid, layout)
    if span is None:
        return []
    first_row, last_row = span
    anchor = grid.column_for(layout.anchor_column)
    threshold = layout.date_serial_threshold

    def is_date_row(r: int) -> bool:
        return looks_like_date(grid.cell(r, anchor), threshold)

    blocks: list[DateBlock] = []
    cursor = first_row
    while cursor <= last_row:
        date_row = next((r for r in range(cursor, last_row + 1) if is_date_row(r)), None)
        if date_row is None:
            break
        end = next(
            (r for r in range(date_row + 1, last_row + 1) if is_date_row(r)),
            last_row + 1,
        )
        blocks.append(
            DateBlock(
                date_row=date_row,
                date_label=format_date_label(grid.cell(date_row, anchor)),
                rows=range(date_row, end),
            )
        )
        if end <= cursor:
            end = last_row + 1
        cursor = end
    return blocks


# ── Stores ──────────────────────────────────────────────────────


def find_header_row(grid: Grid, date_row: int, layout: ReportLayout = DEFAULT_LAYOUT) -> int:
    """Nearest row above *date_row* with a label at or right of the store column.

    Falls back to the row directly above the date row (``-1`` if there is none).
    """
    store_col = max(grid.column_for(layout.store_column), 0)
    for r in range(date_row - 1, -1, -1):
        row = grid.rows[r]
        if any(sanitize_text(cell) for cell in row[store_col:]):
            return r
    return date_row - 1


def resolve_stores(grid: Grid, date_row: int, layout: ReportLayout = DEFAULT_LAYOUT) -> list[Store]:
    """Read contiguous store labels from the header row of a block."""
    header_row = find_header_row(grid, date_row, layout)
    if header_row < 0:
        return []
    stores: list[Store] = []
    col = grid.column_for(layout.store_column)
    width = len(grid.rows[header_row])
    while 0 <= col < width:
        name = sanitize_text(grid.cell(header_row, col))
        if not name:
            break
        stores.append(Store(name=name, column=col))
        col += 1
    return stores


# ── Items ───────────────────────────────────────────────────────


def name_resolvers(layout: ReportLayout = DEFAULT_LAYOUT) -> list[NameResolver]:
    """Product-name strategies in priority order; the first non-empty wins."""

    def from_anchor(grid: Grid, row: int) -> str:
        cell = grid.cell(row, grid.column_for(layout.anchor_column))
        if looks_like_date(cell, layout.date_serial_threshold):
            return ""
        return sanitize_text(cell)

    def from_column(index: Callable[[Grid], int]) -> NameResolver:
        return lambda grid, row: sanitize_text(grid.cell(row, index(grid)))

    resolvers: list[NameResolver] = [from_anchor]
    for offset in layout.name_fallback_offsets:
        resolvers.append(
            from_column(lambda g, o=offset: g.column_for(layout.anchor_column) + o)
        )
    for letter in layout.name_fallback_columns:
        resolvers.append(
            from_column(lambda g, i=column_index(letter): i - g.origin_col)
        )
    return resolvers


def resolve_product_name(grid: Grid, row: int, resolvers: list[NameResolver]) -> str:
    for resolve in resolvers:
        name = resolve(grid, row)
        if name:
            return name
    return ""


def extract_items(
    grid: Grid,
    block: DateBlock,
    stores: list[Store],
    layout: ReportLayout = DEFAULT_LAYOUT,
) -> list[Store]:
    """Fill ``store.items`` for every row of *block*; returns *stores*."""
    anchor = grid.column_for(layout.anchor_column)
    resolvers = name_resolvers(layout)
    for r in block.rows:
        if r != block.date_row and looks_like_date(grid.cell(r, anchor), layout.date_serial_threshold):
            break
        product = resolve_product_name(grid, r, resolvers)
        if not product:
            continue
        for store in stores:
            quantity = parse_quantity(grid.cell(r, store.column))
            if quantity is not None:
                store.items.append(Item(product=product, quantity=quantity))
    return stores


# ── Entry points ────────────────────────────────────────────────


def build_sheet_report(
    sheet_name: str, grid: Grid, layout: ReportLayout = DEFAULT_LAYOUT
) -> SheetReport:
    """Run segmentation + extraction on one grid and render its blocks."""
    blocks = segment_date_blocks(grid, layout)
    if not blocks:
        logger.debug("Sheet %r: no date rows in column %s", sheet_name, layout.anchor_column)
        return SheetReport(sheet_name=sheet_name)

    rendered: list[str] = []
    for block in blocks:
        stores = extract_items(grid, block, resolve_stores(grid, block.date_row, layout), layout)
        rendered.append(render_block(block, stores, unit=layout.quantity_unit))

    first_row, last_row = anchor_row_span(grid, layout) or (0, 0)
    logger.debug("Sheet %r: %d date blocks", sheet_name, len(blocks))
    return SheetReport(
        sheet_name=sheet_name,
        range_label=render_range_label(
            layout.anchor_column,
            first_row + grid.origin_row,
            last_row + grid.origin_row,
        ),
        blocks=tuple(rendered),
    )


def build_workbook_report(
    workbook: Workbook, file_name: str, layout: ReportLayout = DEFAULT_LAYOUT
) -> WorkbookReport:
    """Process every sheet independently.

    Raises
    ------
    EmptyWorkbookError
        If no sheet contains a single meaningful cell.
    """
    reports: list[SheetReport] = []
    any_content = False
    for name in workbook.sheet_names:
        sheet = workbook.sheets[name]
        bounds = detect_bounds(sheet)
        if bounds is None:
            logger.debug("Sheet %r is blank", name)
            continue
        any_content = True
        report = build_sheet_report(name, extract_grid(sheet, bounds), layout)
        if not report.is_empty:
            reports.append(report)

    if not any_content:
        raise EmptyWorkbookError(f"No data found in any sheet of {file_name}")

    return WorkbookReport(
        file_name=file_name,
        sheet_count=len(workbook.sheet_names),
        sheets=tuple(reports),
    )


def generate_report(
    workbook: Workbook, file_name: str, layout: ReportLayout = DEFAULT_LAYOUT
) -> str:
    """Return the final report text for *workbook*."""
    return render_workbook(build_workbook_report(workbook, file_name, layout))
