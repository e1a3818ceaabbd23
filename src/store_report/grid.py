"""Bounds detection and grid materialisation."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import pandas as pd
from openpyxl.utils.cell import coordinate_to_tuple, get_column_letter

from store_report.cells import is_meaningful, row_is_meaningful, sanitize_text, to_cell_value
from store_report.models import EMPTY, Bounds, Grid, Row, SheetData, SheetSource

logger = logging.getLogger(__name__)

_METADATA_PREFIX = "!"


def _iter_sparse(cells: Mapping[str, Any]):
    for address, raw in cells.items():
        if address.startswith(_METADATA_PREFIX):
            continue
        row, col = coordinate_to_tuple(address)
        yield row - 1, col - 1, raw


def _iter_dense(rows: Sequence[Sequence[Any]]):
    for r_idx, row in enumerate(rows):
        for c_idx, raw in enumerate(row):
            yield r_idx, c_idx, raw


def detect_bounds(sheet: SheetData) -> Bounds | None:
    """Return the minimal rectangle enclosing every meaningful cell.

    Only addressed cells are visited, so a mostly blank sheet with a huge
    ``!ref`` costs no more than its populated cells.
    """
    cells = _iter_sparse(sheet.cells) if isinstance(sheet, SheetSource) else _iter_dense(sheet)

    min_row = min_col = max_row = max_col = -1
    for row, col, raw in cells:
        if not is_meaningful(to_cell_value(raw)):
            continue
        if min_row < 0:
            min_row, max_row, min_col, max_col = row, row, col, col
            continue
        min_row = min(min_row, row)
        max_row = max(max_row, row)
        min_col = min(min_col, col)
        max_col = max(max_col, col)

    if min_row < 0:
        return None
    return Bounds(min_row=min_row, max_row=max_row, min_col=min_col, max_col=max_col)


def trim_trailing_blank_rows(rows: list[Row]) -> list[Row]:
    """Drop rows from the end until one has a meaningful cell."""
    end = len(rows)
    while end > 0 and not row_is_meaningful(rows[end - 1]):
        end -= 1
    return rows[:end]


def extract_grid(sheet: SheetData, bounds: Bounds | None = None) -> Grid:
    """Materialise the bounded region of *sheet* as a :class:`Grid`.

    Blank rows inside the bounds are kept; only trailing blank rows are
    trimmed. A sheet with no meaningful cell yields an empty grid.
    """
    if bounds is None:
        bounds = detect_bounds(sheet)
    if bounds is None:
        return Grid()

    rows: list[Row] = []
    if isinstance(sheet, SheetSource):
        for r in range(bounds.min_row, bounds.max_row + 1):
            rows.append([
                to_cell_value(sheet.cells.get(f"{get_column_letter(c + 1)}{r + 1}"))
                for c in range(bounds.min_col, bounds.max_col + 1)
            ])
    else:
        for r in range(bounds.min_row, bounds.max_row + 1):
            source = sheet[r] if r < len(sheet) else ()
            row = [
                to_cell_value(source[c]) if c < len(source) else EMPTY
                for c in range(bounds.min_col, bounds.max_col + 1)
            ]
            rows.append(row)

    logger.debug("Extracted %s (%d rows x %d cols)", bounds.to_ref(), bounds.height, bounds.width)
    return Grid(
        rows=trim_trailing_blank_rows(rows),
        origin_row=bounds.min_row,
        origin_col=bounds.min_col,
    )


# ── Plain tabular preview ───────────────────────────────────────


def _unique_headers(labels: list[str]) -> list[str]:
    seen: set[str] = set()
    headers: list[str] = []
    for idx, label in enumerate(labels, 1):
        name = label or f"Column {idx}"
        if name in seen:
            name = f"{name} ({idx})"
        seen.add(name)
        headers.append(name)
    return headers


def preview_frame(rows: Sequence[Sequence[Any]]) -> pd.DataFrame:
    """Plain table view of a pre-materialised grid.

    Skips bounds detection, drops blank rows and treats the first remaining
    row as the header row.
    """
    kept: list[Row] = []
    for raw_row in rows:
        row = [to_cell_value(raw) for raw in raw_row]
        if row_is_meaningful(row):
            kept.append(row)
    if not kept:
        return pd.DataFrame()

    width = max(len(row) for row in kept)
    header = [sanitize_text(cell) for cell in kept[0]]
    header += [""] * (width - len(header))
    body = [
        [sanitize_text(cell) for cell in row] + [""] * (width - len(row))
        for row in kept[1:]
    ]
    return pd.DataFrame(body, columns=_unique_headers(header), dtype="string")


def dense_rows(sheet: SheetData) -> list[list[Any]]:
    """Raw rows of *sheet* from ``A1``, as a decoder's dense export would give them."""
    if not isinstance(sheet, SheetSource):
        return [list(row) for row in sheet]
    placed = list(_iter_sparse(sheet.cells))
    if not placed:
        return []
    height = max(r for r, _, _ in placed) + 1
    width = max(c for _, c, _ in placed) + 1
    rows: list[list[Any]] = [[None] * width for _ in range(height)]
    for r, c, raw in placed:
        rows[r][c] = raw
    return rows
