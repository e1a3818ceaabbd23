"""Persistence of the last parse, and replay of the report from it."""

from __future__ import annotations

from pathlib import Path

from store_report import PERSISTED_ROW_LIMIT
from store_report.errors import EmptyWorkbookError
from store_report.grid import extract_grid
from store_report.io import read_json, write_json
from store_report.models import (
    DEFAULT_LAYOUT,
    Grid,
    PersistedSheet,
    PersistedState,
    ReportLayout,
    Workbook,
    WorkbookReport,
    cell_from_json,
    cell_to_json,
)
from store_report.pipeline import build_sheet_report
from store_report.report import render_workbook
from store_report.utils import file_info, utcnow_iso


def build_state(
    workbook: Workbook,
    source: Path,
    *,
    selected_sheet: str = "",
    row_limit: int = PERSISTED_ROW_LIMIT,
) -> PersistedState:
    """Snapshot the extracted grids of *workbook*, at most *row_limit* rows each."""
    source = Path(source)
    sheets: list[PersistedSheet] = []
    for name in workbook.sheet_names:
        grid = extract_grid(workbook.sheets[name])
        sheets.append(
            PersistedSheet(
                name=name,
                rows=[[cell_to_json(cell) for cell in row] for row in grid.rows[:row_limit]],
                origin=(grid.origin_row, grid.origin_col),
            )
        )
    if not selected_sheet:
        selected_sheet = next((s.name for s in sheets if s.rows), "")
    return PersistedState(
        file_info=file_info(source),
        sheets=sheets,
        selected_sheet=selected_sheet,
        timestamp=utcnow_iso(),
    )


def save_state(path: Path, state: PersistedState) -> Path:
    """Write ``state`` as JSON to *path* and return the path."""
    return write_json(path, state.to_dict())


def load_state(path: Path) -> PersistedState:
    return PersistedState.from_dict(read_json(path))


def restore_grid(sheet: PersistedSheet) -> Grid:
    return Grid(
        rows=[[cell_from_json(value) for value in row] for row in sheet.rows],
        origin_row=sheet.origin[0],
        origin_col=sheet.origin[1],
    )


def restore_report(state: PersistedState, layout: ReportLayout = DEFAULT_LAYOUT) -> str:
    """Regenerate the report text from persisted rows.

    Raises
    ------
    EmptyWorkbookError
        If none of the persisted sheets holds any rows.
    """
    file_name = str(state.file_info.get("name", ""))
    grids = [(sheet.name, restore_grid(sheet)) for sheet in state.sheets]
    if not any(len(grid) for _, grid in grids):
        raise EmptyWorkbookError(f"No data found in any sheet of {file_name}")

    reports = [build_sheet_report(name, grid, layout) for name, grid in grids if len(grid)]
    return render_workbook(
        WorkbookReport(
            file_name=file_name,
            sheet_count=len(state.sheets),
            sheets=tuple(r for r in reports if not r.is_empty),
        )
    )
