from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest
from openpyxl import Workbook as XlsxWorkbook

XlsxWriter = Callable[..., Path]


def store_row(
    h: Any = None,
    stores: Sequence[Any] = (),
    *,
    b: Any = None,
    g: Any = None,
) -> list[Any]:
    """A raw sheet row laid out like the daily allocation sheet (A..).

    ``b``/``g``/``h`` land in columns B, G and H; *stores* start at column I.
    """
    row: list[Any] = [None] * (8 + len(stores))
    row[1] = b
    row[6] = g
    row[7] = h
    for offset, value in enumerate(stores):
        row[8 + offset] = value
    return row


@pytest.fixture
def write_xlsx(tmp_path: Path) -> XlsxWriter:
    """Return ``write(name, {sheet: rows})`` that saves an .xlsx into tmp_path."""

    def _write(name: str, sheets: dict[str, list[list[Any]]]) -> Path:
        wb = XlsxWorkbook()
        default = wb.active
        if default is not None:
            wb.remove(default)
        for title, rows in sheets.items():
            ws = wb.create_sheet(title=title)
            for r_idx, row in enumerate(rows, 1):
                for c_idx, value in enumerate(row, 1):
                    if value is not None:
                        ws.cell(row=r_idx, column=c_idx, value=value)
        path = tmp_path / name
        wb.save(path)
        return path

    return _write


@pytest.fixture
def daily_rows() -> list[list[Any]]:
    """Header, date row and one product row for a single day."""
    return [
        store_row(stores=["门店A", "门店B"]),
        store_row(h="2024/05/01 星期三"),
        store_row(h="苹果", stores=[10, "20.5"]),
    ]
