"""Tests for date-block segmentation, store resolution and item extraction."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pytest
from conftest import store_row

from store_report.cells import to_cell_value
from store_report.errors import EmptyWorkbookError
from store_report.grid import extract_grid
from store_report.models import (
    DEFAULT_LAYOUT,
    Grid,
    Item,
    ReportLayout,
    SheetSource,
    Workbook,
)
from store_report.pipeline import (
    anchor_row_span,
    build_sheet_report,
    build_workbook_report,
    extract_items,
    find_header_row,
    generate_report,
    resolve_stores,
    segment_date_blocks,
)


def _grid(rows: list[list[Any]]) -> Grid:
    return Grid(rows=[[to_cell_value(v) for v in row] for row in rows])


@pytest.fixture
def two_days() -> Grid:
    return _grid([
        store_row(stores=["A店", "B店"]),
        store_row(h="2024/05/01"),
        store_row(h="苹果", stores=[5, 0]),
        store_row(h="香蕉", stores=["", "3"]),
        store_row(stores=["A店", "B店"]),
        store_row(h="2024/05/02 星期四"),
        store_row(h="苹果", stores=["1,250", -2]),
    ])


# ── Segmentation ────────────────────────────────────────────────


def test_anchor_row_span_reports_first_and_last_rows(two_days: Grid) -> None:
    assert anchor_row_span(two_days) == (1, 6)


def test_anchor_row_span_is_none_without_anchor_values() -> None:
    grid = _grid([["a", "b"], ["c"]])

    assert anchor_row_span(grid) is None
    assert segment_date_blocks(grid) == []


def test_blocks_are_contiguous_and_cover_the_anchor_range(two_days: Grid) -> None:
    blocks = segment_date_blocks(two_days)

    assert [b.date_row for b in blocks] == [1, 5]
    assert [b.date_label for b in blocks] == ["2024年05月01日 星期三", "2024年05月02日 星期四"]
    assert blocks[0].rows == range(1, 5)
    assert blocks[0].end == blocks[1].date_row
    assert blocks[-1].end == 7
    assert all(a.date_row < b.date_row for a, b in zip(blocks, blocks[1:]))


def test_rows_before_the_first_date_are_not_a_block() -> None:
    grid = _grid([
        store_row(h="说明"),
        store_row(h="2024/05/01"),
        store_row(h="苹果"),
    ])

    blocks = segment_date_blocks(grid)

    assert [b.rows for b in blocks] == [range(1, 3)]


def test_consecutive_date_rows_each_open_a_block() -> None:
    grid = _grid([store_row(h=f"2024/05/0{d}") for d in range(1, 5)])

    blocks = segment_date_blocks(grid)

    assert [b.rows for b in blocks] == [range(0, 1), range(1, 2), range(2, 3), range(3, 4)]


def test_date_serials_and_datetimes_open_blocks() -> None:
    grid = _grid([
        store_row(h=45413),
        store_row(h="苹果"),
        store_row(h=datetime(2024, 5, 2)),
        store_row(h=120),
    ])

    blocks = segment_date_blocks(grid)

    assert [b.date_row for b in blocks] == [0, 2]
    assert blocks[1].date_label == "2024年05月02日 星期四"


def test_scan_is_capped_at_max_rows() -> None:
    rows = [store_row(h="苹果") for _ in range(8)]
    rows[6] = store_row(h="2024/05/01")

    assert segment_date_blocks(_grid(rows), ReportLayout(max_scan_rows=5)) == []
    blocks = segment_date_blocks(_grid(rows), ReportLayout(max_scan_rows=7))
    assert [b.rows for b in blocks] == [range(6, 7)]


def test_default_cap_ignores_dates_past_row_100() -> None:
    rows = [store_row(h="苹果") for _ in range(120)]
    rows[110] = store_row(h="2024/05/01")

    assert segment_date_blocks(_grid(rows)) == []


def test_anchor_column_is_resolved_against_grid_origin(daily_rows: list[list[Any]]) -> None:
    grid = extract_grid(daily_rows)

    assert grid.origin_col == 7
    assert [b.date_row for b in segment_date_blocks(grid)] == [1]


# ── Stores ──────────────────────────────────────────────────────


def test_header_row_is_nearest_row_with_store_labels() -> None:
    grid = _grid([
        store_row(stores=["A店", "B店"]),
        store_row(h="备注"),
        store_row(),
        store_row(h="2024/05/01"),
    ])

    assert find_header_row(grid, 3) == 0
    assert [(s.name, s.column) for s in resolve_stores(grid, 3)] == [("A店", 8), ("B店", 9)]


def test_header_falls_back_to_row_above_date() -> None:
    grid = _grid([
        store_row(h="2024/05/01"),
        store_row(h="苹果", stores=[3]),
    ])

    assert find_header_row(grid, 0) == -1
    assert resolve_stores(grid, 0) == []


def test_store_labels_stop_at_first_gap() -> None:
    grid = _grid([
        store_row(stores=["A店", "", "C店"]),
        store_row(h="2024/05/01"),
    ])

    assert [s.name for s in resolve_stores(grid, 1)] == ["A店"]


# ── Items ───────────────────────────────────────────────────────


def test_items_skip_zero_negative_and_blank_quantities(two_days: Grid) -> None:
    first, second = segment_date_blocks(two_days)

    stores = extract_items(two_days, first, resolve_stores(two_days, first.date_row))
    assert {s.name: s.items for s in stores} == {
        "A店": [Item("苹果", 5.0)],
        "B店": [Item("香蕉", 3.0)],
    }

    stores = extract_items(two_days, second, resolve_stores(two_days, second.date_row))
    assert {s.name: s.items for s in stores} == {"A店": [Item("苹果", 1250.0)], "B店": []}


def test_product_name_falls_back_to_left_column_then_column_b() -> None:
    grid = _grid([
        store_row(stores=["A店"]),
        store_row(h="2024/05/01"),
        store_row(g="梨", stores=[1]),
        store_row(b="桃", stores=[2]),
        store_row(h="  ", g=" ", b="枣", stores=[3]),
        store_row(stores=[4]),
    ])
    block = segment_date_blocks(grid)[0]

    stores = extract_items(grid, block, resolve_stores(grid, block.date_row))

    assert stores[0].items == [Item("梨", 1.0), Item("桃", 2.0), Item("枣", 3.0)]


def test_date_row_itself_can_carry_items_through_fallback_name() -> None:
    grid = _grid([
        store_row(stores=["A店"]),
        store_row(h="2024/05/01", g="早班", stores=[6]),
    ])
    block = segment_date_blocks(grid)[0]

    stores = extract_items(grid, block, resolve_stores(grid, block.date_row))

    assert stores[0].items == [Item("早班", 6.0)]


def test_extraction_stops_at_a_foreign_date_row() -> None:
    grid = _grid([
        store_row(stores=["A店"]),
        store_row(h="2024/05/01"),
        store_row(h="苹果", stores=[1]),
        store_row(h="2024/05/02"),
        store_row(h="香蕉", stores=[2]),
    ])
    drifted = segment_date_blocks(grid)[0]
    drifted = type(drifted)(drifted.date_row, drifted.date_label, range(1, 5))

    stores = extract_items(grid, drifted, resolve_stores(grid, 1))

    assert stores[0].items == [Item("苹果", 1.0)]


def test_alternate_layout_moves_anchor_and_store_columns() -> None:
    layout = ReportLayout(
        anchor_column="A",
        store_column="B",
        name_fallback_offsets=(),
        name_fallback_columns=(),
        quantity_unit="箱",
    )
    grid = _grid([
        [None, "总仓"],
        ["2024/05/01"],
        ["苹果", 4],
    ])

    report = build_sheet_report("Sheet1", grid, layout)

    assert report.range_label == "A列范围：A2 - A3"
    assert report.blocks == ("2024年05月01日 星期三\n总仓\n- 苹果：4 箱",)


# ── Entry points ────────────────────────────────────────────────


EXPECTED_DAILY = (
    "H列范围：H2 - H3\n"
    "2024年05月01日 星期三\n"
    "门店A\n"
    "- 苹果：10 pcs\n"
    "门店B\n"
    "- 苹果：20.5 pcs"
)


def test_single_sheet_report_has_no_sheet_prefix(daily_rows: list[list[Any]]) -> None:
    workbook = Workbook(sheet_names=["Sheet1"], sheets={"Sheet1": daily_rows})

    assert generate_report(workbook, "daily.xlsx") == EXPECTED_DAILY


def test_range_label_uses_sheet_row_numbers() -> None:
    sheet = SheetSource(cells={
        "I3": "门店A",
        "H4": "2024/05/01",
        "H5": "苹果",
        "I5": 2,
    })

    report = build_sheet_report("S", extract_grid(sheet), DEFAULT_LAYOUT)

    assert report.range_label == "H列范围：H4 - H5"


def test_two_sheets_one_empty_keeps_prefix(daily_rows: list[list[Any]]) -> None:
    workbook = Workbook(
        sheet_names=["汇总", "Sheet2"],
        sheets={"汇总": daily_rows, "Sheet2": [["just", "text"]]},
    )

    report = build_workbook_report(workbook, "daily.xlsx")

    assert [s.sheet_name for s in report.sheets] == ["汇总"]
    assert generate_report(workbook, "daily.xlsx") == f"【汇总】\n{EXPECTED_DAILY}"


def test_two_sheets_with_content_are_joined(daily_rows: list[list[Any]]) -> None:
    workbook = Workbook(sheet_names=["a", "b"], sheets={"a": daily_rows, "b": daily_rows})

    text = generate_report(workbook, "daily.xlsx")

    assert text == f"【a】\n{EXPECTED_DAILY}\n【b】\n{EXPECTED_DAILY}"


def test_sheets_without_dates_render_fallback_sentence() -> None:
    workbook = Workbook(sheet_names=["Sheet1"], sheets={"Sheet1": [["name", "qty"], ["苹果", 3]]})

    assert generate_report(workbook, "plain.xlsx") == "未能从 plain.xlsx 中提取到数据。"


def test_blank_workbook_is_a_decode_failure() -> None:
    workbook = Workbook(
        sheet_names=["a", "b"],
        sheets={"a": SheetSource(cells={"!ref": "A1:C3", "A1": " "}), "b": []},
    )

    with pytest.raises(EmptyWorkbookError, match="blank.xlsx"):
        generate_report(workbook, "blank.xlsx")

    with pytest.raises(EmptyWorkbookError):
        build_workbook_report(Workbook(), "none.xlsx")


def test_generate_report_is_repeatable(two_days: Grid) -> None:
    rows = [[cell for cell in row] for row in two_days.rows]
    workbook = Workbook(sheet_names=["s"], sheets={"s": rows})

    assert generate_report(workbook, "x.xlsx") == generate_report(workbook, "x.xlsx")
