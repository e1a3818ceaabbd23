"""CLI entry point for store-report."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table as RichTable

from store_report import __version__
from store_report.errors import ReportError
from store_report.grid import dense_rows, detect_bounds, preview_frame
from store_report.io import load_workbook, write_text
from store_report.models import DEFAULT_LAYOUT, ReportLayout, Workbook
from store_report.pipeline import generate_report
from store_report.state import build_state, load_state, restore_report, save_state

app = typer.Typer(
    name="sreport",
    help="store-report — Turn daily store allocation sheets into copyable text reports.",
    add_completion=False,
    no_args_is_help=True,
)
# Status goes to stderr; stdout carries only the report text.
console = Console(stderr=True)
out_console = Console()


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}", highlight=False)


def _configure_logging(verbose: bool) -> None:
    logger = logging.getLogger("store_report")
    if not verbose:
        return
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(console=console, show_path=False))
    logger.setLevel(logging.DEBUG)


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"store-report v{__version__}")
        raise typer.Exit()


def _load_layout(profile: Path | None) -> ReportLayout:
    """Return the layout described by a ``key=value`` profile file."""
    if not profile:
        return DEFAULT_LAYOUT
    if not profile.exists():
        raise ValueError(f"Layout profile not found: {profile} (expected lines like anchor_column=H)")
    if profile.is_dir():
        raise ValueError(f"Layout profile is a directory, not a file: {profile}")
    try:
        text = profile.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read layout profile {profile}: {exc}") from exc

    values: dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            raise ValueError(f"Invalid layout line: {stripped!r}  (expected key=value)")
        key, value = stripped.split("=", 1)
        values[key.strip()] = value.strip()
    return ReportLayout.from_mapping(values)


def _emit(text: str, out: Path | None, echo: Callable[..., None]) -> None:
    if out is None:
        typer.echo(text)
        return
    try:
        path = write_text(out, text)
    except OSError as exc:
        _err(f"Could not write report: {exc}")
        raise typer.Exit(code=2)
    echo(f"  Report -> {path}")


def _pick_sheet(workbook: Workbook, requested: str | None) -> str:
    if requested:
        if requested not in workbook.sheets:
            raise ValueError(
                f"Sheet {requested!r} not found. Available: {', '.join(workbook.sheet_names)}"
            )
        return requested
    for name in workbook.sheet_names:
        if detect_bounds(workbook.sheets[name]) is not None:
            return name
    if not workbook.sheet_names:
        raise ValueError("Workbook has no sheets")
    return workbook.sheet_names[0]


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """store-report CLI."""


# ── report command ───────────────────────────────────────────────


@app.command()
def report(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to an XLSX, XLS or CSV workbook.",
        exists=True, readable=True,
    ),
    out: Path | None = typer.Option(
        None, "--out", "-o",
        help="Write the report text to this file instead of stdout.",
    ),
    layout_profile: Path | None = typer.Option(
        None, "--layout",
        help="Layout profile file (key=value lines, e.g. anchor_column=H).",
    ),
    state_path: Path | None = typer.Option(
        None, "--state",
        help="Also save the parsed sheets here so the report can be restored.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log extraction details.",
    ),
) -> None:
    """Extract per-date, per-store quantities and print the text report."""
    echo = _printer(quiet)
    _configure_logging(verbose)
    try:
        layout = _load_layout(layout_profile)
    except (ValueError, TypeError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    if not quiet:
        console.print(Panel(
            f"[bold]store-report[/bold] v{__version__}\nInput: {input_file}",
            title="Report", border_style="blue",
        ))

    echo("[blue]>[/blue] Loading workbook …")
    try:
        workbook = load_workbook(input_file)
        echo(f"  {len(workbook.sheet_names)} sheet(s): {', '.join(workbook.sheet_names)}")
        echo("[blue]>[/blue] Extracting date blocks …")
        text = generate_report(workbook, input_file.name, layout)
    except (ReportError, OSError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)
    except Exception as exc:
        _err(f"Unexpected internal error: {exc}")
        raise typer.Exit(code=1)

    _emit(text, out, echo)

    if state_path is not None:
        try:
            state = build_state(workbook, input_file)
            path = save_state(state_path, state)
        except OSError as exc:
            _err(f"Could not save state: {exc}")
            raise typer.Exit(code=1)
        echo(f"  State  -> {path}")


# ── preview command ──────────────────────────────────────────────


@app.command()
def preview(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to an XLSX, XLS or CSV workbook.",
        exists=True, readable=True,
    ),
    sheet: str | None = typer.Option(
        None, "--sheet", "-s",
        help="Sheet to show (default: first sheet with data).",
    ),
    limit: int = typer.Option(
        20, "--limit", "-n", min=1,
        help="Maximum number of data rows to show.",
    ),
) -> None:
    """Show a sheet as a plain table (first non-blank row is the header)."""
    try:
        workbook = load_workbook(input_file)
        name = _pick_sheet(workbook, sheet)
    except (ValueError, OSError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    frame = preview_frame(dense_rows(workbook.sheets[name]))
    if frame.columns.empty:
        _err(f"Sheet {name!r} is empty")
        raise typer.Exit(code=2)

    tbl = RichTable(title=f"{name} ({len(frame)} rows)", show_lines=False)
    for column in frame.columns:
        tbl.add_column(str(column))
    for values in frame.head(limit).itertuples(index=False, name=None):
        tbl.add_row(*(str(v) for v in values))
    out_console.print(tbl)
    if len(frame) > limit:
        console.print(f"  … {len(frame) - limit} more rows")


# ── restore command ──────────────────────────────────────────────


@app.command()
def restore(
    state_path: Path = typer.Option(
        ..., "--state",
        help="State file written by 'report --state'.",
        exists=True, readable=True,
    ),
    out: Path | None = typer.Option(
        None, "--out", "-o",
        help="Write the report text to this file instead of stdout.",
    ),
    layout_profile: Path | None = typer.Option(
        None, "--layout",
        help="Layout profile file (key=value lines, e.g. anchor_column=H).",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output.",
    ),
) -> None:
    """Regenerate the report from a saved state file."""
    echo = _printer(quiet)
    try:
        layout = _load_layout(layout_profile)
        state = load_state(state_path)
        echo(f"  Restoring {state.file_info.get('name', '?')} saved {state.timestamp}")
        text = restore_report(state, layout)
    except (ValueError, TypeError, OSError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    _emit(text, out, echo)
