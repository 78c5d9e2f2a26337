from __future__ import annotations

import logging
import sys
from typing import List, Optional, Tuple

import typer
from rich import print as rprint
from rich.logging import RichHandler
from rich.table import Table

# Config loader that supports YAML (.yaml/.yml) and JSON
from .config_io import load_defaults, load_records

# Core modules
from .detect_core import detect_structure
from .errors import GradesheetError
from .grid_io import WorkbookGrid
from .insert_core import commit_insertion, preview_insertion
from .models import ALL_CATEGORIES, MarkCategory, PreviewResult, WorksheetStructure
from .scoring_defaults import DEFAULTS, ScoringDefaults

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="marks-linker: detect gradesheet columns, match OCR'd names, preview and commit marks.",
)

_WORKBOOK_HELP = "Gradesheet workbook (.xlsx/.xlsm)"
_RECORDS_HELP = "Extracted records (.yaml/.yml or .json) - list of {name, marks}"
_CONFIG_HELP = "Threshold overrides (.yaml/.yml or .json) - YAML recommended"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


def _load_defaults(config: Optional[str]) -> ScoringDefaults:
    if not config:
        return DEFAULTS
    try:
        return load_defaults(config)
    except Exception as e:
        rprint(f"[red]Failed to load config {config}:[/red] {e}")
        raise typer.Exit(code=2)


def _open_and_detect(
    workbook: str,
    sheet: Optional[str],
    defaults: ScoringDefaults,
    out_path: Optional[str] = None,
) -> Tuple[WorkbookGrid, WorksheetStructure]:
    try:
        book = WorkbookGrid(workbook, sheet=sheet, out_path=out_path)
    except Exception as e:
        rprint(f"[red]Failed to open workbook {workbook}:[/red] {e}")
        raise typer.Exit(code=2)
    try:
        structure = detect_structure(book.grid, defaults)
    except GradesheetError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(code=2)
    return book, structure


def _load_records(records: str):
    try:
        return load_records(records)
    except Exception as e:
        rprint(f"[red]Failed to load records {records}:[/red] {e}")
        raise typer.Exit(code=2)


def _structure_table(structure: WorksheetStructure) -> Table:
    table = Table(title=f"Layout: {structure.layout} (header row: {structure.header_row})")
    table.add_column("Role")
    table.add_column("Column", justify="right")
    table.add_column("Header")
    table.add_column("Confidence", justify="right")

    def col_text(idx: Optional[int]) -> str:
        return "-" if idx is None else str(idx + 1)

    table.add_row("id", col_text(structure.id_column),
                  structure.header_label(structure.id_column) if structure.id_column is not None else "-", "")
    table.add_row("name", col_text(structure.name_column), structure.header_label(structure.name_column), "")
    for part in structure.name_parts:
        table.add_row("name part", col_text(part), structure.header_label(part), "")
    for cat in ALL_CATEGORIES:
        col = structure.column_for(cat)
        table.add_row(cat.value, col_text(col), structure.header_label(col), f"{structure.confidence[cat]:.2f}")
    for extra in structure.additional_columns:
        table.add_row("additional", col_text(extra.index), structure.header_label(extra.index), "")
    return table


def _preview_table(result: PreviewResult) -> Table:
    table = Table(title="Planned writes")
    table.add_column("Student")
    table.add_column("Row", justify="right")
    table.add_column("Score", justify="right")
    cats = [m.category for m in result.entries[0].mappings] if result.entries else list(ALL_CATEGORIES)
    for cat in cats:
        table.add_column(cat.value, justify="right")

    for e in result.entries:
        cells = []
        for m in e.mappings:
            if m.will_insert:
                cells.append(f"[green]{m.value:.2f}[/green]")
            elif m.value is not None and e.found:
                cells.append(f"[yellow]{m.value:g}[/yellow]")
            else:
                cells.append("-")
        row = "-" if e.row is None else str(e.row + 1)
        table.add_row(e.student_name if e.found else f"[red]{e.student_name}[/red]", row, f"{e.score:.2f}", *cells)
    return table


def _categories(category: Optional[List[MarkCategory]]) -> Optional[List[MarkCategory]]:
    return list(category) if category else None


# ----------------------------- DETECT --------------------------------
@app.command()
def detect(
    workbook: str = typer.Argument(..., help=_WORKBOOK_HELP),
    sheet: Optional[str] = typer.Option(None, "--sheet", "-s", help="Worksheet name (default: active sheet)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """
    Detect the identifier, name and mark columns of a gradesheet.
    """
    _setup_logging(verbose)
    defaults = _load_defaults(config)
    _, structure = _open_and_detect(workbook, sheet, defaults)
    rprint(_structure_table(structure))


# ----------------------------- PREVIEW -------------------------------
@app.command()
def preview(
    workbook: str = typer.Argument(..., help=_WORKBOOK_HELP),
    records: str = typer.Argument(..., help=_RECORDS_HELP),
    sheet: Optional[str] = typer.Option(None, "--sheet", "-s", help="Worksheet name (default: active sheet)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    category: Optional[List[MarkCategory]] = typer.Option(None, "--category", help="Only these mark categories (repeatable)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """
    Show which marks would be written where, without touching the workbook.
    """
    _setup_logging(verbose)
    defaults = _load_defaults(config)
    recs = _load_records(records)
    book, structure = _open_and_detect(workbook, sheet, defaults)

    result = preview_insertion(recs, structure, book.grid, _categories(category), defaults)
    rprint(_preview_table(result))
    s = result.summary
    rprint(f"[green]Found:[/green] {s.students_found}/{s.total_students}  "
           f"[green]Marks to insert:[/green] {s.total_marks_to_insert}")
    if result.not_found_students:
        rprint(f"[yellow]Not found:[/yellow] {', '.join(result.not_found_students)}")


# ----------------------------- COMMIT --------------------------------
@app.command()
def commit(
    workbook: str = typer.Argument(..., help=_WORKBOOK_HELP),
    records: str = typer.Argument(..., help=_RECORDS_HELP),
    out: Optional[str] = typer.Option(None, "--out", "-o", help="Save to this path instead of overwriting the workbook"),
    sheet: Optional[str] = typer.Option(None, "--sheet", "-s", help="Worksheet name (default: active sheet)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    category: Optional[List[MarkCategory]] = typer.Option(None, "--category", help="Only these mark categories (repeatable)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """
    Write the extracted marks into the workbook (best effort, saved once).
    """
    _setup_logging(verbose)
    defaults = _load_defaults(config)
    recs = _load_records(records)
    book, structure = _open_and_detect(workbook, sheet, defaults, out_path=out)

    try:
        outcome = commit_insertion(recs, structure, book.grid, writer=book,
                                   categories=_categories(category), defaults=defaults)
    except GradesheetError as e:
        rprint(f"[red]Commit failed:[/red] {e}")
        raise typer.Exit(code=2)

    rprint(f"[green]Inserted:[/green] {outcome.success} mark(s) for {outcome.students_updated} student(s)")
    if outcome.not_found_students:
        rprint(f"[yellow]Not found ({outcome.not_found}):[/yellow] {', '.join(outcome.not_found_students)}")
    if outcome.failed:
        rprint(f"[red]Failed writes:[/red] {outcome.failed}")
    rprint(f"[green]Wrote:[/green] {out or workbook}")


# ------------------------------- MAIN --------------------------------
def app_main() -> None:
    """Entry point for console_scripts."""
    try:
        app()
    except KeyboardInterrupt:
        rprint("\n[red]Interrupted[/red]")
        sys.exit(130)


if __name__ == "__main__":
    app_main()
