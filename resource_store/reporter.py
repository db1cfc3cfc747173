from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from resource_store.domain.detail_info import get_change_log, parse_detail_info
from resource_store.domain.status import RecordStatus
from resource_store.persistence.reconcile import ReconcileReport
from resource_store.query.criteria import PaginatedResult

DEFAULT_COLUMNS: Sequence[str] = ("id", "name", "status", "lock_version", "sync_flag")


def _status_label(value: Any) -> str:
    try:
        return RecordStatus(int(value)).label
    except (TypeError, ValueError):
        return str(value)


def format_cell(column: str, row: Dict[str, Any]) -> str:
    """
    Render one cell. Status shows its label, a null sync flag shows as clean.
    """
    value = row.get(column)
    if column == "status":
        return _status_label(value)
    if column == "sync_flag":
        return "clean" if value is None else "[red]dirty[/red]"
    if column in ("updated_at", "updated_by", "created_at", "created_by"):
        return str(get_change_log(parse_detail_info(row.get("detail_info"))).get(column) or "")
    if value is None:
        return ""
    return str(value)


def build_page_table(result: PaginatedResult, columns: Sequence[str] = DEFAULT_COLUMNS) -> Table:
    pagination = result.meta()["pagination"]
    caption = (
        f"Page {result.page}/{result.total_pages} │ "
        f"showing {pagination['display']} of {result.total:,}"
    )
    sort = result.sort or {}
    if sort:
        caption += f" │ sort {sort.get('by')} {sort.get('dir')}"

    table = Table(title="Brands", box=box.ROUNDED, caption=caption)
    for column in columns:
        justify = "right" if column in ("id", "lock_version") else "left"
        style = "cyan" if column == "id" else None
        table.add_column(column, justify=justify, style=style, no_wrap=column == "id")

    for row in result.data:
        table.add_row(*(format_cell(column, row) for column in columns))
    return table


def print_page(
    result: PaginatedResult,
    columns: Sequence[str] = DEFAULT_COLUMNS,
    console: Optional[Console] = None,
) -> None:
    """
    Render one list page as a rich table.
    """
    console = console or Console()
    if not result.data:
        console.print(
            f"[yellow]No rows on page {result.page} ({result.total:,} matching).[/yellow]"
        )
        return
    console.print(build_page_table(result, columns))


def print_reconcile_report(report: ReconcileReport, console: Optional[Console] = None) -> None:
    """
    Render a reconciliation sweep summary.
    """
    console = console or Console()
    table = Table(title="Reconciliation", box=box.ROUNDED)
    table.add_column("Scanned", justify="right", style="magenta")
    table.add_column("Synced", justify="right", style="bold green")
    table.add_column("Still dirty", justify="right", style="red")
    table.add_column("Duration (s)", justify="right", style="green")
    table.add_row(
        f"{report.scanned:,}",
        f"{report.synced:,}",
        f"{report.still_dirty:,}",
        f"{report.duration_s:.2f}",
    )
    console.print(table)

    if report.ids_failed:
        failed: List[str] = [str(aggregate_id) for aggregate_id in report.ids_failed]
        console.print(f"[red]Still dirty:[/red] {', '.join(failed)}")
