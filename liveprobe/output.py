from __future__ import annotations

"""Terminal rendering helpers for liveprobe.

This module contains presentation-only logic for scan reports and the stored
reports catalog. It works on serialized reports (`ScanReport.to_dict()`), so
fresh scans and reports loaded from the database render the same way.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .core import fmt_td
from .storage import count_reports, get_db_path

console = Console()
err_console = Console(stderr=True)

KV_FIELD_WIDTH = 22
CANDIDATE_WIDTH = 32
CODE_WIDTH = 6
MAX_ERROR_ROWS = 25


def _table_width() -> int:
    try:
        return max(80, int(console.size.width) - 2)
    except Exception:
        return 100


def _new_table(
    *,
    title: Optional[str] = None,
    box_style: Any = box.SIMPLE,
    show_header: bool = True,
    header_style: Optional[str] = None,
) -> Table:
    return Table(
        title=title,
        box=box_style,
        show_header=show_header,
        header_style=header_style,
        title_justify="left",
        width=_table_width(),
        expand=False,
        pad_edge=False,
    )


def _fmt_status(code: Any) -> str:
    if code is None:
        return "[red]-[/red]"
    try:
        value = int(code)
    except (TypeError, ValueError):
        return str(code)
    if value >= 400:
        return f"[yellow]{value}[/yellow]" if value in (401, 403) else f"[red]{value}[/red]"
    if value >= 300:
        return f"[cyan]{value}[/cyan]"
    return f"[green]{value}[/green]"


def _fmt_size(value: Any) -> str:
    if value is None:
        return "-"
    try:
        size = int(value)
    except (TypeError, ValueError):
        return str(value)
    if size >= 1024 * 1024:
        return f"{size / (1024 * 1024):.1f}M"
    if size >= 1024:
        return f"{size / 1024:.1f}K"
    return str(size)


def _fmt_ips(values: Any, limit: int = 3) -> str:
    ips = [str(v) for v in values or [] if str(v).strip()]
    if not ips:
        return "-"
    shown = ", ".join(ips[:limit])
    if len(ips) > limit:
        shown += f" (+{len(ips) - limit})"
    return shown


def _summary_line(report: Dict[str, Any]) -> str:
    summary = report.get("summary") or {}
    parts = [
        f"[bold]Target:[/bold] {report.get('target', '-')}",
        f"[bold]Mode:[/bold] {report.get('kind', '-')}/{report.get('profile', '-')}",
        f"[bold]Total:[/bold] {summary.get('total', 0)}",
        f"[green]Found:[/green] {summary.get('found', 0)}",
        f"[bold]Not found:[/bold] {summary.get('not_found', 0)}",
        f"[red]Errors:[/red] {summary.get('errors', 0)}",
    ]
    if report.get("truncated"):
        parts.append(f"[yellow]Truncated:[/yellow] {report.get('requested_candidates')} requested")
    if report.get("state") == "timed-out":
        parts.append("[yellow]State:[/yellow] timed-out")
    return "  ".join(parts)


def _found_table(report: Dict[str, Any]) -> Table:
    kind = str(report.get("kind") or "")
    table = _new_table(title="Found", box_style=box.SIMPLE_HEAVY, header_style="bold cyan")
    if kind == "ports":
        table.add_column("Port", justify="right", style="cyan", width=CODE_WIDTH, no_wrap=True)
        table.add_column("Service", overflow="fold")
        for item in report.get("found") or []:
            table.add_row(str(item.get("candidate")), str(item.get("service") or "unknown"))
    elif kind == "paths":
        table.add_column("Path", style="cyan", width=CANDIDATE_WIDTH, overflow="fold")
        table.add_column("Code", justify="center", width=CODE_WIDTH, no_wrap=True)
        table.add_column("Size", justify="right", width=8, no_wrap=True)
        table.add_column("Type / Location", overflow="fold")
        for item in report.get("found") or []:
            detail = item.get("location") or item.get("content_type") or "-"
            if item.get("title"):
                detail = f"{detail} ({item['title']})"
            table.add_row(
                str(item.get("candidate")),
                _fmt_status(item.get("http_status")),
                _fmt_size(item.get("size")),
                str(detail),
            )
    else:
        table.add_column("Host", style="cyan", width=CANDIDATE_WIDTH, overflow="fold")
        table.add_column("IP", overflow="fold")
        table.add_column("HTTP", justify="center", width=CODE_WIDTH, no_wrap=True)
        table.add_column("Title", overflow="ellipsis", no_wrap=True)
        for item in report.get("found") or []:
            table.add_row(
                str(item.get("host") or item.get("candidate")),
                _fmt_ips(item.get("ips")),
                _fmt_status(item.get("http_status")) if "http_status" in item else "-",
                str(item.get("title") or "-"),
            )
    return table


def _errors_table(report: Dict[str, Any]) -> Optional[Table]:
    errors = report.get("errors") or []
    if not errors:
        return None
    table = _new_table(title="Errors", box_style=box.SIMPLE, header_style="bold red")
    table.add_column("Candidate", style="red", width=CANDIDATE_WIDTH, overflow="fold")
    table.add_column("Reason", overflow="fold")
    # Cancelled entries share one reason; list the first few and count the rest.
    for item in errors[:MAX_ERROR_ROWS]:
        table.add_row(str(item.get("candidate")), str(item.get("reason") or "-"))
    if len(errors) > MAX_ERROR_ROWS:
        table.add_row("...", f"{len(errors) - MAX_ERROR_ROWS} more")
    return table


def output(report: Optional[Dict[str, Any]], elapsed: Optional[timedelta] = None) -> None:
    """Render the tables shown after a scan."""
    if not report:
        err_console.print("[yellow]No results to display.[/yellow]")
        return

    if report.get("found"):
        console.print(_found_table(report))
    else:
        err_console.print("[yellow]No live candidates found.[/yellow]")

    errors = _errors_table(report)
    if errors is not None:
        console.print(errors)

    for note in report.get("notes") or []:
        console.print(f"[yellow]Note:[/yellow] {note}")

    if elapsed is None and report.get("elapsed") is not None:
        elapsed = timedelta(seconds=float(report["elapsed"]))
    console.print(Panel.fit(f"{_summary_line(report)}  [bold]Elapsed:[/bold] {fmt_td(elapsed)}", border_style="cyan"))


def print_scan_status(settings: Dict[str, Any]) -> None:
    table = _new_table(title="Scan Status", box_style=box.MINIMAL_DOUBLE_HEAD)
    table.add_column("Field", style="cyan", width=KV_FIELD_WIDTH, no_wrap=True)
    table.add_column("Value", overflow="fold")

    labels = [
        ("mode", "Mode"),
        ("profile", "Profile"),
        ("timeout", "Probe Timeout (s)"),
        ("deadline", "Global Deadline (s)"),
        ("threads", "Concurrency"),
        ("dns", "DNS"),
        ("useragent", "User-Agent"),
        ("wordlist", "Wordlist"),
    ]
    for key, label in labels:
        value = settings.get(key)
        table.add_row(label, "-" if value is None or value == "" else str(value))
    table.add_row("Reports DB", str(get_db_path()))
    table.add_row("Reports Count", str(count_reports()))

    console.print(table)


def show_reports_catalog(reports: List[Dict[str, Any]]) -> None:
    if not reports:
        err_console.print("[yellow]No reports found in database.[/yellow]")
        return

    table = _new_table(title="Stored Reports", box_style=box.SIMPLE_HEAVY)
    table.add_column("ID", justify="right", style="cyan", width=5, no_wrap=True)
    table.add_column("Created", width=19, no_wrap=True)
    table.add_column("Target", overflow="fold")
    table.add_column("Mode", width=20, no_wrap=True)
    table.add_column("Found", justify="right", width=11, no_wrap=True)
    table.add_column("State", width=10, no_wrap=True)
    table.add_column("Elapsed", justify="right", width=10, no_wrap=True)

    for report in reports:
        elapsed = "-"
        if report.get("elapsed_seconds") is not None:
            elapsed = fmt_td(timedelta(seconds=float(report["elapsed_seconds"])))
        table.add_row(
            str(report.get("id")),
            str(report.get("created_at")),
            str(report.get("target")),
            f"{report.get('mode')}/{report.get('profile')}",
            f"{report.get('found_count')}/{report.get('total_count')}",
            str(report.get("state")),
            elapsed,
        )

    console.print(table)
