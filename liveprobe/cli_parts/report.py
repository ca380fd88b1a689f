from __future__ import annotations

import sys
from datetime import timedelta
from typing import Any, Dict, List, Optional

from rich.panel import Panel

from ..output import console, err_console, output, show_reports_catalog
from ..storage import EXPORT_FORMATS, delete_report, export_report, get_report, list_reports, reset_reports


def parse_report_ids(raw_ids: str) -> List[int]:
    ids: List[int] = []
    seen: set[int] = set()
    for chunk in raw_ids.split(","):
        value = chunk.strip()
        if not value:
            continue
        if not value.isdigit():
            raise ValueError(f"Invalid report id: {value}")
        report_id = int(value)
        if report_id not in seen:
            seen.add(report_id)
            ids.append(report_id)
    if not ids:
        raise ValueError("No report IDs provided")
    return ids


def filter_reports(reports: List[Dict[str, Any]], term: str) -> List[Dict[str, Any]]:
    if not term:
        return reports
    needle = term.lower()
    return [r for r in reports if needle in str(r.get("target", "")).lower()]


def show_single_report(stored: Dict[str, Any]) -> None:
    elapsed = None
    if stored.get("elapsed_seconds") is not None:
        elapsed = timedelta(seconds=float(stored["elapsed_seconds"]))

    console.print(
        Panel.fit(
            f"[bold]Report[/bold] #{stored['id']}  [bold]Target:[/bold] {stored['target']}  "
            f"[bold]Created:[/bold] {stored['created_at']}  [bold]Mode:[/bold] {stored['mode']}/{stored['profile']}",
            border_style="blue",
        )
    )
    output(stored.get("report"), elapsed)


def _export_many(report_ids: List[int], fmt: str) -> int:
    exported = 0
    for report_id in report_ids:
        stored = get_report(str(report_id))
        if not stored:
            err_console.print(f"[red]Report not found:[/red] {report_id}")
            continue
        try:
            path = export_report(stored, fmt)
        except OSError as exc:
            err_console.print(f"[red]Export failed for #{report_id}:[/red] {exc}")
            continue
        console.print(f"[green]Export completed:[/green] {path}")
        exported += 1
    return exported


def report_mode(report_selector: Optional[str]) -> None:
    """Report manager used by `--report`.

    Without a TTY a concrete selector (`latest`, id, target) shows that report
    and anything else prints the catalog.
    """
    if not sys.stdin.isatty():
        if report_selector and report_selector not in {"choose", "list"}:
            stored = get_report(report_selector)
            if not stored:
                err_console.print(f"[red]Report not found:[/red] {report_selector}")
                return
            show_single_report(stored)
            return
        show_reports_catalog(list_reports(limit=100))
        err_console.print("[yellow]Interactive report menu requires a TTY.[/yellow]")
        return

    if report_selector and report_selector not in {"choose", "list"}:
        stored = get_report(report_selector)
        if stored:
            show_single_report(stored)
        else:
            err_console.print(f"[red]Report not found:[/red] {report_selector}")

    actions = {"1": "show", "2": "delete", "3": "export", "4": "search", "99": "reset"}
    search_term = ""
    try:
        while True:
            show_reports_catalog(filter_reports(list_reports(limit=100), search_term))

            console.print("1 show")
            console.print("2 delete")
            console.print("3 export")
            console.print("4 search")
            console.print("99 reset db")
            action = actions.get(input("Select action [1-4,99] (Enter to exit): ").strip(), "")
            if not action:
                return

            if action == "reset":
                confirm = input("Type RESET to confirm DB reset (all reports will be deleted): ").strip()
                if confirm != "RESET":
                    console.print("[yellow]Reset cancelled.[/yellow]")
                    continue
                console.print(f"[green]DB reset completed.[/green] Removed reports: {reset_reports()}")
                continue

            if action == "search":
                search_term = input("Search target (partial, empty = reset): ").strip()
                continue

            if action == "show":
                selector = input("Report ID or target [latest]: ").strip() or "latest"
                stored = get_report(selector)
                if not stored:
                    err_console.print(f"[red]Report not found:[/red] {selector}")
                    continue
                show_single_report(stored)
                continue

            try:
                report_ids = parse_report_ids(input("Report IDs (comma-separated): ").strip())
            except ValueError as exc:
                err_console.print(f"[red]{exc}[/red]")
                continue

            if action == "delete":
                deleted = 0
                for report_id in report_ids:
                    if delete_report(report_id):
                        deleted += 1
                        console.print(f"[green]Report deleted:[/green] #{report_id}")
                    else:
                        err_console.print(f"[red]Report not found:[/red] {report_id}")
                console.print(f"[cyan]Delete summary:[/cyan] {deleted}/{len(report_ids)} deleted")
                continue

            fmt = input(f"Export format [{'/'.join(EXPORT_FORMATS)}] (html): ").strip().lower() or "html"
            if fmt not in EXPORT_FORMATS:
                err_console.print(f"[red]Unsupported export format:[/red] {fmt}")
                continue
            exported = _export_many(report_ids, fmt)
            console.print(f"[cyan]Export summary:[/cyan] {exported}/{len(report_ids)} exported")
    except KeyboardInterrupt:
        console.print("\n[yellow]Report mode interrupted.[/yellow]")
        return
