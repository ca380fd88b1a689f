from __future__ import annotations

"""Command-line interface for liveprobe.

This module translates CLI flags into runtime settings, executes scans through
`liveprobe.core`, and handles setup/report workflows backed by local storage.
"""

import argparse
import os
import sys
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .cli_parts.report import report_mode as _report_mode
from .cli_parts.scan_flow import (
    normalize_target_input as _normalize_target_input,
    print_json_output as _print_json_output,
    print_update_check as _print_update_check,
    read_stdin_target as _read_stdin_target,
    scan_settings as _scan_settings,
    should_save_scan as _should_save_scan,
    validate_sort as _validate_sort,
)
from .cli_parts.setup import load_saved_runtime_settings as _load_saved_runtime_settings, setup_mode as _setup_mode
from .cli_parts.status import render_runtime_status_panel as _render_runtime_status_panel
from .core import (
    DEFAULT_PROFILES,
    KINDS,
    SORT_KEYS,
    InvalidProfile,
    ScanReport,
    _run_async,
    _run_coro_sync,
    build_candidates,
    pick_user_agent,
    set_debug,
)
from .output import console, err_console, output, print_scan_status
from .storage import save_scan
from .version import __version__, check_latest_version


def _run_scan(
    mode: str,
    target: str,
    profile: Optional[str],
    progress_callback: Optional[Callable[[int, int], None]] = None,
    **kwargs: Any,
) -> ScanReport:
    return _run_coro_sync(_run_async(mode, target, profile, progress_callback=progress_callback, **kwargs))


def _run_with_rich_progress(mode: str, target: str, profile: Optional[str], total: int, **kwargs: Any) -> ScanReport:
    """Execute a scan with a Rich progress bar bound to the engine callback."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[bold cyan]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task_id = progress.add_task(f"Probing {mode}", total=max(total, 1))

        def cb(done: int, total_count: int) -> None:
            progress.update(task_id, total=max(total_count, 1), completed=done)

        return _run_scan(mode, target, profile, progress_callback=cb, **kwargs)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="liveprobe",
        description=(
            f"liveprobe v.{__version__} - Bounded, deadline-governed liveness probing\n"
            "CLI options > saved setup (--setup) > built-in defaults."
        ),
    )
    target_group = parser.add_argument_group("Target")
    target_group.add_argument("-t", "--target", help="Host, base URL or domain to probe. Reads stdin when omitted.")
    target_group.add_argument(
        "-m",
        "--mode",
        choices=KINDS,
        default="ports",
        help="What to probe: TCP ports, HTTP paths or DNS subdomains (default: ports).",
    )
    target_group.add_argument(
        "-p",
        "--profile",
        help=(
            "Candidate profile; combine with '+'. "
            "ports: quick/intense/all/custom, paths: common/medium/extensive/custom, "
            "subdomains: standard/extensive/custom/wordlist."
        ),
    )
    target_group.add_argument("--custom", help="Custom candidates: '80,443,8000-8010', '/admin,/login' or 'www,api'.")
    target_group.add_argument("--extensions", help="Path extensions to append, e.g. 'php,html,txt' (paths only).")
    target_group.add_argument("--wordlist", help="Subdomain wordlist path (overrides saved setup).")

    runtime_group = parser.add_argument_group("Runtime Overrides (Advanced)")
    runtime_group.add_argument("--dns", help="DNS server (overrides saved setup).")
    runtime_group.add_argument("--useragent", help="User-Agent string or 'random' (overrides saved setup).")
    runtime_group.add_argument("--timeout", type=float, help="Per-probe timeout in seconds (overrides saved setup).")
    runtime_group.add_argument("--threads", type=int, help="Concurrent probes (overrides saved setup).")
    runtime_group.add_argument("--deadline", type=float, help="Global scan deadline in seconds (overrides saved setup).")
    runtime_group.add_argument("--sort", choices=list(SORT_KEYS), help="Order of found entries.")
    runtime_group.add_argument(
        "--http-check",
        action="store_true",
        help="For subdomain scans, fetch each found host over HTTP(S) for status and title.",
    )
    runtime_group.add_argument(
        "--no-wildcard",
        action="store_true",
        help="Skip the wildcard DNS check before subdomain scans.",
    )

    setup_group = parser.add_argument_group("Setup and Reports")
    setup_group.add_argument("--setup", action="store_true", help="Interactive setup: save runtime defaults in the local DB.")
    setup_group.add_argument(
        "--report",
        nargs="?",
        const="choose",
        help="Report mode: 'latest', an id or a target; without value opens the menu (show/delete/export/search).",
    )
    setup_group.add_argument("--check-update", action="store_true", help="Check if a newer liveprobe version is on PyPI.")

    output_group = parser.add_argument_group("Output")
    output_group.add_argument("--silent", action="store_true", help="Silent mode (hide progress and status panel).")
    output_group.add_argument("--json", action="store_true", help="JSON-only output (forces --silent).")
    output_group.add_argument("--status", action="store_true", help="Print effective runtime settings and continue.")
    output_group.add_argument("--debug", action="store_true", help="Debug logging on stderr.")
    output_group.add_argument("--no-save", action="store_true", help="Do not store the report in the local DB.")
    return parser


def _effective_settings(args: argparse.Namespace, saved: Dict[str, Any]) -> Dict[str, Any]:
    """Layer CLI options over saved setup; saved setup already carries defaults."""

    def pick(name: str) -> Any:
        value = getattr(args, name)
        return saved[name] if value is None else value

    return {
        "dns": args.dns or saved["dns"],
        "useragent": args.useragent or saved["useragent"],
        "timeout": float(pick("timeout")),
        "threads": int(pick("threads")),
        "deadline": float(pick("deadline")),
        "wordlist": pick("wordlist"),
    }


def main(argv: Optional[list] = None) -> int:
    """CLI entrypoint.

    This function is responsible for argument parsing, config layering
    (CLI > saved setup > built-in defaults), mode dispatch and result handling.
    Returns a process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.json:
        args.silent = True
    if args.debug:
        set_debug(True)

    if args.setup:
        _setup_mode()
        return 0
    if args.check_update:
        _print_update_check(check_latest_version(current=__version__), __version__)
        return 0
    if args.report is not None:
        _report_mode(args.report)
        return 0

    saved = _load_saved_runtime_settings()
    effective = _effective_settings(args, saved)
    for name in ("timeout", "threads", "deadline"):
        if effective[name] <= 0:
            err_console.print(f"[red]--{name} must be positive.[/red]")
            return 2

    mode = args.mode
    profile = args.profile or DEFAULT_PROFILES[mode]
    # A saved wordlist only matters when the profile asks for it.
    wordlist = effective["wordlist"] if mode == "subdomains" else None
    effective_useragent = pick_user_agent(effective["useragent"])

    if args.status and not args.json:
        print_scan_status({"mode": mode, "profile": profile, **effective, "useragent": effective_useragent})

    raw_target = args.target or _read_stdin_target()
    if not raw_target:
        if args.status:
            return 0
        parser.print_help(sys.stderr)
        return 2

    target = _normalize_target_input(mode, raw_target)
    if not target:
        err_console.print(f"[red]Invalid target for {mode} scan:[/red] {raw_target}")
        return 2

    try:
        sort = _validate_sort(args.sort)
        candidate_set = build_candidates(
            mode,
            profile,
            custom=args.custom,
            extensions=args.extensions,
            wordlist=wordlist,
        )
    except (InvalidProfile, ValueError) as exc:
        err_console.print(f"[red]{exc}[/red]")
        return 2

    if not args.silent:
        _render_runtime_status_panel(
            target=target,
            mode=mode,
            profile=profile,
            candidate_count=len(candidate_set),
            timeout=effective["timeout"],
            threads=effective["threads"],
            deadline=effective["deadline"],
            dns=effective["dns"],
            useragent=effective_useragent,
            wordlist=wordlist,
            truncated=candidate_set.truncated,
        )

    scan_kwargs: Dict[str, Any] = {
        "custom": args.custom,
        "extensions": args.extensions,
        "wordlist": wordlist,
        "dns": effective["dns"],
        "useragent": effective_useragent,
        "timeout": effective["timeout"],
        "threads": effective["threads"],
        "deadline": effective["deadline"],
        "sort": sort,
        "http_check": args.http_check,
        "detect_wildcard": not args.no_wildcard,
    }

    start_time = datetime.now()
    try:
        if args.silent:
            report = _run_scan(mode, target, profile, **scan_kwargs)
        else:
            report = _run_with_rich_progress(mode, target, profile, len(candidate_set), **scan_kwargs)
    except (InvalidProfile, ValueError) as exc:
        err_console.print(f"[red]{exc}[/red]")
        return 2
    elapsed = datetime.now() - start_time

    data = report.to_dict()
    if _should_save_scan(data, args.no_save):
        settings = _scan_settings(mode=mode, profile=profile, **scan_kwargs)
        report_id = save_scan(data, settings, elapsed)
        if not args.silent:
            console.print(f"[green]Saved report #[/green]{report_id}")

    if args.json:
        _print_json_output(data)
    else:
        output(data, elapsed)
    return 0


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        try:
            sys.exit(130)
        except SystemExit:
            os._exit(130)


if __name__ == "__main__":
    run()
