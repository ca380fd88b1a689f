from __future__ import annotations

import json
import sys
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from ..core import DEFAULT_PROFILES, SORT_KEYS, normalize_target
from ..output import console, err_console


def print_json_output(data: Any) -> None:
    try:
        sys.stdout.write(json.dumps(data, ensure_ascii=False, indent=2))
        sys.stdout.write("\n")
    except BrokenPipeError:
        # Piped output (e.g. `| head`) closed early.
        return


def normalize_target_input(kind: str, value: str) -> Optional[str]:
    """Normalize a raw CLI target for `kind`, or None when it is unusable.

    Ports and subdomain scans accept URLs too: the host part is kept, and a
    leading `www.` is dropped for subdomain scans.
    """
    raw = (value or "").strip()
    if not raw:
        return None
    if kind != "paths" and "://" in raw:
        raw = urlparse(raw).hostname or ""
    if kind == "subdomains" and raw.lower().startswith("www."):
        raw = raw[4:]
    try:
        return normalize_target(kind, raw)
    except ValueError:
        return None


def read_stdin_target() -> Optional[str]:
    if sys.stdin.isatty():
        return None
    for line in sys.stdin.read().splitlines():
        if line.strip():
            return line.strip()
    return None


def validate_sort(sort: Optional[str]) -> Optional[str]:
    if sort is None:
        return None
    key = sort.strip().lower()
    if key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {sort!r} (choose from: {', '.join(SORT_KEYS)})")
    return key


def scan_settings(
    *,
    mode: str,
    profile: Optional[str],
    custom: Optional[str],
    extensions: Optional[str],
    wordlist: Optional[str],
    dns: str,
    useragent: str,
    timeout: float,
    threads: int,
    deadline: float,
    sort: Optional[str],
    http_check: bool,
    detect_wildcard: bool,
) -> Dict[str, Any]:
    """Effective settings stored alongside a saved report."""
    return {
        "mode": mode,
        "profile": profile or DEFAULT_PROFILES[mode],
        "custom": custom,
        "extensions": extensions,
        "wordlist": wordlist,
        "dns": dns,
        "useragent": useragent,
        "timeout": timeout,
        "threads": threads,
        "deadline": deadline,
        "sort": sort,
        "http_check": http_check,
        "detect_wildcard": detect_wildcard,
    }


def should_save_scan(report: Dict[str, Any], no_save: bool) -> bool:
    return not no_save and int(report.get("total_candidates") or 0) > 0


def print_update_check(info: Dict[str, Any], current: str) -> None:
    if info.get("ok"):
        latest = str(info.get("latest") or current)
        if info.get("update_available"):
            console.print(
                f"[yellow]Update available:[/yellow] current={current} latest={latest} "
                "[cyan](pip install -U liveprobe)[/cyan]"
            )
        else:
            console.print(f"[green]You are up-to-date:[/green] v{current}")
        return
    reason = str(info.get("error") or "unknown error")
    err_console.print(f"[yellow]Update check failed:[/yellow] {reason}")
