from __future__ import annotations

from typing import Optional

from rich import box
from rich.panel import Panel
from rich.table import Table

from ..output import console
from ..storage import get_db_path
from ..version import __version__
from .setup import compact_home

RUNTIME_WIDTH = 80
KEY_WIDTH = 16


def _fit_value(value: object, max_len: int = RUNTIME_WIDTH - KEY_WIDTH - 6) -> str:
    text = str(value)
    if len(text) <= max_len:
        return text
    return f"{text[: max_len - 3]}..."


def render_runtime_status_panel(
    target: str,
    mode: str,
    profile: str,
    candidate_count: int,
    timeout: float,
    threads: int,
    deadline: float,
    dns: str,
    useragent: str,
    wordlist: Optional[str] = None,
    truncated: bool = False,
) -> None:
    """Startup header with the effective runtime for one scan."""
    status = Table(box=box.MINIMAL, show_header=False, pad_edge=False, expand=False)
    status.add_column("Key", width=KEY_WIDTH, no_wrap=True)
    status.add_column("Value", no_wrap=True, overflow="crop")
    status.add_row("Target", _fit_value(target))
    status.add_row("Mode", _fit_value(f"{mode} ({profile})"))
    candidates = str(candidate_count)
    if truncated:
        candidates += " (truncated)"
    status.add_row("Candidates", candidates)
    status.add_row("Probe timeout", _fit_value(f"{timeout}s"))
    status.add_row("Concurrency", _fit_value(threads))
    status.add_row("Global deadline", _fit_value(f"{deadline}s"))
    if mode == "subdomains":
        status.add_row("DNS", _fit_value(dns))
        if wordlist:
            status.add_row("Wordlist", _fit_value(wordlist))
    if mode != "ports":
        status.add_row("User-Agent", _fit_value(useragent))
    status.add_row("Reports DB", _fit_value(compact_home(get_db_path())))

    console.print(
        Panel(status, title=f"liveprobe v{__version__}", border_style="blue", width=RUNTIME_WIDTH + 4, expand=False)
    )
