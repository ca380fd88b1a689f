from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, Optional

from rich import box
from rich.panel import Panel
from rich.table import Table

from ..core import DEFAULT_CONCURRENCY, DEFAULT_GLOBAL_DEADLINE, DEFAULT_PROBE_TIMEOUT
from ..output import console, err_console
from ..storage import get_settings, set_setting

DEFAULT_DNS = "8.8.8.8"
DEFAULT_USERAGENT = "random"


def compact_home(path: Path) -> str:
    home = Path.home().resolve()
    resolved = path.expanduser().resolve()
    try:
        rel = resolved.relative_to(home)
        return f"~/{rel.as_posix()}" if str(rel) != "." else "~"
    except ValueError:
        return str(resolved)


def _normalize_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text if text else None


def _parse_float(value: Optional[str], default: float) -> float:
    if value is None or value == "":
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_int(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def load_saved_runtime_settings() -> Dict[str, Any]:
    """Saved `runtime.*` settings merged over built-in defaults."""
    saved = get_settings("runtime.")
    return {
        "dns": saved.get("runtime.dns") or DEFAULT_DNS,
        "useragent": saved.get("runtime.useragent") or DEFAULT_USERAGENT,
        "timeout": _parse_float(saved.get("runtime.timeout"), DEFAULT_PROBE_TIMEOUT),
        "threads": _parse_int(saved.get("runtime.threads"), DEFAULT_CONCURRENCY),
        "deadline": _parse_float(saved.get("runtime.deadline"), DEFAULT_GLOBAL_DEADLINE),
        "wordlist": _normalize_optional(saved.get("runtime.wordlist")),
    }


def save_runtime_settings(config: Dict[str, Any]) -> None:
    set_setting("runtime.dns", str(config["dns"]))
    set_setting("runtime.useragent", str(config["useragent"]))
    set_setting("runtime.timeout", str(config["timeout"]))
    set_setting("runtime.threads", str(config["threads"]))
    set_setting("runtime.deadline", str(config["deadline"]))
    set_setting("runtime.wordlist", config["wordlist"])


def _render_table(config: Dict[str, Any], title: str) -> None:
    table = Table(title=title, box=box.SIMPLE_HEAVY)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Key", style="cyan")
    table.add_column("Value", overflow="fold")
    table.add_row("1", "DNS", str(config["dns"]))
    table.add_row(
        "2",
        "User-Agent",
        "random (browser)" if str(config["useragent"]).strip().lower() == "random" else str(config["useragent"]),
    )
    table.add_row("3", "Probe timeout", str(config["timeout"]))
    table.add_row("4", "Concurrency", str(config["threads"]))
    table.add_row("5", "Global deadline", str(config["deadline"]))
    table.add_row("6", "Wordlist", str(config["wordlist"]) if config["wordlist"] else "none (built-in labels)")
    console.print(table)


def _ask_positive(label: str, current: Any, cast: Any) -> Any:
    raw = input(f"{label} [{current}]: ").strip()
    if not raw:
        return current
    try:
        value = cast(raw)
    except ValueError:
        err_console.print(f"[yellow]Invalid {label.lower()}, value unchanged.[/yellow]")
        return current
    if value <= 0:
        err_console.print(f"[yellow]{label} must be positive, value unchanged.[/yellow]")
        return current
    return value


def setup_mode() -> None:
    """Interactive editor for persisted runtime defaults."""
    if not sys.stdin.isatty():
        err_console.print("[red]--setup requires interactive terminal.[/red]")
        return

    config = load_saved_runtime_settings()
    console.print(Panel.fit("liveprobe setup", border_style="blue"))
    console.print("Select ID 1-6 to edit a single field. Use 0 to save and exit.")
    console.print("Use '-' to clear the wordlist.")

    while True:
        _render_table(config, "Current Setup")
        console.print("0 save and exit")
        choice = input("Select field [1-6] or 0 to save: ").strip()
        if choice == "0":
            break
        if choice == "1":
            config["dns"] = input(f"DNS server [{config['dns']}]: ").strip() or config["dns"]
        elif choice == "2":
            config["useragent"] = input(f"User-Agent (or 'random') [{config['useragent']}]: ").strip() or config["useragent"]
        elif choice == "3":
            config["timeout"] = _ask_positive("Probe timeout", config["timeout"], float)
        elif choice == "4":
            config["threads"] = _ask_positive("Concurrency", config["threads"], int)
        elif choice == "5":
            config["deadline"] = _ask_positive("Global deadline", config["deadline"], float)
        elif choice == "6":
            raw = input(f"Wordlist path [{config['wordlist'] or ''}]: ").strip()
            if raw == "-":
                config["wordlist"] = None
            elif raw:
                config["wordlist"] = raw
        else:
            err_console.print("[red]Invalid selection.[/red] Use 0-6.")

    save_runtime_settings(config)
    _render_table(config, "Saved Setup")
