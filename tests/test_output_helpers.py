from datetime import timedelta
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from rich.console import Console

import liveprobe.output as out
from liveprobe.core import fmt_td
from liveprobe.engine.models import Outcome
from liveprobe.engine.report import assemble


def _capture(monkeypatch) -> Console:
    recorder = Console(record=True, width=140, force_terminal=False)
    monkeypatch.setattr(out, "console", recorder)
    monkeypatch.setattr(out, "err_console", recorder)
    return recorder


def test_fmt_td_formats_hhmmss():
    assert fmt_td(timedelta(hours=1, minutes=2, seconds=3)) == "01:02:03"


def test_fmt_td_none():
    assert fmt_td(None) == "-"


def test_fmt_status_colors():
    assert out._fmt_status(200) == "[green]200[/green]"
    assert out._fmt_status(301) == "[cyan]301[/cyan]"
    assert out._fmt_status(403) == "[yellow]403[/yellow]"
    assert out._fmt_status(500) == "[red]500[/red]"
    assert out._fmt_status(None) == "[red]-[/red]"


def test_fmt_size_units():
    assert out._fmt_size(None) == "-"
    assert out._fmt_size(512) == "512"
    assert out._fmt_size(2048) == "2.0K"
    assert out._fmt_size(3 * 1024 * 1024) == "3.0M"


def test_fmt_ips_limits_list():
    assert out._fmt_ips([]) == "-"
    assert out._fmt_ips(["1.1.1.1", "2.2.2.2", "3.3.3.3", "4.4.4.4"]) == "1.1.1.1, 2.2.2.2, 3.3.3.3 (+1)"


def test_summary_line_mentions_truncation_and_state():
    report = assemble(
        (1, 2),
        [Outcome.live(1), Outcome.cancelled(2)],
        target="10.0.0.1",
        kind="ports",
        profile="custom",
        requested=4000,
        truncated=True,
    ).to_dict()
    line = out._summary_line(report)
    assert "4000 requested" in line
    assert "timed-out" in line
    assert "Found:[/green] 1" in line


def test_output_renders_found_errors_and_notes(monkeypatch):
    recorder = _capture(monkeypatch)
    report = assemble(
        ("www", "api", "mail"),
        [
            Outcome.live("www", {"host": "www.example.com", "ips": ["93.184.216.34"], "http_status": 200, "title": "Home"}),
            Outcome.dead("api"),
            Outcome.error("mail", "resolver unreachable: NoNameservers"),
        ],
        target="example.com",
        kind="subdomains",
        profile="standard",
        elapsed=2.0,
        notes=["Wildcard DNS detected on example.com"],
    ).to_dict()
    out.output(report)
    text = recorder.export_text()
    assert "www.example.com" in text
    assert "93.184.216.34" in text
    assert "resolver unreachable" in text
    assert "Wildcard DNS detected" in text
    assert "00:00:02" in text


def test_output_handles_empty_report(monkeypatch):
    recorder = _capture(monkeypatch)
    out.output(None)
    assert "No results" in recorder.export_text()


def test_errors_table_truncates_long_lists():
    report = {"errors": [{"candidate": i, "reason": "cancelled: deadline exceeded"} for i in range(40)]}
    table = out._errors_table(report)
    assert table is not None
    assert table.row_count == out.MAX_ERROR_ROWS + 1
    assert out._errors_table({"errors": []}) is None


def test_show_reports_catalog(monkeypatch):
    recorder = _capture(monkeypatch)
    out.show_reports_catalog(
        [
            {
                "id": 3,
                "created_at": "2026-01-01 10:00:00",
                "target": "https://example.com",
                "mode": "paths",
                "profile": "common",
                "found_count": 2,
                "total_count": 30,
                "state": "completed",
                "elapsed_seconds": 65,
            }
        ]
    )
    text = recorder.export_text()
    assert "https://example.com" in text
    assert "2/30" in text
    assert "00:01:05" in text


def test_show_reports_catalog_empty(monkeypatch):
    recorder = _capture(monkeypatch)
    out.show_reports_catalog([])
    assert "No reports found" in recorder.export_text()
