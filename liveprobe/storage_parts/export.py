from __future__ import annotations

import html
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..version import __version__

EXPORT_FORMATS = ("html", "json")

_DETAIL_KEYS = {
    "ports": ("service",),
    "paths": ("http_status", "size", "content_type", "location", "title"),
    "subdomains": ("ips", "http_status", "title"),
}

_HTML_STYLE = """
body { font-family: -apple-system, Segoe UI, Helvetica, Arial, sans-serif; margin: 2rem; color: #1f2933; }
h1 { font-size: 1.4rem; margin-bottom: .2rem; }
.meta { color: #52606d; margin-bottom: 1.2rem; }
.summary span { display: inline-block; margin-right: 1rem; padding: .2rem .6rem; border-radius: 4px; background: #e4e7eb; }
.summary .found { background: #c6f7e2; }
.summary .errors { background: #ffe3e3; }
table { border-collapse: collapse; width: 100%; margin: .6rem 0 1.6rem; }
th, td { text-align: left; padding: .35rem .6rem; border-bottom: 1px solid #e4e7eb; font-size: .9rem; }
th { background: #f5f7fa; }
.note { color: #b44d12; }
"""


def _safe_name(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", text).strip("_") or "report"


def _fmt_cell(value: Any) -> str:
    if value is None or value == "":
        return "-"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value) or "-"
    return str(value)


def rows_for_export(report: Dict[str, Any], section: str) -> List[Dict[str, str]]:
    """Flatten one report section (`found`, `not_found`, `errors`) into display rows."""
    keys = _DETAIL_KEYS.get(str(report.get("kind") or ""), ())
    rows: List[Dict[str, str]] = []
    for item in report.get(section) or []:
        row = {"candidate": _fmt_cell(item.get("candidate"))}
        if section == "errors":
            row["reason"] = _fmt_cell(item.get("reason"))
        else:
            for key in keys:
                row[key] = _fmt_cell(item.get(key))
        rows.append(row)
    return rows


def _html_table(title: str, rows: List[Dict[str, str]]) -> str:
    if not rows:
        return f"<h2>{html.escape(title)}</h2><p>None.</p>"
    headers = list(rows[0].keys())
    head = "".join(f"<th>{html.escape(h.replace('_', ' ').title())}</th>" for h in headers)
    body = "".join("<tr>" + "".join(f"<td>{html.escape(row.get(h, '-'))}</td>" for h in headers) + "</tr>" for row in rows)
    return f"<h2>{html.escape(title)} ({len(rows)})</h2><table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>"


def _build_html_report(stored: Dict[str, Any]) -> str:
    report = stored.get("report") or {}
    summary = report.get("summary") or {}
    title = f"liveprobe report #{stored.get('id', '-')} - {report.get('target', '-')}"
    notes = "".join(f"<p class='note'>{html.escape(str(n))}</p>" for n in report.get("notes") or [])
    parts = [
        "<!DOCTYPE html><html><head><meta charset='utf-8'>",
        f"<title>{html.escape(title)}</title><style>{_HTML_STYLE}</style></head><body>",
        f"<h1>{html.escape(title)}</h1>",
        "<div class='meta'>"
        f"Mode: {html.escape(str(report.get('kind', '-')))} &middot; "
        f"Profile: {html.escape(str(report.get('profile', '-')))} &middot; "
        f"State: {html.escape(str(report.get('state', '-')))} &middot; "
        f"Created: {html.escape(str(stored.get('created_at', '-')))} &middot; "
        f"liveprobe v{html.escape(__version__)}</div>",
        "<div class='summary'>"
        f"<span>Total: {int(summary.get('total') or 0)}</span>"
        f"<span class='found'>Found: {int(summary.get('found') or 0)}</span>"
        f"<span>Not found: {int(summary.get('not_found') or 0)}</span>"
        f"<span class='errors'>Errors: {int(summary.get('errors') or 0)}</span>"
        f"<span>Truncated: {'yes' if report.get('truncated') else 'no'}</span>"
        "</div>",
        notes,
        _html_table("Found", rows_for_export(report, "found")),
        _html_table("Errors", rows_for_export(report, "errors")),
        "</body></html>",
    ]
    return "".join(parts)


def export_report(stored: Dict[str, Any], export_format: str, output_path: Optional[str] = None) -> str:
    """Write a stored report (as returned by `get_report`) to disk and return the file path."""
    fmt = str(export_format or "").strip().lower()
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {export_format!r} (use {', '.join(EXPORT_FORMATS)})")

    report = stored.get("report") or {}
    target = _safe_name(str(report.get("target") or stored.get("target") or "scan"))
    report_id = stored.get("id", "unknown")

    out = Path(output_path) if output_path else Path.cwd() / f"{target}_report_{report_id}.{fmt}"
    if out.exists() and out.is_dir():
        raise IsADirectoryError(f"Output path is a directory: {out}")
    out.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "json":
        out.write_text(json.dumps(stored, ensure_ascii=False, indent=2), encoding="utf-8")
    else:
        out.write_text(_build_html_report(stored), encoding="utf-8")
    return str(out)
