from __future__ import annotations

import json
import os
import sqlite3
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional


def _harden_user_file(path: Path) -> None:
    try:
        os.chmod(path, 0o600)
    except OSError:
        pass


def get_db_path() -> Path:
    custom = os.getenv("LIVEPROBE_DB")
    if custom:
        path = Path(custom).expanduser().resolve()
    else:
        path = Path.home() / ".liveprobe" / "reports.db"
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def init_db(db_path: Optional[Path] = None) -> Path:
    """Create the `scans` and `settings` tables if missing and return the DB path."""
    path = db_path or get_db_path()
    conn = sqlite3.connect(path)
    try:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS scans (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                target TEXT NOT NULL,
                mode TEXT NOT NULL,
                profile TEXT NOT NULL,
                state TEXT NOT NULL,
                settings_json TEXT NOT NULL,
                elapsed_seconds REAL,
                found_count INTEGER NOT NULL,
                total_count INTEGER NOT NULL,
                report_json TEXT NOT NULL
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_scans_created ON scans(created_at DESC)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_scans_target ON scans(target)")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
            """
        )
        conn.commit()
    finally:
        conn.close()
    _harden_user_file(path)
    return path


def save_scan(
    report: Dict[str, Any],
    settings: Dict[str, Any],
    elapsed: Optional[timedelta] = None,
    db_path: Optional[Path] = None,
) -> int:
    """Persist one serialized `ScanReport` (see `ScanReport.to_dict`)."""
    path = init_db(db_path)
    summary = report.get("summary") or {}
    elapsed_seconds = elapsed.total_seconds() if elapsed else report.get("elapsed")

    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO scans (target, mode, profile, state, settings_json, elapsed_seconds,
                               found_count, total_count, report_json)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(report.get("target") or ""),
                str(report.get("kind") or ""),
                str(report.get("profile") or ""),
                str(report.get("state") or ""),
                json.dumps(settings, ensure_ascii=False),
                elapsed_seconds,
                int(summary.get("found") or 0),
                int(report.get("total_candidates") or 0),
                json.dumps(report, ensure_ascii=False),
            ),
        )
        conn.commit()
        return int(cur.lastrowid)
    finally:
        conn.close()


def list_reports(limit: int = 50, db_path: Optional[Path] = None) -> List[Dict[str, Any]]:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        rows = conn.execute(
            """
            SELECT id, created_at, target, mode, profile, state, found_count, total_count, elapsed_seconds
            FROM scans
            ORDER BY id DESC
            LIMIT ?
            """,
            (limit,),
        ).fetchall()
        return [dict(r) for r in rows]
    finally:
        conn.close()


def count_reports(db_path: Optional[Path] = None) -> int:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    try:
        row = conn.execute("SELECT COUNT(*) FROM scans").fetchone()
        return int(row[0]) if row else 0
    finally:
        conn.close()


def get_report(selector: Optional[str], db_path: Optional[Path] = None) -> Optional[Dict[str, Any]]:
    """Fetch a stored scan by `latest`, numeric id, or target (newest match)."""
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row

    if selector is None or selector == "latest":
        query = "SELECT * FROM scans ORDER BY id DESC LIMIT 1"
        params: tuple[Any, ...] = ()
    elif selector.isdigit():
        query = "SELECT * FROM scans WHERE id = ?"
        params = (int(selector),)
    else:
        query = "SELECT * FROM scans WHERE target = ? ORDER BY id DESC LIMIT 1"
        params = (selector,)

    try:
        row = conn.execute(query, params).fetchone()
        if not row:
            return None
        data = dict(row)
        data["settings"] = json.loads(data.pop("settings_json"))
        data["report"] = json.loads(data.pop("report_json"))
        return data
    finally:
        conn.close()


def delete_report(report_id: int, db_path: Optional[Path] = None) -> bool:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        cur.execute("DELETE FROM scans WHERE id = ?", (report_id,))
        conn.commit()
        return cur.rowcount > 0
    finally:
        conn.close()


def reset_reports(db_path: Optional[Path] = None) -> int:
    """Delete all stored scan reports and return the number of removed rows."""
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        cur.execute("DELETE FROM scans")
        conn.commit()
        return int(cur.rowcount or 0)
    finally:
        conn.close()


def get_setting(key: str, db_path: Optional[Path] = None) -> Optional[str]:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    try:
        row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return str(row[0]) if row and row[0] is not None else None
    finally:
        conn.close()


def get_settings(prefix: Optional[str] = None, db_path: Optional[Path] = None) -> Dict[str, Optional[str]]:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    try:
        if prefix:
            rows = conn.execute(
                "SELECT key, value FROM settings WHERE key LIKE ? ORDER BY key",
                (f"{prefix}%",),
            ).fetchall()
        else:
            rows = conn.execute("SELECT key, value FROM settings ORDER BY key").fetchall()
        return {str(k): (None if v is None else str(v)) for k, v in rows}
    finally:
        conn.close()


def set_setting(key: str, value: Optional[str], db_path: Optional[Path] = None) -> None:
    path = init_db(db_path)
    conn = sqlite3.connect(path)
    try:
        conn.execute(
            """
            INSERT INTO settings (key, value, updated_at)
            VALUES (?, ?, datetime('now'))
            ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=datetime('now')
            """,
            (key, value),
        )
        conn.commit()
    finally:
        conn.close()
