from __future__ import annotations

"""Persistence and report export facade for liveprobe.

Public storage API remains stable while implementation is split by concern:
- `liveprobe.storage_parts.db`: SQLite persistence and settings
- `liveprobe.storage_parts.export`: HTML/JSON export of stored reports
"""

from .storage_parts.db import (
    count_reports,
    delete_report,
    get_db_path,
    get_report,
    get_setting,
    get_settings,
    init_db,
    list_reports,
    reset_reports,
    save_scan,
    set_setting,
)
from .storage_parts.export import EXPORT_FORMATS, export_report

__all__ = [
    "EXPORT_FORMATS",
    "get_db_path",
    "init_db",
    "save_scan",
    "list_reports",
    "count_reports",
    "get_report",
    "delete_report",
    "reset_reports",
    "get_setting",
    "get_settings",
    "set_setting",
    "export_report",
]
