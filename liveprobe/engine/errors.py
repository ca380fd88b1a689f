from __future__ import annotations

"""Exception taxonomy shared by the engine and its callers."""

from typing import Any, Optional


class LiveprobeError(Exception):
    """Base class for every error raised by liveprobe."""


class InvalidProfile(LiveprobeError, ValueError):
    """Candidate generation failed: unknown profile, bad range, bad wordlist.

    Raised before any probe is dispatched, so a bad profile never produces a
    partial scan.
    """


class ProbeError(LiveprobeError):
    """Probe-internal fault for a single candidate.

    Never escapes the engine: it is caught at the per-probe boundary and
    recorded as an `error` outcome with the exception message as reason.
    """


class DeadlineExceeded(LiveprobeError):
    """The job hit its global deadline with candidates still pending.

    Only raised on explicit request (`ScanReport.raise_for_deadline()`); the
    partial report is available as `report`.
    """

    def __init__(self, message: str, report: Optional[Any] = None):
        super().__init__(message)
        self.report = report
