from __future__ import annotations

"""Compatibility facade for the liveprobe engine.

Public imports remain stable while implementation lives in `liveprobe.engine`.
"""

from .engine.candidates import KINDS, MAX_CANDIDATES, build_candidates, load_wordlist, parse_port_spec
from .engine.catalog import DEFAULT_CATALOG, DEFAULT_PROFILES, ProfileCatalog
from .engine.errors import DeadlineExceeded, InvalidProfile, LiveprobeError, ProbeError
from .engine.models import (
    DEFAULT_CONCURRENCY,
    DEFAULT_GLOBAL_DEADLINE,
    DEFAULT_PROBE_TIMEOUT,
    CandidateSet,
    JobState,
    Outcome,
    OutcomeStatus,
    ScanJob,
    ScanReport,
    ScanRun,
    TimeoutPolicy,
)
from .engine.probes import DnsARecordProbe, HttpPathProbe, Probe, TcpConnectProbe
from .engine.report import SORT_KEYS, assemble, assemble_run
from .engine.runtime import (
    LIVEPROBE,
    _normalize_domain,
    _run_async,
    _run_coro_sync,
    fmt_td,
    logger,
    normalize_target,
    pick_user_agent,
    set_debug,
)
from .engine.scanner import ScanEngine, run_job

__all__ = [
    "LIVEPROBE",
    "KINDS",
    "MAX_CANDIDATES",
    "DEFAULT_CONCURRENCY",
    "DEFAULT_GLOBAL_DEADLINE",
    "DEFAULT_PROBE_TIMEOUT",
    "DEFAULT_CATALOG",
    "DEFAULT_PROFILES",
    "SORT_KEYS",
    "CandidateSet",
    "DeadlineExceeded",
    "DnsARecordProbe",
    "HttpPathProbe",
    "InvalidProfile",
    "JobState",
    "LiveprobeError",
    "Outcome",
    "OutcomeStatus",
    "Probe",
    "ProbeError",
    "ProfileCatalog",
    "ScanEngine",
    "ScanJob",
    "ScanReport",
    "ScanRun",
    "TcpConnectProbe",
    "TimeoutPolicy",
    "assemble",
    "assemble_run",
    "build_candidates",
    "fmt_td",
    "load_wordlist",
    "logger",
    "normalize_target",
    "parse_port_spec",
    "pick_user_agent",
    "run_job",
    "set_debug",
    "_normalize_domain",
    "_run_async",
    "_run_coro_sync",
]
