from __future__ import annotations

"""Orchestration layer for liveprobe.

This module wires the pure pieces together for both the CLI and the Python API:
- target normalization per scan kind
- candidate building (fails fast on a bad profile)
- probe construction with shared HTTP client / resolver thread pool
- engine execution and report assembly (`_run_async`, `LIVEPROBE`)

Keep it free of terminal output: rendering lives in `liveprobe.output`.
"""

import asyncio
import ipaddress
import logging
import random
import re
import socket
import string
import sys
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import AsyncExitStack
from datetime import timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import urlparse

import httpx
from dotenv import load_dotenv

from .candidates import MAX_CANDIDATES, build_candidates
from .catalog import DEFAULT_CATALOG, ProfileCatalog
from .models import (
    DEFAULT_CONCURRENCY,
    DEFAULT_GLOBAL_DEADLINE,
    DEFAULT_PROBE_TIMEOUT,
    OutcomeStatus,
    ScanJob,
    ScanReport,
)
from .probes import DnsARecordProbe, HttpPathProbe, Probe, TcpConnectProbe
from .report import assemble_run
from .scanner import ScanEngine

load_dotenv()

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:124.0) Gecko/20100101 Firefox/124.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
]

logger = logging.getLogger("liveprobe")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%H:%M:%S"))
    logger.addHandler(handler)


def set_debug(enabled: bool = True) -> None:
    logger.setLevel(logging.DEBUG if enabled else logging.INFO)


def pick_user_agent(useragent: Optional[str]) -> str:
    if useragent and useragent.strip().lower() != "random":
        return useragent.strip()
    return random.choice(USER_AGENTS)


def fmt_td(td: Optional[timedelta]) -> str:
    if td is None:
        return "-"
    total_seconds = int(td.total_seconds())
    hours, rem = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def _normalize_domain(domain: str) -> Optional[str]:
    host = (domain or "").strip().lower()
    if not host:
        return None

    host = re.sub(r"^\w+://", "", host)
    host = host.split("/", 1)[0].split(":", 1)[0].strip(".")
    if not host or " " in host:
        return None

    try:
        host = host.encode("idna").decode("ascii")
    except Exception:
        return None

    if len(host) > 253:
        return None
    labels = host.split(".")
    if any(not lbl or len(lbl) > 63 for lbl in labels):
        return None
    if any(not re.match(r"^[a-z0-9-]+$", lbl) or lbl.startswith("-") or lbl.endswith("-") for lbl in labels):
        return None
    return host


def _normalize_host(value: str) -> Optional[str]:
    """Host for TCP probes: IP literal (v4/v6) or domain name, scheme/port/path stripped."""
    raw = (value or "").strip()
    if not raw:
        return None
    if "://" in raw:
        raw = urlparse(raw).hostname or ""
    candidate = raw.strip("[]")
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        pass
    return _normalize_domain(raw)


def _normalize_base_url(value: str) -> Optional[str]:
    """Base URL for HTTP path probes; defaults to https when no scheme is given."""
    raw = (value or "").strip()
    if not raw or " " in raw:
        return None
    if "://" not in raw:
        raw = "https://" + raw
    parsed = urlparse(raw)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return None
    if _normalize_host(parsed.hostname) is None:
        return None
    path = parsed.path.rstrip("/")
    return f"{parsed.scheme}://{parsed.netloc}{path}"


def normalize_target(kind: str, target: str) -> str:
    if kind == "ports":
        normalized = _normalize_host(target)
    elif kind == "paths":
        normalized = _normalize_base_url(target)
    else:
        normalized = _normalize_domain(target)
    if not normalized:
        raise ValueError(f"Invalid target for {kind} scan: {target!r}")
    return normalized


def random_label() -> str:
    return "".join(random.choice(string.ascii_lowercase) for _ in range(random.randint(10, 15)))


async def _wildcard_check(
    domain: str,
    dns_server: Optional[str],
    io_executor: Optional[Executor],
    timeout: float,
) -> Optional[List[str]]:
    """Resolve a random label under `domain`; return its IPs if wildcard DNS answers."""
    probe = DnsARecordProbe(domain, dns_server=dns_server, io_executor=io_executor)
    loop = asyncio.get_running_loop()
    outcome = await probe.probe(random_label(), loop.time() + timeout)
    if outcome.status is OutcomeStatus.LIVE:
        return list(outcome.metadata.get("ips") or [])
    return None


async def _resolve_target_host(host: str, timeout: float) -> str:
    """Resolve a hostname once so TCP probes don't each hit the resolver."""
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        pass
    loop = asyncio.get_running_loop()
    try:
        infos = await asyncio.wait_for(loop.getaddrinfo(host, None, type=socket.SOCK_STREAM), timeout=timeout)
    except (OSError, asyncio.TimeoutError) as exc:
        logger.debug("Pre-resolution of %s failed (%s); probes will resolve it themselves", host, exc.__class__.__name__)
        return host
    for info in infos:
        address = info[4][0]
        if address:
            return str(address)
    return host


def build_probe(
    kind: str,
    target: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    io_executor: Optional[Executor] = None,
    dns_server: Optional[str] = None,
    useragent: Optional[str] = None,
    http_check: bool = False,
    services: Optional[Mapping[int, str]] = None,
) -> Probe:
    if kind == "ports":
        return TcpConnectProbe(target, services=services)
    if kind == "paths":
        if client is None:
            raise ValueError("HTTP path probe requires an httpx.AsyncClient")
        return HttpPathProbe(target, client=client, useragent=useragent)
    if kind == "subdomains":
        return DnsARecordProbe(
            target,
            dns_server=dns_server,
            io_executor=io_executor,
            client=client if http_check else None,
            useragent=useragent,
        )
    raise ValueError(f"Unknown scan kind: {kind!r}")


async def _run_async(
    kind: str,
    target: str,
    profile: Optional[str] = None,
    *,
    custom: Optional[str] = None,
    extensions: Union[str, Sequence[str], None] = None,
    wordlist: Optional[str] = None,
    dns: Optional[str] = None,
    useragent: Optional[str] = None,
    timeout: Optional[float] = None,
    threads: Optional[int] = None,
    deadline: Optional[float] = None,
    sort: Optional[str] = None,
    http_check: bool = False,
    detect_wildcard: bool = True,
    limit: int = MAX_CANDIDATES,
    catalog: ProfileCatalog = DEFAULT_CATALOG,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> ScanReport:
    """Main orchestrator used by both CLI and Python API.

    Flow:
    1. build the candidate set (raises `InvalidProfile` before any I/O)
    2. normalize the target and build the probe for `kind`
    3. optionally check wildcard DNS for subdomain scans
    4. run the engine and assemble the report
    """
    candidate_set = build_candidates(
        kind, profile, custom=custom, extensions=extensions, wordlist=wordlist, catalog=catalog, limit=limit
    )
    normalized = normalize_target(kind, target)

    timeout_value = float(timeout or DEFAULT_PROBE_TIMEOUT)
    deadline_value = float(deadline or DEFAULT_GLOBAL_DEADLINE)
    max_workers = int(threads or DEFAULT_CONCURRENCY)
    effective_useragent = pick_user_agent(useragent)

    notes: List[str] = []
    if candidate_set.truncated:
        notes.append(
            f"Candidate list truncated: {candidate_set.requested} requested, {len(candidate_set)} probed (cap {limit})."
        )

    io_executor = ThreadPoolExecutor(max_workers=max(4, min(64, max_workers)))
    try:
        async with AsyncExitStack() as stack:
            client: Optional[httpx.AsyncClient] = None
            if kind == "paths" or (kind == "subdomains" and http_check):
                client = await stack.enter_async_context(
                    httpx.AsyncClient(
                        http2=True,
                        verify=False,
                        timeout=httpx.Timeout(timeout_value),
                        limits=httpx.Limits(
                            max_connections=max(10, max_workers),
                            max_keepalive_connections=max(5, max_workers),
                        ),
                    )
                )

            probe_target = normalized
            if kind == "ports":
                probe_target = await _resolve_target_host(normalized, timeout_value)
            elif kind == "subdomains" and detect_wildcard:
                wildcard_ips = await _wildcard_check(normalized, dns, io_executor, timeout_value)
                if wildcard_ips:
                    notes.append(
                        f"Wildcard DNS detected on {normalized} ({', '.join(wildcard_ips[:3])}): found entries may be false positives."
                    )

            probe = build_probe(
                kind,
                probe_target,
                client=client,
                io_executor=io_executor,
                dns_server=dns,
                useragent=effective_useragent,
                http_check=http_check,
                services=catalog.services,
            )
            job = ScanJob.from_candidate_set(
                normalized,
                candidate_set,
                probe,
                concurrency_limit=max_workers,
                per_probe_timeout=timeout_value,
                global_deadline=deadline_value,
            )
            run = await ScanEngine(progress_callback=progress_callback).run(job)
    finally:
        # Abandoned resolver threads end at their own lifetime; don't block the loop on them.
        io_executor.shutdown(wait=False, cancel_futures=True)

    report = assemble_run(run, kind=kind, sort=sort, notes=notes)
    if report.timed_out:
        report.notes.append(
            f"Deadline of {deadline_value:.1f}s reached: {report.summary['cancelled']} candidate(s) cancelled."
        )
    return report


def _run_coro_sync(coro: Any) -> Any:
    """Run async code from sync callers (CLI and public API).

    If already inside an event loop, execute in a helper thread to avoid
    `RuntimeError: asyncio.run() cannot be called from a running event loop`.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    outcome: Dict[str, Any] = {}

    def target() -> None:
        try:
            outcome["result"] = asyncio.run(coro)
        except BaseException as exc:  # pragma: no cover - fallback path
            outcome["error"] = exc

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    thread.join()

    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("result")


def LIVEPROBE(
    target: str,
    kind: str = "ports",
    profile: Optional[str] = None,
    custom: Optional[str] = None,
    extensions: Union[str, Sequence[str], None] = None,
    wordlist: Optional[str] = None,
    dns: Optional[str] = None,
    useragent: Optional[str] = None,
    timeout: Optional[float] = None,
    threads: Optional[int] = None,
    deadline: Optional[float] = None,
    sort: Optional[str] = None,
    http_check: bool = False,
    detect_wildcard: bool = True,
    catalog: ProfileCatalog = DEFAULT_CATALOG,
    raise_on_deadline: bool = False,
) -> Dict[str, Any]:
    """Public synchronous Python API entrypoint.

    Example:
    `LIVEPROBE("example.com", kind="ports", profile="quick")`
    """
    report: ScanReport = _run_coro_sync(
        _run_async(
            kind,
            target,
            profile,
            custom=custom,
            extensions=extensions,
            wordlist=wordlist,
            dns=dns,
            useragent=useragent,
            timeout=timeout,
            threads=threads,
            deadline=deadline,
            sort=sort,
            http_check=http_check,
            detect_wildcard=detect_wildcard,
            catalog=catalog,
        )
    )
    if raise_on_deadline:
        report.raise_for_deadline()
    return report.to_dict()
