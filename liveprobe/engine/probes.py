from __future__ import annotations

"""Probe strategies: one network check per candidate.

Every probe receives an absolute deadline (event-loop clock) and enforces its
own cutoff from it; ordinary network failures are classified, never raised.
"""

import abc
import asyncio
import errno
import logging
import re
import socket
from concurrent.futures import Executor
from typing import Any, Dict, List, Mapping, Optional, Tuple

import dns.exception
import dns.resolver
import httpx

from .catalog import SERVICE_NAMES
from .models import TIMEOUT_REASON, Candidate, Outcome, TimeoutPolicy

logger = logging.getLogger(__name__)

# errno values meaning the local machine ran out of resources, not the target.
LOCAL_EXHAUSTION_ERRNOS = frozenset(
    code for code in (getattr(errno, name, None) for name in ("EMFILE", "ENFILE", "ENOBUFS", "ENOMEM")) if code is not None
)

TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)


def error_text(exc: BaseException) -> str:
    message = str(exc).strip()
    return f"{exc.__class__.__name__}: {message}" if message else exc.__class__.__name__


def extract_title(content: bytes, limit: int = 100) -> Optional[str]:
    if not content:
        return None
    text = content[:65536].decode("utf-8", errors="ignore")
    match = TITLE_RE.search(text)
    if not match:
        return None
    title = re.sub(r"\s+", " ", match.group(1)).strip()
    return title[:limit] or None


async def read_limited(response: httpx.Response, limit: int) -> bytes:
    """Read at most `limit` bytes of a streamed response body."""
    chunks: List[bytes] = []
    total = 0
    async for chunk in response.aiter_bytes():
        chunks.append(chunk)
        total += len(chunk)
        if total >= limit:
            break
    return b"".join(chunks)[:limit]


def is_live_status(status_code: int) -> bool:
    """2xx/3xx prove the path exists, and so do 401/403 (protected resource)."""
    return 200 <= status_code < 400 or status_code in (401, 403)


class Probe(abc.ABC):
    """Liveness check for a single candidate.

    Subclasses declare `timeout_policy`: the engine uses it when the probe does
    not finish within its slot budget, and probes use it for their own
    timeouts, so both paths classify silence the same way.
    """

    kind: str = "generic"
    timeout_policy: TimeoutPolicy = TimeoutPolicy.DEAD

    @abc.abstractmethod
    async def probe(self, candidate: Candidate, deadline: float) -> Outcome:
        raise NotImplementedError

    def timeout_outcome(self, candidate: Candidate) -> Outcome:
        if self.timeout_policy is TimeoutPolicy.DEAD:
            return Outcome.dead(candidate, {"timeout": True})
        return Outcome.error(candidate, TIMEOUT_REASON)

    @staticmethod
    def remaining(deadline: float) -> float:
        return max(0.0, deadline - asyncio.get_running_loop().time())

    def describe(self) -> Dict[str, Any]:
        return {"kind": self.kind, "timeout_policy": self.timeout_policy.value}


class TcpConnectProbe(Probe):
    """Full TCP connect; the socket is closed as soon as it is established."""

    kind = "tcp"
    timeout_policy = TimeoutPolicy.DEAD

    def __init__(self, host: str, services: Optional[Mapping[int, str]] = None):
        self.host = host
        self.services = services if services is not None else SERVICE_NAMES

    @staticmethod
    def _port(candidate: Candidate) -> Optional[int]:
        if isinstance(candidate, bool) or not isinstance(candidate, int):
            return None
        return candidate if 1 <= candidate <= 65535 else None

    async def probe(self, candidate: Candidate, deadline: float) -> Outcome:
        port = self._port(candidate)
        if port is None:
            return Outcome.error(candidate, f"malformed candidate: expected port 1-65535, got {candidate!r}")

        budget = self.remaining(deadline)
        if budget <= 0:
            return self.timeout_outcome(candidate)

        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(self.host, port), timeout=budget)
        except asyncio.TimeoutError:
            return self.timeout_outcome(candidate)
        except socket.gaierror as exc:
            return Outcome.error(candidate, f"resolve failed for {self.host}: {error_text(exc)}")
        except OSError as exc:
            if exc.errno in LOCAL_EXHAUSTION_ERRNOS:
                return Outcome.error(candidate, f"local resource exhaustion: {error_text(exc)}")
            return Outcome.dead(candidate, {"port": port, "reason": exc.__class__.__name__})

        writer.close()
        try:
            await asyncio.wait_for(writer.wait_closed(), timeout=max(0.05, min(0.5, self.remaining(deadline))))
        except (OSError, asyncio.TimeoutError):
            # The connection was established; a noisy close does not change that.
            pass
        return Outcome.live(candidate, {"port": port, "service": self.services.get(port, "unknown")})

    def describe(self) -> Dict[str, Any]:
        data = super().describe()
        data["host"] = self.host
        return data


class HttpPathProbe(Probe):
    """GET `base_url + path` without following redirects."""

    kind = "http"
    timeout_policy = TimeoutPolicy.ERROR

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient,
        useragent: Optional[str] = None,
        max_body: int = 65536,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client
        self.headers = {"Accept": "*/*"}
        if useragent:
            self.headers["User-Agent"] = useragent
        self.max_body = max_body

    def url_for(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"

    async def _fetch(self, url: str, budget: float) -> Tuple[httpx.Response, bytes]:
        async with self.client.stream(
            "GET",
            url,
            headers=self.headers,
            follow_redirects=False,
            timeout=httpx.Timeout(budget),
        ) as response:
            body = await read_limited(response, self.max_body)
        return response, body

    def _classify(self, candidate: Candidate, url: str, response: httpx.Response, body: bytes) -> Outcome:
        status = int(response.status_code)
        if not is_live_status(status):
            return Outcome.dead(candidate, {"url": url, "http_status": status})

        length = response.headers.get("Content-Length")
        size = int(length) if length and length.strip().isdigit() else len(body)
        metadata: Dict[str, Any] = {
            "url": url,
            "http_status": status,
            "size": size,
            "content_type": response.headers.get("Content-Type") or "unknown",
        }
        location = response.headers.get("Location")
        if location:
            metadata["location"] = location
        title = extract_title(body)
        if title:
            metadata["title"] = title
        return Outcome.live(candidate, metadata)

    async def probe(self, candidate: Candidate, deadline: float) -> Outcome:
        if not isinstance(candidate, str) or not candidate.strip():
            return Outcome.error(candidate, f"malformed candidate: expected URL path, got {candidate!r}")

        url = self.url_for(candidate.strip())
        budget = self.remaining(deadline)
        if budget <= 0:
            return self.timeout_outcome(candidate)

        try:
            response, body = await asyncio.wait_for(self._fetch(url, budget), timeout=budget)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return self.timeout_outcome(candidate)
        except httpx.ConnectError as exc:
            return Outcome.dead(candidate, {"url": url, "reason": error_text(exc)})
        except httpx.HTTPError as exc:
            return Outcome.error(candidate, error_text(exc), {"url": url})
        return self._classify(candidate, url, response, body)

    def describe(self) -> Dict[str, Any]:
        data = super().describe()
        data["base_url"] = self.base_url
        return data


class DnsARecordProbe(Probe):
    """Resolve `label.domain` A records with dnspython.

    NXDOMAIN means the name does not exist (`dead`); an unreachable resolver
    means we could not ask (`error`). With an HTTP client attached, live hosts
    are enriched with an HTTP status and page title inside the same budget.
    """

    kind = "dns"
    timeout_policy = TimeoutPolicy.ERROR

    def __init__(
        self,
        domain: str,
        dns_server: Optional[str] = None,
        io_executor: Optional[Executor] = None,
        client: Optional[httpx.AsyncClient] = None,
        useragent: Optional[str] = None,
        max_body: int = 65536,
    ):
        self.domain = domain.strip().strip(".").lower()
        self.dns_server = dns_server
        self.io_executor = io_executor
        self.client = client
        self.headers = {"User-Agent": useragent} if useragent else {}
        self.max_body = max_body

    def host_for(self, label: str) -> str:
        return f"{label.strip().strip('.').lower()}.{self.domain}"

    def _resolver(self, budget: float) -> dns.resolver.Resolver:
        if self.dns_server:
            resolver = dns.resolver.Resolver(configure=False)
            resolver.nameservers = [self.dns_server]
        else:
            resolver = dns.resolver.Resolver()
        resolver.timeout = budget
        resolver.lifetime = budget
        return resolver

    def _resolve_sync(self, host: str, budget: float) -> Tuple[str, Any]:
        resolver = self._resolver(budget)
        try:
            answers = resolver.resolve(host, "A")
        except (dns.resolver.NXDOMAIN, dns.resolver.YXDOMAIN):
            return "dead", "nxdomain"
        except dns.resolver.NoAnswer:
            return "dead", "no A records"
        except dns.resolver.NoNameservers as exc:
            return "error", f"resolver unreachable: {error_text(exc)}"
        except dns.exception.Timeout:
            return "timeout", None
        except dns.exception.DNSException as exc:
            return "error", error_text(exc)

        ips: List[str] = []
        for rr in answers:
            ip_text = str(rr).strip()
            if ip_text and ip_text not in ips:
                ips.append(ip_text)
        if not ips:
            return "dead", "no A records"
        return "live", ips

    async def _http_enrich(self, host: str) -> Dict[str, Any]:
        if self.client is None:
            return {"http_status": None}
        for scheme in ("https", "http"):
            try:
                async with self.client.stream(
                    "GET",
                    f"{scheme}://{host}",
                    headers=self.headers,
                    follow_redirects=True,
                ) as response:
                    body = await read_limited(response, self.max_body)
            except httpx.HTTPError as exc:
                logger.debug("HTTP enrichment failed for %s://%s: %s", scheme, host, error_text(exc))
                continue
            info: Dict[str, Any] = {"http_status": int(response.status_code), "http_scheme": scheme}
            title = extract_title(body)
            if title:
                info["title"] = title
            return info
        return {"http_status": None}

    async def probe(self, candidate: Candidate, deadline: float) -> Outcome:
        if not isinstance(candidate, str) or not candidate.strip():
            return Outcome.error(candidate, f"malformed candidate: expected subdomain label, got {candidate!r}")

        host = self.host_for(candidate)
        budget = self.remaining(deadline)
        if budget <= 0:
            return self.timeout_outcome(candidate)

        loop = asyncio.get_running_loop()
        try:
            verdict, data = await asyncio.wait_for(
                loop.run_in_executor(self.io_executor, self._resolve_sync, host, budget),
                timeout=budget,
            )
        except asyncio.TimeoutError:
            return self.timeout_outcome(candidate)

        if verdict == "timeout":
            return self.timeout_outcome(candidate)
        if verdict == "dead":
            return Outcome.dead(candidate, {"host": host, "reason": data})
        if verdict == "error":
            return Outcome.error(candidate, str(data), {"host": host})

        metadata: Dict[str, Any] = {"host": host, "ips": data}
        budget = self.remaining(deadline)
        if self.client is not None and budget > 0.1:
            try:
                metadata.update(await asyncio.wait_for(self._http_enrich(host), timeout=budget))
            except asyncio.TimeoutError:
                metadata["http_status"] = None
        return Outcome.live(candidate, metadata)

    def describe(self) -> Dict[str, Any]:
        data = super().describe()
        data["domain"] = self.domain
        data["dns_server"] = self.dns_server or "system"
        return data
