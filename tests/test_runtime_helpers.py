from __future__ import annotations

import asyncio
import socket
from datetime import timedelta

import pytest

import liveprobe.engine.runtime as runtime
from liveprobe import LIVEPROBE, DeadlineExceeded, InvalidProfile
from liveprobe.engine.catalog import ProfileCatalog
from liveprobe.engine.models import OutcomeStatus
from liveprobe.engine.probes import DnsARecordProbe, HttpPathProbe, TcpConnectProbe


def test_pick_user_agent_respects_explicit_value():
    assert runtime.pick_user_agent("MyAgent/1.0") == "MyAgent/1.0"


def test_pick_user_agent_random_uses_pool(monkeypatch):
    monkeypatch.setattr(runtime.random, "choice", lambda items: items[0])
    assert runtime.pick_user_agent("random") == runtime.USER_AGENTS[0]
    assert runtime.pick_user_agent(None) == runtime.USER_AGENTS[0]


def test_fmt_td_expected_format():
    assert runtime.fmt_td(timedelta(hours=2, minutes=3, seconds=4)) == "02:03:04"
    assert runtime.fmt_td(None) == "-"


def test_normalize_domain_rules():
    assert runtime._normalize_domain("https://Example.COM/path") == "example.com"
    assert runtime._normalize_domain("bücher.de") == "xn--bcher-kva.de"
    assert runtime._normalize_domain("bad domain") is None
    assert runtime._normalize_domain("-bad.com") is None
    assert runtime._normalize_domain("") is None


def test_normalize_target_per_kind():
    assert runtime.normalize_target("ports", "192.168.1.10") == "192.168.1.10"
    assert runtime.normalize_target("ports", "[::1]") == "::1"
    assert runtime.normalize_target("ports", "http://Example.com:8080/x") == "example.com"
    assert runtime.normalize_target("paths", "example.com") == "https://example.com"
    assert runtime.normalize_target("paths", "http://example.com:8080/app/") == "http://example.com:8080/app"
    assert runtime.normalize_target("subdomains", "Example.com") == "example.com"
    with pytest.raises(ValueError):
        runtime.normalize_target("paths", "ftp://example.com")
    with pytest.raises(ValueError):
        runtime.normalize_target("subdomains", "not a domain")


def test_random_label_shape():
    label = runtime.random_label()
    assert 10 <= len(label) <= 15
    assert label.isalpha() and label.islower()


def test_build_probe_per_kind():
    assert isinstance(runtime.build_probe("ports", "127.0.0.1"), TcpConnectProbe)
    assert isinstance(runtime.build_probe("subdomains", "example.com"), DnsARecordProbe)
    with pytest.raises(ValueError):
        runtime.build_probe("paths", "https://example.com")
    with pytest.raises(ValueError):
        runtime.build_probe("udp", "example.com")

    async def with_client():
        import httpx

        async with httpx.AsyncClient() as client:
            return runtime.build_probe("paths", "https://example.com", client=client)

    assert isinstance(asyncio.run(with_client()), HttpPathProbe)


def test_build_probe_uses_given_services_and_describes_itself():
    probe = runtime.build_probe("ports", "127.0.0.1", services={22: "custom-ssh"})
    assert probe.services[22] == "custom-ssh"
    assert probe.describe() == {"kind": "tcp", "timeout_policy": "dead", "host": "127.0.0.1"}

    dns_probe = runtime.build_probe("subdomains", "Example.com", dns_server="1.1.1.1")
    assert dns_probe.describe() == {
        "kind": "dns",
        "timeout_policy": "error",
        "domain": "example.com",
        "dns_server": "1.1.1.1",
    }


def test_set_debug_toggles_package_logger():
    runtime.set_debug(True)
    assert runtime.logger.level == runtime.logging.DEBUG
    runtime.set_debug(False)
    assert runtime.logger.level == runtime.logging.INFO


def test_invalid_profile_raises_before_probing(monkeypatch):
    def _no_probe(*args, **kwargs):
        raise AssertionError("no probe should be built")

    monkeypatch.setattr(runtime, "build_probe", _no_probe)
    with pytest.raises(InvalidProfile):
        LIVEPROBE("127.0.0.1", kind="ports", profile="custom", custom="1-x")


def test_liveprobe_ports_scan_against_local_server():
    closed_sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    closed_sock.bind(("127.0.0.1", 0))
    closed_port = closed_sock.getsockname()[1]
    closed_sock.close()

    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(8)
    open_port = listener.getsockname()[1]
    try:
        result = LIVEPROBE(
            "127.0.0.1",
            kind="ports",
            profile="custom",
            custom=f"{closed_port},{open_port}",
            timeout=1.0,
            threads=2,
            deadline=5.0,
        )
    finally:
        listener.close()

    assert result["state"] == "completed"
    assert result["total_candidates"] == 2
    assert [item["candidate"] for item in result["found"]] == [open_port]
    assert result["found"][0]["status"] == OutcomeStatus.LIVE.value
    assert [item["candidate"] for item in result["not_found"]] == [closed_port]
    assert result["summary"]["found"] == 1


def test_liveprobe_raise_on_deadline(monkeypatch):
    class _SlowProbe(TcpConnectProbe):
        async def probe(self, candidate, deadline):
            await asyncio.sleep(10)

    monkeypatch.setattr(runtime, "build_probe", lambda kind, target, **kwargs: _SlowProbe(target))
    with pytest.raises(DeadlineExceeded) as excinfo:
        LIVEPROBE(
            "127.0.0.1",
            kind="ports",
            profile="custom",
            custom="1-3",
            timeout=5.0,
            deadline=0.2,
            raise_on_deadline=True,
        )
    report = excinfo.value.report
    assert report.summary["cancelled"] == 3
    assert any("Deadline" in note for note in report.notes)


def test_run_coro_sync_inside_running_loop():
    async def inner():
        return 42

    async def outer():
        return runtime._run_coro_sync(inner())

    assert asyncio.run(outer()) == 42


def test_wildcard_note_is_added(monkeypatch):
    async def _fake_wildcard(domain, dns_server, io_executor, timeout):
        return ["1.2.3.4"]

    class _NoneProbe(DnsARecordProbe):
        async def probe(self, candidate, deadline):
            from liveprobe.engine.models import Outcome

            return Outcome.dead(candidate)

    monkeypatch.setattr(runtime, "_wildcard_check", _fake_wildcard)
    monkeypatch.setattr(runtime, "build_probe", lambda kind, target, **kwargs: _NoneProbe(target))
    result = LIVEPROBE("example.com", kind="subdomains", profile="custom", custom="www,api")
    assert result["summary"]["not_found"] == 2
    assert any("Wildcard DNS detected" in note for note in result["notes"])


def test_quick_profile_from_catalog_against_local_ports():
    closed_sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    closed_sock.bind(("127.0.0.1", 0))
    closed_port = closed_sock.getsockname()[1]
    closed_sock.close()

    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(8)
    open_port = listener.getsockname()[1]
    catalog = ProfileCatalog(
        ports={"quick": ((open_port, closed_port),)},
        services={open_port: "test-svc"},
    )
    try:
        result = LIVEPROBE(
            "127.0.0.1",
            kind="ports",
            profile="quick",
            timeout=1.0,
            threads=2,
            deadline=5.0,
            catalog=catalog,
        )
    finally:
        listener.close()

    assert result["profile"] == "quick"
    assert result["state"] == "completed"
    assert [item["candidate"] for item in result["found"]] == [open_port]
    assert result["found"][0]["status"] == "live"
    assert result["found"][0]["service"] == "test-svc"
    assert [item["candidate"] for item in result["not_found"]] == [closed_port]
    assert result["not_found"][0]["status"] == "dead"
    assert result["errors"] == []
