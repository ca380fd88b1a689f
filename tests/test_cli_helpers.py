from __future__ import annotations

import json
from pathlib import Path

import pytest

import liveprobe.cli as cli
from liveprobe.cli_parts.report import filter_reports, parse_report_ids
from liveprobe.cli_parts.scan_flow import normalize_target_input, should_save_scan, validate_sort
from liveprobe.cli_parts.setup import load_saved_runtime_settings, save_runtime_settings
from liveprobe.engine.models import JobState, Outcome
from liveprobe.engine.report import assemble


@pytest.fixture
def isolated_db(monkeypatch, tmp_path: Path) -> Path:
    db_path = tmp_path / "reports.db"
    monkeypatch.setenv("LIVEPROBE_DB", str(db_path))
    return db_path


def test_normalize_target_input_per_mode():
    assert normalize_target_input("subdomains", "https://www.Example.com/path?q=1") == "example.com"
    assert normalize_target_input("subdomains", "sub.example.com") == "sub.example.com"
    assert normalize_target_input("ports", "https://10.0.0.5:8443/") == "10.0.0.5"
    assert normalize_target_input("paths", "example.com/app") == "https://example.com/app"
    assert normalize_target_input("subdomains", "not a domain") is None
    assert normalize_target_input("ports", "") is None


def test_should_save_scan_respects_flag_and_empty_reports():
    assert should_save_scan({"total_candidates": 3}, no_save=False) is True
    assert should_save_scan({"total_candidates": 3}, no_save=True) is False
    assert should_save_scan({"total_candidates": 0}, no_save=False) is False


def test_validate_sort():
    assert validate_sort(None) is None
    assert validate_sort(" Port ") == "port"
    with pytest.raises(ValueError):
        validate_sort("size")


def test_parse_report_ids_deduplicates_and_validates():
    assert parse_report_ids("3, 1,3,,2") == [3, 1, 2]
    with pytest.raises(ValueError):
        parse_report_ids("1,x")
    with pytest.raises(ValueError):
        parse_report_ids(" , ")


def test_filter_reports_by_target():
    reports = [{"target": "Example.com"}, {"target": "other.org"}]
    assert filter_reports(reports, "example") == [{"target": "Example.com"}]
    assert filter_reports(reports, "") == reports


def test_saved_runtime_settings_defaults_and_roundtrip(isolated_db: Path):
    defaults = load_saved_runtime_settings()
    assert defaults == {
        "dns": "8.8.8.8",
        "useragent": "random",
        "timeout": 3.0,
        "threads": 15,
        "deadline": 20.0,
        "wordlist": None,
    }
    save_runtime_settings({**defaults, "timeout": 1.5, "threads": 40, "deadline": 60.0, "wordlist": "/tmp/w.txt"})
    saved = load_saved_runtime_settings()
    assert saved["timeout"] == 1.5
    assert saved["threads"] == 40
    assert saved["deadline"] == 60.0
    assert saved["wordlist"] == "/tmp/w.txt"


def test_effective_settings_cli_over_saved():
    args = cli.build_parser().parse_args(["-t", "x", "--timeout", "0.5", "--dns", "1.1.1.1"])
    saved = {"dns": "8.8.8.8", "useragent": "random", "timeout": 3.0, "threads": 15, "deadline": 20.0, "wordlist": None}
    effective = cli._effective_settings(args, saved)
    assert effective["timeout"] == 0.5
    assert effective["dns"] == "1.1.1.1"
    assert effective["threads"] == 15
    assert effective["deadline"] == 20.0


def test_main_rejects_invalid_profile_before_scanning(isolated_db: Path, monkeypatch, capsys):
    def _no_scan(*args, **kwargs):
        raise AssertionError("scan must not start")

    monkeypatch.setattr(cli, "_run_scan", _no_scan)
    code = cli.main(["-t", "127.0.0.1", "-p", "custom", "--custom", "99999", "--json"])
    assert code == 2
    assert "out of range" in capsys.readouterr().err


def test_main_rejects_invalid_target(isolated_db: Path):
    assert cli.main(["-m", "subdomains", "-t", "bad domain", "--json"]) == 2


def test_main_json_scan_saves_report(isolated_db: Path, monkeypatch, capsys):
    captured = {}

    def _fake_scan(mode, target, profile, progress_callback=None, **kwargs):
        captured.update(mode=mode, target=target, profile=profile, **kwargs)
        return assemble(
            (22, 80),
            [Outcome.live(22, {"port": 22, "service": "ssh"}), Outcome.dead(80)],
            target=target,
            kind=mode,
            profile=profile,
            state=JobState.COMPLETED,
        )

    monkeypatch.setattr(cli, "_run_scan", _fake_scan)
    code = cli.main(["-t", "10.0.0.1", "-p", "custom", "--custom", "22,80", "--json", "--timeout", "1", "--threads", "4"])
    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert data["summary"]["found"] == 1
    assert captured["target"] == "10.0.0.1"
    assert captured["timeout"] == 1.0
    assert captured["threads"] == 4
    assert captured["detect_wildcard"] is True

    from liveprobe.storage import get_report

    stored = get_report("latest")
    assert stored is not None
    assert stored["settings"]["custom"] == "22,80"
    assert stored["report"]["found"][0]["service"] == "ssh"


def test_main_no_save(isolated_db: Path, monkeypatch, capsys):
    monkeypatch.setattr(
        cli,
        "_run_scan",
        lambda mode, target, profile, progress_callback=None, **kwargs: assemble((22,), [Outcome.dead(22)], target=target, kind=mode),
    )
    assert cli.main(["-t", "10.0.0.1", "--json", "--no-save"]) == 0
    capsys.readouterr()

    from liveprobe.storage import count_reports

    assert count_reports() == 0


def test_main_rejects_non_positive_runtime_values(isolated_db: Path):
    assert cli.main(["-t", "10.0.0.1", "--threads", "0", "--json"]) == 2
