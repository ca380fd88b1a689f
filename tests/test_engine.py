from __future__ import annotations

import asyncio
import time
from typing import List, Optional

import pytest

from liveprobe.engine.errors import ProbeError
from liveprobe.engine.models import (
    CANCELLED_REASON,
    JobState,
    Outcome,
    OutcomeStatus,
    ScanJob,
    TimeoutPolicy,
)
from liveprobe.engine.probes import Probe
from liveprobe.engine.report import assemble_run
from liveprobe.engine.scanner import ScanEngine, run_job


class SleepyProbe(Probe):
    """Answers `live` for even candidates after `delay`, `dead` otherwise."""

    kind = "fake"

    def __init__(self, delay: float = 0.01, policy: TimeoutPolicy = TimeoutPolicy.DEAD):
        self.delay = delay
        self.timeout_policy = policy
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls: List[object] = []

    async def probe(self, candidate, deadline):
        self.calls.append(candidate)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        if candidate % 2 == 0:
            return Outcome.live(candidate, {"port": candidate})
        return Outcome.dead(candidate)


class SlowForSomeProbe(Probe):
    kind = "fake"

    def __init__(self, slow: set, slow_delay: float = 10.0):
        self.slow = slow
        self.slow_delay = slow_delay

    async def probe(self, candidate, deadline):
        if candidate in self.slow:
            await asyncio.sleep(self.slow_delay)
        return Outcome.live(candidate)


class CrashingProbe(Probe):
    kind = "fake"

    async def probe(self, candidate, deadline):
        if candidate == 2:
            raise RuntimeError("boom")
        if candidate == 3:
            raise ProbeError("custom failure text")
        if candidate == 4:
            return "not an outcome"
        return Outcome.dead(candidate)


class StubbornProbe(Probe):
    """Ignores the first cancellation and keeps holding on for a while."""

    kind = "fake"
    timeout_policy = TimeoutPolicy.ERROR

    def __init__(self):
        self.ignored = 0

    async def probe(self, candidate, deadline):
        if candidate == 0:
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                self.ignored += 1
                await asyncio.sleep(1)
        return Outcome.live(candidate)


def _job(candidates, probe, limit: int = 15, timeout: float = 3.0, deadline: float = 20.0, target: str = "host") -> ScanJob:
    return ScanJob(
        target=target,
        candidates=tuple(candidates),
        probe=probe,
        concurrency_limit=limit,
        per_probe_timeout=timeout,
        global_deadline=deadline,
    )


def _run(job: ScanJob, progress=None):
    return asyncio.run(ScanEngine(progress_callback=progress).run(job))


def test_exactly_one_outcome_per_candidate():
    probe = SleepyProbe()
    job = _job(range(40), probe, limit=7)
    run = _run(job)
    assert run.state is JobState.COMPLETED
    assert list(run.outcomes) == list(range(40))
    assert sorted(probe.calls) == list(range(40))
    report = assemble_run(run, kind="ports")
    assert report.total_candidates == 40
    assert len(report.found) + len(report.not_found) + len(report.errors) == 40


def test_concurrency_limit_is_never_exceeded():
    probe = SleepyProbe(delay=0.02)
    _run(_job(range(30), probe, limit=4))
    assert probe.max_in_flight == 4


def test_pool_is_not_larger_than_candidate_count():
    probe = SleepyProbe(delay=0.02)
    _run(_job(range(3), probe, limit=50))
    assert probe.max_in_flight <= 3


def test_dispatch_follows_submission_order_with_single_slot():
    probe = SleepyProbe(delay=0.0)
    _run(_job([5, 3, 9, 1], probe, limit=1))
    assert probe.calls == [5, 3, 9, 1]


def test_global_deadline_bounds_wall_clock():
    probe = SlowForSomeProbe(slow=set(range(10)))
    job = _job(range(10), probe, limit=3, timeout=5.0, deadline=0.3)
    started = time.monotonic()
    run = _run(job)
    elapsed = time.monotonic() - started
    assert elapsed < job.global_deadline + job.per_probe_timeout
    assert elapsed < 2.0
    assert run.state is JobState.TIMED_OUT
    assert all(o.status is OutcomeStatus.CANCELLED for o in run.outcomes.values())
    assert all(o.reason == CANCELLED_REASON for o in run.outcomes.values())


def test_deadline_mid_scan_keeps_completed_outcomes():
    probe = SlowForSomeProbe(slow=set(range(5, 10)))
    job = _job(range(10), probe, limit=2, timeout=5.0, deadline=0.3)
    report = assemble_run(_run(job), kind="ports")
    assert [o.candidate for o in report.found] == [0, 1, 2, 3, 4]
    assert [o.candidate for o in report.errors] == [5, 6, 7, 8, 9]
    assert {o.reason for o in report.errors} == {CANCELLED_REASON}
    assert report.timed_out
    assert report.summary["cancelled"] == 5
    assert report.total_candidates == 10


def test_probe_crash_is_isolated():
    run = _run(_job(range(6), CrashingProbe(), limit=2))
    assert run.state is JobState.COMPLETED
    assert run.outcomes[2].status is OutcomeStatus.ERROR
    assert run.outcomes[2].reason == "RuntimeError: boom"
    assert run.outcomes[3].reason == "custom failure text"
    assert run.outcomes[4].status is OutcomeStatus.ERROR
    assert "invalid probe result" in run.outcomes[4].reason
    for candidate in (0, 1, 5):
        assert run.outcomes[candidate].status is OutcomeStatus.DEAD


@pytest.mark.parametrize(
    "policy, expected",
    [(TimeoutPolicy.DEAD, OutcomeStatus.DEAD), (TimeoutPolicy.ERROR, OutcomeStatus.ERROR)],
)
def test_per_probe_timeout_uses_declared_policy(policy, expected):
    probe = SleepyProbe(delay=5.0, policy=policy)
    run = _run(_job([1], probe, timeout=0.1, deadline=5.0))
    outcome = run.outcomes[1]
    assert outcome.status is expected
    if expected is OutcomeStatus.ERROR:
        assert outcome.reason == "timeout"
    assert run.state is JobState.COMPLETED


def test_uncooperative_probe_releases_its_slot():
    probe = StubbornProbe()
    job = _job(range(6), probe, limit=1, timeout=0.1, deadline=5.0)
    started = time.monotonic()
    run = _run(job)
    assert time.monotonic() - started < 1.5
    assert run.outcomes[0].status is OutcomeStatus.ERROR
    assert run.outcomes[0].reason == "timeout"
    assert all(run.outcomes[c].status is OutcomeStatus.LIVE for c in range(1, 6))
    assert probe.ignored == 1


def test_progress_callback_reports_each_candidate():
    seen: List[tuple] = []
    _run(_job(range(5), SleepyProbe(delay=0.0), limit=2), progress=lambda done, total: seen.append((done, total)))
    assert [d for d, _ in seen] == [1, 2, 3, 4, 5]
    assert {t for _, t in seen} == {5}


def test_failing_progress_callback_does_not_break_scan():
    def _boom(done: int, total: int) -> None:
        raise RuntimeError("ui gone")

    run = _run(_job(range(3), SleepyProbe(delay=0.0)), progress=_boom)
    assert len(run.outcomes) == 3


def test_empty_candidate_list_completes_immediately():
    run = _run(_job([], SleepyProbe()))
    assert run.state is JobState.COMPLETED
    assert run.outcomes == {}


def test_run_job_helper():
    run = asyncio.run(run_job(_job([2], SleepyProbe(delay=0.0))))
    assert run.outcomes[2].status is OutcomeStatus.LIVE


@pytest.mark.parametrize(
    "kwargs",
    [
        {"target": ""},
        {"limit": 0},
        {"timeout": 0},
        {"deadline": -1},
    ],
)
def test_scan_job_validation(kwargs):
    params = {"candidates": [1, 2], "probe": SleepyProbe()}
    params.update(kwargs)
    with pytest.raises(ValueError):
        _job(**params)


def test_scan_job_rejects_duplicate_candidates():
    with pytest.raises(ValueError):
        _job([1, 1], SleepyProbe())


def test_outcome_elapsed_is_recorded():
    run = _run(_job([2], SleepyProbe(delay=0.01)))
    elapsed: Optional[float] = run.outcomes[2].elapsed
    assert elapsed is not None and elapsed >= 0
