from __future__ import annotations

"""Bounded, deadline-governed fan-out of probes over a candidate sequence.

`ScanEngine.run()` owns every concurrency concern of a scan:
- a fixed pool of workers (one in-flight probe each) fed in submission order
- a per-probe budget after which the slot is taken back, cooperative or not
- a global deadline after which nothing new is dispatched and everything
  without an outcome is marked cancelled
- isolation of probe crashes into per-candidate `error` outcomes

It never retries: an outcome is final for the lifetime of one job.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from .errors import ProbeError
from .models import Candidate, JobState, Outcome, ScanJob, ScanRun
from .probes import error_text

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

# Time given to a cancelled probe to unwind before its slot is reused.
CANCEL_GRACE = 0.05


def _discard_result(task: "asyncio.Future") -> None:
    # Abandoned probes finish on their own; fetch the result so asyncio does
    # not log "exception was never retrieved".
    if not task.cancelled():
        task.exception()


class ScanEngine:
    """Execute `ScanJob`s. One engine may run many jobs, sequentially or not."""

    def __init__(self, progress_callback: Optional[ProgressCallback] = None):
        self.progress_callback = progress_callback

    def _notify(self, done: int, total: int) -> None:
        if not self.progress_callback:
            return
        try:
            self.progress_callback(done, total)
        except Exception:
            logger.debug("Progress callback failed", exc_info=True)

    async def _probe_one(self, job: ScanJob, candidate: Candidate, job_deadline: float) -> Optional[Outcome]:
        """Run one probe inside its slot budget.

        Returns `None` when the job deadline (not the probe budget) cut the
        probe short: the candidate is then reported as cancelled.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        probe_deadline = min(started + job.per_probe_timeout, job_deadline)

        try:
            task = asyncio.ensure_future(job.probe.probe(candidate, probe_deadline))
        except Exception as exc:
            logger.debug("Probe for %r failed before starting", candidate, exc_info=True)
            return Outcome.error(candidate, error_text(exc), elapsed=loop.time() - started)

        try:
            done, _ = await asyncio.wait({task}, timeout=max(0.0, probe_deadline - loop.time()))
        finally:
            if not task.done():
                task.cancel()
                task.add_done_callback(_discard_result)

        if not done:
            await asyncio.wait({task}, timeout=CANCEL_GRACE)
            if probe_deadline >= job_deadline:
                return None
            return job.probe.timeout_outcome(candidate).with_elapsed(loop.time() - started)

        elapsed = loop.time() - started
        try:
            result = task.result()
        except asyncio.CancelledError:
            return Outcome.error(candidate, "probe cancelled", elapsed=elapsed)
        except ProbeError as exc:
            return Outcome.error(candidate, str(exc) or error_text(exc), elapsed=elapsed)
        except Exception as exc:
            logger.debug("Probe raised for %r", candidate, exc_info=exc)
            return Outcome.error(candidate, error_text(exc), elapsed=elapsed)

        if not isinstance(result, Outcome):
            return Outcome.error(candidate, f"invalid probe result: {type(result).__name__}", elapsed=elapsed)
        if result.candidate != candidate:
            return Outcome.error(candidate, f"probe answered for another candidate: {result.candidate!r}", elapsed=elapsed)
        return result if result.elapsed is not None else result.with_elapsed(elapsed)

    async def run(self, job: ScanJob) -> ScanRun:
        """Probe every candidate of `job` and return the raw outcomes.

        Always returns exactly one outcome per candidate, whether the job
        completed or hit its deadline.
        """
        loop = asyncio.get_running_loop()
        run = ScanRun(job=job, state=JobState.RUNNING)
        started = loop.time()
        job_deadline = started + job.global_deadline
        total = len(job.candidates)

        logger.debug(
            "Scanning %d candidate(s) on %s with probe %s (limit=%d, timeout=%.2fs, deadline=%.2fs)",
            total,
            job.target,
            job.probe.describe(),
            job.concurrency_limit,
            job.per_probe_timeout,
            job.global_deadline,
        )

        outcomes: Dict[Candidate, Outcome] = {}
        done_count = 0
        cut_by_deadline = False

        queue: "asyncio.Queue[Optional[Candidate]]" = asyncio.Queue()
        for candidate in job.candidates:
            queue.put_nowait(candidate)

        worker_count = max(1, min(job.concurrency_limit, total))
        for _ in range(worker_count):
            queue.put_nowait(None)

        async def worker() -> None:
            nonlocal done_count, cut_by_deadline
            while True:
                candidate = await queue.get()
                if candidate is None:
                    return
                if loop.time() >= job_deadline:
                    cut_by_deadline = True
                    return
                outcome = await self._probe_one(job, candidate, job_deadline)
                if outcome is None:
                    cut_by_deadline = True
                    return
                if candidate not in outcomes:
                    outcomes[candidate] = outcome
                    done_count += 1
                    self._notify(done_count, total)

        workers: List["asyncio.Task[None]"] = []
        if total:
            workers = [asyncio.create_task(worker()) for _ in range(worker_count)]
            _, pending = await asyncio.wait(workers, timeout=max(0.0, job_deadline - loop.time()))
            if pending:
                cut_by_deadline = True
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        for task in workers:
            if task.done() and not task.cancelled() and task.exception() is not None:
                logger.error("Scan worker crashed: %s", error_text(task.exception()))

        deadline_hit = cut_by_deadline or loop.time() >= job_deadline
        missing = 0
        for candidate in job.candidates:
            if candidate in outcomes:
                continue
            missing += 1
            if deadline_hit:
                outcomes[candidate] = Outcome.cancelled(candidate)
            else:
                outcomes[candidate] = Outcome.error(candidate, "internal error: no outcome recorded")

        run.outcomes = {candidate: outcomes[candidate] for candidate in job.candidates}
        run.elapsed = loop.time() - started
        run.state = JobState.TIMED_OUT if deadline_hit and missing else JobState.COMPLETED

        if run.state is JobState.TIMED_OUT:
            logger.warning(
                "Deadline of %.1fs reached on %s: %d/%d candidate(s) cancelled",
                job.global_deadline,
                job.target,
                missing,
                total,
            )
        logger.debug("Scan of %s finished: state=%s elapsed=%.3fs", job.target, run.state.value, run.elapsed)
        return run


async def run_job(job: ScanJob, progress_callback: Optional[ProgressCallback] = None) -> ScanRun:
    return await ScanEngine(progress_callback=progress_callback).run(job)
