from __future__ import annotations

"""Turn raw outcomes into a `ScanReport`.

Pure and synchronous. Partitions follow the original candidate order; only
`found` can be re-sorted, with a stable secondary key.
"""

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .models import Candidate, JobState, Outcome, OutcomeStatus, ScanReport, ScanRun


def _port_key(outcome: Outcome) -> Tuple[int, int]:
    value = outcome.candidate if isinstance(outcome.candidate, int) else outcome.metadata.get("port")
    if isinstance(value, int) and not isinstance(value, bool):
        return 0, value
    return 1, 0


def _status_key(outcome: Outcome) -> Tuple[int, int]:
    value = outcome.metadata.get("http_status")
    if isinstance(value, int) and not isinstance(value, bool):
        return 0, value
    return 1, 0


def _name_key(outcome: Outcome) -> str:
    return str(outcome.metadata.get("host") or outcome.candidate).lower()


SORT_KEYS: Dict[str, Optional[Callable[[Outcome], Any]]] = {
    "candidate": None,
    "port": _port_key,
    "status": _status_key,
    "name": _name_key,
}

DEFAULT_SORT = {
    "ports": "port",
    "paths": "status",
    "subdomains": "name",
}


def _index_outcomes(outcomes: Union[Mapping[Candidate, Outcome], Iterable[Outcome]]) -> Dict[Candidate, Outcome]:
    if isinstance(outcomes, Mapping):
        return dict(outcomes)
    indexed: Dict[Candidate, Outcome] = {}
    for outcome in outcomes:
        if outcome.candidate in indexed:
            raise ValueError(f"Duplicate outcome for candidate {outcome.candidate!r}")
        indexed[outcome.candidate] = outcome
    return indexed


def partition(
    candidates: Sequence[Candidate],
    outcomes: Union[Mapping[Candidate, Outcome], Iterable[Outcome]],
    sort: Optional[str] = None,
) -> Tuple[List[Outcome], List[Outcome], List[Outcome]]:
    """Split outcomes into (found, not_found, errors) in candidate order."""
    sort_name = (sort or "candidate").strip().lower()
    if sort_name not in SORT_KEYS:
        raise ValueError(f"Unknown sort: {sort!r} (choose from: {', '.join(SORT_KEYS)})")

    indexed = _index_outcomes(outcomes)
    submitted = set(candidates)
    unknown = [c for c in indexed if c not in submitted]
    if unknown:
        raise ValueError(f"Outcome for unknown candidate {unknown[0]!r}")

    found: List[Outcome] = []
    not_found: List[Outcome] = []
    errors: List[Outcome] = []
    for candidate in candidates:
        outcome = indexed.get(candidate)
        if outcome is None:
            raise ValueError(f"Missing outcome for candidate {candidate!r}")
        if outcome.status is OutcomeStatus.LIVE:
            found.append(outcome)
        elif outcome.status is OutcomeStatus.DEAD:
            not_found.append(outcome)
        else:
            errors.append(outcome)

    key = SORT_KEYS[sort_name]
    if key is not None:
        found = sorted(found, key=key)
    return found, not_found, errors


def assemble(
    candidates: Sequence[Candidate],
    outcomes: Union[Mapping[Candidate, Outcome], Iterable[Outcome]],
    *,
    sort: Optional[str] = None,
    target: str = "",
    kind: str = "",
    profile: str = "custom",
    state: Optional[JobState] = None,
    requested: Optional[int] = None,
    truncated: bool = False,
    elapsed: Optional[float] = None,
    notes: Optional[List[str]] = None,
) -> ScanReport:
    found, not_found, errors = partition(candidates, outcomes, sort=sort)
    if state is None:
        cancelled = any(o.status is OutcomeStatus.CANCELLED for o in errors)
        state = JobState.TIMED_OUT if cancelled else JobState.COMPLETED
    return ScanReport(
        target=target,
        kind=kind,
        profile=profile,
        state=state,
        found=found,
        not_found=not_found,
        errors=errors,
        requested_candidates=requested if requested is not None else len(candidates),
        truncated=truncated,
        elapsed=elapsed,
        notes=list(notes or []),
    )


def assemble_run(
    run: ScanRun,
    *,
    kind: str = "",
    sort: Optional[str] = None,
    notes: Optional[List[str]] = None,
) -> ScanReport:
    """Build the report for a finished engine run."""
    job = run.job
    return assemble(
        job.candidates,
        run.outcomes,
        sort=sort if sort is not None else DEFAULT_SORT.get(kind),
        target=job.target,
        kind=kind or job.probe.kind,
        profile=job.profile,
        state=run.state,
        requested=job.requested_candidates,
        truncated=job.truncated,
        elapsed=run.elapsed,
        notes=notes,
    )
