from __future__ import annotations

"""Value types exchanged between candidate builder, engine and report assembler.

All of them are plain dataclasses/enums so they can be created in tests
without any network or event-loop setup.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Union

from .errors import DeadlineExceeded

if TYPE_CHECKING:
    from .probes import Probe

Candidate = Union[int, str]

CANCELLED_REASON = "cancelled: deadline exceeded"
TIMEOUT_REASON = "timeout"

DEFAULT_CONCURRENCY = 15
DEFAULT_PROBE_TIMEOUT = 3.0
DEFAULT_GLOBAL_DEADLINE = 20.0


class OutcomeStatus(str, Enum):
    LIVE = "live"
    DEAD = "dead"
    ERROR = "error"
    CANCELLED = "cancelled"


class TimeoutPolicy(str, Enum):
    """What a probe's timeout says about the candidate.

    `DEAD`: silence means not there (TCP connect).
    `ERROR`: silence proves nothing (HTTP request, DNS query).
    """

    DEAD = "dead"
    ERROR = "error"


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed-out"


@dataclass(frozen=True)
class Outcome:
    candidate: Candidate
    status: OutcomeStatus
    metadata: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None
    elapsed: Optional[float] = None

    @classmethod
    def live(cls, candidate: Candidate, metadata: Optional[Dict[str, Any]] = None, elapsed: Optional[float] = None) -> "Outcome":
        return cls(candidate, OutcomeStatus.LIVE, dict(metadata or {}), None, elapsed)

    @classmethod
    def dead(cls, candidate: Candidate, metadata: Optional[Dict[str, Any]] = None, elapsed: Optional[float] = None) -> "Outcome":
        return cls(candidate, OutcomeStatus.DEAD, dict(metadata or {}), None, elapsed)

    @classmethod
    def error(cls, candidate: Candidate, reason: str, metadata: Optional[Dict[str, Any]] = None, elapsed: Optional[float] = None) -> "Outcome":
        return cls(candidate, OutcomeStatus.ERROR, dict(metadata or {}), reason, elapsed)

    @classmethod
    def cancelled(cls, candidate: Candidate) -> "Outcome":
        return cls(candidate, OutcomeStatus.CANCELLED, {}, CANCELLED_REASON, None)

    @property
    def is_error(self) -> bool:
        return self.status in (OutcomeStatus.ERROR, OutcomeStatus.CANCELLED)

    def with_elapsed(self, elapsed: float) -> "Outcome":
        return Outcome(self.candidate, self.status, self.metadata, self.reason, elapsed)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"candidate": self.candidate, "status": self.status.value}
        # Metadata never shadows the outcome's own fields.
        data.update((key, value) for key, value in self.metadata.items() if key not in data)
        if self.reason is not None:
            data["reason"] = self.reason
        if self.elapsed is not None:
            data["elapsed"] = round(self.elapsed, 4)
        return data


@dataclass(frozen=True)
class CandidateSet:
    """Ordered, deduplicated candidates produced by `build_candidates`."""

    kind: str
    profile: str
    items: Tuple[Candidate, ...]
    requested: int
    truncated: bool = False

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


@dataclass(frozen=True)
class ScanJob:
    """One time-boxed batch of probes against a single target."""

    target: str
    candidates: Tuple[Candidate, ...]
    probe: "Probe" = field(compare=False)
    concurrency_limit: int = DEFAULT_CONCURRENCY
    per_probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    global_deadline: float = DEFAULT_GLOBAL_DEADLINE
    requested_candidates: Optional[int] = None
    truncated: bool = False
    profile: str = "custom"

    def __post_init__(self) -> None:
        if not str(self.target or "").strip():
            raise ValueError("ScanJob target must be a non-empty string")
        if int(self.concurrency_limit) < 1:
            raise ValueError(f"concurrency_limit must be positive, got {self.concurrency_limit}")
        if float(self.per_probe_timeout) <= 0:
            raise ValueError(f"per_probe_timeout must be positive, got {self.per_probe_timeout}")
        if float(self.global_deadline) <= 0:
            raise ValueError(f"global_deadline must be positive, got {self.global_deadline}")
        candidates = tuple(self.candidates)
        if len(set(candidates)) != len(candidates):
            raise ValueError("ScanJob candidates must be unique")
        object.__setattr__(self, "candidates", candidates)
        if self.requested_candidates is None:
            object.__setattr__(self, "requested_candidates", len(candidates))

    @classmethod
    def from_candidate_set(cls, target: str, candidate_set: CandidateSet, probe: "Probe", **kwargs: Any) -> "ScanJob":
        return cls(
            target=target,
            candidates=candidate_set.items,
            probe=probe,
            requested_candidates=candidate_set.requested,
            truncated=candidate_set.truncated,
            profile=candidate_set.profile,
            **kwargs,
        )


@dataclass
class ScanRun:
    """Raw engine output: final state plus one outcome per candidate."""

    job: ScanJob
    state: JobState = JobState.PENDING
    outcomes: Dict[Candidate, Outcome] = field(default_factory=dict)
    elapsed: Optional[float] = None


@dataclass
class ScanReport:
    target: str
    kind: str
    profile: str
    state: JobState
    found: List[Outcome]
    not_found: List[Outcome]
    errors: List[Outcome]
    requested_candidates: int
    truncated: bool = False
    elapsed: Optional[float] = None
    notes: List[str] = field(default_factory=list)

    @property
    def total_candidates(self) -> int:
        return len(self.found) + len(self.not_found) + len(self.errors)

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "total": self.total_candidates,
            "found": len(self.found),
            "not_found": len(self.not_found),
            "errors": len(self.errors),
            "cancelled": sum(1 for o in self.errors if o.status is OutcomeStatus.CANCELLED),
        }

    @property
    def timed_out(self) -> bool:
        return self.state is JobState.TIMED_OUT

    def raise_for_deadline(self) -> None:
        if self.timed_out:
            pending = self.summary["cancelled"]
            raise DeadlineExceeded(
                f"Scan of {self.target} hit its deadline with {pending} candidate(s) pending",
                report=self,
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "kind": self.kind,
            "profile": self.profile,
            "state": self.state.value,
            "found": [o.to_dict() for o in self.found],
            "not_found": [o.to_dict() for o in self.not_found],
            "errors": [o.to_dict() for o in self.errors],
            "total_candidates": self.total_candidates,
            "requested_candidates": self.requested_candidates,
            "truncated": self.truncated,
            "summary": self.summary,
            "elapsed": None if self.elapsed is None else round(self.elapsed, 3),
            "notes": list(self.notes),
        }
