"""Public package surface for liveprobe.

Importing `liveprobe` exposes the high-level API function (`LIVEPROBE`), the
engine building blocks most callers need, and the package version.
"""

from .core import (
    LIVEPROBE,
    DeadlineExceeded,
    InvalidProfile,
    ScanEngine,
    ScanJob,
    ScanReport,
    build_candidates,
)
from .version import __version__

__all__ = [
    "LIVEPROBE",
    "DeadlineExceeded",
    "InvalidProfile",
    "ScanEngine",
    "ScanJob",
    "ScanReport",
    "build_candidates",
    "__version__",
]
