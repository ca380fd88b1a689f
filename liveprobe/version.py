"""Version helpers for liveprobe."""

from __future__ import annotations

import re
from typing import Any, Dict, Tuple

import httpx

__version__ = "1.2.0"
PYPI_PROJECT = "liveprobe"
PYPI_URL = f"https://pypi.org/pypi/{PYPI_PROJECT}/json"

_VERSION_RE = re.compile(r"^\s*v?(\d+(?:\.\d+)*)(?:[.-]?(a|b|rc|dev)\.?(\d*))?", re.IGNORECASE)
# Pre-releases sort below the final release they lead to.
_PRE_RANK = {"dev": 0, "a": 1, "b": 2, "rc": 3}
_FINAL_RANK = 4


def _version_key(raw: str) -> Tuple[Tuple[int, ...], int, int]:
    """Split a version string into (release, pre-release rank, pre-release number).

    Examples:
    - "1.2.0" -> ((1, 2, 0), 4, 0)
    - "1.2.0rc1" -> ((1, 2, 0), 3, 1)
    Unparseable input maps to ((0,), 0, 0) so it never looks newer.
    """
    match = _VERSION_RE.match(str(raw or ""))
    if not match:
        return (0,), 0, 0
    release = tuple(int(part) for part in match.group(1).split("."))
    while len(release) > 1 and release[-1] == 0:
        release = release[:-1]
    pre_tag = (match.group(2) or "").lower()
    if not pre_tag:
        return release, _FINAL_RANK, 0
    return release, _PRE_RANK[pre_tag], int(match.group(3) or 0)


def is_newer_version(latest: str, current: str) -> bool:
    return _version_key(latest) > _version_key(current)


def check_latest_version(current: str = __version__, timeout: float = 2.5) -> Dict[str, Any]:
    """Ask PyPI for the newest published release.

    Never raises: failures are reported through `ok=False` and `error`.
    """
    info: Dict[str, Any] = {
        "ok": False,
        "current": str(current),
        "latest": None,
        "update_available": False,
        "url": PYPI_URL,
        "error": None,
    }
    try:
        response = httpx.get(
            PYPI_URL,
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": f"liveprobe/{current}"},
        )
    except httpx.HTTPError as exc:
        info["error"] = f"{exc.__class__.__name__}: {exc}"
        return info

    if int(response.status_code) >= 400:
        info["error"] = f"HTTP {response.status_code}"
        return info
    try:
        payload = response.json()
    except ValueError as exc:
        info["error"] = f"Invalid JSON from PyPI: {exc}"
        return info

    latest = str(((payload or {}).get("info") or {}).get("version") or "").strip()
    if not latest:
        info["error"] = "Missing version in PyPI response"
        return info
    info.update(ok=True, latest=latest, update_available=is_newer_version(latest, str(current)))
    return info
