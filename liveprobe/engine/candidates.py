from __future__ import annotations

"""Candidate set builder.

Expands a scan profile into an ordered, deduplicated tuple of candidates.
Pure apart from optional wordlist file reads; never touches the network.

Profiles can be combined with `+` (e.g. `quick+custom`); sub-lists are merged
as an ordered union, then truncated to the hard cap.
"""

import functools
import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .catalog import DEFAULT_CATALOG, DEFAULT_PROFILES, ProfileCatalog
from .errors import InvalidProfile
from .models import Candidate, CandidateSet

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 1024
KINDS = ("ports", "paths", "subdomains")

_RANGE_RE = re.compile(r"^(\d+)\s*-\s*(\d+)$")
_LABEL_RE = re.compile(r"^[a-z0-9_](?:[a-z0-9_-]{0,61}[a-z0-9_])?(?:\.[a-z0-9_](?:[a-z0-9_-]{0,61}[a-z0-9_])?)*$")
_EXT_RE = re.compile(r"^[A-Za-z0-9]+$")


def parse_port_spec(spec: str) -> List[int]:
    """Expand `"80,443,8000-8010"` into ports in the order written."""
    ports: List[int] = []
    for raw in str(spec or "").split(","):
        token = raw.strip()
        if not token:
            continue
        match = _RANGE_RE.match(token)
        if match:
            start, end = int(match.group(1)), int(match.group(2))
            if start > end:
                raise InvalidProfile(f"Invalid port range (start > end): {token}")
            _check_port(start, token)
            _check_port(end, token)
            ports.extend(range(start, end + 1))
            continue
        if not token.isdigit():
            raise InvalidProfile(f"Invalid port or range: {token}")
        port = int(token)
        _check_port(port, token)
        ports.append(port)
    if not ports:
        raise InvalidProfile("Custom port list is empty")
    return ports


def _check_port(port: int, token: str) -> None:
    if port < 1 or port > 65535:
        raise InvalidProfile(f"Port out of range 1-65535: {token}")


def normalize_path(value: str) -> str:
    path = str(value or "").strip()
    if not path or any(ch.isspace() for ch in path) or "://" in path:
        raise InvalidProfile(f"Invalid path: {value!r}")
    if not path.startswith("/"):
        path = "/" + path
    return path


def normalize_label(value: str) -> str:
    label = str(value or "").strip().lower().strip(".")
    if not label or len(label) > 253 or not _LABEL_RE.match(label):
        raise InvalidProfile(f"Invalid subdomain label: {value!r}")
    return label


def parse_extensions(value: Union[str, Sequence[str], None]) -> List[str]:
    if not value:
        return []
    raw_items = value.split(",") if isinstance(value, str) else list(value)
    exts: List[str] = []
    for raw in raw_items:
        ext = str(raw).strip().lstrip(".")
        if not ext:
            continue
        if not _EXT_RE.match(ext):
            raise InvalidProfile(f"Invalid extension: {raw!r}")
        if ext not in exts:
            exts.append(ext)
    return exts


def with_extensions(paths: Iterable[str], extensions: Sequence[str]) -> List[str]:
    """Return `paths` followed by `path.ext` variants for bare paths.

    Only paths without a dot and without a trailing slash get variants.
    """
    base = list(paths)
    if not extensions:
        return base
    variants = [f"{p}.{ext}" for p in base if "." not in p and not p.endswith("/") for ext in extensions]
    return base + variants


def load_wordlist(path: Union[str, Path]) -> Tuple[str, ...]:
    """Read one subdomain label per line, skipping blanks, comments and invalid labels.

    Recent files are cached by path and mtime, so an edited file is re-read.
    """
    wordlist = Path(path).expanduser()
    try:
        mtime = wordlist.stat().st_mtime
    except OSError as exc:
        raise InvalidProfile(f"Wordlist not readable: {wordlist} ({exc.__class__.__name__})") from exc

    return _read_wordlist(str(wordlist), mtime)


@functools.lru_cache(maxsize=8)
def _read_wordlist(path: str, mtime: float) -> Tuple[str, ...]:
    wordlist = Path(path)
    words: List[str] = []
    seen: set[str] = set()
    skipped = 0
    try:
        with open(wordlist, "r", encoding="utf-8", errors="ignore") as fh:
            for raw in fh:
                word = raw.strip().lower()
                if not word or word.startswith("#"):
                    continue
                try:
                    word = normalize_label(word)
                except InvalidProfile:
                    skipped += 1
                    continue
                if word in seen:
                    continue
                seen.add(word)
                words.append(word)
    except OSError as exc:
        raise InvalidProfile(f"Wordlist not readable: {wordlist} ({exc.__class__.__name__})") from exc

    if skipped:
        logger.debug("Skipped %d invalid labels in %s", skipped, wordlist)
    return tuple(words)


def _union(groups: Iterable[Iterable[Candidate]]) -> List[Candidate]:
    merged: List[Candidate] = []
    seen: set = set()
    for group in groups:
        for item in group:
            if item in seen:
                continue
            seen.add(item)
            merged.append(item)
    return merged


def _split_custom(custom: Optional[str]) -> List[str]:
    return [part.strip() for part in str(custom or "").split(",") if part.strip()]


def _expand_part(
    kind: str,
    part: str,
    custom: Optional[str],
    wordlist: Optional[Union[str, Path]],
    catalog: ProfileCatalog,
) -> List[List[Candidate]]:
    if part == "custom":
        if not custom or not str(custom).strip():
            raise InvalidProfile(f"Profile 'custom' for {kind} requires a custom list")
        if kind == "ports":
            return [list(parse_port_spec(custom))]
        values = _split_custom(custom)
        if not values:
            raise InvalidProfile(f"Custom {kind} list is empty")
        if kind == "paths":
            return [[normalize_path(v) for v in values]]
        return [[normalize_label(v) for v in values]]

    if part == "wordlist":
        if kind != "subdomains":
            raise InvalidProfile("Profile 'wordlist' is only available for subdomains")
        if not wordlist:
            raise InvalidProfile("Profile 'wordlist' requires a wordlist path")
        return [list(load_wordlist(wordlist))]

    named = catalog.profiles(kind)
    if part not in named:
        choices = ", ".join(sorted(list(named.keys()) + ["custom"] + (["wordlist"] if kind == "subdomains" else [])))
        raise InvalidProfile(f"Unknown {kind} profile: {part!r} (choose from: {choices})")
    return [list(group) for group in named[part]]


def build_candidates(
    kind: str,
    profile: Optional[str] = None,
    *,
    custom: Optional[str] = None,
    extensions: Union[str, Sequence[str], None] = None,
    wordlist: Optional[Union[str, Path]] = None,
    catalog: ProfileCatalog = DEFAULT_CATALOG,
    limit: int = MAX_CANDIDATES,
) -> CandidateSet:
    """Expand `profile` for scan `kind` into a deterministic `CandidateSet`.

    Raises `InvalidProfile` for any malformed input; nothing is probed yet.
    """
    if kind not in KINDS:
        raise InvalidProfile(f"Unknown scan kind: {kind!r} (choose from: {', '.join(KINDS)})")
    if limit < 1:
        raise InvalidProfile(f"Candidate limit must be positive, got {limit}")

    profile_name = str(profile or DEFAULT_PROFILES[kind]).strip().lower()
    parts = [p.strip() for p in profile_name.split("+") if p.strip()]
    if not parts:
        raise InvalidProfile(f"Empty {kind} profile")

    groups: List[List[Candidate]] = []
    for part in parts:
        groups.extend(_expand_part(kind, part, custom, wordlist, catalog))

    merged = _union(groups)
    if kind == "paths":
        merged = _union([with_extensions(merged, parse_extensions(extensions))])
    elif extensions:
        raise InvalidProfile("Extensions are only supported for path scans")

    requested = len(merged)
    truncated = requested > limit
    if truncated:
        logger.warning("Candidate set for %s/%s truncated from %d to %d", kind, profile_name, requested, limit)
        merged = merged[:limit]

    return CandidateSet(
        kind=kind,
        profile=profile_name,
        items=tuple(merged),
        requested=requested,
        truncated=truncated,
    )
