"""Candidate discovery for the indexer.

Walks the configured roots following symlinks, pruning any directory or
file whose name starts with '.' or matches an exclude pattern, and keeps
regular files whose extension is allowed and whose size is under the cap.
"""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterable, Iterator
from pathlib import Path

import structlog

log = structlog.get_logger()

# |current - stored| below this counts as unchanged
MTIME_EPSILON_SEC = 1.0


def expand_tilde(path: str) -> Path:
    return Path(path).expanduser()


def file_mtime(path: Path) -> float:
    """Modification time in epoch seconds, 0.0 if the file cannot be stat'ed."""
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


def is_file_modified(current: float, stored: float | None) -> bool:
    """New (no stored mtime) or changed by at least MTIME_EPSILON_SEC."""
    if stored is None:
        return True
    return abs(current - stored) >= MTIME_EPSILON_SEC


def _is_hidden(name: str) -> bool:
    return name.startswith(".")


def _is_excluded(name: str, patterns: Iterable[str]) -> bool:
    return any(fnmatch.fnmatch(name, p) for p in patterns)


def is_indexable(path: Path, max_size: int, extensions: Iterable[str]) -> bool:
    """True for a non-hidden regular file with an allowed extension within max_size."""
    if _is_hidden(path.name):
        return False
    ext = path.suffix.lower().lstrip(".")
    if not ext or ext not in extensions:
        return False
    try:
        st = path.stat()
    except OSError:
        return False
    return path.is_file() and st.st_size <= max_size


def _walk(root: Path, exclude_patterns: list[str]) -> Iterator[Path]:
    # followlinks can revisit a directory through a symlink cycle
    seen: set[tuple[int, int]] = set()

    def on_error(err: OSError) -> None:
        log.debug("walk_error", path=err.filename, error=err.strerror)

    for dirpath, dirnames, filenames in os.walk(root, followlinks=True, onerror=on_error):
        try:
            st = os.stat(dirpath)
        except OSError:
            dirnames[:] = []
            continue
        key = (st.st_dev, st.st_ino)
        if key in seen:
            dirnames[:] = []
            continue
        seen.add(key)

        dirnames[:] = sorted(
            d for d in dirnames if not _is_hidden(d) and not _is_excluded(d, exclude_patterns)
        )
        for name in sorted(filenames):
            if _is_hidden(name) or _is_excluded(name, exclude_patterns):
                continue
            yield Path(dirpath) / name


def collect_indexable_paths(
    roots: Iterable[str],
    *,
    max_size: int,
    extensions: Iterable[str],
    exclude_patterns: list[str] | None = None,
) -> list[Path]:
    """Every indexable file under roots, in walk order. Missing roots are skipped."""
    allowed = frozenset(e.lower().lstrip(".") for e in extensions)
    patterns = exclude_patterns or []
    found: list[Path] = []
    for raw in roots:
        root = expand_tilde(raw).absolute()
        if not root.is_dir():
            log.debug("index_root_missing", root=str(root))
            continue
        found.extend(p for p in _walk(root, patterns) if is_indexable(p, max_size, allowed))
    return found
