"""Run-level mutual exclusion for batch runs.

Each run holds a key lock for its whole duration and records the
identifiers it works on in a claim file next to it. Claims are checked and
written under a short-lived registry lock, so two runs whose identifier sets
overlap cannot both start, whatever their keys. Lock and claim files are
removed when the run ends; a claim whose key lock is no longer held belongs
to a dead process and is discarded.
"""

from __future__ import annotations

from contextlib import contextmanager, suppress
import hashlib
import re
from pathlib import Path
from typing import Iterable, Iterator

from filelock import FileLock, Timeout

from .errors import BatchLocked

REGISTRY_NAME = "inflight.registry"
REGISTRY_TIMEOUT = 30.0
CLAIM_SUFFIX = ".claim"


def batch_token(identifiers: Iterable[str]) -> str:
    """Return a stable key for a set of identifiers, independent of order."""
    joined = ",".join(sorted({str(item) for item in identifiers}))
    return "batch-" + hashlib.sha1(joined.encode("utf-8")).hexdigest()[:12]


def lock_path(lock_dir: Path, key: str) -> Path:
    safe = re.sub(r"[^A-Za-z0-9_.-]+", "-", key).strip("-") or "batch"
    return lock_dir / f"{safe}.lock"


@contextmanager
def run_lock(lock_dir: Path, key: str, identifiers: Iterable[str] = ()) -> Iterator[Path]:
    """Hold the lock for key and claim identifiers for the duration of the block.

    Acquisition does not wait: a second run with the same key, or one whose
    identifiers intersect a live claim, raises BatchLocked immediately.
    """
    lock_dir.mkdir(parents=True, exist_ok=True)
    path = lock_path(lock_dir, key)
    claim = path.with_suffix(CLAIM_SUFFIX)
    wanted = {str(item) for item in identifiers}
    lock = FileLock(str(path), timeout=0)

    with _registry(lock_dir, key):
        try:
            lock.acquire()
        except Timeout as exc:
            raise BatchLocked(key) from exc
        try:
            _check_claims(lock_dir, claim, wanted)
            claim.write_text("\n".join(sorted(wanted)), encoding="utf-8")
        except BaseException:
            _release(lock, path)
            raise

    try:
        yield path
    finally:
        with _registry(lock_dir, key):
            with suppress(OSError):
                claim.unlink()
            _release(lock, path)


@contextmanager
def _registry(lock_dir: Path, key: str) -> Iterator[None]:
    registry = FileLock(str(lock_dir / REGISTRY_NAME), timeout=REGISTRY_TIMEOUT)
    try:
        registry.acquire()
    except Timeout as exc:
        raise BatchLocked(key) from exc
    try:
        yield
    finally:
        registry.release()


def _check_claims(lock_dir: Path, own_claim: Path, wanted: set[str]) -> None:
    for other in sorted(lock_dir.glob(f"*{CLAIM_SUFFIX}")):
        if other == own_claim:
            continue
        if not _is_held(other.with_suffix(".lock")):
            with suppress(OSError):
                other.unlink()
            continue
        claimed = set(other.read_text(encoding="utf-8").split())
        overlap = wanted & claimed
        if overlap:
            raise BatchLocked(other.stem, sorted(overlap))


def _is_held(path: Path) -> bool:
    other = FileLock(str(path), timeout=0)
    try:
        other.acquire()
    except Timeout:
        return True
    _release(other, path)
    return False


def _release(lock: FileLock, path: Path) -> None:
    lock.release()
    with suppress(OSError):
        path.unlink()
