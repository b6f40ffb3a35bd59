"""Filesystem primitives shared by the store and the manager.

All mutation goes through temp-write-then-rename so a reader never observes a
half-written file.
"""

from __future__ import annotations

import contextlib
import fcntl
import logging
import os
import shutil
import tempfile
import time
from collections.abc import Iterator
from pathlib import Path

from bridle.errors import StoreBusy, StoreIOError

logger = logging.getLogger(__name__)

# Names skipped when copying config and resource trees
EXCLUDED_NAMES = frozenset({".git", ".DS_Store", "Thumbs.db", "__pycache__", "node_modules"})

STAGING_PREFIX = ".bridle-"

_POLL_INTERVAL = 0.05


def atomic_write_text(path: Path, text: str) -> None:
    """Write text to ``path`` through a temp file in the same directory."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{STAGING_PREFIX}{path.name}.", suffix=".tmp", dir=path.parent
        )
    except OSError as e:
        raise StoreIOError("write", path, e) from e

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise StoreIOError("write", path, e) from e


def staging_path(target: Path, tag: str) -> Path:
    """Return an unused sibling path for staging writes to ``target``."""
    fd, name = tempfile.mkstemp(prefix=f"{STAGING_PREFIX}{target.name}.{tag}.", dir=target.parent)
    os.close(fd)
    os.unlink(name)
    return Path(name)


def is_staging_name(name: str) -> bool:
    return name.startswith(STAGING_PREFIX)


def copy_tree(src: Path, dst: Path) -> None:
    """Copy a directory tree, skipping excluded names and keeping symlinks as links."""
    try:
        dst.mkdir(parents=True, exist_ok=True)
        for entry in sorted(src.iterdir()):
            if entry.name in EXCLUDED_NAMES:
                continue
            target = dst / entry.name
            if entry.is_symlink():
                with contextlib.suppress(FileNotFoundError):
                    target.unlink()
                target.symlink_to(os.readlink(entry))
            elif entry.is_dir():
                copy_tree(entry, target)
            else:
                shutil.copy2(entry, target)
    except OSError as e:
        raise StoreIOError("copy", src, e) from e


def copy_file(src: Path, dst: Path) -> None:
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
    except OSError as e:
        raise StoreIOError("copy", src, e) from e


def copy_entry(src: Path, dst: Path) -> None:
    """Copy a file, symlink or directory tree to ``dst``."""
    if src.is_symlink():
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            dst.symlink_to(os.readlink(src))
        except OSError as e:
            raise StoreIOError("copy", src, e) from e
    elif src.is_dir():
        copy_tree(src, dst)
    else:
        copy_file(src, dst)


def carried_children(directory: Path, skip_prefixes: tuple[str, ...] = ()) -> list[Path]:
    """Top-level entries of a config directory that snapshots copy.

    Excluded names and staging entries are left out, as are names starting
    with one of ``skip_prefixes``.
    """
    if not directory.is_dir():
        return []
    return [
        child
        for child in sorted(directory.iterdir())
        if child.name not in EXCLUDED_NAMES
        and not is_staging_name(child.name)
        and not child.name.startswith(skip_prefixes)
    ]


def remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree if it exists."""
    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as e:
        raise StoreIOError("remove", path, e) from e


def discard(path: Path) -> None:
    """Best-effort cleanup of a staging path; failures are only logged."""
    try:
        remove_path(path)
    except StoreIOError as e:
        logger.warning("Could not clean up %s: %s", path, e)


@contextlib.contextmanager
def exclusive_lock(lock_path: Path, timeout: float, busy_message: str) -> Iterator[None]:
    """Hold an exclusive ``flock`` on ``lock_path``, polling for up to ``timeout`` seconds.

    Raises:
        StoreBusy: If another process keeps the lock past the timeout.
    """
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = lock_path.open("a+b")
    except OSError as e:
        raise StoreIOError("open lock", lock_path, e) from e

    with handle:
        deadline = time.monotonic() + timeout
        while True:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    raise StoreBusy(busy_message) from None
                time.sleep(_POLL_INTERVAL)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
