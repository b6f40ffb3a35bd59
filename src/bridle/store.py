"""On-disk profile store.

Layout::

    profiles/<harness>/.lock
    profiles/<harness>/<profile-name>/<native config file>
    profiles/<harness>/<profile-name>/<resource dirs>/...
    profiles/<harness>/<profile-name>/.bridle-manifest.json

Entries are built in a staging directory beside their final location and
moved into place with a single rename. Mutations hold an exclusive ``flock``
on the harness's ``.lock`` file; reads take no lock.
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Callable
from contextlib import AbstractContextManager
from pathlib import Path

from pydantic import ValidationError

from bridle.errors import (
    InvalidName,
    ParseError,
    ProfileExists,
    ProfileNotFound,
    StoreBusy,
    StoreIOError,
)
from bridle.formats import read_text
from bridle.fsutil import (
    atomic_write_text,
    discard,
    exclusive_lock,
    is_staging_name,
    staging_path,
)
from bridle.harness import Harness
from bridle.models import ProfileName, ResourceManifest

logger = logging.getLogger(__name__)

MANIFEST_FILE = ".bridle-manifest.json"
LOCK_FILE = ".lock"

_POLL_INTERVAL = 0.05
_READ_RETRIES = 20


class ProfileStore:
    """Profile directories for every harness under one root."""

    def __init__(self, root: Path, lock_timeout: float = 5.0) -> None:
        self.root = root
        self.lock_timeout = lock_timeout

    def harness_dir(self, harness: Harness) -> Path:
        return self.root / harness.value

    def entry_path(self, harness: Harness, name: str) -> Path:
        return self.harness_dir(harness) / name

    def exists(self, harness: Harness, name: str) -> bool:
        return self.entry_path(harness, name).is_dir()

    def names(self, harness: Harness) -> list[ProfileName]:
        """Return stored profile names, sorted."""
        directory = self.harness_dir(harness)
        if not directory.is_dir():
            return []

        names: list[ProfileName] = []
        for child in directory.iterdir():
            if not child.is_dir() or child.name.startswith(".") or is_staging_name(child.name):
                continue
            try:
                names.append(ProfileName(child.name))
            except InvalidName:
                logger.debug("Ignoring directory with invalid profile name: %s", child)
        return sorted(names)

    def lock(self, harness: Harness) -> AbstractContextManager[None]:
        """Hold the harness's exclusive write lock.

        Raises:
            StoreBusy: If the lock is not acquired within ``lock_timeout``.
        """
        return exclusive_lock(
            self.harness_dir(harness) / LOCK_FILE,
            self.lock_timeout,
            f"Profile store for {harness.value} is locked by another process",
        )

    def create(self, harness: Harness, name: ProfileName, populate: Callable[[Path], None]) -> Path:
        """Build a new entry with ``populate`` and move it into place.

        The caller must hold the harness lock.
        """
        target = self.entry_path(harness, name)
        if target.exists():
            raise ProfileExists(harness.value, name)

        target.parent.mkdir(parents=True, exist_ok=True)
        staged = staging_path(target, "new")
        try:
            staged.mkdir()
            populate(staged)
            os.rename(staged, target)
        except OSError as e:
            discard(staged)
            raise StoreIOError("create profile", target, e) from e
        except BaseException:
            discard(staged)
            raise
        logger.info("Created profile %s/%s", harness.value, name)
        return target

    def stage(self, harness: Harness, name: str, populate: Callable[[Path], None]) -> Path:
        """Build a replacement for an existing entry beside it, without swapping it in.

        The caller must hold the harness lock and either pass the result to
        :meth:`swap_in` or discard it.
        """
        target = self.entry_path(harness, name)
        if not target.is_dir():
            raise ProfileNotFound(harness.value, name)

        staged = staging_path(target, "new")
        try:
            staged.mkdir()
            populate(staged)
        except OSError as e:
            discard(staged)
            raise StoreIOError("stage profile", target, e) from e
        except BaseException:
            discard(staged)
            raise
        return staged

    def swap_in(self, harness: Harness, name: str, staged: Path) -> Path:
        """Move a staged entry into place and return where the old entry went.

        The old entry is kept until :meth:`roll_back` or ``discard`` is called
        on the returned path. On failure the old entry stays in place and
        ``staged`` is discarded.
        """
        target = self.entry_path(harness, name)
        retired = staging_path(target, "old")
        try:
            os.rename(target, retired)
        except OSError as e:
            discard(staged)
            raise StoreIOError("replace profile", target, e) from e
        try:
            os.rename(staged, target)
        except OSError as e:
            os.rename(retired, target)
            discard(staged)
            raise StoreIOError("replace profile", target, e) from e
        return retired

    def roll_back(self, harness: Harness, name: str, retired: Path) -> None:
        """Put back an entry that :meth:`swap_in` replaced."""
        target = self.entry_path(harness, name)
        rejected = staging_path(target, "del")
        try:
            os.rename(target, rejected)
            os.rename(retired, target)
        except OSError as e:
            raise StoreIOError("restore profile", target, e) from e
        discard(rejected)
        logger.debug("Restored profile %s/%s", harness.value, name)

    def replace(self, harness: Harness, name: str, populate: Callable[[Path], None]) -> Path:
        """Rebuild an existing entry with ``populate`` and swap it in.

        On failure the previous entry is left in place. The caller must hold
        the harness lock.
        """
        staged = self.stage(harness, name, populate)
        discard(self.swap_in(harness, name, staged))
        logger.debug("Replaced profile %s/%s", harness.value, name)
        return self.entry_path(harness, name)

    def remove(self, harness: Harness, name: str) -> None:
        """Delete an entry. The caller must hold the harness lock."""
        target = self.entry_path(harness, name)
        if not target.is_dir():
            raise ProfileNotFound(harness.value, name)

        retired = staging_path(target, "del")
        try:
            os.rename(target, retired)
        except OSError as e:
            raise StoreIOError("delete profile", target, e) from e
        discard(retired)
        logger.info("Deleted profile %s/%s", harness.value, name)

    def _in_flight(self, harness: Harness, name: str) -> bool:
        prefix = f".bridle-{name}."
        directory = self.harness_dir(harness)
        return directory.is_dir() and any(
            child.name.startswith(prefix) for child in directory.iterdir()
        )

    def resolve(self, harness: Harness, name: str) -> Path:
        """Return the directory of an entry, waiting out a concurrent replace.

        Raises:
            ProfileNotFound: If the entry does not exist.
            StoreBusy: If the entry stays mid-replacement.
        """
        target = self.entry_path(harness, name)
        for _ in range(_READ_RETRIES):
            if target.is_dir():
                return target
            if not self._in_flight(harness, name):
                raise ProfileNotFound(harness.value, name)
            time.sleep(_POLL_INTERVAL)
        raise StoreBusy(f"Profile '{name}' for {harness.value} is being rewritten")

    def read_manifest(self, entry: Path) -> ResourceManifest:
        path = entry / MANIFEST_FILE
        if not path.is_file():
            return ResourceManifest()
        try:
            return ResourceManifest.model_validate_json(read_text(path))
        except ValidationError as e:
            raise ParseError("manifest", str(path), str(e)) from e

    def write_manifest(self, entry: Path, manifest: ResourceManifest) -> None:
        payload = manifest.model_dump(mode="json")
        atomic_write_text(entry / MANIFEST_FILE, json.dumps(payload, indent=2) + "\n")
