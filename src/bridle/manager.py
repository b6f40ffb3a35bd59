"""Profile manager: create, inspect, switch, edit, diff and delete profiles."""

from __future__ import annotations

import contextlib
import logging
import os
import shlex
import shutil
import subprocess
import tempfile
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, Field

from bridle.diff import DiffResult, diff_profiles
from bridle.errors import (
    BridleError,
    NoConfigFound,
    ParseError,
    ProfileActive,
    ProfileExists,
    ProfileNotFound,
    StoreIOError,
)
from bridle.events import ProfileSwitched, SwitchNotifier
from bridle.formats import RawTree, parse, read_text, serialize
from bridle.fsutil import (
    atomic_write_text,
    carried_children,
    copy_entry,
    copy_file,
    copy_tree,
    discard,
    remove_path,
    staging_path,
)
from bridle.harness import Harness, HarnessSpec, harness_spec
from bridle.markers import MARKER_PREFIX, marker_handler
from bridle.models import NormalizedConfig, ProfileName, ResourceCategory, ResourceManifest
from bridle.resources import extract_resources
from bridle.settings import (
    BridleSettings,
    get_backups_dir,
    get_config_file,
    get_profiles_dir,
    load_settings,
    modify_settings,
)
from bridle.store import MANIFEST_FILE, ProfileStore

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "default"

T = TypeVar("T")


class ProfileView(BaseModel):
    """Read-only view of a stored profile."""

    harness: Harness
    name: str
    path: Path
    is_active: bool = False
    config_file: str | None = Field(None, description="Native config file name in the profile")
    rules_file: str | None = Field(None, description="Instructions file carried by the profile")
    config: NormalizedConfig = Field(default_factory=NormalizedConfig)
    manifest: ResourceManifest = Field(default_factory=ResourceManifest)
    errors: list[str] = Field(default_factory=list, description="Problems found while reading")


class HarnessStatus(BaseModel):
    """Summary of one harness's live and stored state."""

    harness: Harness
    display_name: str
    live_dir: Path
    installed: bool
    config_file: Path | None = None
    active_profile: str | None = None
    profiles: list[str] = Field(default_factory=list)


@dataclass
class _LivePlan:
    """Everything a switch writes into the live directory."""

    config_name: str
    config_text: str
    mode_from: Path | None
    # (source in the profile, target in live) for files and dirs copied as-is
    copies: list[tuple[Path, Path]] = field(default_factory=list)
    obsolete: list[Path] = field(default_factory=list)


def launch_editor(path: Path, editor: str | None = None) -> None:
    """Open ``path`` in an external editor and wait for it to exit.

    Raises:
        BridleError: If the editor cannot be started or exits with an error.
    """
    command = editor or os.environ.get("VISUAL") or os.environ.get("EDITOR") or "vi"
    argv = [*shlex.split(command), str(path)]
    logger.debug("Launching editor: %s", argv)
    try:
        result = subprocess.run(argv, check=False)
    except OSError as e:
        raise BridleError(f"Could not start editor '{command}': {e}") from e
    if result.returncode != 0:
        raise BridleError(f"Editor '{command}' exited with status {result.returncode}")


def _live_children(live: Path) -> list[Path]:
    return carried_children(live, skip_prefixes=(MARKER_PREFIX,))


class ProfileManager:
    """Entry point for every profile operation.

    The Active Profile Record in ``config.toml`` is re-read and changed one
    harness at a time under its own lock; other settings are never written.
    """

    def __init__(
        self,
        settings: BridleSettings,
        profiles_dir: Path | None = None,
        backups_dir: Path | None = None,
        settings_path: Path | None = None,
        home: Path | None = None,
        notifier: SwitchNotifier | None = None,
    ) -> None:
        self.settings = settings
        self.store = ProfileStore(profiles_dir or get_profiles_dir(), settings.lock_timeout)
        self.backups_dir = backups_dir or get_backups_dir()
        self.settings_path = settings_path
        self.home = home
        self.notifier = notifier or SwitchNotifier()
        if settings.profile_marker:
            self.notifier.subscribe(marker_handler)

    # -- helpers -----------------------------------------------------------

    def live_dir(self, harness: Harness) -> Path:
        return harness_spec(harness).live_dir(self.home)

    def active_profile(self, harness: Harness) -> str | None:
        """Return the active profile, ignoring a record whose profile is gone."""
        name = self.settings.active_profile_for(harness)
        if name is not None and not self.store.exists(harness, name):
            logger.warning("Active profile %s/%s no longer exists", harness.value, name)
            return None
        return name

    def _refresh_active(self) -> None:
        """Pick up record changes made by other processes."""
        config_file = self.settings_path or get_config_file()
        if config_file.exists():
            self.settings.active = load_settings(config_file).active

    def _record_active(self, harness: Harness, name: str | None) -> None:
        """Set or clear one harness's entry in the saved Active Profile Record."""

        def change(current: BridleSettings) -> BridleSettings:
            if name is None:
                current.clear_active(harness)
            else:
                current.set_active(harness, name)
            return current

        saved = modify_settings(change, self.settings_path, self.settings.lock_timeout)
        self.settings.active = saved.active

    def _live_config(self, harness: Harness) -> Path:
        spec = harness_spec(harness)
        live = spec.live_dir(self.home)
        config_file = spec.find_config_file(live)
        if config_file is None:
            raise NoConfigFound(harness.value, live)
        return config_file

    def _load(self, spec: HarnessSpec, root: Path) -> tuple[Path | None, str | None, RawTree]:
        config_file = spec.find_config_file(root)
        if config_file is None:
            return None, None, {}
        text = read_text(config_file)
        return config_file, text, parse(text, spec.config_format)

    def _read_entry(self, harness: Harness, name: str, read: Callable[[Path], T]) -> T:
        """Run ``read`` on a profile's directory, retrying once if it is swapped mid-read."""
        entry = self.store.resolve(harness, name)
        try:
            return read(entry)
        except (FileNotFoundError, StoreIOError) as e:
            cause = e.__cause__ if isinstance(e, StoreIOError) else e
            if not isinstance(cause, FileNotFoundError):
                raise
            logger.debug("Profile %s/%s changed while reading; retrying", harness.value, name)
        return read(self.store.resolve(harness, name))

    def _copy_live(self, spec: HarnessSpec, source: Path, dest: Path) -> None:
        """Copy every carried file and directory of a live dir, plus external files."""
        for child in _live_children(source):
            copy_entry(child, dest / child.name)
        for external in spec.external_paths(self.home):
            if external.is_file():
                copy_file(external, dest / external.name)

    def _snapshot(
        self,
        harness: Harness,
        source: Path,
        raw: RawTree,
        dest: Path,
        previous: ResourceManifest | None = None,
    ) -> None:
        """Copy a live config dir into ``dest`` and write its manifest."""
        spec = harness_spec(harness)
        self._copy_live(spec, source, dest)
        for layout in spec.resources:
            # An empty directory makes the profile own the category on switch
            (dest / layout.directory).mkdir(exist_ok=True)
        manifest = extract_resources(harness, dest, raw, previous)
        self.store.write_manifest(dest, manifest)

    # -- read operations ---------------------------------------------------

    def list_profiles(self, harness: Harness) -> list[ProfileName]:
        return self.store.names(harness)

    def show(self, harness: Harness, name: str) -> ProfileView:
        """Describe a stored profile.

        Parse problems do not raise; they are reported in ``errors``.
        """
        name = ProfileName(name)
        return self._read_entry(harness, name, lambda entry: self._view(harness, name, entry))

    def _view(self, harness: Harness, name: ProfileName, entry: Path) -> ProfileView:
        spec = harness_spec(harness)
        errors: list[str] = []

        config_file = spec.find_config_file(entry)
        raw: RawTree = {}
        config = NormalizedConfig()
        try:
            _, _, raw = self._load(spec, entry)
            config = spec.adapter.extract(raw)
        except ParseError as e:
            errors.append(str(e))
            logger.warning("Profile %s/%s: %s", harness.value, name, e)

        try:
            stored = self.store.read_manifest(entry)
        except ParseError as e:
            errors.append(str(e))
            stored = None
        manifest = extract_resources(harness, entry, raw, previous=stored, errors=errors)

        rules = spec.rules_file
        return ProfileView(
            harness=harness,
            name=name,
            path=entry,
            is_active=self.settings.active_profile_for(harness) == name,
            config_file=config_file.name if config_file else None,
            rules_file=rules if rules and (entry / rules).is_file() else None,
            config=config,
            manifest=manifest,
            errors=errors,
        )

    def diff(self, harness: Harness, name_a: str, name_b: str) -> DiffResult:
        """Structural diff of two profiles of the same harness.

        Raises:
            ProfileNotFound: If either profile is missing.
            ParseError: If either profile's config cannot be parsed.
        """
        spec = harness_spec(harness)

        def read(entry: Path) -> tuple[NormalizedConfig, ResourceManifest]:
            _, _, raw = self._load(spec, entry)
            previous = self.store.read_manifest(entry)
            return spec.adapter.extract(raw), extract_resources(harness, entry, raw, previous)

        left = self._read_entry(harness, ProfileName(name_a), read)
        right = self._read_entry(harness, ProfileName(name_b), read)
        return diff_profiles(
            harness.value,
            name_a,
            name_b,
            (left[0], right[0]),
            (left[1], right[1]),
            spec.adapter.field_modes,
        )

    def harness_status(self, harness: Harness) -> HarnessStatus:
        spec = harness_spec(harness)
        live = spec.live_dir(self.home)
        return HarnessStatus(
            harness=harness,
            display_name=spec.display_name,
            live_dir=live,
            installed=live.is_dir(),
            config_file=spec.find_config_file(live),
            active_profile=self.active_profile(harness),
            profiles=[str(name) for name in self.list_profiles(harness)],
        )

    # -- mutations ---------------------------------------------------------

    def create(self, harness: Harness, name: str, from_current: bool = False) -> ProfileView:
        """Create a profile, empty or as a snapshot of the live config.

        Raises:
            ProfileExists: If the profile already exists.
            NoConfigFound: If ``from_current`` and the harness has no live config.
        """
        name = ProfileName(name)
        spec = harness_spec(harness)

        with self.store.lock(harness):
            if self.store.exists(harness, name):
                raise ProfileExists(harness.value, name)

            if from_current:
                live = spec.live_dir(self.home)
                raw = parse(read_text(self._live_config(harness)), spec.config_format)

                def populate(staged: Path) -> None:
                    self._snapshot(harness, live, raw, staged)

            else:

                def populate(staged: Path) -> None:
                    text = serialize({}, spec.config_format)
                    atomic_write_text(staged / spec.default_config_file, text)
                    self.store.write_manifest(staged, ResourceManifest())

            self.store.create(harness, name, populate)

        return self.show(harness, name)

    def create_default_if_missing(self, harness: Harness) -> bool:
        """Snapshot the live config as ``default`` when that profile does not exist.

        Returns:
            True if the profile was created.
        """
        spec = harness_spec(harness)
        if self.store.exists(harness, DEFAULT_PROFILE):
            return False
        if spec.find_config_file(spec.live_dir(self.home)) is None:
            return False
        try:
            self.create(harness, DEFAULT_PROFILE, from_current=True)
        except ProfileExists:
            return False
        return True

    def delete(self, harness: Harness, name: str, force: bool = False) -> None:
        """Delete a profile.

        Raises:
            ProfileNotFound: If the profile does not exist.
            ProfileActive: If the profile is active and ``force`` is false.
        """
        name = ProfileName(name)
        with self.store.lock(harness):
            self._refresh_active()
            if not self.store.exists(harness, name):
                raise ProfileNotFound(harness.value, name)
            if self.settings.active_profile_for(harness) == name:
                if not force:
                    raise ProfileActive(harness.value, name)
                self._record_active(harness, None)
            self.store.remove(harness, name)

    def switch(self, harness: Harness, name: str) -> ProfileView:
        """Make a profile live.

        The live state is first synced back into the previously active
        profile. That sync is staged and swapped in only together with the
        live commit, so until the Active Profile Record is saved a failure
        leaves the store, the live directory and the record as they were.
        """
        name = ProfileName(name)
        spec = harness_spec(harness)
        live = spec.live_dir(self.home)

        with self.store.lock(harness):
            self._refresh_active()
            entry = self.store.resolve(harness, name)
            previous = self.active_profile(harness)

            pending: tuple[str, Path] | None = None
            if previous is not None and previous != name:
                staged = self._stage_sync_back(harness, previous)
                if staged is not None:
                    pending = (previous, staged)

            retired: Path | None = None
            try:
                plan = self._render_target(harness, entry, live)
                if pending is not None:
                    retired = self.store.swap_in(harness, *pending)
            except BaseException:
                if pending is not None:
                    discard(pending[1])
                raise

            try:
                self._commit_live(live, plan)
            except BaseException:
                if pending is not None and retired is not None:
                    self.store.roll_back(harness, pending[0], retired)
                raise
            if retired is not None:
                discard(retired)

            self._record_active(harness, name)

        logger.info("Switched %s to profile %s", harness.value, name)
        self.notifier.publish(ProfileSwitched(harness, name, live, previous))
        return self.show(harness, name)

    def _stage_sync_back(self, harness: Harness, name: str) -> Path | None:
        """Stage a copy of the live state as the new contents of profile ``name``.

        Returns None when there is no usable live config to sync.
        """
        spec = harness_spec(harness)
        live = spec.live_dir(self.home)
        config_file = spec.find_config_file(live)
        if config_file is None:
            logger.debug("No live config for %s; nothing to sync back", harness.value)
            return None
        try:
            raw = parse(read_text(config_file), spec.config_format)
        except ParseError as e:
            logger.warning("Not syncing %s back into %s: %s", config_file, name, e)
            return None

        previous = self.store.read_manifest(self.store.entry_path(harness, name))

        def populate(staged: Path) -> None:
            self._snapshot(harness, live, raw, staged, previous)

        staged = self.store.stage(harness, name, populate)
        logger.debug("Staged live %s config for sync back into %s", harness.value, name)
        return staged

    def _render_target(self, harness: Harness, entry: Path, live: Path) -> _LivePlan:
        spec = harness_spec(harness)
        profile_file, profile_text, profile_tree = self._load(spec, entry)

        live_file = spec.find_config_file(live)
        live_tree: RawTree = {}
        if live_file is not None:
            try:
                live_tree = parse(read_text(live_file), spec.config_format)
            except ParseError as e:
                logger.warning("Ignoring unparsable live config %s: %s", live_file, e)

        merged = spec.adapter.apply(spec.adapter.extract(profile_tree), live_tree)
        rendered = serialize(merged, spec.config_format)
        if profile_text is not None and rendered == serialize(profile_tree, spec.config_format):
            # Nothing from the live tree survives the merge; keep the profile's formatting
            rendered = profile_text

        if profile_file is not None:
            config_name = profile_file.name
        elif live_file is not None:
            config_name = live_file.name
        else:
            config_name = spec.default_config_file

        obsolete = [
            live / other
            for other in spec.config_files
            if other != config_name and (live / other).is_file()
        ]

        externals = {path.name: path for path in spec.external_paths(self.home)}
        copies: list[tuple[Path, Path]] = []
        for child in _live_children(entry):
            if child.name in spec.config_files:
                continue
            target = externals.get(child.name, live / child.name)
            if target.parent != live and not child.is_file():
                continue
            copies.append((child, target))
        return _LivePlan(config_name, rendered, live_file, copies, obsolete)

    def _commit_live(self, live: Path, plan: _LivePlan) -> None:
        """Stage every live change beside its target, then swap them in by rename."""
        try:
            live.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreIOError("create", live, e) from e

        staged: list[tuple[Path, Path]] = []
        try:
            target = live / plan.config_name
            temp = staging_path(target, "new")
            staged.append((temp, target))
            temp.write_text(plan.config_text, encoding="utf-8")
            if plan.mode_from is not None:
                shutil.copymode(plan.mode_from, temp)
            for source, target in plan.copies:
                temp = staging_path(target, "new")
                staged.append((temp, target))
                copy_entry(source, temp)
        except OSError as e:
            for temp, _ in staged:
                discard(temp)
            raise StoreIOError("stage", live, e) from e
        except BaseException:
            for temp, _ in staged:
                discard(temp)
            raise

        retired: list[tuple[Path, Path]] = []
        placed: list[Path] = []
        try:
            for path in plan.obsolete:
                aside = staging_path(path, "old")
                os.rename(path, aside)
                retired.append((aside, path))
            for temp, target in staged:
                if target.exists() or target.is_symlink():
                    aside = staging_path(target, "old")
                    os.rename(target, aside)
                    retired.append((aside, target))
                os.rename(temp, target)
                placed.append(target)
        except OSError as e:
            self._rollback(placed, retired, staged)
            raise StoreIOError("switch", live, e) from e

        for aside, _ in retired:
            discard(aside)

    @staticmethod
    def _rollback(
        placed: list[Path], retired: list[tuple[Path, Path]], staged: list[tuple[Path, Path]]
    ) -> None:
        for target in reversed(placed):
            discard(target)
        for aside, original in reversed(retired):
            try:
                os.rename(aside, original)
            except OSError:
                logger.exception("Could not restore %s from %s", original, aside)
        for temp, _ in staged:
            discard(temp)
        logger.warning("Rolled back partial switch")

    @contextlib.contextmanager
    def edit(self, harness: Harness, name: str) -> Iterator[Path]:
        """Edit a profile's config through a temporary copy.

        Yields the path of the copy. On a clean exit the copy is parsed and,
        if it changed, replaces the profile's config; the manifest is
        refreshed. If the profile is active the result is applied to the live
        directory too. A ``ParseError`` keeps the pre-edit snapshot.
        """
        name = ProfileName(name)
        spec = harness_spec(harness)
        entry = self.store.resolve(harness, name)
        config_file = spec.find_config_file(entry)
        file_name = config_file.name if config_file else spec.default_config_file
        original = read_text(config_file) if config_file else serialize({}, spec.config_format)

        with tempfile.TemporaryDirectory(prefix="bridle-edit-") as tmp:
            working = Path(tmp) / file_name
            atomic_write_text(working, original)
            yield working

            edited = read_text(working)
            raw = parse(edited, spec.config_format)
            if edited == original:
                logger.info("No changes to %s/%s", harness.value, name)
                return

            with self.store.lock(harness):
                self._refresh_active()
                entry = self.store.resolve(harness, name)
                previous = self.store.read_manifest(entry)

                def populate(staged: Path) -> None:
                    copy_tree(entry, staged)
                    remove_path(staged / MANIFEST_FILE)
                    atomic_write_text(staged / file_name, edited)
                    manifest = extract_resources(harness, staged, raw, previous)
                    self.store.write_manifest(staged, manifest)

                entry = self.store.replace(harness, name, populate)
                logger.info("Updated profile %s/%s", harness.value, name)

                if self.settings.active_profile_for(harness) == name:
                    live = spec.live_dir(self.home)
                    self._commit_live(live, self._render_target(harness, entry, live))

    def edit_with_editor(self, harness: Harness, name: str, editor: str | None = None) -> None:
        with self.edit(harness, name) as path:
            launch_editor(path, editor or self.settings.editor)

    def backup_current(self, harness: Harness) -> Path:
        """Copy the live config dir to a timestamped backup directory.

        Raises:
            NoConfigFound: If the harness has no live config.
        """
        spec = harness_spec(harness)
        live = spec.live_dir(self.home)
        self._live_config(harness)

        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        dest = self.backups_dir / harness.value / stamp
        suffix = 1
        while dest.exists():
            dest = self.backups_dir / harness.value / f"{stamp}_{suffix}"
            suffix += 1

        self._copy_live(spec, live, dest)
        logger.info("Backed up %s to %s", harness.value, dest)
        return dest

    def record_source(
        self,
        harness: Harness,
        name: str,
        category: ResourceCategory,
        resource: str,
        source: str,
    ) -> None:
        """Remember where an installed resource came from."""
        name = ProfileName(name)
        with self.store.lock(harness):
            entry = self.store.resolve(harness, name)
            manifest = self.store.read_manifest(entry)
            manifest.sources[f"{category.value}/{resource}"] = source
            self.store.write_manifest(entry, manifest)
