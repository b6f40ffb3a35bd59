"""Tests for the profile store."""

import fcntl
from pathlib import Path

import pytest

from bridle.errors import ProfileExists, ProfileNotFound, StoreBusy
from bridle.harness import Harness
from bridle.models import ProfileName, ResourceEntry, ResourceManifest
from bridle.store import LOCK_FILE, MANIFEST_FILE, ProfileStore


@pytest.fixture
def store(tmp_path: Path) -> ProfileStore:
    return ProfileStore(tmp_path / "profiles", lock_timeout=0.2)


def _write(content: str):
    def populate(staged: Path) -> None:
        (staged / "settings.json").write_text(content)

    return populate


def test_create_and_names(store: ProfileStore) -> None:
    with store.lock(Harness.CLAUDE_CODE):
        store.create(Harness.CLAUDE_CODE, ProfileName("work"), _write("{}"))
        store.create(Harness.CLAUDE_CODE, ProfileName("default"), _write("{}"))

    assert store.names(Harness.CLAUDE_CODE) == ["default", "work"]
    assert store.names(Harness.GOOSE) == []
    entry = store.entry_path(Harness.CLAUDE_CODE, "work")
    assert (entry / "settings.json").read_text() == "{}"


def test_create_twice_fails(store: ProfileStore) -> None:
    with store.lock(Harness.OPENCODE):
        store.create(Harness.OPENCODE, ProfileName("work"), _write("{}"))
        with pytest.raises(ProfileExists):
            store.create(Harness.OPENCODE, ProfileName("work"), _write("{}"))


def test_failed_populate_leaves_nothing(store: ProfileStore) -> None:
    def explode(staged: Path) -> None:
        (staged / "partial").write_text("x")
        raise RuntimeError("boom")

    with store.lock(Harness.GOOSE), pytest.raises(RuntimeError):
        store.create(Harness.GOOSE, ProfileName("work"), explode)

    harness_dir = store.harness_dir(Harness.GOOSE)
    assert sorted(p.name for p in harness_dir.iterdir()) == [LOCK_FILE]


def test_names_skip_invalid_and_hidden(store: ProfileStore) -> None:
    harness_dir = store.harness_dir(Harness.GOOSE)
    for name in ("ok", "Not Valid", ".hidden", ".bridle-ok.new.abc"):
        (harness_dir / name).mkdir(parents=True)
    (harness_dir / "file-not-dir").write_text("")

    assert store.names(Harness.GOOSE) == ["ok"]


def test_replace_swaps_content(store: ProfileStore) -> None:
    with store.lock(Harness.CLAUDE_CODE):
        store.create(Harness.CLAUDE_CODE, ProfileName("work"), _write("old"))
        store.replace(Harness.CLAUDE_CODE, "work", _write("new"))

    entry = store.entry_path(Harness.CLAUDE_CODE, "work")
    assert (entry / "settings.json").read_text() == "new"
    remaining = [p.name for p in store.harness_dir(Harness.CLAUDE_CODE).iterdir()]
    assert sorted(remaining) == [LOCK_FILE, "work"]


def test_failed_replace_keeps_previous(store: ProfileStore) -> None:
    def explode(staged: Path) -> None:
        raise OSError("disk full")

    with store.lock(Harness.CLAUDE_CODE):
        store.create(Harness.CLAUDE_CODE, ProfileName("work"), _write("old"))
        with pytest.raises(Exception, match="disk full"):
            store.replace(Harness.CLAUDE_CODE, "work", explode)

    entry = store.entry_path(Harness.CLAUDE_CODE, "work")
    assert (entry / "settings.json").read_text() == "old"


def test_remove(store: ProfileStore) -> None:
    with store.lock(Harness.AMP_CODE):
        store.create(Harness.AMP_CODE, ProfileName("work"), _write("{}"))
        store.remove(Harness.AMP_CODE, "work")
        with pytest.raises(ProfileNotFound):
            store.remove(Harness.AMP_CODE, "work")
    assert not store.exists(Harness.AMP_CODE, "work")


def test_resolve_missing(store: ProfileStore) -> None:
    with pytest.raises(ProfileNotFound):
        store.resolve(Harness.OPENCODE, "nope")


def test_resolve_mid_replace_is_busy(store: ProfileStore) -> None:
    (store.harness_dir(Harness.OPENCODE) / ".bridle-work.old.xyz").mkdir(parents=True)
    with pytest.raises(StoreBusy):
        store.resolve(Harness.OPENCODE, "work")


def test_lock_held_elsewhere_is_busy(store: ProfileStore) -> None:
    lock_path = store.harness_dir(Harness.GOOSE) / LOCK_FILE
    lock_path.parent.mkdir(parents=True)
    with lock_path.open("a+b") as handle:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        with pytest.raises(StoreBusy):
            with store.lock(Harness.GOOSE):
                pass
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def test_manifest_round_trip(store: ProfileStore, tmp_path: Path) -> None:
    entry = tmp_path / "entry"
    entry.mkdir()
    assert store.read_manifest(entry) == ResourceManifest()

    manifest = ResourceManifest(skills=[ResourceEntry(name="pdf", declared_name="pdf")])
    store.write_manifest(entry, manifest)

    assert (entry / MANIFEST_FILE).is_file()
    assert store.read_manifest(entry) == manifest


def test_stage_then_swap_in_and_roll_back(store: ProfileStore) -> None:
    with store.lock(Harness.OPENCODE):
        store.create(Harness.OPENCODE, ProfileName("work"), _write("old"))
        staged = store.stage(Harness.OPENCODE, "work", _write("new"))

        entry = store.entry_path(Harness.OPENCODE, "work")
        assert (entry / "settings.json").read_text() == "old"

        retired = store.swap_in(Harness.OPENCODE, "work", staged)
        assert (entry / "settings.json").read_text() == "new"
        assert (retired / "settings.json").read_text() == "old"

        store.roll_back(Harness.OPENCODE, "work", retired)

    assert (entry / "settings.json").read_text() == "old"
    remaining = [p.name for p in store.harness_dir(Harness.OPENCODE).iterdir()]
    assert sorted(remaining) == [LOCK_FILE, "work"]


def test_stage_missing_profile(store: ProfileStore) -> None:
    with store.lock(Harness.GOOSE), pytest.raises(ProfileNotFound):
        store.stage(Harness.GOOSE, "work", _write("{}"))
    assert store.names(Harness.GOOSE) == []
