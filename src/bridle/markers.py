"""Marker files that name the active profile inside a harness's live dir."""

from __future__ import annotations

import logging
from pathlib import Path

from bridle.events import ProfileSwitched
from bridle.fsutil import remove_path

logger = logging.getLogger(__name__)

MARKER_PREFIX = "BRIDLE_PROFILE_"


def find_markers(live_dir: Path) -> list[Path]:
    if not live_dir.is_dir():
        return []
    return sorted(p for p in live_dir.iterdir() if p.name.startswith(MARKER_PREFIX))


def write_marker(live_dir: Path, name: str) -> Path:
    """Replace any existing marker in ``live_dir`` with one for ``name``."""
    for marker in find_markers(live_dir):
        remove_path(marker)
    marker = live_dir / f"{MARKER_PREFIX}{name}"
    marker.touch()
    logger.debug("Wrote profile marker %s", marker)
    return marker


def marker_handler(event: ProfileSwitched) -> None:
    """Switch handler that keeps the marker file in sync."""
    write_marker(event.live_dir, event.profile)
