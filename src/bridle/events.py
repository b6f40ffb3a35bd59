"""Notifications published after a profile switch."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from bridle.harness import Harness

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfileSwitched:
    """A profile became live for a harness."""

    harness: Harness
    profile: str
    live_dir: Path
    previous: str | None = None


SwitchHandler = Callable[[ProfileSwitched], None]


class SwitchNotifier:
    """Synchronous publisher for :class:`ProfileSwitched` events.

    A failing handler is logged and does not affect the others or the switch
    that triggered it.
    """

    def __init__(self) -> None:
        self._subscribers: list[SwitchHandler] = []

    def subscribe(self, handler: SwitchHandler) -> None:
        self._subscribers.append(handler)

    def publish(self, event: ProfileSwitched) -> None:
        for handler in self._subscribers:
            try:
                handler(event)
            except Exception:
                logger.exception("Error in switch handler %r", handler)
