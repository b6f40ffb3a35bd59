"""Tool settings stored in ``config.toml``.

The base directory is ``~/.config/bridle`` unless ``BRIDLE_CONFIG_DIR`` points
elsewhere. Settings are loaded once and passed around explicitly; nothing
here caches them.
"""

from __future__ import annotations

import logging
import os
import tomllib
from collections.abc import Callable
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import BaseModel, Field, ValidationError, field_validator

from bridle.errors import BridleError, InvalidName, ParseError
from bridle.formats import read_text
from bridle.fsutil import atomic_write_text, exclusive_lock
from bridle.harness import Harness
from bridle.models import ProfileName

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "BRIDLE_CONFIG_DIR"
CONFIG_FILE = "config.toml"


def get_config_dir() -> Path:
    """Get the bridle config directory.

    Returns:
        ``$BRIDLE_CONFIG_DIR`` when set, otherwise ``~/.config/bridle``.
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "bridle"


def get_config_file() -> Path:
    return get_config_dir() / CONFIG_FILE


def get_profiles_dir() -> Path:
    return get_config_dir() / "profiles"


def get_backups_dir() -> Path:
    return get_config_dir() / "backups"


class BridleSettings(BaseModel):
    """Contents of ``config.toml``."""

    editor: str | None = Field(None, description="Editor command; falls back to $VISUAL/$EDITOR")
    profile_marker: bool = Field(False, description="Drop BRIDLE_PROFILE_<name> into live dirs")
    default_harness: str | None = Field(None, description="Harness used when none is given")
    lock_timeout: float = Field(5.0, description="Seconds to wait for the store lock")
    active: dict[str, str] = Field(
        default_factory=dict, description="Active profile per harness id"
    )

    @field_validator("default_harness")
    @classmethod
    def validate_default_harness(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return Harness.parse(v).value

    @field_validator("lock_timeout")
    @classmethod
    def validate_lock_timeout(cls, v: float) -> float:
        if v < 0:
            raise ValueError("lock_timeout must not be negative")
        return v

    @field_validator("active")
    @classmethod
    def validate_active(cls, v: dict[str, str]) -> dict[str, str]:
        for harness, name in v.items():
            Harness(harness)
            try:
                ProfileName(name)
            except InvalidName as e:
                raise ValueError(str(e)) from e
        return v

    def active_profile_for(self, harness: Harness) -> str | None:
        return self.active.get(harness.value)

    def set_active(self, harness: Harness, name: str) -> None:
        self.active[harness.value] = name

    def clear_active(self, harness: Harness) -> None:
        self.active.pop(harness.value, None)


# Keys exposed to `bridle config get/set`
SETTING_KEYS = ("editor", "profile_marker", "default_harness", "lock_timeout")


def load_settings(path: Path | None = None) -> BridleSettings:
    """Load settings, returning defaults when the file does not exist.

    Raises:
        ParseError: If the file is not valid TOML or holds invalid values.
    """
    config_file = path or get_config_file()
    if not config_file.exists():
        return BridleSettings()

    text = read_text(config_file)
    try:
        data: dict[str, Any] = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ParseError("toml", str(config_file), str(e)) from e
    try:
        return BridleSettings.model_validate(data)
    except ValidationError as e:
        raise ParseError("toml", str(config_file), str(e)) from e


def save_settings(settings: BridleSettings, path: Path | None = None) -> None:
    """Write settings atomically."""
    config_file = path or get_config_file()
    text = tomli_w.dumps(settings.model_dump(exclude_none=True))
    atomic_write_text(config_file, text)
    logger.debug("Saved settings to %s", config_file)


def modify_settings(
    change: Callable[[BridleSettings], BridleSettings],
    path: Path | None = None,
    timeout: float = 5.0,
) -> BridleSettings:
    """Apply ``change`` to the settings on disk and save the result.

    The file is re-read under an exclusive lock, so concurrent writers each
    change only what they meant to and never save a stale copy.

    Returns:
        The settings as saved.
    """
    config_file = path or get_config_file()
    lock_path = config_file.with_name(f".{config_file.name}.lock")
    with exclusive_lock(lock_path, timeout, f"{config_file} is locked by another process"):
        updated = change(load_settings(config_file))
        save_settings(updated, config_file)
    return updated


def coerce_setting(key: str, value: str) -> Any:
    """Convert a command-line string into the type a setting expects."""
    if key not in SETTING_KEYS:
        raise BridleError(f"Unknown setting '{key}'. Known settings: {', '.join(SETTING_KEYS)}")
    if key == "profile_marker":
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
        raise BridleError(f"Setting '{key}' expects true or false, got '{value}'")
    if key == "lock_timeout":
        try:
            return float(value)
        except ValueError:
            raise BridleError(f"Setting '{key}' expects a number, got '{value}'") from None
    if value.strip().lower() in ("", "none", "null"):
        return None
    return value


def update_setting(settings: BridleSettings, key: str, value: str) -> BridleSettings:
    """Return a copy of ``settings`` with one key changed and re-validated."""
    data = settings.model_dump()
    data[key] = coerce_setting(key, value)
    try:
        return BridleSettings.model_validate(data)
    except ValidationError as e:
        raise BridleError(f"Invalid value for '{key}': {e.errors()[0]['msg']}") from e
