"""Error taxonomy for the profile engine.

Every error the engine raises derives from :class:`BridleError`, so callers
can catch one type at the boundary and decide how to report it.
"""

from __future__ import annotations


class BridleError(Exception):
    """Base class for engine errors."""

    pass


class ParseError(BridleError):
    """Raised when a harness config or profile snapshot is malformed."""

    def __init__(self, format: str, location: str | None, message: str) -> None:
        self.format = format
        self.location = location
        self.message = message
        where = f" at {location}" if location else ""
        super().__init__(f"Invalid {format}{where}: {message}")


class InvalidName(BridleError):
    """Raised when a profile or resource name fails its grammar."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid name {name!r}: {reason}")


class ProfileExists(BridleError):
    """Raised when creating a profile whose key is already taken."""

    def __init__(self, harness: str, name: str) -> None:
        self.harness = harness
        self.name = name
        super().__init__(f"Profile '{name}' already exists for {harness}")


class ProfileNotFound(BridleError):
    """Raised when a profile does not exist in the store."""

    def __init__(self, harness: str, name: str) -> None:
        self.harness = harness
        self.name = name
        super().__init__(f"Profile '{name}' not found for {harness}")


class ProfileActive(BridleError):
    """Raised when deleting the active profile without forcing it."""

    def __init__(self, harness: str, name: str) -> None:
        self.harness = harness
        self.name = name
        super().__init__(
            f"Profile '{name}' is active for {harness}; switch away first or force the delete"
        )


class NoConfigFound(BridleError):
    """Raised when a harness has no live configuration to snapshot."""

    def __init__(self, harness: str, path: object | None = None) -> None:
        self.harness = harness
        self.path = path
        where = f" in {path}" if path is not None else ""
        super().__init__(f"No config found for {harness}{where}")


class HarnessCapabilityMissing(BridleError):
    """Raised when an operation needs a feature the harness lacks."""

    def __init__(self, harness: str, capability: str) -> None:
        self.harness = harness
        self.capability = capability
        super().__init__(f"{harness} does not support {capability}")


class StoreBusy(BridleError):
    """Raised when the profile store is locked or mid-write; retry later."""

    pass


class StoreIOError(BridleError):
    """Raised when a filesystem operation on the store or live dir fails."""

    def __init__(self, action: str, path: object, cause: OSError) -> None:
        self.action = action
        self.path = path
        super().__init__(f"Failed to {action} {path}: {cause}")
        self.__cause__ = cause
