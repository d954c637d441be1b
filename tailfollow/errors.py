"""Errors reported on a tail session's error stream."""

from __future__ import annotations


class TailError(Exception):
    """Base class for fatal tail session errors."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{message}: {path}")
        self.path = path


class PathNotFoundError(TailError):
    """The monitored path does not exist or cannot be opened."""

    def __init__(self, path: str) -> None:
        super().__init__(path, "File not found or not readable")


class WatchInitError(TailError):
    """The change notification service could not be set up for the path."""

    def __init__(self, path: str) -> None:
        super().__init__(path, "Cannot watch file")


class ReadError(TailError):
    def __init__(self, path: str) -> None:
        super().__init__(path, "Read failed")


class ReopenExhaustedError(TailError):
    """The path could not be reopened after rotation within the attempt bound."""

    def __init__(self, path: str, attempts: int) -> None:
        super().__init__(path, f"Reopen failed after {attempts} attempts")
        self.attempts = attempts


class WatchFeedClosedError(TailError):
    def __init__(self, path: str) -> None:
        super().__init__(path, "Change notification feed closed")
