"""Follow a growing text file across rotation, line by line.

See `DESIGN.md` for design intent.
"""

__all__ = [
    "__version__",
    "start",
    "Tail",
    "TailConfig",
    "TailError",
    "PathNotFoundError",
    "WatchInitError",
    "ReadError",
    "ReopenExhaustedError",
    "WatchFeedClosedError",
    "ChannelClosed",
    "EventKind",
    "WatchEvent",
]

try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("tailfollow")
except Exception:  # pragma: no cover
    __version__ = "0.0.0"

from tailfollow.channel import ChannelClosed  # noqa: E402  (intentional re-export)
from tailfollow.config import TailConfig  # noqa: E402
from tailfollow.errors import (  # noqa: E402
    PathNotFoundError,
    ReadError,
    ReopenExhaustedError,
    TailError,
    WatchFeedClosedError,
    WatchInitError,
)
from tailfollow.tail import Tail, start  # noqa: E402
from tailfollow.watch import EventKind, WatchEvent  # noqa: E402
