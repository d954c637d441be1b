from __future__ import annotations

import os
import re
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Mapping

from tailfollow.rotation import Backoff

_DURATION_RE = re.compile(r"^(?P<number>\d+(?:\.\d+)?)(?P<unit>ms|s|m|h|d)?$")
_RAW_ENCODINGS = {"", "raw", "bytes", "none"}


def parse_duration(value: str) -> timedelta:
    """Parse durations like '500ms', '2s', '10m', '1h', '1d' or bare seconds ('1.5')."""
    raw = value.strip().lower()
    if not raw:
        raise ValueError("Empty duration")
    m = _DURATION_RE.match(raw)
    if not m:
        raise ValueError(f"Invalid duration: {value}")
    n = float(m.group("number"))
    unit = m.group("unit") or "s"
    if unit == "ms":
        return timedelta(milliseconds=n)
    if unit == "s":
        return timedelta(seconds=n)
    if unit == "m":
        return timedelta(minutes=n)
    if unit == "h":
        return timedelta(hours=n)
    return timedelta(days=n)


@dataclass(frozen=True)
class TailConfig:
    queue_size: int = 100
    buffer_size: int = 2048
    encoding: str | None = "utf-8"
    initial_backoff: float = 1.0
    max_backoff: float = 30.0
    # None retries the reopen after rotation for as long as the session lives.
    reopen_attempts: int | None = None
    close_timeout: float = 5.0

    def __post_init__(self) -> None:
        if self.queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        if self.buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        if self.initial_backoff <= 0 or self.max_backoff < self.initial_backoff:
            raise ValueError("backoff must satisfy 0 < initial_backoff <= max_backoff")
        if self.reopen_attempts is not None and self.reopen_attempts < 1:
            raise ValueError("reopen_attempts must be at least 1")
        if self.close_timeout < 0:
            raise ValueError("close_timeout must not be negative")

    @property
    def backoff(self) -> Backoff:
        return Backoff(initial=self.initial_backoff, maximum=self.max_backoff)

    def decode(self, line: bytes) -> str | bytes:
        if self.encoding is None:
            return line
        return line.decode(self.encoding, errors="replace")

    def with_overrides(self, **overrides: object) -> "TailConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    @classmethod
    def from_env(
        cls, env_prefix: str = "TAILFOLLOW", environ: Mapping[str, str] | None = None
    ) -> "TailConfig":
        env = os.environ if environ is None else environ

        def _get(name: str) -> str | None:
            value = env.get(f"{env_prefix}_{name}")
            return None if value is None else value.strip()

        kwargs: dict[str, object] = {}
        for name, key in (("QUEUE_SIZE", "queue_size"), ("BUFFER_SIZE", "buffer_size")):
            value = _get(name)
            if value:
                kwargs[key] = int(value)
        for name, key in (("INITIAL_BACKOFF", "initial_backoff"), ("MAX_BACKOFF", "max_backoff")):
            value = _get(name)
            if value:
                kwargs[key] = parse_duration(value).total_seconds()
        attempts = _get("REOPEN_ATTEMPTS")
        if attempts:
            kwargs["reopen_attempts"] = int(attempts)
        encoding = _get("ENCODING")
        if encoding is not None:
            kwargs["encoding"] = None if encoding.lower() in _RAW_ENCODINGS else encoding
        return cls(**kwargs)  # type: ignore[arg-type]
