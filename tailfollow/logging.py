from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import WatchedFileHandler
from pathlib import Path


def _level_name_to_int(level_name: str, default: int) -> int:
    name = level_name.strip().upper()
    if not name:
        return default
    candidate: object = getattr(logging, name, None)
    if isinstance(candidate, int):
        return candidate
    return default


class UtcMillisFormatter(logging.Formatter):
    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.strftime("%Y-%m-%dT%H:%M:%S") + f".{int(record.msecs):03d}Z"


@dataclass(frozen=True)
class LoggingContract:
    env_prefix: str
    app_logger_prefix: str

    @property
    def env_log_level(self) -> str:
        return f"{self.env_prefix}_LOG_LEVEL"

    @property
    def env_third_party_level(self) -> str:
        return f"{self.env_prefix}_THIRD_PARTY_LOG_LEVEL"

    @property
    def env_log_file(self) -> str:
        return f"{self.env_prefix}_LOG_FILE"


def configure_logging(
    *,
    env_prefix: str = "TAILFOLLOW",
    app_logger_prefix: str = "tailfollow",
    log_file: Path | str | None = None,
) -> Path | None:
    """Configure logging for the command line follower.

    Package loggers use `<PREFIX>_LOG_LEVEL` (default INFO); everything else,
    watchdog included, uses `<PREFIX>_THIRD_PARTY_LOG_LEVEL` (default WARNING).
    Records go to `log_file` or `<PREFIX>_LOG_FILE` when set, else to stderr,
    keeping stdout for followed lines.

    Returns the log file path in use, if any.
    """
    contract = LoggingContract(env_prefix=env_prefix, app_logger_prefix=app_logger_prefix)

    our_level = _level_name_to_int(os.getenv(contract.env_log_level) or "INFO", logging.INFO)
    third_party_level = _level_name_to_int(
        os.getenv(contract.env_third_party_level) or "WARNING", logging.WARNING
    )

    if log_file is None:
        env_file = os.getenv(contract.env_log_file)
        log_file = Path(env_file).expanduser() if env_file else None
    else:
        log_file = Path(log_file)

    formatter = UtcMillisFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    handler: logging.Handler
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        # Our own log may be rotated underneath us too.
        handler = WatchedFileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.NOTSET)
    handler.setFormatter(formatter)

    logging.root.handlers = [handler]
    logging.root.setLevel(third_party_level)
    logging.getLogger(app_logger_prefix).setLevel(our_level)

    return log_file
