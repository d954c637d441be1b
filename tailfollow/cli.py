from __future__ import annotations

import argparse
import queue
import sys
import time
from dataclasses import replace
from typing import Any, Iterator

from tailfollow.channel import ChannelClosed
from tailfollow.config import TailConfig, parse_duration
from tailfollow.errors import TailError
from tailfollow.logging import configure_logging
from tailfollow.tail import Line, start


def iter_follow_lines(
    path: str,
    *,
    config: TailConfig | None = None,
    poll_interval_s: float = 0.25,
    max_lines: int | None = None,
    max_seconds: float | None = None,
    **tail_kwargs: Any,
) -> Iterator[Line]:
    """Yield every line of `path`, then every line appended to it, like `tail -F`.

    - Follows the path across rotation.
    - Raises the session error, if one is reported.
    - `max_lines`/`max_seconds` are mainly for tests.
    """
    deadline = None if max_seconds is None else (time.monotonic() + max_seconds)
    emitted = 0

    tail = start(path, config, **tail_kwargs)
    try:
        while True:
            timeout = poll_interval_s
            if deadline is not None:
                timeout = min(timeout, deadline - time.monotonic())
                if timeout <= 0:
                    return
            try:
                line = tail.lines.get(timeout=timeout)
            except queue.Empty:
                continue
            except ChannelClosed:
                break
            yield line
            emitted += 1
            if max_lines is not None and emitted >= max_lines:
                return

        tail.join(tail.config.close_timeout)
        try:
            error = tail.errors.get(timeout=0)
        except (queue.Empty, ChannelClosed):
            return
        raise error
    finally:
        tail.close()


def _duration_seconds(value: str) -> float:
    try:
        return parse_duration(value).total_seconds()
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tailfollow",
        description="Print every line of a file and keep following it across rotation",
    )
    parser.add_argument("path", help="File to follow")
    parser.add_argument("--encoding", default=None, help="Line encoding (default: utf-8)")
    parser.add_argument("--raw", action="store_true", help="Write lines as raw bytes")
    parser.add_argument("--queue-size", type=int, default=None, help="Lines buffered for output")
    parser.add_argument("--buffer-size", type=int, default=None, help="Initial read buffer in bytes")
    parser.add_argument(
        "--initial-backoff", type=_duration_seconds, default=None, help="First reopen delay (e.g. 1s)"
    )
    parser.add_argument(
        "--max-backoff", type=_duration_seconds, default=None, help="Reopen delay cap (e.g. 30s)"
    )
    parser.add_argument(
        "--reopen-attempts",
        type=int,
        default=None,
        help="Give up after N failed reopens (default: retry forever)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_arg_parser().parse_args(argv)
    configure_logging()

    try:
        config = TailConfig.from_env().with_overrides(
            encoding=args.encoding,
            queue_size=args.queue_size,
            buffer_size=args.buffer_size,
            initial_backoff=args.initial_backoff,
            max_backoff=args.max_backoff,
            reopen_attempts=args.reopen_attempts,
        )
        if args.raw:
            config = replace(config, encoding=None)
    except ValueError as e:
        raise SystemExit(str(e)) from e

    try:
        for line in iter_follow_lines(args.path, config=config):
            if isinstance(line, bytes):
                sys.stdout.buffer.write(line + b"\n")
            else:
                sys.stdout.write(line + "\n")
            sys.stdout.flush()
    except KeyboardInterrupt:
        return
    except TailError as e:
        raise SystemExit(str(e)) from e


if __name__ == "__main__":
    main()
