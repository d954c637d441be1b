from __future__ import annotations

import threading
import time
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from tailfollow import PathNotFoundError
from tailfollow.cli import build_arg_parser, iter_follow_lines, main
from tailfollow.watch import EventKind


def _append(path: Path, text: str) -> None:
    with path.open("a", encoding="utf-8") as f:
        f.write(text)
        f.flush()


def test_iter_follow_lines_yields_existing_then_appended_lines(fake_watchers):
    with TemporaryDirectory() as tmp:
        log_file = Path(tmp) / "app.log"
        log_file.write_text("old\n", encoding="utf-8")

        got: list[str] = []

        def _reader():
            got.extend(
                iter_follow_lines(
                    str(log_file),
                    poll_interval_s=0.01,
                    max_lines=3,
                    max_seconds=5,
                    watcher_factory=fake_watchers,
                )
            )

        t = threading.Thread(target=_reader, daemon=True)
        t.start()

        watcher = fake_watchers.watcher
        assert watcher.armed.wait(2)
        _append(log_file, "new1\n")
        _append(log_file, "new2\n")
        watcher.emit(EventKind.WRITE)

        t.join(timeout=5)
        assert got == ["old", "new1", "new2"]
        assert watcher.closed


def test_iter_follow_lines_stops_at_deadline(fake_watchers):
    with TemporaryDirectory() as tmp:
        log_file = Path(tmp) / "app.log"
        log_file.write_text("only\n", encoding="utf-8")

        started = time.monotonic()
        got = list(
            iter_follow_lines(
                str(log_file), poll_interval_s=0.01, max_seconds=0.2, watcher_factory=fake_watchers
            )
        )
        assert got == ["only"]
        assert time.monotonic() - started < 3


def test_iter_follow_lines_raises_session_error(fake_watchers):
    with TemporaryDirectory() as tmp:
        with pytest.raises(PathNotFoundError):
            list(
                iter_follow_lines(
                    str(Path(tmp) / "missing.log"), max_seconds=5, watcher_factory=fake_watchers
                )
            )


def test_main_reports_missing_file(tmp_path: Path, monkeypatch):
    monkeypatch.setattr("tailfollow.cli.configure_logging", lambda: None)
    with pytest.raises(SystemExit) as excinfo:
        main([str(tmp_path / "missing.log")])
    assert "missing.log" in str(excinfo.value)


def test_main_rejects_invalid_config(tmp_path: Path, monkeypatch):
    monkeypatch.setattr("tailfollow.cli.configure_logging", lambda: None)
    with pytest.raises(SystemExit) as excinfo:
        main([str(tmp_path / "app.log"), "--queue-size", "0"])
    assert "queue_size" in str(excinfo.value)


def test_arg_parser_parses_durations():
    args = build_arg_parser().parse_args(
        ["app.log", "--initial-backoff", "250ms", "--max-backoff", "1m", "--reopen-attempts", "4"]
    )
    assert args.initial_backoff == 0.25
    assert args.max_backoff == 60.0
    assert args.reopen_attempts == 4
    assert args.raw is False
