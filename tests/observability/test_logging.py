"""Tests for shared observability logging."""

import logging
import time

import pytest

from dispatch_ranker.observability.logging import get_logger, set_log_level


def test_get_logger_formats_utc_timestamps(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    fixed = time.struct_time((2026, 3, 2, 8, 15, 0, 0, 61, 0))

    def fake_gmtime(_: float | None = None) -> time.struct_time:
        return fixed

    monkeypatch.setattr(time, "gmtime", fake_gmtime)

    logger = get_logger("dispatch_ranker.test.logging.utc")
    logger.info("Ranked %s technicians", 3)

    captured = capsys.readouterr()
    assert (
        "2026-03-02T08:15:00+0000 INFO dispatch_ranker.test.logging.utc: Ranked 3 technicians"
        in captured.err
    )


def test_get_logger_reuses_handler_per_name() -> None:
    name = "dispatch_ranker.test.logging.singleton"
    logger = get_logger(name)
    logger_again = get_logger(name)

    assert logger is logger_again
    assert len(logger.handlers) == 1
    assert logger.level == logging.INFO
    assert logger.propagate is False


def test_set_log_level_only_touches_package_loggers() -> None:
    ours = get_logger("dispatch_ranker.test.logging.level")
    theirs = get_logger("somebody_else.test.logging.level")
    try:
        set_log_level(logging.DEBUG)

        assert ours.level == logging.DEBUG
        assert theirs.level == logging.INFO
    finally:
        set_log_level(logging.INFO)
