"""Tests for logging configuration."""

from collections.abc import Iterator
from pathlib import Path

import pytest
from loguru import logger

from nibandh.logging_config import configure_logging


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    yield
    configure_logging(verbose=False)


def test_log_file_receives_records(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "nibandh.log"
    configure_logging(verbose=False, log_file=log_file)

    logger.debug("hidden detail")
    logger.info("Saved draft {}", "abc")
    logger.complete()

    text = log_file.read_text(encoding="utf-8")
    assert "Saved draft abc" in text
    assert "hidden detail" not in text


def test_verbose_logs_debug_to_file(tmp_path: Path) -> None:
    log_file = tmp_path / "nibandh.log"
    configure_logging(verbose=True, log_file=log_file)

    logger.debug("Running: git status")
    logger.complete()

    assert "DEBUG" in log_file.read_text(encoding="utf-8")
