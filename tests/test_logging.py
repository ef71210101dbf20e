from __future__ import annotations

import json
import logging

import pytest

from vidhost.core.logging import configure_logging, get_logger, level_from_name


@pytest.fixture()
def restore_logging():
    yield
    configure_logging(level=logging.DEBUG)


def test_level_from_name():
    assert level_from_name("warning") == logging.WARNING
    assert level_from_name("nonsense") == logging.INFO


def test_logger_created_before_configuration_follows_it(restore_logging, capsys):
    logger = get_logger(component="uploads")
    configure_logging(level=logging.WARNING)

    logger.debug("scratch_file_created", path="/tmp/x")
    logger.warning("scratch_file_cleanup_failed", path="/tmp/x")

    lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["event"] == "scratch_file_cleanup_failed"
    assert record["level"] == "warning"
    assert record["component"] == "uploads"
