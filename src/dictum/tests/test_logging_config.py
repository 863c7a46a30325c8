"""Tests for logging and monitoring setup."""
import logging
import logging.handlers
from unittest.mock import patch

import pytest

from dictum import logging_config, monitoring
from dictum.logging_config import get_logger, setup_logging


@pytest.fixture
def root_logger():
    """Remove engine handlers and restore the root level after a test."""
    root_logger = logging.getLogger()
    level = root_logger.level
    yield root_logger
    while logging_config._installed:
        handler = logging_config._installed.pop()
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(level)


def test_setup_logging_console(root_logger) -> None:
    """Test console-only logging at an explicit level."""
    engine_logger = setup_logging(level="warning")

    assert engine_logger.name == "dictum"
    assert root_logger.level == logging.WARNING
    assert len(logging_config._installed) == 1
    assert logging_config._installed[0] in root_logger.handlers
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_setup_logging_replaces_own_handlers(root_logger) -> None:
    """Test that repeated setup does not duplicate output."""
    foreign = logging.NullHandler()
    root_logger.addHandler(foreign)
    try:
        setup_logging(level="INFO")
        first = list(logging_config._installed)
        setup_logging(level="INFO")

        assert len(logging_config._installed) == 1
        assert first[0] not in root_logger.handlers
        assert foreign in root_logger.handlers
    finally:
        root_logger.removeHandler(foreign)


def test_setup_logging_file(root_logger, tmp_path) -> None:
    """Test that a log file gets a rotating handler."""
    log_file = tmp_path / "logs" / "dictum.log"
    setup_logging(level="INFO", log_file=str(log_file))

    file_handlers = [
        h for h in logging_config._installed if isinstance(h, logging.handlers.RotatingFileHandler)
    ]
    assert len(file_handlers) == 1
    assert file_handlers[0].maxBytes == logging_config.LOG_FILE_MAX_BYTES
    assert log_file.parent.exists()

    get_logger("dictum.test").info("written")
    file_handlers[0].flush()
    assert "written" in log_file.read_text(encoding="utf-8")


def test_start_monitoring() -> None:
    """Test that the metrics server is started on the given port."""
    with patch("dictum.monitoring.start_http_server") as server:
        monitoring.start_monitoring(port=9191)
    server.assert_called_once_with(9191)


if __name__ == "__main__":
    pytest.main([__file__])
