"""Tests for logging setup."""

import sys

import pytest
from loguru import logger

from notegraph.config import LoggingConfig
from notegraph.utils.logger import get_logger, setup_logging


@pytest.fixture
def restore_logger():
    """Put back a plain stderr sink after the test."""
    yield
    logger.remove()
    logger.add(sys.__stderr__)


@pytest.mark.unit
class TestSetupLogging:
    """Test sink configuration."""

    def test_console_sink(self, capsys, restore_logger):
        """Test console output carries the bound module and respects the level."""
        setup_logging(LoggingConfig(level="WARNING", log_to_file=False))
        log = get_logger("notegraph.services.knowledge_writer")

        log.info("hidden message")
        log.warning("visible message")

        err = capsys.readouterr().err
        assert "visible message" in err
        assert "notegraph.services.knowledge_writer" in err
        assert "hidden message" not in err

    def test_file_sink(self, tmp_path, restore_logger):
        """Test the file sink writes under the configured directory."""
        log_dir = tmp_path / "logs"

        setup_logging(LoggingConfig(level="DEBUG", log_dir=str(log_dir)))
        get_logger("notegraph.tests").info("pipeline started")
        logger.remove()

        assert log_dir.is_dir()
        assert [p.name for p in log_dir.iterdir() if p.name.startswith("notegraph_")]


@pytest.mark.unit
class TestGetLogger:
    """Test bound loggers."""

    def test_binds_module(self):
        """Test the module name is attached as extra."""
        records = []
        handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
        try:
            get_logger("notegraph.config").debug("loaded")
        finally:
            logger.remove(handler_id)

        assert records[0]["extra"]["module"] == "notegraph.config"
        assert records[0]["message"] == "loaded"
