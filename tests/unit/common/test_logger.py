"""Tests for logging setup."""

import logging
import logging.handlers
import uuid

import pytest

from backoffice.common.logger import ROOT_LOGGER, configure_from_settings, setup_logger
from backoffice.core.config import Settings


@pytest.fixture
def logger_name():
    name = f"{ROOT_LOGGER}.test.{uuid.uuid4().hex}"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


class TestSetupLogger:

    def test_console_only_by_default(self, logger_name):
        logger = setup_logger(logger_name)

        assert logger.level == logging.INFO
        assert [type(h) for h in logger.handlers] == [logging.StreamHandler]

    def test_file_logging(self, logger_name, tmp_path):
        log_dir = tmp_path / "logs"
        logger = setup_logger(
            logger_name, log_dir=str(log_dir), level="debug",
            file_logging=True, console_logging=False,
        )
        logger.debug("module cache reloaded")

        [handler] = logger.handlers
        assert isinstance(handler, logging.handlers.RotatingFileHandler)
        handler.flush()
        assert "module cache reloaded" in (log_dir / f"{logger_name}.log").read_text()

    def test_invalid_level(self, logger_name):
        with pytest.raises(ValueError, match="Invalid log level"):
            setup_logger(logger_name, level="LOUD")

    def test_no_duplicate_handlers(self, logger_name):
        setup_logger(logger_name)
        logger = setup_logger(logger_name, level="WARNING")

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING


class TestConfigureFromSettings:

    def test_uses_settings_level(self, tmp_path):
        logger = logging.getLogger(ROOT_LOGGER)
        saved_level, saved_handlers = logger.level, list(logger.handlers)
        try:
            configure_from_settings(Settings(log_level="DEBUG", log_dir=str(tmp_path)))
            assert logger.level == logging.DEBUG
        finally:
            for handler in logger.handlers[len(saved_handlers):]:
                logger.removeHandler(handler)
            logger.setLevel(saved_level)
