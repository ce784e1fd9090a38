"""
Unit tests for logging setup.
"""
import logging

import pytest

from swarf.utils.logging import get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_swarf_logger():
    logger = logging.getLogger("swarf")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]


class TestGetLogger:
    def test_module_names_live_under_swarf(self):
        assert get_logger("swarf.core.parser").name == "swarf.core.parser"
        assert get_logger("cli").name == "swarf.cli"


class TestSetupLogging:
    def test_level_and_single_handler(self):
        setup_logging("DEBUG")
        setup_logging("DEBUG")
        logger = logging.getLogger("swarf")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_environment_level(self, monkeypatch):
        monkeypatch.setenv("SWARF_LOG_LEVEL", "error")
        setup_logging()
        assert logging.getLogger("swarf").level == logging.ERROR

    def test_unknown_level_falls_back_to_warning(self):
        setup_logging("chatty")
        assert logging.getLogger("swarf").level == logging.WARNING

    def test_log_file(self, tmp_path):
        path = tmp_path / "swarf.log"
        setup_logging("INFO", str(path))
        get_logger("test").info("hello")
        for handler in logging.getLogger("swarf").handlers:
            handler.flush()
            if isinstance(handler, logging.FileHandler):
                handler.close()
        assert "hello" in path.read_text()
