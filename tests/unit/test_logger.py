"""
Tests for logging setup.
"""

import logging

import pytest

from sealbid.core.config import AuctionConfig
from sealbid.utils.logger import SealbidLogger, configure_logging, get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    setup_logging(level=logging.INFO)


class TestLogging:
    """Tests for the sealbid logger tree."""

    def test_subsystem_names(self):
        assert get_logger("engine").name == "sealbid.engine"

    def test_level_by_name(self):
        setup_logging(level="debug")
        assert logging.getLogger("sealbid").level == logging.DEBUG

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            setup_logging(level="chatty")

    def test_config_drives_file_logging(self, tmp_path):
        config = AuctionConfig(log_level="WARNING", log_dir=tmp_path / "logs")
        configure_logging(config, log_to_file=True)

        get_logger("engine").warning("round 7 rejected")
        for handler in logging.getLogger("sealbid").handlers:
            handler.flush()

        log_file = SealbidLogger.log_file()
        assert log_file == tmp_path / "logs" / "sealbid.log"
        assert "round 7 rejected" in log_file.read_text()
        assert logging.getLogger("sealbid").level == logging.WARNING

    def test_console_only_by_default(self):
        setup_logging()
        assert SealbidLogger.log_file() is None
        assert len(logging.getLogger("sealbid").handlers) == 1
