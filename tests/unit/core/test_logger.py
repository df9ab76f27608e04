"""
Unit tests for loguru sink setup.
"""

import sys

import pytest
from loguru import logger

from mexc_watch.core.logger import setup_logging


@pytest.fixture(autouse=True)
def restore_default_sink():
    yield
    logger.remove()
    logger.add(sys.stderr)


class TestSetupLogging:
    """Test setup_logging()."""

    def test_file_sink_creates_directory_and_records_debug(self, tmp_path):
        log_file = tmp_path / "logs" / "mexc_watch.log"

        setup_logging("WARNING", log_file=str(log_file))
        logger.debug("baseline set for BTC_USDT")

        assert log_file.exists()
        assert "baseline set for BTC_USDT" in log_file.read_text(encoding="utf-8")

    def test_console_only(self, tmp_path, capsys):
        setup_logging("INFO", log_file=None)
        logger.info("cycle done")

        assert "cycle done" in capsys.readouterr().err
