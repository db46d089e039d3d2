"""Tests for logging setup."""

import logging

import pytest

from adcrawler.logging_config import setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    def test_lines_carry_crawl_name(self, root_logger, tmp_path):
        log_file = tmp_path / "logs" / "crawl.log"

        setup_logging(level="debug", log_file=str(log_file), crawl_name="weekly")
        logging.getLogger("adcrawler.test").info("Visiting https://a.com")
        for handler in root_logger.handlers:
            handler.flush()

        line = log_file.read_text().strip()
        assert " - weekly - adcrawler.test - INFO - Visiting https://a.com" in line
        assert root_logger.level == logging.DEBUG

    def test_unnamed_crawl_and_unknown_level(self, root_logger, tmp_path):
        log_file = tmp_path / "crawl.log"

        setup_logging(level="chatty", log_file=str(log_file))
        logging.getLogger("adcrawler.test").warning("slow site")
        for handler in root_logger.handlers:
            handler.flush()

        assert " - - - adcrawler.test - WARNING - slow site" in log_file.read_text()
        assert root_logger.level == logging.INFO

    def test_quiets_http_client_logs(self, root_logger):
        setup_logging(level="DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING
