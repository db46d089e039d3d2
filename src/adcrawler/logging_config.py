"""Logging configuration for the ad crawler."""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(crawl)s - %(name)s - %(levelname)s - %(message)s'

# Libraries that log every request at INFO/DEBUG
NOISY_LOGGERS = ('httpx', 'httpcore', 'asyncio')


class CrawlNameFilter(logging.Filter):
    """Stamps every record with the name of the crawl that produced it."""

    def __init__(self, crawl_name: Optional[str] = None):
        super().__init__()
        self.crawl_name = crawl_name or '-'

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, 'crawl'):
            record.crawl = self.crawl_name
        return True


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    crawl_name: Optional[str] = None,
    format_string: str = LOG_FORMAT,
) -> None:
    """Send crawler logs to stdout and, optionally, to a log file.

    Several crawls often share one machine (and one log collector), so each
    line carries the crawl name.

    Args:
        level: Log level name; unknown names fall back to INFO
        log_file: Also append to this file, creating parent directories
        crawl_name: Name shown in the crawl column of every line
        format_string: Format for both handlers; may use %(crawl)s
    """
    crawl_filter = CrawlNameFilter(crawl_name)
    formatter = logging.Formatter(format_string)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(crawl_filter)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=handlers,
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
