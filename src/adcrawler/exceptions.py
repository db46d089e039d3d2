"""Exception hierarchy for the ad crawler.

PreflightError and its subclasses are fatal: they are raised before any
browser is launched or crawl record created, and the CLI turns them into a
non-zero exit. Everything else raised during a crawl list item is caught by
the crawl loop and recorded against that item.
"""

from typing import Optional


class AdCrawlerError(Exception):
    """Base class for all crawler errors."""


class PreflightError(AdCrawlerError):
    """Invalid arguments or environment detected before the crawl starts."""


class OutputDirectoryError(PreflightError):
    """Output directory is missing or not writable."""


class CrawlListError(PreflightError):
    """Crawl list could not be read or contains invalid entries."""

    def __init__(self, message: str, path: Optional[str] = None, line: Optional[int] = None):
        super().__init__(message)
        self.path = path
        self.line = line


class ResumeError(PreflightError):
    """A previous crawl with the requested name cannot be resumed."""


class TargetTimeoutError(AdCrawlerError):
    """The overall crawl deadline elapsed while processing a crawl list item."""
