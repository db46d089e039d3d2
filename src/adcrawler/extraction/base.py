"""Interfaces for the page, ad, cookie banner and subpage collaborators."""

from abc import ABC, abstractmethod
from typing import Any, Optional

from adcrawler.models import AdScrapeContext, PageScrapeContext


class BasePageScraper(ABC):
    """Saves the content of a loaded page and fills in its page record."""

    @abstractmethod
    async def extract_page(self, tab: Any, context: PageScrapeContext) -> None:
        """May raise; the page pipeline records the error on the page."""


class BaseAdScraper(ABC):
    """Finds and saves the ads on a loaded page."""

    @abstractmethod
    async def extract_ads(self, tab: Any, context: AdScrapeContext) -> None:
        """May raise; the page pipeline records the error on the page."""


class BaseCookieBannerRemover(ABC):
    """Dismisses cookie consent banners that cover page content."""

    @abstractmethod
    async def dismiss_cookie_banners(self, tab: Any) -> None:
        """Best effort: must not raise."""


class BaseSubpageFinder(ABC):
    """
    Picks additional pages to visit from a loaded seed page.

    One finder is created per seed page so it can avoid suggesting the same
    URL twice.
    """

    @abstractmethod
    async def find_article(self, tab: Any) -> Optional[str]:
        """URL of an article linked from the page, or None."""

    @abstractmethod
    async def find_ad_bearing_page(self, tab: Any) -> Optional[str]:
        """URL of a linked page likely to contain ads, or None."""
