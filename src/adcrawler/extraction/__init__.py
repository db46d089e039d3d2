"""Page, ad, cookie banner and subpage helpers used while crawling a page."""

from adcrawler.extraction.base import (
    BaseAdScraper,
    BaseCookieBannerRemover,
    BasePageScraper,
    BaseSubpageFinder,
)
from adcrawler.extraction.ad_scraper import AdScraper
from adcrawler.extraction.cookie_banners import CookieBannerRemover
from adcrawler.extraction.page_scraper import PageScraper, summarize_html
from adcrawler.extraction.subpages import SubpageFinder, extract_links, is_article_url

__all__ = [
    "BaseAdScraper",
    "BaseCookieBannerRemover",
    "BasePageScraper",
    "BaseSubpageFinder",
    "AdScraper",
    "CookieBannerRemover",
    "PageScraper",
    "summarize_html",
    "SubpageFinder",
    "extract_links",
    "is_article_url",
]
