"""Finds article and ad-bearing pages linked from a seed page."""

import logging
import random
import re
from typing import List, Optional, Sequence, Set
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup

from adcrawler.extraction.base import BaseSubpageFinder

logger = logging.getLogger(__name__)

# Dated paths (/2024/05/...) or long hyphenated slugs at any depth
ARTICLE_PATH = re.compile(r"/(19|20)\d{2}/\d{1,2}/|/[a-z0-9]+(?:-[a-z0-9]+){3,}(?:\.html?)?/?$", re.IGNORECASE)

# Paths this deep are usually individual stories (/news/local/some-story)
MIN_ARTICLE_SEGMENTS = 3

# Sections of news and content sites that usually carry display ads
AD_SECTION_KEYWORDS = (
    "news", "sports", "entertainment", "politics", "business", "tech",
    "lifestyle", "health", "travel", "weather", "opinion", "world",
)

SKIP_EXTENSIONS = (
    ".pdf", ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".zip",
    ".mp3", ".mp4", ".avi", ".mov", ".css", ".js", ".xml", ".rss",
)


def site_of(url: str) -> str:
    """Hostname with a leading www. removed."""
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def extract_links(html: str, base_url: str) -> List[str]:
    """
    Absolute, fragment-free http(s) links on the same site as base_url,
    in document order without duplicates.
    """
    soup = BeautifulSoup(html, "html.parser")
    site = site_of(base_url)
    links: List[str] = []
    seen: Set[str] = set()

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith(("javascript:", "mailto:", "tel:", "#")):
            continue

        url, _ = urldefrag(urljoin(base_url, href))
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            continue
        if site_of(url) != site:
            continue
        if parsed.path.lower().endswith(SKIP_EXTENSIONS):
            continue
        if url in seen:
            continue

        seen.add(url)
        links.append(url)

    return links


def is_article_url(url: str) -> bool:
    path = urlparse(url).path
    if ARTICLE_PATH.search(path):
        return True
    return len([segment for segment in path.split("/") if segment]) >= MIN_ARTICLE_SEGMENTS


class SubpageFinder(BaseSubpageFinder):
    """
    Chooses subpages from the links of the page loaded in a tab.

    Never suggests the page itself or a URL it has already returned.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        keywords: Optional[Sequence[str]] = None,
    ):
        self.rng = rng or random.Random()
        self.keywords = tuple(keywords) if keywords else AD_SECTION_KEYWORDS
        self._returned: Set[str] = set()

    async def _candidates(self, page) -> List[str]:
        base_url = page.url
        html = await page.content()
        self._returned.add(urldefrag(base_url)[0])
        return [url for url in extract_links(html, base_url) if url not in self._returned]

    def _pick(self, urls: List[str]) -> Optional[str]:
        if not urls:
            return None
        url = self.rng.choice(urls)
        self._returned.add(url)
        return url

    async def find_article(self, page) -> Optional[str]:
        candidates = await self._candidates(page)
        url = self._pick([u for u in candidates if is_article_url(u)])
        logger.debug(f"{page.url}: Article candidate {url}")
        return url

    async def find_ad_bearing_page(self, page) -> Optional[str]:
        candidates = await self._candidates(page)

        keyworded = [
            u for u in candidates
            if any(k in urlparse(u).path.lower() for k in self.keywords)
        ]
        articles = [u for u in candidates if is_article_url(u)]

        url = self._pick(keyworded) or self._pick(articles) or self._pick(candidates)
        logger.debug(f"{page.url}: Ad-bearing page candidate {url}")
        return url
