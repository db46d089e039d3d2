"""Shared fixtures: an in-memory browser driver, stub collaborators and a temp database."""

import asyncio
from typing import Any, Dict, Iterable, List, Optional

import pytest

from adcrawler.browser import BrowserDriver, InterceptedRequest, RequestHandler
from adcrawler.config import CrawlerFlags, CrawlTimeouts
from adcrawler.crawler import Collaborators
from adcrawler.database import LocalSqliteDatabase
from adcrawler.extraction.base import (
    BaseAdScraper,
    BaseCookieBannerRemover,
    BasePageScraper,
    BaseSubpageFinder,
)


class FakeTab:
    """A browser tab that only remembers what was done to it."""

    def __init__(self, tab_id: int):
        self.id = tab_id
        self.url = "about:blank"
        self.closed = False
        self.intercepting = False
        self.handlers: List[RequestHandler] = []
        self.scroll_y = 0.0
        self.keys: List[str] = []
        self.pointer_moves: List[tuple] = []
        self.wheel_deltas: List[float] = []

    def __repr__(self):
        return f"FakeTab({self.id}, {self.url})"


class FakeDriver(BrowserDriver):
    """
    BrowserDriver that never starts a browser.

    Args:
        fail_urls: Navigating to these raises RuntimeError
        hang_urls: Navigating to these never finishes
        requests: Requests each URL makes after it has loaded
        redirects: Final URL of each URL after navigation
        scroll_height: document.body.scrollHeight of every page
        inner_height: window.innerHeight of every page
        stuck_scroll: Wheel events don't move the page
    """

    def __init__(
        self,
        fail_urls: Iterable[str] = (),
        hang_urls: Iterable[str] = (),
        requests: Optional[Dict[str, List[InterceptedRequest]]] = None,
        redirects: Optional[Dict[str, str]] = None,
        scroll_height: float = 768,
        inner_height: float = 768,
        stuck_scroll: bool = False,
    ):
        self.fail_urls = set(fail_urls)
        self.hang_urls = set(hang_urls)
        self.requests = requests or {}
        self.redirects = redirects or {}
        self.scroll_height = scroll_height
        self.inner_height = inner_height
        self.stuck_scroll = stuck_scroll

        self.launched = False
        self.closed = False
        self.tabs: List[FakeTab] = []
        self.navigations: List[str] = []

    @property
    def open_tabs(self) -> List[FakeTab]:
        return [tab for tab in self.tabs if not tab.closed]

    async def launch(self) -> None:
        self.launched = True

    async def close(self) -> None:
        self.closed = True

    async def version(self) -> str:
        return "FakeChrome/1.0"

    async def new_tab(self) -> FakeTab:
        tab = FakeTab(len(self.tabs))
        self.tabs.append(tab)
        return tab

    async def close_tab(self, tab: FakeTab) -> None:
        tab.closed = True

    def emit(self, tab: FakeTab, request: InterceptedRequest) -> None:
        if tab.intercepting:
            for handler in tab.handlers:
                handler(request)

    async def navigate(self, tab: FakeTab, url: str, timeout: float) -> None:
        self.navigations.append(url)
        self.emit(tab, InterceptedRequest(url, "document", is_navigation=True, is_main_frame=True))
        if url in self.hang_urls:
            await asyncio.sleep(3600)
        if url in self.fail_urls:
            raise RuntimeError(f"net::ERR_NAME_NOT_RESOLVED at {url}")

        tab.url = self.redirects.get(url, url)
        tab.scroll_y = 0.0
        for request in self.requests.get(url, []):
            self.emit(tab, request)

    async def evaluate(self, tab: FakeTab, expression: str) -> Any:
        values = {
            "window.innerHeight": self.inner_height,
            "window.scrollY": tab.scroll_y,
            "document.body.scrollHeight": self.scroll_height,
        }
        return values.get(expression)

    async def move_pointer(self, tab: FakeTab, x: float, y: float) -> None:
        tab.pointer_moves.append((x, y))

    async def wheel_scroll(self, tab: FakeTab, delta_y: float) -> None:
        tab.wheel_deltas.append(delta_y)
        if not self.stuck_scroll:
            tab.scroll_y += delta_y

    async def press_key(self, tab: FakeTab, key: str) -> None:
        tab.keys.append(key)

    def on_request(self, tab: FakeTab, handler: RequestHandler) -> None:
        tab.handlers.append(handler)

    async def set_request_interception(self, tab: FakeTab, enabled: bool) -> None:
        tab.intercepting = enabled

    def current_url(self, tab: FakeTab) -> str:
        return tab.url


class StubPageScraper(BasePageScraper):
    def __init__(self, db):
        self.db = db
        self.contexts = []

    async def extract_page(self, tab, context):
        self.contexts.append(context)
        self.db.update_page_visit(context.page_id, {"url": tab.url, "title": f"Title of {tab.url}"})


class StubAdScraper(BaseAdScraper):
    def __init__(self, fail_urls: Iterable[str] = ()):
        self.fail_urls = set(fail_urls)
        self.contexts = []

    async def extract_ads(self, tab, context):
        self.contexts.append(context)
        if context.original_url in self.fail_urls:
            raise ValueError(f"ad scrape failed on {context.original_url}")


class StubCookieBannerRemover(BaseCookieBannerRemover):
    def __init__(self):
        self.tabs = []

    async def dismiss_cookie_banners(self, tab):
        self.tabs.append(tab)


class ScriptedSubpageFinder(BaseSubpageFinder):
    """Returns the given URLs in order, then None."""

    def __init__(self, articles: Iterable[Optional[str]] = (), ad_pages: Iterable[Optional[str]] = ()):
        self.articles = list(articles)
        self.ad_pages = list(ad_pages)
        self.article_calls = 0
        self.ad_page_calls = 0

    async def find_article(self, tab):
        self.article_calls += 1
        return self.articles.pop(0) if self.articles else None

    async def find_ad_bearing_page(self, tab):
        self.ad_page_calls += 1
        return self.ad_pages.pop(0) if self.ad_pages else None


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database per test."""
    database = LocalSqliteDatabase(db_url=f"sqlite:///{tmp_path / 'crawl.db'}")
    yield database
    database.close()


@pytest.fixture
def fast_timeouts():
    """Timeouts with every sleep removed."""
    return CrawlTimeouts(
        page_navigation=5,
        page_scrape=5,
        ad_scrape=5,
        ad_sleep=0,
        page_sleep=0,
        scroll_pause=0,
        per_target_budget=60,
    )


@pytest.fixture
def make_flags(tmp_path):
    """Build CrawlerFlags with output in tmp_path and nested options as dicts."""

    def _make_flags(**overrides) -> CrawlerFlags:
        values = {"output_dir": str(tmp_path)}
        values.update(overrides)
        return CrawlerFlags(**values)

    return _make_flags


@pytest.fixture
def stub_collaborators():
    """Factory for Crawler(collaborators=...) that keeps the stubs it built."""

    class _Factory:
        def __init__(self):
            self.finder = ScriptedSubpageFinder()
            self.ad_scraper = StubAdScraper()
            self.cookie_remover = StubCookieBannerRemover()
            self.page_scraper = None

        def __call__(self, context, database):
            self.page_scraper = StubPageScraper(database)
            return Collaborators(
                page_scraper=self.page_scraper,
                ad_scraper=self.ad_scraper,
                cookie_remover=self.cookie_remover,
                subpage_finder=lambda: self.finder,
            )

    return _Factory()


async def fixed_ip():
    return "203.0.113.7"


@pytest.fixture
def ip_resolver():
    return fixed_ip


@pytest.fixture
def fake_driver():
    """FakeDriver class, so tests can build one with their own pages."""
    return FakeDriver


@pytest.fixture
def scripted_finder():
    """ScriptedSubpageFinder class."""
    return ScriptedSubpageFinder
