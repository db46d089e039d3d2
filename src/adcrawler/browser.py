"""
Browser driver used by the crawl engine.

The engine only talks to the browser through BrowserDriver: tabs, navigation,
script evaluation, simulated input and a request hook. PlaywrightDriver is the
production implementation.

Request interception is modelled as a synchronous handler: for every request
the driver builds an InterceptedRequest, asks each registered handler for a
RequestDecision, and then lets the request continue (or aborts it if a handler
refused it).
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

try:
    from playwright_stealth import stealth_async
    HAS_STEALTH = True
except ImportError:
    HAS_STEALTH = False

from adcrawler.config import ChromeOptions, CrawlTimeouts, default_timeouts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InterceptedRequest:
    """The parts of an outgoing request the interception filter looks at."""

    url: str
    resource_type: str
    is_navigation: bool
    is_main_frame: bool


@dataclass(frozen=True)
class RequestDecision:
    """Whether to let a request through, and what (if anything) was recorded."""

    allow: bool = True
    record: Optional[Any] = None


RequestHandler = Callable[[InterceptedRequest], RequestDecision]


class BrowserDriver(ABC):
    """Capabilities the crawl engine needs from a browser."""

    @abstractmethod
    async def launch(self) -> None:
        """Start the browser."""

    @abstractmethod
    async def close(self) -> None:
        """Shut the browser down."""

    @abstractmethod
    async def version(self) -> str:
        """Browser name and version."""

    @abstractmethod
    async def new_tab(self) -> Any:
        """Open a new tab."""

    @abstractmethod
    async def close_tab(self, tab: Any) -> None:
        """Close a tab. Closing an already-closed tab is not an error."""

    @abstractmethod
    async def navigate(self, tab: Any, url: str, timeout: float) -> None:
        """Load url in tab, failing after timeout seconds."""

    @abstractmethod
    async def evaluate(self, tab: Any, expression: str) -> Any:
        """Evaluate a JavaScript expression in the tab's main frame."""

    @abstractmethod
    async def move_pointer(self, tab: Any, x: float, y: float) -> None:
        pass

    @abstractmethod
    async def wheel_scroll(self, tab: Any, delta_y: float) -> None:
        pass

    @abstractmethod
    async def press_key(self, tab: Any, key: str) -> None:
        pass

    @abstractmethod
    def on_request(self, tab: Any, handler: RequestHandler) -> None:
        """Register a handler called for every request the tab makes."""

    @abstractmethod
    async def set_request_interception(self, tab: Any, enabled: bool) -> None:
        """Start or stop routing the tab's requests through its handlers."""

    @abstractmethod
    def current_url(self, tab: Any) -> str:
        """URL of the document currently loaded in the tab."""


class PlaywrightDriver(BrowserDriver):
    """
    BrowserDriver backed by Playwright's async Chromium API.

    One browser (or persistent context, when a profile directory is given)
    is shared by every tab for the lifetime of the crawl:

        driver = PlaywrightDriver(flags.chrome_options)
        await driver.launch()
        try:
            tab = await driver.new_tab()
            ...
        finally:
            await driver.close()
    """

    def __init__(
        self,
        options: ChromeOptions,
        timeouts: CrawlTimeouts = default_timeouts,
        stealth_mode: bool = True,
    ):
        """
        Initialize the driver.

        Args:
            options: Browser launch options
            timeouts: Crawl timeouts; only the viewport is used here
            stealth_mode: Apply playwright-stealth to every tab when installed
        """
        self._options = options
        self._timeouts = timeouts
        self._stealth_mode = stealth_mode
        self._playwright = None
        self._browser = None
        self._context = None
        self._handlers: Dict[Any, List[RequestHandler]] = {}

    async def launch(self) -> None:
        logger.info(f"Launching chromium browser (headless={self._options.headless})")

        self._playwright = await async_playwright().start()
        chromium = self._playwright.chromium

        launch_options: Dict[str, Any] = {
            "headless": self._options.headless,
            "args": ["--disable-dev-shm-usage"],
        }
        if self._options.executable_path:
            launch_options["executable_path"] = self._options.executable_path
        if self._options.proxy_server:
            launch_options["proxy"] = {"server": self._options.proxy_server}

        if self._options.profile_dir:
            self._context = await chromium.launch_persistent_context(
                self._options.profile_dir,
                viewport=self._timeouts.viewport,
                **launch_options,
            )
            self._browser = self._context.browser
        else:
            self._browser = await chromium.launch(**launch_options)
            self._context = await self._browser.new_context(viewport=self._timeouts.viewport)

        if self._stealth_mode and not HAS_STEALTH:
            logger.warning("playwright-stealth is not installed; running without stealth measures")

        logger.info("Browser launched successfully")

    async def close(self) -> None:
        if self._context:
            await self._context.close()
            self._context = None
        if self._browser:
            logger.info("Closing browser")
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        self._handlers.clear()

    async def version(self) -> str:
        if self._browser:
            return f"chromium {self._browser.version}"
        return "chromium (persistent context)"

    def _require_context(self):
        if not self._context:
            raise RuntimeError("Browser is not running. Call launch() first.")
        return self._context

    async def new_tab(self):
        page = await self._require_context().new_page()
        if self._stealth_mode and HAS_STEALTH:
            await stealth_async(page)
        return page

    async def close_tab(self, tab) -> None:
        self._handlers.pop(tab, None)
        try:
            await tab.close()
        except PlaywrightError as e:
            logger.debug(f"Ignoring error closing tab: {e}")

    async def navigate(self, tab, url: str, timeout: float) -> None:
        await tab.goto(url, timeout=timeout * 1000)

    async def evaluate(self, tab, expression: str):
        return await tab.evaluate(expression)

    async def move_pointer(self, tab, x: float, y: float) -> None:
        await tab.mouse.move(x, y)

    async def wheel_scroll(self, tab, delta_y: float) -> None:
        await tab.mouse.wheel(0, delta_y)

    async def press_key(self, tab, key: str) -> None:
        await tab.keyboard.press(key)

    def on_request(self, tab, handler: RequestHandler) -> None:
        self._handlers.setdefault(tab, []).append(handler)

    async def set_request_interception(self, tab, enabled: bool) -> None:
        if enabled:
            await tab.route("**/*", lambda route, request: self._handle_route(tab, route, request))
        else:
            await tab.unroute("**/*")

    def current_url(self, tab) -> str:
        return tab.url

    @staticmethod
    def _is_main_frame(tab, request) -> bool:
        try:
            return request.frame == tab.main_frame
        except PlaywrightError:
            # Service worker requests have no frame
            return False

    async def _handle_route(self, tab, route, request) -> None:
        intercepted = InterceptedRequest(
            url=request.url,
            resource_type=request.resource_type,
            is_navigation=request.is_navigation_request(),
            is_main_frame=self._is_main_frame(tab, request),
        )

        allow = True
        for handler in self._handlers.get(tab, []):
            allow = handler(intercepted).allow and allow

        try:
            if allow:
                await route.continue_()
            else:
                await route.abort()
        except PlaywrightError as e:
            # The tab was closed while the request was in flight
            logger.debug(f"Could not resolve intercepted request {request.url}: {e}")
