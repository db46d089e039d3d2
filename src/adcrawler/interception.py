"""
Cross-origin request capture.

One RequestInterceptionFilter is installed per tab before navigation. It
never blocks anything: every request is allowed, and cross-origin requests
other than the tab's own navigation are buffered until the page has been
saved and its id is known.
"""

import logging
from typing import Callable, List, Optional
from urllib.parse import urlsplit

from adcrawler.browser import InterceptedRequest, RequestDecision
from adcrawler.models import CapturedRequest, PENDING_PAGE_ID

logger = logging.getLogger(__name__)

ALLOW = RequestDecision(allow=True)


def origin_of(url: str) -> str:
    """scheme://host[:port] of a URL, with default ports dropped.

    URLs without a host (about:blank, data:) have the opaque origin "null".
    Raises ValueError for URLs that cannot be parsed.
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return "null"
    host = (parts.hostname or "").lower()
    port = parts.port
    if port is None or (parts.scheme, port) in (("http", 80), ("https", 443)):
        return f"{parts.scheme}://{host}"
    return f"{parts.scheme}://{host}:{port}"


class RequestInterceptionFilter:
    """
    Classifies the requests made by one tab.

    Rules, first match wins (the request is allowed in every case):
    1. capture disabled: not recorded
    2. navigation of the tab's main frame: not recorded
    3. same origin as the tab's current page: not recorded
    4. anything else: buffered with a placeholder page id
    """

    def __init__(
        self,
        page_url: Callable[[], str],
        crawl_id: int,
        job_id: Optional[int] = None,
        enabled: bool = True,
    ):
        """
        Args:
            page_url: Returns the tab's current URL at classification time
            crawl_id: Id of the crawl the requests belong to
            job_id: Optional job id copied onto each record
            enabled: Whether requests are recorded at all
        """
        self._page_url = page_url
        self.crawl_id = crawl_id
        self.job_id = job_id
        self.enabled = enabled
        self._buffer: List[CapturedRequest] = []

    @property
    def captured(self) -> List[CapturedRequest]:
        return list(self._buffer)

    def classify(self, request: InterceptedRequest) -> RequestDecision:
        try:
            if not self.enabled:
                return ALLOW

            if request.is_navigation and request.is_main_frame:
                return ALLOW

            page_url = self._page_url()
            if origin_of(request.url) == origin_of(page_url):
                return ALLOW

            record = CapturedRequest(
                crawl_id=self.crawl_id,
                job_id=self.job_id,
                initiator=page_url,
                target_url=request.url,
                resource_type=request.resource_type,
            )
            self._buffer.append(record)
            return RequestDecision(allow=True, record=record)
        except Exception as e:
            logger.warning(f"Error handling intercepted request {request.url}: {e}")
            return ALLOW

    __call__ = classify

    def drain(self, page_id: int) -> List[CapturedRequest]:
        """Stamp buffered requests with their page id and empty the buffer."""
        records, self._buffer = self._buffer, []
        for record in records:
            if record.parent_page == PENDING_PAGE_ID:
                record.parent_page = page_id
        return records
