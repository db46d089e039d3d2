"""
Run state: decides whether a crawl starts fresh or resumes a previous one.

Resuming is deliberately strict. A named crawl is only resumed when resuming
was requested, the previous crawl is unfinished, and it was started from a
crawl list with the same name and length. Any mismatch aborts the process
before the browser is launched, leaving the previous crawl record untouched.
"""

import logging
import socket
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from adcrawler.config import CrawlerFlags, CrawlTimeouts, default_timeouts
from adcrawler.database import AbstractDatabase
from adcrawler.exceptions import ResumeError
from adcrawler.models import RunRecord
from adcrawler.network import get_public_ip
from adcrawler.targets import CrawlList, crawl_list_name

logger = logging.getLogger(__name__)


class RunAction(Enum):
    FRESH = "fresh"
    RESUME = "resume"


@dataclass
class RunDecision:
    action: RunAction
    previous: Optional[RunRecord] = None

    @property
    def start_index(self) -> int:
        if self.action == RunAction.RESUME:
            return self.previous.crawl_list_current_index
        return 0


@dataclass
class RunContext:
    """Everything about the current crawl that components need to share."""

    run_id: int
    start_index: int
    flags: CrawlerFlags
    crawl_list: CrawlList
    timeouts: CrawlTimeouts = field(default_factory=CrawlTimeouts)
    resumed: bool = False

    @property
    def job_id(self) -> Optional[int]:
        return self.flags.job_id


class RunStateMachine:
    """Creates or resumes the crawl record for this process."""

    def __init__(
        self,
        db: AbstractDatabase,
        ip_resolver: Callable[[], Awaitable[Optional[str]]] = get_public_ip,
        hostname: Optional[str] = None,
    ):
        self.db = db
        self.ip_resolver = ip_resolver
        self.hostname = hostname or socket.gethostname()

    def decide(self, flags: CrawlerFlags, crawl_list: CrawlList) -> RunDecision:
        """
        Decide between a fresh crawl and resuming a previous one.

        Raises:
            ResumeError: If a crawl with this name exists but cannot be resumed
        """
        if not flags.crawl_name:
            return RunDecision(RunAction.FRESH)

        previous = self.db.find_run_by_name(flags.crawl_name)
        if previous is None or not flags.resume_if_able:
            return RunDecision(RunAction.FRESH)

        expected_name = crawl_list_name(previous.crawl_list)
        if expected_name != crawl_list.name:
            raise ResumeError(
                "Crawl list file provided does not have the same name as the original crawl. "
                f"Expected: {expected_name}, actual: {crawl_list.name}"
            )
        if previous.crawl_list_length != len(crawl_list):
            raise ResumeError(
                "Crawl list file provided does not have the same number of URLs as the original crawl. "
                f"Expected: {previous.crawl_list_length}, actual: {len(crawl_list)}"
            )
        if previous.completed:
            raise ResumeError(f"Crawl with name {flags.crawl_name} is already completed")

        return RunDecision(RunAction.RESUME, previous=previous)

    async def start(
        self,
        flags: CrawlerFlags,
        crawl_list: CrawlList,
        timeouts: CrawlTimeouts = default_timeouts,
    ) -> RunContext:
        """
        Create or resume the crawl record.

        Returns:
            RunContext with the crawl id and the index to start from
        """
        decision = self.decide(flags, crawl_list)

        if decision.action == RunAction.RESUME:
            run_id = decision.previous.id
            logger.info(
                f"Resuming crawl {run_id} ({flags.crawl_name}) at index "
                f"{decision.start_index}/{len(crawl_list)}"
            )
        else:
            run_id = self.db.create_run(
                crawl_list=crawl_list.source,
                crawl_list_length=len(crawl_list),
                name=flags.crawl_name,
                job_id=flags.job_id,
                profile_id=flags.profile_id,
                profile_dir=flags.chrome_options.profile_dir,
                crawler_hostname=self.hostname,
                crawler_ip=await self.ip_resolver(),
            )

        return RunContext(
            run_id=run_id,
            start_index=decision.start_index,
            flags=flags,
            crawl_list=crawl_list,
            timeouts=timeouts,
            resumed=decision.action == RunAction.RESUME,
        )
