"""Tests for deciding between fresh, resumed and rejected crawls."""

import pytest

from adcrawler.exceptions import ResumeError
from adcrawler.models import Target
from adcrawler.run_state import RunAction, RunStateMachine
from adcrawler.targets import CrawlList


def _crawl_list(length=5, source="/lists/sites.txt"):
    targets = [Target(url=f"https://site{i}.com", index=i) for i in range(length)]
    return CrawlList(targets=targets, source=source, is_file=True)


@pytest.fixture
def state_machine(db, ip_resolver):
    return RunStateMachine(db, ip_resolver=ip_resolver, hostname="crawler-1")


class TestDecide:
    def test_no_name_is_fresh(self, state_machine, make_flags):
        decision = state_machine.decide(make_flags(), _crawl_list())
        assert decision.action == RunAction.FRESH
        assert decision.start_index == 0

    def test_unknown_name_is_fresh(self, state_machine, make_flags):
        decision = state_machine.decide(make_flags(crawl_name="new", resume_if_able=True), _crawl_list())
        assert decision.action == RunAction.FRESH

    def test_existing_name_without_resume_is_fresh(self, db, state_machine, make_flags):
        db.create_run(crawl_list="/lists/sites.txt", crawl_list_length=5, name="weekly")

        decision = state_machine.decide(make_flags(crawl_name="weekly"), _crawl_list())
        assert decision.action == RunAction.FRESH

    def test_resume_at_stored_index(self, db, state_machine, make_flags):
        run_id = db.create_run(crawl_list="/old/dir/sites.txt", crawl_list_length=5, name="weekly")
        db.update_run_progress(run_id, 3)

        decision = state_machine.decide(make_flags(crawl_name="weekly", resume_if_able=True), _crawl_list())

        assert decision.action == RunAction.RESUME
        assert decision.previous.id == run_id
        assert decision.start_index == 3


class TestResumeRejection:
    """Rejected resumes raise and leave the previous crawl untouched."""

    @pytest.fixture
    def previous(self, db):
        run_id = db.create_run(crawl_list="/lists/sites.txt", crawl_list_length=5, name="weekly")
        db.update_run_progress(run_id, 2)
        return db.get_run(run_id)

    def _assert_unchanged(self, db, previous):
        assert db.get_run(previous.id) == previous
        rows, _ = db.execute("SELECT COUNT(*) AS n FROM crawl")
        assert rows[0]["n"] == 1

    @pytest.mark.asyncio
    async def test_different_list_name(self, db, state_machine, make_flags, previous):
        flags = make_flags(crawl_name="weekly", resume_if_able=True)

        with pytest.raises(ResumeError, match="same name"):
            await state_machine.start(flags, _crawl_list(source="/lists/other.txt"))

        self._assert_unchanged(db, previous)

    @pytest.mark.asyncio
    async def test_different_length(self, db, state_machine, make_flags, previous):
        flags = make_flags(crawl_name="weekly", resume_if_able=True)

        with pytest.raises(ResumeError, match="Expected: 5, actual: 4"):
            await state_machine.start(flags, _crawl_list(length=4))

        self._assert_unchanged(db, previous)

    @pytest.mark.asyncio
    async def test_already_completed(self, db, state_machine, make_flags, previous):
        db.complete_run(previous.id)
        previous = db.get_run(previous.id)
        flags = make_flags(crawl_name="weekly", resume_if_able=True)

        with pytest.raises(ResumeError, match="already completed"):
            await state_machine.start(flags, _crawl_list())

        self._assert_unchanged(db, previous)

    def test_name_checked_before_length(self, state_machine, make_flags, previous):
        flags = make_flags(crawl_name="weekly", resume_if_able=True)

        with pytest.raises(ResumeError, match="same name"):
            state_machine.decide(flags, _crawl_list(length=4, source="/lists/other.txt"))


class TestStart:
    @pytest.mark.asyncio
    async def test_fresh_start_creates_run(self, db, state_machine, make_flags):
        flags = make_flags(crawl_name="weekly", job_id=9, profile_id="p1", chrome_options={"profile_dir": "/tmp/profile"})

        context = await state_machine.start(flags, _crawl_list())

        run = db.get_run(context.run_id)
        assert context.start_index == 0
        assert not context.resumed
        assert context.job_id == 9
        assert run.crawler_ip == "203.0.113.7"
        assert run.crawler_hostname == "crawler-1"
        assert run.profile_dir == "/tmp/profile"
        assert run.crawl_list_length == 5

    @pytest.mark.asyncio
    async def test_resume_reuses_run(self, db, state_machine, make_flags):
        run_id = db.create_run(crawl_list="/lists/sites.txt", crawl_list_length=5, name="weekly")
        db.update_run_progress(run_id, 4)

        context = await state_machine.start(make_flags(crawl_name="weekly", resume_if_able=True), _crawl_list())

        assert context.run_id == run_id
        assert context.start_index == 4
        assert context.resumed

    @pytest.mark.asyncio
    async def test_unresolvable_ip_is_not_fatal(self, db, make_flags):
        async def no_ip():
            return None

        state_machine = RunStateMachine(db, ip_resolver=no_ip, hostname="crawler-1")
        context = await state_machine.start(make_flags(), _crawl_list())

        assert db.get_run(context.run_id).crawler_ip is None
