"""Tests for the browsing session and request fencing."""

import asyncio

import pytest

from conftest import repo_payload
from openlens.browser import BrowserSession, RequestFence
from openlens.github_client import RateLimitError, UpstreamError
from openlens.models import FilterState, Repository, SearchResponse, SortOption, UserProfile
from openlens.session import SavedFilters, SessionSnapshot
from openlens.storage import StateStorage


def page_of(*names: str, total: int | None = None) -> SearchResponse:
    items = [Repository.model_validate(repo_payload(i, f"octo/{n}")) for i, n in enumerate(names)]
    return SearchResponse(total_count=len(items) if total is None else total, items=items)


class PendingCall:
    """A search call held open until the test resolves it."""

    def __init__(self, filters: FilterState, page: int, user: str | None):
        self.filters = filters
        self.page = page
        self.user = user
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()

    def resolve(self, response: SearchResponse) -> None:
        self._future.set_result(response)

    def fail(self, error: Exception) -> None:
        self._future.set_exception(error)


class FakeFetcher:
    """Fetcher whose searches complete only when told to."""

    per_page = 2

    def __init__(self) -> None:
        self.calls: list[PendingCall] = []
        self.profile: UserProfile | None = None
        self.top_repos: list[Repository] = []

    async def search_repositories(self, filters, page=1, user=None) -> SearchResponse:
        call = PendingCall(filters, page, user)
        self.calls.append(call)
        return await call._future

    async def get_user_profile(self, username: str) -> UserProfile | None:
        return self.profile

    async def get_user_top_repos(self, username: str) -> list[Repository]:
        return self.top_repos


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def session(fake_fetcher: FakeFetcher, state_storage: StateStorage) -> BrowserSession:
    return BrowserSession(fake_fetcher, SessionSnapshot(state_storage), SavedFilters(state_storage))


def names(session: BrowserSession) -> list[str]:
    return [repo.name for repo in session.repos]


async def started(coro) -> asyncio.Task:
    """Start a coroutine and let it run up to its first suspension."""
    task = asyncio.create_task(coro)
    await asyncio.sleep(0)
    return task


class TestRequestFence:
    """Tests for RequestFence class."""

    def test_only_latest_is_current(self) -> None:
        fence = RequestFence()

        first = fence.issue()
        second = fence.issue()

        assert second > first
        assert fence.is_current(second)
        assert not fence.is_current(first)
        assert fence.latest == second


class TestFencing:
    """Tests for applying only the latest response."""

    @pytest.mark.asyncio
    async def test_late_older_response_is_dropped(self, session, fake_fetcher) -> None:
        task_a = await started(session.refresh())
        task_b = await started(session.refresh())
        call_a, call_b = fake_fetcher.calls

        call_b.resolve(page_of("bravo"))
        await task_b
        call_a.resolve(page_of("alpha"))
        await task_a

        assert names(session) == ["bravo"]
        assert session.loading is False

    @pytest.mark.asyncio
    async def test_older_response_first_is_overwritten(self, session, fake_fetcher) -> None:
        task_a = await started(session.refresh())
        task_b = await started(session.refresh())
        call_a, call_b = fake_fetcher.calls

        call_a.resolve(page_of("alpha"))
        await task_a
        assert session.loading is True
        call_b.resolve(page_of("bravo"))
        await task_b

        assert names(session) == ["bravo"]

    @pytest.mark.asyncio
    async def test_outdated_failure_is_ignored(self, session, fake_fetcher) -> None:
        task_a = await started(session.refresh())
        task_b = await started(session.refresh())
        call_a, call_b = fake_fetcher.calls

        call_b.resolve(page_of("bravo"))
        await task_b
        call_a.fail(RateLimitError("slow down"))
        await task_a

        assert session.error is None
        assert names(session) == ["bravo"]


class TestPaging:
    """Tests for page loading and list state."""

    @pytest.mark.asyncio
    async def test_load_more_appends(self, session, fake_fetcher) -> None:
        task = await started(session.refresh())
        fake_fetcher.calls[0].resolve(page_of("a", "b", total=10))
        await task
        assert session.has_more is True

        task = await started(session.load_more())
        assert fake_fetcher.calls[1].page == 2
        fake_fetcher.calls[1].resolve(page_of("c", total=10))
        await task

        assert names(session) == ["a", "b", "c"]
        # Short page but total_count says more exist
        assert session.has_more is True

    @pytest.mark.asyncio
    async def test_short_last_page_ends_paging(self, session, fake_fetcher) -> None:
        task = await started(session.refresh())
        fake_fetcher.calls[0].resolve(page_of("a"))
        await task

        assert session.has_more is False

    @pytest.mark.asyncio
    async def test_first_page_failure_clears(self, session, fake_fetcher) -> None:
        task = await started(session.refresh())
        fake_fetcher.calls[0].resolve(page_of("a", "b", total=10))
        await task

        task = await started(session.refresh())
        fake_fetcher.calls[1].fail(RateLimitError("API rate limit exceeded"))
        await task

        assert session.repos == []
        assert session.error == "API rate limit exceeded"
        assert session.loading is False

    @pytest.mark.asyncio
    async def test_load_more_failure_keeps_list(self, session, fake_fetcher) -> None:
        task = await started(session.refresh())
        fake_fetcher.calls[0].resolve(page_of("a", "b", total=10))
        await task

        task = await started(session.load_more())
        fake_fetcher.calls[1].fail(RateLimitError("API rate limit exceeded"))
        await task

        assert names(session) == ["a", "b"]
        assert session.error == "API rate limit exceeded"

    @pytest.mark.asyncio
    async def test_failed_page_is_requested_again(self, session, fake_fetcher) -> None:
        task = await started(session.refresh())
        fake_fetcher.calls[0].resolve(page_of("a", "b", total=100))
        await task

        task = await started(session.load_more())
        fake_fetcher.calls[1].fail(UpstreamError(500, "GitHub API Error: 500"))
        await task
        assert session.page == 1

        task = await started(session.retry())
        fake_fetcher.calls[2].resolve(page_of("c", "d", total=100))
        await task

        assert [call.page for call in fake_fetcher.calls] == [1, 2, 2]
        assert names(session) == ["a", "b", "c", "d"]
        assert session.page == 2
        assert session.error is None

    @pytest.mark.asyncio
    async def test_load_more_after_failure_repeats_page(self, session, fake_fetcher) -> None:
        task = await started(session.refresh())
        fake_fetcher.calls[0].resolve(page_of("a", "b", total=100))
        await task

        task = await started(session.load_more())
        fake_fetcher.calls[1].fail(UpstreamError(500, "GitHub API Error: 500"))
        await task
        task = await started(session.load_more())

        assert fake_fetcher.calls[2].page == 2
        fake_fetcher.calls[2].resolve(page_of("c", total=100))
        await task

    @pytest.mark.asyncio
    async def test_retry_after_first_page_failure_refreshes(self, session, fake_fetcher) -> None:
        task = await started(session.refresh())
        fake_fetcher.calls[0].fail(RateLimitError("API rate limit exceeded"))
        await task

        task = await started(session.retry())
        assert fake_fetcher.calls[1].page == 1
        fake_fetcher.calls[1].resolve(page_of("a"))
        await task

        assert names(session) == ["a"]

    @pytest.mark.asyncio
    async def test_unexpected_error_clears_loading(self, session, fake_fetcher) -> None:
        task = await started(session.refresh())
        fake_fetcher.calls[0].fail(RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await task
        assert session.loading is False

    @pytest.mark.asyncio
    async def test_warning_surfaced(self, session, fake_fetcher) -> None:
        task = await started(session.refresh())
        response = page_of("a").model_copy(update={"warning": "Results may be incomplete"})
        fake_fetcher.calls[0].resolve(response)
        await task

        assert session.warning == "Results may be incomplete"


class TestSnapshotAndFilters:
    """Tests for persisted session state."""

    @pytest.mark.asyncio
    async def test_snapshot_seeds_and_background_refresh(
        self, fake_fetcher, state_storage
    ) -> None:
        snapshot = SessionSnapshot(state_storage)
        snapshot.save(page_of("cached").items)

        session = BrowserSession(fake_fetcher, snapshot, SavedFilters(state_storage))
        assert names(session) == ["cached"]

        task = await started(session.refresh())
        assert session.loading is False
        fake_fetcher.calls[0].resolve(page_of("fresh"))
        await task

        assert names(session) == ["fresh"]
        assert [r.name for r in snapshot.load()] == ["fresh"]

    def test_set_filters_persists(self, session, state_storage) -> None:
        session.page = 4
        filters = FilterState(query="orm", sort=SortOption.FORKS)

        session.set_filters(filters)

        assert session.page == 1
        assert SavedFilters(state_storage).load() == filters


class TestUserScope:
    """Tests for user-scoped browsing."""

    @pytest.mark.asyncio
    async def test_select_user_resets_filters(self, session, fake_fetcher) -> None:
        session.set_filters(FilterState(query="x", min_stars=50, sort=SortOption.STARS))
        fake_fetcher.profile = UserProfile(login="octo", followers=3)

        view = await session.select_user("octo")

        assert view.found is True
        assert view.profile.followers == 3
        assert session.selected_user == "octo"
        assert session.filters.query == ""
        assert session.filters.min_stars == 0
        assert session.filters.sort == SortOption.UPDATED

        task = await started(session.refresh())
        assert fake_fetcher.calls[0].user == "octo"
        fake_fetcher.calls[0].resolve(page_of("a"))
        await task

    @pytest.mark.asyncio
    async def test_missing_profile_uses_placeholder(self, session, fake_fetcher) -> None:
        view = await session.select_user("ghost")

        assert view.found is False
        assert view.profile.login == "ghost"

    def test_clear_user(self, session) -> None:
        session.selected_user = "octo"
        session.filters = FilterState(query="abc")

        session.clear_user()

        assert session.selected_user is None
        assert session.filters.query == ""
