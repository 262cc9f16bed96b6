"""Browsing session state with request fencing.

Overlapping searches are allowed. Each one takes a token from a
:class:`RequestFence` when it starts, and its outcome is applied only if
no newer search has started since. Nothing is cancelled; late responses
are simply dropped.

This is the embedding API for interactive front ends; the CLI issues
one-shot fetches and does not use it.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from openlens.fetcher import RepoFetcher
from openlens.github_client import GitHubAPIError
from openlens.models import MAX_STARS, FilterState, Repository, SortOption, UserProfile
from openlens.session import SavedFilters, SessionSnapshot

logger = logging.getLogger(__name__)


class RequestFence:
    """Monotonic sequence of request tokens."""

    def __init__(self) -> None:
        self._latest = 0

    @property
    def latest(self) -> int:
        return self._latest

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest


@dataclass
class UserView:
    """Profile panel for a user-scoped search.

    Attributes:
        profile: Fetched profile, or a placeholder when the lookup failed.
        top_repos: The user's most starred repositories.
        found: False when ``profile`` is a placeholder.
    """

    profile: UserProfile
    top_repos: list[Repository] = field(default_factory=list)
    found: bool = True


class BrowserSession:
    """Visible repository list and the filters that produced it.

    Attributes:
        repos: Repositories currently shown.
        filters: Active filters.
        page: Last page applied to the list.
        has_more: Whether another page is likely available.
        loading: True while the latest search is in flight.
        error: Message of the latest failed search, if any.
        warning: Upstream warning attached to the latest result.
        selected_user: Username the search is scoped to.
    """

    def __init__(
        self,
        fetcher: RepoFetcher,
        snapshot: SessionSnapshot,
        saved_filters: SavedFilters,
    ):
        """Initialize session from persisted state.

        Args:
            fetcher: Fetch orchestrator.
            snapshot: Session snapshot, used to seed ``repos``.
            saved_filters: Persisted filter state.
        """
        self.fetcher = fetcher
        self.snapshot = snapshot
        self.saved_filters = saved_filters
        self.fence = RequestFence()

        self.repos: list[Repository] = snapshot.load()
        self.filters: FilterState = saved_filters.load()
        self.page = 1
        self.has_more = True
        self.loading = False
        self.error: str | None = None
        self.warning: str | None = None
        self.selected_user: str | None = None
        self._failed_load_more = False

    async def refresh(self) -> None:
        """Load the first page for the current filters."""
        await self._fetch(page=1, load_more=False)

    async def load_more(self) -> None:
        """Append the next page to the current list.

        ``page`` only advances once that page has been applied, so calling
        this again after a failure asks for the same page.
        """
        await self._fetch(page=self.page + 1, load_more=True)

    async def retry(self) -> None:
        """Re-run the latest request that failed, or refresh if none did."""
        if self._failed_load_more:
            await self.load_more()
        else:
            await self.refresh()

    async def _fetch(self, page: int, load_more: bool) -> None:
        token = self.fence.issue()
        # Repos restored from the snapshot stay on screen during the first load
        background = not load_more and bool(self.repos) and token == 1
        if not background:
            self.loading = True
        self.error = None
        self._failed_load_more = False
        if not load_more:
            self.warning = None

        try:
            response = await self.fetcher.search_repositories(
                self.filters, page=page, user=self.selected_user
            )
        except GitHubAPIError as e:
            if not self.fence.is_current(token):
                return
            logger.warning("Search failed: %s", e)
            self.error = str(e) or "An unexpected error occurred."
            self._failed_load_more = load_more
            if not load_more:
                self.repos = []
                self.page = page
            return
        finally:
            if self.fence.is_current(token):
                self.loading = False

        if not self.fence.is_current(token):
            logger.debug("Dropping outdated response for request %d", token)
            return

        if response.warning:
            self.warning = response.warning
        self.repos = [*self.repos, *response.items] if load_more else list(response.items)
        self.page = page
        self.snapshot.save(self.repos)

        per_page = self.fetcher.per_page
        self.has_more = not (
            len(response.items) < per_page and response.total_count < per_page * page
        )

    def set_filters(self, filters: FilterState) -> None:
        """Replace and persist the filters, returning to page 1.

        The list is kept until the next refresh replaces it.
        """
        self.filters = filters
        self.saved_filters.save(filters)
        self.page = 1
        self.has_more = True

    async def select_user(self, username: str) -> UserView:
        """Scope the search to one user and load their profile panel.

        Resets query and star range and sorts by last update. Does not
        reload the list; call :meth:`refresh` for that.

        Args:
            username: GitHub username.

        Returns:
            UserView with the profile, or a placeholder if it failed.
        """
        self.selected_user = username
        self.set_filters(
            self.filters.model_copy(
                update={
                    "query": "",
                    "min_stars": 0,
                    "max_stars": MAX_STARS,
                    "sort": SortOption.UPDATED,
                }
            )
        )

        profile, top_repos = await asyncio.gather(
            self.fetcher.get_user_profile(username),
            self.fetcher.get_user_top_repos(username),
        )
        if profile is None:
            return UserView(UserProfile.placeholder(username), top_repos, found=False)
        return UserView(profile, top_repos)

    def clear_user(self) -> None:
        """Return to the global search with an empty query."""
        self.selected_user = None
        self.set_filters(self.filters.model_copy(update={"query": ""}))
