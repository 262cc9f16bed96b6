"""Fetch orchestration: cache lookup, strategy, network call, normalize, persist."""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote

from pydantic import ValidationError

from openlens import normalizer
from openlens.cache import ResponseCache
from openlens.config import Settings
from openlens.credentials import CredentialHolder
from openlens.github_client import (
    HTML_ACCEPT,
    GitHubAPIError,
    GitHubClient,
    PaginationExhaustedError,
)
from openlens.models import (
    FilterState,
    Issue,
    IssueFilterState,
    Label,
    Repository,
    SearchResponse,
    UserProfile,
)
from openlens.storage import StateStorage
from openlens.strategy import (
    SEARCH_PATH,
    SearchRequest,
    TrendingRequest,
    build_search_request,
    resolve,
)

logger = logging.getLogger(__name__)

CACHE_PREFIX = "openlens_cache_v1_"

# Seconds
SEARCH_CACHE_TTL = 60 * 2
BROWSING_CACHE_TTL = 60 * 15
ISSUES_CACHE_TTL = 60 * 5
LANGUAGES_CACHE_TTL = 60 * 60 * 24

ISSUES_PER_PAGE = 30
LABELS_PER_PAGE = 100
TOP_REPOS_COUNT = 3


def search_cache_key(filters: FilterState, page: int, user: str | None = None) -> str:
    """Deterministic key for one page of a repository search."""
    key_data = {
        **filters.model_dump(mode="json"),
        "page": page,
        "user": user or "none",
    }
    return CACHE_PREFIX + json.dumps(key_data, sort_keys=True)


def issues_cache_key(owner: str, repo: str, filters: IssueFilterState) -> str:
    return f"issues_{owner}_{repo}_{filters.model_dump_json()}"


def languages_cache_key(owner: str, repo: str) -> str:
    return f"languages_{owner}_{repo}"


def repo_path(owner: str, repo: str, resource: str) -> str:
    """API path under a repository, with owner and name percent-encoded."""
    return f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}/{resource}"


def _dump(model: Any) -> Any:
    return model.model_dump(mode="json", by_alias=True)


class RepoFetcher:
    """Single entry point for every upstream read.

    Holds no state between calls besides its collaborators; the response
    cache is the only shared resource. Primary listings raise taxonomy
    errors; enrichment lookups degrade to empty results.

    Attributes:
        client: Initialized GitHub client.
        cache: Durable response cache.
        per_page: Repository search page size.
    """

    def __init__(self, client: GitHubClient, cache: ResponseCache, per_page: int = 30):
        """Initialize fetcher.

        Args:
            client: Initialized GitHub client.
            cache: Durable response cache.
            per_page: Repository search page size.
        """
        self.client = client
        self.cache = cache
        self.per_page = per_page

    async def _cached(self, key: str, ttl: float) -> Any | None:
        entry = await self.cache.get(key)
        if entry is None:
            return None
        if entry.is_stale(ttl, self.cache.clock()):
            logger.debug("Cache expired for %s", key)
            return None
        logger.debug("Serving from cache: %s", key)
        return entry.data

    async def search_repositories(
        self,
        filters: FilterState,
        page: int = 1,
        user: str | None = None,
    ) -> SearchResponse:
        """Fetch one page of repositories for the given filters.

        Args:
            filters: Current filter state.
            page: 1-based page number.
            user: Username to scope the search to.

        Returns:
            SearchResponse, from cache when fresh. A search past the last
            available page yields an empty response.

        Raises:
            RateLimitError: When rate limited.
            UpstreamError: For other upstream failures.
            TransportError: When the request never completed.
        """
        key = search_cache_key(filters, page, user)
        # Active text search wants fresher results than plain browsing
        ttl = SEARCH_CACHE_TTL if filters.query else BROWSING_CACHE_TTL

        cached = await self._cached(key, ttl)
        if cached is not None:
            try:
                return SearchResponse.model_validate(cached)
            except ValidationError as e:
                logger.warning("Discarding malformed cache entry %s: %s", key, e)

        request = resolve(filters, page=page, user=user, per_page=self.per_page)
        result: SearchResponse | None = None

        if isinstance(request, TrendingRequest):
            result = await self._fetch_trending(request)
            if result is None:
                request = build_search_request(
                    filters, page=page, user=user, per_page=self.per_page
                )

        if result is None:
            result = await self._fetch_search(request)

        await self.cache.put(key, _dump(result))
        return result

    async def _fetch_trending(self, request: TrendingRequest) -> SearchResponse | None:
        """Try the trending feed. None means fall back to search."""
        try:
            response = await self.client.get_trending(request.language)
            normalizer.check_response(response)
            result = normalizer.normalize_trending(normalizer.decode_json(response))
        except (GitHubAPIError, ValueError) as e:
            logger.warning("Trending feed failed, falling back to search: %s", e)
            return None
        return result if result.items else None

    async def _fetch_search(self, request: SearchRequest) -> SearchResponse:
        response = await self.client.get(SEARCH_PATH, params=request.params())
        try:
            normalizer.check_response(response, "search")
        except PaginationExhaustedError as e:
            logger.warning("Search returned 422, likely past the last page: %s", e)
            return SearchResponse.empty()
        return normalizer.normalize_search(normalizer.decode_json(response), response.status_code)

    async def get_repo_issues(
        self,
        owner: str,
        repo: str,
        filters: IssueFilterState | None = None,
    ) -> list[Issue]:
        """List open issues of a repository, excluding pull requests.

        Args:
            owner: Repository owner.
            repo: Repository name.
            filters: Sort, direction and label selection.

        Returns:
            Issues in upstream order.

        Raises:
            FeatureDisabledError: When issues are disabled or missing.
            RateLimitError: When rate limited.
            UpstreamError: For other upstream failures.
            TransportError: When the request never completed.
        """
        filters = filters or IssueFilterState()
        key = issues_cache_key(owner, repo, filters)

        cached = await self._cached(key, ISSUES_CACHE_TTL)
        if cached is not None:
            try:
                return [Issue.model_validate(raw) for raw in cached]
            except (TypeError, ValidationError) as e:
                logger.warning("Discarding malformed cache entry %s: %s", key, e)

        params: dict[str, str] = {
            "sort": filters.sort,
            "direction": filters.direction,
            "state": "open",
            "per_page": str(ISSUES_PER_PAGE),
        }
        if filters.labels:
            params["labels"] = ",".join(filters.labels)

        response = await self.client.get(repo_path(owner, repo, "issues"), params=params)
        try:
            normalizer.check_response(response, "issues")
        except GitHubAPIError as e:
            logger.warning("Issues request failed for %s/%s: %s", owner, repo, e)
            raise

        issues = normalizer.normalize_issues(normalizer.decode_json(response), response.status_code)
        await self.cache.put(key, [_dump(issue) for issue in issues])
        return issues

    async def get_user_profile(self, username: str) -> UserProfile | None:
        """Fetch a user's profile, or None if it cannot be loaded."""
        try:
            response = await self.client.get(f"/users/{quote(username, safe='')}")
            normalizer.check_response(response)
            return UserProfile.model_validate(response.json())
        except (GitHubAPIError, ValueError) as e:
            logger.warning("Error fetching user profile for %s: %s", username, e)
            return None

    async def get_user_top_repos(self, username: str) -> list[Repository]:
        """Fetch a user's most starred repositories.

        Args:
            username: GitHub username.

        Returns:
            Up to three repositories, empty on failure.
        """
        params = {
            "q": f"user:{username}",
            "sort": "stars",
            "order": "desc",
            "per_page": str(TOP_REPOS_COUNT),
        }
        try:
            response = await self.client.get(SEARCH_PATH, params=params)
            normalizer.check_response(response, "search")
            return normalizer.normalize_search(response.json()).items
        except (GitHubAPIError, ValueError) as e:
            logger.warning("Error fetching top repos for %s: %s", username, e)
            return []

    async def get_repository_readme(self, owner: str, repo: str) -> str | None:
        """Fetch the rendered README as HTML, or None if absent."""
        try:
            response = await self.client.get(repo_path(owner, repo, "readme"), accept=HTML_ACCEPT)
            normalizer.check_response(response)
        except GitHubAPIError as e:
            logger.warning("Error fetching readme for %s/%s: %s", owner, repo, e)
            return None
        text = response.text
        return text if text.strip() else None

    async def get_repo_languages(self, owner: str, repo: str) -> dict[str, int]:
        """Fetch bytes of code per language.

        Cached for a day, since language composition changes rarely.

        Args:
            owner: Repository owner.
            repo: Repository name.

        Returns:
            Mapping of language to byte count, empty on failure.
        """
        key = languages_cache_key(owner, repo)
        cached = await self._cached(key, LANGUAGES_CACHE_TTL)
        if isinstance(cached, dict):
            return normalizer.normalize_languages(cached)

        try:
            response = await self.client.get(repo_path(owner, repo, "languages"))
            normalizer.check_response(response)
            languages = normalizer.normalize_languages(response.json())
        except (GitHubAPIError, ValueError) as e:
            logger.warning("Error fetching languages for %s/%s: %s", owner, repo, e)
            return {}

        await self.cache.put(key, languages)
        return languages

    async def get_repo_labels(self, owner: str, repo: str) -> list[Label]:
        """Fetch the labels defined on a repository, empty on failure."""
        try:
            response = await self.client.get(
                repo_path(owner, repo, "labels"), params={"per_page": str(LABELS_PER_PAGE)}
            )
            normalizer.check_response(response)
            return normalizer.normalize_labels(response.json())
        except (GitHubAPIError, ValueError) as e:
            logger.warning("Error fetching labels for %s/%s: %s", owner, repo, e)
            return []


@asynccontextmanager
async def open_fetcher(
    settings: Settings,
    credentials: CredentialHolder | None = None,
) -> AsyncIterator[RepoFetcher]:
    """Build a fetcher wired to the configured cache and API.

    Args:
        settings: Application settings.
        credentials: Credential holder; loaded from state storage if omitted.

    Yields:
        Ready-to-use RepoFetcher.
    """
    if credentials is None:
        credentials = CredentialHolder(StateStorage(settings.state_path), settings.github_token)

    client = GitHubClient(
        credentials,
        base_url=settings.api_base_url,
        trending_url=settings.trending_url,
        timeout=settings.timeout,
    )
    async with ResponseCache(settings.cache_path) as cache, client:
        yield RepoFetcher(client, cache, per_page=settings.per_page)
