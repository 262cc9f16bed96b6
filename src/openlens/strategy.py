"""Choose and build the upstream request for a repository search.

Two paths exist. The trending path reads the daily trending feed and is
only usable for an unfiltered "trending" browse. Everything else, and the
trending path's fallback, goes through the search API with a query string
assembled from the filters.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from openlens.models import MAX_STARS, FilterState, SortOption

SEARCH_PATH = "/search/repositories"
TRENDING_WINDOW_DAYS = 7
POPULARITY_FLOOR = "stars:>1000"


@dataclass(frozen=True)
class TrendingRequest:
    """Request for the daily trending feed.

    Attributes:
        language: Language to scope the feed to, if any.
    """

    language: str | None = None


@dataclass(frozen=True)
class SearchRequest:
    """Request for the repository search endpoint."""

    query: str
    sort: str
    order: str
    per_page: int
    page: int

    def params(self) -> dict[str, str]:
        return {
            "q": self.query,
            "sort": self.sort,
            "order": self.order,
            "per_page": str(self.per_page),
            "page": str(self.page),
        }


def is_trending_eligible(filters: FilterState, user: str | None = None) -> bool:
    """Check whether the trending feed can answer these filters.

    Args:
        filters: Current filter state.
        user: Username the search is scoped to, if any.

    Returns:
        True for a "trending" sort with no query, user, star range,
        license, and at most one language.
    """
    return (
        filters.sort == SortOption.TRENDING
        and not filters.query
        and not user
        and not filters.has_star_filter
        and not filters.has_license
        and len(filters.languages) <= 1
    )


def build_search_query(
    filters: FilterState,
    user: str | None = None,
    today: date | None = None,
) -> str:
    """Assemble the search API ``q`` parameter.

    Args:
        filters: Current filter state.
        user: Username to scope the search to.
        today: Reference date for the recency clause (default: today, UTC).

    Returns:
        Space-separated query clauses.
    """
    is_trending = filters.sort == SortOption.TRENDING
    languages = filters.languages
    parts: list[str] = []

    if user:
        parts.append(f"user:{user}")

    if is_trending and not filters.query and not user:
        today = today or datetime.now(UTC).date()
        since = today - timedelta(days=TRENDING_WINDOW_DAYS)
        parts.append(f"created:>{since.isoformat()}")

    if filters.query:
        parts.append(filters.query)
    elif not user and not filters.has_star_filter and not languages and not is_trending:
        parts.append(POPULARITY_FLOOR)

    # Quoted keywords rather than language: so that each one is a required match
    if languages:
        parts.append(" ".join(f'"{lang}"' for lang in languages))

    if filters.has_license:
        parts.append(f"license:{filters.license}")

    if filters.max_stars < MAX_STARS:
        parts.append(f"stars:{filters.min_stars}..{filters.max_stars}")
    elif filters.min_stars > 0:
        parts.append(f"stars:>={filters.min_stars}")

    return " ".join(parts)


def build_search_request(
    filters: FilterState,
    page: int = 1,
    user: str | None = None,
    per_page: int = 30,
    today: date | None = None,
) -> SearchRequest:
    """Build the search API request for one page.

    Args:
        filters: Current filter state.
        page: 1-based page number.
        user: Username to scope the search to.
        per_page: Search page size.
        today: Reference date for the recency clause.

    Returns:
        SearchRequest ready to send.
    """
    is_trending = filters.sort == SortOption.TRENDING
    return SearchRequest(
        query=build_search_query(filters, user=user, today=today),
        # Trending emulated through search ranks the recent window by stars
        sort=SortOption.STARS.value if is_trending else filters.sort.value,
        order=filters.order.value,
        per_page=per_page,
        page=page,
    )


def resolve(
    filters: FilterState,
    page: int = 1,
    user: str | None = None,
    per_page: int = 30,
    today: date | None = None,
) -> TrendingRequest | SearchRequest:
    """Decide how to fetch one page of repositories.

    When this returns a TrendingRequest and the feed comes back empty or
    fails, the caller falls back to :func:`build_search_request`.

    Args:
        filters: Current filter state.
        page: 1-based page number.
        user: Username to scope the search to.
        per_page: Search page size.
        today: Reference date for the recency clause.

    Returns:
        The request to issue first.
    """
    if is_trending_eligible(filters, user):
        languages = filters.languages
        return TrendingRequest(language=languages[0] if languages else None)
    return build_search_request(filters, page=page, user=user, per_page=per_page, today=today)
