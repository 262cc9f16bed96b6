"""Map upstream payloads to canonical entities and statuses to errors."""

import random
from datetime import UTC, datetime
from typing import Any, Literal

import httpx
from pydantic import ValidationError

from openlens.github_client import (
    FeatureDisabledError,
    PaginationExhaustedError,
    RateLimitError,
    UpstreamError,
    parse_reset_at,
)
from openlens.models import (
    Issue,
    IssuePage,
    Label,
    Repository,
    SearchResponse,
    TrendingFeed,
    TrendingItem,
    UserSummary,
)

Resource = Literal["search", "issues", "other"]

TRENDING_ID_BASE = 9_990_000
TRENDING_ID_SPREAD = 100_000

MALFORMED_MESSAGE = "Malformed response from GitHub API"


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def decode_json(response: httpx.Response) -> Any:
    """Decode a success body, treating garbage as an upstream failure."""
    try:
        return response.json()
    except ValueError as e:
        raise UpstreamError(response.status_code, MALFORMED_MESSAGE) from e


def error_message(response: httpx.Response) -> str:
    """Prefer the upstream ``message``, else describe the status."""
    data = _json_or_none(response)
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return f"GitHub API Error: {response.status_code} {response.reason_phrase}"


def _mentions_rate_limit(text: str) -> bool:
    return "rate limit" in text.lower()


def check_response(response: httpx.Response, resource: Resource = "other") -> None:
    """Raise the taxonomy error matching a response, if any.

    Args:
        response: Upstream response.
        resource: Which kind of endpoint produced it. Search and issue
            listings interpret 422, 403 and 404 differently.

    Raises:
        RateLimitError: 403/429, or a 200 object whose message reports a
            rate limit.
        PaginationExhaustedError: 422 on search.
        FeatureDisabledError: 404 on an issues listing.
        UpstreamError: Any other non-success status.
    """
    status = response.status_code

    if response.is_success:
        data = _json_or_none(response)
        if (
            isinstance(data, dict)
            and "items" not in data
            and _mentions_rate_limit(str(data.get("message", "")))
        ):
            raise RateLimitError(str(data["message"]), reset_at=parse_reset_at(response.headers))
        return

    message = error_message(response)

    if resource == "issues":
        if status == 404:
            raise FeatureDisabledError("Issues are disabled or not found.")
        if status == 429 or (status == 403 and _mentions_rate_limit(message)):
            raise RateLimitError(
                "GitHub Rate Limit Exceeded. Try again later.",
                reset_at=parse_reset_at(response.headers),
            )
        raise UpstreamError(status, message)

    if status in (403, 429):
        raise RateLimitError(
            "API rate limit exceeded. Please try again in a moment.",
            reset_at=parse_reset_at(response.headers),
        )
    if status == 422 and resource == "search":
        raise PaginationExhaustedError(message)
    raise UpstreamError(status, message)


def trending_to_repository(item: TrendingItem, repo_id: int, now: datetime) -> Repository:
    """Fill the canonical shape from a trending feed item.

    The feed carries no identity, timestamps, topics, license, size or
    issue data, so those are synthesized or defaulted.
    """
    return Repository(
        id=repo_id,
        name=item.name,
        full_name=f"{item.author}/{item.name}",
        description=item.description,
        html_url=item.url,
        stargazers_count=item.stars,
        forks_count=item.forks,
        language=item.language,
        owner=UserSummary(
            login=item.author,
            avatar_url=item.avatar,
            html_url=f"https://github.com/{item.author}",
        ),
        updated_at=now,
        pushed_at=now,
        topics=[],
        license=None,
        size=0,
        open_issues_count=0,
        has_issues=True,
        archived=False,
    )


def normalize_trending(payload: Any, rng: random.Random | None = None) -> SearchResponse:
    """Convert a trending feed payload into a search response.

    Ids are one random offset plus list position: distinct within this
    response, not stable across refetches.

    Args:
        payload: Decoded feed body, a list of items.
        rng: Random source for the id offset.

    Returns:
        SearchResponse holding every feed item.
    """
    feed = TrendingFeed.model_validate(payload)
    offset = TRENDING_ID_BASE + (rng or random).randrange(TRENDING_ID_SPREAD)
    now = datetime.now(UTC)
    items = [trending_to_repository(item, offset + idx, now) for idx, item in enumerate(feed.root)]
    return SearchResponse(total_count=len(items), incomplete_results=False, items=items)


def normalize_search(payload: Any, status: int = 200) -> SearchResponse:
    """Parse a search body.

    Raises:
        UpstreamError: When the body does not have the search shape.
    """
    try:
        return SearchResponse.model_validate(payload)
    except ValidationError as e:
        raise UpstreamError(status, MALFORMED_MESSAGE) from e


def normalize_issues(payload: Any, status: int = 200) -> list[Issue]:
    """Parse an issues listing, dropping pull requests.

    Args:
        payload: Decoded issues body.
        status: Status of the response the body came from.

    Returns:
        Issues in upstream order. Empty if the payload is not a list.

    Raises:
        UpstreamError: When a record does not have the issue shape.
    """
    if not isinstance(payload, list):
        return []
    try:
        page = IssuePage.model_validate(payload)
        return [Issue.model_validate(raw) for raw in page.root if raw.get("pull_request") is None]
    except ValidationError as e:
        raise UpstreamError(status, MALFORMED_MESSAGE) from e


def normalize_labels(payload: Any) -> list[Label]:
    if not isinstance(payload, list):
        return []
    return [Label.model_validate(raw) for raw in payload]


def normalize_languages(payload: Any) -> dict[str, int]:
    if not isinstance(payload, dict):
        return {}
    return {str(name): int(size) for name, size in payload.items()}
