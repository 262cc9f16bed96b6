"""Async GitHub REST and trending feed client."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Self

import httpx

if TYPE_CHECKING:
    from openlens.credentials import CredentialHolder

JSON_ACCEPT = "application/vnd.github.v3+json"
HTML_ACCEPT = "application/vnd.github.html"


class GitHubAPIError(Exception):
    """Base exception for GitHub API errors."""


class RateLimitError(GitHubAPIError):
    """Raised when rate limit is exceeded."""

    def __init__(self, message: str, reset_at: datetime | None = None):
        """Initialize with reset time.

        Args:
            message: Error message.
            reset_at: When rate limit resets (UTC).
        """
        super().__init__(message)
        self.reset_at = reset_at


class PaginationExhaustedError(GitHubAPIError):
    """Raised when search refuses a page beyond its result window."""


class FeatureDisabledError(GitHubAPIError):
    """Raised when a repository has the requested feature turned off."""


class InvalidCredentialError(GitHubAPIError):
    """Raised when a token is rejected by the identity endpoint."""


class UpstreamError(GitHubAPIError):
    """Raised for any other non-success response."""

    def __init__(self, status: int, message: str):
        """Initialize with the response status.

        Args:
            status: HTTP status code.
            message: Upstream message or a generic description.
        """
        super().__init__(message)
        self.status = status
        self.message = message


class TransportError(GitHubAPIError):
    """Raised when the request never produced a response."""


def parse_reset_at(headers: httpx.Headers) -> datetime | None:
    """Read the rate limit reset time from response headers."""
    value = headers.get("X-RateLimit-Reset")
    if not value or not value.isdigit():
        return None
    return datetime.fromtimestamp(int(value), tz=UTC)


class GitHubClient:
    """Async client for the GitHub REST API and the trending feed.

    The bearer token is read from the credential holder on every request,
    so a login or logout takes effect without rebuilding the client.
    Responses are returned as-is; mapping statuses to errors is left to
    :mod:`openlens.normalizer`. No retries are attempted.

    Attributes:
        BASE_URL: GitHub API base URL.
        TRENDING_URL: Daily trending feed URL.
    """

    BASE_URL = "https://api.github.com"
    TRENDING_URL = "https://github-trending-api-seven.vercel.app/repositories"

    def __init__(
        self,
        credentials: "CredentialHolder",
        base_url: str = BASE_URL,
        trending_url: str = TRENDING_URL,
        timeout: float = 30.0,
    ):
        """Initialize client.

        Args:
            credentials: Holder of the optional bearer token.
            base_url: GitHub API base URL.
            trending_url: Trending feed URL.
            timeout: Request timeout in seconds.
        """
        self.credentials = credentials
        self.base_url = base_url
        self.trending_url = trending_url
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        self._client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _headers(self, accept: str) -> dict[str, str]:
        headers = {"Accept": accept}
        token = self.credentials.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _send(
        self, url: str, params: dict[str, Any] | None, headers: dict[str, str]
    ) -> httpx.Response:
        if not self._client:
            raise RuntimeError("Client not initialized. Use async context manager.")
        try:
            return await self._client.get(url, params=params, headers=headers)
        except httpx.RequestError as e:
            raise TransportError(f"Request failed: {e}") from e

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        accept: str = JSON_ACCEPT,
    ) -> httpx.Response:
        """Issue an authenticated GET against the REST API.

        Args:
            path: API endpoint path, e.g. ``/search/repositories``.
            params: Query parameters.
            accept: Accept header for content negotiation.

        Returns:
            The raw response, whatever its status.

        Raises:
            TransportError: When no response was received.
        """
        return await self._send(f"{self.base_url}{path}", params, self._headers(accept))

    async def get_trending(self, language: str | None = None) -> httpx.Response:
        """Fetch the daily trending feed.

        The feed is a third-party scraper, so no credential is attached.

        Args:
            language: Optional language to scope the feed to.

        Returns:
            The raw response, whatever its status.
        """
        params = {"since": "daily"}
        if language:
            params["language"] = language
        return await self._send(self.trending_url, params, {"Accept": "application/json"})
