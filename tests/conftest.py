"""Shared test fixtures."""

from pathlib import Path

import pytest
import pytest_asyncio
import respx

from openlens.cache import ResponseCache
from openlens.credentials import CredentialHolder
from openlens.fetcher import RepoFetcher
from openlens.github_client import GitHubClient
from openlens.storage import StateStorage

API = "https://api.github.com"
TRENDING = "https://github-trending-api-seven.vercel.app/repositories"


class FakeClock:
    """Settable time source."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def repo_payload(repo_id: int, full_name: str, stars: int = 100) -> dict:
    """Repository as returned by the search API."""
    owner, name = full_name.split("/")
    return {
        "id": repo_id,
        "name": name,
        "full_name": full_name,
        "description": f"{name} description",
        "html_url": f"https://github.com/{full_name}",
        "stargazers_count": stars,
        "forks_count": stars // 10,
        "language": "Python",
        "owner": {
            "login": owner,
            "avatar_url": f"https://avatars.githubusercontent.com/{owner}",
            "html_url": f"https://github.com/{owner}",
        },
        "updated_at": "2024-01-02T00:00:00Z",
        "pushed_at": "2024-01-02T00:00:00Z",
        "topics": ["cli"],
        "license": {"key": "mit", "name": "MIT License"},
        "size": 1024,
        "open_issues_count": 3,
        "has_issues": True,
        "archived": False,
    }


def issue_payload(number: int, pull_request: bool = False) -> dict:
    """Issue as returned by the issues API."""
    data = {
        "id": 1000 + number,
        "number": number,
        "title": f"Issue {number}",
        "user": {"login": "reporter", "avatar_url": "", "html_url": ""},
        "state": "open",
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-01-02T00:00:00Z",
        "html_url": f"https://github.com/octo/app/issues/{number}",
        "body": "Steps to reproduce",
        "labels": [{"id": 1, "name": "bug", "color": "d73a4a", "description": None}],
        "comments": number,
        "assignee": None,
        "assignees": [],
        "reactions": {"total_count": 2, "+1": 2, "-1": 0},
    }
    if pull_request:
        data["pull_request"] = {"url": f"{API}/repos/octo/app/pulls/{number}"}
    return data


@pytest.fixture
def search_payload() -> dict:
    """Two-item search response."""
    return {
        "total_count": 2,
        "incomplete_results": False,
        "items": [
            repo_payload(1, "octo/app", stars=5000),
            repo_payload(2, "octo/lib", stars=1200),
        ],
    }


@pytest.fixture
def trending_payload() -> list[dict]:
    """Trending feed response."""
    return [
        {
            "author": "alice",
            "name": "rocket",
            "description": "Fast things",
            "url": "https://github.com/alice/rocket",
            "stars": 900,
            "forks": 40,
            "language": "Rust",
            "avatar": "https://avatars.githubusercontent.com/alice",
        },
        {
            "author": "bob",
            "name": "notes",
            "description": None,
            "url": "https://github.com/bob/notes",
            "stars": 300,
            "forks": 12,
            "language": None,
            "avatar": "https://avatars.githubusercontent.com/bob",
        },
    ]


@pytest.fixture
def issues_payload() -> list[dict]:
    """Five issues interleaved with three pull requests."""
    return [
        issue_payload(1),
        issue_payload(2, pull_request=True),
        issue_payload(3),
        issue_payload(4),
        issue_payload(5, pull_request=True),
        issue_payload(6),
        issue_payload(7, pull_request=True),
        issue_payload(8),
    ]


@pytest.fixture
def state_storage(tmp_path: Path) -> StateStorage:
    """State storage in a temporary directory."""
    return StateStorage(tmp_path / "state.json")


@pytest.fixture
def credentials(state_storage: StateStorage) -> CredentialHolder:
    return CredentialHolder(state_storage)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def cache(clock: FakeClock):
    """In-memory response cache on a fake clock."""
    async with ResponseCache(":memory:", clock=clock) as response_cache:
        yield response_cache


@pytest_asyncio.fixture
async def fetcher(credentials: CredentialHolder, cache: ResponseCache):
    """Fetcher with an open client."""
    async with GitHubClient(credentials) as client:
        yield RepoFetcher(client, cache)


@pytest.fixture
def mock_github_api():
    """Mock GitHub API and trending feed responses."""
    with respx.mock(assert_all_called=False) as respx_mock:
        yield respx_mock
