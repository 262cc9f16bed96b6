"""Data models for openlens.

Canonical entities are pydantic models so that they round-trip through the
response cache as plain JSON. They are frozen: a refetch replaces them
wholesale.
"""

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, RootModel

MAX_STARS = 50_000
ALL = "All"


class SortOption(StrEnum):
    """Repository sort modes."""

    TRENDING = "trending"
    STARS = "stars"
    FORKS = "forks"
    UPDATED = "updated"


class OrderOption(StrEnum):
    """Sort direction."""

    DESC = "desc"
    ASC = "asc"


class Entity(BaseModel):
    """Base for records parsed from upstream payloads."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class UserSummary(Entity):
    """Actor embedded in repositories and issues.

    Attributes:
        login: GitHub username.
        avatar_url: Avatar image URL.
        html_url: Profile page URL.
    """

    login: str
    avatar_url: str = ""
    html_url: str = ""


class UserProfile(Entity):
    """Extended user identity from the users endpoint."""

    login: str
    id: int = 0
    avatar_url: str = ""
    html_url: str = ""
    name: str | None = None
    company: str | None = None
    blog: str | None = None
    location: str | None = None
    email: str | None = None
    bio: str | None = None
    public_repos: int = 0
    followers: int = 0
    following: int = 0
    created_at: datetime | None = None

    @classmethod
    def placeholder(cls, username: str) -> "UserProfile":
        """Stand-in profile shown when the lookup fails.

        Display only; never written to the cache.
        """
        return cls(
            login=username,
            avatar_url=f"https://github.com/{username}.png",
            html_url=f"https://github.com/{username}",
            name=username,
        )


class License(Entity):
    key: str
    name: str = ""


class Repository(Entity):
    """A public repository as returned by search or the trending feed."""

    id: int
    name: str
    full_name: str
    description: str | None = None
    html_url: str = ""
    stargazers_count: int = 0
    forks_count: int = 0
    language: str | None = None
    owner: UserSummary
    updated_at: datetime | None = None
    pushed_at: datetime | None = None
    topics: list[str] = Field(default_factory=list)
    license: License | None = None
    size: int = 0
    open_issues_count: int = 0
    has_issues: bool = True
    archived: bool = False


class Label(Entity):
    """Issue label. ``color`` is a hex triplet without the leading ``#``."""

    id: int
    name: str
    color: str = ""
    description: str | None = None


class Reactions(Entity):
    total_count: int = 0
    plus_one: int = Field(0, alias="+1")
    minus_one: int = Field(0, alias="-1")
    laugh: int = 0
    hooray: int = 0
    confused: int = 0
    heart: int = 0
    rocket: int = 0
    eyes: int = 0


class Issue(Entity):
    """An issue on a repository.

    ``pull_request`` is set by the upstream issues endpoint for pull
    requests; such records are dropped from issue listings.
    ``repository`` is only populated when issues are aggregated across
    repositories.
    """

    id: int
    number: int
    title: str
    user: UserSummary
    state: Literal["open", "closed"] = "open"
    created_at: datetime | None = None
    updated_at: datetime | None = None
    html_url: str = ""
    body: str | None = None
    labels: list[Label] = Field(default_factory=list)
    comments: int = 0
    pull_request: dict | None = None
    assignee: UserSummary | None = None
    assignees: list[UserSummary] = Field(default_factory=list)
    repository: Repository | None = None
    reactions: Reactions | None = None

    @property
    def is_pull_request(self) -> bool:
        return self.pull_request is not None


class SearchResponse(Entity):
    """One page of repository search results."""

    total_count: int = 0
    incomplete_results: bool = False
    items: list[Repository] = Field(default_factory=list)
    warning: str | None = None

    @classmethod
    def empty(cls) -> "SearchResponse":
        return cls(total_count=0, incomplete_results=False, items=[])


class TrendingItem(Entity):
    """Item shape of the daily trending feed."""

    author: str
    name: str
    description: str | None = None
    url: str = ""
    stars: int = 0
    forks: int = 0
    language: str | None = None
    avatar: str = ""


class TrendingFeed(RootModel[list[TrendingItem]]):
    """Raw trending feed payload."""


class IssuePage(RootModel[list[dict]]):
    """Raw issues endpoint payload, pull requests included."""


class FilterState(BaseModel):
    """Repository search filters.

    ``language`` entries are matched as quoted keywords (AND of all), not
    as a structured language filter.
    """

    query: str = ""
    language: list[str] = Field(default_factory=list)
    license: str = ALL
    sort: SortOption = SortOption.STARS
    order: OrderOption = OrderOption.DESC
    min_stars: int = 0
    max_stars: int = MAX_STARS

    @property
    def languages(self) -> list[str]:
        """Selected languages, ignoring the "All" sentinel."""
        return [lang for lang in self.language if lang and lang != ALL]

    @property
    def has_star_filter(self) -> bool:
        return self.min_stars > 0 or self.max_stars < MAX_STARS

    @property
    def has_license(self) -> bool:
        return bool(self.license) and self.license != ALL


class IssueFilterState(BaseModel):
    """Issue listing filters. ``labels`` are OR-ed upstream."""

    sort: Literal["created", "updated", "comments"] = "created"
    direction: Literal["asc", "desc"] = "desc"
    labels: list[str] = Field(default_factory=list)
