"""Session snapshot, saved filters and search history."""

import logging

from pydantic import ValidationError

from openlens.models import FilterState, Repository
from openlens.storage import StateStorage

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "session_repos"
FILTERS_KEY = "filters"
HISTORY_KEY = "search_history"

SNAPSHOT_LIMIT = 50
HISTORY_LIMIT = 5


class SessionSnapshot:
    """Most recent result list, kept to paint the first screen instantly.

    Best effort: failures are logged and swallowed. Only the first
    ``SNAPSHOT_LIMIT`` repositories are kept.
    """

    def __init__(self, storage: StateStorage):
        self.storage = storage

    def save(self, repos: list[Repository]) -> None:
        try:
            self.storage.set(
                SNAPSHOT_KEY,
                [repo.model_dump(mode="json") for repo in repos[:SNAPSHOT_LIMIT]],
            )
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Failed to save session repos: %s", e)

    def load(self) -> list[Repository]:
        raw = self.storage.get(SNAPSHOT_KEY, [])
        try:
            return [Repository.model_validate(item) for item in raw]
        except (TypeError, ValidationError) as e:
            logger.warning("Failed to load session repos: %s", e)
            return []


class SavedFilters:
    """Filter state persisted across restarts."""

    def __init__(self, storage: StateStorage):
        self.storage = storage

    def load(self) -> FilterState:
        """Load the last saved filters.

        Returns:
            Saved FilterState, or the defaults if none is stored or it
            cannot be parsed.
        """
        raw = self.storage.get(FILTERS_KEY)
        if raw is None:
            return FilterState()
        try:
            return FilterState.model_validate(raw)
        except ValidationError as e:
            logger.warning("Failed to parse saved filters: %s", e)
            return FilterState()

    def save(self, filters: FilterState) -> None:
        self.storage.set(FILTERS_KEY, filters.model_dump(mode="json"))


class SearchHistory:
    """Recent distinct search queries, most recent first."""

    def __init__(self, storage: StateStorage, limit: int = HISTORY_LIMIT):
        self.storage = storage
        self.limit = limit

    def entries(self) -> list[str]:
        raw = self.storage.get(HISTORY_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Failed to parse search history")
            return []
        return [str(q) for q in raw]

    def add(self, query: str) -> list[str]:
        """Record a query, moving it to the front.

        Args:
            query: Raw query text. Blank queries are ignored.

        Returns:
            The updated history.
        """
        query = query.strip()
        history = self.entries()
        if not query:
            return history
        history = [query, *(q for q in history if q != query)][: self.limit]
        self.storage.set(HISTORY_KEY, history)
        return history

    def remove(self, query: str) -> list[str]:
        history = [q for q in self.entries() if q != query]
        self.storage.set(HISTORY_KEY, history)
        return history

    def clear(self) -> None:
        self.storage.remove(HISTORY_KEY)
