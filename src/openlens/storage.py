"""File-based key/value state storage using a JSON document."""

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class StateStorage:
    """Small synchronous key/value store persisted as one JSON file.

    Holds the handful of values that must survive a restart: the
    credential, the last filter state, the session snapshot and the
    search history. Every ``set`` rewrites the whole file.

    Attributes:
        path: Path to the JSON file.
    """

    def __init__(self, path: Path):
        """Initialize storage with path to the state file.

        Args:
            path: Path to the JSON file for storing state.
        """
        self.path = path

    def read(self) -> dict[str, Any]:
        """Load the stored document or return an empty one.

        Returns:
            Mapping of keys to JSON values. Empty if the file is missing
            or unreadable.
        """
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            logger.warning("Ignoring malformed state file %s", self.path)
            return {}
        return data

    def write(self, data: dict[str, Any]) -> None:
        """Write the whole document.

        Args:
            data: Mapping to persist.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def get(self, key: str, default: Any = None) -> Any:
        return self.read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self.read()
        data[key] = value
        self.write(data)

    def remove(self, key: str) -> None:
        data = self.read()
        if key in data:
            del data[key]
            self.write(data)
