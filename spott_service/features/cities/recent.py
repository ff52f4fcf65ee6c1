"""Recent city searches persisted as a small JSON file."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from spott_service.core.settings import get_state_settings
from spott_service.core.settings.state import StateSettings

logger = logging.getLogger(__name__)


class RecentSearches:
    """Most-recent-first list of searched cities, capped and de-duplicated.

    Duplicates are exact string matches; searching a city again moves it to
    the front. A missing or unreadable file reads as an empty list.
    """

    def __init__(self, settings: StateSettings | None = None) -> None:
        settings = settings or get_state_settings()
        self.path: Path = settings.recent_searches_path
        self.limit = settings.recent_searches_limit

    def entries(self) -> list[str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning(
                "Could not read recent searches", extra={"path": str(self.path), "error": str(e)}
            )
            return []
        if not isinstance(data, list):
            return []
        return [item for item in data if isinstance(item, str)][: self.limit]

    def add(self, city: str) -> list[str]:
        city = city.strip()
        if not city:
            return self.entries()
        updated = [city, *(c for c in self.entries() if c != city)][: self.limit]
        self._write(updated)
        return updated

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)

    def _write(self, items: list[str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(items, ensure_ascii=False), encoding="utf-8")
