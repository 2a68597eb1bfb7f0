from __future__ import annotations

import copy
from typing import Any

from app.keyed_map import KeyedMap


class InMemoryProfilesRepository:
    def __init__(self, profiles: KeyedMap[dict[str, Any]]) -> None:
        self._profiles = profiles

    def get(self, *, identifier: str) -> dict[str, Any] | None:
        row = self._profiles.get(identifier)
        if row is None:
            return None
        return copy.deepcopy(row)

    def upsert(self, *, identifier: str, profile: dict[str, Any]) -> dict[str, Any]:
        item = copy.deepcopy(profile)
        self._profiles.put(identifier, item)
        return copy.deepcopy(item)
