from __future__ import annotations

import copy
from typing import Any

from app.keyed_map import KeyedMap


class InMemoryIdentitiesRepository:
    """Caller token -> identity document."""

    def __init__(self, identities: KeyedMap[dict[str, Any]]) -> None:
        self._identities = identities

    def get(self, *, principal: str) -> dict[str, Any] | None:
        row = self._identities.get(principal)
        if row is None:
            return None
        return copy.deepcopy(row)

    def insert(self, *, principal: str, identity: dict[str, Any]) -> dict[str, Any]:
        item = copy.deepcopy(identity)
        self._identities.put(principal, item)
        return copy.deepcopy(item)

    def find_by_identifier(self, *, identifier: str) -> dict[str, Any] | None:
        # Linear scan over every identity: O(n) per call.
        for row in self._identities.values():
            if row.get("identifier") == identifier:
                return copy.deepcopy(row)
        return None

    def count(self) -> int:
        return len(self._identities)
