from __future__ import annotations

import copy
from typing import Any

from app.keyed_map import KeyedMap


class InMemoryAccessGrantsRepository:
    """Delegate token -> grants issued to that delegate, in issue order."""

    def __init__(self, grants: KeyedMap[list[dict[str, Any]]]) -> None:
        self._grants = grants

    def append(self, *, delegate: str, grant: dict[str, Any]) -> dict[str, Any]:
        item = copy.deepcopy(grant)
        rows = list(self._grants.get(delegate) or [])
        rows.append(item)
        self._grants.put(delegate, rows)
        return copy.deepcopy(item)

    def list_for_delegate(self, *, delegate: str) -> list[dict[str, Any]]:
        return [copy.deepcopy(x) for x in (self._grants.get(delegate) or [])]

    def remove_for_issuer(self, *, delegate: str, issuer_identifier: str) -> int:
        rows = self._grants.get(delegate)
        if rows is None:
            return 0
        kept = [x for x in rows if x.get("issued_by") != issuer_identifier]
        self._grants.put(delegate, kept)
        return len(rows) - len(kept)

    def list_issued_by(self, *, issuer_identifier: str) -> list[dict[str, Any]]:
        # Scans every delegate's list: O(total grants).
        return [
            copy.deepcopy(x)
            for rows in self._grants.values()
            for x in rows
            if x.get("issued_by") == issuer_identifier
        ]
