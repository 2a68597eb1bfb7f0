from __future__ import annotations

import copy
from typing import Any

from app.keyed_map import KeyedMap


class InMemoryRecordsRepository:
    """Record map plus the per-owner record index.

    The owner index holds, for every identifier, exactly the ids of the records
    whose ``owner_identifier`` is that identifier. ``insert`` and ``delete``
    touch both structures in one call so the two never drift apart.
    """

    def __init__(
        self,
        records: KeyedMap[dict[str, Any]],
        owner_index: KeyedMap[list[int]],
        *,
        next_id: int = 1,
    ) -> None:
        self._records = records
        self._owner_index = owner_index
        self.next_id = max(1, int(next_id))

    def allocate_id(self) -> int:
        # Ids are never handed out twice, even after the record is deleted.
        record_id = self.next_id
        self.next_id += 1
        return record_id

    def insert(self, *, record: dict[str, Any]) -> dict[str, Any]:
        item = copy.deepcopy(record)
        record_id = int(item["id"])
        owner = str(item["owner_identifier"])
        self._records.put(record_id, item)
        ids = list(self._owner_index.get(owner) or [])
        ids.append(record_id)
        self._owner_index.put(owner, ids)
        return copy.deepcopy(item)

    def get(self, *, record_id: int) -> dict[str, Any] | None:
        row = self._records.get(record_id)
        if row is None:
            return None
        return copy.deepcopy(row)

    def replace(self, *, record: dict[str, Any]) -> dict[str, Any]:
        item = copy.deepcopy(record)
        self._records.put(int(item["id"]), item)
        return copy.deepcopy(item)

    def delete(self, *, record_id: int) -> dict[str, Any] | None:
        row = self._records.pop(record_id)
        if row is None:
            return None
        owner = str(row["owner_identifier"])
        remaining = [x for x in (self._owner_index.get(owner) or []) if x != int(record_id)]
        self._owner_index.put(owner, remaining)
        return copy.deepcopy(row)

    def ids_for_owner(self, *, owner_identifier: str) -> list[int]:
        return list(self._owner_index.get(owner_identifier) or [])

    def list_by_owner(self, *, owner_identifier: str) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for record_id in self.ids_for_owner(owner_identifier=owner_identifier):
            row = self._records.get(record_id)
            if row is None:
                continue
            rows.append(copy.deepcopy(row))
        return rows

    def count(self) -> int:
        return len(self._records)
