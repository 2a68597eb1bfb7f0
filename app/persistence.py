"""Snapshot and restore of the whole store state.

The durable footprint is five ordered ``[key, value]`` pair lists
(``identities``, ``profiles``, ``records``, ``owner_index``, ``grants``) plus
the record id counter. Nothing else survives a restart.
"""

from __future__ import annotations

import base64
import copy
import logging
from typing import Any

logger = logging.getLogger(__name__)

SNAPSHOT_SCHEMA_VERSION = 1
SNAPSHOT_SECTIONS = ("identities", "profiles", "records", "owner_index", "grants")


def encode_record(record: dict[str, Any]) -> dict[str, Any]:
    item = copy.deepcopy(record)
    item["payload"] = base64.b64encode(bytes(item.get("payload") or b"")).decode("ascii")
    return item


def decode_record(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise TypeError("record snapshot entry must be an object")
    item = dict(raw)
    item["id"] = int(item["id"])
    item["owner_identifier"] = str(item["owner_identifier"])
    payload = item.get("payload") or ""
    item["payload"] = base64.b64decode(payload.encode("ascii"), validate=True)
    return item


def _decode_document(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise TypeError("snapshot entry must be an object")
    return dict(raw)


def _decode_id_list(raw: Any) -> list[int]:
    if not isinstance(raw, list):
        raise TypeError("owner index entry must be a list")
    return [int(x) for x in raw]


def _decode_grant_list(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        raise TypeError("grant entry must be a list")
    return [dict(x) for x in raw if isinstance(x, dict)]


class StorePersistenceMixin:
    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "schema_version": SNAPSHOT_SCHEMA_VERSION,
                "identities": self.identities.snapshot(copy.deepcopy),
                "profiles": self.profiles.snapshot(copy.deepcopy),
                "records": self.records.snapshot(encode_record),
                "owner_index": self.owner_index.snapshot(list),
                "grants": self.grants.snapshot(copy.deepcopy),
                "next_record_id": self.records_repository.next_id,
            }

    def restore(self, payload: dict[str, Any]) -> None:
        """Rebuild every map from its pair list; the loaded lists are not kept."""
        with self._lock:
            sections = {name: payload.get(name) for name in SNAPSHOT_SECTIONS}
            for name, pairs in sections.items():
                if not isinstance(pairs, list):
                    sections[name] = []
            self.identities.restore(sections["identities"], _decode_document)
            self.profiles.restore(sections["profiles"], _decode_document)
            self.records.restore(sections["records"], decode_record)
            self.owner_index.restore(sections["owner_index"], _decode_id_list)
            self.grants.restore(sections["grants"], _decode_grant_list)
            next_id = payload.get("next_record_id")
            highest = max((int(k) for k in self.records), default=0)
            if not isinstance(next_id, int) or isinstance(next_id, bool) or next_id <= highest:
                next_id = highest + 1
            self._bind_repositories(next_record_id=next_id)
            sections.clear()
            logger.info(
                "store_restored identities=%s records=%s next_record_id=%s",
                len(self.identities),
                len(self.records),
                next_id,
            )
