"""Grant evaluation.

Grants are purely additive: a delegate may act on a record when at least one
live grant from the record's owner carries the required permission and covers
the record. There is no deny rule.

A grant with an empty ``record_ids`` list is a wildcard over the issuer's
*current* records. It is resolved against the owner's live index on every
check, so access silently grows as the owner adds records after issuance.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from app.repositories.grants import InMemoryAccessGrantsRepository
from app.repositories.records import InMemoryRecordsRepository


class Permission(str, Enum):
    READ = "Read"
    WRITE = "Write"
    DELETE = "Delete"


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def grant_is_expired(grant: dict[str, Any], now: datetime) -> bool:
    expires_at = parse_timestamp(grant.get("expires_at"))
    if expires_at is None:
        return False
    return expires_at <= now


class AuthorizationEngine:
    """Read-only evaluation over the records and grants repositories."""

    def __init__(
        self,
        *,
        records: InMemoryRecordsRepository,
        grants: InMemoryAccessGrantsRepository,
        clock: Callable[[], datetime],
    ) -> None:
        self._records = records
        self._grants = grants
        self._clock = clock

    def has_access(
        self,
        *,
        delegate: str,
        owner_identifier: str,
        record_id: int,
        permission: Permission,
    ) -> bool:
        now = self._clock()
        for grant in self._grants.list_for_delegate(delegate=delegate):
            if grant.get("issued_by") != owner_identifier:
                continue
            if grant_is_expired(grant, now):
                continue
            if permission.value not in grant.get("permissions", []):
                continue
            record_ids = grant.get("record_ids") or []
            if not record_ids or int(record_id) in {int(x) for x in record_ids}:
                return True
        return False

    def resolve_accessible_records(self, *, delegate: str) -> list[dict[str, Any]]:
        now = self._clock()
        out: list[dict[str, Any]] = []
        for grant in self._grants.list_for_delegate(delegate=delegate):
            if grant_is_expired(grant, now):
                continue
            if Permission.READ.value not in grant.get("permissions", []):
                continue
            record_ids = grant.get("record_ids") or []
            if not record_ids:
                out.extend(self._records.list_by_owner(owner_identifier=str(grant["issued_by"])))
                continue
            for record_id in record_ids:
                record = self._records.get(record_id=int(record_id))
                if record is not None:
                    out.append(record)
        return out
