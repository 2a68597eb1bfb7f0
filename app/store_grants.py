from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from app.authorization import Permission, parse_timestamp
from app.errors import unauthorized

logger = logging.getLogger(__name__)


def _normalize_expiry(value: Any) -> str | None:
    # Raises ValueError for text that is not an ISO-8601 timestamp.
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.astimezone(UTC).isoformat()


class StoreGrantsMixin:
    def grant_access(
        self,
        *,
        caller: str,
        delegate: str,
        record_ids: list[int],
        permissions: list[str],
        expires_at: datetime | str | None = None,
    ) -> dict[str, Any]:
        with self._lock:
            self._require_authenticated(caller)
            expiry = _normalize_expiry(expires_at)
            identity = self.lookup_identity(caller=caller)
            issuer = identity["identifier"]
            for record_id in record_ids:
                record = self.records_repository.get(record_id=int(record_id))
                if record is None or record["owner_identifier"] != issuer:
                    raise unauthorized(f"record {record_id} is not owned by caller")
            perms: list[str] = []
            for item in permissions:
                value = Permission(item).value
                if value not in perms:
                    perms.append(value)
            grant = {
                "delegate": self._canonical_principal(delegate),
                "issued_by": issuer,
                "record_ids": [int(x) for x in record_ids],
                "expires_at": expiry,
                "permissions": perms,
                "created_at": self._utcnow_iso(),
            }
            saved = self.grants_repository.append(delegate=grant["delegate"], grant=grant)
            logger.info(
                "grant_issued issuer=%s delegate=%s records=%s permissions=%s",
                issuer,
                grant["delegate"],
                grant["record_ids"] or "*",
                ",".join(perms),
            )
            self._after_write()
            return saved

    def revoke_access(self, *, caller: str, delegate: str) -> dict[str, Any]:
        with self._lock:
            self._require_authenticated(caller)
            identity = self.lookup_identity(caller=caller)
            removed = self.grants_repository.remove_for_issuer(
                delegate=self._canonical_principal(delegate),
                issuer_identifier=identity["identifier"],
            )
            logger.info(
                "grants_revoked issuer=%s delegate=%s removed=%s",
                identity["identifier"],
                self._canonical_principal(delegate),
                removed,
            )
            self._after_write()
            return {"delegate": self._canonical_principal(delegate), "revoked": removed}

    def list_my_grants(self, *, caller: str) -> list[dict[str, Any]]:
        with self._lock:
            identity = self.lookup_identity(caller=caller)
            return self.grants_repository.list_issued_by(issuer_identifier=identity["identifier"])

    def list_accessible_records(self, *, caller: str) -> list[dict[str, Any]]:
        with self._lock:
            return self.authorization.resolve_accessible_records(delegate=self._canonical_principal(caller))
