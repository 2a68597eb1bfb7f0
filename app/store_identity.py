from __future__ import annotations

import logging
from typing import Any

from app.errors import already_exists, not_authenticated, not_found
from app.keyed_map import PRINCIPAL_KEY

logger = logging.getLogger(__name__)


class StoreIdentityMixin:
    def _canonical_principal(self, caller: str) -> str:
        return str(PRINCIPAL_KEY.canonical(caller))

    def _is_anonymous(self, caller: str) -> bool:
        principal = self._canonical_principal(caller)
        return not principal or principal == self._canonical_principal(self.anonymous_principal)

    def _require_authenticated(self, caller: str) -> str:
        if self._is_anonymous(caller):
            raise not_authenticated()
        return self._canonical_principal(caller)

    def _derive_identifier(self, principal: str) -> str:
        return f"did:{self.did_method}:{principal}"

    def _insert_identity(self, principal: str) -> dict[str, Any]:
        identity = {
            "scheme": self.did_method,
            "identifier": self._derive_identifier(principal),
            "created_at": self._utcnow_iso(),
        }
        saved = self.identities_repository.insert(principal=principal, identity=identity)
        logger.info("identity_created identifier=%s", saved["identifier"])
        return saved

    def create_identity(self, *, caller: str) -> dict[str, Any]:
        with self._lock:
            principal = self._require_authenticated(caller)
            if self.identities_repository.get(principal=principal) is not None:
                raise already_exists("identity already exists for caller")
            saved = self._insert_identity(principal)
            self._after_write()
            return saved

    def resolve_or_create_identity(self, *, caller: str) -> dict[str, Any]:
        """Return the caller's identity, creating it silently when missing."""
        with self._lock:
            principal = self._require_authenticated(caller)
            existing = self.identities_repository.get(principal=principal)
            if existing is not None:
                return existing
            saved = self._insert_identity(principal)
            self._after_write()
            return saved

    def lookup_identity(self, *, caller: str) -> dict[str, Any]:
        with self._lock:
            identity = self.identities_repository.get(principal=caller)
            if identity is None:
                raise not_found("identity not found")
            return identity

    def get_my_identity(self, *, caller: str) -> dict[str, Any]:
        return self.lookup_identity(caller=caller)

    def resolve_identity(self, *, identifier: str) -> dict[str, Any]:
        with self._lock:
            identity = self.identities_repository.find_by_identifier(identifier=identifier.strip())
            if identity is None:
                raise not_found("identity not found")
            return identity

    def _find_identity(self, caller: str) -> dict[str, Any] | None:
        return self.identities_repository.get(principal=caller)

    def upsert_profile(self, *, caller: str, payload: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            identity = self.resolve_or_create_identity(caller=caller)
            identifier = identity["identifier"]
            now = self._utcnow_iso()
            existing = self.profiles_repository.get(identifier=identifier)
            profile = {
                "identity": identity,
                "name": str(payload.get("name") or ""),
                "date_of_birth": str(payload.get("date_of_birth") or ""),
                "blood_type": payload.get("blood_type"),
                "allergies": [str(x) for x in payload.get("allergies") or []],
                "created_at": existing["created_at"] if existing is not None else now,
                "updated_at": now,
            }
            saved = self.profiles_repository.upsert(identifier=identifier, profile=profile)
            self._after_write()
            return saved

    def get_my_profile(self, *, caller: str) -> dict[str, Any]:
        with self._lock:
            identity = self.lookup_identity(caller=caller)
            profile = self.profiles_repository.get(identifier=identity["identifier"])
            if profile is None:
                raise not_found("profile not found")
            return profile

    def count_identities(self) -> int:
        with self._lock:
            return self.identities_repository.count()
