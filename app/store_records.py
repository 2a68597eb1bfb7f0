from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from app.authorization import Permission
from app.errors import not_found, unauthorized

logger = logging.getLogger(__name__)


class RecordType(str, Enum):
    DIAGNOSIS = "Diagnosis"
    PRESCRIPTION = "Prescription"
    LAB_RESULT = "LabResult"
    IMAGING = "Imaging"
    PROCEDURE = "Procedure"
    VACCINATION = "Vaccination"
    ALLERGY = "Allergy"
    VITAL_SIGNS = "VitalSigns"
    OTHER = "Other"


def _metadata_document(metadata: dict[str, Any]) -> dict[str, Any]:
    return {
        "title": str(metadata.get("title") or ""),
        "provider": str(metadata.get("provider") or ""),
        "facility": metadata.get("facility"),
        "date_of_service": str(metadata.get("date_of_service") or ""),
        "tags": [str(x) for x in metadata.get("tags") or []],
    }


class StoreRecordsMixin:
    def _authorize_record(self, *, caller: str, record: dict[str, Any], permission: Permission) -> None:
        # Owners bypass grant evaluation entirely.
        identity = self._find_identity(caller)
        if identity is not None and identity["identifier"] == record["owner_identifier"]:
            return
        allowed = self.authorization.has_access(
            delegate=self._canonical_principal(caller),
            owner_identifier=record["owner_identifier"],
            record_id=int(record["id"]),
            permission=permission,
        )
        if not allowed:
            raise unauthorized(f"{permission.value} access to record {record['id']} denied")

    def _require_record(self, record_id: int) -> dict[str, Any]:
        record = self.records_repository.get(record_id=record_id)
        if record is None:
            raise not_found(f"record {record_id} not found")
        return record

    def add_record(self, *, caller: str, payload: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            record_type = RecordType(payload["record_type"]).value
            body = bytes(payload["payload"])
            payload_hash = str(payload["payload_hash"])
            metadata = _metadata_document(payload.get("metadata") or {})
            identity = self.resolve_or_create_identity(caller=caller)
            now = self._utcnow_iso()
            record = {
                "id": self.records_repository.allocate_id(),
                "owner_identifier": identity["identifier"],
                "record_type": record_type,
                "payload": body,
                "payload_hash": payload_hash,
                "metadata": metadata,
                "created_at": now,
                "updated_at": now,
            }
            saved = self.records_repository.insert(record=record)
            self._after_write()
            return saved

    def get_record(self, *, caller: str, record_id: int) -> dict[str, Any]:
        with self._lock:
            record = self._require_record(record_id)
            self._authorize_record(caller=caller, record=record, permission=Permission.READ)
            return record

    def list_my_records(self, *, caller: str) -> list[dict[str, Any]]:
        with self._lock:
            identity = self.lookup_identity(caller=caller)
            return self.records_repository.list_by_owner(owner_identifier=identity["identifier"])

    def update_record(self, *, caller: str, record_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            self._require_authenticated(caller)
            record = self._require_record(record_id)
            self._authorize_record(caller=caller, record=record, permission=Permission.WRITE)
            body = bytes(payload["payload"])
            payload_hash = str(payload["payload_hash"])
            metadata = _metadata_document(payload.get("metadata") or {})
            record["payload"] = body
            record["payload_hash"] = payload_hash
            record["metadata"] = metadata
            record["updated_at"] = self._utcnow_iso()
            saved = self.records_repository.replace(record=record)
            self._after_write()
            return saved

    def delete_record(self, *, caller: str, record_id: int) -> dict[str, Any]:
        with self._lock:
            self._require_authenticated(caller)
            record = self._require_record(record_id)
            self._authorize_record(caller=caller, record=record, permission=Permission.DELETE)
            self.records_repository.delete(record_id=record_id)
            logger.info("record_deleted record_id=%s owner=%s", record_id, record["owner_identifier"])
            self._after_write()
            return {"record_id": int(record_id), "deleted": True}

    def count_records(self) -> int:
        with self._lock:
            return self.records_repository.count()
