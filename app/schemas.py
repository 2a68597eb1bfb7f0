from __future__ import annotations

import base64
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from app.authorization import Permission
from app.store_records import RecordType


class ProfileUpsertRequest(BaseModel):
    name: str
    date_of_birth: str
    blood_type: str | None = None
    allergies: list[str] = Field(default_factory=list)


class RecordMetadataModel(BaseModel):
    title: str
    provider: str
    facility: str | None = None
    date_of_service: str
    tags: list[str] = Field(default_factory=list)


class RecordWriteRequest(BaseModel):
    """Payload bytes travel as standard base64 text."""

    payload: str
    payload_hash: str
    metadata: RecordMetadataModel

    @field_validator("payload")
    @classmethod
    def _payload_is_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value.encode("ascii"), validate=True)
        except (ValueError, UnicodeEncodeError) as exc:
            raise ValueError("payload must be base64 encoded") from exc
        return value

    def to_store_payload(self) -> dict[str, Any]:
        return {
            "payload": base64.b64decode(self.payload.encode("ascii")),
            "payload_hash": self.payload_hash,
            "metadata": self.metadata.model_dump(),
        }


class RecordCreateRequest(RecordWriteRequest):
    record_type: RecordType

    def to_store_payload(self) -> dict[str, Any]:
        data = super().to_store_payload()
        data["record_type"] = self.record_type.value
        return data


class GrantAccessRequest(BaseModel):
    delegate: str
    record_ids: list[int] = Field(default_factory=list)
    permissions: list[Permission] = Field(default_factory=list)
    expires_at: datetime | None = None


def public_record(record: dict[str, Any]) -> dict[str, Any]:
    item = dict(record)
    item["payload"] = base64.b64encode(bytes(item.get("payload") or b"")).decode("ascii")
    return item


def success_envelope(data: Any, trace_id: str, message: str = "ok") -> dict[str, Any]:
    return {
        "success": True,
        "data": data,
        "message": message,
        "meta": {
            "trace_id": trace_id,
        },
    }


def error_envelope(
    *,
    code: str,
    message: str,
    error_class: str,
    retryable: bool,
    trace_id: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "retryable": retryable,
        "class": error_class,
    }
    if details is not None:
        error["details"] = details
    return {
        "success": False,
        "error": error,
        "meta": {
            "trace_id": trace_id,
        },
    }
