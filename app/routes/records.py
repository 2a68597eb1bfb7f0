from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.routes._deps import caller_from_request, trace_id_from_request
from app.schemas import RecordCreateRequest, RecordWriteRequest, public_record, success_envelope
from app.store import store

router = APIRouter(prefix="/api/v1", tags=["records"])


@router.post("/records")
def add_record(payload: RecordCreateRequest, request: Request):
    record = store.add_record(caller=caller_from_request(request), payload=payload.to_store_payload())
    return JSONResponse(
        status_code=201,
        content=success_envelope(public_record(record), trace_id_from_request(request)),
    )


@router.get("/records")
def list_my_records(request: Request):
    items = [public_record(x) for x in store.list_my_records(caller=caller_from_request(request))]
    return success_envelope({"items": items, "total": len(items)}, trace_id_from_request(request))


@router.get("/records/{record_id}")
def get_record(record_id: int, request: Request):
    record = store.get_record(caller=caller_from_request(request), record_id=record_id)
    return success_envelope(public_record(record), trace_id_from_request(request))


@router.put("/records/{record_id}")
def update_record(record_id: int, payload: RecordWriteRequest, request: Request):
    record = store.update_record(
        caller=caller_from_request(request),
        record_id=record_id,
        payload=payload.to_store_payload(),
    )
    return success_envelope(public_record(record), trace_id_from_request(request))


@router.delete("/records/{record_id}")
def delete_record(record_id: int, request: Request):
    data = store.delete_record(caller=caller_from_request(request), record_id=record_id)
    return success_envelope(data, trace_id_from_request(request))
