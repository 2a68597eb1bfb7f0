from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.routes._deps import caller_from_request, trace_id_from_request
from app.schemas import GrantAccessRequest, public_record, success_envelope
from app.store import store

router = APIRouter(prefix="/api/v1", tags=["grants"])


@router.post("/grants")
def grant_access(payload: GrantAccessRequest, request: Request):
    grant = store.grant_access(
        caller=caller_from_request(request),
        delegate=payload.delegate,
        record_ids=list(payload.record_ids),
        permissions=[x.value for x in payload.permissions],
        expires_at=payload.expires_at,
    )
    return JSONResponse(status_code=201, content=success_envelope(grant, trace_id_from_request(request)))


@router.get("/grants")
def list_my_grants(request: Request):
    items = store.list_my_grants(caller=caller_from_request(request))
    return success_envelope({"items": items, "total": len(items)}, trace_id_from_request(request))


@router.delete("/grants/{delegate:path}")
def revoke_access(delegate: str, request: Request):
    data = store.revoke_access(caller=caller_from_request(request), delegate=delegate)
    return success_envelope(data, trace_id_from_request(request))


@router.get("/shared-records")
def list_accessible_records(request: Request):
    items = [public_record(x) for x in store.list_accessible_records(caller=caller_from_request(request))]
    return success_envelope({"items": items, "total": len(items)}, trace_id_from_request(request))
