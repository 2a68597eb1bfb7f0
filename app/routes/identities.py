from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.routes._deps import caller_from_request, trace_id_from_request
from app.schemas import ProfileUpsertRequest, success_envelope
from app.store import store

router = APIRouter(prefix="/api/v1", tags=["identities"])


@router.post("/identities")
def create_identity(request: Request):
    data = store.create_identity(caller=caller_from_request(request))
    return JSONResponse(status_code=201, content=success_envelope(data, trace_id_from_request(request)))


@router.get("/identities/me")
def get_my_identity(request: Request):
    data = store.get_my_identity(caller=caller_from_request(request))
    return success_envelope(data, trace_id_from_request(request))


@router.get("/identities/{identifier:path}")
def resolve_identity(identifier: str, request: Request):
    data = store.resolve_identity(identifier=identifier)
    return success_envelope(data, trace_id_from_request(request))


@router.put("/profile")
def upsert_profile(payload: ProfileUpsertRequest, request: Request):
    data = store.upsert_profile(caller=caller_from_request(request), payload=payload.model_dump())
    return success_envelope(data, trace_id_from_request(request))


@router.get("/profile")
def get_my_profile(request: Request):
    data = store.get_my_profile(caller=caller_from_request(request))
    return success_envelope(data, trace_id_from_request(request))


@router.get("/stats")
def get_stats(request: Request):
    return success_envelope(
        {
            "identities": store.count_identities(),
            "records": store.count_records(),
        },
        trace_id_from_request(request),
    )
