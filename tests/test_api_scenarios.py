from __future__ import annotations

import base64


def _h(caller: str) -> dict[str, str]:
    return {"x-test-caller": caller}


def _record_body(*, record_type: str = "Diagnosis", payload: bytes = b"ciphertext") -> dict:
    return {
        "record_type": record_type,
        "payload": base64.b64encode(payload).decode("ascii"),
        "payload_hash": "sha256:abc",
        "metadata": {
            "title": "Annual checkup",
            "provider": "Dr. Osei",
            "facility": "North Clinic",
            "date_of_service": "2026-02-14",
            "tags": ["routine"],
        },
    }


def test_grant_then_revoke_scenario(client):
    created = client.post("/api/v1/identities", headers=_h("alice"))
    assert created.status_code == 201
    assert created.json()["data"]["identifier"] == "did:serum:alice"

    record = client.post("/api/v1/records", headers=_h("alice"), json=_record_body())
    assert record.status_code == 201
    record_id = record.json()["data"]["id"]
    assert record_id == 1

    grant = client.post(
        "/api/v1/grants",
        headers=_h("alice"),
        json={"delegate": "bob", "record_ids": [], "permissions": ["Read"]},
    )
    assert grant.status_code == 201
    assert grant.json()["data"]["expires_at"] is None

    shared = client.get("/api/v1/shared-records", headers=_h("bob"))
    assert shared.status_code == 200
    assert [x["id"] for x in shared.json()["data"]["items"]] == [record_id]

    revoked = client.delete("/api/v1/grants/bob", headers=_h("alice"))
    assert revoked.status_code == 200
    assert revoked.json()["data"] == {"delegate": "bob", "revoked": 1}

    shared_after = client.get("/api/v1/shared-records", headers=_h("bob"))
    assert shared_after.json()["data"] == {"items": [], "total": 0}


def test_grant_limited_to_listed_records(client):
    first = client.post("/api/v1/records", headers=_h("alice"), json=_record_body()).json()["data"]
    second = client.post("/api/v1/records", headers=_h("alice"), json=_record_body()).json()["data"]
    assert (first["id"], second["id"]) == (1, 2)

    resp = client.post(
        "/api/v1/grants",
        headers=_h("alice"),
        json={"delegate": "bob", "record_ids": [first["id"]], "permissions": ["Read"]},
    )
    assert resp.status_code == 201

    denied = client.get(f"/api/v1/records/{second['id']}", headers=_h("bob"))
    assert denied.status_code == 403
    assert denied.json()["error"]["code"] == "UNAUTHORIZED"
    assert denied.json()["error"]["class"] == "security_sensitive"

    allowed = client.get(f"/api/v1/records/{first['id']}", headers=_h("bob"))
    assert allowed.status_code == 200
    data = allowed.json()["data"]
    assert base64.b64decode(data["payload"]) == b"ciphertext"
    assert data["owner_identifier"] == "did:serum:alice"


def test_record_lifecycle_over_http(client):
    created = client.post("/api/v1/records", headers=_h("alice"), json=_record_body()).json()["data"]
    record_id = created["id"]

    update_body = _record_body(payload=b"revised")
    update_body.pop("record_type")
    updated = client.put(f"/api/v1/records/{record_id}", headers=_h("alice"), json=update_body)
    assert updated.status_code == 200
    assert updated.json()["data"]["record_type"] == "Diagnosis"
    assert base64.b64decode(updated.json()["data"]["payload"]) == b"revised"

    listed = client.get("/api/v1/records", headers=_h("alice")).json()["data"]
    assert listed["total"] == 1

    deleted = client.delete(f"/api/v1/records/{record_id}", headers=_h("alice"))
    assert deleted.status_code == 200
    assert deleted.json()["data"] == {"record_id": record_id, "deleted": True}

    missing = client.get(f"/api/v1/records/{record_id}", headers=_h("alice"))
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NOT_FOUND"


def test_identity_and_profile_endpoints(client):
    assert client.get("/api/v1/identities/me", headers=_h("alice")).status_code == 404
    client.post("/api/v1/identities", headers=_h("alice"))

    duplicate = client.post("/api/v1/identities", headers=_h("alice"))
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "ALREADY_EXISTS"

    resolved = client.get("/api/v1/identities/did:serum:alice")
    assert resolved.status_code == 200
    assert resolved.json()["data"]["scheme"] == "serum"

    profile = client.put(
        "/api/v1/profile",
        headers=_h("alice"),
        json={"name": "Alice Ward", "date_of_birth": "1988-09-12", "allergies": ["penicillin"]},
    )
    assert profile.status_code == 200
    fetched = client.get("/api/v1/profile", headers=_h("alice")).json()["data"]
    assert fetched["name"] == "Alice Ward"
    assert fetched["blood_type"] is None
    assert fetched["identity"]["identifier"] == "did:serum:alice"


def test_anonymous_caller_cannot_create_identity(client):
    resp = client.post("/api/v1/identities")
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "NOT_AUTHENTICATED"


def test_invalid_bearer_token_is_rejected(client):
    resp = client.get("/api/v1/records", headers={"Authorization": "Bearer not.a.token"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "NOT_AUTHENTICATED"
    assert resp.headers.get("x-trace-id")


def test_invalid_payload_returns_validation_error(client):
    bad_type = _record_body(record_type="Horoscope")
    resp = client.post("/api/v1/records", headers=_h("alice"), json=bad_type)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "REQ_VALIDATION_FAILED"

    bad_payload = _record_body()
    bad_payload["payload"] = "@@not-base64@@"
    resp = client.post("/api/v1/records", headers=_h("alice"), json=bad_payload)
    assert resp.status_code == 400

    resp = client.post(
        "/api/v1/grants",
        headers=_h("alice"),
        json={"delegate": "bob", "permissions": ["Admin"]},
    )
    assert resp.status_code == 400
    assert client.get("/api/v1/stats").json()["data"] == {"identities": 0, "records": 0}


def test_grant_for_foreign_record_is_forbidden(client):
    bob_record = client.post("/api/v1/records", headers=_h("bob"), json=_record_body()).json()["data"]
    client.post("/api/v1/identities", headers=_h("alice"))
    resp = client.post(
        "/api/v1/grants",
        headers=_h("alice"),
        json={"delegate": "carol", "record_ids": [bob_record["id"]], "permissions": ["Read"]},
    )
    assert resp.status_code == 403
    assert client.get("/api/v1/grants", headers=_h("alice")).json()["data"]["total"] == 0


def test_expired_grant_over_http(client):
    record = client.post("/api/v1/records", headers=_h("alice"), json=_record_body()).json()["data"]
    resp = client.post(
        "/api/v1/grants",
        headers=_h("alice"),
        json={
            "delegate": "bob",
            "record_ids": [record["id"]],
            "permissions": ["Read"],
            "expires_at": "2020-01-01T00:00:00Z",
        },
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["expires_at"] == "2020-01-01T00:00:00+00:00"
    assert client.get(f"/api/v1/records/{record['id']}", headers=_h("bob")).status_code == 403


def test_stats_count_identities_and_records(client):
    client.post("/api/v1/records", headers=_h("alice"), json=_record_body())
    client.post("/api/v1/records", headers=_h("bob"), json=_record_body())
    client.post("/api/v1/records", headers=_h("bob"), json=_record_body())
    resp = client.get("/api/v1/stats")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"identities": 2, "records": 3}


def test_slash_in_caller_token_reaches_identity_and_grant_routes(client):
    created = client.post("/api/v1/identities", headers=_h("clinic/alice"))
    assert created.status_code == 201
    identifier = created.json()["data"]["identifier"]
    assert identifier == "did:serum:clinic/alice"

    resolved = client.get(f"/api/v1/identities/{identifier}")
    assert resolved.status_code == 200
    assert resolved.json()["data"]["identifier"] == identifier

    client.post("/api/v1/records", headers=_h("clinic/alice"), json=_record_body())
    client.post(
        "/api/v1/grants",
        headers=_h("clinic/alice"),
        json={"delegate": "ward/bob", "record_ids": [], "permissions": ["Read"]},
    )
    assert client.get("/api/v1/shared-records", headers=_h("ward/bob")).json()["data"]["total"] == 1

    revoked = client.delete("/api/v1/grants/ward/bob", headers=_h("clinic/alice"))
    assert revoked.status_code == 200
    assert revoked.json()["data"] == {"delegate": "ward/bob", "revoked": 1}
    assert client.get("/api/v1/shared-records", headers=_h("ward/bob")).json()["data"]["total"] == 0
