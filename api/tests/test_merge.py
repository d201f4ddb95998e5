"""Fun Profile account merge: admin tooling and signed webhooks."""

from __future__ import annotations

import json
import uuid

import httpx
import pytest

from funfarm import models
from funfarm.fun_profile import sign_payload

SECRET = "test-fun-profile-secret"


def _fun_id() -> str:
    return f"fp-{uuid.uuid4().hex[:12]}"


def _post_webhook(client, payload, secret=SECRET, **headers):
    raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    sent = {"x-fun-profile-webhook": "true", "x-fun-signature": sign_payload(raw, secret), **headers}
    return client.post("/webhooks/fun-profile", content=raw, headers=sent)


@pytest.fixture()
def pending_user(db, make_user):
    """A user with an outstanding merge request and its log row."""
    user = make_user(display_name=None, merge_request_id="req-pending")
    db.add(models.MergeRequestLog(user_id=user.id, email=user.email, request_id="req-pending", status="pending"))
    db.commit()
    return user


def _log(db, user) -> models.MergeRequestLog:
    db.expire_all()
    return db.query(models.MergeRequestLog).filter(models.MergeRequestLog.user_id == user.id).one()


# ============================================================================
# WEBHOOK
# ============================================================================


def test_webhook_rejects_unsigned_requests(client, pending_user):
    payload = {"event": "merge_rejected", "email": pending_user.email}

    response = client.post("/webhooks/fun-profile", json=payload)
    assert response.status_code == 403

    response = _post_webhook(client, payload, secret="wrong-secret")
    assert response.status_code == 403

    response = _post_webhook(client, payload, **{"x-fun-profile-webhook": "false"})
    assert response.status_code == 403


def test_webhook_without_configured_secret(client, pending_user, monkeypatch):
    monkeypatch.delenv("FUN_PROFILE_CLIENT_SECRET")
    response = _post_webhook(client, {"event": "merge_rejected", "email": pending_user.email})
    assert response.status_code == 500


def test_webhook_bad_body_and_unknown_email(client):
    assert _post_webhook(client, b"{not json").status_code == 400
    assert _post_webhook(client, b"[1, 2]").status_code == 400

    response = _post_webhook(client, {"event": "merge_completed", "email": "nobody@example.com"})
    assert response.status_code == 404


def test_webhook_rejects_wrongly_typed_fields(client, db, pending_user):
    response = _post_webhook(client, {"event": "merge_completed", "email": ["a@example.com"]})
    assert response.status_code == 400
    assert response.json()["detail"] == "email must be a string"

    response = _post_webhook(
        client,
        {
            "event": "merge_completed",
            "email": pending_user.email,
            "fun_profile_id": _fun_id(),
            "profile_data": "not-an-object",
        },
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "profile_data must be an object"

    db.expire_all()
    assert db.get(models.Profile, pending_user.id).is_merged is False
    assert _log(db, pending_user).status == "pending"


def test_merge_completed(client, db, pending_user):
    fun_profile_id = _fun_id()
    response = _post_webhook(
        client,
        {
            "event": "merge_completed",
            "email": pending_user.email.upper(),
            "request_id": "req-pending",
            "fun_profile_id": fun_profile_id,
            "fun_id": "nong.dan",
            "profile_data": {"display_name": "Nông Dân Vui", "is_verified": True},
        },
    )
    assert response.status_code == 200
    assert response.json() == {"success": True, "event": "merge_completed"}

    db.refresh(pending_user)
    assert pending_user.fun_profile_id == fun_profile_id
    assert pending_user.fun_id == "nong.dan"
    assert pending_user.is_merged is True
    assert pending_user.merged_at is not None
    assert pending_user.merge_request_id is None
    assert pending_user.display_name == "Nông Dân Vui"
    assert pending_user.is_verified is True

    log = _log(db, pending_user)
    assert log.status == "completed"
    assert log.fun_profile_id == fun_profile_id
    assert log.webhook_received_at is not None


def test_merge_completed_with_taken_fun_profile_id_logs_conflict(client, db, make_user, pending_user):
    fun_profile_id = _fun_id()
    make_user(fun_profile_id=fun_profile_id, is_merged=True)

    response = _post_webhook(
        client,
        {"event": "merge_completed", "email": pending_user.email, "fun_profile_id": fun_profile_id},
    )
    assert response.json() == {"success": True, "status": "conflict_logged"}

    db.refresh(pending_user)
    assert pending_user.fun_profile_id is None
    conflict = db.query(models.MergeConflict).filter(models.MergeConflict.user_id == pending_user.id).one()
    assert conflict.conflict_type == "duplicate_fun_profile_id"
    assert _log(db, pending_user).status == "conflict"


def test_merge_rejected(client, db, pending_user):
    response = _post_webhook(
        client,
        {"event": "merge_rejected", "email": pending_user.email, "error_message": "Email chưa xác thực"},
    )
    assert response.status_code == 200

    db.refresh(pending_user)
    assert pending_user.merge_request_id is None
    log = _log(db, pending_user)
    assert log.status == "rejected"
    assert log.error_message == "Email chưa xác thực"


def test_merge_conflict_event(client, db, pending_user):
    _post_webhook(
        client,
        {"event": "merge_conflict", "email": pending_user.email, "conflict_type": "duplicate_email"},
    )
    conflict = db.query(models.MergeConflict).filter(models.MergeConflict.user_id == pending_user.id).one()
    assert conflict.fun_profile_id == ""
    assert conflict.resolved is False
    assert _log(db, pending_user).status == "conflict"


def test_account_provisioned_notifies_user(client, db, pending_user):
    _post_webhook(
        client,
        {"event": "account_provisioned", "email": pending_user.email, "fun_profile_id": _fun_id()},
    )
    assert _log(db, pending_user).status == "provisioned"
    note = db.query(models.Notification).filter(models.Notification.user_id == pending_user.id).one()
    assert note.type == "account_provisioned"


# ============================================================================
# ADMIN
# ============================================================================


def test_merge_admin_requires_admin(client, make_user, auth_headers):
    user = make_user()
    assert client.get("/admin/merge/users", headers=auth_headers(user)).status_code == 403
    assert client.get("/admin/merge/conflicts", headers=auth_headers(user)).status_code == 403


def test_send_merge_request_for_one_user(client, db, make_user, admin_user, auth_headers, fun_profile_transport):
    user = make_user(camly_balance=4_200)
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"request_id": "req-42"})

    fun_profile_transport(handler)

    listed = client.get("/admin/merge/users", params={"limit": 1000}, headers=auth_headers(admin_user)).json()
    row = next(u for u in listed["users"] if u["id"] == str(user.id))
    assert row["merge_status"] == "none"

    response = client.post("/admin/merge/requests", json={"user_id": str(user.id)}, headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert response.json()["count"] == 1
    assert response.json()["request_id"] == "req-42"

    request = seen[0]
    assert request.url.path == "/api/sso-merge-request"
    assert request.headers["X-Platform-Secret"] == SECRET
    body = json.loads(request.content)
    assert body["users"][0]["email"] == user.email
    assert body["users"][0]["platform_data"]["camly_balance"] == 4_200

    db.refresh(user)
    assert user.merge_request_id == "req-42"
    assert _log(db, user).status == "pending"

    listed = client.get(
        "/admin/merge/users", params={"tab": "pending", "limit": 1000}, headers=auth_headers(admin_user)
    ).json()
    assert str(user.id) in [u["id"] for u in listed["users"]]


def test_send_merge_request_errors(client, db, make_user, admin_user, auth_headers, fun_profile_transport):
    merged = make_user(fun_profile_id=_fun_id(), is_merged=True)
    no_email = make_user(email=None)
    user = make_user()
    headers = auth_headers(admin_user)

    assert client.post("/admin/merge/requests", json={}, headers=headers).status_code == 400
    assert client.post("/admin/merge/requests", json={"user_id": str(merged.id)}, headers=headers).status_code == 404
    assert client.post("/admin/merge/requests", json={"user_id": str(no_email.id)}, headers=headers).status_code == 400

    fun_profile_transport(lambda request: httpx.Response(503, text="maintenance"))
    response = client.post("/admin/merge/requests", json={"user_id": str(user.id)}, headers=headers)
    assert response.status_code == 502
    assert response.json()["detail"]["status_code"] == 503
    assert response.json()["detail"]["details"] == "maintenance"

    db.refresh(user)
    assert user.merge_request_id is None


def test_batch_merge_request(client, make_user, admin_user, auth_headers, fun_profile_transport):
    make_user()
    fun_profile_transport(lambda request: httpx.Response(200, json={"request_id": "req-batch"}))

    response = client.post(
        "/admin/merge/requests", json={"batch_all": True, "limit": 1}, headers=auth_headers(admin_user)
    )
    assert response.status_code == 200
    assert response.json()["count"] == 1


def test_resolve_conflict_replace_existing(client, db, make_user, pending_user, admin_user, auth_headers):
    fun_profile_id = _fun_id()
    holder = make_user(fun_profile_id=fun_profile_id, is_merged=True)
    _post_webhook(client, {"event": "merge_completed", "email": pending_user.email, "fun_profile_id": fun_profile_id})

    conflicts = client.get("/admin/merge/conflicts", headers=auth_headers(admin_user)).json()
    conflict = next(c for c in conflicts if c["user_id"] == str(pending_user.id))
    assert conflict["conflicting_user_id"] == str(holder.id)

    response = client.post(
        f"/admin/merge/conflicts/{conflict['id']}/resolve",
        json={"action": "replace_existing", "notes": "Tài khoản cũ là tài khoản phụ"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 200
    assert response.json()["resolved"] is True
    assert response.json()["resolved_by"] == str(admin_user.id)

    db.refresh(holder)
    db.refresh(pending_user)
    assert holder.fun_profile_id is None
    assert holder.is_merged is False
    assert pending_user.fun_profile_id == fun_profile_id
    assert pending_user.is_merged is True

    response = client.post(
        f"/admin/merge/conflicts/{conflict['id']}/resolve",
        json={"action": "dismissed"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 400

    response = client.post(
        f"/admin/merge/conflicts/{uuid.uuid4()}/resolve", json={"action": "dismissed"}, headers=auth_headers(admin_user)
    )
    assert response.status_code == 404

    resolved = client.get(
        "/admin/merge/conflicts", params={"resolved": True}, headers=auth_headers(admin_user)
    ).json()
    assert conflict["id"] in [c["id"] for c in resolved]
