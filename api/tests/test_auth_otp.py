"""Registration, login and email OTP verification."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from funfarm import models
from funfarm.services import email_otp
from funfarm.services.email import EmailDeliveryError

PASSWORD = "rau-sach-2026"


def _email() -> str:
    return f"farmer-{uuid.uuid4().hex[:10]}@example.com"


@pytest.fixture()
def registered(client):
    """Register through the API; returns (email, token, user_id)."""
    email = _email()
    response = client.post(
        "/auth/register",
        json={"email": email, "password": PASSWORD, "display_name": "Anh Năm"},
    )
    assert response.status_code == 201
    body = response.json()
    return email, body["access_token"], uuid.UUID(body["user"]["id"])


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _latest_code(db, user_id) -> models.EmailOTP:
    db.expire_all()
    return (
        db.query(models.EmailOTP)
        .filter(models.EmailOTP.user_id == user_id, models.EmailOTP.verified_at.is_(None))
        .order_by(models.EmailOTP.created_at.desc())
        .first()
    )


# ============================================================================
# REGISTER / LOGIN
# ============================================================================


def test_register_grants_welcome_bonus_and_sends_code(client, db, registered):
    email, token, user_id = registered

    me = client.get("/auth/me", headers=_bearer(token)).json()
    assert me["email"] == email
    assert me["welcome_bonus_claimed"] is True
    assert me["pending_reward"] == 50_000
    assert me["email_verified"] is False

    assert _latest_code(db, user_id) is not None


def test_register_duplicate_email(client, registered):
    email, _, _ = registered
    response = client.post("/auth/register", json={"email": email.upper(), "password": PASSWORD})
    assert response.status_code == 409


def test_register_validates_payload(client):
    response = client.post("/auth/register", json={"email": "not-an-email", "password": PASSWORD})
    assert response.status_code == 422
    response = client.post("/auth/register", json={"email": _email(), "password": "short"})
    assert response.status_code == 422


def test_login(client, registered):
    email, _, user_id = registered

    response = client.post("/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["user"]["id"] == str(user_id)

    response = client.post("/auth/login", json={"email": email, "password": "wrong-password"})
    assert response.status_code == 401

    response = client.post("/auth/login", json={"email": _email(), "password": PASSWORD})
    assert response.status_code == 401


def test_banned_user_cannot_log_in(client, db, registered):
    email, token, user_id = registered
    user = db.query(models.Profile).filter(models.Profile.id == user_id).one()
    user.banned = True
    db.commit()

    response = client.post("/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 401

    response = client.get("/auth/me", headers=_bearer(token))
    assert response.status_code == 401


def test_me_requires_token(client):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers=_bearer("garbage")).status_code == 401


# ============================================================================
# OTP
# ============================================================================


def test_resend_cooldown(client, registered):
    _, token, _ = registered

    response = client.post("/auth/otp/send", json={}, headers=_bearer(token))
    assert response.status_code == 429
    detail = response.json()["detail"]
    assert detail["error"] == "rate_limit"
    assert 0 < detail["remaining_seconds"] <= 60


def test_verify_wrong_then_right_code(client, db, registered):
    _, token, user_id = registered
    record = _latest_code(db, user_id)
    wrong = "000000" if record.otp_code != "000000" else "111111"

    response = client.post("/auth/otp/verify", json={"otp": wrong}, headers=_bearer(token))
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["error"] == "wrong_otp"
    assert detail["remaining_attempts"] == 4

    response = client.post("/auth/otp/verify", json={"otp": record.otp_code}, headers=_bearer(token))
    assert response.status_code == 200

    me = client.get("/auth/me", headers=_bearer(token)).json()
    assert me["email_verified"] is True
    assert me["pending_reward"] == 100_000

    # The code is used up
    response = client.post("/auth/otp/verify", json={"otp": record.otp_code}, headers=_bearer(token))
    assert response.json()["detail"]["error"] == "invalid_otp"


def test_verify_expired_code(client, db, registered):
    _, token, user_id = registered
    record = _latest_code(db, user_id)
    record.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    db.commit()

    response = client.post("/auth/otp/verify", json={"otp": record.otp_code}, headers=_bearer(token))
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "expired"


def test_too_many_attempts(client, db, registered):
    _, token, user_id = registered
    record = _latest_code(db, user_id)
    record.attempts = record.max_attempts
    db.commit()

    response = client.post("/auth/otp/verify", json={"otp": record.otp_code}, headers=_bearer(token))
    assert response.json()["detail"]["error"] == "max_attempts"


def test_send_failure_removes_code(client, db, make_user, auth_headers, monkeypatch):
    user = make_user()

    def fail(*args, **kwargs):
        raise EmailDeliveryError("resend down")

    monkeypatch.setattr(email_otp, "send_otp_email", fail)

    response = client.post("/auth/otp/send", json={}, headers=auth_headers(user))
    assert response.status_code == 500
    assert _latest_code(db, user.id) is None


# ============================================================================
# CHANGE EMAIL
# ============================================================================


def test_change_email(client, db, registered, make_user):
    email, token, user_id = registered
    other = make_user()

    response = client.post("/auth/change-email", json={"new_email": email}, headers=_bearer(token))
    assert response.json()["detail"]["error"] == "same_email"

    response = client.post("/auth/change-email", json={"new_email": other.email}, headers=_bearer(token))
    assert response.json()["detail"]["error"] == "email_exists"

    response = client.post("/auth/change-email", json={"new_email": "nope"}, headers=_bearer(token))
    assert response.json()["detail"]["error"] == "invalid_email"

    new_email = _email()
    response = client.post("/auth/change-email", json={"new_email": new_email}, headers=_bearer(token))
    assert response.status_code == 200

    me = client.get("/auth/me", headers=_bearer(token)).json()
    assert me["email"] == new_email
    assert me["email_verified"] is False

    record = _latest_code(db, user_id)
    assert record.email == new_email
    response = client.post(
        "/auth/otp/verify", json={"otp": record.otp_code, "email": new_email}, headers=_bearer(token)
    )
    assert response.status_code == 200
