"""Admin bans and account deletion."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from funfarm import models
from funfarm.services.reward_recalculation import preview_user_reward, recalculate_all_rewards
from funfarm.services.rewards import FRIENDSHIP_REWARD, LIKE_REWARD_EARLY, QUALITY_POST_REWARD

T0 = datetime(2026, 2, 3, 3, 0, tzinfo=timezone.utc)
CUTOFF = datetime(2026, 2, 28, tzinfo=timezone.utc)
LONG_TEXT = "Rau muống thủy canh sạch, không thuốc trừ sâu, cắt sáng giao chiều cho các bếp ăn trong xã. " * 2


def test_moderation_requires_admin(client, make_user, auth_headers):
    user = make_user()
    target = make_user()
    response = client.post(f"/admin/users/{target.id}/ban", headers=auth_headers(user))
    assert response.status_code == 403
    response = client.post(f"/admin/users/{target.id}/delete", headers=auth_headers(user))
    assert response.status_code == 403


def test_ban_blocks_sign_in_and_is_audited(client, db, make_user, admin_user, auth_headers):
    target = make_user(display_name="Tài khoản ảo")
    target_id = target.id
    assert client.get("/auth/me", headers=auth_headers(target)).status_code == 200

    response = client.post(
        f"/admin/users/{target_id}/ban",
        json={"reason": "Ví dùng chung"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "banned"
    assert body["user_id"] == str(target_id)
    assert body["banned_at"] is not None

    assert client.get("/auth/me", headers=auth_headers(target)).status_code == 401

    db.expire_all()
    profile = db.get(models.Profile, target_id)
    assert profile.banned is True
    assert profile.ban_reason == "Ví dùng chung"
    audit = db.query(models.AuditLog).filter(models.AuditLog.target_id == str(target_id)).all()
    assert [a.action for a in audit] == ["ban_user"]

    response = client.delete(f"/admin/users/{target_id}/ban", headers=auth_headers(admin_user))
    assert response.status_code == 204
    db.expire_all()
    profile = db.get(models.Profile, target_id)
    assert profile.banned is False
    assert profile.ban_reason is None


def test_ban_errors(client, admin_user, auth_headers):
    response = client.post(f"/admin/users/{admin_user.id}/ban", headers=auth_headers(admin_user))
    assert response.status_code == 400
    response = client.post(f"/admin/users/{uuid.uuid4()}/ban", headers=auth_headers(admin_user))
    assert response.status_code == 404
    response = client.delete(f"/admin/users/{uuid.uuid4()}/ban", headers=auth_headers(admin_user))
    assert response.status_code == 404


def test_delete_records_tombstone_once(client, db, make_user, admin_user, auth_headers):
    target = make_user(display_name="Cày CLC")
    target_id = target.id
    email = target.email

    response = client.post(
        f"/admin/users/{target_id}/delete",
        json={"reason": "Spam hệ thống"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["user_id"] == str(target_id)
    assert body["email"] == email
    assert body["deleted_by"] == str(admin_user.id)
    assert body["reason"] == "Spam hệ thống"

    db.expire_all()
    assert db.get(models.Profile, target_id).banned is True

    listed = client.get("/admin/users/deleted", headers=auth_headers(admin_user)).json()
    assert str(target_id) in [d["user_id"] for d in listed]

    response = client.post(f"/admin/users/{target_id}/delete", headers=auth_headers(admin_user))
    assert response.status_code == 409
    response = client.post(f"/admin/users/{uuid.uuid4()}/delete", headers=auth_headers(admin_user))
    assert response.status_code == 404


def test_banned_and_deleted_counterparties_drop_out_of_rewards(client, db, make_user, admin_user, auth_headers):
    author = make_user(display_name="Chị Năm")
    fan = make_user(display_name="Fan")
    friend = make_user(display_name="Bạn")
    author_id, fan_id, friend_id = author.id, fan.id, friend.id

    post = models.Post(
        author_id=author_id,
        content=LONG_TEXT,
        images=["https://cdn.example.com/raumuong.jpg"],
        created_at=T0,
    )
    db.add(post)
    db.flush()
    db.add(models.PostLike(post_id=post.id, user_id=fan_id, created_at=T0 + timedelta(minutes=3)))
    db.add(
        models.Follower(follower_id=author_id, following_id=friend_id, status="accepted", created_at=T0)
    )
    db.commit()

    before = preview_user_reward(db, author_id, cutoff=CUTOFF)
    assert before.calculated_total == QUALITY_POST_REWARD + LIKE_REWARD_EARLY + FRIENDSHIP_REWARD

    assert client.post(f"/admin/users/{fan_id}/ban", headers=auth_headers(admin_user)).status_code == 201
    assert client.post(f"/admin/users/{friend_id}/delete", headers=auth_headers(admin_user)).status_code == 201

    db.expire_all()
    recalculate_all_rewards(db, cutoff=CUTOFF, user_ids=[author_id])
    db.expire_all()
    assert db.get(models.Profile, author_id).pending_reward == QUALITY_POST_REWARD
