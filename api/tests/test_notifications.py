from __future__ import annotations

import uuid

import pytest
from fastapi import WebSocketDisconnect

from funfarm.auth import create_access_token
from funfarm.services.notifications import NotificationService


@pytest.fixture()
def inbox(db, make_user):
    """A user with three notifications from someone else."""
    user = make_user()
    sender = make_user(display_name="Cô Tư")
    notes = [
        NotificationService.create_notification(
            db,
            user_id=user.id,
            notification_type="like",
            content=f"Cô Tư đã thích bài viết số {i}",
            from_user_id=sender.id,
        )
        for i in range(3)
    ]
    return user, [n.id for n in notes]


def test_self_notifications_are_skipped(db, make_user):
    user = make_user()
    note = NotificationService.create_notification(
        db, user_id=user.id, notification_type="like", content="x", from_user_id=user.id
    )
    assert note is None


def test_list_and_unread_count(client, inbox, auth_headers):
    user, notes = inbox
    headers = auth_headers(user)

    page = client.get("/notifications", params={"limit": 2}, headers=headers).json()
    assert [n["id"] for n in page["items"]] == [str(notes[2]), str(notes[1])]
    assert page["next_cursor"]

    assert client.get("/notifications/unread-count", headers=headers).json() == {"unread_count": 3}

    response = client.post("/notifications/mark-read", json={"notification_ids": [str(notes[0])]}, headers=headers)
    assert response.status_code == 204
    assert client.get("/notifications/unread-count", headers=headers).json() == {"unread_count": 2}

    unread = client.get("/notifications", params={"unread_only": True}, headers=headers).json()["items"]
    assert str(notes[0]) not in [n["id"] for n in unread]

    assert client.post("/notifications/mark-all-read", headers=headers).status_code == 204
    assert client.get("/notifications/unread-count", headers=headers).json() == {"unread_count": 0}


def test_delete_only_own_notifications(client, inbox, make_user, auth_headers):
    user, notes = inbox
    other = make_user()

    assert client.delete(f"/notifications/{notes[0]}", headers=auth_headers(other)).status_code == 404
    assert client.delete(f"/notifications/{notes[0]}", headers=auth_headers(user)).status_code == 204
    assert client.delete(f"/notifications/{notes[0]}", headers=auth_headers(user)).status_code == 404
    assert client.delete(f"/notifications/{uuid.uuid4()}", headers=auth_headers(user)).status_code == 404


def test_notifications_require_auth(client):
    assert client.get("/notifications").status_code == 401


def test_websocket_ping(client, make_user):
    user = make_user()
    with client.websocket_connect(f"/notifications/ws?token={create_access_token(user.id)}") as ws:
        ws.send_text("ping")
        assert ws.receive_text() == "pong"


def test_websocket_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/notifications/ws?token=nope") as ws:
            ws.receive_text()
