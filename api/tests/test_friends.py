from __future__ import annotations

import uuid

from funfarm import models


def test_request_accept_and_list(client, db, make_user, auth_headers):
    an = make_user(display_name="An")
    binh = make_user(display_name="Bình")

    response = client.post(f"/friends/requests/{binh.id}", headers=auth_headers(an))
    assert response.status_code == 201
    assert response.json()["status"] == "pending"

    incoming = client.get("/friends/requests", headers=auth_headers(binh)).json()
    assert [r["follower_id"] for r in incoming] == [str(an.id)]

    response = client.post(f"/friends/requests/{an.id}/accept", headers=auth_headers(binh))
    assert response.status_code == 200
    assert response.json()["status"] == "accepted"

    friends = client.get("/friends", headers=auth_headers(an)).json()
    assert [f["id"] for f in friends] == [str(binh.id)]
    friends = client.get("/friends", headers=auth_headers(binh)).json()
    assert [f["id"] for f in friends] == [str(an.id)]

    notifications = db.query(models.Notification).filter(models.Notification.user_id == an.id).all()
    assert "friend_accepted" in {n.type for n in notifications}


def test_reverse_request_accepts_existing_one(client, make_user, auth_headers):
    an = make_user()
    binh = make_user()
    client.post(f"/friends/requests/{binh.id}", headers=auth_headers(an))

    response = client.post(f"/friends/requests/{an.id}", headers=auth_headers(binh))
    assert response.status_code == 201
    assert response.json()["status"] == "accepted"


def test_request_errors(client, make_user, auth_headers):
    an = make_user()
    binh = make_user()
    banned = make_user(banned=True)

    assert client.post(f"/friends/requests/{an.id}", headers=auth_headers(an)).status_code == 400
    assert client.post(f"/friends/requests/{uuid.uuid4()}", headers=auth_headers(an)).status_code == 404
    assert client.post(f"/friends/requests/{banned.id}", headers=auth_headers(an)).status_code == 404

    assert client.post(f"/friends/requests/{binh.id}", headers=auth_headers(an)).status_code == 201
    assert client.post(f"/friends/requests/{binh.id}", headers=auth_headers(an)).status_code == 409

    # Only the addressee can accept
    assert client.post(f"/friends/requests/{binh.id}/accept", headers=auth_headers(an)).status_code == 404


def test_reject_and_remove(client, make_user, auth_headers):
    an = make_user()
    binh = make_user()
    chi = make_user()

    client.post(f"/friends/requests/{binh.id}", headers=auth_headers(an))
    assert client.post(f"/friends/requests/{an.id}/reject", headers=auth_headers(binh)).status_code == 204
    assert client.get("/friends/requests", headers=auth_headers(binh)).json() == []

    client.post(f"/friends/requests/{chi.id}", headers=auth_headers(an))
    client.post(f"/friends/requests/{an.id}/accept", headers=auth_headers(chi))
    assert client.delete(f"/friends/{an.id}", headers=auth_headers(chi)).status_code == 204
    assert client.get("/friends", headers=auth_headers(an)).json() == []
    assert client.delete(f"/friends/{an.id}", headers=auth_headers(chi)).status_code == 404
