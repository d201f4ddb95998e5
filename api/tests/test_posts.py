"""Feed, likes, comments, shares and marketplace listings."""

from __future__ import annotations

import uuid

import pytest

from funfarm import models


def _create(client, headers, **payload):
    payload.setdefault("content", "Vườn rau hôm nay xanh tốt")
    response = client.post("/posts", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture()
def author(make_user):
    return make_user(display_name="Chị Hoa")


def test_create_validates_payload(client, author, auth_headers):
    assert client.post("/posts", json={"content": "  "}, headers=auth_headers(author)).status_code == 422
    response = client.post(
        "/posts", json={"post_type": "product", "content": "Bưởi"}, headers=auth_headers(author)
    )
    assert response.status_code == 422
    assert client.post("/posts", json={"content": "Chào"}).status_code == 401


def test_feed_pagination_by_author(client, author, auth_headers):
    ids = [_create(client, auth_headers(author), content=f"Bài số {i}")["id"] for i in range(3)]

    first = client.get("/posts", params={"author_id": str(author.id), "limit": 2}).json()
    assert [p["id"] for p in first["items"]] == ids[::-1][:2]
    assert first["next_cursor"]
    assert first["items"][0]["author"]["display_name"] == "Chị Hoa"

    second = client.get(
        "/posts", params={"author_id": str(author.id), "limit": 2, "cursor": first["next_cursor"]}
    ).json()
    assert [p["id"] for p in second["items"]] == [ids[0]]
    assert second["next_cursor"] is None


def test_banned_authors_are_hidden(client, db, make_user):
    banned = make_user(banned=True)
    db.add(models.Post(author_id=banned.id, content="Quảng cáo"))
    db.commit()
    assert client.get("/posts", params={"author_id": str(banned.id)}).json()["items"] == []


def test_like_is_idempotent(client, author, make_user, auth_headers):
    fan = make_user()
    post = _create(client, auth_headers(author))

    response = client.post(f"/posts/{post['id']}/like", headers=auth_headers(fan))
    assert response.json() == {"post_id": post["id"], "liked": True, "likes_count": 1}
    response = client.post(f"/posts/{post['id']}/like", json={"reaction_type": "love"}, headers=auth_headers(fan))
    assert response.json()["likes_count"] == 1

    assert client.get(f"/posts/{post['id']}", headers=auth_headers(fan)).json()["liked_by_me"] is True
    assert client.get(f"/posts/{post['id']}").json()["liked_by_me"] is False

    response = client.delete(f"/posts/{post['id']}/like", headers=auth_headers(fan))
    assert response.json() == {"post_id": post["id"], "liked": False, "likes_count": 0}
    response = client.delete(f"/posts/{post['id']}/like", headers=auth_headers(fan))
    assert response.json()["likes_count"] == 0

    assert client.post(f"/posts/{uuid.uuid4()}/like", headers=auth_headers(fan)).status_code == 404


def test_comments(client, db, author, make_user, admin_user, auth_headers):
    fan = make_user(display_name="Bé Na")
    stranger = make_user()
    post = _create(client, auth_headers(author))

    comment = client.post(
        f"/posts/{post['id']}/comments", json={"content": "Rau đẹp quá chị ơi"}, headers=auth_headers(fan)
    ).json()
    second = client.post(
        f"/posts/{post['id']}/comments", json={"content": "Còn hàng không ạ?"}, headers=auth_headers(fan)
    ).json()
    assert client.get(f"/posts/{post['id']}").json()["comments_count"] == 2

    listed = client.get(f"/posts/{post['id']}/comments").json()["items"]
    assert [c["id"] for c in listed] == [second["id"], comment["id"]]
    assert listed[0]["author"]["display_name"] == "Bé Na"

    notes = db.query(models.Notification).filter(models.Notification.user_id == author.id).all()
    assert {n.type for n in notes} == {"comment"}

    assert client.delete(f"/comments/{comment['id']}", headers=auth_headers(stranger)).status_code == 403
    # The post author may delete comments on their post
    assert client.delete(f"/comments/{comment['id']}", headers=auth_headers(author)).status_code == 204
    assert client.delete(f"/comments/{second['id']}", headers=auth_headers(admin_user)).status_code == 204
    assert client.delete(f"/comments/{second['id']}", headers=auth_headers(admin_user)).status_code == 404
    assert client.get(f"/posts/{post['id']}").json()["comments_count"] == 0


def test_share_and_reshare(client, db, author, make_user, auth_headers):
    first, second = make_user(), make_user()
    post = _create(client, auth_headers(author))

    share = client.post(
        f"/posts/{post['id']}/share", json={"share_comment": "Ủng hộ chị Hoa nhé"}, headers=auth_headers(first)
    )
    assert share.status_code == 201
    share = share.json()
    assert share["post_type"] == "share"
    assert share["original_post_id"] == post["id"]
    assert share["share_comment"] == "Ủng hộ chị Hoa nhé"

    reshare = client.post(f"/posts/{share['id']}/share", json={}, headers=auth_headers(second)).json()
    assert reshare["original_post_id"] == post["id"]

    assert client.get(f"/posts/{post['id']}").json()["shares_count"] == 2
    rows = db.query(models.PostShare).filter(models.PostShare.post_id == uuid.UUID(post["id"])).count()
    assert rows == 2


def test_update_post(client, author, make_user, auth_headers):
    post = _create(client, auth_headers(author))

    response = client.patch(f"/posts/{post['id']}", json={"content": "Sửa lại"}, headers=auth_headers(make_user()))
    assert response.status_code == 403

    response = client.patch(f"/posts/{post['id']}", json={"price_camly": 5}, headers=auth_headers(author))
    assert response.status_code == 400

    response = client.patch(f"/posts/{post['id']}", json={"content": "Sửa lại"}, headers=auth_headers(author))
    assert response.status_code == 200
    assert response.json()["content"] == "Sửa lại"


def test_delete_post(client, db, author, make_user, auth_headers):
    fan = make_user()
    post = _create(client, auth_headers(author))
    client.post(f"/posts/{post['id']}/like", headers=auth_headers(fan))
    client.post(f"/posts/{post['id']}/comments", json={"content": "Hay"}, headers=auth_headers(fan))
    client.post(f"/posts/{post['id']}/share", json={}, headers=auth_headers(fan))

    assert client.delete(f"/posts/{post['id']}", headers=auth_headers(fan)).status_code == 403
    assert client.delete(f"/posts/{post['id']}", headers=auth_headers(author)).status_code == 204
    assert client.get(f"/posts/{post['id']}").status_code == 404
    assert db.query(models.PostLike).filter(models.PostLike.post_id == uuid.UUID(post["id"])).count() == 0


def test_product_with_orders_cannot_be_deleted(client, db, author, make_user, auth_headers):
    product = _create(
        client,
        auth_headers(author),
        post_type="product",
        product_name="Bưởi da xanh",
        price_camly=30_000,
        quantity_kg=20,
    )
    buyer = make_user()
    db.add(
        models.Order(
            post_id=uuid.UUID(product["id"]),
            buyer_id=buyer.id,
            seller_id=author.id,
            product_name="Bưởi da xanh",
            quantity_kg=1,
            price_per_kg_camly=30_000,
            total_camly=30_000,
        )
    )
    db.commit()

    assert client.delete(f"/posts/{product['id']}", headers=auth_headers(author)).status_code == 409


def test_marketplace_filters(client, author, auth_headers):
    tag = uuid.uuid4().hex[:8]
    cheap = _create(
        client, auth_headers(author), post_type="product", product_name=f"Chanh {tag}", price_camly=5_000, quantity_kg=5
    )
    dear = _create(
        client, auth_headers(author), post_type="product", product_name=f"Sầu riêng {tag}", price_camly=90_000,
        quantity_kg=3,
    )
    _create(client, auth_headers(author), content=f"Không phải sản phẩm {tag}")

    listed = client.get("/marketplace", params={"seller_id": str(author.id)}).json()["items"]
    assert [p["id"] for p in listed] == [dear["id"], cheap["id"]]
    assert all(p["is_product_post"] for p in listed)

    listed = client.get("/marketplace", params={"q": tag, "max_price": 10_000}).json()["items"]
    assert [p["id"] for p in listed] == [cheap["id"]]
    listed = client.get("/marketplace", params={"q": tag, "min_price": 10_000}).json()["items"]
    assert [p["id"] for p in listed] == [dear["id"]]
