"""Marketplace orders: escrow, status transitions and the shipper flow."""

from __future__ import annotations

import uuid

import pytest

from funfarm import models


@pytest.fixture()
def product(db, make_user):
    seller = make_user(display_name="Vườn Cô Sáu", profile_type="farmer")
    post = models.Post(
        author_id=seller.id,
        post_type="product",
        is_product_post=True,
        content="Xoài cát Hòa Lộc",
        product_name="Xoài cát Hòa Lộc",
        price_camly=20_000,
        price_vnd=60_000,
        quantity_kg=10,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


@pytest.fixture()
def buyer(make_user):
    return make_user(display_name="Khách", camly_balance=100_000)


def _place(client, auth_headers, buyer, product, quantity=2.5, **extra):
    return client.post(
        "/orders",
        json={"post_id": str(product.id), "quantity_kg": quantity, **extra},
        headers=auth_headers(buyer),
    )


def test_place_order_debits_buyer(client, db, product, buyer, auth_headers):
    response = _place(client, auth_headers, buyer, product)
    assert response.status_code == 201
    order = response.json()
    assert order["status"] == "pending"
    assert order["total_camly"] == 50_000
    assert order["total_vnd"] == 150_000
    assert order["seller_id"] == str(product.author_id)

    db.refresh(buyer)
    db.refresh(product)
    assert buyer.camly_balance == 50_000
    assert product.quantity_kg == pytest.approx(7.5)

    seller_notes = db.query(models.Notification).filter(models.Notification.user_id == product.author_id).all()
    assert [n.type for n in seller_notes] == ["new_order"]


def test_place_order_errors(client, db, product, buyer, make_user, auth_headers):
    seller = db.query(models.Profile).filter(models.Profile.id == product.author_id).one()
    poor = make_user(camly_balance=1_000)

    assert _place(client, auth_headers, seller, product).status_code == 400
    assert _place(client, auth_headers, buyer, product, quantity=11).status_code == 400
    assert _place(client, auth_headers, buyer, product, delivery_option="teleport").status_code == 400
    assert _place(client, auth_headers, buyer, product, delivery_option="nationwide").status_code == 400

    response = _place(client, auth_headers, poor, product)
    assert response.status_code == 400
    db.refresh(poor)
    assert poor.camly_balance == 1_000

    plain = models.Post(author_id=seller.id, content="Hôm nay trời đẹp")
    db.add(plain)
    db.commit()
    response = client.post(
        "/orders", json={"post_id": str(plain.id), "quantity_kg": 1}, headers=auth_headers(buyer)
    )
    assert response.status_code == 404


def test_cancel_refunds_buyer_and_restores_stock(client, db, product, buyer, auth_headers):
    order_id = _place(client, auth_headers, buyer, product).json()["id"]

    response = client.post(f"/orders/{order_id}/status", json={"status": "cancelled"}, headers=auth_headers(buyer))
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    db.refresh(buyer)
    db.refresh(product)
    assert buyer.camly_balance == 100_000
    assert product.quantity_kg == pytest.approx(10)

    response = client.post(f"/orders/{order_id}/status", json={"status": "cancelled"}, headers=auth_headers(buyer))
    assert response.status_code == 409


def test_full_delivery_flow(client, db, product, buyer, make_user, auth_headers):
    seller = db.query(models.Profile).filter(models.Profile.id == product.author_id).one()
    shipper = make_user(display_name="Shipper", roles=("user", "shipper"))
    other_shipper = make_user(roles=("user", "shipper"))
    stranger = make_user()

    order_id = _place(client, auth_headers, buyer, product).json()["id"]

    assert client.get(f"/orders/{order_id}", headers=auth_headers(buyer)).status_code == 200
    assert client.get(f"/orders/{order_id}", headers=auth_headers(stranger)).status_code == 404

    # Buyers cannot move an order forward
    response = client.post(f"/orders/{order_id}/status", json={"status": "confirmed"}, headers=auth_headers(buyer))
    assert response.status_code == 403

    # Steps cannot be skipped
    response = client.post(f"/orders/{order_id}/status", json={"status": "ready"}, headers=auth_headers(seller))
    assert response.status_code == 409

    for new_status in ("confirmed", "preparing", "ready"):
        response = client.post(
            f"/orders/{order_id}/status", json={"status": new_status}, headers=auth_headers(seller)
        )
        assert response.status_code == 200
        assert response.json()["status"] == new_status

    available = client.get(
        "/orders", params={"role": "shipper", "status_group": "available", "limit": 200},
        headers=auth_headers(shipper),
    ).json()
    assert order_id in [o["id"] for o in available["items"]]

    assert client.post(f"/orders/{order_id}/accept", headers=auth_headers(stranger)).status_code == 403

    response = client.post(f"/orders/{order_id}/accept", headers=auth_headers(shipper))
    assert response.status_code == 200
    assert response.json()["status"] == "delivering"
    assert response.json()["shipper_id"] == str(shipper.id)

    assert client.post(f"/orders/{order_id}/accept", headers=auth_headers(other_shipper)).status_code == 400
    response = client.post(f"/orders/{order_id}/status", json={"status": "cancelled"}, headers=auth_headers(seller))
    assert response.status_code == 409
    assert client.post(f"/orders/{order_id}/complete", headers=auth_headers(other_shipper)).status_code == 403

    response = client.post(f"/orders/{order_id}/complete", headers=auth_headers(shipper))
    assert response.status_code == 200
    assert response.json()["status"] == "delivered"

    db.refresh(seller)
    assert seller.camly_balance == 50_000

    completed = client.get(
        "/orders", params={"role": "seller", "status_group": "completed"}, headers=auth_headers(seller)
    ).json()
    assert [o["id"] for o in completed["items"]] == [order_id]
    pending = client.get("/orders", params={"role": "buyer", "status_group": "pending"}, headers=auth_headers(buyer))
    assert pending.json()["items"] == []


def test_unknown_order(client, buyer, auth_headers):
    response = client.post(
        f"/orders/{uuid.uuid4()}/status", json={"status": "confirmed"}, headers=auth_headers(buyer)
    )
    assert response.status_code == 404
