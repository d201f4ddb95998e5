"""Marketplace order lifecycle.

Buying a product debits the buyer immediately. Cancelling refunds the buyer
and returns the quantity to the listing; delivery pays the seller.
"""

from __future__ import annotations

import logging
import math
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models
from .notifications import NotificationService
from .wallet import credit, debit

logger = logging.getLogger(__name__)

ORDER_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"preparing", "cancelled"}),
    "preparing": frozenset({"ready", "cancelled"}),
    "ready": frozenset({"delivering", "cancelled"}),
    "delivering": frozenset({"delivered"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
}

STATUS_GROUPS: dict[str, tuple[str, ...]] = {
    "pending": ("pending", "confirmed", "preparing", "ready"),
    "delivering": ("delivering",),
    "completed": ("delivered",),
    "cancelled": ("cancelled",),
}

# Statuses the seller sets by hand; delivering/delivered belong to the shipper
SELLER_STATUSES = frozenset({"confirmed", "preparing", "ready", "cancelled"})

DELIVERY_OPTIONS = frozenset({"self_pickup", "farm_visit", "local_delivery", "nationwide"})

STATUS_LABELS = {
    "confirmed": "đã được xác nhận",
    "preparing": "đang được chuẩn bị",
    "ready": "đã sẵn sàng giao",
    "delivering": "đang được giao",
    "delivered": "đã giao thành công",
    "cancelled": "đã bị hủy",
}


class OrderError(ValueError):
    pass


class InvalidOrderTransition(OrderError):
    def __init__(self, current: str, new: str):
        super().__init__(f"Cannot move order from {current} to {new}")
        self.current = current
        self.new = new


class OrderPermissionError(OrderError):
    pass


def can_transition(current: str, new: str) -> bool:
    return new in ORDER_TRANSITIONS.get(current, frozenset())


def _apply_transition(order: models.Order, new_status: str) -> None:
    if not can_transition(order.status, new_status):
        raise InvalidOrderTransition(order.status, new_status)
    order.status = new_status


def _notify_status(db: Session, order: models.Order, user_id: UUID, actor_id: UUID) -> None:
    label = STATUS_LABELS.get(order.status, order.status)
    NotificationService.create_notification(
        db,
        user_id=user_id,
        notification_type=f"order_{order.status}",
        content=f"Đơn hàng {order.product_name} {label}",
        from_user_id=actor_id,
        post_id=order.post_id,
    )


def place_order(
    db: Session,
    buyer: models.Profile,
    post_id: UUID,
    quantity_kg: float,
    delivery_option: str = "self_pickup",
    delivery_address: str | None = None,
) -> models.Order:
    """Create a pending order for a product post and debit the buyer."""
    if quantity_kg <= 0:
        raise OrderError("Quantity must be positive")
    if delivery_option not in DELIVERY_OPTIONS:
        raise OrderError(f"Unknown delivery option: {delivery_option}")
    if delivery_option == "nationwide" and not (delivery_address or "").strip():
        raise OrderError("Delivery address is required for nationwide delivery")

    post = db.query(models.Post).filter(models.Post.id == post_id).with_for_update().first()
    if post is None or not post.is_product_post:
        raise LookupError("Product not found")
    if post.author_id == buyer.id:
        raise OrderError("Cannot buy your own product")
    if post.price_camly is None:
        raise OrderError("Product has no CAMLY price")
    if post.quantity_kg is not None and quantity_kg > post.quantity_kg:
        raise OrderError(f"Only {post.quantity_kg} kg available")

    total_camly = math.ceil(post.price_camly * quantity_kg)
    total_vnd = math.ceil(post.price_vnd * quantity_kg) if post.price_vnd is not None else None

    try:
        debit(buyer, total_camly)
        if post.quantity_kg is not None:
            post.quantity_kg = post.quantity_kg - quantity_kg
        order = models.Order(
            post_id=post.id,
            buyer_id=buyer.id,
            seller_id=post.author_id,
            product_name=post.product_name or "",
            quantity_kg=quantity_kg,
            price_per_kg_camly=post.price_camly,
            price_per_kg_vnd=post.price_vnd,
            total_camly=total_camly,
            total_vnd=total_vnd,
            delivery_option=delivery_option,
            delivery_address=delivery_address,
            status="pending",
        )
        db.add(order)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info(f"Order {order.id}: {buyer.id} bought {quantity_kg} kg of post {post.id} for {total_camly} CAMLY")

    NotificationService.create_notification(
        db,
        user_id=order.seller_id,
        notification_type="new_order",
        content=f"{buyer.display_name or 'Ai đó'} đã đặt {quantity_kg:g} kg {order.product_name}",
        from_user_id=buyer.id,
        post_id=order.post_id,
    )
    return order


def _get_order_for_update(db: Session, order_id: UUID) -> models.Order:
    order = db.query(models.Order).filter(models.Order.id == order_id).with_for_update().first()
    if order is None:
        raise LookupError("Order not found")
    return order


def _refund(db: Session, order: models.Order) -> None:
    buyer = db.query(models.Profile).filter(models.Profile.id == order.buyer_id).with_for_update().first()
    if buyer is not None:
        credit(buyer, order.total_camly)
    post = db.query(models.Post).filter(models.Post.id == order.post_id).first()
    if post is not None and post.quantity_kg is not None:
        post.quantity_kg = post.quantity_kg + order.quantity_kg


def update_status(db: Session, order_id: UUID, actor: models.Profile, new_status: str) -> models.Order:
    """
    Seller moves an order forward; buyer or seller may cancel.
    """
    order = _get_order_for_update(db, order_id)

    is_seller = order.seller_id == actor.id
    is_buyer = order.buyer_id == actor.id
    if new_status == "cancelled":
        if not (is_seller or is_buyer):
            raise OrderPermissionError("Only the buyer or seller can cancel this order")
    elif new_status in SELLER_STATUSES:
        if not is_seller:
            raise OrderPermissionError("Only the seller can update this order")
    else:
        raise InvalidOrderTransition(order.status, new_status)

    try:
        _apply_transition(order, new_status)
        if new_status == "cancelled":
            _refund(db, order)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info(f"Order {order.id} -> {new_status} by {actor.id}")

    counterpart = order.buyer_id if is_seller else order.seller_id
    _notify_status(db, order, counterpart, actor.id)
    return order


def accept_order(db: Session, order_id: UUID, shipper: models.Profile) -> models.Order:
    """A shipper takes a ready, unassigned order and starts delivery."""
    order = _get_order_for_update(db, order_id)
    if order.shipper_id is not None:
        raise OrderError("Order already has a shipper")
    if order.status != "ready":
        raise InvalidOrderTransition(order.status, "delivering")

    order.shipper_id = shipper.id
    _apply_transition(order, "delivering")
    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.id} accepted by shipper {shipper.id}")

    _notify_status(db, order, order.buyer_id, shipper.id)
    _notify_status(db, order, order.seller_id, shipper.id)
    return order


def complete_delivery(db: Session, order_id: UUID, shipper: models.Profile) -> models.Order:
    """The assigned shipper marks the order delivered; the seller is paid."""
    order = _get_order_for_update(db, order_id)
    if order.shipper_id != shipper.id:
        raise OrderPermissionError("Only the assigned shipper can complete this delivery")

    try:
        _apply_transition(order, "delivered")
        seller = db.query(models.Profile).filter(models.Profile.id == order.seller_id).with_for_update().first()
        if seller is not None:
            credit(seller, order.total_camly)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info(f"Order {order.id} delivered by shipper {shipper.id}")

    _notify_status(db, order, order.buyer_id, shipper.id)
    _notify_status(db, order, order.seller_id, shipper.id)
    return order


def list_orders_query(db: Session, user: models.Profile, role: str, status_group: str | None = None):
    """Orders where the user acts as ``role``; the shipper role also sees unassigned ready orders."""
    query = db.query(models.Order)
    if role == "buyer":
        query = query.filter(models.Order.buyer_id == user.id)
    elif role == "seller":
        query = query.filter(models.Order.seller_id == user.id)
    elif role == "shipper":
        if status_group == "available":
            return query.filter(models.Order.status == "ready", models.Order.shipper_id.is_(None))
        query = query.filter(models.Order.shipper_id == user.id)
    else:
        raise OrderError(f"Unknown role: {role}")

    if status_group:
        statuses = STATUS_GROUPS.get(status_group)
        if statuses is None:
            raise OrderError(f"Unknown status group: {status_group}")
        query = query.filter(models.Order.status.in_(statuses))
    return query
