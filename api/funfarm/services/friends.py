"""Friend requests and friendships.

A friendship is a single ``followers`` row. The requester is the follower;
the row is pending until the addressee accepts it.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from .. import models
from .notifications import NotificationService

logger = logging.getLogger(__name__)


class FriendshipError(ValueError):
    pass


class FriendshipExists(FriendshipError):
    pass


def _edge_between(db: Session, a: UUID, b: UUID) -> models.Follower | None:
    return (
        db.query(models.Follower)
        .filter(
            or_(
                and_(models.Follower.follower_id == a, models.Follower.following_id == b),
                and_(models.Follower.follower_id == b, models.Follower.following_id == a),
            )
        )
        .first()
    )


def send_request(db: Session, requester: models.Profile, target_id: UUID) -> models.Follower:
    """
    Ask ``target_id`` to be friends.

    If the target already asked us, their request is accepted instead.
    """
    if requester.id == target_id:
        raise FriendshipError("Cannot send a friend request to yourself")

    target = db.query(models.Profile).filter(models.Profile.id == target_id).first()
    if target is None or target.banned:
        raise LookupError("User not found")

    edge = _edge_between(db, requester.id, target_id)
    if edge is not None:
        if edge.status == "pending" and edge.follower_id == target_id:
            return accept_request(db, requester, target_id)
        raise FriendshipExists("Friend request or friendship already exists")

    edge = models.Follower(follower_id=requester.id, following_id=target_id, status="pending")
    db.add(edge)
    db.commit()
    db.refresh(edge)
    logger.info(f"Friend request {requester.id} -> {target_id}")

    NotificationService.create_notification(
        db,
        user_id=target_id,
        notification_type="friend_request",
        content=f"{requester.display_name or 'Ai đó'} đã gửi lời mời kết bạn",
        from_user_id=requester.id,
    )
    return edge


def _pending_request(db: Session, follower_id: UUID, addressee_id: UUID) -> models.Follower:
    edge = (
        db.query(models.Follower)
        .filter(
            models.Follower.follower_id == follower_id,
            models.Follower.following_id == addressee_id,
            models.Follower.status == "pending",
        )
        .first()
    )
    if edge is None:
        raise LookupError("Friend request not found")
    return edge


def accept_request(db: Session, addressee: models.Profile, follower_id: UUID) -> models.Follower:
    """Only the addressee can accept."""
    edge = _pending_request(db, follower_id, addressee.id)
    edge.status = "accepted"
    db.commit()
    db.refresh(edge)
    logger.info(f"Friend request {follower_id} -> {addressee.id} accepted")

    NotificationService.create_notification(
        db,
        user_id=follower_id,
        notification_type="friend_accepted",
        content=f"{addressee.display_name or 'Ai đó'} đã chấp nhận lời mời kết bạn",
        from_user_id=addressee.id,
    )
    return edge


def reject_request(db: Session, addressee: models.Profile, follower_id: UUID) -> None:
    edge = _pending_request(db, follower_id, addressee.id)
    db.delete(edge)
    db.commit()
    logger.info(f"Friend request {follower_id} -> {addressee.id} rejected")


def incoming_requests(db: Session, user_id: UUID) -> list[models.Follower]:
    return (
        db.query(models.Follower)
        .filter(models.Follower.following_id == user_id, models.Follower.status == "pending")
        .order_by(models.Follower.created_at.desc())
        .all()
    )


def list_friends(db: Session, user_id: UUID) -> list[models.Profile]:
    edges = (
        db.query(models.Follower)
        .filter(
            models.Follower.status == "accepted",
            or_(models.Follower.follower_id == user_id, models.Follower.following_id == user_id),
        )
        .all()
    )
    friend_ids = [e.following_id if e.follower_id == user_id else e.follower_id for e in edges]
    if not friend_ids:
        return []
    return (
        db.query(models.Profile)
        .filter(models.Profile.id.in_(friend_ids), models.Profile.banned.is_(False))
        .order_by(models.Profile.display_name.asc())
        .all()
    )


def remove_friend(db: Session, user_id: UUID, friend_id: UUID) -> None:
    edge = _edge_between(db, user_id, friend_id)
    if edge is None or edge.status != "accepted":
        raise LookupError("Friendship not found")
    db.delete(edge)
    db.commit()
    logger.info(f"Friendship {user_id} <-> {friend_id} removed")
