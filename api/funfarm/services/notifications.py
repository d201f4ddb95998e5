"""Service for managing notifications."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

import redis
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from ..cache import get_redis_client

logger = logging.getLogger(__name__)

UNREAD_COUNT_TTL = 7 * 24 * 60 * 60


def unread_count_key(user_id: UUID) -> str:
    return f"user:{user_id}:unread_count"


def notification_channel(user_id: UUID) -> str:
    return f"notifications:user:{user_id}"


class NotificationService:
    """Service for creating and managing notifications."""

    @staticmethod
    def create_notification(
        db: Session,
        user_id: UUID,
        notification_type: str,
        content: str,
        from_user_id: UUID | None = None,
        post_id: UUID | None = None,
        comment_id: UUID | None = None,
    ) -> models.Notification | None:
        """Create a notification and broadcast via WebSocket."""

        # Don't notify users about their own actions
        if from_user_id is not None and from_user_id == user_id:
            return None

        notification = models.Notification(
            user_id=user_id,
            from_user_id=from_user_id,
            type=notification_type,
            content=content,
            post_id=post_id,
            comment_id=comment_id,
            read=False,
        )

        db.add(notification)
        db.commit()
        db.refresh(notification)

        NotificationService._increment_unread_count(user_id)
        NotificationService._broadcast_notification(notification)

        logger.info(f"Created {notification_type} notification {notification.id} for user {user_id}")
        return notification

    @staticmethod
    def _increment_unread_count(user_id: UUID) -> None:
        client = get_redis_client()
        if not client:
            return
        try:
            key = unread_count_key(user_id)
            # Only bump an existing counter; a missing one is rebuilt from the database
            if client.exists(key):
                client.incr(key)
                client.expire(key, UNREAD_COUNT_TTL)
        except redis.RedisError as e:
            logger.error(f"Failed to increment unread count in Redis: {e}")

    @staticmethod
    def _broadcast_notification(notification: models.Notification) -> None:
        """Broadcast notification via Redis Pub/Sub to WebSocket connections."""
        client = get_redis_client()
        if not client:
            return
        try:
            payload = {
                "id": str(notification.id),
                "type": notification.type,
                "content": notification.content,
                "from_user_id": str(notification.from_user_id) if notification.from_user_id else None,
                "post_id": str(notification.post_id) if notification.post_id else None,
                "created_at": notification.created_at.isoformat() if notification.created_at else None,
            }
            client.publish(notification_channel(notification.user_id), json.dumps(payload))
            logger.debug(f"Broadcast notification for user {notification.user_id} via Redis Pub/Sub")
        except redis.RedisError as e:
            logger.error(f"Failed to broadcast notification via Redis: {e}")

    @staticmethod
    def get_unread_count(db: Session, user_id: UUID) -> int:
        """Get unread notification count for a user."""
        client = get_redis_client()
        if client:
            try:
                count = client.get(unread_count_key(user_id))
                if count is not None:
                    return max(int(count), 0)
            except redis.RedisError as e:
                logger.warning(f"Failed to get unread count from Redis: {e}")

        count = db.query(func.count(models.Notification.id)).filter(
            models.Notification.user_id == user_id,
            models.Notification.read.is_(False),
        ).scalar() or 0

        if client:
            try:
                client.set(unread_count_key(user_id), count, ex=UNREAD_COUNT_TTL)
            except redis.RedisError as e:
                logger.warning(f"Failed to cache unread count in Redis: {e}")

        return count

    @staticmethod
    def mark_as_read(db: Session, notification_ids: list[UUID], user_id: UUID) -> int:
        """Mark notifications as read. Returns count of updated notifications."""
        if not notification_ids:
            return 0
        count = db.query(models.Notification).filter(
            models.Notification.id.in_(notification_ids),
            models.Notification.user_id == user_id,
            models.Notification.read.is_(False),
        ).update({models.Notification.read: True}, synchronize_session=False)

        db.commit()

        if count > 0:
            NotificationService._forget_unread_count(user_id)
        return count

    @staticmethod
    def mark_all_as_read(db: Session, user_id: UUID) -> int:
        """Mark all notifications as read for a user. Returns count of updated notifications."""
        count = db.query(models.Notification).filter(
            models.Notification.user_id == user_id,
            models.Notification.read.is_(False),
        ).update({models.Notification.read: True}, synchronize_session=False)

        db.commit()

        client = get_redis_client()
        if client:
            try:
                client.set(unread_count_key(user_id), 0, ex=UNREAD_COUNT_TTL)
            except redis.RedisError as e:
                logger.error(f"Failed to reset unread count in Redis: {e}")
        return count

    @staticmethod
    def delete_notification(db: Session, notification_id: UUID, user_id: UUID) -> bool:
        deleted = db.query(models.Notification).filter(
            models.Notification.id == notification_id,
            models.Notification.user_id == user_id,
        ).delete(synchronize_session=False)
        db.commit()
        if deleted:
            NotificationService._forget_unread_count(user_id)
        return bool(deleted)

    @staticmethod
    def _forget_unread_count(user_id: UUID) -> None:
        client = get_redis_client()
        if not client:
            return
        try:
            client.delete(unread_count_key(user_id))
        except redis.RedisError as e:
            logger.error(f"Failed to clear unread count in Redis: {e}")

    @staticmethod
    def cleanup_old_notifications(db: Session, days: int = 90) -> int:
        """Delete notifications older than specified days. Returns count of deleted notifications."""
        cutoff_date = datetime.now(timezone.utc) - timedelta(days=days)

        count = db.query(models.Notification).filter(
            models.Notification.created_at < cutoff_date
        ).delete(synchronize_session=False)

        db.commit()

        logger.info(f"Cleaned up {count} notifications older than {days} days")
        return count
