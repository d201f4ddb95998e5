"""Account bans and deletions.

Banned profiles cannot sign in and drop out of the reward counterparty set.
Deleting an account bans it and records a ``deleted_users`` tombstone; the
profile row stays so its history can still be audited.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models
from ..cache import cache_invalidate
from ..utils.audit import log_admin_action

logger = logging.getLogger(__name__)


class ModerationError(ValueError):
    pass


class AlreadyDeleted(ModerationError):
    pass


def _target(db: Session, actor: models.Profile, user_id: UUID) -> models.Profile:
    if actor.id == user_id:
        raise ModerationError("Admins cannot moderate their own account")
    profile = db.query(models.Profile).filter(models.Profile.id == user_id).first()
    if profile is None:
        raise LookupError("User not found")
    return profile


def _ban(profile: models.Profile, reason: str | None) -> None:
    profile.banned = True
    profile.ban_reason = reason
    profile.banned_at = datetime.now(timezone.utc)


def ban_user(db: Session, actor: models.Profile, user_id: UUID, reason: str | None = None) -> models.Profile:
    profile = _target(db, actor, user_id)
    _ban(profile, reason)
    log_admin_action(
        db,
        actor_id=actor.id,
        action="ban_user",
        target_type="user",
        target_id=user_id,
        note=reason,
        commit=False,
    )
    db.commit()
    db.refresh(profile)
    cache_invalidate("leaderboard:*")
    logger.info(f"User {user_id} banned by admin {actor.id}")
    return profile


def unban_user(db: Session, actor: models.Profile, user_id: UUID) -> models.Profile:
    """Lift a ban. Deleted accounts stay excluded through their tombstone."""
    profile = _target(db, actor, user_id)
    profile.banned = False
    profile.ban_reason = None
    profile.banned_at = None
    log_admin_action(db, actor_id=actor.id, action="unban_user", target_type="user", target_id=user_id, commit=False)
    db.commit()
    db.refresh(profile)
    cache_invalidate("leaderboard:*")
    logger.info(f"User {user_id} unbanned by admin {actor.id}")
    return profile


def delete_user(db: Session, actor: models.Profile, user_id: UUID, reason: str | None = None) -> models.DeletedUser:
    """
    Ban the account permanently and record it in ``deleted_users``.

    Raises:
        LookupError: no such profile
        AlreadyDeleted: a tombstone already exists
        ModerationError: the admin targeted their own account
    """
    profile = _target(db, actor, user_id)
    existing = db.query(models.DeletedUser).filter(models.DeletedUser.user_id == user_id).first()
    if existing is not None:
        raise AlreadyDeleted("User already deleted")

    _ban(profile, reason)
    tombstone = models.DeletedUser(
        user_id=profile.id,
        email=profile.email,
        display_name=profile.display_name,
        deleted_by=actor.id,
        reason=reason,
    )
    db.add(tombstone)
    log_admin_action(
        db,
        actor_id=actor.id,
        action="delete_user",
        target_type="user",
        target_id=user_id,
        note=reason,
        details={
            "pending_reward": profile.pending_reward or 0,
            "approved_reward": profile.approved_reward or 0,
            "camly_balance": profile.camly_balance or 0,
        },
        commit=False,
    )
    db.commit()
    db.refresh(tombstone)
    cache_invalidate("leaderboard:*")
    logger.info(f"User {user_id} deleted by admin {actor.id}")
    return tombstone


def list_deleted_users(db: Session, limit: int = 100) -> list[models.DeletedUser]:
    return db.query(models.DeletedUser).order_by(models.DeletedUser.deleted_at.desc()).limit(limit).all()
