"""Honor board and leaderboard statistics."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .. import models
from ..cache import cache_get, cache_set

logger = logging.getLogger(__name__)

LEADERBOARD_CACHE_TTL = 60


def valid_user_ids_select():
    """SELECT of profile ids that are not banned and not deleted."""
    deleted = select(models.DeletedUser.user_id)
    return select(models.Profile.id).where(
        models.Profile.banned.is_(False),
        models.Profile.id.not_in(deleted),
    )


def get_valid_user_ids(db: Session) -> set[UUID]:
    return set(db.execute(valid_user_ids_select()).scalars().all())


def _received(db: Session, interaction_model, actor_column, user_id: UUID, valid_only: bool) -> int:
    query = (
        db.query(func.count(interaction_model.id))
        .join(models.Post, models.Post.id == interaction_model.post_id)
        .filter(models.Post.author_id == user_id, actor_column != user_id)
    )
    if valid_only:
        query = query.filter(actor_column.in_(valid_user_ids_select()))
    return query.scalar() or 0


def count_reactions_received(db: Session, user_id: UUID, valid_only: bool = True) -> int:
    """Likes on the user's posts, excluding the user's own."""
    return _received(db, models.PostLike, models.PostLike.user_id, user_id, valid_only)


def count_comments_received(db: Session, user_id: UUID, valid_only: bool = True) -> int:
    """Comments on the user's posts, excluding the user's own."""
    return _received(db, models.Comment, models.Comment.author_id, user_id, valid_only)


def count_shares_received(db: Session, user_id: UUID, valid_only: bool = True) -> int:
    """Shares of the user's posts, excluding self-shares."""
    return _received(db, models.PostShare, models.PostShare.user_id, user_id, valid_only)


def count_friends(db: Session, user_id: UUID) -> int:
    return (
        db.query(func.count(models.Follower.id))
        .filter(
            models.Follower.status == "accepted",
            or_(models.Follower.follower_id == user_id, models.Follower.following_id == user_id),
        )
        .scalar()
        or 0
    )


def total_reward(profile: models.Profile) -> int:
    return (profile.camly_balance or 0) + (profile.pending_reward or 0) + (profile.approved_reward or 0)


def get_honor_board(db: Session, profile: models.Profile) -> dict[str, Any]:
    posts_count = (
        db.query(func.count(models.Post.id))
        .filter(models.Post.author_id == profile.id, models.Post.post_type.in_(("post", "product")))
        .scalar()
        or 0
    )
    return {
        "user_id": profile.id,
        "posts_count": posts_count,
        "reactions_received": count_reactions_received(db, profile.id),
        "comments_received": count_comments_received(db, profile.id),
        "shares_received": count_shares_received(db, profile.id),
        "friends_count": count_friends(db, profile.id),
        "total_reward": total_reward(profile),
    }


def get_leaderboard(db: Session, limit: int = 20) -> list[dict[str, Any]]:
    """Top non-banned profiles by total CAMLY (balance + pending + approved)."""
    cache_key = f"leaderboard:top:{limit}"
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    total = (
        models.Profile.camly_balance + models.Profile.pending_reward + models.Profile.approved_reward
    ).label("total_reward")
    rows = (
        db.query(models.Profile, total)
        .filter(models.Profile.banned.is_(False))
        .order_by(total.desc(), models.Profile.created_at.asc())
        .limit(limit)
        .all()
    )
    result = [
        {
            "rank": rank,
            "user_id": str(profile.id),
            "display_name": profile.display_name,
            "avatar_url": profile.avatar_url,
            "is_verified": profile.is_verified,
            "total_reward": int(total_value or 0),
        }
        for rank, (profile, total_value) in enumerate(rows, start=1)
    ]
    cache_set(cache_key, result, ttl=LEADERBOARD_CACHE_TTL)
    return result
