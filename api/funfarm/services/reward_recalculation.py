"""Database side of the reward recalculation batch.

Loads every activity row once, hands it to the pure engine in ``rewards`` and
writes the results back in a single transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, aliased

from .. import models
from ..cache import cache_invalidate
from ..settings import REWARD_RESET_DEFAULT_AMOUNT, reward_cutoff_override
from ..utils.dates import as_utc
from .honor_board import get_valid_user_ids
from .rewards import (
    REWARDABLE_POST_TYPES,
    VERIFICATION_BONUS,
    WALLET_CONNECT_BONUS,
    WELCOME_BONUS,
    CommentRow,
    FriendshipRow,
    LikeRow,
    PostRow,
    ProfileRow,
    RewardDataset,
    ShareRow,
    UserRewardResult,
    calculate_user_reward,
)

logger = logging.getLogger(__name__)


@dataclass
class RecalculationReport:
    cutoff: datetime
    processed: int = 0
    updated: int = 0
    total_before: int = 0
    total_after: int = 0
    results: list[UserRewardResult] = field(default_factory=list)


def _profile_row(profile: models.Profile) -> ProfileRow:
    return ProfileRow(
        id=profile.id,
        display_name=profile.display_name,
        pending_reward=profile.pending_reward or 0,
        approved_reward=profile.approved_reward or 0,
        welcome_bonus_claimed=bool(profile.welcome_bonus_claimed),
        wallet_bonus_claimed=bool(profile.wallet_bonus_claimed),
        verification_bonus_claimed=bool(profile.verification_bonus_claimed),
    )


def load_reward_dataset(db: Session, cutoff: datetime, user_id: UUID | None = None) -> RewardDataset:
    """
    Fetch all rows the engine needs, created at or before ``cutoff``.

    One query per table. With ``user_id`` the rows are narrowed to that
    user's posts and friendships.
    """
    Post = models.Post
    rewardable_posts = select(Post.id).where(Post.post_type.in_(REWARDABLE_POST_TYPES))
    if user_id is not None:
        rewardable_posts = rewardable_posts.where(Post.author_id == user_id)

    post_query = select(
        Post.id, Post.author_id, Post.created_at, Post.content, Post.images, Post.video_url, Post.post_type
    ).where(Post.post_type.in_(REWARDABLE_POST_TYPES), Post.created_at <= cutoff)
    if user_id is not None:
        post_query = post_query.where(Post.author_id == user_id)
    posts = [
        PostRow(
            id=r.id,
            author_id=r.author_id,
            created_at=r.created_at,
            content=r.content,
            images=r.images,
            video_url=r.video_url,
            post_type=r.post_type,
        )
        for r in db.execute(post_query)
    ]

    Like = models.PostLike
    likes = [
        LikeRow(id=r.id, post_id=r.post_id, user_id=r.user_id, created_at=r.created_at)
        for r in db.execute(
            select(Like.id, Like.post_id, Like.user_id, Like.created_at).where(
                Like.post_id.in_(rewardable_posts), Like.created_at <= cutoff
            )
        )
    ]

    Comment = models.Comment
    comments = [
        CommentRow(id=r.id, post_id=r.post_id, author_id=r.author_id, created_at=r.created_at, content=r.content)
        for r in db.execute(
            select(Comment.id, Comment.post_id, Comment.author_id, Comment.created_at, Comment.content).where(
                Comment.post_id.in_(rewardable_posts), Comment.created_at <= cutoff
            )
        )
    ]

    # share_comment lives on the share's own post; join it in instead of a lookup per share
    Share = models.PostShare
    SharePost = aliased(Post)
    shares = [
        ShareRow(
            id=r.id, post_id=r.post_id, user_id=r.user_id, created_at=r.created_at, share_comment=r.share_comment
        )
        for r in db.execute(
            select(Share.id, Share.post_id, Share.user_id, Share.created_at, SharePost.share_comment)
            .outerjoin(SharePost, SharePost.id == Share.share_post_id)
            .where(Share.post_id.in_(rewardable_posts), Share.created_at <= cutoff)
        )
    ]

    Follower = models.Follower
    friendship_query = select(Follower.id, Follower.follower_id, Follower.following_id, Follower.created_at).where(
        Follower.status == "accepted", Follower.created_at <= cutoff
    )
    if user_id is not None:
        friendship_query = friendship_query.where(
            or_(Follower.follower_id == user_id, Follower.following_id == user_id)
        )
    friendships = [
        FriendshipRow(id=r.id, follower_id=r.follower_id, following_id=r.following_id, created_at=r.created_at)
        for r in db.execute(friendship_query)
    ]

    return RewardDataset.build(
        posts=posts,
        likes=likes,
        comments=comments,
        shares=shares,
        friendships=friendships,
        valid_user_ids=get_valid_user_ids(db),
        cutoff=cutoff,
    )


def resolve_cutoff(cutoff: datetime | None = None) -> datetime:
    """Explicit cutoff, else the FUNFARM_REWARD_CUTOFF override, else now."""
    if cutoff is None:
        cutoff = reward_cutoff_override()
    return as_utc(cutoff) if cutoff is not None else datetime.now(timezone.utc)


def recalculate_all_rewards(
    db: Session,
    cutoff: datetime | None = None,
    user_ids: Iterable[UUID] | None = None,
    dry_run: bool = False,
) -> RecalculationReport:
    """
    Recompute pending_reward for every non-banned profile (or only ``user_ids``).

    Writes pending_reward = calculated total and approved_reward = 0, then
    commits once. Running twice with the same cutoff gives the same values.
    With ``dry_run`` the report is built and nothing is written.
    """
    cutoff = resolve_cutoff(cutoff)
    report = RecalculationReport(cutoff=cutoff)
    logger.info(f"Reward recalculation started, cutoff={cutoff.isoformat()}")

    dataset = load_reward_dataset(db, cutoff)

    query = db.query(models.Profile).filter(models.Profile.banned.is_(False))
    if user_ids is not None:
        ids = list(user_ids)
        if not ids:
            return report
        query = query.filter(models.Profile.id.in_(ids))

    try:
        for profile in query.order_by(models.Profile.created_at.asc()).all():
            result = calculate_user_reward(_profile_row(profile), dataset)
            report.processed += 1
            report.total_before += result.current_total
            report.total_after += result.calculated_total
            if result.difference != 0 or profile.approved_reward:
                report.updated += 1
            report.results.append(result)
            if dry_run:
                continue
            profile.pending_reward = result.calculated_total
            profile.approved_reward = 0
        if dry_run:
            db.rollback()
            return report
        db.commit()
    except Exception:
        db.rollback()
        logger.error("Reward recalculation failed, rolled back", exc_info=True)
        raise

    cache_invalidate("leaderboard:*")
    logger.info(
        f"Reward recalculation finished: {report.processed} profiles, {report.updated} changed, "
        f"total {report.total_before} -> {report.total_after}"
    )
    return report


def preview_user_reward(db: Session, user_id: UUID, cutoff: datetime | None = None) -> UserRewardResult | None:
    """Same computation as the batch for one profile, without writing anything."""
    profile = db.query(models.Profile).filter(models.Profile.id == user_id).first()
    if profile is None:
        return None
    dataset = load_reward_dataset(db, resolve_cutoff(cutoff), user_id=user_id)
    return calculate_user_reward(_profile_row(profile), dataset)


def reset_user_reward(
    db: Session, user_id: UUID, amount: int = REWARD_RESET_DEFAULT_AMOUNT
) -> models.Profile | None:
    """Overwrite one profile's pending_reward. Returns None if the profile does not exist."""
    profile = db.query(models.Profile).filter(models.Profile.id == user_id).first()
    if profile is None:
        return None
    previous = profile.pending_reward
    profile.pending_reward = amount
    db.commit()
    db.refresh(profile)
    cache_invalidate("leaderboard:*")
    logger.info(f"Reset pending_reward for user {user_id}: {previous} -> {amount}")
    return profile


BONUSES = {
    "welcome": ("welcome_bonus_claimed", WELCOME_BONUS),
    "wallet": ("wallet_bonus_claimed", WALLET_CONNECT_BONUS),
    "verification": ("verification_bonus_claimed", VERIFICATION_BONUS),
}


def claim_bonus(profile: models.Profile, kind: str) -> int:
    """
    Mark a one-time bonus as claimed and add it to pending_reward.

    Returns the amount granted (0 if already claimed). The caller commits.
    """
    flag, amount = BONUSES[kind]
    if getattr(profile, flag):
        return 0
    setattr(profile, flag, True)
    profile.pending_reward = (profile.pending_reward or 0) + amount
    logger.info(f"Granted {kind} bonus of {amount} to user {profile.id}")
    return amount
