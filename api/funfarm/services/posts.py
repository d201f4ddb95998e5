"""Feed posts, product listings, likes, comments and shares."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models
from .notifications import NotificationService

logger = logging.getLogger(__name__)


class PostError(ValueError):
    pass


def _name(profile: models.Profile) -> str:
    return profile.display_name or "Ai đó"


def get_post(db: Session, post_id: UUID) -> models.Post:
    post = db.query(models.Post).filter(models.Post.id == post_id).first()
    if post is None:
        raise LookupError("Post not found")
    return post


def create_post(db: Session, author: models.Profile, data: dict[str, Any]) -> models.Post:
    is_product = data.get("post_type") == "product"
    post = models.Post(
        author_id=author.id,
        post_type=data.get("post_type") or "post",
        content=data.get("content"),
        images=data.get("images") or [],
        video_url=data.get("video_url"),
        hashtags=data.get("hashtags") or [],
        location=data.get("location"),
        is_product_post=is_product,
    )
    if is_product:
        post.product_name = data.get("product_name")
        post.price_camly = data.get("price_camly")
        post.price_vnd = data.get("price_vnd")
        post.quantity_kg = data.get("quantity_kg")
        post.delivery_options = data.get("delivery_options") or []

    db.add(post)
    db.commit()
    db.refresh(post)
    logger.info(f"User {author.id} created {post.post_type} {post.id}")
    return post


def update_post(db: Session, post: models.Post, changes: dict[str, Any]) -> models.Post:
    product_fields = {"product_name", "price_camly", "price_vnd", "quantity_kg"}
    for field, value in changes.items():
        if field in product_fields and not post.is_product_post:
            raise PostError(f"{field} can only be set on product posts")
        setattr(post, field, value)
    db.commit()
    db.refresh(post)
    return post


def delete_post(db: Session, post: models.Post) -> None:
    """
    Delete a post together with its likes, comments and share rows.

    Product posts that already have orders cannot be deleted.
    """
    if db.query(models.Order.id).filter(models.Order.post_id == post.id).first():
        raise PostError("Product has orders and cannot be deleted")

    try:
        db.query(models.PostLike).filter(models.PostLike.post_id == post.id).delete(synchronize_session=False)
        db.query(models.Comment).filter(models.Comment.post_id == post.id).delete(synchronize_session=False)
        db.query(models.PostShare).filter(models.PostShare.post_id == post.id).delete(synchronize_session=False)
        db.query(models.PostShare).filter(models.PostShare.share_post_id == post.id).update(
            {models.PostShare.share_post_id: None}, synchronize_session=False
        )
        db.query(models.Post).filter(models.Post.original_post_id == post.id).update(
            {models.Post.original_post_id: None}, synchronize_session=False
        )
        db.query(models.WalletTransaction).filter(models.WalletTransaction.post_id == post.id).update(
            {models.WalletTransaction.post_id: None}, synchronize_session=False
        )
        db.delete(post)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Deleted post {post.id}")


# ============================================================================
# LIKES
# ============================================================================


def like_post(db: Session, post: models.Post, user: models.Profile, reaction_type: str = "like") -> models.Post:
    """Idempotent; a second like only changes the reaction type."""
    existing = (
        db.query(models.PostLike)
        .filter(models.PostLike.post_id == post.id, models.PostLike.user_id == user.id)
        .first()
    )
    if existing is not None:
        if existing.reaction_type != reaction_type:
            existing.reaction_type = reaction_type
            db.commit()
        return post

    db.add(models.PostLike(post_id=post.id, user_id=user.id, reaction_type=reaction_type))
    post.likes_count = (post.likes_count or 0) + 1
    db.commit()
    db.refresh(post)

    NotificationService.create_notification(
        db,
        user_id=post.author_id,
        notification_type="like",
        content=f"{_name(user)} đã thích bài viết của bạn",
        from_user_id=user.id,
        post_id=post.id,
    )
    return post


def unlike_post(db: Session, post: models.Post, user: models.Profile) -> models.Post:
    deleted = (
        db.query(models.PostLike)
        .filter(models.PostLike.post_id == post.id, models.PostLike.user_id == user.id)
        .delete(synchronize_session=False)
    )
    if deleted:
        post.likes_count = max(0, (post.likes_count or 0) - deleted)
        db.commit()
        db.refresh(post)
    return post


def liked_post_ids(db: Session, user_id: UUID, post_ids: list[UUID]) -> set[UUID]:
    if not post_ids:
        return set()
    rows = (
        db.query(models.PostLike.post_id)
        .filter(models.PostLike.user_id == user_id, models.PostLike.post_id.in_(post_ids))
        .all()
    )
    return {row[0] for row in rows}


# ============================================================================
# COMMENTS
# ============================================================================


def add_comment(db: Session, post: models.Post, author: models.Profile, content: str) -> models.Comment:
    content = content.strip()
    if not content:
        raise PostError("Comment cannot be empty")

    comment = models.Comment(post_id=post.id, author_id=author.id, content=content)
    db.add(comment)
    post.comments_count = (post.comments_count or 0) + 1
    db.commit()
    db.refresh(comment)

    NotificationService.create_notification(
        db,
        user_id=post.author_id,
        notification_type="comment",
        content=f"{_name(author)} đã bình luận về bài viết của bạn",
        from_user_id=author.id,
        post_id=post.id,
        comment_id=comment.id,
    )
    return comment


def delete_comment(db: Session, comment: models.Comment) -> None:
    post = db.query(models.Post).filter(models.Post.id == comment.post_id).first()
    db.delete(comment)
    if post is not None:
        post.comments_count = max(0, (post.comments_count or 0) - 1)
    db.commit()


# ============================================================================
# SHARES
# ============================================================================


def share_post(db: Session, post: models.Post, user: models.Profile, share_comment: str | None = None) -> models.Post:
    """
    Create a ``share`` post pointing at the original and a post_shares row.

    Sharing a share re-shares its original.
    """
    original = post
    if post.post_type == "share" and post.original_post_id:
        original = get_post(db, post.original_post_id)

    try:
        share = models.Post(
            author_id=user.id,
            post_type="share",
            original_post_id=original.id,
            share_comment=(share_comment or "").strip() or None,
        )
        db.add(share)
        db.flush()
        db.add(models.PostShare(post_id=original.id, user_id=user.id, share_post_id=share.id))
        original.shares_count = (original.shares_count or 0) + 1
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(share)
    logger.info(f"User {user.id} shared post {original.id} as {share.id}")

    NotificationService.create_notification(
        db,
        user_id=original.author_id,
        notification_type="share",
        content=f"{_name(user)} đã chia sẻ bài viết của bạn",
        from_user_id=user.id,
        post_id=original.id,
    )
    return share
