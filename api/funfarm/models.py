from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# CORE ENTITIES
# ============================================================================


class Profile(Base):
    """User account with profile, balances and Fun Profile merge state."""

    __tablename__ = "profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    password_hash = Column(String(255), nullable=True)
    email_verified = Column(Boolean, nullable=False, default=False)

    display_name = Column(String(100), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    cover_url = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)
    location = Column(String(200), nullable=True)
    profile_type = Column(String(20), nullable=False, default="eater")  # farmer, eater, shipper, ...
    wallet_address = Column(String(64), nullable=True, index=True)
    wallet_connected = Column(Boolean, nullable=False, default=False)

    # Balances (CAMLY)
    camly_balance = Column(BigInteger, nullable=False, default=0)
    pending_reward = Column(BigInteger, nullable=False, default=0)
    approved_reward = Column(BigInteger, nullable=False, default=0)

    # One-time bonus claim flags
    welcome_bonus_claimed = Column(Boolean, nullable=False, default=False)
    wallet_bonus_claimed = Column(Boolean, nullable=False, default=False)
    verification_bonus_claimed = Column(Boolean, nullable=False, default=False)

    # Trust & moderation
    reputation_score = Column(Integer, nullable=False, default=0)
    is_verified = Column(Boolean, nullable=False, default=False)
    is_good_heart = Column(Boolean, nullable=False, default=False)
    banned = Column(Boolean, nullable=False, default=False, index=True)
    ban_reason = Column(Text, nullable=True)
    banned_at = Column(DateTime(timezone=True), nullable=True)

    # Fun Profile merge
    fun_profile_id = Column(String(100), unique=True, nullable=True, index=True)
    fun_id = Column(String(100), nullable=True)
    is_merged = Column(Boolean, nullable=False, default=False, index=True)
    merged_at = Column(DateTime(timezone=True), nullable=True)
    merge_request_id = Column(String(100), nullable=True, index=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    roles = relationship("UserRole", back_populates="user", cascade="all, delete-orphan")
    posts = relationship("Post", back_populates="author", foreign_keys="Post.author_id")

    @property
    def role_names(self) -> list[str]:
        return [r.role for r in self.roles]


class UserRole(Base):
    """Role grant (admin, moderator, user, shipper)."""

    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    role = Column(String(20), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    user = relationship("Profile", back_populates="roles")

    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)


class DeletedUser(Base):
    """Tombstone for accounts removed by admins; excluded from reward counterparties."""

    __tablename__ = "deleted_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid(as_uuid=True), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=True)
    display_name = Column(String(100), nullable=True)
    deleted_by = Column(Uuid(as_uuid=True), nullable=True)
    reason = Column(Text, nullable=True)

    deleted_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())


# ============================================================================
# FEED & MARKETPLACE
# ============================================================================


class Post(Base):
    """Feed post. Also acts as a product listing, a share or a token gift."""

    __tablename__ = "posts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    author_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    post_type = Column(String(20), nullable=False, default="post", index=True)  # post, product, share, gift

    content = Column(Text, nullable=True)
    images = Column(JSON, nullable=True)
    video_url = Column(String(1000), nullable=True)
    hashtags = Column(JSON, nullable=True)
    location = Column(String(200), nullable=True)

    # Product listing fields
    is_product_post = Column(Boolean, nullable=False, default=False, index=True)
    product_name = Column(String(200), nullable=True)
    price_camly = Column(BigInteger, nullable=True)
    price_vnd = Column(BigInteger, nullable=True)
    quantity_kg = Column(Float, nullable=True)
    delivery_options = Column(JSON, nullable=True)

    # Shares
    original_post_id = Column(Uuid(as_uuid=True), ForeignKey("posts.id"), nullable=True, index=True)
    share_comment = Column(Text, nullable=True)

    # Gifts
    gift_receiver_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=True, index=True)

    # Counters
    likes_count = Column(Integer, nullable=False, default=0)
    comments_count = Column(Integer, nullable=False, default=0)
    shares_count = Column(Integer, nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    author = relationship("Profile", back_populates="posts", foreign_keys=[author_id])
    original_post = relationship("Post", remote_side=[id], foreign_keys=[original_post_id])

    __table_args__ = (Index("ix_posts_author_created", author_id, created_at),)


class PostLike(Base):
    """Like (reaction) on a post; one per user per post."""

    __tablename__ = "post_likes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    post_id = Column(Uuid(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    reaction_type = Column(String(20), nullable=False, default="like")

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )

    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),)


class Comment(Base):
    """Comment on a post."""

    __tablename__ = "comments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    post_id = Column(Uuid(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    author = relationship("Profile", foreign_keys=[author_id])

    __table_args__ = (Index("ix_comments_post_created", post_id, created_at),)


class PostShare(Base):
    """Share of a post; share_post_id points at the share's own feed post."""

    __tablename__ = "post_shares"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    post_id = Column(Uuid(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    share_post_id = Column(Uuid(as_uuid=True), ForeignKey("posts.id"), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )


class Follower(Base):
    """Directed friend edge; status pending until the addressee accepts."""

    __tablename__ = "followers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    follower_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    following_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)  # pending, accepted

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )

    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_followers_follower_following"),
    )


class Order(Base):
    """Marketplace order for a product post."""

    __tablename__ = "orders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    post_id = Column(Uuid(as_uuid=True), ForeignKey("posts.id"), nullable=False, index=True)
    buyer_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    seller_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    shipper_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=True, index=True)

    product_name = Column(String(200), nullable=False)
    quantity_kg = Column(Float, nullable=False)
    price_per_kg_camly = Column(BigInteger, nullable=False)
    price_per_kg_vnd = Column(BigInteger, nullable=True)
    total_camly = Column(BigInteger, nullable=False)
    total_vnd = Column(BigInteger, nullable=True)

    delivery_option = Column(String(50), nullable=False, default="self_pickup")
    delivery_address = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default="pending", index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, default=utcnow, onupdate=func.now())

    post = relationship("Post", foreign_keys=[post_id])


class WalletTransaction(Base):
    """Ledger row for CAMLY (or other currency) movements between users."""

    __tablename__ = "wallet_transactions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    sender_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    receiver_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    currency = Column(String(10), nullable=False, default="CAMLY")
    message = Column(Text, nullable=True)
    post_id = Column(Uuid(as_uuid=True), ForeignKey("posts.id"), nullable=True)
    status = Column(String(20), nullable=False, default="completed")
    tx_hash = Column(String(100), nullable=True, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )


class Notification(Base):
    """User-targeted notification."""

    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    from_user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=True)
    type = Column(String(50), nullable=False, index=True)
    content = Column(Text, nullable=False)
    post_id = Column(Uuid(as_uuid=True), nullable=True)
    comment_id = Column(Uuid(as_uuid=True), nullable=True)
    read = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )

    __table_args__ = (Index("ix_notifications_user_created", user_id, created_at),)


# ============================================================================
# FUN PROFILE MERGE
# ============================================================================


class MergeRequestLog(Base):
    """One merge request sent to Fun Profile for one user."""

    __tablename__ = "merge_request_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    request_id = Column(String(100), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="pending")  # pending, completed, rejected, conflict, provisioned
    profile_data = Column(JSON, nullable=True)
    fun_profile_id = Column(String(100), nullable=True)
    error_message = Column(Text, nullable=True)
    webhook_received_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )


class MergeConflict(Base):
    """Conflict found while merging an account into Fun Profile."""

    __tablename__ = "merge_conflicts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=True, index=True)
    user_email = Column(String(255), nullable=True)
    conflicting_user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=True)
    conflicting_user_email = Column(String(255), nullable=True)
    fun_profile_id = Column(String(100), nullable=False, default="")
    fun_id = Column(String(100), nullable=True)
    conflict_type = Column(String(50), nullable=False)
    conflict_details = Column(JSON, nullable=True)

    resolved = Column(Boolean, nullable=False, default=False, index=True)
    resolved_by = Column(Uuid(as_uuid=True), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolution_action = Column(String(30), nullable=True)
    resolution_notes = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )

    user = relationship("Profile", foreign_keys=[user_id])
    conflicting_user = relationship("Profile", foreign_keys=[conflicting_user_id])


# ============================================================================
# AUTH & ADMIN
# ============================================================================


class EmailOTP(Base):
    """Six-digit email verification code."""

    __tablename__ = "email_otps"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    otp_code = Column(String(6), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=5)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )


class AuditLog(Base):
    """Audit log for admin actions."""

    __tablename__ = "audit_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    actor_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)

    action = Column(String(100), nullable=False, index=True)
    target_type = Column(String(20), nullable=True)
    target_id = Column(String(50), nullable=True, index=True)
    note = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )

    __table_args__ = (Index("ix_audit_logs_actor_created", actor_id, created_at),)
