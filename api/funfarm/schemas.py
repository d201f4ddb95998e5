from __future__ import annotations

from datetime import date, datetime
from typing import Any, Generic, Literal, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ============================================================================
# BASE SCHEMAS
# ============================================================================

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """Generic paginated response."""

    items: list[T]
    next_cursor: str | None = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# ============================================================================
# HEALTH & CONFIG
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


class RewardPolicy(BaseModel):
    """Public reward constants and limits."""

    welcome_bonus: int
    wallet_connect_bonus: int
    verification_bonus: int
    quality_post_reward: int
    like_reward_early: int
    like_reward: int
    early_likers_per_post: int
    quality_comment_reward: int
    share_reward: int
    share_comment_bonus: int
    friendship_reward: int
    max_posts_per_day: int
    max_interactions_per_day: int
    max_friendships_per_day: int
    daily_reward_cap: int
    quality_post_min_chars: int
    quality_comment_min_chars: int


class Config(BaseModel):
    """Public system configuration."""

    rewards: RewardPolicy
    otp_expiry_minutes: int
    otp_resend_cooldown_seconds: int
    platform_id: str


# ============================================================================
# AUTH
# ============================================================================


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    password: str = Field(..., min_length=8, max_length=128)
    display_name: str | None = Field(None, max_length=100)


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=128)


class OTPSendRequest(BaseModel):
    email: str | None = Field(None, max_length=255)


class OTPVerifyRequest(BaseModel):
    email: str | None = Field(None, max_length=255)
    otp: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")


class ChangeEmailRequest(BaseModel):
    new_email: str = Field(..., max_length=255)


# ============================================================================
# PROFILES
# ============================================================================


class ProfilePublic(BaseModel):
    """Fields anyone may see (get_public_profiles)."""

    id: UUID
    display_name: str | None = None
    avatar_url: str | None = None
    cover_url: str | None = None
    bio: str | None = None
    location: str | None = None
    profile_type: str
    is_verified: bool = False
    is_good_heart: bool = False
    reputation_score: int = 0
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ProfilePrivate(ProfilePublic):
    """The caller's own profile."""

    email: str | None = None
    email_verified: bool = False
    wallet_address: str | None = None
    wallet_connected: bool = False
    camly_balance: int = 0
    pending_reward: int = 0
    approved_reward: int = 0
    welcome_bonus_claimed: bool = False
    wallet_bonus_claimed: bool = False
    verification_bonus_claimed: bool = False
    fun_profile_id: str | None = None
    fun_id: str | None = None
    is_merged: bool = False
    role_names: list[str] = []


class ProfileUpdate(BaseModel):
    display_name: str | None = Field(None, max_length=100)
    avatar_url: str | None = Field(None, max_length=500)
    cover_url: str | None = Field(None, max_length=500)
    bio: str | None = Field(None, max_length=2000)
    location: str | None = Field(None, max_length=200)
    profile_type: Literal["farmer", "fisher", "eater", "restaurant", "distributor", "shipper"] | None = None
    wallet_address: str | None = Field(None, max_length=64)


class PublicProfilesRequest(BaseModel):
    user_ids: list[UUID] = Field(..., max_length=500)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: ProfilePrivate


class HonorBoard(BaseModel):
    user_id: UUID
    posts_count: int
    reactions_received: int
    comments_received: int
    shares_received: int
    friends_count: int
    total_reward: int


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: UUID
    display_name: str | None = None
    avatar_url: str | None = None
    is_verified: bool = False
    total_reward: int


# ============================================================================
# POSTS
# ============================================================================


class PostCreate(BaseModel):
    post_type: Literal["post", "product"] = "post"
    content: str | None = Field(None, max_length=10000)
    images: list[str] = Field(default_factory=list, max_length=20)
    video_url: str | None = Field(None, max_length=1000)
    hashtags: list[str] = Field(default_factory=list, max_length=30)
    location: str | None = Field(None, max_length=200)

    product_name: str | None = Field(None, max_length=200)
    price_camly: int | None = Field(None, ge=0)
    price_vnd: int | None = Field(None, ge=0)
    quantity_kg: float | None = Field(None, gt=0)
    delivery_options: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_product_fields(self) -> "PostCreate":
        if self.post_type == "product":
            if not self.product_name or self.price_camly is None or self.quantity_kg is None:
                raise ValueError("product_name, price_camly and quantity_kg are required for products")
        elif not (self.content or "").strip() and not self.images and not self.video_url:
            raise ValueError("A post needs content, images or a video")
        return self


class PostUpdate(BaseModel):
    content: str | None = Field(None, max_length=10000)
    images: list[str] | None = Field(None, max_length=20)
    video_url: str | None = Field(None, max_length=1000)
    hashtags: list[str] | None = Field(None, max_length=30)
    location: str | None = Field(None, max_length=200)
    product_name: str | None = Field(None, max_length=200)
    price_camly: int | None = Field(None, ge=0)
    price_vnd: int | None = Field(None, ge=0)
    quantity_kg: float | None = Field(None, ge=0)


class PostAuthor(BaseModel):
    id: UUID
    display_name: str | None = None
    avatar_url: str | None = None
    is_verified: bool = False
    is_good_heart: bool = False

    model_config = ConfigDict(from_attributes=True)


class Post(BaseModel):
    id: UUID
    author_id: UUID
    author: PostAuthor | None = None
    post_type: str
    content: str | None = None
    images: list[str] | None = None
    video_url: str | None = None
    hashtags: list[str] | None = None
    location: str | None = None

    is_product_post: bool = False
    product_name: str | None = None
    price_camly: int | None = None
    price_vnd: int | None = None
    quantity_kg: float | None = None
    delivery_options: list[str] | None = None

    original_post_id: UUID | None = None
    share_comment: str | None = None
    gift_receiver_id: UUID | None = None

    likes_count: int = 0
    comments_count: int = 0
    shares_count: int = 0
    liked_by_me: bool = False

    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ShareCreate(BaseModel):
    share_comment: str | None = Field(None, max_length=2000)


class LikeRequest(BaseModel):
    reaction_type: Literal["like", "love", "haha", "wow", "sad", "angry"] = "like"


class LikeResponse(BaseModel):
    post_id: UUID
    liked: bool
    likes_count: int


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class Comment(BaseModel):
    id: UUID
    post_id: UUID
    author_id: UUID
    author: PostAuthor | None = None
    content: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# FRIENDS
# ============================================================================


class FriendRequest(BaseModel):
    id: UUID
    follower_id: UUID
    following_id: UUID
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# ORDERS
# ============================================================================


class OrderCreate(BaseModel):
    post_id: UUID
    quantity_kg: float = Field(..., gt=0)
    delivery_option: str = "self_pickup"
    delivery_address: str | None = Field(None, max_length=1000)


class OrderStatusUpdate(BaseModel):
    status: Literal["confirmed", "preparing", "ready", "cancelled"]


class Order(BaseModel):
    id: UUID
    post_id: UUID
    buyer_id: UUID
    seller_id: UUID
    shipper_id: UUID | None = None
    product_name: str
    quantity_kg: float
    price_per_kg_camly: int
    price_per_kg_vnd: int | None = None
    total_camly: int
    total_vnd: int | None = None
    delivery_option: str
    delivery_address: str | None = None
    status: str
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# WALLET
# ============================================================================


class TransferRequest(BaseModel):
    receiver_id: UUID
    amount: int = Field(..., gt=0)
    message: str | None = Field(None, max_length=500)
    create_gift_post: bool = False


class OnchainTransactionCreate(BaseModel):
    receiver_id: UUID
    amount: int = Field(..., gt=0)
    currency: str = Field("CAMLY", max_length=10)
    tx_hash: str = Field(..., min_length=10, max_length=100)
    message: str | None = Field(None, max_length=500)


class WalletTransaction(BaseModel):
    id: UUID
    sender_id: UUID
    receiver_id: UUID
    amount: int
    currency: str
    message: str | None = None
    post_id: UUID | None = None
    status: str
    tx_hash: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransferResponse(BaseModel):
    transaction: WalletTransaction
    gift_post_id: UUID | None = None
    balance: int


# ============================================================================
# NOTIFICATIONS
# ============================================================================


class Notification(BaseModel):
    id: UUID
    user_id: UUID
    from_user_id: UUID | None = None
    type: str
    content: str
    post_id: UUID | None = None
    comment_id: UUID | None = None
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadCount(BaseModel):
    unread_count: int


class MarkReadRequest(BaseModel):
    notification_ids: list[UUID] = Field(..., max_length=500)


# ============================================================================
# MODERATION (ADMIN)
# ============================================================================


class BanUserRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class BanResponse(BaseModel):
    status: str
    user_id: UUID
    banned_at: datetime | None = None


class DeleteUserRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class DeletedUser(BaseModel):
    user_id: UUID
    email: str | None = None
    display_name: str | None = None
    deleted_by: UUID | None = None
    reason: str | None = None
    deleted_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# REWARDS (ADMIN)
# ============================================================================


class RecalculateRequest(BaseModel):
    cutoff: datetime | None = None
    user_ids: list[UUID] | None = None
    background: bool = False


class RewardChange(BaseModel):
    user_id: UUID
    display_name: str | None = None
    old_pending: int
    old_approved: int
    new_total: int
    difference: int


class RecalculateResponse(BaseModel):
    cutoff: datetime
    background: bool = False
    task_id: str | None = None
    processed: int = 0
    updated: int = 0
    total_before: int = 0
    total_after: int = 0
    changes: list[RewardChange] = []


class DailyRewardStats(BaseModel):
    day: date
    quality_posts: int
    likes_received: int
    quality_comments: int
    shares_received: int
    friends_made: int
    raw_reward: int
    capped_reward: int

    model_config = ConfigDict(from_attributes=True)


class RewardPreview(BaseModel):
    user_id: UUID
    display_name: str | None = None
    quality_posts: int
    likes_received: int
    quality_comments: int
    shares_received: int
    friendships: int
    welcome_bonus: int
    wallet_bonus: int
    verification_bonus: int
    post_reward: int
    like_reward: int
    comment_reward: int
    share_reward: int
    friendship_reward: int
    daily_rewards_total: int
    calculated_total: int
    current_pending: int
    current_approved: int
    difference: int
    daily: list[DailyRewardStats] = []

    model_config = ConfigDict(from_attributes=True)


class RewardResetRequest(BaseModel):
    amount: int | None = Field(None, ge=0)


class RewardResetResponse(BaseModel):
    success: bool = True
    message: str
    user_id: UUID
    display_name: str | None = None
    pending_reward: int


# ============================================================================
# FUN PROFILE MERGE (ADMIN)
# ============================================================================


class MergeUser(BaseModel):
    id: UUID
    email: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None
    camly_balance: int = 0
    is_verified: bool = False
    fun_profile_id: str | None = None
    fun_id: str | None = None
    is_merged: bool = False
    merge_request_id: str | None = None
    merge_status: Literal["none", "pending", "provisioned", "merged"]


class MergeStats(BaseModel):
    total: int
    with_email: int
    unmerged: int
    pending: int
    provisioned: int
    merged: int


class MergeUsersResponse(BaseModel):
    users: list[MergeUser]
    stats: MergeStats


class MergeRequestCreate(BaseModel):
    user_id: UUID | None = None
    batch_all: bool = False
    limit: int = Field(100, ge=1, le=1000)


class MergeRequestResponse(BaseModel):
    success: bool = True
    message: str
    count: int
    request_id: str | None = None


class MergeConflict(BaseModel):
    id: UUID
    user_id: UUID | None = None
    user_email: str | None = None
    conflicting_user_id: UUID | None = None
    conflicting_user_email: str | None = None
    fun_profile_id: str
    fun_id: str | None = None
    conflict_type: str
    conflict_details: dict[str, Any] | None = None
    resolved: bool
    resolved_by: UUID | None = None
    resolved_at: datetime | None = None
    resolution_action: str | None = None
    resolution_notes: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConflictResolveRequest(BaseModel):
    action: Literal["keep_existing", "replace_existing", "manual_merge", "dismissed"]
    notes: str | None = Field(None, max_length=2000)
