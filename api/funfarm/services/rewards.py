"""Reward calculation engine.

Rederives a user's CAMLY reward total from their historical activity. The
engine is pure: callers hand it plain rows (see ``RewardDataset``) and get a
``UserRewardResult`` back. Loading rows from the database and writing the
result lives in ``reward_recalculation``.

Days are Vietnam days (UTC+7). A post created at 19:00 UTC belongs to the
next calendar day.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Iterable, Sequence, TypeVar
from uuid import UUID

from ..utils.dates import as_utc, vietnam_date

# ============================================================================
# CONSTANTS
# ============================================================================

# One-time bonuses, not subject to the daily cap
WELCOME_BONUS = 50_000
WALLET_CONNECT_BONUS = 50_000
VERIFICATION_BONUS = 50_000

# Daily rewards
QUALITY_POST_REWARD = 10_000
LIKE_REWARD_EARLY = 2_000  # first EARLY_LIKERS_PER_POST likers of a post
LIKE_REWARD = 1_000
EARLY_LIKERS_PER_POST = 3
QUALITY_COMMENT_REWARD = 2_000
SHARE_REWARD = 10_000
SHARE_COMMENT_BONUS = 5_000
FRIENDSHIP_REWARD = 10_000

# Daily limits
MAX_POSTS_PER_DAY = 10
MAX_INTERACTIONS_PER_DAY = 50  # likes + quality comments + shares, pooled
MAX_FRIENDSHIPS_PER_DAY = 10
DAILY_REWARD_CAP = 500_000

# Quality thresholds (strictly greater than)
QUALITY_POST_MIN_CHARS = 100
QUALITY_COMMENT_MIN_CHARS = 20
QUALITY_SHARE_COMMENT_MIN_CHARS = 20

REWARDABLE_POST_TYPES = frozenset({"post", "product"})

T = TypeVar("T")


# ============================================================================
# INPUT ROWS
# ============================================================================


@dataclass(frozen=True)
class ProfileRow:
    id: UUID
    display_name: str | None = None
    pending_reward: int = 0
    approved_reward: int = 0
    welcome_bonus_claimed: bool = False
    wallet_bonus_claimed: bool = False
    verification_bonus_claimed: bool = False


@dataclass(frozen=True)
class PostRow:
    id: UUID
    author_id: UUID
    created_at: datetime
    content: str | None = None
    images: Sequence[str] | None = None
    video_url: str | None = None
    post_type: str = "post"


@dataclass(frozen=True)
class LikeRow:
    id: UUID
    post_id: UUID
    user_id: UUID
    created_at: datetime


@dataclass(frozen=True)
class CommentRow:
    id: UUID
    post_id: UUID
    author_id: UUID
    created_at: datetime
    content: str | None = None


@dataclass(frozen=True)
class ShareRow:
    id: UUID
    post_id: UUID
    user_id: UUID
    created_at: datetime
    share_comment: str | None = None


@dataclass(frozen=True)
class FriendshipRow:
    id: UUID
    follower_id: UUID
    following_id: UUID
    created_at: datetime


@dataclass
class RewardDataset:
    """All activity rows for one recalculation run, indexed for per-user lookups."""

    posts: list[PostRow]
    likes: list[LikeRow]
    comments: list[CommentRow]
    shares: list[ShareRow]
    friendships: list[FriendshipRow]
    valid_user_ids: frozenset[UUID]

    posts_by_author: dict[UUID, list[PostRow]] = field(init=False, repr=False)
    likes_by_post: dict[UUID, list[LikeRow]] = field(init=False, repr=False)
    comments_by_post: dict[UUID, list[CommentRow]] = field(init=False, repr=False)
    shares_by_post: dict[UUID, list[ShareRow]] = field(init=False, repr=False)
    friendships_by_user: dict[UUID, list[FriendshipRow]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.posts_by_author = _index(self.posts, lambda p: p.author_id)
        self.likes_by_post = _index(self.likes, lambda l: l.post_id)
        self.comments_by_post = _index(self.comments, lambda c: c.post_id)
        self.shares_by_post = _index(self.shares, lambda s: s.post_id)
        self.friendships_by_user = defaultdict(list)
        for friendship in sorted(self.friendships, key=lambda f: (to_utc(f.created_at), str(f.id))):
            self.friendships_by_user[friendship.follower_id].append(friendship)
            if friendship.following_id != friendship.follower_id:
                self.friendships_by_user[friendship.following_id].append(friendship)

    @classmethod
    def build(
        cls,
        *,
        posts: Iterable[PostRow] = (),
        likes: Iterable[LikeRow] = (),
        comments: Iterable[CommentRow] = (),
        shares: Iterable[ShareRow] = (),
        friendships: Iterable[FriendshipRow] = (),
        valid_user_ids: Iterable[UUID] = (),
        cutoff: datetime | None = None,
    ) -> "RewardDataset":
        """Build a dataset, dropping every row created after ``cutoff``."""

        def keep(rows: Iterable[T]) -> list[T]:
            rows = list(rows)
            if cutoff is None:
                return rows
            limit = to_utc(cutoff)
            return [r for r in rows if to_utc(r.created_at) <= limit]  # type: ignore[attr-defined]

        return cls(
            posts=keep(posts),
            likes=keep(likes),
            comments=keep(comments),
            shares=keep(shares),
            friendships=keep(friendships),
            valid_user_ids=frozenset(valid_user_ids),
        )


def _index(rows: Iterable[T], key: Callable[[T], UUID]) -> dict[UUID, list[T]]:
    grouped: dict[UUID, list[T]] = defaultdict(list)
    for row in sorted(rows, key=lambda r: (to_utc(r.created_at), str(r.id))):  # type: ignore[attr-defined]
        grouped[key(row)].append(row)
    return grouped


# ============================================================================
# RESULTS
# ============================================================================


@dataclass
class DailyRewardStats:
    day: date
    quality_posts: int = 0
    likes_received: int = 0
    quality_comments: int = 0
    shares_received: int = 0
    friends_made: int = 0
    raw_reward: int = 0
    capped_reward: int = 0


@dataclass
class UserRewardResult:
    user_id: UUID
    display_name: str | None

    # Counts after daily limits
    quality_posts: int = 0
    likes_received: int = 0
    quality_comments: int = 0
    shares_received: int = 0
    friendships: int = 0

    # Bonuses
    welcome_bonus: int = 0
    wallet_bonus: int = 0
    verification_bonus: int = 0

    # Daily rewards by category (before the daily cap)
    post_reward: int = 0
    like_reward: int = 0
    comment_reward: int = 0
    share_reward: int = 0
    friendship_reward: int = 0

    daily_rewards_total: int = 0
    calculated_total: int = 0

    current_pending: int = 0
    current_approved: int = 0

    daily: list[DailyRewardStats] = field(default_factory=list)

    @property
    def current_total(self) -> int:
        return self.current_pending + self.current_approved

    @property
    def difference(self) -> int:
        return self.calculated_total - self.current_total


# ============================================================================
# HELPERS
# ============================================================================


to_utc = as_utc
to_vietnam_date = vietnam_date


def has_valid_images(images: Sequence[str] | None) -> bool:
    if not images or not isinstance(images, (list, tuple)):
        return False
    return any(isinstance(url, str) and url.strip() != "" for url in images)


def has_valid_video(video_url: str | None) -> bool:
    return isinstance(video_url, str) and video_url.strip() != ""


def is_quality_post(post: PostRow) -> bool:
    """Original post or product with more than 100 chars and at least one media item."""
    if post.post_type not in REWARDABLE_POST_TYPES:
        return False
    if len(post.content or "") <= QUALITY_POST_MIN_CHARS:
        return False
    return has_valid_images(post.images) or has_valid_video(post.video_url)


def is_quality_comment(content: str | None) -> bool:
    return len(content or "") > QUALITY_COMMENT_MIN_CHARS


def has_quality_share_comment(share_comment: str | None) -> bool:
    return len((share_comment or "").strip()) > QUALITY_SHARE_COMMENT_MIN_CHARS


def apply_daily_limit(items: Iterable[T], get_timestamp: Callable[[T], datetime], limit: int) -> list[T]:
    """Keep the first ``limit`` items of each Vietnam day, in input order.

    Items must already be sorted by time; ties are resolved by input order.
    """
    per_day: dict[date, int] = defaultdict(int)
    kept: list[T] = []
    for item in items:
        day = to_vietnam_date(get_timestamp(item))
        if per_day[day] < limit:
            per_day[day] += 1
            kept.append(item)
    return kept


def apply_daily_cap(rewards_by_date: dict[date, int], cap: int = DAILY_REWARD_CAP) -> int:
    return sum(min(amount, cap) for amount in rewards_by_date.values())


# ============================================================================
# CALCULATION
# ============================================================================

# Interaction kinds in the order they win ties at the same instant
_LIKE, _COMMENT, _SHARE = 0, 1, 2


@dataclass(frozen=True)
class _Interaction:
    created_at: datetime
    kind: int
    row_id: str
    amount: int


def _like_amounts(likes: Sequence[LikeRow]) -> list[_Interaction]:
    """Tiered per-post like value: early likers are worth more."""
    result = []
    for rank, like in enumerate(likes):
        amount = LIKE_REWARD_EARLY if rank < EARLY_LIKERS_PER_POST else LIKE_REWARD
        result.append(_Interaction(to_utc(like.created_at), _LIKE, str(like.id), amount))
    return result


def calculate_user_reward(profile: ProfileRow, dataset: RewardDataset) -> UserRewardResult:
    """Recompute one user's reward total from scratch."""
    user_id = profile.id
    valid = dataset.valid_user_ids
    result = UserRewardResult(
        user_id=user_id,
        display_name=profile.display_name,
        current_pending=profile.pending_reward or 0,
        current_approved=profile.approved_reward or 0,
    )

    daily: dict[date, DailyRewardStats] = {}

    def day_stats(day: date) -> DailyRewardStats:
        if day not in daily:
            daily[day] = DailyRewardStats(day=day)
        return daily[day]

    # 1. Quality posts, first N per day
    quality_posts = [p for p in dataset.posts_by_author.get(user_id, []) if is_quality_post(p)]
    for post in apply_daily_limit(quality_posts, lambda p: p.created_at, MAX_POSTS_PER_DAY):
        stats = day_stats(to_vietnam_date(post.created_at))
        stats.quality_posts += 1
        stats.raw_reward += QUALITY_POST_REWARD
        result.quality_posts += 1
        result.post_reward += QUALITY_POST_REWARD

    # 2. Interactions received on every quality post, pooled under one daily cap
    pool: list[_Interaction] = []
    for post in quality_posts:
        likes = [
            l for l in dataset.likes_by_post.get(post.id, [])
            if l.user_id != user_id and l.user_id in valid
        ]
        pool.extend(_like_amounts(likes))

        for comment in dataset.comments_by_post.get(post.id, []):
            if comment.author_id == user_id or comment.author_id not in valid:
                continue
            if not is_quality_comment(comment.content):
                continue
            pool.append(
                _Interaction(to_utc(comment.created_at), _COMMENT, str(comment.id), QUALITY_COMMENT_REWARD)
            )

        for share in dataset.shares_by_post.get(post.id, []):
            if share.user_id == user_id or share.user_id not in valid:
                continue
            amount = SHARE_REWARD
            if has_quality_share_comment(share.share_comment):
                amount += SHARE_COMMENT_BONUS
            pool.append(_Interaction(to_utc(share.created_at), _SHARE, str(share.id), amount))

    pool.sort(key=lambda i: (i.created_at, i.kind, i.row_id))
    for interaction in apply_daily_limit(pool, lambda i: i.created_at, MAX_INTERACTIONS_PER_DAY):
        stats = day_stats(to_vietnam_date(interaction.created_at))
        stats.raw_reward += interaction.amount
        if interaction.kind == _LIKE:
            stats.likes_received += 1
            result.likes_received += 1
            result.like_reward += interaction.amount
        elif interaction.kind == _COMMENT:
            stats.quality_comments += 1
            result.quality_comments += 1
            result.comment_reward += interaction.amount
        else:
            stats.shares_received += 1
            result.shares_received += 1
            result.share_reward += interaction.amount

    # 3. Accepted friendships with counterparts that still exist
    friendships = []
    for friendship in dataset.friendships_by_user.get(user_id, []):
        friend_id = friendship.following_id if friendship.follower_id == user_id else friendship.follower_id
        if friend_id != user_id and friend_id in valid:
            friendships.append(friendship)
    for friendship in apply_daily_limit(friendships, lambda f: f.created_at, MAX_FRIENDSHIPS_PER_DAY):
        stats = day_stats(to_vietnam_date(friendship.created_at))
        stats.friends_made += 1
        stats.raw_reward += FRIENDSHIP_REWARD
        result.friendships += 1
        result.friendship_reward += FRIENDSHIP_REWARD

    # 4. Daily cap, then one-time bonuses on top
    for stats in daily.values():
        stats.capped_reward = min(stats.raw_reward, DAILY_REWARD_CAP)
    result.daily_rewards_total = apply_daily_cap({d: s.raw_reward for d, s in daily.items()})

    result.welcome_bonus = WELCOME_BONUS if profile.welcome_bonus_claimed else 0
    result.wallet_bonus = WALLET_CONNECT_BONUS if profile.wallet_bonus_claimed else 0
    result.verification_bonus = VERIFICATION_BONUS if profile.verification_bonus_claimed else 0

    result.calculated_total = (
        result.welcome_bonus + result.wallet_bonus + result.verification_bonus + result.daily_rewards_total
    )
    result.daily = sorted(daily.values(), key=lambda s: s.day, reverse=True)
    return result
