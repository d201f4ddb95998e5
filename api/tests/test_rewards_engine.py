"""Unit tests for the pure reward calculation engine."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from funfarm.services.rewards import (
    DAILY_REWARD_CAP,
    FRIENDSHIP_REWARD,
    LIKE_REWARD,
    LIKE_REWARD_EARLY,
    QUALITY_COMMENT_REWARD,
    QUALITY_POST_REWARD,
    SHARE_COMMENT_BONUS,
    SHARE_REWARD,
    WALLET_CONNECT_BONUS,
    WELCOME_BONUS,
    CommentRow,
    FriendshipRow,
    LikeRow,
    PostRow,
    ProfileRow,
    RewardDataset,
    ShareRow,
    apply_daily_cap,
    apply_daily_limit,
    calculate_user_reward,
    is_quality_comment,
    is_quality_post,
    to_vietnam_date,
)

# 09:00 in Vietnam on 2026-03-01
T0 = datetime(2026, 3, 1, 2, 0, tzinfo=timezone.utc)
LONG_TEXT = "Rau muống sạch vừa thu hoạch sáng nay ở vườn nhà, tưới bằng nước giếng, không thuốc trừ sâu. " * 2


def quality_post(author_id, at=T0, **fields) -> PostRow:
    fields.setdefault("content", LONG_TEXT)
    fields.setdefault("images", ["https://cdn.example.com/rau.jpg"])
    return PostRow(id=uuid4(), author_id=author_id, created_at=at, **fields)


def like(post, user_id, at=T0) -> LikeRow:
    return LikeRow(id=uuid4(), post_id=post.id, user_id=user_id, created_at=at)


def dataset(valid_ids, **rows) -> RewardDataset:
    return RewardDataset.build(valid_user_ids=valid_ids, **rows)


# ============================================================================
# HELPERS
# ============================================================================


def test_vietnam_day_boundary():
    assert to_vietnam_date(datetime(2026, 3, 1, 16, 59, tzinfo=timezone.utc)) == date(2026, 3, 1)
    assert to_vietnam_date(datetime(2026, 3, 1, 17, 0, tzinfo=timezone.utc)) == date(2026, 3, 2)
    # Naive values are treated as UTC
    assert to_vietnam_date(datetime(2026, 3, 1, 17, 30)) == date(2026, 3, 2)


def test_quality_post_requires_length_and_media():
    author = uuid4()
    assert is_quality_post(quality_post(author))
    assert not is_quality_post(quality_post(author, content="x" * 100))
    assert is_quality_post(quality_post(author, content="x" * 101))
    assert not is_quality_post(quality_post(author, images=[]))
    assert not is_quality_post(quality_post(author, images=["   "]))
    assert is_quality_post(quality_post(author, images=None, video_url="https://cdn.example.com/v.mp4"))
    assert is_quality_post(quality_post(author, post_type="product"))
    assert not is_quality_post(quality_post(author, post_type="share"))


def test_quality_comment_threshold():
    assert not is_quality_comment("a" * 20)
    assert is_quality_comment("a" * 21)
    assert not is_quality_comment(None)


def test_apply_daily_limit_counts_per_vietnam_day():
    # 12 items on day one, then 3 after Vietnam midnight
    stamps = [T0 + timedelta(minutes=i) for i in range(12)]
    stamps += [datetime(2026, 3, 1, 17, 0, tzinfo=timezone.utc) + timedelta(minutes=i) for i in range(3)]
    kept = apply_daily_limit(stamps, lambda s: s, 10)
    assert len(kept) == 13
    assert kept[:10] == stamps[:10]
    assert kept[10:] == stamps[12:]


def test_apply_daily_cap():
    assert apply_daily_cap({date(2026, 3, 1): 600_000, date(2026, 3, 2): 100_000}) == DAILY_REWARD_CAP + 100_000


# ============================================================================
# CALCULATION
# ============================================================================


def test_posts_limited_per_day_and_bonuses_added():
    author = uuid4()
    posts = [quality_post(author, T0 + timedelta(minutes=i)) for i in range(12)]
    profile = ProfileRow(id=author, welcome_bonus_claimed=True, wallet_bonus_claimed=True)

    result = calculate_user_reward(profile, dataset({author}, posts=posts))

    assert result.quality_posts == 10
    assert result.post_reward == 10 * QUALITY_POST_REWARD
    assert result.welcome_bonus == WELCOME_BONUS
    assert result.wallet_bonus == WALLET_CONNECT_BONUS
    assert result.verification_bonus == 0
    assert result.calculated_total == 10 * QUALITY_POST_REWARD + WELCOME_BONUS + WALLET_CONNECT_BONUS


def test_low_quality_posts_earn_nothing_and_their_interactions_are_ignored():
    author, fan = uuid4(), uuid4()
    post = quality_post(author, content="Ngắn quá")
    result = calculate_user_reward(
        ProfileRow(id=author),
        dataset({author, fan}, posts=[post], likes=[like(post, fan)]),
    )
    assert result.quality_posts == 0
    assert result.likes_received == 0
    assert result.calculated_total == 0


def test_likes_are_tiered_and_exclude_self_and_invalid_users():
    author = uuid4()
    fans = [uuid4() for _ in range(5)]
    banned = uuid4()
    post = quality_post(author)
    likes = [like(post, fan, T0 + timedelta(minutes=i + 1)) for i, fan in enumerate(fans)]
    likes.append(like(post, author, T0 + timedelta(minutes=10)))
    likes.append(like(post, banned, T0 + timedelta(seconds=30)))

    result = calculate_user_reward(
        ProfileRow(id=author),
        dataset({author, *fans}, posts=[post], likes=likes),
    )

    assert result.likes_received == 5
    assert result.like_reward == 3 * LIKE_REWARD_EARLY + 2 * LIKE_REWARD
    assert result.calculated_total == QUALITY_POST_REWARD + result.like_reward


def test_quality_comments_and_shares():
    author, a, b, c = uuid4(), uuid4(), uuid4(), uuid4()
    post = quality_post(author)
    comments = [
        CommentRow(id=uuid4(), post_id=post.id, author_id=a, created_at=T0, content="Ngon!"),
        CommentRow(id=uuid4(), post_id=post.id, author_id=b, created_at=T0, content="Rau nhìn tươi quá, mai mình ghé mua nhé"),
        CommentRow(id=uuid4(), post_id=post.id, author_id=author, created_at=T0, content="Cảm ơn mọi người đã ủng hộ nông trại"),
    ]
    shares = [
        ShareRow(id=uuid4(), post_id=post.id, user_id=a, created_at=T0, share_comment="Mọi người ủng hộ nông trại này nhé!"),
        ShareRow(id=uuid4(), post_id=post.id, user_id=c, created_at=T0, share_comment=None),
        ShareRow(id=uuid4(), post_id=post.id, user_id=author, created_at=T0, share_comment=None),
    ]

    result = calculate_user_reward(
        ProfileRow(id=author),
        dataset({author, a, b, c}, posts=[post], comments=comments, shares=shares),
    )

    assert result.quality_comments == 1
    assert result.comment_reward == QUALITY_COMMENT_REWARD
    assert result.shares_received == 2
    assert result.share_reward == 2 * SHARE_REWARD + SHARE_COMMENT_BONUS


def test_interactions_share_one_daily_limit():
    author = uuid4()
    fans = [uuid4() for _ in range(60)]
    post = quality_post(author)
    likes = [like(post, fan, T0 + timedelta(seconds=i + 1)) for i, fan in enumerate(fans)]

    result = calculate_user_reward(ProfileRow(id=author), dataset({author, *fans}, posts=[post], likes=likes))

    assert result.likes_received == 50
    assert result.like_reward == 3 * LIKE_REWARD_EARLY + 47 * LIKE_REWARD


def test_interactions_count_on_the_day_they_happen():
    author, fan = uuid4(), uuid4()
    post = quality_post(author)
    next_day = T0 + timedelta(days=1)
    result = calculate_user_reward(
        ProfileRow(id=author),
        dataset({author, fan}, posts=[post], likes=[like(post, fan, next_day)]),
    )
    days = {s.day: s for s in result.daily}
    assert days[date(2026, 3, 1)].quality_posts == 1
    assert days[date(2026, 3, 2)].likes_received == 1
    # Newest day first
    assert result.daily[0].day == date(2026, 3, 2)


def test_friendships_limited_and_require_valid_counterpart():
    me = uuid4()
    friends = [uuid4() for _ in range(12)]
    gone = uuid4()
    rows = [
        FriendshipRow(id=uuid4(), follower_id=me if i % 2 else f, following_id=f if i % 2 else me,
                      created_at=T0 + timedelta(minutes=i))
        for i, f in enumerate(friends)
    ]
    rows.append(FriendshipRow(id=uuid4(), follower_id=me, following_id=gone, created_at=T0 - timedelta(minutes=1)))

    result = calculate_user_reward(ProfileRow(id=me), dataset({me, *friends}, friendships=rows))

    assert result.friendships == 10
    assert result.friendship_reward == 10 * FRIENDSHIP_REWARD


def test_daily_cap_applies_before_bonuses():
    author = uuid4()
    sharers = [uuid4() for _ in range(50)]
    posts = [quality_post(author, T0 + timedelta(minutes=i)) for i in range(10)]
    shares = [
        ShareRow(id=uuid4(), post_id=posts[0].id, user_id=s, created_at=T0 + timedelta(minutes=30, seconds=i),
                 share_comment="Nông sản sạch, giá hợp lý, giao nhanh")
        for i, s in enumerate(sharers)
    ]
    profile = ProfileRow(id=author, welcome_bonus_claimed=True)

    result = calculate_user_reward(profile, dataset({author, *sharers}, posts=posts, shares=shares))

    raw = 10 * QUALITY_POST_REWARD + 50 * (SHARE_REWARD + SHARE_COMMENT_BONUS)
    assert result.daily[0].raw_reward == raw
    assert result.daily[0].capped_reward == DAILY_REWARD_CAP
    assert result.daily_rewards_total == DAILY_REWARD_CAP
    assert result.calculated_total == DAILY_REWARD_CAP + WELCOME_BONUS


def test_cutoff_drops_later_activity():
    author, fan = uuid4(), uuid4()
    early = quality_post(author, T0)
    late = quality_post(author, T0 + timedelta(hours=2))
    data = RewardDataset.build(
        posts=[early, late],
        likes=[like(early, fan, T0 + timedelta(hours=3))],
        valid_user_ids={author, fan},
        cutoff=T0 + timedelta(hours=1),
    )
    result = calculate_user_reward(ProfileRow(id=author), data)
    assert result.quality_posts == 1
    assert result.likes_received == 0


def test_same_input_gives_same_result_and_difference():
    author, fan = uuid4(), uuid4()
    post = quality_post(author)
    data = dataset({author, fan}, posts=[post], likes=[like(post, fan)])
    profile = ProfileRow(id=author, pending_reward=5_000, approved_reward=1_000)

    first = calculate_user_reward(profile, data)
    second = calculate_user_reward(profile, data)

    assert first.calculated_total == second.calculated_total == QUALITY_POST_REWARD + LIKE_REWARD_EARLY
    assert first.current_total == 6_000
    assert first.difference == first.calculated_total - 6_000
