"""System endpoints (health, config)."""

from __future__ import annotations

import logging
import time

import redis
from fastapi import APIRouter, HTTPException, status

from .. import schemas
from ..cache import get_redis_client
from ..services import rewards
from ..settings import FUN_PROFILE_PLATFORM_ID, OTP_EXPIRY_MINUTES, OTP_RESEND_COOLDOWN_SECONDS

router = APIRouter(prefix="", tags=["System"])
logger = logging.getLogger(__name__)

# Global startup time for uptime calculation
_STARTUP_TIME = time.time()


@router.get("/health", response_model=schemas.HealthResponse)
def get_health() -> schemas.HealthResponse:
    """Liveness check."""
    uptime_s = time.time() - _STARTUP_TIME
    return schemas.HealthResponse(status="ok", uptime_s=uptime_s)


@router.get("/config", response_model=schemas.Config)
def get_public_config() -> schemas.Config:
    """
    Public reward policy and limits for the client.
    """
    policy = schemas.RewardPolicy(
        welcome_bonus=rewards.WELCOME_BONUS,
        wallet_connect_bonus=rewards.WALLET_CONNECT_BONUS,
        verification_bonus=rewards.VERIFICATION_BONUS,
        quality_post_reward=rewards.QUALITY_POST_REWARD,
        like_reward_early=rewards.LIKE_REWARD_EARLY,
        like_reward=rewards.LIKE_REWARD,
        early_likers_per_post=rewards.EARLY_LIKERS_PER_POST,
        quality_comment_reward=rewards.QUALITY_COMMENT_REWARD,
        share_reward=rewards.SHARE_REWARD,
        share_comment_bonus=rewards.SHARE_COMMENT_BONUS,
        friendship_reward=rewards.FRIENDSHIP_REWARD,
        max_posts_per_day=rewards.MAX_POSTS_PER_DAY,
        max_interactions_per_day=rewards.MAX_INTERACTIONS_PER_DAY,
        max_friendships_per_day=rewards.MAX_FRIENDSHIPS_PER_DAY,
        daily_reward_cap=rewards.DAILY_REWARD_CAP,
        quality_post_min_chars=rewards.QUALITY_POST_MIN_CHARS,
        quality_comment_min_chars=rewards.QUALITY_COMMENT_MIN_CHARS,
    )
    return schemas.Config(
        rewards=policy,
        otp_expiry_minutes=OTP_EXPIRY_MINUTES,
        otp_resend_cooldown_seconds=OTP_RESEND_COOLDOWN_SECONDS,
        platform_id=FUN_PROFILE_PLATFORM_ID,
    )


@router.get("/health/redis")
def check_redis_health() -> dict:
    """
    Redis health check endpoint.

    Returns 200 if Redis is available, 503 if not.
    """
    client = get_redis_client()
    if not client:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Redis unavailable",
        )

    try:
        client.ping()
        return {"status": "ok", "message": "Redis is available"}
    except redis.RedisError as e:
        logger.error(f"Redis health check failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Redis error: {str(e)}",
        )
