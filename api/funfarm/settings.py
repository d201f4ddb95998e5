"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os
from datetime import datetime


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Email one-time passwords (signup verification and email change).
OTP_EXPIRY_MINUTES: int = _int_env("FUNFARM_OTP_EXPIRY_MINUTES", 10)
OTP_RESEND_COOLDOWN_SECONDS: int = _int_env("FUNFARM_OTP_COOLDOWN_SECONDS", 60)
OTP_MAX_ATTEMPTS: int = _int_env("FUNFARM_OTP_MAX_ATTEMPTS", 5)

# Fun Profile identity merge.
FUN_PROFILE_API_URL: str = os.getenv("FUN_PROFILE_API_URL", "https://api.funprofile.io")
FUN_PROFILE_PLATFORM_ID: str = os.getenv("FUN_PROFILE_PLATFORM_ID", "fun_farm")
FUN_PROFILE_TIMEOUT_SECONDS: int = _int_env("FUN_PROFILE_TIMEOUT_SECONDS", 30)
MERGE_BATCH_DEFAULT_LIMIT: int = _int_env("FUNFARM_MERGE_BATCH_LIMIT", 100)

# Reward recalculation runs inline unless the caller asks for the worker.
REWARD_RECALC_ALLOW_BACKGROUND: bool = _bool_env("FUNFARM_REWARD_RECALC_BACKGROUND", True)

# Default amount written by the single-user reward reset.
REWARD_RESET_DEFAULT_AMOUNT: int = _int_env("FUNFARM_REWARD_RESET_AMOUNT", 50000)


def reward_cutoff_override() -> datetime | None:
    """
    FUNFARM_REWARD_CUTOFF as an ISO 8601 timestamp, or None when unset or unparseable.

    Used instead of "now" when a recalculation is started without a cutoff.
    """
    raw = os.getenv("FUNFARM_REWARD_CUTOFF")
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.strip())
    except ValueError:
        return None


def fun_profile_client_secret() -> str | None:
    """Read at call time so tests and deploys can rotate the secret."""
    return os.getenv("FUN_PROFILE_CLIENT_SECRET") or None
