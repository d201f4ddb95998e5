"""Account merge with Fun Profile: admin tooling and webhook handling."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from ..fun_profile import send_merge_request
from ..utils.audit import log_admin_action
from .notifications import NotificationService

logger = logging.getLogger(__name__)

MERGE_TABS = ("unmerged", "pending", "provisioned", "merged", "all")
RESOLUTION_ACTIONS = ("keep_existing", "replace_existing", "manual_merge", "dismissed")
WEBHOOK_EVENTS = ("merge_completed", "merge_rejected", "merge_conflict", "account_provisioned")


class MergeRequestError(ValueError):
    pass


class WebhookPayloadError(ValueError):
    pass


# ============================================================================
# ADMIN: USERS AND REQUESTS
# ============================================================================


def merge_status(profile: models.Profile, latest_log_status: str | None) -> str:
    """none, pending, provisioned or merged."""
    if profile.is_merged or profile.fun_profile_id:
        return "merged"
    if profile.merge_request_id:
        return "provisioned" if latest_log_status == "provisioned" else "pending"
    return "none"


def _latest_log_statuses(db: Session) -> dict[UUID, str]:
    statuses: dict[UUID, str] = {}
    rows = (
        db.query(models.MergeRequestLog.user_id, models.MergeRequestLog.status)
        .filter(models.MergeRequestLog.user_id.is_not(None))
        .order_by(models.MergeRequestLog.created_at.desc())
        .all()
    )
    for user_id, status in rows:
        statuses.setdefault(user_id, status or "pending")
    return statuses


def list_users_for_merge(db: Session, tab: str = "unmerged", limit: int = 100) -> dict[str, Any]:
    """Profiles with their merge status, filtered by tab, plus overall stats."""
    log_statuses = _latest_log_statuses(db)
    profiles = db.query(models.Profile).order_by(models.Profile.created_at.desc()).all()

    users = []
    for profile in profiles:
        users.append(
            {
                "id": profile.id,
                "email": profile.email,
                "display_name": profile.display_name,
                "avatar_url": profile.avatar_url,
                "camly_balance": profile.camly_balance or 0,
                "is_verified": bool(profile.is_verified),
                "fun_profile_id": profile.fun_profile_id,
                "fun_id": profile.fun_id,
                "is_merged": bool(profile.is_merged),
                "merge_request_id": profile.merge_request_id,
                "merge_status": merge_status(profile, log_statuses.get(profile.id)),
            }
        )

    stats = {
        "total": len(users),
        "with_email": sum(1 for u in users if u["email"]),
        "unmerged": sum(1 for u in users if u["merge_status"] == "none" and u["email"]),
        "pending": sum(1 for u in users if u["merge_status"] == "pending"),
        "provisioned": sum(1 for u in users if u["merge_status"] == "provisioned"),
        "merged": sum(1 for u in users if u["merge_status"] == "merged"),
    }

    wanted = {"unmerged": "none"}.get(tab, tab)
    if tab != "all":
        users = [u for u in users if u["merge_status"] == wanted]
    return {"users": users[:limit], "stats": stats}


def _platform_data(profile: models.Profile) -> dict[str, Any]:
    return {
        "display_name": profile.display_name,
        "avatar_url": profile.avatar_url,
        "camly_balance": profile.camly_balance or 0,
        "reputation_score": profile.reputation_score or 0,
        "is_verified": bool(profile.is_verified),
        "profile_type": profile.profile_type,
        "wallet_address": profile.wallet_address,
    }


def _unmerged_query(db: Session):
    return db.query(models.Profile).filter(
        models.Profile.fun_profile_id.is_(None),
        models.Profile.is_merged.is_(False),
    )


def request_merge(
    db: Session,
    actor: models.Profile,
    user_id: UUID | None = None,
    batch_all: bool = False,
    limit: int = 100,
) -> dict[str, Any]:
    """
    Send one user, or a batch of unmerged users with an email, to Fun Profile.

    Raises:
        LookupError: user not found or already merged
        MergeRequestError: bad arguments or user without email
        FunProfileError: upstream failure (nothing is written)
    """
    if user_id is not None:
        profile = _unmerged_query(db).filter(models.Profile.id == user_id).first()
        if profile is None:
            raise LookupError("User not found or already merged")
        if not profile.email:
            raise MergeRequestError("User has no email address")
        profiles = [profile]
    elif batch_all:
        profiles = (
            _unmerged_query(db)
            .filter(models.Profile.email.is_not(None), models.Profile.merge_request_id.is_(None))
            .order_by(models.Profile.created_at.asc())
            .limit(limit)
            .all()
        )
    else:
        raise MergeRequestError("Either user_id or batch_all must be provided")

    if not profiles:
        return {"message": "No users to merge", "count": 0, "request_id": None}

    users = [
        {"email": p.email, "platform_user_id": str(p.id), "platform_data": _platform_data(p)} for p in profiles
    ]
    result = send_merge_request(users)

    request_ids = result.get("request_ids") or {}
    default_request_id = result.get("request_id")
    for profile, user in zip(profiles, users):
        request_id = request_ids.get(profile.email) or default_request_id
        profile.merge_request_id = request_id
        db.add(
            models.MergeRequestLog(
                user_id=profile.id,
                email=profile.email,
                request_id=request_id,
                status="pending",
                profile_data=user["platform_data"],
            )
        )

    log_admin_action(
        db,
        actor_id=actor.id,
        action="send_merge_request",
        target_type="user" if user_id else "merge_batch",
        target_id=user_id or default_request_id,
        details={"count": len(profiles), "request_id": default_request_id},
        commit=False,
    )
    db.commit()
    logger.info(f"Merge request sent for {len(profiles)} users by admin {actor.id}")
    return {
        "message": f"Merge request sent for {len(profiles)} users",
        "count": len(profiles),
        "request_id": default_request_id,
    }


# ============================================================================
# ADMIN: CONFLICTS
# ============================================================================


def list_conflicts(db: Session, resolved: bool | None = False, limit: int = 100) -> list[models.MergeConflict]:
    query = db.query(models.MergeConflict)
    if resolved is not None:
        query = query.filter(models.MergeConflict.resolved.is_(resolved))
    return query.order_by(models.MergeConflict.created_at.desc()).limit(limit).all()


def resolve_conflict(
    db: Session,
    conflict_id: UUID,
    actor: models.Profile,
    action: str,
    notes: str | None = None,
) -> models.MergeConflict:
    if action not in RESOLUTION_ACTIONS:
        raise MergeRequestError(f"Unknown resolution action: {action}")

    conflict = db.query(models.MergeConflict).filter(models.MergeConflict.id == conflict_id).first()
    if conflict is None:
        raise LookupError("Conflict not found")
    if conflict.resolved:
        raise MergeRequestError("Conflict already resolved")

    now = datetime.now(timezone.utc)
    user = conflict.user
    if action in ("keep_existing", "dismissed"):
        if user is not None:
            user.merge_request_id = None
    elif action == "replace_existing":
        other = conflict.conflicting_user
        if other is not None:
            other.fun_profile_id = None
            other.is_merged = False
            other.merged_at = None
            # Release the unique fun_profile_id before reassigning it
            db.flush()
        if user is not None:
            user.fun_profile_id = conflict.fun_profile_id or None
            user.fun_id = conflict.fun_id
            user.is_merged = True
            user.merged_at = now
            user.merge_request_id = None

    conflict.resolved = True
    conflict.resolved_by = actor.id
    conflict.resolved_at = now
    conflict.resolution_action = action
    conflict.resolution_notes = notes

    log_admin_action(
        db,
        actor_id=actor.id,
        action="resolve_merge_conflict",
        target_type="conflict",
        target_id=conflict.id,
        note=notes,
        details={"action": action, "user_id": str(conflict.user_id) if conflict.user_id else None},
        commit=False,
    )
    db.commit()
    db.refresh(conflict)
    logger.info(f"Conflict {conflict.id} resolved with {action} by admin {actor.id}")
    return conflict


# ============================================================================
# WEBHOOK
# ============================================================================


def _update_logs(db: Session, email: str, request_id: str | None, **values: Any) -> None:
    query = db.query(models.MergeRequestLog).filter(models.MergeRequestLog.email == email)
    if request_id:
        query = query.filter(models.MergeRequestLog.request_id == request_id)
    query.update(values, synchronize_session=False)


def handle_webhook_event(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    """
    Apply one signed Fun Profile webhook event.

    Raises WebhookPayloadError when a field has the wrong type and
    LookupError when no profile has the payload's email.
    """
    for key in ("event", "email", "request_id", "fun_profile_id", "fun_id", "error_message", "conflict_type"):
        if payload.get(key) is not None and not isinstance(payload[key], str):
            raise WebhookPayloadError(f"{key} must be a string")
    if payload.get("profile_data") is not None and not isinstance(payload["profile_data"], dict):
        raise WebhookPayloadError("profile_data must be an object")

    event = payload.get("event")
    email = (payload.get("email") or "").strip()
    request_id = payload.get("request_id")
    fun_profile_id = payload.get("fun_profile_id")
    fun_id = payload.get("fun_id")
    now = datetime.now(timezone.utc)

    profile = db.query(models.Profile).filter(func.lower(models.Profile.email) == email.lower()).first()
    if not email or profile is None:
        raise LookupError(f"Profile not found for email: {email}")
    email = profile.email

    logger.info(f"Fun Profile webhook {event} for {email}")

    if event == "merge_completed":
        if fun_profile_id:
            existing = (
                db.query(models.Profile)
                .filter(models.Profile.fun_profile_id == fun_profile_id, models.Profile.id != profile.id)
                .first()
            )
            if existing is not None:
                db.add(
                    models.MergeConflict(
                        user_id=profile.id,
                        user_email=profile.email,
                        conflicting_user_id=existing.id,
                        conflicting_user_email=existing.email,
                        fun_profile_id=fun_profile_id,
                        fun_id=fun_id,
                        conflict_type="duplicate_fun_profile_id",
                        conflict_details={"original_request": payload},
                    )
                )
                _update_logs(
                    db,
                    email,
                    request_id,
                    status="conflict",
                    webhook_received_at=now,
                    error_message=f"Conflict: fun_profile_id already assigned to user {existing.id}",
                )
                db.commit()
                logger.warning(f"Merge conflict for {email}: {fun_profile_id} already on {existing.id}")
                return {"success": True, "status": "conflict_logged"}

        profile.fun_profile_id = fun_profile_id
        profile.is_merged = True
        profile.merged_at = now
        profile.merge_request_id = None
        if fun_id:
            profile.fun_id = fun_id
        profile_data = payload.get("profile_data") or {}
        if profile_data.get("display_name") and not profile.display_name:
            profile.display_name = profile_data["display_name"]
        if profile_data.get("avatar_url") and not profile.avatar_url:
            profile.avatar_url = profile_data["avatar_url"]
        if profile_data.get("is_verified"):
            profile.is_verified = True

        _update_logs(db, email, request_id, status="completed", fun_profile_id=fun_profile_id, webhook_received_at=now)
        db.commit()

    elif event == "merge_rejected":
        profile.merge_request_id = None
        _update_logs(
            db,
            email,
            request_id,
            status="rejected",
            webhook_received_at=now,
            error_message=payload.get("error_message") or "Merge rejected by Fun Profile",
        )
        db.commit()

    elif event == "merge_conflict":
        db.add(
            models.MergeConflict(
                user_id=profile.id,
                user_email=profile.email,
                fun_profile_id=fun_profile_id or "",
                fun_id=fun_id,
                conflict_type=payload.get("conflict_type") or "duplicate_email",
                conflict_details={"original_request": payload},
            )
        )
        _update_logs(
            db,
            email,
            request_id,
            status="conflict",
            webhook_received_at=now,
            error_message=payload.get("error_message"),
        )
        db.commit()

    elif event == "account_provisioned":
        _update_logs(db, email, request_id, status="provisioned", fun_profile_id=fun_profile_id, webhook_received_at=now)
        db.commit()
        NotificationService.create_notification(
            db,
            user_id=profile.id,
            notification_type="account_provisioned",
            content="Tài khoản Fun-ID đã được tạo! Vui lòng kiểm tra email để đặt mật khẩu và hoàn tất kết nối.",
        )

    else:
        logger.warning(f"Unknown Fun Profile webhook event: {event}")

    return {"success": True, "event": event}
