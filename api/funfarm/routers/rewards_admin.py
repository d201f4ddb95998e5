"""Admin endpoints for the reward recalculation batch."""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_admin
from ..deps import get_db
from ..services.reward_recalculation import (
    preview_user_reward,
    recalculate_all_rewards,
    reset_user_reward,
    resolve_cutoff,
)
from ..settings import REWARD_RECALC_ALLOW_BACKGROUND, REWARD_RESET_DEFAULT_AMOUNT
from ..utils.audit import log_admin_action

router = APIRouter(prefix="/admin/rewards", tags=["Admin"])
logger = logging.getLogger(__name__)


@router.post("/recalculate", response_model=schemas.RecalculateResponse)
def recalculate_rewards(
    payload: schemas.RecalculateRequest | None = None,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
) -> schemas.RecalculateResponse:
    """
    Recompute pending_reward for every valid profile from its activity.

    The cutoff is fixed when the request arrives so a rerun with the same
    cutoff gives the same result. With ``background`` the batch is queued on
    the Celery worker and the task id is returned.
    """
    payload = payload or schemas.RecalculateRequest()
    cutoff = resolve_cutoff(payload.cutoff)

    if payload.background:
        if not REWARD_RECALC_ALLOW_BACKGROUND:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Background recalculation is disabled",
            )
        from ..tasks import recalculate_rewards as recalculate_task

        try:
            task = recalculate_task.delay(
                cutoff=cutoff.isoformat(),
                user_ids=[str(u) for u in payload.user_ids] if payload.user_ids is not None else None,
                actor_id=str(admin.id),
            )
        except Exception as e:
            logger.error(f"Could not queue reward recalculation for {admin.id}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Background worker unavailable",
            )
        logger.info(f"Admin {admin.id} queued reward recalculation task {task.id}")
        return schemas.RecalculateResponse(cutoff=cutoff, background=True, task_id=task.id)

    try:
        report = recalculate_all_rewards(db, cutoff=cutoff, user_ids=payload.user_ids)
    except Exception as e:
        logger.error(f"Reward recalculation requested by {admin.id} failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Reward recalculation failed",
        )

    log_admin_action(
        db,
        actor_id=admin.id,
        action="recalculate_rewards",
        target_type="rewards",
        details={
            "cutoff": report.cutoff.isoformat(),
            "processed": report.processed,
            "updated": report.updated,
            "total_before": report.total_before,
            "total_after": report.total_after,
        },
    )

    changes = [
        schemas.RewardChange(
            user_id=r.user_id,
            display_name=r.display_name,
            old_pending=r.current_pending,
            old_approved=r.current_approved,
            new_total=r.calculated_total,
            difference=r.difference,
        )
        for r in report.results
        if r.difference != 0 or r.current_approved
    ]
    return schemas.RecalculateResponse(
        cutoff=report.cutoff,
        processed=report.processed,
        updated=report.updated,
        total_before=report.total_before,
        total_after=report.total_after,
        changes=changes,
    )


@router.get("/{user_id}/preview", response_model=schemas.RewardPreview)
def preview_reward(
    user_id: UUID,
    cutoff: datetime | None = None,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
) -> schemas.RewardPreview:
    """Breakdown of what the batch would write for one user. Nothing is saved."""
    result = preview_user_reward(db, user_id, cutoff=cutoff)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return schemas.RewardPreview.model_validate(result)


@router.post("/{user_id}/reset", response_model=schemas.RewardResetResponse)
def reset_reward(
    user_id: UUID,
    payload: schemas.RewardResetRequest | None = None,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
) -> schemas.RewardResetResponse:
    amount = payload.amount if payload and payload.amount is not None else REWARD_RESET_DEFAULT_AMOUNT

    profile = db.query(models.Profile).filter(models.Profile.id == user_id).first()
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    previous = profile.pending_reward

    profile = reset_user_reward(db, user_id, amount=amount)
    log_admin_action(
        db,
        actor_id=admin.id,
        action="reset_reward",
        target_type="user",
        target_id=user_id,
        details={"previous_pending": previous, "pending_reward": amount},
    )
    return schemas.RewardResetResponse(
        message=f"Reset pending reward for {profile.display_name or user_id} to {amount:,} CAMLY",
        user_id=profile.id,
        display_name=profile.display_name,
        pending_reward=profile.pending_reward,
    )
