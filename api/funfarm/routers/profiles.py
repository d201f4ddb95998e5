"""Profile, honor board and leaderboard endpoints."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, get_current_user_optional, is_admin
from ..cache import cache_invalidate
from ..deps import get_db
from ..services.honor_board import get_honor_board, get_leaderboard
from ..services.reward_recalculation import claim_bonus

router = APIRouter(prefix="", tags=["Profiles"])
logger = logging.getLogger(__name__)


def _get_visible_profile(db: Session, user_id: UUID, viewer: models.Profile | None) -> models.Profile:
    profile = db.query(models.Profile).filter(models.Profile.id == user_id).first()
    if profile is None or (profile.banned and not (viewer and is_admin(viewer))):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


@router.get("/profiles/{user_id}", response_model=schemas.ProfilePublic)
def get_profile(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.Profile | None = Depends(get_current_user_optional),
) -> schemas.ProfilePublic:
    profile = _get_visible_profile(db, user_id, current_user)
    return schemas.ProfilePublic.model_validate(profile)


@router.patch("/profiles/me", response_model=schemas.ProfilePrivate)
def update_my_profile(
    payload: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.ProfilePrivate:
    """
    Update the caller's profile.

    Setting a wallet address for the first time marks the wallet connected
    and grants the wallet bonus.
    """
    changes = payload.model_dump(exclude_unset=True)
    wallet_address = changes.pop("wallet_address", None)

    for field, value in changes.items():
        setattr(current_user, field, value)

    if wallet_address:
        current_user.wallet_address = wallet_address.strip()
        if not current_user.wallet_connected:
            current_user.wallet_connected = True
            claim_bonus(current_user, "wallet")

    db.commit()
    db.refresh(current_user)
    cache_invalidate("leaderboard:*")
    logger.info(f"User {current_user.id} updated profile fields {sorted(payload.model_fields_set)}")
    return schemas.ProfilePrivate.model_validate(current_user, from_attributes=True)


@router.post("/profiles/public", response_model=list[schemas.ProfilePublic])
def get_public_profiles(
    payload: schemas.PublicProfilesRequest,
    db: Session = Depends(get_db),
) -> list[schemas.ProfilePublic]:
    """Public fields for a batch of ids; banned and unknown profiles are omitted."""
    if not payload.user_ids:
        return []
    profiles = (
        db.query(models.Profile)
        .filter(models.Profile.id.in_(payload.user_ids), models.Profile.banned.is_(False))
        .all()
    )
    return [schemas.ProfilePublic.model_validate(p) for p in profiles]


@router.get("/profiles/{user_id}/honor-board", response_model=schemas.HonorBoard)
def get_profile_honor_board(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.Profile | None = Depends(get_current_user_optional),
) -> schemas.HonorBoard:
    profile = _get_visible_profile(db, user_id, current_user)
    return schemas.HonorBoard(**get_honor_board(db, profile))


@router.get("/leaderboard", response_model=list[schemas.LeaderboardEntry])
def leaderboard(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
) -> list[schemas.LeaderboardEntry]:
    return [schemas.LeaderboardEntry(**entry) for entry in get_leaderboard(db, limit=limit)]
