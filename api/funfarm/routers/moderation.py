"""Admin moderation endpoints: bans and account deletion."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_admin
from ..deps import get_db
from ..services import moderation
from ..services.moderation import AlreadyDeleted, ModerationError

router = APIRouter(prefix="/admin/users", tags=["Admin"])


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, AlreadyDeleted):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/deleted", response_model=list[schemas.DeletedUser])
def list_deleted_users(
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
) -> list[schemas.DeletedUser]:
    return [schemas.DeletedUser.model_validate(d) for d in moderation.list_deleted_users(db, limit=limit)]


@router.post(
    "/{user_id}/ban",
    response_model=schemas.BanResponse,
    status_code=status.HTTP_201_CREATED,
)
def ban_user(
    user_id: UUID,
    payload: schemas.BanUserRequest | None = None,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
) -> schemas.BanResponse:
    """
    Ban a user.

    The user can no longer sign in, and their likes, comments, shares and
    friendships stop counting toward other users' rewards.
    """
    try:
        profile = moderation.ban_user(db, admin, user_id, reason=payload.reason if payload else None)
    except (LookupError, ModerationError) as e:
        raise _http_error(e)
    return schemas.BanResponse(status="banned", user_id=profile.id, banned_at=profile.banned_at)


@router.delete("/{user_id}/ban", status_code=status.HTTP_204_NO_CONTENT)
def unban_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
) -> None:
    try:
        moderation.unban_user(db, admin, user_id)
    except (LookupError, ModerationError) as e:
        raise _http_error(e)


@router.post("/{user_id}/delete", response_model=schemas.DeletedUser, status_code=status.HTTP_201_CREATED)
def delete_user(
    user_id: UUID,
    payload: schemas.DeleteUserRequest | None = None,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
) -> schemas.DeletedUser:
    """Ban the account permanently and record it in the deleted users list."""
    try:
        tombstone = moderation.delete_user(db, admin, user_id, reason=payload.reason if payload else None)
    except (LookupError, ModerationError) as e:
        raise _http_error(e)
    return schemas.DeletedUser.model_validate(tombstone)
