"""Friend request endpoints."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..services import friends as friend_service
from ..services.friends import FriendshipError, FriendshipExists

router = APIRouter(prefix="/friends", tags=["Friends"])
logger = logging.getLogger(__name__)


@router.get("", response_model=list[schemas.ProfilePublic])
def list_friends(
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> list[schemas.ProfilePublic]:
    return [schemas.ProfilePublic.model_validate(p) for p in friend_service.list_friends(db, current_user.id)]


@router.get("/requests", response_model=list[schemas.FriendRequest])
def list_incoming_requests(
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> list[schemas.FriendRequest]:
    return [schemas.FriendRequest.model_validate(e) for e in friend_service.incoming_requests(db, current_user.id)]


@router.post("/requests/{user_id}", response_model=schemas.FriendRequest, status_code=status.HTTP_201_CREATED)
def send_friend_request(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.FriendRequest:
    """
    Send a friend request. If ``user_id`` already asked us, that request is accepted.
    """
    try:
        edge = friend_service.send_request(db, current_user, user_id)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except FriendshipExists as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except FriendshipError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return schemas.FriendRequest.model_validate(edge)


@router.post("/requests/{follower_id}/accept", response_model=schemas.FriendRequest)
def accept_friend_request(
    follower_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.FriendRequest:
    try:
        edge = friend_service.accept_request(db, current_user, follower_id)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Friend request not found")
    return schemas.FriendRequest.model_validate(edge)


@router.post("/requests/{follower_id}/reject", status_code=status.HTTP_204_NO_CONTENT)
def reject_friend_request(
    follower_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> None:
    try:
        friend_service.reject_request(db, current_user, follower_id)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Friend request not found")


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_friend(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> None:
    try:
        friend_service.remove_friend(db, current_user.id, user_id)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Friendship not found")
