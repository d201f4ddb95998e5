"""Notifications API endpoints."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, verify_token
from ..db import SessionLocal
from ..deps import get_db
from ..pagination import paginate_newest_first
from ..services.notifications import NotificationService
from ..websocket_manager import connection_manager

router = APIRouter(prefix="/notifications", tags=["Notifications"])
logger = logging.getLogger(__name__)


@router.get("", response_model=schemas.Page[schemas.Notification])
def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    cursor: str | None = None,
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.Page[schemas.Notification]:
    """
    List notifications for the current user, newest first.
    """
    query = db.query(models.Notification).filter(models.Notification.user_id == current_user.id)
    if unread_only:
        query = query.filter(models.Notification.read.is_(False))

    items, next_cursor = paginate_newest_first(query, models.Notification, cursor, limit)
    return schemas.Page(
        items=[schemas.Notification.model_validate(n) for n in items],
        next_cursor=next_cursor,
    )


@router.get("/unread-count", response_model=schemas.UnreadCount)
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.UnreadCount:
    count = NotificationService.get_unread_count(db, current_user.id)
    return schemas.UnreadCount(unread_count=count)


@router.post("/mark-read", status_code=status.HTTP_204_NO_CONTENT)
def mark_notifications_read(
    payload: schemas.MarkReadRequest,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> None:
    NotificationService.mark_as_read(db, payload.notification_ids, current_user.id)


@router.post("/mark-all-read", status_code=status.HTTP_204_NO_CONTENT)
def mark_all_notifications_read(
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> None:
    NotificationService.mark_all_as_read(db, current_user.id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> None:
    if not NotificationService.delete_notification(db, notification_id, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str):
    """
    WebSocket endpoint for real-time notifications.

    Clients connect via: ws://<host>/notifications/ws?token=<jwt_token>
    """
    with SessionLocal() as db:
        user = verify_token(token, db)
        user_id = user.id if user else None

    if user_id is None:
        await websocket.close(code=1008, reason="Invalid token")
        return

    connected = await connection_manager.connect(websocket, user_id)
    if not connected:
        await websocket.close(code=1008, reason="Connection limit reached")
        return

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for user {user_id}")
    finally:
        await connection_manager.disconnect(websocket, user_id)
