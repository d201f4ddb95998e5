"""Inbound webhooks."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..deps import get_db
from ..fun_profile import verify_signature
from ..services.merge import WebhookPayloadError, handle_webhook_event
from ..settings import fun_profile_client_secret

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
logger = logging.getLogger(__name__)


@router.post("/fun-profile")
async def fun_profile_webhook(request: Request, db: Session = Depends(get_db)) -> dict:
    """
    Merge lifecycle events from Fun Profile.

    The body must be signed: ``x-fun-signature`` is the hex HMAC-SHA256 of
    the raw body keyed with the shared client secret.
    """
    if request.headers.get("x-fun-profile-webhook", "").lower() != "true":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid webhook source")

    secret = fun_profile_client_secret()
    if not secret:
        logger.error("FUN_PROFILE_CLIENT_SECRET not configured, rejecting webhook")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook secret not configured",
        )

    raw_body = await request.body()
    if not verify_signature(raw_body, request.headers.get("x-fun-signature"), secret):
        logger.warning("Fun Profile webhook with invalid signature")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature")

    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")

    try:
        return handle_webhook_event(db, payload)
    except WebhookPayloadError as e:
        logger.warning(f"Fun Profile webhook with malformed payload: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
