"""Authentication and email verification endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import (
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
    check_user_can_authenticate,
    create_access_token,
    get_current_user,
    hash_password,
    verify_password,
)
from ..deps import get_db
from ..services.email import EmailDeliveryError
from ..services.email_otp import OTPError, change_email, send_otp, verify_otp
from ..services.rate_limit import check_rate_limit, reset_rate_limit
from ..services.reward_recalculation import claim_bonus

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = logging.getLogger(__name__)

LOGIN_RATE_LIMIT = 10
LOGIN_RATE_WINDOW_SECONDS = 300


def _token_response(user: models.Profile) -> schemas.TokenResponse:
    return schemas.TokenResponse(
        access_token=create_access_token(user.id),
        expires_in=JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=schemas.ProfilePrivate.model_validate(user, from_attributes=True),
    )


def _otp_http_error(e: OTPError) -> HTTPException:
    code = status.HTTP_429_TOO_MANY_REQUESTS if e.code == "rate_limit" else status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=e.as_detail())


@router.post("/register", response_model=schemas.TokenResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: schemas.RegisterRequest,
    db: Session = Depends(get_db),
) -> schemas.TokenResponse:
    """
    Create an account and send a signup verification code.

    The welcome bonus is granted immediately as pending reward. A failed
    verification email does not fail the registration; the client can
    request a new code.
    """
    email = payload.email.lower().strip()

    existing = db.query(models.Profile.id).filter(func.lower(models.Profile.email) == email).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )

    user = models.Profile(
        email=email,
        password_hash=hash_password(payload.password),
        display_name=payload.display_name,
        roles=[models.UserRole(role="user")],
    )
    claim_bonus(user, "welcome")
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )
    db.refresh(user)
    logger.info(f"Registered user {user.id} ({email})")

    try:
        send_otp(db, user, email)
    except (OTPError, EmailDeliveryError) as e:
        logger.warning(f"Failed to send signup OTP to user {user.id}: {e}")

    return _token_response(user)


@router.post("/login", response_model=schemas.TokenResponse)
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
) -> schemas.TokenResponse:
    email = payload.email.lower().strip()

    rate_key = f"ratelimit:login:{email}"
    allowed, _ = check_rate_limit(rate_key, limit=LOGIN_RATE_LIMIT, window_seconds=LOGIN_RATE_WINDOW_SECONDS)
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later.",
        )

    user = db.query(models.Profile).filter(func.lower(models.Profile.email) == email).first()
    if user is None or not verify_password(payload.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    check_user_can_authenticate(user)
    reset_rate_limit(rate_key)
    logger.info(f"User {user.id} logged in")
    return _token_response(user)


@router.get("/me", response_model=schemas.ProfilePrivate)
def get_me(current_user: models.Profile = Depends(get_current_user)) -> schemas.ProfilePrivate:
    return schemas.ProfilePrivate.model_validate(current_user, from_attributes=True)


@router.post("/otp/send", response_model=schemas.MessageResponse)
def send_verification_code(
    payload: schemas.OTPSendRequest,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.MessageResponse:
    """
    Email a 6-digit code to the caller's address (or ``email`` if given).

    Returns 429 with ``remaining_seconds`` while the resend cooldown runs.
    """
    email = (payload.email or current_user.email or "").strip()
    if not email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")

    try:
        send_otp(db, current_user, email)
    except OTPError as e:
        raise _otp_http_error(e)
    except EmailDeliveryError as e:
        logger.error(f"OTP email to {email} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Không thể gửi email. Vui lòng thử lại sau.",
        )

    return schemas.MessageResponse(message="Mã OTP đã được gửi đến email của bạn")


@router.post("/otp/verify", response_model=schemas.MessageResponse)
def verify_code(
    payload: schemas.OTPVerifyRequest,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.MessageResponse:
    email = (payload.email or current_user.email or "").strip()
    if not email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")

    try:
        verify_otp(db, current_user, email, payload.otp)
    except OTPError as e:
        raise _otp_http_error(e)

    if claim_bonus(current_user, "verification"):
        db.commit()

    return schemas.MessageResponse(message="Xác thực email thành công!")


@router.post("/change-email", response_model=schemas.MessageResponse)
def change_email_address(
    payload: schemas.ChangeEmailRequest,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.MessageResponse:
    """
    Switch to a new email; the account is unverified until the new code is confirmed.
    """
    try:
        change_email(db, current_user, payload.new_email)
    except OTPError as e:
        raise _otp_http_error(e)
    except EmailDeliveryError as e:
        logger.error(f"Change-email OTP to {payload.new_email} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Không thể gửi email xác thực. Vui lòng thử lại sau.",
        )

    return schemas.MessageResponse(message="Mã OTP đã được gửi đến email mới của bạn")
