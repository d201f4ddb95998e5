"""Email one-time password service: signup verification and email change."""

from __future__ import annotations

import logging
import math
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from ..settings import OTP_EXPIRY_MINUTES, OTP_MAX_ATTEMPTS, OTP_RESEND_COOLDOWN_SECONDS
from ..utils.dates import as_utc
from .email import EmailDeliveryError, send_change_email_otp, send_otp_email

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class OTPError(ValueError):
    """OTP flow failure carrying a machine-readable code for the client."""

    def __init__(self, code: str, message: str, **extra: Any):
        super().__init__(message)
        self.code = code
        self.message = message
        self.extra = extra

    def as_detail(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.extra}


def generate_otp() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def _latest_unverified(db: Session, user_id: UUID, email: str) -> models.EmailOTP | None:
    return (
        db.query(models.EmailOTP)
        .filter(
            models.EmailOTP.user_id == user_id,
            models.EmailOTP.email == email,
            models.EmailOTP.verified_at.is_(None),
        )
        .order_by(models.EmailOTP.created_at.desc())
        .first()
    )


def _new_otp(db: Session, user_id: UUID, email: str) -> tuple[models.EmailOTP, str]:
    code = generate_otp()
    record = models.EmailOTP(
        user_id=user_id,
        email=email,
        otp_code=code,
        attempts=0,
        max_attempts=OTP_MAX_ATTEMPTS,
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=OTP_EXPIRY_MINUTES),
    )
    db.add(record)
    return record, code


def send_otp(db: Session, user: models.Profile, email: str) -> models.EmailOTP:
    """
    Create and email a fresh verification code for (user, email).

    Raises:
        OTPError("rate_limit"): a code was sent less than the cooldown ago
        EmailDeliveryError: Resend failed; the new code is removed
    """
    now = datetime.now(timezone.utc)
    existing = _latest_unverified(db, user.id, email)
    if existing is not None:
        elapsed = (now - as_utc(existing.created_at)).total_seconds()
        if elapsed < OTP_RESEND_COOLDOWN_SECONDS:
            remaining = math.ceil(OTP_RESEND_COOLDOWN_SECONDS - elapsed)
            raise OTPError(
                "rate_limit",
                f"Vui lòng đợi {remaining} giây trước khi gửi lại",
                remaining_seconds=remaining,
            )

    # Only the newest code is ever valid
    db.query(models.EmailOTP).filter(
        models.EmailOTP.user_id == user.id,
        models.EmailOTP.email == email,
        models.EmailOTP.verified_at.is_(None),
    ).delete(synchronize_session=False)

    record, code = _new_otp(db, user.id, email)
    db.commit()
    db.refresh(record)

    try:
        send_otp_email(email, code, user.display_name)
    except EmailDeliveryError:
        db.delete(record)
        db.commit()
        raise

    logger.info(f"Sent verification OTP to {email} for user {user.id}")
    return record


def verify_otp(db: Session, user: models.Profile, email: str, otp: str) -> models.EmailOTP:
    """
    Check a code against the latest unverified OTP for (user, email).

    Raises OTPError with code invalid_otp, expired, max_attempts or wrong_otp.
    """
    record = _latest_unverified(db, user.id, email)
    if record is None:
        raise OTPError("invalid_otp", "Mã OTP không hợp lệ hoặc đã hết hạn")

    if as_utc(record.expires_at) < datetime.now(timezone.utc):
        db.delete(record)
        db.commit()
        raise OTPError("expired", "Mã OTP đã hết hạn. Vui lòng yêu cầu mã mới.")

    if record.attempts >= record.max_attempts:
        db.delete(record)
        db.commit()
        raise OTPError("max_attempts", "Quá nhiều lần thử sai. Vui lòng yêu cầu mã mới.")

    if not secrets.compare_digest(record.otp_code, otp.strip()):
        record.attempts += 1
        db.commit()
        remaining = record.max_attempts - record.attempts
        raise OTPError(
            "wrong_otp",
            f"Mã OTP không đúng. Còn {remaining} lần thử.",
            remaining_attempts=remaining,
        )

    record.verified_at = datetime.now(timezone.utc)
    user.email_verified = True
    db.commit()
    logger.info(f"Email {email} verified for user {user.id}")
    return record


def change_email(db: Session, user: models.Profile, new_email: str) -> models.EmailOTP:
    """
    Move a profile to a new email and send a verification code to it.

    The profile becomes unverified until the code is confirmed. If the email
    cannot be delivered the code is removed and EmailDeliveryError propagates.
    """
    new_email = new_email.strip()
    if not EMAIL_RE.match(new_email):
        raise OTPError("invalid_email", "Email không hợp lệ")

    if user.email and user.email.lower() == new_email.lower():
        raise OTPError("same_email", "Email mới phải khác email cũ")

    taken = (
        db.query(models.Profile.id)
        .filter(func.lower(models.Profile.email) == new_email.lower(), models.Profile.id != user.id)
        .first()
    )
    if taken:
        raise OTPError("email_exists", "Email này đã được sử dụng bởi tài khoản khác")

    old_email = user.email
    user.email = new_email
    user.email_verified = False
    db.query(models.EmailOTP).filter(models.EmailOTP.user_id == user.id).delete(synchronize_session=False)
    record, code = _new_otp(db, user.id, new_email)
    db.commit()
    db.refresh(record)

    try:
        send_change_email_otp(new_email, code, user.display_name)
    except EmailDeliveryError:
        db.delete(record)
        db.commit()
        raise

    logger.info(f"User {user.id} changed email {old_email} -> {new_email}")
    return record
