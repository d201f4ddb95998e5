"""Email service using Resend for sending transactional emails."""

from __future__ import annotations

import logging
import os
from typing import Any

import resend

from ..settings import OTP_EXPIRY_MINUTES

logger = logging.getLogger(__name__)

# Resend configuration from environment
RESEND_FROM_EMAIL = os.getenv("RESEND_FROM_EMAIL", "Fun Farm <noreply@farm.fun.rich>")


class EmailDeliveryError(RuntimeError):
    """Resend rejected or failed to deliver a message."""


def _init_resend() -> bool:
    """Initialize Resend API key. Returns True if configured."""
    api_key = os.getenv("RESEND_API_KEY")
    if not api_key:
        logger.warning("RESEND_API_KEY not configured - email sending disabled")
        return False
    resend.api_key = api_key
    return True


def _render_code_email(title: str, intro: str, code: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: linear-gradient(135deg, #22c55e 0%, #16a34a 100%); padding: 30px; border-radius: 10px 10px 0 0; text-align: center;">
        <h1 style="color: white; margin: 0; font-size: 24px;">Fun Farm</h1>
    </div>

    <div style="background: #f9f9f9; padding: 30px; border-radius: 0 0 10px 10px;">
        <p style="margin-top: 0;">{intro}</p>

        <div style="text-align: center; margin: 30px 0;">
            <span style="font-size: 36px; font-weight: bold; letter-spacing: 8px; color: #16a34a; font-family: monospace;">{code}</span>
        </div>

        <p style="color: #666; font-size: 14px;">
            Mã có hiệu lực trong {OTP_EXPIRY_MINUTES} phút. Không chia sẻ mã này với bất kỳ ai.
        </p>
    </div>

    <div style="text-align: center; padding: 20px; color: #999; font-size: 12px;">
        <p>© Fun Farm - FUN Ecosystem</p>
    </div>
</body>
</html>
"""


def _send(to_email: str, subject: str, html: str, text: str) -> dict[str, Any]:
    try:
        params: resend.Emails.SendParams = {
            "from": RESEND_FROM_EMAIL,
            "to": [to_email],
            "subject": subject,
            "html": html,
            "text": text,
        }
        response = resend.Emails.send(params)
    except Exception as e:
        logger.error(f"Failed to send '{subject}' to {to_email}: {e}")
        raise EmailDeliveryError(str(e)) from e

    logger.info(f"Email sent to {to_email}, id: {response.get('id', 'unknown')}")
    return response


def send_otp_email(to_email: str, otp: str, display_name: str | None = None) -> dict[str, Any] | None:
    """
    Send a six-digit email verification code.

    Returns:
        Resend API response, or None if email sending is disabled

    Raises:
        EmailDeliveryError: Resend failed to send
    """
    if not _init_resend():
        logger.info(f"Email sending disabled - would send verification code to {to_email}")
        return None

    greeting = f"Xin chào {display_name}!" if display_name else "Xin chào!"
    html = _render_code_email(
        "Mã xác minh Fun Farm",
        f"{greeting} Đây là mã xác minh email của bạn:",
        otp,
    )
    text = f"""{greeting}

Mã xác minh Fun Farm của bạn: {otp}

Mã có hiệu lực trong {OTP_EXPIRY_MINUTES} phút.
"""
    return _send(to_email, f"Mã xác minh Fun Farm - {otp}", html, text)


def send_change_email_otp(to_email: str, otp: str, display_name: str | None = None) -> dict[str, Any] | None:
    """
    Send the verification code for a new email address after an email change.
    """
    if not _init_resend():
        logger.info(f"Email sending disabled - would send change-email code to {to_email}")
        return None

    greeting = f"Xin chào {display_name}!" if display_name else "Xin chào!"
    html = _render_code_email(
        "Xác minh email mới - Fun Farm",
        f"{greeting} Bạn vừa đổi email tài khoản Fun Farm. Nhập mã sau để xác minh email mới:",
        otp,
    )
    text = f"""{greeting}

Bạn vừa đổi email tài khoản Fun Farm. Mã xác minh email mới: {otp}

Mã có hiệu lực trong {OTP_EXPIRY_MINUTES} phút.
"""
    return _send(to_email, f"Xác minh email mới Fun Farm - {otp}", html, text)
