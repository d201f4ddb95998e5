"""CAMLY transfers between profiles."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import models
from .notifications import NotificationService

logger = logging.getLogger(__name__)


class WalletError(ValueError):
    pass


class InsufficientBalance(WalletError):
    def __init__(self, balance: int, required: int):
        super().__init__(f"Insufficient balance: have {balance}, need {required}")
        self.balance = balance
        self.required = required


def debit(profile: models.Profile, amount: int) -> None:
    """Take ``amount`` from a profile's balance; the caller commits."""
    balance = profile.camly_balance or 0
    if balance < amount:
        raise InsufficientBalance(balance, amount)
    profile.camly_balance = balance - amount


def credit(profile: models.Profile, amount: int) -> None:
    profile.camly_balance = (profile.camly_balance or 0) + amount


def _lock_profile(db: Session, user_id: UUID) -> models.Profile | None:
    return db.query(models.Profile).filter(models.Profile.id == user_id).with_for_update().first()


def transfer(
    db: Session,
    sender: models.Profile,
    receiver_id: UUID,
    amount: int,
    message: str | None = None,
    create_gift_post: bool = False,
) -> tuple[models.WalletTransaction, models.Post | None]:
    """
    Move CAMLY from sender to receiver and record it in the ledger.

    Debit, credit, ledger row and the optional gift post are one transaction.
    """
    if amount <= 0:
        raise WalletError("Amount must be positive")
    if receiver_id == sender.id:
        raise WalletError("Cannot transfer to yourself")

    receiver = _lock_profile(db, receiver_id)
    if receiver is None or receiver.banned:
        raise LookupError("Receiver not found")
    payer = _lock_profile(db, sender.id)

    try:
        debit(payer, amount)
        credit(receiver, amount)

        gift_post = None
        if create_gift_post:
            name = receiver.display_name or "bạn"
            content = f"Đã tặng {amount:,} CAMLY cho @{name}"
            if message:
                content += f"\n\n{message}"
            gift_post = models.Post(
                author_id=payer.id,
                post_type="gift",
                content=content,
                gift_receiver_id=receiver.id,
            )
            db.add(gift_post)
            db.flush()

        tx = models.WalletTransaction(
            sender_id=payer.id,
            receiver_id=receiver.id,
            amount=amount,
            currency="CAMLY",
            message=message,
            post_id=gift_post.id if gift_post else None,
            status="completed",
        )
        db.add(tx)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(tx)
    logger.info(f"Transfer {tx.id}: {amount} CAMLY {payer.id} -> {receiver.id}")

    NotificationService.create_notification(
        db,
        user_id=receiver.id,
        notification_type="gift_received" if gift_post else "transfer_received",
        content=f"{payer.display_name or 'Ai đó'} đã gửi bạn {amount:,} CAMLY",
        from_user_id=payer.id,
        post_id=gift_post.id if gift_post else None,
    )
    return tx, gift_post


def record_onchain_transaction(
    db: Session,
    sender: models.Profile,
    receiver_id: UUID,
    amount: int,
    tx_hash: str,
    currency: str = "CAMLY",
    message: str | None = None,
) -> models.WalletTransaction:
    """Ledger entry for a transfer settled on-chain; balances are not touched."""
    if amount <= 0:
        raise WalletError("Amount must be positive")
    if not db.query(models.Profile.id).filter(models.Profile.id == receiver_id).first():
        raise LookupError("Receiver not found")

    tx = models.WalletTransaction(
        sender_id=sender.id,
        receiver_id=receiver_id,
        amount=amount,
        currency=currency,
        message=message,
        status="completed",
        tx_hash=tx_hash,
    )
    db.add(tx)
    db.commit()
    db.refresh(tx)
    logger.info(f"Recorded on-chain tx {tx_hash} ({amount} {currency}) {sender.id} -> {receiver_id}")
    return tx


def list_transactions(db: Session, user_id: UUID):
    """Query of a profile's sent and received rows; the caller orders and paginates."""
    return db.query(models.WalletTransaction).filter(
        or_(
            models.WalletTransaction.sender_id == user_id,
            models.WalletTransaction.receiver_id == user_id,
        )
    )
