"""Wallet endpoints: CAMLY transfers and the transaction ledger."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..pagination import paginate_newest_first
from ..services import wallet as wallet_service
from ..services.wallet import InsufficientBalance, WalletError

router = APIRouter(prefix="/wallet", tags=["Wallet"])
logger = logging.getLogger(__name__)


@router.post("/transfer", response_model=schemas.TransferResponse, status_code=status.HTTP_201_CREATED)
def transfer(
    payload: schemas.TransferRequest,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.TransferResponse:
    """
    Send CAMLY to another user, optionally announcing it as a gift post.
    """
    try:
        tx, gift_post = wallet_service.transfer(
            db,
            sender=current_user,
            receiver_id=payload.receiver_id,
            amount=payload.amount,
            message=payload.message,
            create_gift_post=payload.create_gift_post,
        )
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Receiver not found")
    except InsufficientBalance as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "insufficient_balance", "balance": e.balance, "required": e.required},
        )
    except WalletError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    db.refresh(current_user)
    return schemas.TransferResponse(
        transaction=schemas.WalletTransaction.model_validate(tx),
        gift_post_id=gift_post.id if gift_post else None,
        balance=current_user.camly_balance,
    )


@router.post("/transactions", response_model=schemas.WalletTransaction, status_code=status.HTTP_201_CREATED)
def record_onchain_transaction(
    payload: schemas.OnchainTransactionCreate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.WalletTransaction:
    try:
        tx = wallet_service.record_onchain_transaction(
            db,
            sender=current_user,
            receiver_id=payload.receiver_id,
            amount=payload.amount,
            tx_hash=payload.tx_hash,
            currency=payload.currency,
            message=payload.message,
        )
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Receiver not found")
    except WalletError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return schemas.WalletTransaction.model_validate(tx)


@router.get("/transactions", response_model=schemas.Page[schemas.WalletTransaction])
def list_transactions(
    cursor: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.Page[schemas.WalletTransaction]:
    query = wallet_service.list_transactions(db, current_user.id)
    items, next_cursor = paginate_newest_first(query, models.WalletTransaction, cursor, limit)
    return schemas.Page(
        items=[schemas.WalletTransaction.model_validate(t) for t in items],
        next_cursor=next_cursor,
    )
