"""Marketplace order endpoints."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, require_shipper
from ..deps import get_db
from ..pagination import paginate_newest_first
from ..services import orders as order_service
from ..services.orders import InvalidOrderTransition, OrderError, OrderPermissionError
from ..services.wallet import InsufficientBalance

router = APIRouter(prefix="/orders", tags=["Orders"])
logger = logging.getLogger(__name__)


def _order_http_error(e: Exception) -> HTTPException:
    if isinstance(e, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e.args[0]) if e.args else "Not found")
    if isinstance(e, InvalidOrderTransition):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, OrderPermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("", response_model=schemas.Order, status_code=status.HTTP_201_CREATED)
def place_order(
    payload: schemas.OrderCreate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.Order:
    """
    Buy ``quantity_kg`` of a product. The CAMLY total is taken from the buyer's balance.
    """
    try:
        order = order_service.place_order(
            db,
            buyer=current_user,
            post_id=payload.post_id,
            quantity_kg=payload.quantity_kg,
            delivery_option=payload.delivery_option,
            delivery_address=payload.delivery_address,
        )
    except (LookupError, OrderError, InsufficientBalance) as e:
        raise _order_http_error(e)
    return schemas.Order.model_validate(order)


@router.get("", response_model=schemas.Page[schemas.Order])
def list_orders(
    role: str = Query("buyer", pattern="^(buyer|seller|shipper)$"),
    status_group: str | None = Query(None, pattern="^(pending|delivering|completed|cancelled|available)$"),
    cursor: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.Page[schemas.Order]:
    try:
        query = order_service.list_orders_query(db, current_user, role, status_group)
    except OrderError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    items, next_cursor = paginate_newest_first(query, models.Order, cursor, limit)
    return schemas.Page(items=[schemas.Order.model_validate(o) for o in items], next_cursor=next_cursor)


@router.get("/{order_id}", response_model=schemas.Order)
def get_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.Order:
    order = db.query(models.Order).filter(models.Order.id == order_id).first()
    if order is None or current_user.id not in (order.buyer_id, order.seller_id, order.shipper_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return schemas.Order.model_validate(order)


@router.post("/{order_id}/status", response_model=schemas.Order)
def update_order_status(
    order_id: UUID,
    payload: schemas.OrderStatusUpdate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.Order:
    try:
        order = order_service.update_status(db, order_id, current_user, payload.status)
    except (LookupError, OrderError) as e:
        raise _order_http_error(e)
    return schemas.Order.model_validate(order)


@router.post("/{order_id}/accept", response_model=schemas.Order)
def accept_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    shipper: models.Profile = Depends(require_shipper),
) -> schemas.Order:
    try:
        order = order_service.accept_order(db, order_id, shipper)
    except (LookupError, OrderError) as e:
        raise _order_http_error(e)
    return schemas.Order.model_validate(order)


@router.post("/{order_id}/complete", response_model=schemas.Order)
def complete_delivery(
    order_id: UUID,
    db: Session = Depends(get_db),
    shipper: models.Profile = Depends(require_shipper),
) -> schemas.Order:
    try:
        order = order_service.complete_delivery(db, order_id, shipper)
    except (LookupError, OrderError) as e:
        raise _order_http_error(e)
    return schemas.Order.model_validate(order)
