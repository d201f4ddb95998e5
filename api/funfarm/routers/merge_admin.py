"""Admin endpoints for merging accounts into Fun Profile."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_admin
from ..deps import get_db
from ..fun_profile import FunProfileError
from ..services import merge as merge_service
from ..services.merge import MergeRequestError
from ..settings import MERGE_BATCH_DEFAULT_LIMIT

router = APIRouter(prefix="/admin/merge", tags=["Admin"])
logger = logging.getLogger(__name__)


@router.get("/users", response_model=schemas.MergeUsersResponse)
def list_users_for_merge(
    tab: str = Query("unmerged", pattern="^(unmerged|pending|provisioned|merged|all)$"),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
) -> schemas.MergeUsersResponse:
    return schemas.MergeUsersResponse(**merge_service.list_users_for_merge(db, tab=tab, limit=limit))


@router.post("/requests", response_model=schemas.MergeRequestResponse)
def send_merge_request(
    payload: schemas.MergeRequestCreate,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
) -> schemas.MergeRequestResponse:
    """
    Send one user (``user_id``) or a batch of unmerged users (``batch_all``) to Fun Profile.

    Upstream failures return 502 with the upstream details.
    """
    limit = payload.limit if "limit" in payload.model_fields_set else MERGE_BATCH_DEFAULT_LIMIT
    try:
        result = merge_service.request_merge(
            db,
            admin,
            user_id=payload.user_id,
            batch_all=payload.batch_all,
            limit=limit,
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except MergeRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except FunProfileError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": str(e), "status_code": e.status_code, "details": e.details},
        )
    return schemas.MergeRequestResponse(**result)


@router.get("/conflicts", response_model=list[schemas.MergeConflict])
def list_conflicts(
    resolved: bool | None = False,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
) -> list[schemas.MergeConflict]:
    conflicts = merge_service.list_conflicts(db, resolved=resolved, limit=limit)
    return [schemas.MergeConflict.model_validate(c) for c in conflicts]


@router.post("/conflicts/{conflict_id}/resolve", response_model=schemas.MergeConflict)
def resolve_conflict(
    conflict_id: UUID,
    payload: schemas.ConflictResolveRequest,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
) -> schemas.MergeConflict:
    try:
        conflict = merge_service.resolve_conflict(db, conflict_id, admin, payload.action, payload.notes)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conflict not found")
    except MergeRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return schemas.MergeConflict.model_validate(conflict)
