"""Audit logging utility for admin actions."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models

logger = logging.getLogger(__name__)


def log_admin_action(
    db: Session,
    actor_id: UUID,
    action: str,
    target_type: str | None = None,
    target_id: UUID | str | None = None,
    note: str | None = None,
    details: dict[str, Any] | None = None,
    commit: bool = True,
) -> models.AuditLog:
    """
    Log an admin action to the audit log.

    Args:
        db: Database session
        actor_id: ID of the admin performing the action
        action: Action name (e.g., "recalculate_rewards", "reset_reward", "resolve_conflict")
        target_type: Type of target (e.g., "user", "conflict", "merge_batch")
        target_id: ID of the target entity
        note: Free-form note
        details: Structured context stored as JSON
        commit: Commit immediately; pass False to join the caller's transaction

    Returns:
        The created AuditLog entry
    """
    audit_entry = models.AuditLog(
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=str(target_id) if target_id is not None else None,
        note=note,
        details=details,
    )
    db.add(audit_entry)
    if commit:
        db.commit()
        db.refresh(audit_entry)
    logger.info(f"Audit: {action} by {actor_id} on {target_type}:{target_id}")
    return audit_entry
