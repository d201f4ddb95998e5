from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any
from uuid import UUID

from celery import Celery

logger = logging.getLogger(__name__)

DEFAULT_REDIS = "redis://cache:6379/0"

celery_app = Celery(
    "funfarm",
    broker=os.getenv("CELERY_BROKER_URL", DEFAULT_REDIS),
    backend=os.getenv("CELERY_RESULT_BACKEND", DEFAULT_REDIS),
)

celery_app.conf.update(
    task_default_queue="default",
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,
    worker_max_tasks_per_child=100,
    task_routes={"funfarm.tasks.recalculate_rewards": {"queue": "default"}},
    beat_schedule={
        "cleanup-old-notifications": {
            "task": "funfarm.tasks.cleanup_old_notifications",
            "schedule": 86400.0,  # Daily (in seconds)
        },
    },
    timezone="UTC",
)


@celery_app.task(name="funfarm.tasks.recalculate_rewards", bind=True)
def recalculate_rewards(
    self,
    cutoff: str | None = None,
    user_ids: list[str] | None = None,
    actor_id: str | None = None,
) -> dict[str, Any]:
    """
    Run the reward recalculation batch out of band.

    ``cutoff`` is an ISO 8601 timestamp fixed by the caller when the job was queued.
    """
    from .db import SessionLocal
    from .services.reward_recalculation import recalculate_all_rewards
    from .utils.audit import log_admin_action

    db = SessionLocal()
    try:
        report = recalculate_all_rewards(
            db,
            cutoff=datetime.fromisoformat(cutoff) if cutoff else None,
            user_ids=[UUID(u) for u in user_ids] if user_ids is not None else None,
        )
        summary = {
            "status": "success",
            "cutoff": report.cutoff.isoformat(),
            "processed": report.processed,
            "updated": report.updated,
            "total_before": report.total_before,
            "total_after": report.total_after,
        }
        if actor_id:
            log_admin_action(
                db,
                actor_id=UUID(actor_id),
                action="recalculate_rewards",
                target_type="rewards",
                details=summary,
            )
        logger.info("Background reward recalculation task %s completed: %s", self.request.id, summary)
        return summary
    except Exception as e:
        logger.error("Background reward recalculation failed: %s", e, exc_info=True)
        raise
    finally:
        db.close()


@celery_app.task(name="funfarm.tasks.cleanup_old_notifications", bind=True)
def cleanup_old_notifications(self, days: int = 90) -> dict[str, Any]:
    """Periodic task: delete notifications older than ``days``."""
    from .db import SessionLocal
    from .services.notifications import NotificationService

    db = SessionLocal()
    try:
        deleted = NotificationService.cleanup_old_notifications(db, days=days)
        return {"status": "success", "deleted": deleted}
    finally:
        db.close()
