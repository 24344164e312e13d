from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog
from app.models.user import User

logger = logging.getLogger(__name__)


def log_activity(
    db: Session,
    *,
    user: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict | None = None,
) -> None:
    role = getattr(user, "role", None)
    record = ActivityLog(
        user_id=user.id if user is not None else None,
        actor_role=getattr(role, "value", role),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.add(record)


def timetable_audit_hook(db: Session, user: User):
    """Bind an engine event hook that persists each mutation as an activity log row."""

    def record(action: str, details: dict) -> None:
        log_activity(
            db,
            user=user,
            action=action,
            entity_type="class_session",
            entity_id=details.get("class_id"),
            details=details,
        )
        try:
            db.commit()
        except SQLAlchemyError:
            # Timetable change is already committed at this point.
            db.rollback()
            logger.exception("Failed to record activity %s for user %s", action, user.id)

    return record
