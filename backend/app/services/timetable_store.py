from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConcurrentModificationError
from app.models.timetable import Timetable

logger = logging.getLogger(__name__)


class SqlTimetableStore:
    """SQLAlchemy persistence for one timetable document per user."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def load_timetable_by_user(self, user_id: str) -> Timetable | None:
        return self.db.execute(select(Timetable).where(Timetable.user_id == user_id)).scalar_one_or_none()

    def create_timetable(self, user_id: str) -> Timetable:
        # Flushed, not committed: the first save commits the row together with
        # its first class so a failed add leaves nothing behind.
        timetable = Timetable(user_id=user_id, schedule=[])
        self.db.add(timetable)
        try:
            self.db.flush()
        except IntegrityError as exc:
            # Another request created this user's timetable first.
            self.db.rollback()
            logger.warning("Duplicate timetable creation rejected for user %s", user_id)
            raise ConcurrentModificationError() from exc
        return timetable

    def save_timetable(self, timetable: Timetable) -> Timetable:
        self.db.add(timetable)
        try:
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            logger.warning("Stale timetable write rejected for user %s", timetable.user_id)
            raise ConcurrentModificationError() from exc
        self.db.refresh(timetable)
        return timetable
