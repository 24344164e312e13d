"""Per-user weekly timetable: validation, conflict detection and mutations.

The engine never talks to the database directly. It receives a store that
implements :class:`TimetableStore` and a resolved caller (anything with ``id``
and ``role`` attributes, normally :class:`app.models.user.User`). Every
operation performs exactly one load, mutate, save cycle and returns the stored
timetable record.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import date, datetime
from typing import Protocol

from app.core.exceptions import (
    AuthorizationError,
    InvalidInputError,
    ResourceNotFoundError,
    ScheduleConflictError,
)
from app.models.timetable import Timetable
from app.models.user import User, UserRole
from app.schemas.timetable import (
    CLASS_STATUSES,
    CLASS_TYPES,
    DAY_VALUES,
    TIME_PATTERN,
    ClassCreate,
    ClassDelete,
    ClassFields,
    ClassSession,
    ClassStatusUpdate,
    ClassUpdate,
    TimetableOut,
    Week,
    parse_time_to_minutes,
)

logger = logging.getLogger(__name__)

EventHook = Callable[[str, dict], None]


class TimetableStore(Protocol):
    def load_timetable_by_user(self, user_id: str) -> Timetable | None: ...

    def create_timetable(self, user_id: str) -> Timetable: ...

    def save_timetable(self, timetable: Timetable) -> Timetable: ...


DEFAULT_MAX_WEEKS = 104


def validate_week_index(value: int, max_weeks: int = DEFAULT_MAX_WEEKS) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInputError("Week index must be a non-negative integer", details={"field": "weekIndex"})
    if value >= max_weeks:
        raise InvalidInputError(
            f"Week index must be less than {max_weeks}",
            details={"field": "weekIndex", "max_weeks": max_weeks},
        )
    return value


def validate_day(value: str) -> str:
    if value not in DAY_VALUES:
        raise InvalidInputError(
            f"Invalid day '{value}'. Expected one of: {', '.join(DAY_VALUES)}",
            details={"field": "day"},
        )
    return value


def validate_class_type(value: str) -> str:
    if value not in CLASS_TYPES:
        raise InvalidInputError(
            f"Invalid class type '{value}'. Expected one of: {', '.join(CLASS_TYPES)}",
            details={"field": "type"},
        )
    return value


def validate_status(value: str) -> str:
    if value not in CLASS_STATUSES:
        raise InvalidInputError(
            f"Invalid status '{value}'. Expected one of: {', '.join(CLASS_STATUSES)}",
            details={"field": "status"},
        )
    return value


def normalize_time(value: str, *, field: str) -> str:
    """Validate ``H:mm``/``HH:mm`` and return the zero-padded ``HH:mm`` form."""
    if not TIME_PATTERN.match(value):
        raise InvalidInputError("Invalid time format. Use HH:mm", details={"field": field, "value": value})
    minutes = parse_time_to_minutes(value)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_class_date(value: str) -> date:
    candidate = value.strip()
    try:
        return date.fromisoformat(candidate)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(candidate.replace("Z", "+00:00")).date()
    except ValueError as exc:
        raise InvalidInputError(
            "Invalid date. Use YYYY-MM-DD", details={"field": "date", "value": value}
        ) from exc


def validate_class_date(value: str, today: date) -> str:
    parsed = parse_class_date(value)
    if parsed < today:
        raise InvalidInputError(
            "Invalid or past date. Date must be today or in the future",
            details={"field": "date", "value": value},
        )
    return parsed.isoformat()


def find_time_conflict(
    existing: Iterable[ClassSession],
    candidate: ClassSession,
    exclude_id: str | None = None,
) -> ClassSession | None:
    """Return the first session whose time range overlaps ``candidate``.

    Ranges are half-open: a class ending at 10:00 does not clash with one
    starting at 10:00.
    """
    start = parse_time_to_minutes(candidate.startTime)
    end = parse_time_to_minutes(candidate.endTime)
    for item in existing:
        if exclude_id is not None and item.id == exclude_id:
            continue
        item_start = parse_time_to_minutes(item.startTime)
        item_end = parse_time_to_minutes(item.endTime)
        if (
            (item_start <= start < item_end)
            or (item_start < end <= item_end)
            or (start <= item_start and end >= item_end)
        ):
            return item
    return None


def load_weeks(timetable: Timetable) -> list[Week]:
    return [Week.model_validate(week) for week in (timetable.schedule or [])]


def serialize_timetable(timetable: Timetable) -> TimetableOut:
    return TimetableOut(
        id=timetable.id,
        user=timetable.user_id,
        schedule=load_weeks(timetable),
        version=timetable.version,
        createdAt=timetable.created_at,
        updatedAt=timetable.updated_at,
    )


class TimetableEngine:
    def __init__(
        self,
        store: TimetableStore,
        *,
        today: Callable[[], date] = date.today,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
        on_event: EventHook | None = None,
        max_weeks: int = DEFAULT_MAX_WEEKS,
    ) -> None:
        self._store = store
        self._today = today
        self._id_factory = id_factory
        self._on_event = on_event
        self._max_weeks = max_weeks

    def add_class(self, actor: User, payload: ClassCreate) -> Timetable:
        self._require_role(actor, UserRole.student, "Only students can add classes")
        week_index, day, fields = self._validate_class_fields(payload)

        timetable = self._store.load_timetable_by_user(actor.id)
        if timetable is None:
            timetable = self._store.create_timetable(actor.id)
        weeks = load_weeks(timetable)
        while len(weeks) <= week_index:
            weeks.append(Week())

        session = ClassSession(id=self._id_factory(), status="scheduled", **fields)
        sessions = weeks[week_index].sessions(day)
        self._ensure_no_conflict(sessions, session, week_index, day)
        sessions.append(session)

        saved = self._save(timetable, weeks)
        logger.info("Class %s added for user %s (week %s, %s)", session.id, actor.id, week_index, day)
        self._emit("timetable.class.add", actor, week_index, day, session.id, subject=session.subject)
        return saved

    def edit_class(self, actor: User, payload: ClassUpdate) -> Timetable:
        self._require_role(actor, UserRole.student, "Only students can edit classes")
        week_index, day, fields = self._validate_class_fields(payload)

        timetable, weeks = self._load_day(actor.id, week_index, day)
        sessions = weeks[week_index].sessions(day)
        position = self._index_of(sessions, payload.id)
        if position is None:
            raise ResourceNotFoundError("Class", payload.id)

        # Editing always clears a cancelled/rescheduled mark.
        updated = ClassSession(id=payload.id, status="scheduled", **fields)
        self._ensure_no_conflict(sessions, updated, week_index, day, exclude_id=payload.id)
        sessions[position] = updated

        saved = self._save(timetable, weeks)
        logger.info("Class %s edited for user %s (week %s, %s)", payload.id, actor.id, week_index, day)
        self._emit("timetable.class.edit", actor, week_index, day, payload.id, subject=updated.subject)
        return saved

    def update_class_status(self, actor: User, payload: ClassStatusUpdate) -> Timetable:
        week_index = validate_week_index(payload.weekIndex, self._max_weeks)
        day = validate_day(payload.day)
        status = validate_status(payload.status)
        self._require_role(actor, UserRole.admin, "Only admins can update class status")

        owner_id = payload.userId or actor.id
        timetable, weeks = self._load_day(owner_id, week_index, day)
        sessions = weeks[week_index].sessions(day)
        position = self._index_of(sessions, payload.id)
        if position is None:
            raise ResourceNotFoundError("Class", payload.id)

        previous = sessions[position].status
        sessions[position] = sessions[position].model_copy(update={"status": status})

        saved = self._save(timetable, weeks)
        logger.info(
            "Class %s status %s -> %s by admin %s (owner %s)", payload.id, previous, status, actor.id, owner_id
        )
        self._emit(
            "timetable.class.status",
            actor,
            week_index,
            day,
            payload.id,
            owner_id=owner_id,
            previous_status=previous,
            status=status,
        )
        return saved

    def get_timetable(self, actor: User) -> Timetable:
        self._require_role(actor, UserRole.student, "Only students can view their timetable")
        timetable = self._store.load_timetable_by_user(actor.id)
        if timetable is None:
            raise ResourceNotFoundError("Timetable")
        return timetable

    def get_timetable_for_user(self, actor: User, user_id: str) -> Timetable:
        self._require_role(actor, UserRole.admin, "Only admins can view another user's timetable")
        timetable = self._store.load_timetable_by_user(user_id)
        if timetable is None:
            raise ResourceNotFoundError("Timetable")
        return timetable

    def delete_class(self, actor: User, payload: ClassDelete) -> Timetable:
        self._require_role(actor, UserRole.student, "Only students can delete classes")
        week_index = validate_week_index(payload.weekIndex, self._max_weeks)
        day = validate_day(payload.day)

        timetable, weeks = self._load_day(actor.id, week_index, day)
        sessions = weeks[week_index].sessions(day)
        remaining = [item for item in sessions if item.id != payload.id]
        if len(remaining) == len(sessions):
            # Unknown ids are a no-op; nothing to persist.
            return timetable

        weeks[week_index].replace_sessions(day, remaining)
        saved = self._save(timetable, weeks)
        logger.info("Class %s deleted for user %s (week %s, %s)", payload.id, actor.id, week_index, day)
        self._emit("timetable.class.delete", actor, week_index, day, payload.id)
        return saved

    def _validate_class_fields(self, payload: ClassFields) -> tuple[int, str, dict]:
        required = {
            "subject": payload.subject,
            "professor": payload.professor,
            "startTime": payload.startTime,
            "endTime": payload.endTime,
            "room": payload.room,
            "type": payload.type,
            "date": payload.date,
            "day": payload.day,
        }
        missing = sorted(name for name, value in required.items() if not value or not value.strip())
        if missing:
            raise InvalidInputError("All fields are required", details={"missing": missing})

        week_index = validate_week_index(payload.weekIndex, self._max_weeks)
        day = validate_day(payload.day)
        class_type = validate_class_type(payload.type)
        start_time = normalize_time(payload.startTime, field="startTime")
        end_time = normalize_time(payload.endTime, field="endTime")
        class_date = validate_class_date(payload.date, self._today())

        fields = {
            "subject": payload.subject.strip(),
            "professor": payload.professor.strip(),
            "startTime": start_time,
            "endTime": end_time,
            "room": payload.room.strip(),
            "type": class_type,
            "date": class_date,
        }
        return week_index, day, fields

    def _load_day(self, owner_id: str, week_index: int, day: str) -> tuple[Timetable, list[Week]]:
        timetable = self._store.load_timetable_by_user(owner_id)
        if timetable is None:
            raise ResourceNotFoundError("Timetable")
        weeks = load_weeks(timetable)
        if week_index >= len(weeks):
            raise ResourceNotFoundError("Week", str(week_index))
        return timetable, weeks

    def _ensure_no_conflict(
        self,
        sessions: list[ClassSession],
        candidate: ClassSession,
        week_index: int,
        day: str,
        exclude_id: str | None = None,
    ) -> None:
        clash = find_time_conflict(sessions, candidate, exclude_id=exclude_id)
        if clash is None:
            return
        raise ScheduleConflictError(
            f"Time conflict with {clash.subject} ({clash.startTime}-{clash.endTime})",
            details={"weekIndex": week_index, "day": day, "conflictingClassId": clash.id},
        )

    def _save(self, timetable: Timetable, weeks: list[Week]) -> Timetable:
        timetable.schedule = [week.model_dump() for week in weeks]
        return self._store.save_timetable(timetable)

    def _emit(self, action: str, actor: User, week_index: int, day: str, class_id: str, **extra) -> None:
        if self._on_event is None:
            return
        details = {"actor_id": actor.id, "weekIndex": week_index, "day": day, "class_id": class_id}
        details.update(extra)
        self._on_event(action, details)

    @staticmethod
    def _index_of(sessions: list[ClassSession], class_id: str) -> int | None:
        for position, item in enumerate(sessions):
            if item.id == class_id:
                return position
        return None

    @staticmethod
    def _require_role(actor: User, role: UserRole, message: str) -> None:
        if actor.role != role:
            raise AuthorizationError(message)
