from fastapi import APIRouter, Depends, status

from app.api.deps import get_timetable_engine, require_roles
from app.models.user import User, UserRole
from app.schemas.timetable import (
    ClassCreate,
    ClassDelete,
    ClassStatusUpdate,
    ClassUpdate,
    TimetableOut,
)
from app.services.timetable_engine import TimetableEngine, serialize_timetable

router = APIRouter()


@router.get("", response_model=TimetableOut)
def get_my_timetable(
    current_user: User = Depends(require_roles(UserRole.student)),
    engine: TimetableEngine = Depends(get_timetable_engine),
) -> TimetableOut:
    return serialize_timetable(engine.get_timetable(current_user))


@router.post("/class", response_model=TimetableOut, status_code=status.HTTP_201_CREATED)
def add_class(
    payload: ClassCreate,
    current_user: User = Depends(require_roles(UserRole.student)),
    engine: TimetableEngine = Depends(get_timetable_engine),
) -> TimetableOut:
    return serialize_timetable(engine.add_class(current_user, payload))


@router.put("/class", response_model=TimetableOut)
def edit_class(
    payload: ClassUpdate,
    current_user: User = Depends(require_roles(UserRole.student)),
    engine: TimetableEngine = Depends(get_timetable_engine),
) -> TimetableOut:
    return serialize_timetable(engine.edit_class(current_user, payload))


@router.put("/class/status", response_model=TimetableOut)
def update_class_status(
    payload: ClassStatusUpdate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    engine: TimetableEngine = Depends(get_timetable_engine),
) -> TimetableOut:
    return serialize_timetable(engine.update_class_status(current_user, payload))


@router.delete("/class", response_model=TimetableOut)
def delete_class(
    payload: ClassDelete,
    current_user: User = Depends(require_roles(UserRole.student)),
    engine: TimetableEngine = Depends(get_timetable_engine),
) -> TimetableOut:
    return serialize_timetable(engine.delete_class(current_user, payload))


@router.get("/users/{user_id}", response_model=TimetableOut)
def get_user_timetable(
    user_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    engine: TimetableEngine = Depends(get_timetable_engine),
) -> TimetableOut:
    return serialize_timetable(engine.get_timetable_for_user(current_user, user_id))
