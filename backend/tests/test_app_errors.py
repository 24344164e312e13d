import pytest
from fastapi import APIRouter
from sqlalchemy.exc import OperationalError

from app.core.exceptions import (
    AppError,
    AuthorizationError,
    ConcurrentModificationError,
    InvalidInputError,
    ResourceNotFoundError,
    ScheduleConflictError,
)
from app.main import app


@pytest.mark.parametrize(
    "error, status_code",
    [
        (InvalidInputError("Invalid day"), 400),
        (AuthorizationError(), 403),
        (ResourceNotFoundError("Class", "c1"), 404),
        (ScheduleConflictError("Time conflict"), 409),
        (ConcurrentModificationError(), 409),
    ],
)
def test_error_status_codes(error, status_code):
    assert isinstance(error, AppError)
    assert error.status_code == status_code


def test_app_error_defaults():
    err = AppError("Generic error")
    assert err.status_code == 500
    assert err.details == {}


def test_not_found_messages():
    assert ResourceNotFoundError("Timetable").message == "Timetable not found"
    assert ResourceNotFoundError("Class", "c1").message == "Class with id c1 not found"


def test_database_errors_surface_as_internal_error(client):
    router = APIRouter()

    @router.get("/__test__/db-failure")
    def db_failure():
        raise OperationalError("SELECT 1", {}, Exception("connection lost"))

    app.include_router(router)
    try:
        response = client.get("/__test__/db-failure")
    finally:
        app.router.routes[:] = [
            route for route in app.router.routes if getattr(route, "path", None) != "/__test__/db-failure"
        ]

    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error", "details": {}}
