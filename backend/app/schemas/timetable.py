from __future__ import annotations

import re
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, StrictInt

DAY_VALUES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

CLASS_TYPES = ("Lecture", "Lab", "Tutorial", "Seminar")

CLASS_STATUSES = ("scheduled", "cancelled", "rescheduled")

TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")

ClassType = Literal["Lecture", "Lab", "Tutorial", "Seminar"]
ClassStatus = Literal["scheduled", "cancelled", "rescheduled"]


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:mm 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


class ClassSession(BaseModel):
    id: str
    subject: str
    professor: str
    startTime: str
    endTime: str
    room: str
    type: ClassType
    date: str
    status: ClassStatus = "scheduled"


class Week(BaseModel):
    Monday: list[ClassSession] = Field(default_factory=list)
    Tuesday: list[ClassSession] = Field(default_factory=list)
    Wednesday: list[ClassSession] = Field(default_factory=list)
    Thursday: list[ClassSession] = Field(default_factory=list)
    Friday: list[ClassSession] = Field(default_factory=list)
    Saturday: list[ClassSession] = Field(default_factory=list)
    Sunday: list[ClassSession] = Field(default_factory=list)

    def sessions(self, day: str) -> list[ClassSession]:
        return getattr(self, day)

    def replace_sessions(self, day: str, sessions: list[ClassSession]) -> None:
        setattr(self, day, sessions)


# Request payloads only pin down shape and types. Day, type, time, date and
# status rules are enforced by the timetable engine so that direct callers get
# the same checks as HTTP callers.
class ClassFields(BaseModel):
    weekIndex: StrictInt
    day: str
    subject: str
    professor: str
    startTime: str
    endTime: str
    room: str
    type: str
    date: str


class ClassCreate(ClassFields):
    pass


class ClassUpdate(ClassFields):
    id: str = Field(min_length=1, max_length=64)


class ClassStatusUpdate(BaseModel):
    weekIndex: StrictInt
    day: str
    id: str = Field(min_length=1, max_length=64)
    status: str
    userId: str | None = Field(
        default=None,
        max_length=36,
        description="Student whose timetable is addressed; defaults to the caller.",
    )


class ClassDelete(BaseModel):
    weekIndex: StrictInt
    day: str
    id: str = Field(min_length=1, max_length=64)


class TimetableOut(BaseModel):
    id: str
    user: str
    schedule: list[Week]
    version: int
    createdAt: datetime | None = None
    updatedAt: datetime | None = None
