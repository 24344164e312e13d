from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.timetable import Timetable  # noqa: F401
from app.models.user import User, UserRole  # noqa: F401
