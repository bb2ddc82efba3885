# API endpoints
from . import (
    auth,
    schools,
    users,
    permissions,
    sections,
    courses,
    assignments,
    submissions,
    quizzes,
    assessments,
    timetable,
    attendance,
    notifications,
    due_date_config,
    health,
)

__all__ = [
    "auth",
    "schools",
    "users",
    "permissions",
    "sections",
    "courses",
    "assignments",
    "submissions",
    "quizzes",
    "assessments",
    "timetable",
    "attendance",
    "notifications",
    "due_date_config",
    "health",
]
