from fastapi import APIRouter
from app.api.v1.endpoints import (
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

api_router = APIRouter()

# /api/health/live, /api/health/ready, /api/health/deep
api_router.include_router(health.router)

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(schools.router, prefix="/schools", tags=["Schools"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(permissions.router, prefix="/permissions", tags=["Permissions"])
api_router.include_router(sections.router, prefix="/sections", tags=["Sections"])
api_router.include_router(courses.router, prefix="/courses", tags=["Courses"])
api_router.include_router(assignments.router, prefix="/assignments", tags=["Assignments"])
api_router.include_router(submissions.router, prefix="/submissions", tags=["Submissions"])
api_router.include_router(quizzes.router, prefix="/quizzes", tags=["Quizzes"])
api_router.include_router(assessments.router, prefix="/assessments", tags=["Assessments"])
api_router.include_router(timetable.router, prefix="/timetable", tags=["Timetable"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["Attendance"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(due_date_config.router, prefix="/due-date-config", tags=["Payments"])
