# Re-export all models for convenient imports
from app.models.school import School
from app.models.user import (
    User, UserRole, PermissionName, PaymentRecord, PaymentKind, PaymentStatus, STAFF_ROLES
)
from app.models.permission import PermissionGrant
from app.models.section import Section, SessionStatus, section_students
from app.models.course import Course, course_teachers, course_students
from app.models.assignment import Assignment, Submission
from app.models.quiz import Quiz, QuizSubmission
from app.models.assessment import Assessment, AssessmentType, Grade
from app.models.timetable import Timetable, TimetableSlot
from app.models.attendance import AttendanceRecord, AttendanceStatus
from app.models.notification import (
    Notification, NotificationRecipient, NotificationCategory,
    NotificationPriority, NotificationStatus, RecipientType
)
from app.models.due_date_config import DueDateConfig

__all__ = [
    # Tenancy
    "School",
    # Users
    "User",
    "UserRole",
    "PermissionName",
    "PermissionGrant",
    "PaymentRecord",
    "PaymentKind",
    "PaymentStatus",
    "STAFF_ROLES",
    # Rosters
    "Section",
    "SessionStatus",
    "section_students",
    "Course",
    "course_teachers",
    "course_students",
    "Timetable",
    "TimetableSlot",
    "AttendanceRecord",
    "AttendanceStatus",
    # Coursework
    "Assignment",
    "Submission",
    "Quiz",
    "QuizSubmission",
    "Assessment",
    "AssessmentType",
    "Grade",
    # Notifications
    "Notification",
    "NotificationRecipient",
    "NotificationCategory",
    "NotificationPriority",
    "NotificationStatus",
    "RecipientType",
    # Settings
    "DueDateConfig",
]
