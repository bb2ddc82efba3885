# Pydantic schemas
from app.schemas.user import (
    UserBrief,
    UserResponse,
    UserCreate,
    UserUpdate,
    PaymentCreate,
    PaymentResponse,
    DueDateConfigUpdate,
    DueDateConfigResponse,
)
from app.schemas.auth import (
    SignupRequest,
    LoginRequest,
    ProfileUpdate,
    SchoolResponse,
    SchoolUpdate,
    TokenResponse,
)
from app.schemas.permission import (
    PermissionChange,
    PermissionSet,
    PermissionGrantResponse,
)
from app.schemas.academics import (
    SectionCreate,
    SectionUpdate,
    SectionResponse,
    AddStudentsRequest,
    CourseCreate,
    CourseUpdate,
    CourseResponse,
    EnrollRequest,
)
from app.schemas.assignment import (
    AssignmentUpdate,
    AssignmentResponse,
    SubmissionResponse,
    GradeSubmissionRequest,
    AssessmentCreate,
    AssessmentResponse,
    GradeEntry,
    GradesUpsert,
    GradeResponse,
)
from app.schemas.quiz import (
    QuestionIn,
    QuizCreate,
    QuizUpdate,
    QuizResponse,
    QuizSubmitRequest,
    QuizSubmissionResponse,
)
from app.schemas.timetable import (
    TimetableCreate,
    TimetableStructureUpdate,
    SlotAssign,
    TimetableResponse,
    AttendanceEntry,
    AttendanceMark,
    AttendanceResponse,
)
from app.schemas.notification import (
    NotificationSend,
    TestNotificationRequest,
    NotificationResponse,
)

__all__ = [
    "UserBrief",
    "UserResponse",
    "UserCreate",
    "UserUpdate",
    "PaymentCreate",
    "PaymentResponse",
    "DueDateConfigUpdate",
    "DueDateConfigResponse",
    "SignupRequest",
    "LoginRequest",
    "ProfileUpdate",
    "SchoolResponse",
    "SchoolUpdate",
    "TokenResponse",
    "PermissionChange",
    "PermissionSet",
    "PermissionGrantResponse",
    "SectionCreate",
    "SectionUpdate",
    "SectionResponse",
    "AddStudentsRequest",
    "CourseCreate",
    "CourseUpdate",
    "CourseResponse",
    "EnrollRequest",
    "AssignmentUpdate",
    "AssignmentResponse",
    "SubmissionResponse",
    "GradeSubmissionRequest",
    "AssessmentCreate",
    "AssessmentResponse",
    "GradeEntry",
    "GradesUpsert",
    "GradeResponse",
    "QuestionIn",
    "QuizCreate",
    "QuizUpdate",
    "QuizResponse",
    "QuizSubmitRequest",
    "QuizSubmissionResponse",
    "TimetableCreate",
    "TimetableStructureUpdate",
    "SlotAssign",
    "TimetableResponse",
    "AttendanceEntry",
    "AttendanceMark",
    "AttendanceResponse",
    "NotificationSend",
    "TestNotificationRequest",
    "NotificationResponse",
]
