# Authentication module

from app.modules.auth.dependencies import (
    get_current_user,
    get_current_admin,
    get_user_from_token,
    require_roles,
    require_permission,
    require_section_manager,
    is_section_manager,
    require_staff,
    require_teacher_or_admin,
    require_student,
    require_student_affairs,
    require_accounts_office,
)

__all__ = [
    "get_current_user",
    "get_current_admin",
    "get_user_from_token",
    "require_roles",
    "require_permission",
    "require_section_manager",
    "is_section_manager",
    "require_staff",
    "require_teacher_or_admin",
    "require_student",
    "require_student_affairs",
    "require_accounts_office",
]
