"""
Custom Exceptions for SchoolHub
===============================

Services raise these instead of HTTPException so the same rule can be
reused from the API layer, background jobs and the websocket channel.
The API layer turns them into JSON responses through the handlers
registered in app.main.

Usage:
    from app.core.exceptions import ResourceNotFoundError, ValidationError

    if not section:
        raise ResourceNotFoundError("Section", section_id)

    if section.capacity < 1:
        raise ValidationError("Capacity must be at least 1", field="capacity")
"""

from typing import Optional, Any, Dict


class SchoolHubError(Exception):
    """Base exception for all SchoolHub errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(SchoolHubError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class TokenExpiredError(AuthenticationError):
    """JWT token has expired"""

    def __init__(self):
        super().__init__("Token expired")
        self.code = "TOKEN_EXPIRED"
        self.details = {"expired": True}


class InvalidTokenError(AuthenticationError):
    """JWT token is invalid"""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)
        self.code = "INVALID_TOKEN"


class AuthorizationError(SchoolHubError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(SchoolHubError):
    """Requested record does not exist (or belongs to another school)"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any = None):
        message = f"{resource_type} not found"
        super().__init__(
            message,
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None}
        )


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(SchoolHubError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class ConflictError(SchoolHubError):
    """A unique value is already taken"""

    status_code = 409

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="CONFLICT", details=details)


class QuizAttemptError(ValidationError):
    """Student may not attempt the quiz right now"""

    def __init__(self, message: str, attempts_used: int = 0, max_attempts: int = 0):
        super().__init__(message)
        self.code = "QUIZ_ATTEMPT_REJECTED"
        self.details = {"attempts_used": attempts_used, "max_attempts": max_attempts}


class DuplicateSubmissionError(ValidationError):
    """A concurrent request already stored the same submission"""

    def __init__(self):
        super().__init__("Duplicate submission detected. Please refresh and try again.")
        self.code = "DUPLICATE_SUBMISSION"


class UploadError(ValidationError):
    """Uploaded file was rejected"""

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message, field="file")
        self.code = "UPLOAD_REJECTED"
        if filename:
            self.details["filename"] = filename


class InvalidFileTypeError(UploadError):
    """File type not allowed"""

    def __init__(self, file_type: str, allowed_types: list):
        super().__init__(
            f"File type '{file_type}' not allowed. Allowed: {', '.join(allowed_types)}"
        )
        self.code = "INVALID_FILE_TYPE"
        self.details.update({"file_type": file_type, "allowed_types": allowed_types})


class FileTooLargeError(UploadError):
    """Upload exceeds the configured size"""

    def __init__(self, size: int, max_size: int):
        super().__init__(f"File too large. Maximum size is {max_size // 1024 // 1024}MB")
        self.code = "FILE_TOO_LARGE"
        self.details.update({"size": size, "max_size": max_size})


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: SchoolHubError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    body = {
        "success": False,
        "message": error.message,
        "code": error.code,
    }
    if error.details:
        body["details"] = error.details
    if isinstance(error, TokenExpiredError):
        body["expired"] = True
    return body
