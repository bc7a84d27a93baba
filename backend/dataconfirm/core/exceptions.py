"""
Custom Exceptions for the Data Confirmation service
===================================================

Every error raised by the services derives from DataConfirmError, which
carries a machine-readable code and the HTTP status it maps to. The API
layer renders them through a single exception handler (see main.py).

Usage:
    from dataconfirm.core.exceptions import SubmissionNotFoundError

    if not submission:
        raise SubmissionNotFoundError(submission_uuid)
"""

from typing import Optional, Any, Dict, List


class DataConfirmError(Exception):
    """Base exception for all Data Confirmation errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(DataConfirmError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(DataConfirmError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(DataConfirmError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class SubmissionNotFoundError(ResourceNotFoundError):
    """Submission not found"""

    def __init__(self, submission_uuid: str):
        super().__init__("Submission", submission_uuid)


class CatalogNotFoundError(ResourceNotFoundError):
    """Flow, agency, system or module missing from the catalog"""

    def __init__(self, level: str, name: str):
        super().__init__(f"Catalog {level}", name)


class StoredFileNotFoundError(ResourceNotFoundError):
    """Uploaded file or backup file not found"""

    def __init__(self, stored_name: str):
        super().__init__("File", stored_name)


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(DataConfirmError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class MissingIdentifierError(ValidationError):
    """Agency system or module/API name not supplied"""

    def __init__(self, missing: List[str]):
        super().__init__(f"Missing required fields: {', '.join(missing)}")
        self.code = "MISSING_IDENTIFIER"
        self.details = {"missing": missing}


class InvalidGridFormatError(ValidationError):
    """Grid payload could not be parsed into rows"""

    def __init__(self, reason: Optional[str] = None):
        super().__init__("Invalid grid format", field="dataGrid")
        self.code = "INVALID_GRID_FORMAT"
        if reason:
            self.details["reason"] = reason


class IncompleteGridError(ValidationError):
    """Grid is empty or every descriptive field is blank"""

    def __init__(self, message: str = "Data element grid is incomplete"):
        super().__init__(message, field="dataGrid")
        self.code = "INCOMPLETE_GRID"


class DuplicateGridRowError(ValidationError):
    """Same (element, group) pair appears more than once in one grid"""

    def __init__(self, name: str, group: Optional[str]):
        super().__init__(
            f"Data element '{name}' appears more than once in group '{group or '-'}'",
            field="dataGrid"
        )
        self.code = "DUPLICATE_GRID_ROW"
        self.details.update({"data_element": name, "group_name": group})


class InvalidFileTypeError(ValidationError):
    """File type not allowed"""

    def __init__(self, file_type: str, allowed_types: list):
        super().__init__(
            f"File type '{file_type}' not allowed. Allowed: {', '.join(allowed_types)}"
        )
        self.code = "INVALID_FILE_TYPE"
        self.details = {"file_type": file_type, "allowed_types": allowed_types}


class FileTooLargeError(DataConfirmError):
    """Uploaded file exceeds MAX_UPLOAD_SIZE"""

    status_code = 413

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"File is {size} bytes, limit is {limit} bytes",
            code="FILE_TOO_LARGE",
            details={"size": size, "limit": limit}
        )


# ============================================
# Catalog / Persistence / Notification Errors
# ============================================

class CatalogFormatError(DataConfirmError):
    """Catalog file is unreadable or has an unexpected shape"""

    def __init__(self, message: str):
        super().__init__(message, code="CATALOG_FORMAT_ERROR")


class PersistenceError(DataConfirmError):
    """Atomic write failed and was rolled back"""

    def __init__(self, message: str = "Failed to save submission"):
        super().__init__(message, code="PERSISTENCE_ERROR")


class NotificationError(DataConfirmError):
    """Email/PDF delivery failed; never fails a submission"""

    def __init__(self, message: str):
        super().__init__(message, code="NOTIFICATION_FAILED")
