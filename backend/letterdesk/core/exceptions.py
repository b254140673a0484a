"""
Custom Exceptions for LetterDesk
================================

Use these instead of generic Exception to:
1. Make errors more specific and debuggable
2. Enable proper error handling at API layer
3. Provide meaningful error messages to users

Usage:
    from letterdesk.core.exceptions import LetterNotFoundError, InvalidStateError

    if not letter:
        raise LetterNotFoundError(letter_id)

    if letter.status != LetterStatus.PENDING:
        raise InvalidStateError(f"Letter is already {letter.status.value}")

Every exception carries an HTTP status code; the API layer renders
``to_dict()`` as the response body.
"""

from typing import Optional, Any, Dict, List


class LetterDeskError(Exception):
    """Base exception for all LetterDesk errors"""

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
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(LetterDeskError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(LetterDeskError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Validation Errors (400-type)
# ============================================

class InvalidInputError(LetterDeskError):
    """Caller-supplied data is malformed or incomplete"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="INVALID_INPUT", details=details)


class InvalidLetterTypeError(InvalidInputError):
    """Letter type code is not in the registry"""

    def __init__(self, letter_type: str):
        super().__init__("Invalid letter type", field="letter_type")
        self.code = "INVALID_LETTER_TYPE"
        self.details["letter_type"] = letter_type


class MissingRequiredFieldsError(InvalidInputError):
    """Supplementary data lacks fields the letter type requires"""

    def __init__(self, letter_type: str, missing_fields: List[str]):
        super().__init__("Missing required fields", field="supplementary_data")
        self.code = "MISSING_REQUIRED_FIELDS"
        self.details["letter_type"] = letter_type
        self.details["missing_fields"] = list(missing_fields)

    @property
    def missing_fields(self) -> List[str]:
        return self.details["missing_fields"]


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(LetterDeskError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class LetterNotFoundError(ResourceNotFoundError):
    """Letter not found"""

    def __init__(self, letter_id: str):
        super().__init__("Letter", letter_id)


# ============================================
# State & Conflict Errors (409-type)
# ============================================

class InvalidStateError(LetterDeskError):
    """Operation not permitted in the letter's current status or numbering state"""

    status_code = 409

    def __init__(self, message: str, current_status: Optional[str] = None):
        details = {"current_status": current_status} if current_status else {}
        super().__init__(message, code="INVALID_STATE", details=details)


class ConflictError(LetterDeskError):
    """Uniqueness violation"""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFLICT", details=details)


class LetterNumberConflictError(ConflictError):
    """Letter number is already held by another letter"""

    def __init__(self, letter_number: str, message: str = "Letter number already in use"):
        super().__init__(message, details={"letter_number": letter_number})
        self.code = "LETTER_NUMBER_CONFLICT"


# ============================================
# Internal Errors (500-type)
# ============================================

class InternalError(LetterDeskError):
    """Unexpected internal failure"""

    status_code = 500

    def __init__(self, message: str = "Internal error"):
        super().__init__(message, code="INTERNAL_ERROR")


class StorageError(InternalError):
    """Record store or transaction failure"""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.code = "STORAGE_ERROR"
        if operation:
            self.details["operation"] = operation
