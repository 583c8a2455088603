"""
LetterDesk - Error Taxonomy
Every failure surfaced to a caller is one of these typed errors.
"""
from enum import Enum
from typing import Optional

from sqlalchemy.exc import IntegrityError, NoResultFound, OperationalError, SQLAlchemyError


class LetterDeskError(Exception):
    """Base class for typed failures. `message` is safe to show to the user."""
    code = "letterdesk_error"
    http_status = 400
    default_message = "The request could not be completed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigurationError(LetterDeskError):
    code = "configuration_error"
    http_status = 500
    default_message = "The application is not configured."


# =============================================================================
# SESSION / ACCOUNT ERRORS
# =============================================================================

class DuplicateAccount(LetterDeskError):
    code = "duplicate_account"
    http_status = 409
    default_message = "An account with this email already exists. Please try signing in."


class InvalidRole(LetterDeskError):
    code = "invalid_role"
    http_status = 400
    default_message = "Unknown account role."


class UserNotFound(LetterDeskError):
    code = "user_not_found"
    http_status = 404
    default_message = "User not found."


class InvalidCredentials(LetterDeskError):
    code = "invalid_credentials"
    http_status = 401
    default_message = "Invalid email or password. Please check your credentials and try again."


class InvalidOrExpiredToken(LetterDeskError):
    code = "invalid_or_expired_token"
    http_status = 400
    default_message = "Invalid or expired password reset token."


class AccountNotFound(LetterDeskError):
    code = "account_not_found"
    http_status = 404
    default_message = "User associated with token not found."


class NotAuthenticated(LetterDeskError):
    code = "not_authenticated"
    http_status = 401
    default_message = "User not authenticated."


class PermissionDenied(LetterDeskError):
    code = "permission_denied"
    http_status = 403
    default_message = "You do not have permission to perform this action."


# =============================================================================
# LETTER / AFFILIATE ERRORS
# =============================================================================

class InvalidStatusTransition(LetterDeskError):
    code = "invalid_status_transition"
    http_status = 409
    default_message = "The letter cannot move to the requested status."


class AffiliateCodeTaken(LetterDeskError):
    code = "affiliate_code_taken"
    http_status = 409
    default_message = "This affiliate code is already assigned to another employee."


class GenerationServiceError(LetterDeskError):
    code = "generation_service_error"
    http_status = 502
    default_message = "Failed to generate letter draft from AI."


# =============================================================================
# REMOTE BACKEND ERRORS
# =============================================================================

class RemoteErrorKind(str, Enum):
    """Sub-classification of backend failures."""
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


_REMOTE_STATUS = {
    RemoteErrorKind.CONFLICT: 409,
    RemoteErrorKind.NOT_FOUND: 404,
    RemoteErrorKind.PERMISSION_DENIED: 403,
    RemoteErrorKind.UNAVAILABLE: 503,
    RemoteErrorKind.UNKNOWN: 502,
}


class RemoteServiceError(LetterDeskError):
    """Any failure of the database backend or the network under it."""
    code = "remote_service_error"
    http_status = 502

    def __init__(self, kind: RemoteErrorKind = RemoteErrorKind.UNKNOWN, message: Optional[str] = None):
        self.kind = kind
        self.http_status = _REMOTE_STATUS[kind]
        super().__init__(message or "A database error occurred. Please try again.")

    @property
    def detail_code(self) -> str:
        return f"{self.code}.{self.kind.value}"


# Postgres SQLSTATE codes
_FOREIGN_KEY_VIOLATION = "23503"
_INSUFFICIENT_PRIVILEGE = "42501"


def _sqlstate(exc: SQLAlchemyError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def map_backend_error(exc: SQLAlchemyError, context: str) -> RemoteServiceError:
    """Translate a SQLAlchemy failure into a RemoteServiceError."""
    state = _sqlstate(exc)

    if isinstance(exc, NoResultFound):
        return RemoteServiceError(RemoteErrorKind.NOT_FOUND, "The requested item could not be found.")
    if state == _INSUFFICIENT_PRIVILEGE:
        return RemoteServiceError(
            RemoteErrorKind.PERMISSION_DENIED,
            f"Permission denied during the '{context}' operation.",
        )
    if isinstance(exc, IntegrityError):
        if state == _FOREIGN_KEY_VIOLATION:
            return RemoteServiceError(
                RemoteErrorKind.CONFLICT,
                "Could not perform the action due to a conflict with related data.",
            )
        return RemoteServiceError(
            RemoteErrorKind.CONFLICT,
            "A record with this value already exists. Please check your input.",
        )
    if isinstance(exc, OperationalError):
        return RemoteServiceError(
            RemoteErrorKind.UNAVAILABLE,
            f"The database is unavailable during the '{context}' operation. Please try again.",
        )
    return RemoteServiceError(
        RemoteErrorKind.UNKNOWN,
        f"An error occurred during the '{context}' operation. Please try again.",
    )
