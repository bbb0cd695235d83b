"""
Custom exception hierarchy for structured error handling.

WHY: Custom exceptions provide:
1. Consistent error handling across services and the API
2. HTTP status code mapping for FastAPI
3. Structured error responses with contextual data
4. No sensitive data leaks in error messages

Every rejection raised by the ticket, comment and attachment services is
one of these typed errors. The request layer translates them to JSON via
the handlers in exception_handlers.py.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    WHY: Centralizing exception handling in a base class ensures consistent
    error responses, HTTP status code mapping, and prevents sensitive data
    leaks in error messages.

    All custom exceptions should inherit from this class.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        """
        Initialize exception with message and context.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (overrides class default)
            **context: Additional context for debugging (filtered in to_dict)
        """
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to dictionary for JSON response.

        Returns:
            Dictionary with error details (sensitive fields filtered out)
        """
        sensitive_fields = {"password", "token", "secret", "api_key"}
        filtered_context = {
            k: v for k, v in self.context.items() if k.lower() not in sensitive_fields
        }

        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": filtered_context if filtered_context else None,
        }


# ============================================================================
# Authentication & Authorization Exceptions
# ============================================================================


class AuthenticationError(AppException):
    """
    Raised when there is no authenticated principal.

    HTTP Status: 401 Unauthorized
    """

    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(AppException):
    """
    Raised when the principal lacks permission for a resource or action.

    WHY: Distinguishing authorization (403) from authentication (401) helps
    frontends show appropriate messages ("You don't have permission" vs
    "Please log in").

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "Forbidden"


class TokenExpiredError(AuthenticationError):
    """Raised when the bearer token has expired."""

    default_message = "Token has expired"


class TokenInvalidError(AuthenticationError):
    """Raised when the bearer token is malformed or has an invalid signature."""

    default_message = "Token is invalid"


# ============================================================================
# Validation & Input Exceptions
# ============================================================================


class ValidationError(AppException):
    """
    Raised when input validation fails.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Validation failed"


class InvalidPriorityError(ValidationError):
    """Raised when a priority value is outside the TicketPriority domain."""

    default_message = "Invalid priority"


class InvalidStatusError(ValidationError):
    """Raised when a status value is outside the TicketStatus domain."""

    default_message = "Invalid status"


class InvalidAttachmentKeyError(ValidationError):
    """
    Raised when an attachment storage key fails the ownership-prefix check.

    WHY: Storage keys are namespaced by the uploader's id. A non-admin
    submitting someone else's key would otherwise be able to attach
    (and later read) another user's object.

    HTTP Status: 400 Bad Request
    """

    default_message = "Invalid attachment key"


# ============================================================================
# Resource Exceptions
# ============================================================================


class ResourceNotFoundError(AppException):
    """
    Raised when a requested resource doesn't exist.

    HTTP Status: 404 Not Found
    """

    status_code = 404
    default_message = "Resource not found"


class TicketNotFoundError(ResourceNotFoundError):
    """Raised when a ticket doesn't exist."""

    default_message = "Ticket not found"


class CommentNotFoundError(ResourceNotFoundError):
    """Raised when a comment doesn't exist."""

    default_message = "Comment not found"


class AttachmentNotFoundError(ResourceNotFoundError):
    """Raised when an attachment doesn't exist."""

    default_message = "Attachment not found"


class UserNotFoundError(ResourceNotFoundError):
    """Raised when a user doesn't exist."""

    default_message = "User not found"


# ============================================================================
# Business Logic Exceptions
# ============================================================================


class BusinessRuleViolation(AppException):
    """
    Raised when a business rule is violated.

    WHY: Business rules (e.g., "at most five attachments per ticket")
    are different from validation errors. 422 Unprocessable Entity indicates
    the request was well-formed but semantically incorrect.

    HTTP Status: 422 Unprocessable Entity
    """

    status_code = 422
    default_message = "Business rule violation"


class InvalidStateTransitionError(BusinessRuleViolation):
    """
    Raised when an invalid state transition is attempted.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Invalid state transition"


class InvalidTransitionError(InvalidStateTransitionError):
    """Raised when a ticket status change is not in the allowed transition table."""

    default_message = "Invalid status transition"


class TooManyAttachmentsError(BusinessRuleViolation):
    """Raised when a ticket would exceed its attachment cap."""

    default_message = "Too many attachments"


class ReopenNotAllowedError(BusinessRuleViolation):
    """Raised when a requester tries to reopen a ticket that is not resolved."""

    default_message = "Only resolved tickets can be reopened by the requester"


class ReopenWindowElapsedError(BusinessRuleViolation):
    """Raised when a requester tries to reopen after the reopen window."""

    default_message = "Reopen window elapsed"


class FeatureDisabledError(AppException):
    """
    Raised when a feature is switched off by configuration.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "This feature is disabled"


# ============================================================================
# External Service Exceptions
# ============================================================================


class ExternalServiceError(AppException):
    """
    Base exception for external service failures.

    WHY: External API failures should return 502 Bad Gateway, indicating
    the problem is with an upstream service, not our application.

    HTTP Status: 502 Bad Gateway
    """

    status_code = 502
    default_message = "External service error"


class StorageError(ExternalServiceError):
    """
    Raised when S3/object storage operations fail.

    HTTP Status: 502 Bad Gateway
    """

    default_message = "File storage error"


class EmailServiceError(ExternalServiceError):
    """
    Raised when email sending fails.

    WHY: Email is a convenience channel. Callers on notification paths
    catch this and log it instead of failing the triggering operation.

    HTTP Status: 502 Bad Gateway
    """

    default_message = "Email service error"


# ============================================================================
# Audit Log Exceptions
# ============================================================================


class AuditLogImmutableError(AppException):
    """
    Raised when attempting to update or delete an audit log.

    WHY: Audit logs must be tamper-proof. Once written, they cannot be
    modified or deleted.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "Audit logs are immutable and cannot be modified"
