"""
Efficio Backend — Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions for every failure the data layer reports.
How:   Each exception carries a message, an optional context dict and the HTTP
       status the surface layer answers with. Services raise; global handlers
       (registered in main.py) turn them into JSON error responses.
Who:   Raised by the store adapters and services; caught by global handlers.

Exception Hierarchy:
    EfficioError (base)
    ├── ValidationError          → 400 Bad Request
    ├── Unauthorized             → 401 Unauthorized (missing/unknown/foreign token)
    ├── InvalidCredentials       → 401 Unauthorized (login failed)
    ├── PermissionDenied         → 403 Forbidden (authenticated, not the owner)
    ├── NotFoundError            → 404 Not Found
    ├── UsernameTaken            → 409 Conflict
    └── InternalError            → 500 Internal Server Error
        ├── StoreError           → 500 (capability store unreachable or failing)
        └── TransactionConflict  → 503 (watched key changed; transient)
"""

from typing import Any, Dict, Optional


class EfficioError(Exception):
    """
    Base exception for all Efficio application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned for 5xx errors)
        status_code: HTTP status used by the surface layer
        error_code:  Machine-readable code used in JSON error bodies
    """

    status_code = 500
    error_code = "internal_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(EfficioError):
    """
    Raised when input reaching the core is malformed.

    When: a reorder request with neither aisles nor products, an edit request
          with no field set, an invalid username or password at registration.
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class Unauthorized(EfficioError):
    """
    Raised for a missing, unknown or revoked session token, or a token whose
    owner does not match the user the request claims to act for.
    """

    status_code = 401
    error_code = "unauthorized"

    def __init__(
        self,
        message: str = "Not logged in",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidCredentials(EfficioError):
    """Raised on login with an unknown username or a mismatched password."""

    status_code = 401
    error_code = "invalid_credentials"

    def __init__(
        self,
        message: str = "Invalid username or password",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDenied(EfficioError):
    """
    Raised when the authenticated user is not the recorded owner of the
    resource being read or mutated.
    """

    status_code = 403
    error_code = "permission_denied"

    def __init__(
        self,
        message: str = "User does not have permission to edit this resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(EfficioError):
    """
    Raised when a requested record does not exist in the store.

    The store answers nil for a missing hash field rather than failing, so
    repositories convert that nil into this exception before any permission
    check compares owners.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class UsernameTaken(EfficioError):
    """Raised on registration with an already registered (case-insensitive) username."""

    status_code = 409
    error_code = "username_taken"

    def __init__(self, username: str, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["username"] = username
        super().__init__(message=f"Username {username} is not available.", context=ctx)
        self.username = username


class InternalError(EfficioError):
    """
    Raised for failures the caller cannot fix: store failures, commit failures
    and allocator invariant violations.

    Security Note:
        The message returned to the client is always generic; the context is
        logged server-side only.
    """

    status_code = 500
    error_code = "internal_error"
    transient = False

    def __init__(
        self,
        message: str = "An internal error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StoreError(InternalError):
    """Raised when the capability store itself fails (connection lost, timeout, bad reply)."""

    error_code = "store_error"

    def __init__(
        self,
        message: str = "The data store is unavailable. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class TransactionConflict(InternalError):
    """
    Raised when a watched key changed between watch and commit.

    Nothing from the aborted batch was applied. The engine never retries on its
    own; a caller may retry the whole operation once.
    """

    status_code = 503
    error_code = "transaction_conflict"
    transient = True

    def __init__(
        self,
        watched_keys: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if watched_keys:
            ctx["watched_keys"] = list(watched_keys)
        super().__init__(
            message="The data changed while your request was processed. Please retry.",
            context=ctx,
        )
