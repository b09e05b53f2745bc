"""API error classes.

Every error the verification engine surfaces to a caller carries a
machine-readable code, a user-facing message, and an HTTP status so the
dispatcher can render it without knowing the engine's internals.

Failures of individual fetch strategies and best-effort side effects are
NOT represented here; those are logged and absorbed where they happen.
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Missing or malformed input (400).

    The user only needs to correct the input; no retry is implied.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Dispatcher credentials missing or wrong (401)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class ForbiddenError(APIError):
    """Caller lacks the authority required for the operation (403).

    Use for server-management operations invoked by a member without the
    manage-server permission.
    """

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
        )


class NotFoundError(APIError):
    """No pending verification or link for the key (404).

    The user should start the verification over.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} for '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class ConflictError(APIError):
    """Conflicting state (409).

    Accepts custom code for specific conflict types (e.g., ALREADY_VERIFIED
    when the server forbids reverification).
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


class ExpiredError(APIError):
    """Pending verification is past its expiry (410).

    The code can no longer be used; a new one must be issued.
    """

    def __init__(
        self,
        message: str = "Your verification code has expired. Please start again.",
    ) -> None:
        super().__init__(
            code="VERIFICATION_EXPIRED",
            message=message,
            status_code=410,
        )


class TransientUpstreamError(APIError):
    """External identity API unreachable during candidate discovery (503).

    Distinguishes "could not check" from "not verified yet". Safe to retry.
    """

    def __init__(
        self,
        message: str = "The external profile service is unavailable. Please try again.",
    ) -> None:
        super().__init__(
            code="UPSTREAM_UNAVAILABLE",
            message=message,
            status_code=503,
        )


class PersistenceError(APIError):
    """Verification store unavailable (500).

    The underlying cause is logged in detail by the store; callers only ever
    see the generic message.
    """

    def __init__(
        self,
        message: str = "Could not save verification data. Please try again later.",
    ) -> None:
        super().__init__(
            code="PERSISTENCE_ERROR",
            message=message,
            status_code=500,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
