"""Tests for API error classes: HTTP status codes and error codes."""

from profilelink.core.errors import (
    APIError,
    ConflictError,
    ExpiredError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    PersistenceError,
    TransientUpstreamError,
    UnauthorizedError,
    ValidationError,
)


class TestAPIError:
    """Tests for base APIError class."""

    def test_api_error_has_required_attributes(self):
        """APIError should have code, message, status_code, details."""
        error = APIError(
            code="TEST_ERROR",
            message="Test message",
            status_code=418,
            details=[{"field": "test"}],
        )
        assert error.code == "TEST_ERROR"
        assert error.message == "Test message"
        assert error.status_code == 418
        assert error.details == [{"field": "test"}]

    def test_api_error_defaults_to_500(self):
        """APIError should default to 500 status code."""
        error = APIError(code="TEST", message="Test")
        assert error.status_code == 500
        assert error.details is None

    def test_api_error_is_exception(self):
        """APIError should be an Exception subclass."""
        error = APIError(code="TEST", message="Test")
        assert isinstance(error, Exception)
        assert str(error) == "Test"


class TestValidationError:
    """Tests for ValidationError (400)."""

    def test_validation_error_code_and_status(self):
        error = ValidationError("Validation failed")
        assert error.code == "VALIDATION_ERROR"
        assert error.status_code == 400

    def test_validation_error_with_details(self):
        """ValidationError should pass through details."""
        details = [{"field": "username_hint", "error": "REQUIRED"}]
        error = ValidationError("Validation failed", details=details)
        assert error.details == details


class TestAuthErrors:
    """Tests for UnauthorizedError (401) and ForbiddenError (403)."""

    def test_unauthorized_error(self):
        error = UnauthorizedError()
        assert error.code == "UNAUTHORIZED"
        assert error.status_code == 401
        assert error.message == "Authentication required"

    def test_forbidden_error_default_message(self):
        error = ForbiddenError()
        assert error.code == "FORBIDDEN"
        assert error.status_code == 403
        assert error.message == "Access denied"

    def test_forbidden_error_custom_message(self):
        error = ForbiddenError("You need the Manage Server permission")
        assert error.message == "You need the Manage Server permission"


class TestNotFoundError:
    """Tests for NotFoundError (404)."""

    def test_not_found_error_with_id(self):
        """NotFoundError should include resource and id in message."""
        error = NotFoundError("Pending verification", "123")
        assert error.code == "NOT_FOUND"
        assert error.status_code == 404
        assert error.message == "Pending verification for '123' not found"

    def test_not_found_error_without_id(self):
        error = NotFoundError("Verification")
        assert error.message == "Verification not found"


class TestConflictError:
    """Tests for ConflictError (409)."""

    def test_conflict_error_uses_custom_code(self):
        error = ConflictError("ALREADY_VERIFIED", "Already verified")
        assert error.code == "ALREADY_VERIFIED"
        assert error.status_code == 409
        assert error.message == "Already verified"


class TestVerificationErrors:
    """Tests for ExpiredError, TransientUpstreamError, PersistenceError."""

    def test_expired_error(self):
        error = ExpiredError()
        assert error.code == "VERIFICATION_EXPIRED"
        assert error.status_code == 410
        assert "expired" in error.message

    def test_transient_upstream_error_is_retryable_503(self):
        error = TransientUpstreamError()
        assert error.code == "UPSTREAM_UNAVAILABLE"
        assert error.status_code == 503
        assert "try again" in error.message

    def test_persistence_error_has_generic_message(self):
        error = PersistenceError()
        assert error.code == "PERSISTENCE_ERROR"
        assert error.status_code == 500
        assert error.message == "Could not save verification data. Please try again later."


class TestInternalError:
    """Tests for InternalError (500)."""

    def test_internal_error_defaults(self):
        error = InternalError()
        assert error.code == "INTERNAL_ERROR"
        assert error.status_code == 500
        assert error.message == "An unexpected error occurred"
