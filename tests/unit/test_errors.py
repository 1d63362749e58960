"""Unit tests for error classification utilities."""

import pytest

from src.core.errors import (
    AuthenticationError,
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    RateLimitExceededError,
    ValidationFailedError,
    classify_error_with_response,
)


@pytest.mark.unit
class TestClassifyErrorWithResponse:
    @pytest.mark.parametrize(
        ("error", "status_code"),
        [
            (ValidationFailedError("Title is required"), 400),
            (InvalidCredentialsError(), 400),
            (AuthenticationError(), 401),
            (NotFoundError("Task not found"), 404),
            (ConflictError("Task already exists"), 409),
            (RateLimitExceededError("Too many requests", retry_after=10, limit=5), 429),
        ],
    )
    def test_service_errors_keep_status_and_message(self, error, status_code):
        code, response = classify_error_with_response(error)

        assert code == status_code
        assert response.success is False
        assert response.message == error.message

    def test_unexpected_errors_are_generic(self):
        code, response = classify_error_with_response(RuntimeError("database path /secret leaked"))

        assert code == 500
        assert response.message == "Internal server error"

    def test_default_messages(self):
        assert AuthenticationError().message == "Unauthorized"
        assert InvalidCredentialsError().message == "Invalid credentials"
