"""Tests for error types and codes."""

from collections.abc import Generator
from contextlib import contextmanager

import pytest

from repoplane.core.errors import (
    AccessDeniedError,
    ConfigError,
    ConflictError,
    ErrorCode,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    RepoPlaneError,
)


class TestErrorCode:
    """Error code value tests."""

    @pytest.mark.parametrize(
        ("code", "expected_range"),
        [
            (ErrorCode.ACCESS_DENIED, 1000),
            (ErrorCode.INSUFFICIENT_ROLE, 1000),
            (ErrorCode.CONFIG_PARSE_ERROR, 2000),
            (ErrorCode.FILE_NOT_FOUND, 3000),
            (ErrorCode.INVALID_PATH, 4000),
            (ErrorCode.PATH_EXISTS, 5000),
            (ErrorCode.INTERNAL_TIMEOUT, 9000),
        ],
    )
    def test_given_error_code_when_checked_then_in_correct_range(
        self, code: ErrorCode, expected_range: int
    ) -> None:
        """Error codes fall within their designated numeric range."""
        # When
        value = code.value

        # Then
        assert expected_range <= value < expected_range + 1000


class TestRepoPlaneError:
    """Base error behavior tests."""

    def test_given_error_when_to_dict_then_serializes_all_fields(self) -> None:
        """Error serializes to dict with all required fields."""
        # Given
        error = RepoPlaneError(
            code=ErrorCode.CONFLICT,
            message="Test message",
            retryable=True,
            details={"key": "value"},
        )

        # When
        result = error.to_dict()

        # Then
        assert result == {
            "code": 5001,
            "error": "CONFLICT",
            "message": "Test message",
            "retryable": True,
            "details": {"key": "value"},
        }

    def test_given_error_when_str_then_human_readable(self) -> None:
        """Error string representation is human readable."""
        error = RepoPlaneError(code=ErrorCode.INTERNAL_ERROR, message="Something broke")

        assert str(error) == "[9001] INTERNAL_ERROR: Something broke"

    def test_given_error_when_raised_then_catchable_as_exception(self) -> None:
        """Errors are real exceptions."""
        with pytest.raises(RepoPlaneError):
            raise NotFoundError.file("abc")

    @pytest.mark.parametrize(
        "error",
        [
            AccessDeniedError.unknown_project("p1"),
            NotFoundError.file("abc"),
            ConflictError.path_exists("src/a.ts"),
            InvalidArgumentError.invalid("name", "must not be empty"),
        ],
    )
    def test_given_subclass_error_when_raised_through_context_manager_then_type_kept(
        self, error: RepoPlaneError
    ) -> None:
        """contextlib rewrites __traceback__ on the way out; the error survives it."""

        @contextmanager
        def scope() -> Generator[None, None, None]:
            yield

        # When
        with pytest.raises(type(error)) as exc_info, scope():
            raise error

        # Then
        assert exc_info.value is error
        assert exc_info.value.__traceback__ is not None


class TestAccessDeniedError:
    """AccessDeniedError factory tests."""

    def test_unknown_project_matches_no_credentials(self) -> None:
        """Unknown project reads exactly like missing credentials."""
        # Given
        unknown = AccessDeniedError.unknown_project("p1")
        missing = AccessDeniedError.no_credentials("p1")

        # Then
        assert unknown.code == missing.code
        assert unknown.message == missing.message

    def test_insufficient_role_names_both_roles(self) -> None:
        """Message names the required and actual role."""
        err = AccessDeniedError.insufficient_role("p1", "owner", "viewer")

        assert err.code == ErrorCode.INSUFFICIENT_ROLE
        assert "owner role required" in err.message
        assert "you have viewer" in err.message
        assert err.details == {"project_id": "p1", "required": "owner", "actual": "viewer"}

    def test_invalid_token_is_not_retryable(self) -> None:
        err = AccessDeniedError.invalid_token("p1")

        assert err.code == ErrorCode.TOKEN_INVALID
        assert err.retryable is False


class TestLookupAndArgumentErrors:
    """NotFound / InvalidArgument / Conflict factory tests."""

    def test_not_found_file(self) -> None:
        err = NotFoundError.file("f1")

        assert err.code == ErrorCode.FILE_NOT_FOUND
        assert err.details["file_id"] == "f1"

    def test_invalid_path_carries_reason(self) -> None:
        err = InvalidArgumentError.invalid_path("../x", "bad segment '..'")

        assert err.code == ErrorCode.INVALID_PATH
        assert err.details == {"path": "../x", "reason": "bad segment '..'"}

    def test_invalid_role_stringifies_value(self) -> None:
        err = InvalidArgumentError.invalid_role(42)

        assert err.code == ErrorCode.INVALID_ROLE
        assert err.details["value"] == "42"

    def test_duplicate_staging_row_is_retryable(self) -> None:
        """A unique-constraint race may succeed on retry."""
        err = ConflictError.duplicate_staging_row("r1", "src/a.ts")

        assert err.retryable is True
        assert err.details == {"repo_id": "r1", "path": "src/a.ts"}

    def test_pending_changes_lists_paths(self) -> None:
        err = ConflictError.pending_changes("src", ["src/a.ts", "src/b.ts"])

        assert err.code == ErrorCode.PENDING_CHANGES
        assert "src/a.ts, src/b.ts" in err.message


class TestConfigError:
    """ConfigError factory method tests."""

    def test_parse_error(self) -> None:
        err = ConfigError.parse_error("/x/config.yaml", "bad indent")

        assert err.code == ErrorCode.CONFIG_PARSE_ERROR
        assert "/x/config.yaml" in err.message

    def test_invalid_value(self) -> None:
        err = ConfigError.invalid_value("staging.max_path_length", 0, "must be positive")

        assert err.code == ErrorCode.CONFIG_INVALID_VALUE
        assert err.details["value"] == "0"


class TestInternalError:
    def test_unexpected_keeps_details(self) -> None:
        err = InternalError.unexpected("boom", step="flush")

        assert err.code == ErrorCode.INTERNAL_ERROR
        assert err.details == {"step": "flush"}
