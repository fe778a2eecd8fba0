"""RepoPlane error types with typed error codes.

Error code ranges:
- 1xxx: Auth
- 2xxx: Config
- 3xxx: Lookup
- 4xxx: Argument
- 5xxx: Staging conflict
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Auth (1xxx)
    ACCESS_DENIED = 1001
    TOKEN_INVALID = 1002
    INSUFFICIENT_ROLE = 1003

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_MISSING_REQUIRED = 2003
    CONFIG_FILE_NOT_FOUND = 2004

    # Lookup (3xxx)
    NOT_FOUND = 3001
    FILE_NOT_FOUND = 3002
    REPOSITORY_NOT_FOUND = 3003
    TOKEN_NOT_FOUND = 3004

    # Argument (4xxx)
    INVALID_ARGUMENT = 4001
    INVALID_PATH = 4002
    INVALID_ROLE = 4003

    # Staging conflict (5xxx)
    CONFLICT = 5001
    PATH_EXISTS = 5002
    PENDING_CHANGES = 5003

    # Internal (9xxx)
    INTERNAL_ERROR = 9001
    INTERNAL_TIMEOUT = 9002


@dataclass(frozen=True)
class RepoPlaneError(Exception):
    """Base error with structured context for API responses."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'ACCESS_DENIED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class AccessDeniedError(RepoPlaneError):
    """Caller has no role on the project, or not a high enough one."""

    @classmethod
    def no_credentials(cls, project_id: str) -> "AccessDeniedError":
        return cls(
            code=ErrorCode.ACCESS_DENIED,
            message="Access denied: authentication or valid token required",
            details={"project_id": project_id},
        )

    @classmethod
    def unknown_project(cls, project_id: str) -> "AccessDeniedError":
        # Same message as no_credentials so project existence is not disclosed
        return cls(
            code=ErrorCode.ACCESS_DENIED,
            message="Access denied: authentication or valid token required",
            details={"project_id": project_id},
        )

    @classmethod
    def invalid_token(cls, project_id: str) -> "AccessDeniedError":
        return cls(
            code=ErrorCode.TOKEN_INVALID,
            message="Invalid token for this project",
            details={"project_id": project_id},
        )

    @classmethod
    def insufficient_role(cls, project_id: str, required: str, actual: str) -> "AccessDeniedError":
        return cls(
            code=ErrorCode.INSUFFICIENT_ROLE,
            message=f"Insufficient permissions: {required} role required, you have {actual}",
            details={"project_id": project_id, "required": required, "actual": actual},
        )


class NotFoundError(RepoPlaneError):
    """Target resolves to nothing after overlay resolution."""

    @classmethod
    def file(cls, file_id: str) -> "NotFoundError":
        return cls(
            code=ErrorCode.FILE_NOT_FOUND,
            message=f"File not found: {file_id}",
            details={"file_id": file_id},
        )

    @classmethod
    def repository(cls, repo_id: str) -> "NotFoundError":
        return cls(
            code=ErrorCode.REPOSITORY_NOT_FOUND,
            message=f"Repository not found: {repo_id}",
            details={"repo_id": repo_id},
        )

    @classmethod
    def token(cls, token_id: str) -> "NotFoundError":
        return cls(
            code=ErrorCode.TOKEN_NOT_FOUND,
            message=f"Token not found: {token_id}",
            details={"token_id": token_id},
        )


class InvalidArgumentError(RepoPlaneError):
    """Malformed path, unrecognized role, or otherwise unusable input."""

    @classmethod
    def invalid_path(cls, path: str, reason: str) -> "InvalidArgumentError":
        return cls(
            code=ErrorCode.INVALID_PATH,
            message=f"Invalid path {path!r}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_role(cls, value: Any) -> "InvalidArgumentError":
        return cls(
            code=ErrorCode.INVALID_ROLE,
            message=f"Unrecognized role: {value!r}",
            details={"value": str(value)},
        )

    @classmethod
    def invalid(cls, field: str, reason: str) -> "InvalidArgumentError":
        return cls(
            code=ErrorCode.INVALID_ARGUMENT,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "reason": reason},
        )


class ConflictError(RepoPlaneError):
    """Staging write would break the one-row-per-path invariant."""

    @classmethod
    def path_exists(cls, path: str) -> "ConflictError":
        return cls(
            code=ErrorCode.PATH_EXISTS,
            message=f"Path already exists: {path}",
            details={"path": path},
        )

    @classmethod
    def duplicate_staging_row(cls, repo_id: str, path: str) -> "ConflictError":
        return cls(
            code=ErrorCode.CONFLICT,
            message=f"Concurrent staging write for {path}",
            retryable=True,
            details={"repo_id": repo_id, "path": path},
        )

    @classmethod
    def pending_changes(cls, prefix: str, paths: list[str]) -> "ConflictError":
        return cls(
            code=ErrorCode.PENDING_CHANGES,
            message=f"Staged changes exist under {prefix}: {', '.join(paths)}",
            details={"prefix": prefix, "paths": paths},
        )


class ConfigError(RepoPlaneError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def missing_required(cls, field: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_MISSING_REQUIRED,
            message=f"Missing required config field: {field}",
            details={"field": field},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class InternalError(RepoPlaneError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
