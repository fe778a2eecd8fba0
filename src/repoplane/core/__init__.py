"""Core module exports."""

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
from repoplane.core.logging import (
    clear_request_id,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Errors
    "RepoPlaneError",
    "ErrorCode",
    "AccessDeniedError",
    "NotFoundError",
    "InvalidArgumentError",
    "ConflictError",
    "ConfigError",
    "InternalError",
    # Logging
    "clear_request_id",
    "configure_logging",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
