"""Config module exports."""

from repoplane.config.loader import get_db_path, load_config, write_config_template
from repoplane.config.models import (
    DatabaseConfig,
    LoggingConfig,
    RepoPlaneConfig,
    StagingConfig,
    TokensConfig,
)

__all__ = [
    "load_config",
    "get_db_path",
    "write_config_template",
    "RepoPlaneConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "StagingConfig",
    "TokensConfig",
]
