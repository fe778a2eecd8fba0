"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (REPOPLANE__SECTION__KEY)
3. Project YAML (.repoplane/config.yaml)
4. Built-in defaults (this file)

Environment Variable Format:
    REPOPLANE__<SECTION>__<KEY>=<VALUE>

Examples:
    REPOPLANE__LOGGING__LEVEL=DEBUG
    REPOPLANE__DATABASE__BUSY_TIMEOUT_MS=5000
    REPOPLANE__STAGING__FOLDER_RENAME_POLICY=allow
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
TokenRoleName = Literal["viewer", "editor"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        REPOPLANE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG is verbose and may impact performance.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class DatabaseConfig(BaseModel):
    """Database connection configuration.

    Env vars:
        REPOPLANE__DATABASE__PATH: SQLite file location
        REPOPLANE__DATABASE__BUSY_TIMEOUT_MS: SQLite busy timeout
        REPOPLANE__DATABASE__MAX_RETRIES: Max retry attempts for locked DB
        REPOPLANE__DATABASE__TOUCH_TIMEOUT_MS: Busy timeout for token bookkeeping
    """

    path: str | None = Field(
        default=None,
        description="SQLite database file. Default: .repoplane/repoplane.db in the project root.",
    )
    busy_timeout_ms: int = Field(
        default=30000,
        description="SQLite busy timeout (ms). How long to wait for locks. "
        "RISK: Too low causes failures under contention; too high delays errors.",
    )
    max_retries: int = Field(
        default=3,
        description="Max retry attempts for locked database errors.",
    )
    retry_base_delay_sec: float = Field(
        default=0.1,
        description="Base delay between retries (exponential backoff).",
    )
    touch_timeout_ms: int = Field(
        default=50,
        description="Busy timeout for token last-used bookkeeping. "
        "The update is dropped rather than waiting longer than this.",
    )

    @field_validator("busy_timeout_ms", "touch_timeout_ms", "max_retries")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Must be >= 0, got {v}")
        return v


class StagingConfig(BaseModel):
    """Staging overlay configuration.

    Env vars:
        REPOPLANE__STAGING__FOLDER_RENAME_POLICY: reject or allow
        REPOPLANE__STAGING__MAX_PATH_LENGTH: Longest accepted file path
    """

    folder_rename_policy: Literal["reject", "allow"] = Field(
        default="reject",
        description="What rename_folder does when staged changes exist under the folder. "
        "RISK: 'allow' rewrites committed paths underneath pending renames and edits.",
    )
    max_path_length: int = Field(
        default=1024,
        description="Longest accepted file path, in characters.",
    )

    @field_validator("max_path_length")
    @classmethod
    def validate_max_path_length(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_path_length must be positive, got {v}")
        return v


class TokensConfig(BaseModel):
    """Project token configuration.

    Env vars:
        REPOPLANE__TOKENS__DEFAULT_TOKEN_ROLE: Role of the token minted with each project
        REPOPLANE__TOKENS__DEFAULT_TOKEN_LABEL: Label of that token
    """

    default_token_role: TokenRoleName = Field(
        default="editor",
        description="Role of the implicit token created with every project. Never owner.",
    )
    default_token_label: str = Field(
        default="Default",
        description="Label of the implicit project token.",
    )


class RepoPlaneConfig(BaseModel):
    """Root configuration for RepoPlane.

    All settings can be configured via:
    1. Environment variables: REPOPLANE__SECTION__KEY
    2. YAML config file (.repoplane/config.yaml)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    staging: StagingConfig = Field(default_factory=StagingConfig)
    tokens: TokensConfig = Field(default_factory=TokensConfig)
