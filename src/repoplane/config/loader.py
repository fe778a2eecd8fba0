"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority)
2. Environment variables (REPOPLANE__SECTION__KEY)
3. Project config (.repoplane/config.yaml)
4. Built-in defaults (lowest priority)
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from repoplane.config.models import (
    DatabaseConfig,
    LoggingConfig,
    RepoPlaneConfig,
    StagingConfig,
    TokensConfig,
)
from repoplane.core.errors import ConfigError

CONFIG_DIR_NAME = ".repoplane"
CONFIG_FILE_NAME = "config.yaml"
DEFAULT_DB_FILE_NAME = "repoplane.db"

CONFIG_TEMPLATE = """\
# RepoPlane Configuration
# Env vars override this file: REPOPLANE__<SECTION>__<KEY>=<VALUE>

logging:
  level: INFO
  outputs:
    - destination: stderr
      format: console
      level: WARNING
    # Full event stream as JSON lines (destination must be absolute)
    # - destination: /var/log/repoplane/events.jsonl
    #   format: json

database:
  busy_timeout_ms: 30000

staging:
  # reject: rename_folder fails while staged changes exist under the folder
  # allow: rewrite anyway (logged)
  folder_rename_policy: reject
"""


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top level must be a mapping")
    return data


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class with instance-based YAML source (thread-safe)."""

    class RepoPlaneSettings(BaseSettings):
        """Root config. Env vars: REPOPLANE__LOGGING__LEVEL, REPOPLANE__DATABASE__PATH, etc."""

        model_config = SettingsConfigDict(
            env_prefix="REPOPLANE__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        database: DatabaseConfig = DatabaseConfig()
        staging: StagingConfig = StagingConfig()
        tokens: TokensConfig = TokensConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml file
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return RepoPlaneSettings


def load_config(root: Path | None = None, **kwargs: Any) -> RepoPlaneConfig:
    """Load config: defaults < .repoplane/config.yaml < env vars < kwargs.

    Args:
        root: Directory holding .repoplane/. Defaults to current working directory.
        **kwargs: Override values (highest precedence).

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: On invalid YAML syntax or validation errors.
    """
    root = root or Path.cwd()
    yaml_config = _load_yaml(root / CONFIG_DIR_NAME / CONFIG_FILE_NAME)

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e
    return RepoPlaneConfig.model_validate(settings.model_dump())


def get_db_path(root: Path, config: RepoPlaneConfig) -> Path:
    """Database file for a project root, respecting config.database.path."""
    if config.database.path:
        return Path(config.database.path).expanduser()
    return root / CONFIG_DIR_NAME / DEFAULT_DB_FILE_NAME


def write_config_template(root: Path) -> Path:
    """Write a commented config.yaml unless one exists. Returns its path."""
    path = root / CONFIG_DIR_NAME / CONFIG_FILE_NAME
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        path.write_text(CONFIG_TEMPLATE)
    return path
