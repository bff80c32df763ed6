import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from rankd.core.exceptions import ConfigError
from rankd.core.paths import default_db_path

CONFIG_FILENAME = ".rankd.toml"


def _deep_merge(destination: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """Merge source into destination, with source values overwriting."""
    for key, value in source.items():
        if isinstance(value, Mapping) and key in destination and isinstance(destination[key], Mapping):
            destination[key] = _deep_merge(dict(destination[key]), dict(value))
        else:
            destination[key] = value
    return destination


class PathsSettings(BaseModel):
    """Path configuration.

    Relative paths are resolved against ``root``, which defaults to the
    current working directory.
    """

    root: Path = Field(default_factory=Path.cwd, description="Directory the config was loaded from")
    db_path: Path = Field(default_factory=default_db_path, description="DuckDB file path")

    @property
    def abs_db_path(self) -> Path:
        if self.db_path.is_absolute():
            return self.db_path
        return self.root / self.db_path


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Root log level")


class RankdConfig(BaseSettings):
    """Root configuration for rankd.

    Supports environment variable overrides with the pattern:
    RANKD_SECTION__KEY (e.g., RANKD_PATHS__DB_PATH)
    """

    paths: PathsSettings = Field(default_factory=PathsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="RANKD_",
        env_nested_delimiter="__",
    )

    @classmethod
    def load(cls, root: Path | None = None) -> "RankdConfig":
        """Loads configuration from .rankd.toml and environment variables.

        Priority (highest to lowest):
        1. Environment variables (RANKD_SECTION__KEY)
        2. Config file (.rankd.toml)
        3. Defaults
        """
        root_path = root if root is not None else Path.cwd()
        config_file = root_path / CONFIG_FILENAME

        file_settings: dict[str, Any] = {}
        if config_file.is_file():
            try:
                with config_file.open("rb") as f:
                    file_settings = tomllib.load(f)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigError(str(config_file), exc) from exc

        env_settings = cls().model_dump(exclude_unset=True)

        merged_config = _deep_merge(file_settings, env_settings)
        merged_config.setdefault("paths", {})["root"] = root_path

        return cls.model_validate(merged_config)
