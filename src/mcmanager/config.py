"""Configuration management for mcmanager."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mcmanager.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )

    # Source repository
    repo_url: str = Field(min_length=1, description="Git URL of the content repository")
    repo_branch: str = Field(default="main", min_length=1, description="Branch to deploy")
    repo_path: Path = Field(
        default=Path("/tmp/plugin-repo"), description="Local working copy of the repository"
    )

    # Live server
    data_dir: Path = Field(default=Path("./data"), description="Server data directory")
    copy_dirs: str = Field(
        default="plugins,bedwars_worlds",
        description="Comma-separated directories to mirror into data_dir",
    )
    skip_dirs: str = Field(default="", description="Comma-separated directories to leave alone")
    plugins_uid: int | None = Field(
        default=None, ge=0, description="Owner uid/gid applied to mirrored directories"
    )
    plugins_download: bool = Field(
        default=False, description="Run plugins/download.sh after syncing the repository"
    )

    # RCON
    rcon_host: str = Field(min_length=1, description="RCON host")
    rcon_port: int = Field(ge=1, le=65535, description="RCON port")
    rcon_password: SecretStr = Field(description="RCON password")
    rcon_restart_command: str = Field(
        default="restart", min_length=1, description="Console command that restarts the server"
    )
    countdown_wait: int = Field(
        default=50, ge=0, description="Seconds between the restart warning and the countdown"
    )
    locale: str = Field(default="en", description="Language of player announcements")

    # HTTP
    port: int = Field(default=8080, ge=1, le=65535, description="HTTP listen port")
    secret_token: SecretStr | None = Field(
        default=None, description="Shared secret expected in the X-Secret-Token header"
    )
    restart_gates_sync: bool = Field(
        default=False,
        description="Hold new updates until an in-flight restart countdown has finished",
    )

    # Application
    environment: str = Field(default="production", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("rcon_password")
    @classmethod
    def _password_not_empty(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("rcon_password must not be empty")
        return value

    @field_validator("secret_token")
    @classmethod
    def _empty_token_is_unset(cls, value: SecretStr | None) -> SecretStr | None:
        if value is not None and not value.get_secret_value():
            return None
        return value

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"

    @property
    def rcon_address(self) -> str:
        """Get the RCON endpoint as host:port."""
        return f"{self.rcon_host}:{self.rcon_port}"


def load_settings(**overrides: object) -> Settings:
    """Build settings, turning validation failures into ``ConfigurationError``."""
    try:
        return Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()
