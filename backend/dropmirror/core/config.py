"""Application configuration using pydantic-settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DROPMIRROR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Dropmirror"
    version: str = "0.1.0"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=3000, description="Server port")

    # Paths
    config_path: Path = Field(
        default=Path("/config"),
        description="Path for configuration files and database",
    )
    uploads_path: Path = Field(
        default=Path("uploads"),
        description="Root for default download destinations",
    )

    # CORS
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins",
    )

    # Dropbox app (from https://www.dropbox.com/developers/apps)
    dropbox_app_key: str | None = Field(
        default=None,
        description="Dropbox app key",
    )
    dropbox_app_secret: str | None = Field(
        default=None,
        description="Dropbox app secret",
    )
    dropbox_redirect_uri: str = Field(
        default="http://localhost:3000/api/dropbox/oauth/callback",
        description="OAuth redirect URI registered with the Dropbox app",
    )
    dropbox_authorize_url: str = "https://www.dropbox.com/oauth2/authorize"
    dropbox_token_url: str = "https://api.dropboxapi.com/oauth2/token"
    dropbox_shared_link_prefix: str = Field(
        default="https://www.dropbox.com",
        description="Targets starting with this prefix are treated as shared links",
    )
    dropbox_list_page_limit: int = Field(
        default=2000,
        ge=1,
        le=2000,
        description="Maximum entries requested per folder listing page",
    )
    dropbox_request_timeout: float = Field(
        default=100.0,
        gt=0,
        description="Timeout in seconds applied to every Dropbox call",
    )

    # Fernet key for credentials at rest
    encryption_key: str | None = Field(
        default=None,
        description="Fernet key used to encrypt stored tokens",
    )

    @property
    def dropbox_configured(self) -> bool:
        """Check if Dropbox app credentials are configured."""
        return self.dropbox_app_key is not None and self.dropbox_app_secret is not None

    @property
    def db_path(self) -> Path:
        """Get the SQLite database file path."""
        return self.config_path / "dropmirror.db"

    @property
    def default_download_root(self) -> Path:
        """Parent directory of time-stamped default destinations."""
        return self.uploads_path / "dropbox_downloads"


class DropboxAppConfig(BaseModel):
    """Dropbox app credentials and endpoints, passed explicitly to services."""

    model_config = ConfigDict(frozen=True)

    app_key: str
    app_secret: str = Field(repr=False)
    token_url: str = "https://api.dropboxapi.com/oauth2/token"
    authorize_url: str = "https://www.dropbox.com/oauth2/authorize"
    redirect_uri: str = ""
    timeout: float = 100.0

    @property
    def configured(self) -> bool:
        return bool(self.app_key and self.app_secret)

    @classmethod
    def from_settings(cls, source: Settings) -> DropboxAppConfig:
        """Build the config from application settings."""
        return cls(
            app_key=source.dropbox_app_key or "",
            app_secret=source.dropbox_app_secret or "",
            token_url=source.dropbox_token_url,
            authorize_url=source.dropbox_authorize_url,
            redirect_uri=source.dropbox_redirect_uri,
            timeout=source.dropbox_request_timeout,
        )


# Global settings instance
settings = Settings()
