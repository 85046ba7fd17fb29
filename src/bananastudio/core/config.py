"""Configuration management for Banana Studio.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the BANANASTUDIO_
prefix, allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (BANANASTUDIO_* prefix)
2. .env file in the project root
3. Default values defined in StudioConfig

Example .env file:
    BANANASTUDIO_SERVER_PORT=3000
    BANANASTUDIO_CREDENTIAL_SOURCE=store
    BANANASTUDIO_MAX_UPLOAD_BYTES=20971520
    BANANASTUDIO_UPLOADS_DIR=uploads

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
Configuration is static: values are read once at process start and never
reloaded. To change values, set environment variables and restart.

Deployment Variants
-------------------
Two deployment variants are supported through configuration alone:

- **Per-request credential** (``credential_source="request"``): the browser
  sends ``apiKey`` with every ``POST /generate``.
- **Server-side credential** (``credential_source="store"``): the key is saved
  once through ``POST /save-api-key`` and read from disk.

The default ``"either"`` accepts a request key and falls back to the stored one.
``inspect_finish_reason=False`` reproduces the variant that ignores the
upstream completion reason and goes straight to image extraction.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CredentialSource = Literal["request", "store", "either"]


class StudioConfig(BaseSettings):
    """Main configuration for Banana Studio.

    All Path fields are created on initialization if they don't exist.

    Attributes
    ----------
    Server Settings:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Listening port (1024-65535)
        public_base_url : str
            Origin prepended to retrieval URLs handed back to the browser

    Paths:
        data_dir : Path
            Directory for server-side state (credential file)
        uploads_dir : Path
            Directory for uploaded and generated images
        credential_file : Path
            JSON file holding the persisted API key

    Upload Limits:
        max_upload_files : int
            Maximum number of files in one ``POST /upload``
        max_upload_bytes : int
            Maximum size of a single uploaded file

    Gemini Settings:
        gemini_api_base : str
            Base URL of the Generative Language API
        gemini_model : str
            Image model name used in ``:generateContent`` calls
        request_timeout : float
            Upstream timeout in seconds
        max_reference_images : int
            Maximum number of reference images per generation
        inspect_finish_reason : bool
            Classify non-STOP completion reasons before extracting images

    Retention:
        retention_max_files : int
            Keep at most this many image files (0 disables the cap)
        retention_max_age_hours : float
            Delete image files older than this (0 disables the limit)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BANANASTUDIO_",
        case_sensitive=False,
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=3000,
        description="Server port",
        ge=1024,
        le=65535,
    )
    public_base_url: str = Field(
        default="http://localhost:3000",
        description="Origin used when building retrieval URLs",
    )
    log_level: str = Field(
        default="INFO",
        description="Root logging level used by the CLI entry point",
    )

    # Paths
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for server-side state",
    )
    uploads_dir: Path = Field(
        default=Path("uploads"),
        description="Directory for uploaded and generated images",
    )
    uploads_url_prefix: str = Field(
        default="/uploads",
        description="URL path the uploads directory is served under",
    )
    credential_file: Path | None = Field(
        default=None,
        description="Credential JSON file (defaults to <data_dir>/api_key.json)",
    )
    credential_source: CredentialSource = Field(
        default="either",
        description="Where /generate takes the API key from",
    )

    # Upload limits
    max_upload_files: int = Field(default=10, ge=1, le=10)
    max_upload_bytes: int = Field(
        default=200 * 1024 * 1024,
        description="Maximum size of a single uploaded file in bytes",
        ge=1,
    )

    # Gemini settings
    gemini_api_base: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Generative Language API base URL",
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash-image-preview",
        description="Image model used for generateContent",
    )
    request_timeout: float = Field(
        default=120.0,
        description="Upstream request timeout in seconds",
        gt=0,
    )
    max_reference_images: int = Field(default=10, ge=0, le=10)
    inspect_finish_reason: bool = Field(
        default=True,
        description="Map non-STOP finish reasons to user-facing errors",
    )

    # Retention
    retention_max_files: int = Field(
        default=0,
        description="Maximum number of stored images (0 = unlimited)",
        ge=0,
    )
    retention_max_age_hours: float = Field(
        default=0,
        description="Maximum age of stored images in hours (0 = unlimited)",
        ge=0,
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create required directories.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        if self.credential_file is None:
            self.credential_file = self.data_dir / "api_key.json"

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.uploads_dir.mkdir(parents=True, exist_ok=True)

    @property
    def uploads_url_base(self) -> str:
        """Absolute URL prefix for files in ``uploads_dir``."""
        return self.public_base_url.rstrip("/") + "/" + self.uploads_url_prefix.strip("/")


# Global configuration instance
# Loads values from environment variables (BANANASTUDIO_* prefix) and .env file.
config = StudioConfig()
