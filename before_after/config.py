"""Configuration for the card game API.

Settings come from a YAML file and may be overridden by the environment
variables the hosted deployment already sets (``PORT``, ``S3_BUCKET_NAME``,
``S3_REGION``, ``AWS_ACCESS_KEY_ID``, ``AWS_SECRET_ACCESS_KEY``) plus
``ADMIN_API_KEY`` for a single admin key.
"""

import logging
import logging.handlers
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import colorlog
import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


class AdminKeyConfig(BaseModel):
    """An API key accepted in the X-API-Key header of admin requests."""

    key: str = Field(..., description="API key value")
    description: str | None = Field(None, description="Who or what uses the key")
    allowed_ips: list[str] = Field(
        default_factory=list, description="Client IPs allowed to use it (empty = any)"
    )


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = Field("0.0.0.0", description="Bind address")
    port: int = Field(8080, description="Bind port")
    cors_origins: list[str] = Field(["*"], description="Origins allowed by CORS")
    enable_docs: bool = Field(True, description="Serve /docs and /redoc")
    debug: bool = Field(False, description="Echo SQL and log every request")


class DatabaseConfig(BaseModel):
    """SQLite database holding cards, loss GIFs and upload logs."""

    path: str = Field("data/before_after.db", description="SQLite database path")
    enable_wal: bool = Field(True, description="Use Write-Ahead Logging")


class RateLimitConfig(BaseModel):
    """Per-client request limits."""

    enabled: bool = Field(True, description="Apply rate limits")
    max_requests_per_minute: int = Field(60, description="Game endpoint limit")
    admin_requests_per_minute: int = Field(30, description="Admin endpoint limit")


class SecurityConfig(BaseModel):
    """Admin access and rate limiting."""

    admin_keys: list[AdminKeyConfig] = Field(
        default_factory=list, description="Keys accepted by the admin API"
    )
    # Pydantic V2 has a known mypy issue with default_factory class constructors
    # https://github.com/pydantic/pydantic/issues/6713
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)  # type: ignore[arg-type]


class StorageConfig(BaseModel):
    """Where uploaded card and loss GIF images are stored."""

    backend: str = Field("filesystem", description="memory, filesystem or s3")
    directory: str = Field("data/images", description="Filesystem backend root")
    public_base_url: str | None = Field(
        None, description="URL prefix that stored keys are served from"
    )
    bucket: str | None = Field(None, description="S3 bucket name")
    region: str = Field("us-east-1", description="S3 region")
    endpoint_url: str | None = Field(None, description="S3 compatible endpoint")
    access_key_id: str | None = Field(None, description="S3 access key id")
    secret_access_key: str | None = Field(None, description="S3 secret access key")
    cache_control: str = Field(
        "max-age=31536000", description="Cache-Control of uploaded objects"
    )

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        allowed = ["memory", "filesystem", "s3"]
        if v not in allowed:
            raise ValueError(f"Backend must be one of {allowed}")
        return v


class ImageVariantConfig(BaseModel):
    """Target box and WebP quality for one generated image variant."""

    width: int = Field(..., description="Target width in pixels")
    height: int = Field(..., description="Target height in pixels")
    quality: int = Field(80, description="WebP quality (1-100)")

    @field_validator("quality")
    @classmethod
    def validate_quality(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError("Quality must be between 1 and 100")
        return v


class ImageConfig(BaseModel):
    """Uploaded image validation and processing configuration."""

    allowed_types: list[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/webp", "image/gif"],
        description="Accepted image MIME types",
    )
    max_file_size_mb: int = Field(10, description="Maximum image size in MB")
    default_crop_mode: str = Field("scale", description="Crop mode: crop or scale")
    thumbnail: ImageVariantConfig = Field(
        default_factory=lambda: ImageVariantConfig(width=256, height=320, quality=80)
    )
    large: ImageVariantConfig = Field(
        default_factory=lambda: ImageVariantConfig(width=640, height=800, quality=85)
    )


class LogFileConfig(BaseModel):
    """Rotating log file."""

    enabled: bool = Field(True, description="Write a log file")
    path: str = Field("logs/before_after_api.log", description="Log file path")
    max_size_mb: int = Field(100, description="Rotate after this many MB")
    backup_count: int = Field(5, description="Rotated files to keep")


class LogConsoleConfig(BaseModel):
    """Console log output."""

    enabled: bool = Field(True, description="Log to stderr")
    colorize: bool = Field(True, description="Color levels with colorlog")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field("INFO", description="Root logger level")
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log record format",
    )
    # Pydantic V2 mypy limitation with class constructors in default_factory
    file: LogFileConfig = Field(default_factory=LogFileConfig)  # type: ignore[arg-type]
    console: LogConsoleConfig = Field(default_factory=LogConsoleConfig)  # type: ignore[arg-type]

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Level must be one of {allowed}")
        return v.upper()


class EndpointConfig(BaseModel):
    """An optional monitoring endpoint."""

    enabled: bool = Field(True, description="Serve the endpoint")
    path: str = Field(..., description="URL path")


class HealthCheckConfig(EndpointConfig):
    path: str = Field("/health", description="Health check path")


class MetricsConfig(EndpointConfig):
    path: str = Field("/metrics", description="Metrics path")


class MonitoringConfig(BaseModel):
    """Health and metrics endpoints."""

    # Pydantic V2 mypy limitation with class constructors in default_factory
    health_check: HealthCheckConfig = Field(default_factory=HealthCheckConfig)  # type: ignore[arg-type]
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)  # type: ignore[arg-type]


class Config(BaseModel):
    """Main configuration model."""

    # Pydantic V2 mypy limitation with class constructors in default_factory
    server: ServerConfig = Field(default_factory=ServerConfig)  # type: ignore[arg-type]
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)  # type: ignore[arg-type]
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)  # type: ignore[arg-type]
    images: ImageConfig = Field(default_factory=ImageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)  # type: ignore[arg-type]
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    @classmethod
    def load_from_file(
        cls, config_path: str, environ: Mapping[str, str] | None = None
    ) -> "Config":
        """Load configuration from YAML, then apply environment overrides.

        A missing or invalid file falls back to the defaults rather than
        stopping the server.

        Args:
            config_path: Path to the YAML file
            environ: Environment to read overrides from (defaults to os.environ)
        """
        path = Path(config_path)
        data: dict[str, Any] = {}

        if not path.exists():
            logger.warning(f"Config file not found at {path}, using defaults")
        else:
            try:
                with open(path) as f:
                    data = yaml.safe_load(f) or {}
                cls(**data)
                logger.info(f"Loaded configuration from {path}")
            except Exception as e:
                logger.error(f"Failed to load config from {path}: {e}")
                logger.info("Using default configuration")
                data = {}

        return cls(**apply_env_overrides(data, os.environ if environ is None else environ))

    def save_to_file(self, config_path: str) -> None:
        """Write the configuration as YAML, creating parent directories."""
        path = Path(config_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(path, "w") as f:
                yaml.dump(self.model_dump(), f, default_flow_style=False, sort_keys=False)
        except Exception as e:
            logger.error(f"Failed to save config to {path}: {e}")
            raise

        logger.info(f"Saved configuration to {path}")


# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "PORT": ("server", "port"),
    "S3_BUCKET_NAME": ("storage", "bucket"),
    "S3_REGION": ("storage", "region"),
    "AWS_ACCESS_KEY_ID": ("storage", "access_key_id"),
    "AWS_SECRET_ACCESS_KEY": ("storage", "secret_access_key"),
}


def apply_env_overrides(
    data: dict[str, Any], environ: Mapping[str, str]
) -> dict[str, Any]:
    """Return a copy of raw config data with environment values merged in.

    Setting ``S3_BUCKET_NAME`` also selects the S3 backend, and
    ``ADMIN_API_KEY`` is added to the admin keys unless already listed.
    """
    merged = {section: dict(values or {}) for section, values in data.items()}

    for variable, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(variable)
        if value:
            merged.setdefault(section, {})[key] = value

    if environ.get("S3_BUCKET_NAME"):
        merged["storage"]["backend"] = "s3"

    admin_key = environ.get("ADMIN_API_KEY")
    if admin_key:
        security = merged.setdefault("security", {})
        keys = list(security.get("admin_keys") or [])
        if not any(entry.get("key") == admin_key for entry in keys):
            keys.append({"key": admin_key, "description": "ADMIN_API_KEY"})
        security["admin_keys"] = keys

    return merged


def setup_logging(config: LoggingConfig) -> None:
    """Replace the root logger's handlers according to configuration."""
    root_logger = logging.getLogger()
    root_logger.setLevel(config.level)
    root_logger.handlers.clear()

    plain = logging.Formatter(config.format)

    if config.console.enabled:
        console_handler = logging.StreamHandler()
        if config.console.colorize:
            console_handler.setFormatter(
                colorlog.ColoredFormatter(
                    "%(log_color)s" + config.format, log_colors=LOG_COLORS
                )
            )
        else:
            console_handler.setFormatter(plain)
        root_logger.addHandler(console_handler)

    if config.file.enabled:
        log_path = Path(config.file.path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=config.file.max_size_mb * 1024 * 1024,
            backupCount=config.file.backup_count,
        )
        file_handler.setFormatter(plain)
        root_logger.addHandler(file_handler)

    logger.info(f"Logging configured - Level: {config.level}")
