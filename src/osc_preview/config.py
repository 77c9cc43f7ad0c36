"""
OSC Preview Configuration
=========================

This module handles configuration loading for the live-preview service.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    OSC_PREVIEW_CAMERA_URL    -> camera.base_url
    OSC_PREVIEW_RESTART_DELAY -> preview.restart_delay_seconds
    OSC_PREVIEW_READ_TIMEOUT  -> preview.read_timeout_seconds
    OSC_PREVIEW_AUTOSTART     -> preview.autostart
    OSC_PREVIEW_PORT          -> server.port
    OSC_PREVIEW_LOG_LEVEL     -> logging.level
    PORT                      -> server.port (container platforms)

Example:
    from osc_preview.config import settings

    print(settings.camera.base_url)
    print(settings.preview.restart_delay_seconds)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="osc-preview", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class CameraConfig(BaseModel):
    """OSC camera connection configuration."""

    base_url: str = Field(
        default="http://192.168.1.1",
        description="Base URL of the camera's OSC HTTP API",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for ordinary command requests",
    )


class PreviewConfig(BaseModel):
    """Live preview stream configuration."""

    restart_delay_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Fixed delay before reopening a dropped stream",
    )
    connect_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for opening the preview connection",
    )
    read_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Maximum silence on the preview connection before it is dropped",
    )
    chunk_size: int = Field(
        default=8192,
        ge=512,
        description="Read size for the preview body in bytes",
    )
    max_part_bytes: int = Field(
        default=8 * 1024 * 1024,
        ge=1024,
        description="Largest accepted multipart part; larger parts are discarded",
    )
    autostart: bool = Field(
        default=True,
        description="Start the preview when the service starts",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the live-preview service.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    camera: CameraConfig = Field(default_factory=CameraConfig)
    preview: PreviewConfig = Field(default_factory=PreviewConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Camera settings
    if env_url := os.environ.get("OSC_PREVIEW_CAMERA_URL"):
        config_data.setdefault("camera", {})["base_url"] = env_url

    # Preview settings
    if env_delay := os.environ.get("OSC_PREVIEW_RESTART_DELAY"):
        config_data.setdefault("preview", {})["restart_delay_seconds"] = float(env_delay)
    if env_read := os.environ.get("OSC_PREVIEW_READ_TIMEOUT"):
        config_data.setdefault("preview", {})["read_timeout_seconds"] = float(env_read)
    if env_auto := os.environ.get("OSC_PREVIEW_AUTOSTART"):
        config_data.setdefault("preview", {})["autostart"] = _parse_bool(env_auto)

    # Server settings (container platforms use PORT)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("OSC_PREVIEW_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("OSC_PREVIEW_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
