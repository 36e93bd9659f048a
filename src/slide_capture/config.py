"""
Slide Capture Agent Configuration
=================================

This module handles configuration loading for the slide capture agent.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    SLIDE_CAPTURE_STREAM_URL     -> stream.url
    SLIDE_CAPTURE_TICK_INTERVAL  -> capture.tick_interval_sec
    SLIDE_CAPTURE_SEARCH_TIMEOUT -> capture.search_timeout_sec
    SLIDE_CAPTURE_AUTOSTART      -> capture.autostart
    SLIDE_CAPTURE_CROP_DIRECTION -> crop.direction
    SLIDE_CAPTURE_CROP_WIDTH     -> crop.width_percentage
    SLIDE_CAPTURE_CROP_HEIGHT    -> crop.height_percentage
    SLIDE_CAPTURE_PHASH_MIN      -> thresholds.phash_min_similarity
    SLIDE_CAPTURE_OUTPUT_DIR     -> export.output_dir
    SLIDE_CAPTURE_IMAGE_FORMAT   -> export.image_format
    SLIDE_CAPTURE_PORT           -> server.port
    SLIDE_CAPTURE_LOG_LEVEL      -> logging.level
    PORT                         -> server.port (Cloud Run)

Invalid values raise ConfigurationError at load time, never mid-session.

Example:
    from slide_capture.config import settings

    print(settings.capture.tick_interval_sec)
    region = settings.crop_region()
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from slide_capture.capture.transitions import CaptureTimings
from slide_capture.dedup.pipeline import SimilarityThresholds
from slide_capture.errors import ConfigurationError
from slide_capture.models.geometry import CropDirection, CropRegion


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class AgentConfig(BaseModel):
    """Agent identification configuration."""

    name: str = Field(default="slide-capture-agent", description="Agent name")
    version: str = Field(default="v0.1.0", description="Protocol version")


class CaptureConfig(BaseModel):
    """Capture timing configuration."""

    tick_interval_sec: float = Field(
        default=1.0,
        gt=0,
        description="Sampling period while capturing (seconds)",
    )
    search_interval_sec: float = Field(
        default=1.0,
        gt=0,
        description="Polling period while searching for a source (seconds)",
    )
    search_timeout_sec: float = Field(
        default=300.0,
        gt=0,
        description="Give up searching after this long (seconds)",
    )
    thumbnail_size: int = Field(
        default=64,
        ge=32,
        le=512,
        description="Edge length of comparison thumbnails in pixels",
    )
    autostart: bool = Field(
        default=False,
        description="Start a capture session when the service starts",
    )
    stall_timeout_sec: float = Field(
        default=3.0,
        gt=0,
        description="Live stream reports buffering after this long without a frame",
    )


class CropConfig(BaseModel):
    """Crop region configuration (percentages of the source size)."""

    direction: str = Field(
        default="bottom-right",
        description="Anchor: top-left, top, top-right, left, center, right, "
                    "bottom-left, bottom, bottom-right",
    )
    width_percentage: float = Field(
        default=100.0,
        description="Percentage of source width to keep",
    )
    height_percentage: float = Field(
        default=100.0,
        description="Percentage of source height to keep",
    )
    min_percentage: float = Field(
        default=10.0,
        gt=0,
        le=100,
        description="Percentages are clamped into [min_percentage, 100]",
    )

    @field_validator("direction")
    @classmethod
    def _check_direction(cls, value: str) -> str:
        return CropDirection.parse(value).value


class ThresholdsConfig(BaseModel):
    """Similarity thresholds."""

    byte_identity: bool = Field(
        default=True,
        description="Treat byte-identical thumbnails as duplicates",
    )
    average_hash_exact: bool = Field(
        default=True,
        description="Treat bit-exact average hash matches as duplicates",
    )
    average_hash_size: int = Field(
        default=8,
        ge=4,
        le=16,
        description="Average hash grid edge (hash has size^2 bits)",
    )
    phash_min_similarity: float = Field(
        default=95.0,
        gt=0,
        le=100,
        description="Minimum perceptual hash similarity for a duplicate (percent)",
    )


class ExportConfig(BaseModel):
    """Retained frame encoding and packaging."""

    output_dir: str = Field(
        default="./captures",
        description="Directory zip archives are written to",
    )
    image_format: str = Field(
        default="webp",
        description="Encoding of retained frames: webp, png or jpeg",
    )
    quality: int = Field(
        default=80,
        ge=1,
        le=100,
        description="Encoder quality for webp/jpeg",
    )
    archive_prefix: str = Field(
        default="captured_frames",
        description="Archive name prefix and in-archive folder",
    )

    @field_validator("image_format")
    @classmethod
    def _check_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("webp", "png", "jpeg"):
            raise ValueError(f"image_format must be webp, png or jpeg, got {value!r}")
        return value


class StreamConfig(BaseModel):
    """Upstream frame stream connection configuration."""

    url: str = Field(
        default="ws://localhost:8000/ws/stream",
        description="WebSocket URL of the frame stream",
    )
    reconnect_backoff_ms: int = Field(
        default=500,
        ge=100,
        description="Backoff in milliseconds between reconnect attempts",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum reconnection attempts (0 = unlimited)",
    )
    max_queue_size: int = Field(
        default=50,
        ge=1,
        description="Maximum size of internal frame buffer",
    )


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    enable_highlight: bool = Field(
        default=True,
        description="Track the crop highlight (overlay rectangle and preview)",
    )
    highlight_thickness: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Border width of the highlight preview in pixels",
    )
    log_every_n_ticks: int = Field(
        default=30,
        ge=1,
        description="Periodic capture summary interval",
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
    Main settings class for the slide capture agent.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    agent: AgentConfig = Field(default_factory=AgentConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    crop: CropConfig = Field(default_factory=CropConfig)
    thresholds: ThresholdsConfig = Field(default_factory=ThresholdsConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def crop_region(self) -> CropRegion:
        """Crop region with percentages clamped into [min_percentage, 100]."""
        return CropRegion.clamped(
            self.crop.direction,
            self.crop.width_percentage / 100.0,
            self.crop.height_percentage / 100.0,
            min_fraction=self.crop.min_percentage / 100.0,
        )

    def similarity_thresholds(self) -> SimilarityThresholds:
        return SimilarityThresholds(
            identical_bytes=self.thresholds.byte_identity,
            avg_hash_exact=self.thresholds.average_hash_exact,
            average_hash_size=self.thresholds.average_hash_size,
            phash_min=self.thresholds.phash_min_similarity,
        )

    def capture_timings(self) -> CaptureTimings:
        return CaptureTimings(
            tick_interval_sec=self.capture.tick_interval_sec,
            search_interval_sec=self.capture.search_interval_sec,
            search_timeout_sec=self.capture.search_timeout_sec,
        )


# =============================================================================
# Configuration Loading
# =============================================================================

def build_settings(config_data: Dict[str, Any]) -> Settings:
    """
    Validate raw configuration data.

    Raises:
        ConfigurationError: If any value is invalid
    """
    try:
        settings = Settings.model_validate(config_data)
        # Crop and threshold errors are raised at load time
        settings.crop_region()
        settings.similarity_thresholds()
        settings.capture_timings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
    return settings


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

    Raises:
        ConfigurationError: On unreadable files or invalid values
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data: Dict[str, Any] = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        try:
            with open(config_path, "r") as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Cannot parse {config_path}: {e}") from e
        if not isinstance(config_data, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping")
    else:
        logger.warning("No config file found, using defaults and environment variables")

    try:
        _apply_env_overrides(config_data)
    except ValueError as e:
        raise ConfigurationError(f"Invalid environment override: {e}") from e

    return build_settings(config_data)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Stream settings
    if env_url := os.environ.get("SLIDE_CAPTURE_STREAM_URL"):
        config_data.setdefault("stream", {})["url"] = env_url

    # Capture settings
    if env_tick := os.environ.get("SLIDE_CAPTURE_TICK_INTERVAL"):
        config_data.setdefault("capture", {})["tick_interval_sec"] = float(env_tick)
    if env_timeout := os.environ.get("SLIDE_CAPTURE_SEARCH_TIMEOUT"):
        config_data.setdefault("capture", {})["search_timeout_sec"] = float(env_timeout)
    if env_auto := os.environ.get("SLIDE_CAPTURE_AUTOSTART"):
        config_data.setdefault("capture", {})["autostart"] = _parse_bool(env_auto)

    # Crop settings
    if env_dir := os.environ.get("SLIDE_CAPTURE_CROP_DIRECTION"):
        config_data.setdefault("crop", {})["direction"] = env_dir
    if env_w := os.environ.get("SLIDE_CAPTURE_CROP_WIDTH"):
        config_data.setdefault("crop", {})["width_percentage"] = float(env_w)
    if env_h := os.environ.get("SLIDE_CAPTURE_CROP_HEIGHT"):
        config_data.setdefault("crop", {})["height_percentage"] = float(env_h)

    # Threshold overrides
    if env_phash := os.environ.get("SLIDE_CAPTURE_PHASH_MIN"):
        config_data.setdefault("thresholds", {})["phash_min_similarity"] = float(env_phash)

    # Export settings
    if env_out := os.environ.get("SLIDE_CAPTURE_OUTPUT_DIR"):
        config_data.setdefault("export", {})["output_dir"] = env_out
    if env_fmt := os.environ.get("SLIDE_CAPTURE_IMAGE_FORMAT"):
        config_data.setdefault("export", {})["image_format"] = env_fmt

    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("SLIDE_CAPTURE_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("SLIDE_CAPTURE_LOG_LEVEL"):
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
        force=True,
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
