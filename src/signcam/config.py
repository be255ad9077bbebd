"""
SignCam Configuration
=====================

This module handles configuration loading for the capture pipeline.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    SIGNCAM_CAMERA_DEVICE      -> capture.device
    SIGNCAM_INPUT_FORMAT       -> capture.input_format
    SIGNCAM_FPS                -> capture.fps
    SIGNCAM_FFMPEG_PATH        -> capture.ffmpeg_path
    SIGNCAM_PREVIEW_ENABLED    -> preview.enabled
    SIGNCAM_CLASSIFIER_BACKEND -> classifier.backend
    SIGNCAM_MODEL_PATH         -> classifier.model_path
    SIGNCAM_LABELS             -> classifier.labels (comma separated)
    SIGNCAM_REPORT_INTERVAL_MS -> reporting.interval_ms
    SIGNCAM_PORT               -> server.port
    SIGNCAM_LOG_LEVEL          -> logging.level
    PORT                       -> server.port

Example:
    from signcam.config import settings

    print(settings.capture.device)
    print(settings.classifier.labels)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, model_validator


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class AppConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="signcam", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class CaptureConfig(BaseModel):
    """ffmpeg capture process configuration."""

    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg executable")
    input_format: str = Field(
        default="dshow",
        description="ffmpeg input format: 'dshow', 'v4l2' or 'avfoundation'",
    )
    device: str = Field(
        default="video=A4tech PC Camera",
        description="Camera device passed to ffmpeg -i",
    )
    width: int = Field(default=224, ge=16, description="Output frame width")
    height: int = Field(default=224, ge=16, description="Output frame height")
    fps: int = Field(default=10, ge=1, le=120, description="Capture frame rate")
    quality: int = Field(
        default=5,
        ge=2,
        le=31,
        description="MJPEG quality scale (-q:v, lower is better)",
    )
    chunk_size: int = Field(
        default=65536,
        ge=1024,
        description="Maximum bytes read from ffmpeg stdout per chunk",
    )


class PreviewConfig(BaseModel):
    """ffplay preview configuration."""

    enabled: bool = Field(default=True, description="Open a preview window")
    ffplay_path: str = Field(default="ffplay", description="ffplay executable")
    max_pending_bytes: int = Field(
        default=4 * 1024 * 1024,
        ge=0,
        description="Skip preview frames while this many bytes await the sink (0 = no limit)",
    )


class DemuxerConfig(BaseModel):
    """MJPEG demuxer limits."""

    max_window_bytes: int = Field(
        default=1024 * 1024,
        ge=4096,
        description="Marker-less window size that triggers truncation",
    )
    tail_bytes: int = Field(
        default=1024,
        ge=2,
        description="Bytes kept after truncating marker-less data",
    )

    @model_validator(mode="after")
    def check_tail_within_window(self) -> "DemuxerConfig":
        if self.tail_bytes >= self.max_window_bytes:
            raise ValueError("demuxer.tail_bytes must be smaller than demuxer.max_window_bytes")
        return self


class ClassifierConfig(BaseModel):
    """Classifier backend configuration."""

    backend: str = Field(
        default="mock",
        description="Classifier backend: 'mock' or 'torchscript'",
    )
    model_path: str = Field(
        default="./model/model.pt",
        description="Path to the TorchScript model file",
    )
    labels: List[str] = Field(
        default_factory=lambda: ["TEACH", "STRONG", "STOP", "SORRY", "PLEASE"],
        description="Ordered label set matching classifier outputs",
    )
    image_size: int = Field(default=224, ge=16, description="Square input size")
    channels_first: bool = Field(
        default=False,
        description="Feed NCHW batches instead of NHWC",
    )
    device: str = Field(default="cpu", description="Torch device")
    warmup: bool = Field(default=True, description="Run a zero image before starting")


class ReportingConfig(BaseModel):
    """Prediction reporting configuration."""

    interval_ms: int = Field(
        default=500,
        ge=0,
        description="Minimum milliseconds between prediction lines",
    )
    top_k: int = Field(default=2, ge=1, description="Labels per prediction line")


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="127.0.0.1", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for SignCam.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    app: AppConfig = Field(default_factory=AppConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    preview: PreviewConfig = Field(default_factory=PreviewConfig)
    demuxer: DemuxerConfig = Field(default_factory=DemuxerConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)
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
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Capture settings
    if env_device := os.environ.get("SIGNCAM_CAMERA_DEVICE"):
        config_data.setdefault("capture", {})["device"] = env_device
    if env_format := os.environ.get("SIGNCAM_INPUT_FORMAT"):
        config_data.setdefault("capture", {})["input_format"] = env_format
    if env_fps := os.environ.get("SIGNCAM_FPS"):
        config_data.setdefault("capture", {})["fps"] = int(env_fps)
    if env_ffmpeg := os.environ.get("SIGNCAM_FFMPEG_PATH"):
        config_data.setdefault("capture", {})["ffmpeg_path"] = env_ffmpeg

    # Preview settings
    if env_preview := os.environ.get("SIGNCAM_PREVIEW_ENABLED"):
        config_data.setdefault("preview", {})["enabled"] = _parse_bool(env_preview)

    # Classifier settings
    if env_backend := os.environ.get("SIGNCAM_CLASSIFIER_BACKEND"):
        config_data.setdefault("classifier", {})["backend"] = env_backend
    if env_model := os.environ.get("SIGNCAM_MODEL_PATH"):
        config_data.setdefault("classifier", {})["model_path"] = env_model
    if env_labels := os.environ.get("SIGNCAM_LABELS"):
        config_data.setdefault("classifier", {})["labels"] = [
            label.strip() for label in env_labels.split(",") if label.strip()
        ]

    # Reporting settings
    if env_interval := os.environ.get("SIGNCAM_REPORT_INTERVAL_MS"):
        config_data.setdefault("reporting", {})["interval_ms"] = int(env_interval)

    # Server settings
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("SIGNCAM_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("SIGNCAM_LOG_LEVEL"):
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
