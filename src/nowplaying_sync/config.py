"""
nowplaying-sync Configuration
=============================

This module handles configuration loading for the now-playing service.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    NOWPLAYING_USER_AGENT        -> platform.user_agent
    NOWPLAYING_MAX_TOUCH_POINTS  -> platform.max_touch_points
    NOWPLAYING_TARGET_FPS        -> throttle.target_fps
    NOWPLAYING_FRAMES_DIR        -> artwork.frames_dir
    NOWPLAYING_TOTAL_FRAMES      -> artwork.total_frames
    NOWPLAYING_VIDEO_PATH        -> media.video_path
    NOWPLAYING_PORT              -> server.port
    NOWPLAYING_LOG_LEVEL         -> logging.level
    PORT                         -> server.port (Cloud Run)

Example:
    from nowplaying_sync.config import settings
    
    print(settings.media.title)
    print(settings.throttle.target_fps)
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

class AppConfig(BaseModel):
    """Service identification configuration."""
    
    name: str = Field(default="nowplaying-sync", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class MediaConfig(BaseModel):
    """The silent video and its static metadata."""
    
    title: str = Field(default="Bad Apple!!", description="Track title")
    artist: str = Field(default="Alstroemeria Records", description="Artist")
    album: str = Field(default="Traditional Remix", description="Album")
    video_path: str = Field(
        default="./assets/badapple.mp4",
        description="Video file, probed for its duration",
    )
    duration_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Duration override when the video cannot be probed",
    )
    loop: bool = Field(default=True, description="Loop playback at the end")


class ArtworkConfig(BaseModel):
    """Pre-rendered frame artwork."""
    
    frames_dir: str = Field(
        default="./assets/frames",
        description="Directory holding output_NNNN.jpg frames",
    )
    base_url: str = Field(
        default="/assets/frames",
        description="Locator prefix handed to the OS integration",
    )
    total_frames: int = Field(default=6571, ge=1, description="Frames in the sequence")
    filename_prefix: str = Field(default="output_", description="Frame file prefix")
    pad_width: int = Field(default=4, ge=1, description="Zero-padding width")
    extension: str = Field(default="jpg", description="Frame file extension")
    sizes: str = Field(default="480x360", description="Declared artwork dimensions")
    mime_type: str = Field(default="image/jpeg", description="Artwork MIME type")


class ThrottleConfig(BaseModel):
    """Update intervals per platform class."""
    
    target_fps: float = Field(default=30.0, description="Logical frame rate (<=0 treated as 1)")
    position_interval_ms: int = Field(default=1000, ge=0)
    strict_position_interval_ms: int = Field(default=2000, ge=0)
    metadata_interval_ms: int = Field(
        default=0,
        ge=0,
        description="Metadata interval floor; 0 means 1000/target_fps",
    )
    strict_metadata_interval_ms: int = Field(default=1000, ge=0)
    strict_metadata_enabled: bool = Field(
        default=True,
        description="Disable artwork swaps entirely on strict mobile",
    )
    prefetch_stride: int = Field(default=1, ge=1)
    strict_prefetch_stride: int = Field(default=30, ge=1)
    prefetch_count: int = Field(default=1, ge=0)


class CacheConfig(BaseModel):
    """Prefetch window size per platform class."""
    
    capacity: int = Field(default=150, ge=1, description="Desktop/permissive capacity")
    strict_capacity: int = Field(default=30, ge=1, description="Strict mobile capacity")


class UnlockConfig(BaseModel):
    """Autoplay-unlock cascade."""
    
    prime_audio: bool = Field(default=True, description="Play the one-time silent cue")
    start_muted: bool = Field(default=True, description="First attempt is muted")
    unmute_after_play: bool = Field(
        default=True,
        description="Unmute once play succeeds (False = always muted fallback)",
    )
    unmute_delay_ms: int = Field(default=100, ge=0, description="Delay before unmuting")
    audible_requires_gesture: bool = Field(
        default=True,
        description="Simulated platform: audible playback needs permission",
    )


class PlatformConfig(BaseModel):
    """Signals used to classify the platform once at startup."""
    
    user_agent: str = Field(default="", description="User-agent string (empty = desktop)")
    max_touch_points: int = Field(default=0, ge=0, description="Reported touch points")


class SchedulerConfig(BaseModel):
    """Per-visual-frame callback timing."""
    
    frame_interval_ms: float = Field(default=16.0, gt=0, description="~60 Hz")


class SeekConfig(BaseModel):
    """Seek intent defaults."""
    
    default_offset_seconds: float = Field(default=10.0, gt=0)


class MediaSessionConfig(BaseModel):
    """In-process media-session integration."""
    
    min_metadata_interval_ms: float = Field(
        default=0.0,
        ge=0,
        description="Reject metadata updates closer together than this",
    )
    broadcast_interval_seconds: float = Field(
        default=0.25,
        gt=0,
        description="Polling interval of the now-playing WebSocket",
    )


class ServerConfig(BaseModel):
    """Server configuration."""
    
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for nowplaying-sync.
    
    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """
    
    app: AppConfig = Field(default_factory=AppConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)
    artwork: ArtworkConfig = Field(default_factory=ArtworkConfig)
    throttle: ThrottleConfig = Field(default_factory=ThrottleConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    unlock: UnlockConfig = Field(default_factory=UnlockConfig)
    platform: PlatformConfig = Field(default_factory=PlatformConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    seek: SeekConfig = Field(default_factory=SeekConfig)
    media_session: MediaSessionConfig = Field(default_factory=MediaSessionConfig)
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
    # Find config file
    if config_path is None:
        search_paths = [
            Path(os.environ.get("NOWPLAYING_CONFIG", "config.yaml")),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break
    
    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")
    
    # Apply environment variable overrides
    _apply_env_overrides(config_data)
    
    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""
    
    # Platform signals
    if env_ua := os.environ.get("NOWPLAYING_USER_AGENT"):
        config_data.setdefault("platform", {})["user_agent"] = env_ua
    if env_touch := os.environ.get("NOWPLAYING_MAX_TOUCH_POINTS"):
        config_data.setdefault("platform", {})["max_touch_points"] = int(env_touch)
    
    # Throttle
    if env_fps := os.environ.get("NOWPLAYING_TARGET_FPS"):
        config_data.setdefault("throttle", {})["target_fps"] = float(env_fps)
    
    # Media and artwork
    if env_frames := os.environ.get("NOWPLAYING_FRAMES_DIR"):
        config_data.setdefault("artwork", {})["frames_dir"] = env_frames
    if env_total := os.environ.get("NOWPLAYING_TOTAL_FRAMES"):
        config_data.setdefault("artwork", {})["total_frames"] = int(env_total)
    if env_video := os.environ.get("NOWPLAYING_VIDEO_PATH"):
        config_data.setdefault("media", {})["video_path"] = env_video
    
    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("NOWPLAYING_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    
    # Logging settings
    if env_log := os.environ.get("NOWPLAYING_LOG_LEVEL"):
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
