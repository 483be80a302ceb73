"""
Data Models
===========

Pydantic models and value types for nowplaying-sync.

Models:
    Platform:
        - PlatformProfile: Runtime classification (touch / android-like)
    
    Playback:
        - PlaybackObservation: Per-tick snapshot of the playback element
    
    Media session:
        - MediaImage, MediaMetadata: Now-playing metadata
        - PositionState: Scrubber position report
        - PlaybackState: playing / paused / none
        - MetadataTemplate: Static title/artist/album
        - NowPlaying: Snapshot served to remote panels
    
    Control:
        - ControlAction, ControlIntent: Inbound control channel messages
    
    Unlock:
        - UnlockState, UnlockReason, UnlockResult, StatusMessage
"""

from nowplaying_sync.models.platform import PlatformProfile
from nowplaying_sync.models.playback import PlaybackObservation
from nowplaying_sync.models.media import (
    MediaImage,
    MediaMetadata,
    MetadataTemplate,
    NowPlaying,
    PlaybackState,
    PositionState,
)
from nowplaying_sync.models.control import OS_ACTIONS, ControlAction, ControlIntent
from nowplaying_sync.models.unlock import (
    StatusMessage,
    UnlockReason,
    UnlockResult,
    UnlockState,
)

__all__ = [
    # Platform
    "PlatformProfile",
    # Playback
    "PlaybackObservation",
    # Media session
    "MediaImage",
    "MediaMetadata",
    "MetadataTemplate",
    "NowPlaying",
    "PlaybackState",
    "PositionState",
    # Control
    "OS_ACTIONS",
    "ControlAction",
    "ControlIntent",
    # Unlock
    "StatusMessage",
    "UnlockReason",
    "UnlockResult",
    "UnlockState",
]
