"""
Playback Module
===============

External collaborators of the sync engine: the playback element and the
OS media-session integration.

    - PlaybackElement / ClockPlaybackElement: media element surface
    - MediaSession / InMemoryMediaSession: now-playing integration surface
"""

from nowplaying_sync.playback.element import (
    AutoplayPolicy,
    ClockPlaybackElement,
    PlaybackElement,
    PlaybackError,
    SilentCue,
    observe,
    probe_duration,
)
from nowplaying_sync.playback.media_session import (
    InMemoryMediaSession,
    MediaSession,
    MediaSessionError,
)


__all__ = [
    "AutoplayPolicy",
    "ClockPlaybackElement",
    "PlaybackElement",
    "PlaybackError",
    "SilentCue",
    "observe",
    "probe_duration",
    "InMemoryMediaSession",
    "MediaSession",
    "MediaSessionError",
]
