"""
nowplaying-sync
===============

Drives "now playing" / lock-screen media controls from the playback
position of a silent, frame-by-frame animated video.

The engine substitutes a still image matching the current frame as the
session artwork and reports position/rate, so content without native
per-frame metadata still shows a moving picture in OS media controls.

Components:
    - policy: Platform classification and throttle policy
    - artwork: Frame naming, FIFO prefetch cache, image loader
    - playback: Playback element and media-session collaborators
    - sync: Throttled per-frame update loop
    - unlock: LangGraph autoplay-unlock state machine
    - session: Intent channel tying it all together

Example:
    from nowplaying_sync.config import settings
    
    # Service is started via the FastAPI application
    # See main.py for entry point
"""

__version__ = "0.1.0"
__author__ = "nowplaying-sync contributors"

__all__ = [
    "__version__",
]
