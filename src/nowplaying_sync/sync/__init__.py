"""
Sync Module
===========

The throttled playback-to-metadata loop and its frame scheduler.
"""

from nowplaying_sync.sync.scheduler import AsyncioFrameScheduler, FrameScheduler
from nowplaying_sync.sync.loop import (
    ProgressIndicator,
    ProgressState,
    SyncLoop,
    SyncLoopMetrics,
)


__all__ = [
    "AsyncioFrameScheduler",
    "FrameScheduler",
    "ProgressIndicator",
    "ProgressState",
    "SyncLoop",
    "SyncLoopMetrics",
]
