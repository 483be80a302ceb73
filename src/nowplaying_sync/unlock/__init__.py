"""
Unlock Module
=============

Autoplay-unlock state machine (LangGraph control flow, no LLM).
"""

from nowplaying_sync.unlock.controller import (
    AudioCue,
    UnlockController,
    UnlockSettings,
)

__all__ = [
    "AudioCue",
    "UnlockController",
    "UnlockSettings",
]
