"""
Session Module
==============

NowPlayingSession: element events, OS action handlers and local controls
converging on one inbound intent channel.
"""

from nowplaying_sync.session.controller import MUTED_NOTICE, NowPlayingSession

__all__ = [
    "MUTED_NOTICE",
    "NowPlayingSession",
]
