"""
Control Intents
===============

Messages carried by the inbound control channel.

Both sources of control converge here:
    - OS media-session action handlers (play, pause, seekto, seekbackward,
      seekforward)
    - Local UI controls (toggle, seekfraction for click-to-seek)

The session consumes intents one at a time, so the playback element stays
the single authoritative play/pause state.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ControlAction(str, Enum):
    """Actions understood by the session."""
    
    PLAY = "play"
    PAUSE = "pause"
    SEEK_TO = "seekto"
    SEEK_BACKWARD = "seekbackward"
    SEEK_FORWARD = "seekforward"
    
    # Local UI only
    TOGGLE = "toggle"
    SEEK_FRACTION = "seekfraction"


# Actions an OS media-session integration may emit
OS_ACTIONS = (
    ControlAction.PLAY,
    ControlAction.PAUSE,
    ControlAction.SEEK_TO,
    ControlAction.SEEK_BACKWARD,
    ControlAction.SEEK_FORWARD,
)


class ControlIntent(BaseModel):
    """
    One control request.
    
    Attributes:
        action: What to do
        seek_time: Absolute target in seconds (seekto)
        seek_offset: Relative offset in seconds (seekbackward/seekforward)
        fraction: Horizontal position on the progress surface (seekfraction)
    """
    
    action: ControlAction
    seek_time: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    seek_offset: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    fraction: Optional[float] = Field(default=None, ge=0.0, le=1.0)
