"""
Unlock Models
=============

State and reason codes for the autoplay-unlock state machine.

States:
    LOCKED → UNLOCKING → UNLOCKED
                       ↘ MUTED_FALLBACK (terminal for the session)

A failed attempt returns to LOCKED; the next user gesture retries.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class UnlockState(str, Enum):
    """
    Autoplay-unlock states.
    
    Attributes:
        LOCKED: No audible playback has succeeded yet
        UNLOCKING: A play cascade is in flight
        UNLOCKED: Audible playback confirmed, plays are direct
        MUTED_FALLBACK: Playback works only muted for this session
    """
    
    LOCKED = "LOCKED"
    UNLOCKING = "UNLOCKING"
    UNLOCKED = "UNLOCKED"
    MUTED_FALLBACK = "MUTED_FALLBACK"


class UnlockReason(str, Enum):
    """
    Machine-readable explanation of an unlock attempt's outcome.
    
    Exactly one reason accompanies every UnlockResult.
    """
    
    AUDIBLE_START = "AUDIBLE_START"
    UNMUTED_AFTER_START = "UNMUTED_AFTER_START"
    UNMUTE_REJECTED = "UNMUTE_REJECTED"
    UNMUTE_SKIPPED = "UNMUTE_SKIPPED"
    MUTED_RETRY_SUCCEEDED = "MUTED_RETRY_SUCCEEDED"
    PLAY_REJECTED = "PLAY_REJECTED"
    DIRECT_PLAY = "DIRECT_PLAY"
    ALREADY_UNLOCKING = "ALREADY_UNLOCKING"


class UnlockResult(BaseModel):
    """Outcome of one play request."""
    
    state: UnlockState
    reason: UnlockReason
    play_attempts: int = Field(default=0, ge=0, description="play() calls made")
    playing: bool = Field(default=False, description="Element is now playing")
    muted: bool = Field(default=False, description="Element ended up muted")
    error: Optional[str] = Field(default=None, description="Last play failure")


class StatusMessage(BaseModel):
    """
    User-visible status line.
    
    Errors are transient and dismissible; notices persist for the session.
    """
    
    text: str
    kind: str = Field(default="error", description="'error' or 'notice'")
    persistent: bool = False
