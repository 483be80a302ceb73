"""
Playback Observation
====================

Ephemeral snapshot of the playback element, read once per tick.
"""

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PlaybackObservation:
    """
    Playback element state at one tick.
    
    Attributes:
        position_seconds: Current playback position
        duration_seconds: Media duration (NaN/inf until metadata loads)
        is_paused: Whether the element reports paused
        playback_rate: Current playback rate
    """
    
    position_seconds: float
    duration_seconds: float
    is_paused: bool
    playback_rate: float = 1.0
    
    @property
    def duration_known(self) -> bool:
        """Duration is a finite positive number."""
        return math.isfinite(self.duration_seconds) and self.duration_seconds > 0
    
    def __repr__(self) -> str:
        return (
            f"PlaybackObservation(pos={self.position_seconds:.3f}, "
            f"dur={self.duration_seconds:.3f}, paused={self.is_paused})"
        )
