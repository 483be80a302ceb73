"""
Playback Element
================

The video/audio playback surface consumed by the sync engine.

This module provides:
    - PlaybackElement: Protocol mirroring a media element
      (current_time, duration, paused, playback_rate, muted, play(), pause(),
      play/pause/error events)
    - ClockPlaybackElement: Headless, clock-driven element for a silent,
      looping video whose duration is probed from the file
    - AutoplayPolicy + SilentCue: The platform's audible-playback permission
      and the inaudible cue that obtains it
    - observe(): Per-tick PlaybackObservation

Autoplay Rules (ClockPlaybackElement):
    - play() while unmuted without permission raises PlaybackError
    - muted = False while playing without permission raises PlaybackError
    - play() while muted is always permitted unless muted autoplay is denied
"""

import logging
import math
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Union

import cv2

from nowplaying_sync.models.playback import PlaybackObservation


logger = logging.getLogger(__name__)


EVENTS = ("play", "pause", "error")


class PlaybackError(RuntimeError):
    """Raised when the platform refuses to start or unmute playback."""
    pass


class PlaybackElement(Protocol):
    """Protocol for the playback element."""
    
    current_time: float
    muted: bool
    
    @property
    def duration(self) -> float:
        """Duration in seconds, NaN while unknown."""
        ...
    
    @property
    def paused(self) -> bool:
        ...
    
    @property
    def playback_rate(self) -> float:
        ...
    
    @property
    def error(self) -> Optional[str]:
        ...
    
    async def play(self) -> None:
        """Start playback. Raises PlaybackError if refused."""
        ...
    
    def pause(self) -> None:
        ...
    
    def add_event_listener(self, event: str, callback: Callable[[], None]) -> None:
        ...
    
    def remove_event_listener(self, event: str, callback: Callable[[], None]) -> None:
        ...


def observe(element: PlaybackElement) -> PlaybackObservation:
    """Read one PlaybackObservation from an element."""
    return PlaybackObservation(
        position_seconds=element.current_time,
        duration_seconds=element.duration,
        is_paused=element.paused,
        playback_rate=element.playback_rate,
    )


def probe_duration(video_path: Union[str, Path]) -> float:
    """
    Best-effort video length in seconds.
    
    Returns:
        Duration, or NaN if the file is missing or unreadable.
    """
    path = Path(video_path)
    if not path.exists():
        return math.nan
    
    capture = cv2.VideoCapture(str(path))
    try:
        if not capture.isOpened():
            return math.nan
        frame_count = capture.get(cv2.CAP_PROP_FRAME_COUNT)
        fps = capture.get(cv2.CAP_PROP_FPS)
    finally:
        capture.release()
    
    if fps <= 0 or frame_count <= 0:
        return math.nan
    return float(frame_count / fps)


@dataclass
class AutoplayPolicy:
    """
    Platform restriction on starting media without a user gesture.
    
    Attributes:
        audible_requires_gesture: Audible playback needs a granted permission
        muted_autoplay_allowed: Muted playback may start freely
        granted: Permission obtained (by a SilentCue played in a gesture)
    """
    
    audible_requires_gesture: bool = True
    muted_autoplay_allowed: bool = True
    granted: bool = False
    
    @property
    def audible_allowed(self) -> bool:
        return self.granted or not self.audible_requires_gesture


class SilentCue:
    """
    Short inaudible audio cue.
    
    Playing it inside a user gesture grants audible-playback permission
    on platforms that tie the grant to any audio output.
    """
    
    def __init__(self, policy: AutoplayPolicy, grants_permission: bool = True) -> None:
        self.policy = policy
        self.grants_permission = grants_permission
        self.play_count: int = 0
    
    async def play(self) -> None:
        self.play_count += 1
        if self.grants_permission:
            self.policy.granted = True


class ClockPlaybackElement:
    """
    Clock-driven playback element for a silent video.
    
    Position advances with a monotonic clock while playing; the element
    loops at its duration when loop is set.
    
    Example:
        element = ClockPlaybackElement(duration=219.0)
        element.muted = True
        await element.play()
        element.current_time   # advances with time.monotonic()
    """
    
    def __init__(
        self,
        duration: float = math.nan,
        loop: bool = True,
        policy: Optional[AutoplayPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._duration = float(duration)
        self.loop = loop
        self.policy = policy or AutoplayPolicy()
        self._clock = clock
        
        self._paused: bool = True
        self._muted: bool = True
        self._rate: float = 1.0
        self._error: Optional[str] = None
        
        # Position at the last anchor point, and clock reading then
        self._anchor_position: float = 0.0
        self._anchor_clock: float = clock()
        
        self._listeners: Dict[str, List[Callable[[], None]]] = {e: [] for e in EVENTS}
    
    @property
    def duration(self) -> float:
        return self._duration
    
    @property
    def playback_rate(self) -> float:
        return self._rate
    
    @property
    def error(self) -> Optional[str]:
        return self._error
    
    @property
    def paused(self) -> bool:
        if not self._paused and self._reached_end():
            self._anchor(self._duration)
            self._paused = True
            self._emit("pause")
        return self._paused
    
    @property
    def current_time(self) -> float:
        if self._paused:
            return self._anchor_position
        
        elapsed = (self._clock() - self._anchor_clock) * self._rate
        position = self._anchor_position + elapsed
        
        if self._duration_known():
            if self.loop:
                return position % self._duration
            return min(position, self._duration)
        return position
    
    @current_time.setter
    def current_time(self, seconds: float) -> None:
        seconds = max(0.0, float(seconds))
        if self._duration_known():
            seconds = min(seconds, self._duration)
        self._anchor(seconds)
    
    @property
    def muted(self) -> bool:
        return self._muted
    
    @muted.setter
    def muted(self, value: bool) -> None:
        if not value and not self._paused and not self.policy.audible_allowed:
            raise PlaybackError("NotAllowedError: unmute requires a user gesture")
        self._muted = bool(value)
    
    async def play(self) -> None:
        if not self._paused:
            return
        
        if not self._muted and not self.policy.audible_allowed:
            raise PlaybackError("NotAllowedError: audible playback requires a user gesture")
        if self._muted and not self.policy.muted_autoplay_allowed:
            raise PlaybackError("NotAllowedError: playback requires a user gesture")
        
        if self._duration_known() and not self.loop and self._anchor_position >= self._duration:
            self._anchor_position = 0.0
        
        self._anchor(self._anchor_position)
        self._paused = False
        self._emit("play")
    
    def pause(self) -> None:
        if self._paused:
            return
        self._anchor(self.current_time)
        self._paused = True
        self._emit("pause")
    
    def fail(self, message: str) -> None:
        """Record a media error (e.g. source unreadable) and notify listeners."""
        self._error = message
        if not self._paused:
            self._anchor(self.current_time)
            self._paused = True
            self._emit("pause")
        self._emit("error")
    
    def add_event_listener(self, event: str, callback: Callable[[], None]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown event: {event}")
        self._listeners[event].append(callback)
    
    def remove_event_listener(self, event: str, callback: Callable[[], None]) -> None:
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)
    
    def _duration_known(self) -> bool:
        return math.isfinite(self._duration) and self._duration > 0
    
    def _reached_end(self) -> bool:
        if self.loop or not self._duration_known():
            return False
        return self.current_time >= self._duration
    
    def _anchor(self, position: float) -> None:
        self._anchor_position = position
        self._anchor_clock = self._clock()
    
    def _emit(self, event: str) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback()
            except Exception as e:
                logger.error(f"Listener for '{event}' failed: {e}")
