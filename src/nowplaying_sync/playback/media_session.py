"""
Media Session
=============

The OS-level "now playing" integration consumed by the sync engine.

This module provides:
    - MediaSession: Protocol for the integration surface
    - InMemoryMediaSession: In-process integration that validates updates
      the way platform integrations do, and publishes snapshots to
      remote panels

Validation (InMemoryMediaSession):
    - Position state must have a finite positive duration, a non-zero
      finite rate, and a position within [0, duration]
    - Metadata updates closer together than min_metadata_interval_ms
      are rejected as too frequent
    - Rejections raise MediaSessionError; callers must catch it
"""

import logging
import math
import time
from typing import Callable, Dict, Optional, Protocol

from nowplaying_sync.models.control import ControlAction, ControlIntent
from nowplaying_sync.models.media import (
    MediaMetadata,
    NowPlaying,
    PlaybackState,
    PositionState,
)


logger = logging.getLogger(__name__)


ActionHandler = Callable[[ControlIntent], None]


class MediaSessionError(ValueError):
    """Raised when the integration rejects an update."""
    pass


class MediaSession(Protocol):
    """Protocol for the OS media-session integration."""
    
    playback_state: PlaybackState
    
    def set_metadata(self, metadata: Optional[MediaMetadata]) -> None:
        ...
    
    def set_position_state(self, state: Optional[PositionState]) -> None:
        """Set the position state, or clear it with None."""
        ...
    
    def set_action_handler(
        self,
        action: ControlAction,
        handler: Optional[ActionHandler],
    ) -> None:
        """Register (or with None, remove) a control-intent handler."""
        ...


class InMemoryMediaSession:
    """
    In-process media-session integration.
    
    Attributes:
        metadata: Last accepted metadata
        position: Last accepted position state
        playback_state: Advertised playback state
        version: Bumped on every accepted change
        rejected_count: Updates rejected so far
    
    Example:
        session = InMemoryMediaSession()
        session.set_action_handler(ControlAction.PLAY, on_play)
        session.dispatch(ControlIntent(action=ControlAction.PLAY))
    """
    
    def __init__(
        self,
        min_metadata_interval_ms: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the integration.
        
        Args:
            min_metadata_interval_ms: Reject metadata updates closer than this
            clock: Monotonic clock in seconds
        """
        self.min_metadata_interval_ms = min_metadata_interval_ms
        self._clock = clock
        
        self.metadata: Optional[MediaMetadata] = None
        self.position: Optional[PositionState] = None
        self._playback_state: PlaybackState = PlaybackState.NONE
        self._handlers: Dict[ControlAction, ActionHandler] = {}
        self._last_metadata_at: Optional[float] = None
        
        self.version: int = 0
        self.updated_at: float = 0.0
        self.metadata_updates: int = 0
        self.position_updates: int = 0
        self.rejected_count: int = 0
    
    @property
    def playback_state(self) -> PlaybackState:
        return self._playback_state
    
    @playback_state.setter
    def playback_state(self, state: PlaybackState) -> None:
        self._playback_state = PlaybackState(state)
        self._touch()
    
    def set_metadata(self, metadata: Optional[MediaMetadata]) -> None:
        now = self._clock()
        if metadata is not None and self._last_metadata_at is not None:
            elapsed_ms = (now - self._last_metadata_at) * 1000.0
            if elapsed_ms < self.min_metadata_interval_ms:
                self.rejected_count += 1
                raise MediaSessionError(
                    f"Metadata update too frequent ({elapsed_ms:.0f}ms < "
                    f"{self.min_metadata_interval_ms:.0f}ms)"
                )
        
        self.metadata = metadata
        self._last_metadata_at = now
        self.metadata_updates += 1
        self._touch()
    
    def set_position_state(self, state: Optional[PositionState]) -> None:
        if state is not None:
            self._validate_position(state)
        
        self.position = state
        self.position_updates += 1
        self._touch()
    
    def set_action_handler(
        self,
        action: ControlAction,
        handler: Optional[ActionHandler],
    ) -> None:
        action = ControlAction(action)
        if handler is None:
            self._handlers.pop(action, None)
        else:
            self._handlers[action] = handler
        self._touch()
    
    def has_handler(self, action: ControlAction) -> bool:
        return ControlAction(action) in self._handlers
    
    def dispatch(self, intent: ControlIntent) -> bool:
        """
        Deliver a control intent to its registered handler.
        
        Returns:
            True if a handler was registered for the action.
        """
        handler = self._handlers.get(intent.action)
        if handler is None:
            logger.debug(f"No handler for action '{intent.action.value}'")
            return False
        
        handler(intent)
        return True
    
    def snapshot(self) -> NowPlaying:
        return NowPlaying(
            metadata=self.metadata,
            position=self.position,
            playback_state=self._playback_state,
            actions=sorted(action.value for action in self._handlers),
            version=self.version,
            updated_at=self.updated_at,
        )
    
    def _validate_position(self, state: PositionState) -> None:
        problem: Optional[str] = None
        
        if not math.isfinite(state.duration) or state.duration <= 0:
            problem = f"invalid duration {state.duration}"
        elif not math.isfinite(state.playback_rate) or state.playback_rate == 0:
            problem = f"invalid playback rate {state.playback_rate}"
        elif state.position < 0 or state.position > state.duration:
            problem = f"position {state.position} outside [0, {state.duration}]"
        
        if problem:
            self.rejected_count += 1
            raise MediaSessionError(f"Position state rejected: {problem}")
    
    def _touch(self) -> None:
        self.version += 1
        self.updated_at = time.time()
