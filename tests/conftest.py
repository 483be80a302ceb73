"""
Test Configuration
==================

Pytest fixtures and test doubles for nowplaying-sync.

The doubles stand in for the browser-side collaborators (playback
element, media-session integration, frame scheduler, image loader) so the
engine can be driven tick by tick.
"""

import asyncio
from typing import Callable, Dict, List, Optional

import cv2
import numpy as np
import pytest

from nowplaying_sync.artwork.naming import ArtworkCatalog, ArtworkReference
from nowplaying_sync.models.control import ControlAction
from nowplaying_sync.models.media import MediaMetadata, PlaybackState, PositionState
from nowplaying_sync.models.platform import PlatformProfile
from nowplaying_sync.playback.element import PlaybackError
from nowplaying_sync.playback.media_session import MediaSessionError


# =============================================================================
# Test Doubles
# =============================================================================

class FakeClock:
    """Manually advanced monotonic clock (seconds)."""
    
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
    
    def __call__(self) -> float:
        return self.now
    
    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeElement:
    """
    Scriptable playback element.
    
    play_results is consumed one entry per play() call: True succeeds,
    False raises PlaybackError. Once exhausted, play() succeeds.
    """
    
    def __init__(
        self,
        duration: float = 120.0,
        play_results: Optional[List[bool]] = None,
        unmute_allowed: bool = True,
    ) -> None:
        self.current_time = 0.0
        self.duration = duration
        self.playback_rate = 1.0
        self.error: Optional[str] = None
        self.play_results = list(play_results or [])
        self.unmute_allowed = unmute_allowed
        self.gate: Optional[asyncio.Event] = None
        
        self.play_calls: List[bool] = []
        self._paused = True
        self._muted = False
        self.listeners: Dict[str, List[Callable[[], None]]] = {
            "play": [], "pause": [], "error": [],
        }
    
    @property
    def paused(self) -> bool:
        return self._paused
    
    @property
    def muted(self) -> bool:
        return self._muted
    
    @muted.setter
    def muted(self, value: bool) -> None:
        if not value and not self._paused and not self.unmute_allowed:
            raise PlaybackError("NotAllowedError: unmute blocked")
        self._muted = value
    
    async def play(self) -> None:
        self.play_calls.append(self._muted)
        if self.gate is not None:
            await self.gate.wait()
        
        ok = self.play_results.pop(0) if self.play_results else True
        if not ok:
            raise PlaybackError("NotAllowedError: play blocked")
        
        if self._paused:
            self._paused = False
            self._emit("play")
    
    def pause(self) -> None:
        if not self._paused:
            self._paused = True
            self._emit("pause")
    
    def add_event_listener(self, event: str, callback: Callable[[], None]) -> None:
        self.listeners[event].append(callback)
    
    def remove_event_listener(self, event: str, callback: Callable[[], None]) -> None:
        if callback in self.listeners[event]:
            self.listeners[event].remove(callback)
    
    def _emit(self, event: str) -> None:
        for callback in list(self.listeners[event]):
            callback()


class FakeCue:
    """Audio cue that records plays and can be made to fail."""
    
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.play_count = 0
    
    async def play(self) -> None:
        self.play_count += 1
        if self.fail:
            raise PlaybackError("cue blocked")


class RecordingMediaSession:
    """Media-session double that records updates and can reject them."""
    
    def __init__(self) -> None:
        self.playback_state = PlaybackState.NONE
        self.metadata_calls: List[MediaMetadata] = []
        self.position_calls: List[PositionState] = []
        self.handlers: Dict[ControlAction, Callable] = {}
        self.reject_metadata = False
        self.reject_position = False
    
    def set_metadata(self, metadata: Optional[MediaMetadata]) -> None:
        if self.reject_metadata:
            raise MediaSessionError("metadata rejected")
        self.metadata_calls.append(metadata)
    
    def set_position_state(self, state: Optional[PositionState]) -> None:
        if self.reject_position:
            raise MediaSessionError("position rejected")
        self.position_calls.append(state)
    
    def set_action_handler(self, action: ControlAction, handler: Optional[Callable]) -> None:
        if handler is None:
            self.handlers.pop(action, None)
        else:
            self.handlers[action] = handler
    
    @property
    def artwork_srcs(self) -> List[str]:
        return [m.artwork_src for m in self.metadata_calls]


class ManualScheduler:
    """Frame scheduler fired explicitly by the test."""
    
    def __init__(self) -> None:
        self.pending: Dict[int, Callable[[float], None]] = {}
        self.requested: List[Callable[[float], None]] = []
        self.cancelled: List[int] = []
        self._next_handle = 0
    
    def request_frame(self, callback: Callable[[float], None]) -> int:
        self._next_handle += 1
        self.pending[self._next_handle] = callback
        self.requested.append(callback)
        return self._next_handle
    
    def cancel_frame(self, handle: int) -> None:
        self.pending.pop(handle, None)
        self.cancelled.append(handle)
    
    def fire(self, now_ms: float) -> int:
        """Run every pending callback once; return how many ran."""
        callbacks = list(self.pending.values())
        self.pending.clear()
        for callback in callbacks:
            callback(now_ms)
        return len(callbacks)


class RecordingLoader:
    """Image loader that records submissions and releases."""
    
    def __init__(self) -> None:
        self.submitted: List[ArtworkReference] = []
        self.released: List[ArtworkReference] = []
    
    def submit(self, ref: ArtworkReference) -> None:
        self.submitted.append(ref)
    
    def release(self, ref: ArtworkReference) -> None:
        self.released.append(ref)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def desktop_profile():
    """Permissive desktop classification."""
    return PlatformProfile(is_touch_primary=False, is_android_like=False)


@pytest.fixture
def strict_profile():
    """iPhone-class classification."""
    return PlatformProfile(is_touch_primary=True, is_android_like=False)


@pytest.fixture
def android_profile():
    return PlatformProfile(is_touch_primary=True, is_android_like=True)


@pytest.fixture
def catalog():
    """The full 6571-frame sequence under /assets/frames."""
    return ArtworkCatalog(base_url="/assets/frames", total_frames=6571)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_element():
    return FakeElement()


@pytest.fixture
def recording_session():
    return RecordingMediaSession()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def recording_loader():
    return RecordingLoader()


@pytest.fixture
def frames_dir(tmp_path):
    """Directory holding three small valid JPEG frames."""
    directory = tmp_path / "frames"
    directory.mkdir()
    
    for index in (1, 2, 3):
        image = np.full((36, 48, 3), index * 60, dtype=np.uint8)
        ok, encoded = cv2.imencode(".jpg", image)
        assert ok
        (directory / f"output_{index:04d}.jpg").write_bytes(encoded.tobytes())
    
    return directory
