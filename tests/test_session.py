"""
Session Tests
=============

NowPlayingSession: wiring of element events and OS handlers, the intent
channel, play/pause, seeking and the status line.
"""

import asyncio
import math

import pytest

from conftest import ManualScheduler, RecordingLoader
from nowplaying_sync.artwork.cache import FrameArtworkCache
from nowplaying_sync.models.control import OS_ACTIONS, ControlAction, ControlIntent
from nowplaying_sync.models.media import PlaybackState
from nowplaying_sync.models.unlock import UnlockState
from nowplaying_sync.playback.element import AutoplayPolicy, ClockPlaybackElement, SilentCue
from nowplaying_sync.playback.media_session import InMemoryMediaSession
from nowplaying_sync.policy.throttle import derive_throttle_policy
from nowplaying_sync.session.controller import MUTED_NOTICE, NowPlayingSession
from nowplaying_sync.sync.loop import SyncLoop
from nowplaying_sync.unlock.controller import UnlockController, UnlockSettings


@pytest.fixture
def make_session(catalog, desktop_profile, fake_clock):
    """Build a session over a clock element and an in-memory media session."""
    
    def _make(duration=120.0, grants_permission=True, muted_autoplay_allowed=True, **kwargs):
        policy = AutoplayPolicy(muted_autoplay_allowed=muted_autoplay_allowed)
        element = ClockPlaybackElement(duration=duration, policy=policy, clock=fake_clock)
        media_session = InMemoryMediaSession(clock=fake_clock)
        sync_loop = SyncLoop(
            element=element,
            media_session=media_session,
            policy=derive_throttle_policy(desktop_profile, 30),
            catalog=catalog,
            cache=FrameArtworkCache(catalog, RecordingLoader(), capacity=150),
            scheduler=ManualScheduler(),
        )
        unlock = UnlockController(
            element,
            cue=SilentCue(policy, grants_permission=grants_permission),
            settings=UnlockSettings(unmute_delay_ms=0),
        )
        session = NowPlayingSession(
            element=element,
            media_session=media_session,
            sync_loop=sync_loop,
            unlock=unlock,
            catalog=catalog,
            **kwargs,
        )
        session.attach()
        return session
    
    return _make


class TestSessionWiring:
    """Tests for attach()/detach()."""
    
    def test_attach_publishes_first_frame(self, make_session):
        session = make_session()
        metadata = session.media_session.metadata
        
        assert metadata.artwork_src == "/assets/frames/output_0001.jpg"
        assert metadata.title == "Bad Apple!!"
        assert session.media_session.playback_state == PlaybackState.PAUSED
    
    def test_attach_registers_os_handlers(self, make_session):
        session = make_session()
        
        for action in OS_ACTIONS:
            assert session.media_session.has_handler(action)
        assert not session.media_session.has_handler(ControlAction.TOGGLE)
    
    def test_detach_removes_handlers(self, make_session):
        session = make_session()
        session.detach()
        
        for action in OS_ACTIONS:
            assert not session.media_session.has_handler(action)
    
    def test_os_action_lands_on_intent_channel(self, make_session):
        """OS handlers never act directly; they queue intents."""
        session = make_session()
        
        dispatched = session.media_session.dispatch(ControlIntent(action=ControlAction.PLAY))
        
        assert dispatched
        assert session.pending_intents == 1
        assert session.element.paused


class TestPlayPause:
    """Tests for play, pause and toggle."""
    
    @pytest.mark.asyncio
    async def test_toggle_plays_then_pauses(self, make_session):
        session = make_session()
        
        await session.toggle_play()
        assert session.is_playing
        assert not session.element.paused
        assert session.media_session.playback_state == PlaybackState.PLAYING
        assert session.sync_loop.running
        
        await session.toggle_play()
        assert not session.is_playing
        assert session.element.paused
        assert session.media_session.playback_state == PlaybackState.PAUSED
        assert not session.sync_loop.running
    
    @pytest.mark.asyncio
    async def test_play_unlocks_audio(self, make_session):
        session = make_session()
        result = await session.play()
        
        assert result.state == UnlockState.UNLOCKED
        assert not session.element.muted
        assert session.status is None
    
    @pytest.mark.asyncio
    async def test_muted_fallback_notice(self, make_session):
        """Muted fallback shows a notice that survives dismissal."""
        session = make_session(grants_permission=False)
        
        await session.play()
        
        assert session.status.text == MUTED_NOTICE
        assert session.status.persistent
        
        session.dismiss_status()
        await session.toggle_play()
        assert session.status.text == MUTED_NOTICE
    
    @pytest.mark.asyncio
    async def test_play_failure_shows_error(self, make_session):
        session = make_session(grants_permission=False, muted_autoplay_allowed=False)
        
        result = await session.play()
        
        assert result.state == UnlockState.LOCKED
        assert session.status.text.startswith("Error: ")
        assert not session.status.persistent
        assert session.element.paused
    
    @pytest.mark.asyncio
    async def test_toggle_dismisses_transient_error(self, make_session):
        session = make_session(grants_permission=False, muted_autoplay_allowed=False)
        await session.play()
        assert session.status is not None
        
        session.element.policy.muted_autoplay_allowed = True
        await session.toggle_play()
        
        assert session.status.text == MUTED_NOTICE
    
    def test_element_error_sets_status(self, make_session):
        session = make_session()
        session.element.fail("MEDIA_ERR_DECODE")
        
        assert session.status.text == "Playback Error: MEDIA_ERR_DECODE"
        assert session.status.kind == "error"


class TestSeeking:
    """Tests for seek operations."""
    
    def test_seek_fraction(self, make_session):
        """Click at the middle of a 120 s bar seeks to 60 s."""
        session = make_session(duration=120.0)
        
        assert session.seek_to_fraction(0.5) == 60.0
        assert session.element.current_time == 60.0
    
    def test_seek_fraction_unknown_duration(self, make_session):
        session = make_session(duration=math.nan)
        
        assert session.seek_to_fraction(0.5) is None
        assert session.element.current_time == 0.0
    
    def test_seek_to_clamps(self, make_session):
        session = make_session(duration=120.0)
        
        assert session.seek_to(500.0) == 120.0
        assert session.seek_to(-3.0) == 0.0
    
    def test_seek_by(self, make_session):
        session = make_session(duration=120.0)
        session.seek_to(5.0)
        
        assert session.seek_by(-10.0) == 0.0
        session.seek_to(115.0)
        assert session.seek_by(10.0) == 120.0
    
    @pytest.mark.asyncio
    async def test_seek_intents_default_offset(self, make_session):
        """Missing or zero offsets use the default of 10 s."""
        session = make_session(duration=120.0)
        session.seek_to(50.0)
        
        await session.handle(ControlIntent(action=ControlAction.SEEK_FORWARD))
        assert session.element.current_time == 60.0
        
        await session.handle(ControlIntent(action=ControlAction.SEEK_BACKWARD, seek_offset=0))
        assert session.element.current_time == 50.0
        
        await session.handle(ControlIntent(action=ControlAction.SEEK_BACKWARD, seek_offset=5))
        assert session.element.current_time == 45.0
    
    @pytest.mark.asyncio
    async def test_seekto_intent(self, make_session):
        session = make_session(duration=120.0)
        
        await session.handle(ControlIntent(action=ControlAction.SEEK_TO, seek_time=42.0))
        assert session.element.current_time == 42.0
        
        # seekto without a time is ignored
        await session.handle(ControlIntent(action=ControlAction.SEEK_TO))
        assert session.element.current_time == 42.0
    
    def test_custom_default_offset(self, make_session):
        session = make_session(default_seek_offset=5.0)
        assert session.default_seek_offset == 5.0


class TestIntentChannel:
    """Tests for the queued intent loop."""
    
    @pytest.mark.asyncio
    async def test_run_processes_intents_in_order(self, make_session):
        session = make_session(duration=120.0)
        
        session.post(ControlIntent(action=ControlAction.SEEK_TO, seek_time=30.0))
        session.post(ControlIntent(action=ControlAction.SEEK_FORWARD, seek_offset=5.0))
        session.post(ControlIntent(action=ControlAction.SEEK_FRACTION, fraction=0.25))
        
        task = asyncio.create_task(session.run())
        for _ in range(50):
            if session.handled_intents == 3:
                break
            await asyncio.sleep(0.01)
        
        await session.stop()
        await asyncio.wait_for(task, timeout=1.0)
        
        assert session.handled_intents == 3
        assert session.element.current_time == 30.0
    
    @pytest.mark.asyncio
    async def test_run_survives_failing_intent(self, make_session, monkeypatch):
        session = make_session()
        
        def broken(seconds):
            raise RuntimeError("boom")
        
        monkeypatch.setattr(session, "seek_to", broken)
        session.post(ControlIntent(action=ControlAction.SEEK_TO, seek_time=1.0))
        session.post(ControlIntent(action=ControlAction.PAUSE))
        
        task = asyncio.create_task(session.run())
        for _ in range(50):
            if session.handled_intents == 2:
                break
            await asyncio.sleep(0.01)
        
        await session.stop()
        await asyncio.wait_for(task, timeout=1.0)
        
        assert session.handled_intents == 2
    
    def test_full_channel_drops_intents(self, make_session):
        session = make_session(max_pending_intents=1)
        
        assert session.post(ControlIntent(action=ControlAction.PLAY)) is True
        assert session.post(ControlIntent(action=ControlAction.PAUSE)) is False
        assert session.dropped_intents == 1
    
    def test_snapshot(self, make_session):
        session = make_session(duration=120.0)
        session.seek_to(12.0)
        
        snapshot = session.snapshot()
        
        assert snapshot["is_playing"] is False
        assert snapshot["position"] == 12.0
        assert snapshot["duration"] == 120.0
        assert snapshot["unlock_state"] == "LOCKED"
        assert snapshot["status"] is None
