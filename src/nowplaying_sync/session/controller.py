"""
Now Playing Session
===================

Wires the playback element, the OS media-session integration, the sync
loop and the unlock controller into one session.

Control flow:
    OS action handlers ─┐
                        ├─→ intent channel (asyncio.Queue) ─→ handle()
    Local UI controls ──┘

    element "play"  → media session "playing", SyncLoop.start()
    element "pause" → media session "paused",  SyncLoop.stop()
    element "error" → dismissible status "Playback Error: ..."

The element's own paused flag is the single authoritative play/pause
state; both control sources only ever request changes to it.
"""

import asyncio
import logging
import math
from typing import Optional

from nowplaying_sync.artwork.naming import ArtworkCatalog
from nowplaying_sync.models.control import OS_ACTIONS, ControlAction, ControlIntent
from nowplaying_sync.models.media import MetadataTemplate, PlaybackState
from nowplaying_sync.models.unlock import StatusMessage, UnlockReason, UnlockResult, UnlockState
from nowplaying_sync.playback.element import PlaybackElement
from nowplaying_sync.playback.media_session import MediaSession
from nowplaying_sync.sync.loop import SyncLoop
from nowplaying_sync.unlock.controller import UnlockController


logger = logging.getLogger(__name__)


MUTED_NOTICE = "Playing muted (audio blocked by platform restriction)"


class NowPlayingSession:
    """
    One playback session and its inbound control channel.
    
    Attributes:
        status: Current user-visible status line, if any
        is_playing: Last observed play/pause state of the element
        
    Example:
        session = NowPlayingSession(element, media_session, sync_loop, unlock, catalog)
        session.attach()
        task = asyncio.create_task(session.run())
        
        session.post(ControlIntent(action=ControlAction.TOGGLE))
        
        await session.stop()
        await task
    """
    
    def __init__(
        self,
        element: PlaybackElement,
        media_session: MediaSession,
        sync_loop: SyncLoop,
        unlock: UnlockController,
        catalog: ArtworkCatalog,
        template: Optional[MetadataTemplate] = None,
        default_seek_offset: float = 10.0,
        max_pending_intents: int = 64,
    ) -> None:
        self.element = element
        self.media_session = media_session
        self.sync_loop = sync_loop
        self.unlock = unlock
        self.catalog = catalog
        self.template = template or MetadataTemplate()
        self.default_seek_offset = default_seek_offset
        
        self._intents: asyncio.Queue[ControlIntent] = asyncio.Queue(
            maxsize=max_pending_intents
        )
        self._stop_event: asyncio.Event = asyncio.Event()
        self._attached: bool = False
        
        self.status: Optional[StatusMessage] = None
        self.is_playing: bool = False
        self.dropped_intents: int = 0
        self.handled_intents: int = 0
    
    # -------------------------------------------------------------------------
    # Wiring
    # -------------------------------------------------------------------------
    
    def attach(self) -> None:
        """Subscribe to element events, register OS handlers, publish frame 1."""
        if self._attached:
            return
        
        self.element.add_event_listener("play", self._on_play)
        self.element.add_event_listener("pause", self._on_pause)
        self.element.add_event_listener("error", self._on_error)
        
        for action in OS_ACTIONS:
            self.media_session.set_action_handler(action, self.post)
        
        try:
            self.media_session.set_metadata(
                self.template.for_artwork(self.catalog.reference(1))
            )
        except Exception as e:
            logger.debug(f"Initial metadata rejected: {e}")
        
        self.media_session.playback_state = PlaybackState.PAUSED
        self._attached = True
        logger.info("Session attached")
    
    def detach(self) -> None:
        if not self._attached:
            return
        
        self.sync_loop.stop()
        self.element.remove_event_listener("play", self._on_play)
        self.element.remove_event_listener("pause", self._on_pause)
        self.element.remove_event_listener("error", self._on_error)
        for action in OS_ACTIONS:
            self.media_session.set_action_handler(action, None)
        self._attached = False
        logger.info("Session detached")
    
    # -------------------------------------------------------------------------
    # Intent channel
    # -------------------------------------------------------------------------
    
    @property
    def pending_intents(self) -> int:
        return self._intents.qsize()
    
    def post(self, intent: ControlIntent) -> bool:
        """
        Queue a control intent without waiting.
        
        Returns:
            False if the channel is full and the intent was dropped.
        """
        try:
            self._intents.put_nowait(intent)
            return True
        except asyncio.QueueFull:
            self.dropped_intents += 1
            logger.warning(f"Intent channel full, dropped '{intent.action.value}'")
            return False
    
    async def run(self) -> None:
        """Consume intents until stop() is called."""
        self._stop_event.clear()
        logger.info("Session intent loop started")
        
        while not self._stop_event.is_set():
            get_task = asyncio.ensure_future(self._intents.get())
            stop_task = asyncio.ensure_future(self._stop_event.wait())
            done, _ = await asyncio.wait(
                {get_task, stop_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
            
            if get_task not in done:
                get_task.cancel()
                stop_task.cancel()
                break
            stop_task.cancel()
            
            intent = get_task.result()
            try:
                await self.handle(intent)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Intent '{intent.action.value}' failed: {e}")
        
        logger.info("Session intent loop stopped")
    
    async def stop(self) -> None:
        self._stop_event.set()
    
    async def handle(self, intent: ControlIntent) -> None:
        """Apply one control intent."""
        self.handled_intents += 1
        action = intent.action
        
        if action == ControlAction.PLAY:
            await self.play()
        elif action == ControlAction.PAUSE:
            self.pause()
        elif action == ControlAction.TOGGLE:
            await self.toggle_play()
        elif action == ControlAction.SEEK_TO:
            if intent.seek_time is not None:
                self.seek_to(intent.seek_time)
        elif action == ControlAction.SEEK_BACKWARD:
            self.seek_by(-(intent.seek_offset or self.default_seek_offset))
        elif action == ControlAction.SEEK_FORWARD:
            self.seek_by(intent.seek_offset or self.default_seek_offset)
        elif action == ControlAction.SEEK_FRACTION:
            if intent.fraction is not None:
                self.seek_to_fraction(intent.fraction)
    
    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------
    
    async def toggle_play(self) -> Optional[UnlockResult]:
        """Clear transient errors, then play if paused, otherwise pause."""
        self.dismiss_status()
        
        if self.element.paused:
            return await self.play()
        
        self.pause()
        return None
    
    async def play(self) -> UnlockResult:
        result = await self.unlock.request_play()
        
        if result.reason == UnlockReason.ALREADY_UNLOCKING:
            return result
        
        if result.state == UnlockState.MUTED_FALLBACK:
            self.status = StatusMessage(text=MUTED_NOTICE, kind="notice", persistent=True)
        elif not result.playing and result.error:
            self.status = StatusMessage(text=f"Error: {result.error}", kind="error")
        
        return result
    
    def pause(self) -> None:
        self.element.pause()
    
    def seek_to(self, seconds: float) -> float:
        """
        Set an absolute position, clamped to [0, duration] when known.
        
        Returns:
            The position actually set.
        """
        target = max(0.0, seconds)
        if self._duration_known():
            target = min(target, self.element.duration)
        
        self.element.current_time = target
        return target
    
    def seek_by(self, offset: float) -> float:
        return self.seek_to(self.element.current_time + offset)
    
    def seek_to_fraction(self, fraction: float) -> Optional[float]:
        """
        Click-to-seek: map [0, 1] linearly onto [0, duration].
        
        Returns:
            The position set, or None while the duration is unknown.
        """
        if not self._duration_known():
            return None
        
        fraction = max(0.0, min(fraction, 1.0))
        return self.seek_to(fraction * self.element.duration)
    
    def dismiss_status(self) -> None:
        """Clear a transient error; persistent notices stay."""
        if self.status is not None and not self.status.persistent:
            self.status = None
    
    def snapshot(self) -> dict:
        return {
            "is_playing": self.is_playing,
            "position": self.element.current_time,
            "duration": self.element.duration if self._duration_known() else None,
            "muted": self.element.muted,
            "unlock_state": self.unlock.state.value,
            "status": self.status.model_dump() if self.status else None,
        }
    
    # -------------------------------------------------------------------------
    # Element events
    # -------------------------------------------------------------------------
    
    def _on_play(self) -> None:
        self.is_playing = True
        self.sync_loop.start()
        self.media_session.playback_state = PlaybackState.PLAYING
    
    def _on_pause(self) -> None:
        self.is_playing = False
        self.sync_loop.stop()
        self.media_session.playback_state = PlaybackState.PAUSED
    
    def _on_error(self) -> None:
        message = self.element.error or "unknown error"
        self.status = StatusMessage(text=f"Playback Error: {message}", kind="error")
        logger.warning(f"Playback element error: {message}")
    
    def _duration_known(self) -> bool:
        duration = self.element.duration
        return math.isfinite(duration) and duration > 0
