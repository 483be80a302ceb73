"""
Sync Loop
=========

Per-tick driver that maps playback position to OS media-session updates.

Each tick, given a timestamp t (ms) and a PlaybackObservation:
    1. Progress: publish position/duration to the progress indicator
       (every tick, when duration is known)
    2. Position report: at most once per position_report_interval_ms,
       only with a finite positive duration
    3. Artwork: at most once per metadata_update_interval_ms, publish new
       metadata when the frame's artwork reference changed, then prefetch
       upcoming frames
    4. Reschedule unless paused

Design Rules:
    - Steps 2 and 3 are throttled independently
    - OS rejections are caught and logged; they never stop the loop
    - A rejected update is not retried before its next throttle window
    - Every scheduled tick carries the generation it was scheduled under;
      start() and stop() advance the generation, so a stale tick is a no-op
    - The loop is not self-sustaining: once paused it must be restarted
"""

import logging
import math
from typing import Any, Optional, Protocol

from nowplaying_sync.artwork.cache import FrameArtworkCache
from nowplaying_sync.artwork.naming import ArtworkCatalog, ArtworkReference
from nowplaying_sync.models.media import MetadataTemplate, PositionState
from nowplaying_sync.models.playback import PlaybackObservation
from nowplaying_sync.playback.element import PlaybackElement, observe
from nowplaying_sync.playback.media_session import MediaSession
from nowplaying_sync.policy.throttle import ThrottlePolicy
from nowplaying_sync.sync.scheduler import FrameScheduler


logger = logging.getLogger(__name__)


class ProgressIndicator(Protocol):
    """Visual progress surface (presentation only)."""
    
    def set_fraction(self, fraction: float) -> None:
        ...


class ProgressState:
    """Progress indicator backed by a plain value, read by the HTTP layer."""
    
    def __init__(self) -> None:
        self.fraction: float = 0.0
        self.updates: int = 0
    
    def set_fraction(self, fraction: float) -> None:
        self.fraction = fraction
        self.updates += 1


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


class SyncLoopMetrics:
    """Counters for SyncLoop observability."""
    
    __slots__ = (
        "ticks",
        "stale_ticks",
        "position_reports",
        "position_rejections",
        "metadata_updates",
        "metadata_rejections",
        "prefetch_requests",
    )
    
    def __init__(self) -> None:
        self.ticks: int = 0
        self.stale_ticks: int = 0
        self.position_reports: int = 0
        self.position_rejections: int = 0
        self.metadata_updates: int = 0
        self.metadata_rejections: int = 0
        self.prefetch_requests: int = 0
    
    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in self.__slots__}


class SyncLoop:
    """
    Throttled playback-to-metadata synchronization loop.
    
    All timing state is owned by the instance, so several loops (e.g. in
    tests) never interfere.
    
    Attributes:
        policy: Throttle intervals and prefetch horizon
        running: Whether a tick is currently scheduled
        generation: Session counter guarding against stale ticks
        last_artwork: Last artwork reference accepted by the OS integration
        metrics: Operational counters
    
    Example:
        loop = SyncLoop(element, media_session, policy, catalog, cache, scheduler)
        loop.start()    # on the element's play event
        loop.stop()     # on the element's pause event
    """
    
    def __init__(
        self,
        element: PlaybackElement,
        media_session: MediaSession,
        policy: ThrottlePolicy,
        catalog: ArtworkCatalog,
        cache: FrameArtworkCache,
        scheduler: FrameScheduler,
        template: Optional[MetadataTemplate] = None,
        progress: Optional[ProgressIndicator] = None,
    ) -> None:
        self.element = element
        self.media_session = media_session
        self.policy = policy
        self.catalog = catalog
        self.cache = cache
        self.scheduler = scheduler
        self.template = template or MetadataTemplate()
        self.progress = progress
        
        self.last_position_report_time: float = -math.inf
        self.last_metadata_update_time: float = -math.inf
        self.last_artwork: Optional[ArtworkReference] = None
        
        self._generation: int = 0
        self._handle: Any = None
        self._running: bool = False
        
        self.metrics = SyncLoopMetrics()
    
    @property
    def generation(self) -> int:
        return self._generation
    
    @property
    def running(self) -> bool:
        return self._running
    
    def start(self) -> int:
        """
        Begin a new playback session and schedule its first tick.
        
        Any tick scheduled by an earlier session is cancelled and, should
        it still fire, ignored.
        
        Returns:
            The new generation.
        """
        self._invalidate()
        self._running = True
        self._schedule(self._generation)
        logger.debug(f"SyncLoop started (generation {self._generation})")
        return self._generation
    
    def stop(self) -> None:
        """Stop rescheduling and invalidate any pending tick."""
        self._invalidate()
        self._running = False
        logger.debug(f"SyncLoop stopped (generation {self._generation})")
    
    def tick(self, now_ms: float, observation: PlaybackObservation) -> bool:
        """
        Run one tick.
        
        Args:
            now_ms: High-resolution timestamp in milliseconds
            observation: Playback state read for this tick
            
        Returns:
            True if the loop should reschedule (not paused).
        """
        self.metrics.ticks += 1
        
        if observation.duration_known:
            self._publish_progress(observation)
            
            if now_ms - self.last_position_report_time >= self.policy.position_report_interval_ms:
                self._report_position(now_ms, observation)
        
        if (
            self.policy.metadata_updates_enabled
            and now_ms - self.last_metadata_update_time >= self.policy.metadata_update_interval_ms
        ):
            self._update_artwork(now_ms, observation)
        
        return not observation.is_paused
    
    def _on_frame(self, generation: int, now_ms: float) -> None:
        if generation != self._generation:
            self.metrics.stale_ticks += 1
            return
        
        self._handle = None
        keep_going = self.tick(now_ms, observe(self.element))
        
        # tick() may have triggered callbacks that restarted or stopped us
        if generation != self._generation:
            return
        
        if keep_going:
            self._schedule(generation)
        else:
            self._running = False
            logger.debug("SyncLoop paused, not rescheduling")
    
    def _schedule(self, generation: int) -> None:
        self._handle = self.scheduler.request_frame(
            lambda now_ms: self._on_frame(generation, now_ms)
        )
    
    def _invalidate(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self.scheduler.cancel_frame(self._handle)
            self._handle = None
    
    def _publish_progress(self, obs: PlaybackObservation) -> None:
        if self.progress is None:
            return
        fraction = clamp(obs.position_seconds / obs.duration_seconds, 0.0, 1.0)
        self.progress.set_fraction(fraction)
    
    def _report_position(self, now_ms: float, obs: PlaybackObservation) -> None:
        self.last_position_report_time = now_ms
        try:
            self.media_session.set_position_state(
                PositionState(
                    duration=obs.duration_seconds,
                    playback_rate=obs.playback_rate,
                    position=clamp(obs.position_seconds, 0.0, obs.duration_seconds),
                )
            )
            self.metrics.position_reports += 1
        except Exception as e:
            self.metrics.position_rejections += 1
            logger.debug(f"Position report rejected: {e}")
    
    def _update_artwork(self, now_ms: float, obs: PlaybackObservation) -> None:
        frame = self.catalog.frame_for_position(
            obs.position_seconds, self.policy.target_fps
        )
        ref = self.catalog.reference(frame)
        
        if ref == self.last_artwork:
            return
        
        self.last_metadata_update_time = now_ms
        try:
            self.media_session.set_metadata(self.template.for_artwork(ref))
        except Exception as e:
            self.metrics.metadata_rejections += 1
            logger.debug(f"Metadata update rejected for frame {frame}: {e}")
            return
        
        self.last_artwork = ref
        self.metrics.metadata_updates += 1
        self._prefetch_after(frame)
    
    def _prefetch_after(self, frame: int) -> None:
        stride = self.policy.prefetch_stride
        for step in range(1, self.policy.prefetch_count + 1):
            if self.cache.request(frame + stride * step):
                self.metrics.prefetch_requests += 1
