"""
nowplaying-sync Main Application
================================

FastAPI entry point for the now-playing synchronization service.

The service plays a silent, frame-by-frame animated video on a clock-driven
element and keeps an in-process media session in step with it: artwork
follows the current frame, position follows the playhead. Remote panels
read the session and send control intents back.

Endpoints:
    GET  /                        - Service information
    GET  /health                  - Liveness probe
    GET  /ready                   - Readiness probe (intent loop running?)
    GET  /metrics                 - Loop, cache and session counters
    GET  /now-playing             - Media session snapshot + progress
    POST /actions/{action}        - OS control intent (play, pause, seekto,
                                    seekbackward, seekforward)
    POST /controls/toggle         - Local play/pause button
    POST /controls/seek           - Click-to-seek (fraction of the bar)
    POST /controls/dismiss        - Dismiss a transient error
    GET  /assets/frames/{name}    - Artwork bytes (prefetched or on demand)
    WS   /ws/now-playing          - Now-playing stream
"""

import asyncio
import logging
import math
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from fastapi import Body, FastAPI, Request, WebSocket
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from nowplaying_sync.config import Settings, settings
from nowplaying_sync.artwork import (
    ArtworkCatalog,
    FileImageLoader,
    FrameArtworkCache,
    ImageDecodeError,
    cache_capacity,
)
from nowplaying_sync.models import (
    OS_ACTIONS,
    ControlAction,
    ControlIntent,
    MetadataTemplate,
    PlatformProfile,
)
from nowplaying_sync.playback import (
    AutoplayPolicy,
    ClockPlaybackElement,
    InMemoryMediaSession,
    SilentCue,
    probe_duration,
)
from nowplaying_sync.policy import (
    ThrottlePolicy,
    ThrottleSettings,
    current_platform_profile,
    derive_throttle_policy,
)
from nowplaying_sync.session import NowPlayingSession
from nowplaying_sync.sync import AsyncioFrameScheduler, ProgressState, SyncLoop
from nowplaying_sync.unlock import UnlockController, UnlockSettings


logger = logging.getLogger(__name__)


# =============================================================================
# Runtime Assembly
# =============================================================================

@dataclass
class Runtime:
    """Every component of one running service, owned by the app."""
    
    settings: Settings
    profile: PlatformProfile
    policy: ThrottlePolicy
    catalog: ArtworkCatalog
    loader: FileImageLoader
    cache: FrameArtworkCache
    element: ClockPlaybackElement
    media_session: InMemoryMediaSession
    progress: ProgressState
    sync_loop: SyncLoop
    unlock: UnlockController
    session: NowPlayingSession
    started_at: float
    intent_task: Optional[asyncio.Task] = None


def resolve_duration(cfg: Settings) -> float:
    """Probe the video; fall back to the configured duration, else NaN."""
    duration = probe_duration(cfg.media.video_path)
    if math.isfinite(duration):
        logger.info(f"Probed video duration: {duration:.2f}s")
        return duration
    
    if cfg.media.duration_seconds is not None:
        logger.info(f"Using configured duration: {cfg.media.duration_seconds:.2f}s")
        return cfg.media.duration_seconds
    
    logger.warning(f"Video duration unknown ({cfg.media.video_path})")
    return math.nan


def create_runtime(cfg: Settings) -> Runtime:
    """
    Build all components from settings.
    
    Must be called with a running event loop available to the scheduler
    and loader (i.e. from the app lifespan or an async entry point).
    """
    profile = current_platform_profile(
        cfg.platform.user_agent,
        cfg.platform.max_touch_points,
    )
    
    th = cfg.throttle
    policy = derive_throttle_policy(
        profile,
        th.target_fps,
        ThrottleSettings(
            position_interval_ms=th.position_interval_ms,
            strict_position_interval_ms=th.strict_position_interval_ms,
            metadata_interval_ms=th.metadata_interval_ms,
            strict_metadata_interval_ms=th.strict_metadata_interval_ms,
            strict_metadata_enabled=th.strict_metadata_enabled,
            prefetch_stride=th.prefetch_stride,
            strict_prefetch_stride=th.strict_prefetch_stride,
            prefetch_count=th.prefetch_count,
        ),
    )
    
    art = cfg.artwork
    catalog = ArtworkCatalog(
        base_url=art.base_url,
        total_frames=art.total_frames,
        prefix=art.filename_prefix,
        pad_width=art.pad_width,
        extension=art.extension,
    )
    loader = FileImageLoader(art.frames_dir)
    cache = FrameArtworkCache(
        catalog,
        loader,
        capacity=cache_capacity(
            profile,
            strict_capacity=cfg.cache.strict_capacity,
            default_capacity=cfg.cache.capacity,
        ),
    )
    
    autoplay = AutoplayPolicy(audible_requires_gesture=cfg.unlock.audible_requires_gesture)
    element = ClockPlaybackElement(
        duration=resolve_duration(cfg),
        loop=cfg.media.loop,
        policy=autoplay,
    )
    
    media_session = InMemoryMediaSession(
        min_metadata_interval_ms=cfg.media_session.min_metadata_interval_ms,
    )
    template = MetadataTemplate(
        title=cfg.media.title,
        artist=cfg.media.artist,
        album=cfg.media.album,
        artwork_sizes=art.sizes,
        artwork_type=art.mime_type,
    )
    progress = ProgressState()
    
    sync_loop = SyncLoop(
        element=element,
        media_session=media_session,
        policy=policy,
        catalog=catalog,
        cache=cache,
        scheduler=AsyncioFrameScheduler(cfg.scheduler.frame_interval_ms),
        template=template,
        progress=progress,
    )
    
    unlock = UnlockController(
        element,
        cue=SilentCue(autoplay),
        settings=UnlockSettings(
            prime_audio=cfg.unlock.prime_audio,
            start_muted=cfg.unlock.start_muted,
            unmute_after_play=cfg.unlock.unmute_after_play,
            unmute_delay_ms=cfg.unlock.unmute_delay_ms,
        ),
    )
    
    session = NowPlayingSession(
        element=element,
        media_session=media_session,
        sync_loop=sync_loop,
        unlock=unlock,
        catalog=catalog,
        template=template,
        default_seek_offset=cfg.seek.default_offset_seconds,
    )
    
    logger.info(
        f"Runtime created: platform={profile.label}, "
        f"position={policy.position_report_interval_ms}ms, "
        f"metadata={policy.metadata_update_interval_ms}ms, "
        f"cache={cache.capacity}"
    )
    
    return Runtime(
        settings=cfg,
        profile=profile,
        policy=policy,
        catalog=catalog,
        loader=loader,
        cache=cache,
        element=element,
        media_session=media_session,
        progress=progress,
        sync_loop=sync_loop,
        unlock=unlock,
        session=session,
        started_at=time.time(),
    )


async def shutdown_runtime(runtime: Runtime) -> None:
    """Stop the intent loop and sync loop, release loader resources."""
    await runtime.session.stop()
    
    task = runtime.intent_task
    if task is not None:
        try:
            await asyncio.wait_for(task, timeout=5.0)
        except asyncio.TimeoutError:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
    
    runtime.session.detach()
    await runtime.loader.close()


# =============================================================================
# Request Bodies
# =============================================================================

class ActionRequest(BaseModel):
    """Details accompanying an OS control intent."""
    
    seek_time: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    seek_offset: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)


class SeekRequest(BaseModel):
    """Click position on the progress surface."""
    
    fraction: float = Field(..., ge=0.0, le=1.0)


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(cfg: Settings) -> FastAPI:
    """Create the FastAPI application for a settings object."""
    
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(f"Starting {cfg.app.name} {cfg.app.version}")
        
        runtime = create_runtime(cfg)
        runtime.session.attach()
        runtime.intent_task = asyncio.create_task(
            runtime.session.run(),
            name="intent_loop",
        )
        app.state.runtime = runtime
        
        yield
        
        logger.info("Shutting down gracefully...")
        await shutdown_runtime(runtime)
        logger.info("Shutdown complete")
    
    app = FastAPI(
        title="nowplaying-sync",
        description="Frame-accurate now-playing metadata for a silent animation",
        version=cfg.app.version,
        lifespan=lifespan,
    )
    
    def get_runtime(request: Request) -> Runtime:
        return request.app.state.runtime
    
    # -------------------------------------------------------------------------
    # HTTP Endpoints
    # -------------------------------------------------------------------------
    
    @app.get("/")
    async def root(request: Request) -> JSONResponse:
        """Service information endpoint."""
        runtime = get_runtime(request)
        return JSONResponse({
            "service": "nowplaying-sync",
            "version": cfg.app.version,
            "name": cfg.app.name,
            "status": "running",
            "platform": runtime.profile.label,
        })
    
    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """Liveness probe - always 200 while the process is up."""
        runtime = get_runtime(request)
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": round(time.time() - runtime.started_at, 1),
        })
    
    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness probe - 200 once the intent loop is running."""
        runtime = get_runtime(request)
        task = runtime.intent_task
        loop_running = task is not None and not task.done()
        
        if loop_running:
            return JSONResponse({
                "status": "ready",
                "duration_known": math.isfinite(runtime.element.duration),
            })
        return JSONResponse({"status": "not_ready"}, status_code=503)
    
    @app.get("/metrics")
    async def metrics(request: Request) -> JSONResponse:
        """Detailed metrics for observability."""
        runtime = get_runtime(request)
        ms = runtime.media_session
        return JSONResponse({
            "uptime_seconds": round(time.time() - runtime.started_at, 1),
            "platform": runtime.profile.label,
            "unlock_state": runtime.unlock.state.value,
            "sync_loop_running": runtime.sync_loop.running,
            "sync_loop_generation": runtime.sync_loop.generation,
            "sync_loop": runtime.sync_loop.metrics.to_dict(),
            "cache": runtime.cache.metrics(),
            "loader": runtime.loader.metrics(),
            "media_session": {
                "metadata_updates": ms.metadata_updates,
                "position_updates": ms.position_updates,
                "rejected": ms.rejected_count,
            },
            "intents": {
                "handled": runtime.session.handled_intents,
                "dropped": runtime.session.dropped_intents,
                "pending": runtime.session.pending_intents,
            },
        })
    
    @app.get("/now-playing")
    async def now_playing(request: Request) -> JSONResponse:
        """Media session snapshot plus local progress and status."""
        runtime = get_runtime(request)
        snapshot = runtime.media_session.snapshot()
        
        if snapshot.metadata is None:
            return JSONResponse(
                {"error": "No metadata available yet"},
                status_code=503,
            )
        
        return JSONResponse({
            **snapshot.model_dump(mode="json"),
            "progress": runtime.progress.fraction,
            "session": runtime.session.snapshot(),
        })
    
    @app.post("/actions/{action}", status_code=202)
    async def dispatch_action(
        action: str,
        request: Request,
        body: Optional[ActionRequest] = Body(default=None),
    ) -> JSONResponse:
        """Deliver an OS control intent to the registered handler."""
        runtime = get_runtime(request)
        
        try:
            control = ControlAction(action)
        except ValueError:
            control = None
        if control not in OS_ACTIONS:
            return JSONResponse({"error": f"Unknown action: {action}"}, status_code=404)
        
        details = body or ActionRequest()
        intent = ControlIntent(
            action=control,
            seek_time=details.seek_time,
            seek_offset=details.seek_offset,
        )
        
        if not runtime.media_session.dispatch(intent):
            return JSONResponse({"error": f"No handler for: {action}"}, status_code=404)
        return JSONResponse({"accepted": True, "action": control.value}, status_code=202)
    
    @app.post("/controls/toggle", status_code=202)
    async def toggle(request: Request) -> JSONResponse:
        """Local play/pause button."""
        runtime = get_runtime(request)
        accepted = runtime.session.post(ControlIntent(action=ControlAction.TOGGLE))
        return JSONResponse({"accepted": accepted}, status_code=202 if accepted else 429)
    
    @app.post("/controls/seek", status_code=202)
    async def seek(request: Request, body: SeekRequest) -> JSONResponse:
        """Click-to-seek on the progress surface."""
        runtime = get_runtime(request)
        accepted = runtime.session.post(
            ControlIntent(action=ControlAction.SEEK_FRACTION, fraction=body.fraction)
        )
        return JSONResponse({"accepted": accepted}, status_code=202 if accepted else 429)
    
    @app.post("/controls/dismiss")
    async def dismiss(request: Request) -> JSONResponse:
        """Dismiss a transient error status."""
        runtime = get_runtime(request)
        runtime.session.dismiss_status()
        status = runtime.session.status
        return JSONResponse({"status": status.model_dump() if status else None})
    
    @app.get("/assets/frames/{filename}")
    async def artwork(filename: str, request: Request) -> Response:
        """Artwork bytes, from the prefetch store or read on demand."""
        runtime = get_runtime(request)
        
        try:
            runtime.catalog.frame_for_filename(filename)
        except ValueError:
            return JSONResponse({"error": "Unknown artwork"}, status_code=404)
        
        try:
            data = runtime.loader.get(filename)
            if data is None:
                data = await asyncio.to_thread(runtime.loader.read, filename)
        except (OSError, ImageDecodeError) as e:
            logger.debug(f"Artwork unavailable: {filename}: {e}")
            return JSONResponse({"error": "Artwork unavailable"}, status_code=404)
        
        return Response(content=data, media_type=cfg.artwork.mime_type)
    
    # -------------------------------------------------------------------------
    # WebSocket Endpoints
    # -------------------------------------------------------------------------
    
    @app.websocket("/ws/now-playing")
    async def now_playing_stream(websocket: WebSocket) -> None:
        """WebSocket endpoint streaming the now-playing snapshot on change."""
        await websocket.accept()
        runtime: Runtime = websocket.app.state.runtime
        logger.info("Client connected to /ws/now-playing")
        
        last_version = -1
        try:
            while True:
                snapshot = runtime.media_session.snapshot()
                if snapshot.version != last_version:
                    last_version = snapshot.version
                    await websocket.send_json({
                        **snapshot.model_dump(mode="json"),
                        "progress": runtime.progress.fraction,
                        "session": runtime.session.snapshot(),
                    })
                await asyncio.sleep(cfg.media_session.broadcast_interval_seconds)
        except Exception as e:
            logger.debug(f"WebSocket closed: {e}")
        finally:
            logger.info("Client disconnected from /ws/now-playing")
    
    return app


app = create_app(settings)


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Console entry point."""
    import uvicorn
    
    uvicorn.run(
        "nowplaying_sync.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run()
