"""
Unlock Controller
=================

LangGraph state machine for the autoplay-unlock cascade.

LangGraph is used for CONTROL FLOW only. The graph runs once per play
request while the session is not yet unlocked:

    START → prime_audio → start_playback ─┬─ ok ──→ unmute ──────→ END
                                          └─ fail → retry_muted ─→ END

    prime_audio     Play the inaudible cue, at most once per controller
                    lifetime. Its failure is ignored.
    start_playback  Start the element (muted by default).
    unmute          After a short delay, unmute. Refusal → muted fallback.
    retry_muted     Exactly one muted retry. Failure → back to LOCKED.

Outcomes:
    UNLOCKED        audible playback confirmed; later plays are direct
    MUTED_FALLBACK  playing, audio unavailable for the rest of the session
    LOCKED          nothing played; a notice is surfaced, no auto-retry
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, TypedDict

from langgraph.graph import END, StateGraph

from nowplaying_sync.models.unlock import UnlockReason, UnlockResult, UnlockState
from nowplaying_sync.playback.element import PlaybackElement, PlaybackError


logger = logging.getLogger(__name__)


class AudioCue(Protocol):
    """Short inaudible sound played once to obtain audio permission."""
    
    async def play(self) -> None:
        ...


@dataclass
class UnlockSettings:
    """
    Unlock cascade policy.
    
    Loaded from configuration file.
    """
    
    prime_audio: bool = True
    start_muted: bool = True
    unmute_after_play: bool = True
    unmute_delay_ms: int = 100


class UnlockGraphState(TypedDict):
    """
    State passed through the unlock graph.
    
    Attributes:
        play_attempts: play() calls made during this request
        play_ok: Whether the first play() succeeded
        outcome: Resulting UnlockState value
        reason: UnlockReason value explaining the outcome
        error: Last play failure message
    """
    play_attempts: int
    play_ok: bool
    outcome: Optional[str]
    reason: Optional[str]
    error: Optional[str]


def create_initial_state() -> UnlockGraphState:
    return {
        "play_attempts": 0,
        "play_ok": False,
        "outcome": None,
        "reason": None,
        "error": None,
    }


class UnlockController:
    """
    Autoplay-unlock state machine.
    
    Re-entrant per play request: a pause followed by a new play request
    re-runs the cascade while LOCKED. The audio cue fires at most once.
    
    Attributes:
        state: Current UnlockState
        cue_fired: Whether the one-time audio cue has been played
        last_result: Result of the most recent request
    """
    
    def __init__(
        self,
        element: PlaybackElement,
        cue: Optional[AudioCue] = None,
        settings: Optional[UnlockSettings] = None,
    ) -> None:
        """
        Initialize the controller.
        
        Args:
            element: Playback element to start and unmute
            cue: One-time audio cue (skipped if None)
            settings: Cascade policy (defaults if None)
        """
        self.element = element
        self.cue = cue
        self.settings = settings or UnlockSettings()
        
        self._state: UnlockState = UnlockState.LOCKED
        self._cue_fired: bool = False
        self.last_result: Optional[UnlockResult] = None
        
        self._graph = self._build_graph()
        
        logger.info(
            f"UnlockController initialized: start_muted={self.settings.start_muted}, "
            f"unmute_after_play={self.settings.unmute_after_play}, "
            f"unmute_delay={self.settings.unmute_delay_ms}ms"
        )
    
    @property
    def state(self) -> UnlockState:
        return self._state
    
    @property
    def cue_fired(self) -> bool:
        return self._cue_fired
    
    async def request_play(self) -> UnlockResult:
        """
        Handle one user-initiated play request.
        
        Returns:
            UnlockResult describing what happened
        """
        if self._state == UnlockState.UNLOCKING:
            logger.debug("Play requested while unlocking, ignored")
            return UnlockResult(
                state=self._state,
                reason=UnlockReason.ALREADY_UNLOCKING,
            )
        
        if self._state in (UnlockState.UNLOCKED, UnlockState.MUTED_FALLBACK):
            result = await self._direct_play()
        else:
            result = await self._run_cascade()
        
        self.last_result = result
        return result
    
    def reset(self) -> None:
        """Return to LOCKED. The one-time cue stays spent."""
        self._state = UnlockState.LOCKED
        self.last_result = None
        logger.info("UnlockController reset")
    
    async def _direct_play(self) -> UnlockResult:
        if self._state == UnlockState.MUTED_FALLBACK:
            self.element.muted = True
        
        try:
            await self.element.play()
        except PlaybackError as e:
            logger.warning(f"Direct play failed in {self._state.value}: {e}")
            return UnlockResult(
                state=self._state,
                reason=UnlockReason.PLAY_REJECTED,
                play_attempts=1,
                muted=self.element.muted,
                error=str(e),
            )
        
        return UnlockResult(
            state=self._state,
            reason=UnlockReason.DIRECT_PLAY,
            play_attempts=1,
            playing=True,
            muted=self.element.muted,
        )
    
    async def _run_cascade(self) -> UnlockResult:
        previous = self._state
        self._state = UnlockState.UNLOCKING
        logger.info(f"Unlock: {previous.value} → {self._state.value}")
        
        try:
            final = await self._graph.ainvoke(create_initial_state())
        except Exception:
            self._state = UnlockState.LOCKED
            raise
        
        self._state = UnlockState(final["outcome"])
        reason = UnlockReason(final["reason"])
        
        if self._state == UnlockState.LOCKED:
            logger.warning(
                f"Unlock failed after {final['play_attempts']} attempts: {final['error']}"
            )
        else:
            logger.info(
                f"Unlock: {UnlockState.UNLOCKING.value} → {self._state.value} "
                f"(reason: {reason.value})"
            )
        
        return UnlockResult(
            state=self._state,
            reason=reason,
            play_attempts=final["play_attempts"],
            playing=self._state != UnlockState.LOCKED,
            muted=self.element.muted,
            error=final["error"],
        )
    
    def _build_graph(self) -> Any:
        """Build the LangGraph workflow."""
        workflow = StateGraph(UnlockGraphState)
        
        workflow.add_node("prime_audio", self._prime_audio_node)
        workflow.add_node("start_playback", self._start_playback_node)
        workflow.add_node("unmute", self._unmute_node)
        workflow.add_node("retry_muted", self._retry_muted_node)
        
        workflow.set_entry_point("prime_audio")
        workflow.add_edge("prime_audio", "start_playback")
        workflow.add_conditional_edges(
            "start_playback",
            self._route_after_start,
            {"unmute": "unmute", "retry_muted": "retry_muted"},
        )
        workflow.add_edge("unmute", END)
        workflow.add_edge("retry_muted", END)
        
        return workflow.compile()
    
    async def _prime_audio_node(self, state: UnlockGraphState) -> Dict[str, Any]:
        if self._cue_fired or not self.settings.prime_audio or self.cue is None:
            return {"error": None}
        
        # Marked spent before playing; a failed cue is never retried
        self._cue_fired = True
        try:
            await self.cue.play()
            logger.debug("Audio cue played")
        except Exception as e:
            logger.debug(f"Audio cue failed (ignored): {e}")
        return {"error": None}
    
    async def _start_playback_node(self, state: UnlockGraphState) -> Dict[str, Any]:
        self.element.muted = self.settings.start_muted
        attempts = state["play_attempts"] + 1
        
        try:
            await self.element.play()
        except PlaybackError as e:
            logger.info(f"Play attempt {attempts} failed (muted={self.element.muted}): {e}")
            return {"play_attempts": attempts, "play_ok": False, "error": str(e)}
        
        return {"play_attempts": attempts, "play_ok": True}
    
    def _route_after_start(self, state: UnlockGraphState) -> str:
        return "unmute" if state["play_ok"] else "retry_muted"
    
    async def _unmute_node(self, state: UnlockGraphState) -> Dict[str, Any]:
        if not self.element.muted:
            return {
                "outcome": UnlockState.UNLOCKED.value,
                "reason": UnlockReason.AUDIBLE_START.value,
            }
        
        if not self.settings.unmute_after_play:
            return {
                "outcome": UnlockState.MUTED_FALLBACK.value,
                "reason": UnlockReason.UNMUTE_SKIPPED.value,
            }
        
        if self.settings.unmute_delay_ms > 0:
            await asyncio.sleep(self.settings.unmute_delay_ms / 1000.0)
        
        try:
            self.element.muted = False
        except PlaybackError as e:
            logger.info(f"Unmute refused, staying muted: {e}")
            self.element.muted = True
            return {
                "outcome": UnlockState.MUTED_FALLBACK.value,
                "reason": UnlockReason.UNMUTE_REJECTED.value,
                "error": str(e),
            }
        
        return {
            "outcome": UnlockState.UNLOCKED.value,
            "reason": UnlockReason.UNMUTED_AFTER_START.value,
        }
    
    async def _retry_muted_node(self, state: UnlockGraphState) -> Dict[str, Any]:
        self.element.muted = True
        attempts = state["play_attempts"] + 1
        
        try:
            await self.element.play()
        except PlaybackError as e:
            return {
                "play_attempts": attempts,
                "outcome": UnlockState.LOCKED.value,
                "reason": UnlockReason.PLAY_REJECTED.value,
                "error": str(e),
            }
        
        return {
            "play_attempts": attempts,
            "outcome": UnlockState.MUTED_FALLBACK.value,
            "reason": UnlockReason.MUTED_RETRY_SUCCEEDED.value,
        }
