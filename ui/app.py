"""
nowplaying-sync - Remote Panel
==============================

A remote "now playing" panel for the nowplaying-sync service: current
artwork frame, progress, play/pause, ±10 s seek and click-to-seek.

Architecture:
    - SNAPSHOTS come from the service via WebSocket (/ws/now-playing)
    - ARTWORK bytes come from the service via HTTP (/assets/frames/...)
    - CONTROLS are POSTed back and land on the session's intent channel

Usage:
    streamlit run app.py

Environment:
    NOWPLAYING_URL     service HTTP root (default: http://localhost:8002)
    NOWPLAYING_WS_URL  snapshot WebSocket (default: ws://localhost:8002/ws/now-playing)
"""

import json
import os
import threading
import time
from typing import Optional

import cv2
import numpy as np
import requests
import streamlit as st
import websockets.sync.client as ws_sync
from websockets.exceptions import WebSocketException

# =============================================================================
# Configuration: only two env vars, everything else lives in config.yaml
# =============================================================================

SERVICE_URL = os.getenv("NOWPLAYING_URL", "http://localhost:8002")
WS_URL = os.getenv("NOWPLAYING_WS_URL", "ws://localhost:8002/ws/now-playing")

SEEK_STEP_SECONDS = 10

# =============================================================================
# Page config
# =============================================================================

st.set_page_config(
    page_title="Now Playing",
    page_icon="🎵",
    layout="wide",
)

# =============================================================================
# Thread-safe global snapshot store
# Streamlit reruns the script on every interaction; st.session_state is NOT
# visible to background threads reliably.  We use a module-level dict
# protected by a threading.Lock instead.
# =============================================================================

_lock = threading.Lock()
_shared: dict = {
    "snapshot": None,       # latest now-playing message
    "message_count": 0,
    "ws_status": "Disconnected",
    "running": False,
}


def _get(key: str):
    with _lock:
        return _shared.get(key)


def _set(key: str, value):
    with _lock:
        _shared[key] = value


# =============================================================================
# Networking helpers
# =============================================================================

def fetch_health() -> bool:
    """Check service liveness."""
    try:
        r = requests.get(f"{SERVICE_URL}/health", timeout=2)
        return r.status_code == 200
    except requests.RequestException:
        return False


def fetch_now_playing() -> Optional[dict]:
    """Poll /now-playing when the WebSocket has nothing yet."""
    try:
        r = requests.get(f"{SERVICE_URL}/now-playing", timeout=2)
        if r.status_code == 200:
            return r.json()
    except requests.RequestException:
        pass
    return None


def fetch_artwork(src: str) -> Optional[np.ndarray]:
    """Download an artwork frame and decode it to an OpenCV BGR image."""
    url = src if src.startswith("http") else f"{SERVICE_URL}{src}"
    try:
        r = requests.get(url, timeout=2)
    except requests.RequestException:
        return None
    if r.status_code != 200:
        return None
    
    arr = np.frombuffer(r.content, dtype=np.uint8)
    return cv2.imdecode(arr, cv2.IMREAD_COLOR)


def send_control(path: str, payload: Optional[dict] = None) -> bool:
    """POST a control intent; True if the service accepted it."""
    try:
        r = requests.post(f"{SERVICE_URL}{path}", json=payload, timeout=2)
        return r.status_code in (200, 202)
    except requests.RequestException:
        return False


# =============================================================================
# WebSocket snapshot reader: synchronous version running in a daemon thread.
# Uses websockets.sync.client so no asyncio event loop is needed.
# =============================================================================

def _ws_reader_thread():
    """
    Background thread: connects to the now-playing WebSocket and stores
    the latest snapshot in the thread-safe _shared dict.
    """
    _set("ws_status", "Connecting…")

    while _get("running"):
        try:
            with ws_sync.connect(WS_URL) as ws:
                _set("ws_status", "Connected")
                while _get("running"):
                    try:
                        raw_msg = ws.recv(timeout=2.0)
                    except TimeoutError:
                        continue

                    try:
                        snapshot = json.loads(raw_msg)
                    except json.JSONDecodeError:
                        continue

                    with _lock:
                        _shared["snapshot"] = snapshot
                        _shared["message_count"] += 1

        except (OSError, WebSocketException):
            _set("ws_status", "Reconnecting…")
            time.sleep(1.0)

    _set("ws_status", "Disconnected")


def format_time(seconds: Optional[float]) -> str:
    if seconds is None:
        return "--:--"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"


# =============================================================================
# Main UI
# =============================================================================

def main():
    # ── Session state init ────────────────────────────────────────────────────
    if "started" not in st.session_state:
        st.session_state.started = False

    # ── Sidebar ───────────────────────────────────────────────────────────────
    with st.sidebar:
        st.header("Connection")

        col_a, col_b = st.columns(2)
        with col_a:
            if st.button("▶ Connect", disabled=st.session_state.started, use_container_width=True):
                st.session_state.started = True
                _set("running", True)
                t = threading.Thread(target=_ws_reader_thread, daemon=True)
                t.start()
                st.rerun()
        with col_b:
            if st.button("⏹ Disconnect", disabled=not st.session_state.started, use_container_width=True):
                st.session_state.started = False
                _set("running", False)
                st.rerun()

        st.divider()
        st.header("Config (read-only)")
        st.text(f"Service: {SERVICE_URL}")
        st.text(f"Stream:  {WS_URL}")

        st.divider()
        refresh_rate = st.slider("Refresh (s)", 0.2, 3.0, 0.5, 0.1)

    # ── Top Bar ───────────────────────────────────────────────────────────────
    top1, top2, top3 = st.columns([2, 2, 2])

    with top1:
        if fetch_health():
            st.success("🟢 Service Online")
        else:
            st.error("🔴 Service Offline")

    with top2:
        ws = _get("ws_status")
        if ws == "Connected":
            st.success(f"🟢 Stream: {ws}")
        elif "Connect" in str(ws):
            st.warning(f"🟡 Stream: {ws}")
        else:
            st.info(f"⚪ Stream: {ws}")

    snapshot = _get("snapshot") or fetch_now_playing()
    session = (snapshot or {}).get("session") or {}
    with top3:
        state = (snapshot or {}).get("playback_state", "none")
        st.markdown(f"**State:** `{state.upper()}` · **Audio:** `{session.get('unlock_state', '-')}`")

    status = session.get("status")
    if status:
        if status.get("persistent"):
            st.info(status["text"])
        else:
            col_msg, col_dismiss = st.columns([5, 1])
            with col_msg:
                st.error(status["text"])
            with col_dismiss:
                if st.button("Dismiss"):
                    send_control("/controls/dismiss")
                    st.rerun()

    st.divider()

    # ── Main Layout: Artwork + Controls ───────────────────────────────────────
    left_col, right_col = st.columns([3, 2])

    metadata = (snapshot or {}).get("metadata") or {}
    artwork = metadata.get("artwork") or []

    with left_col:
        image = fetch_artwork(artwork[0]["src"]) if artwork else None
        if image is not None:
            st.image(
                cv2.cvtColor(image, cv2.COLOR_BGR2RGB),
                caption=artwork[0]["src"].rsplit("/", 1)[-1],
                use_container_width=True,
            )
        else:
            ph = np.full((360, 480, 3), 40, dtype=np.uint8)
            cv2.putText(ph, "No artwork yet", (150, 180),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.8, (120, 120, 120), 2)
            st.image(ph, channels="BGR", use_container_width=True)

    with right_col:
        st.subheader(metadata.get("title", "-"))
        st.caption(f"{metadata.get('artist', '-')} — {metadata.get('album', '-')}")

        position = session.get("position")
        duration = session.get("duration")
        st.progress(float((snapshot or {}).get("progress", 0.0)))
        st.text(f"{format_time(position)} / {format_time(duration)}")

        c1, c2, c3 = st.columns(3)
        with c1:
            if st.button(f"⏪ {SEEK_STEP_SECONDS}s", use_container_width=True):
                send_control("/actions/seekbackward", {"seek_offset": SEEK_STEP_SECONDS})
        with c2:
            label = "⏸ Pause" if session.get("is_playing") else "▶ Play"
            if st.button(label, use_container_width=True):
                send_control("/controls/toggle")
        with c3:
            if st.button(f"{SEEK_STEP_SECONDS}s ⏩", use_container_width=True):
                send_control("/actions/seekforward", {"seek_offset": SEEK_STEP_SECONDS})

        st.divider()
        st.caption("Click-to-seek")
        fraction = st.slider("Position", 0.0, 1.0, 0.0, 0.01, disabled=duration is None)
        if st.button("Seek", disabled=duration is None):
            send_control("/controls/seek", {"fraction": fraction})

        st.divider()
        st.metric("Snapshots received", _get("message_count"))
        st.caption(f"Actions: {', '.join((snapshot or {}).get('actions', [])) or '-'}")

    # ── Auto-refresh ──────────────────────────────────────────────────────────
    if st.session_state.started:
        time.sleep(refresh_rate)
        st.rerun()


if __name__ == "__main__":
    main()
