"""
Platform Detection
==================

Classifies the runtime environment from user-agent and touch signals.

Rules:
    - touch-primary: UA names iPhone/iPad/iPod/Android, OR a "Mac" UA that
      reports more than one touch point (iPadOS desktop-mode UA)
    - android-like: UA names Android
    - no signals at all: desktop (the permissive classification)

This is the ONLY place that inspects raw platform strings.
"""

import logging
import re
from functools import lru_cache
from typing import Optional

from nowplaying_sync.models.platform import PlatformProfile


logger = logging.getLogger(__name__)


_TOUCH_UA_RE = re.compile(r"iPhone|iPad|iPod|Android", re.IGNORECASE)
_ANDROID_UA_RE = re.compile(r"Android", re.IGNORECASE)


def detect_platform(
    user_agent: Optional[str] = None,
    max_touch_points: int = 0,
) -> PlatformProfile:
    """
    Classify a platform from its signals.
    
    Pure function, no side effects.
    
    Args:
        user_agent: User-agent string (None or empty means unknown)
        max_touch_points: Reported simultaneous touch points
        
    Returns:
        PlatformProfile for the given signals
    """
    ua = user_agent or ""
    
    is_touch = bool(_TOUCH_UA_RE.search(ua)) or (
        "Mac" in ua and max_touch_points > 1
    )
    is_android = bool(_ANDROID_UA_RE.search(ua))
    
    return PlatformProfile(
        is_touch_primary=is_touch,
        is_android_like=is_android,
    )


@lru_cache(maxsize=1)
def current_platform_profile(
    user_agent: Optional[str] = None,
    max_touch_points: int = 0,
) -> PlatformProfile:
    """
    Process-wide platform profile.
    
    The service calls this once at startup with the configured signals;
    repeated calls with the same signals return the same object.
    """
    profile = detect_platform(user_agent, max_touch_points)
    logger.info(f"Platform classified as {profile.label}")
    return profile
