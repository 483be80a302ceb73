"""
Policy Module
=============

Platform classification and the throttle policy derived from it.

    - detect_platform / current_platform_profile: PlatformProfile from UA signals
    - derive_throttle_policy: Update intervals and prefetch horizon
"""

from nowplaying_sync.policy.profile import current_platform_profile, detect_platform
from nowplaying_sync.policy.throttle import (
    ThrottlePolicy,
    ThrottleSettings,
    derive_throttle_policy,
)

__all__ = [
    "current_platform_profile",
    "detect_platform",
    "ThrottlePolicy",
    "ThrottleSettings",
    "derive_throttle_policy",
]
