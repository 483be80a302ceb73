"""
Platform Profile Model
======================

Immutable classification of the runtime environment.

The rest of the system depends only on the booleans below, never on the
raw user-agent string. Detection itself lives in policy.profile.

Classes:
    - Desktop / unknown: neither flag set (the permissive default)
    - Android-like touch: looser media-session constraints
    - Strict mobile: touch-primary but NOT Android-like (iPhone/iPad class)
"""

from pydantic import BaseModel, ConfigDict, Field


class PlatformProfile(BaseModel):
    """
    Runtime platform classification.
    
    Computed once per process and never mutated (the model is frozen).
    
    Attributes:
        is_touch_primary: Device is phone/tablet-class
        is_android_like: Touch sub-class with looser OS integration limits
    """
    
    model_config = ConfigDict(frozen=True)
    
    is_touch_primary: bool = Field(
        default=False,
        description="Device is phone/tablet-class",
    )
    
    is_android_like: bool = Field(
        default=False,
        description="Sub-class with looser OS media-integration constraints",
    )
    
    @property
    def is_strict_mobile(self) -> bool:
        """Touch-primary device with the strictest media-session integration."""
        return self.is_touch_primary and not self.is_android_like
    
    @property
    def label(self) -> str:
        """Short label for logs and metrics."""
        if self.is_strict_mobile:
            return "strict-mobile"
        if self.is_touch_primary:
            return "android"
        return "desktop"
