"""
Throttle Policy
===============

Encodes "how fast is safe to update" as data.

Aggressive metadata churn destabilizes the media-session integration of
the strictest mobile platforms, so the intervals depend on the platform:

    Platform        Position report    Metadata/artwork      Prefetch stride
    --------------  -----------------  --------------------  ---------------
    strict mobile   2000 ms            1000 ms (or off)      30 frames
    elsewhere       1000 ms            1000 / target_fps     1 frame

Invariants:
    - Both intervals are non-negative
    - metadata interval >= nominal per-frame interval (1000 / target_fps)
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from nowplaying_sync.models.platform import PlatformProfile


logger = logging.getLogger(__name__)


@dataclass
class ThrottleSettings:
    """
    Tunable throttle constants.
    
    Loaded from configuration file.
    """
    
    # Position reports (ms)
    position_interval_ms: int = 1000
    strict_position_interval_ms: int = 2000
    
    # Metadata/artwork swaps (ms); 0 means "nominal frame interval"
    metadata_interval_ms: int = 0
    strict_metadata_interval_ms: int = 1000
    strict_metadata_enabled: bool = True
    
    # Prefetch horizon (frames ahead of the current one)
    prefetch_stride: int = 1
    strict_prefetch_stride: int = 30
    prefetch_count: int = 1


@dataclass(frozen=True)
class ThrottlePolicy:
    """
    Minimum spacing between updates, fixed for the session.
    
    Attributes:
        position_report_interval_ms: Spacing between position reports
        metadata_update_interval_ms: Spacing between artwork swaps
        metadata_updates_enabled: False disables artwork swaps entirely
        prefetch_stride: Frames ahead of the current frame to prefetch
        prefetch_count: How many strides ahead to prefetch
        target_fps: Effective logical frame rate
    """
    
    position_report_interval_ms: int
    metadata_update_interval_ms: int
    metadata_updates_enabled: bool = True
    prefetch_stride: int = 1
    prefetch_count: int = 1
    target_fps: float = 30.0
    
    @property
    def nominal_frame_interval_ms(self) -> float:
        return 1000.0 / self.target_fps


def derive_throttle_policy(
    profile: PlatformProfile,
    target_fps: float,
    settings: Optional[ThrottleSettings] = None,
) -> ThrottlePolicy:
    """
    Derive the throttle policy for a platform.
    
    Deterministic and pure.
    
    Args:
        profile: Platform classification
        target_fps: Logical frame rate of the artwork sequence
            (values <= 0 are treated as 1)
        settings: Throttle constants (defaults if None)
        
    Returns:
        ThrottlePolicy for the session
        
    Raises:
        ValueError: If a configured interval or stride is negative
    """
    th = settings or ThrottleSettings()
    _validate(th)
    
    fps = target_fps if target_fps > 0 else 1
    nominal_ms = math.ceil(1000.0 / fps)
    
    if profile.is_strict_mobile:
        policy = ThrottlePolicy(
            position_report_interval_ms=th.strict_position_interval_ms,
            metadata_update_interval_ms=max(th.strict_metadata_interval_ms, nominal_ms),
            metadata_updates_enabled=th.strict_metadata_enabled,
            prefetch_stride=max(1, th.strict_prefetch_stride),
            prefetch_count=th.prefetch_count,
            target_fps=float(fps),
        )
    else:
        policy = ThrottlePolicy(
            position_report_interval_ms=th.position_interval_ms,
            metadata_update_interval_ms=max(th.metadata_interval_ms, nominal_ms),
            metadata_updates_enabled=True,
            prefetch_stride=max(1, th.prefetch_stride),
            prefetch_count=th.prefetch_count,
            target_fps=float(fps),
        )
    
    logger.debug(
        f"Throttle policy for {profile.label}: "
        f"position={policy.position_report_interval_ms}ms, "
        f"metadata={policy.metadata_update_interval_ms}ms "
        f"(enabled={policy.metadata_updates_enabled}), "
        f"stride={policy.prefetch_stride}"
    )
    return policy


def _validate(th: ThrottleSettings) -> None:
    for name in (
        "position_interval_ms",
        "strict_position_interval_ms",
        "metadata_interval_ms",
        "strict_metadata_interval_ms",
        "prefetch_stride",
        "strict_prefetch_stride",
        "prefetch_count",
    ):
        if getattr(th, name) < 0:
            raise ValueError(f"{name} must be >= 0")
