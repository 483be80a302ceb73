"""
Policy Tests
============

Platform detection and throttle policy derivation.
"""

import pytest


IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
IPADOS_DESKTOP_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15"
)
ANDROID_UA = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Mobile Safari/537.36"
)
DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)


class TestPlatformDetection:
    """Tests for detect_platform()."""
    
    def test_iphone_is_strict_mobile(self):
        from nowplaying_sync.policy.profile import detect_platform
        
        profile = detect_platform(IPHONE_UA)
        assert profile.is_touch_primary
        assert not profile.is_android_like
        assert profile.is_strict_mobile
        assert profile.label == "strict-mobile"
    
    def test_android_is_touch_but_not_strict(self):
        from nowplaying_sync.policy.profile import detect_platform
        
        profile = detect_platform(ANDROID_UA, max_touch_points=5)
        assert profile.is_touch_primary
        assert profile.is_android_like
        assert not profile.is_strict_mobile
        assert profile.label == "android"
    
    def test_ipados_desktop_mode(self):
        """A Mac UA with multiple touch points is a tablet."""
        from nowplaying_sync.policy.profile import detect_platform
        
        assert detect_platform(IPADOS_DESKTOP_UA, max_touch_points=5).is_strict_mobile
        assert not detect_platform(IPADOS_DESKTOP_UA, max_touch_points=0).is_touch_primary
        assert not detect_platform(IPADOS_DESKTOP_UA, max_touch_points=1).is_touch_primary
    
    def test_desktop(self):
        from nowplaying_sync.policy.profile import detect_platform
        
        profile = detect_platform(DESKTOP_UA)
        assert not profile.is_touch_primary
        assert profile.label == "desktop"
    
    def test_no_signals_is_desktop(self):
        """Unknown environments get the permissive classification."""
        from nowplaying_sync.policy.profile import detect_platform
        
        assert detect_platform(None).label == "desktop"
        assert detect_platform("").label == "desktop"
    
    def test_case_insensitive(self):
        from nowplaying_sync.policy.profile import detect_platform
        
        assert detect_platform("some-ipad-webview").is_strict_mobile
    
    def test_profile_is_frozen(self):
        from pydantic import ValidationError
        from nowplaying_sync.policy.profile import detect_platform
        
        profile = detect_platform(IPHONE_UA)
        with pytest.raises(ValidationError):
            profile.is_android_like = True
    
    def test_current_profile_is_cached(self):
        """The process-wide profile is computed once per set of signals."""
        from nowplaying_sync.policy.profile import current_platform_profile
        
        first = current_platform_profile(IPHONE_UA, 0)
        assert current_platform_profile(IPHONE_UA, 0) is first


class TestThrottlePolicy:
    """Tests for derive_throttle_policy()."""
    
    def test_desktop_defaults(self, desktop_profile):
        """1 s position reports, per-frame artwork, next-frame prefetch."""
        from nowplaying_sync.policy.throttle import derive_throttle_policy
        
        policy = derive_throttle_policy(desktop_profile, 30)
        
        assert policy.position_report_interval_ms == 1000
        assert policy.metadata_update_interval_ms == 34
        assert policy.metadata_updates_enabled
        assert policy.prefetch_stride == 1
    
    def test_strict_mobile_defaults(self, strict_profile):
        """2 s position reports, 1 s artwork swaps, prefetch 30 frames ahead."""
        from nowplaying_sync.policy.throttle import derive_throttle_policy
        
        policy = derive_throttle_policy(strict_profile, 30)
        
        assert policy.position_report_interval_ms == 2000
        assert policy.metadata_update_interval_ms == 1000
        assert policy.prefetch_stride == 30
    
    def test_android_uses_permissive_policy(self, android_profile):
        from nowplaying_sync.policy.throttle import derive_throttle_policy
        
        policy = derive_throttle_policy(android_profile, 30)
        assert policy.position_report_interval_ms == 1000
        assert policy.prefetch_stride == 1
    
    @pytest.mark.parametrize("fps", [1, 24, 30, 60, 120, 144])
    def test_metadata_interval_never_below_frame_interval(self, desktop_profile, strict_profile, fps):
        from nowplaying_sync.policy.throttle import derive_throttle_policy
        
        for profile in (desktop_profile, strict_profile):
            policy = derive_throttle_policy(profile, fps)
            assert policy.metadata_update_interval_ms >= 1000.0 / fps
            assert policy.position_report_interval_ms >= 0
    
    def test_non_positive_fps_treated_as_one(self, desktop_profile):
        from nowplaying_sync.policy.throttle import derive_throttle_policy
        
        for fps in (0, -30):
            policy = derive_throttle_policy(desktop_profile, fps)
            assert policy.target_fps == 1.0
            assert policy.metadata_update_interval_ms == 1000
    
    def test_configured_floor(self, desktop_profile):
        """A configured metadata interval above the frame interval wins."""
        from nowplaying_sync.policy.throttle import ThrottleSettings, derive_throttle_policy
        
        policy = derive_throttle_policy(
            desktop_profile, 30, ThrottleSettings(metadata_interval_ms=250)
        )
        assert policy.metadata_update_interval_ms == 250
    
    def test_strict_artwork_can_be_disabled(self, strict_profile, desktop_profile):
        from nowplaying_sync.policy.throttle import ThrottleSettings, derive_throttle_policy
        
        settings = ThrottleSettings(strict_metadata_enabled=False)
        
        assert not derive_throttle_policy(strict_profile, 30, settings).metadata_updates_enabled
        assert derive_throttle_policy(desktop_profile, 30, settings).metadata_updates_enabled
    
    def test_negative_settings_rejected(self, desktop_profile):
        from nowplaying_sync.policy.throttle import ThrottleSettings, derive_throttle_policy
        
        with pytest.raises(ValueError):
            derive_throttle_policy(desktop_profile, 30, ThrottleSettings(position_interval_ms=-1))
    
    def test_policy_is_immutable(self, desktop_profile):
        from dataclasses import FrozenInstanceError
        from nowplaying_sync.policy.throttle import derive_throttle_policy
        
        policy = derive_throttle_policy(desktop_profile, 30)
        with pytest.raises(FrozenInstanceError):
            policy.position_report_interval_ms = 5
