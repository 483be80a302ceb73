"""
Configuration Tests
===================

YAML loading, environment overrides and validation of Settings.
"""

import pytest
from pydantic import ValidationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove overrides that would leak in from the host environment."""
    for name in (
        "PORT",
        "NOWPLAYING_PORT",
        "NOWPLAYING_USER_AGENT",
        "NOWPLAYING_MAX_TOUCH_POINTS",
        "NOWPLAYING_TARGET_FPS",
        "NOWPLAYING_FRAMES_DIR",
        "NOWPLAYING_TOTAL_FRAMES",
        "NOWPLAYING_VIDEO_PATH",
        "NOWPLAYING_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Tests for Settings defaults and validation."""
    
    def test_defaults(self):
        from nowplaying_sync.config import Settings
        
        cfg = Settings()
        
        assert cfg.media.title == "Bad Apple!!"
        assert cfg.artwork.total_frames == 6571
        assert cfg.throttle.target_fps == 30.0
        assert cfg.cache.capacity == 150
        assert cfg.cache.strict_capacity == 30
        assert cfg.unlock.unmute_delay_ms == 100
        assert cfg.seek.default_offset_seconds == 10.0
    
    def test_invalid_values_rejected(self):
        from nowplaying_sync.config import Settings
        
        with pytest.raises(ValidationError):
            Settings.model_validate({"cache": {"capacity": 0}})
        with pytest.raises(ValidationError):
            Settings.model_validate({"media": {"duration_seconds": -1}})


class TestLoadConfig:
    """Tests for load_config()."""
    
    def test_load_yaml(self, tmp_path):
        from nowplaying_sync.config import load_config
        
        path = tmp_path / "config.yaml"
        path.write_text(
            "throttle:\n"
            "  target_fps: 24\n"
            "artwork:\n"
            "  total_frames: 100\n"
            "  base_url: https://cdn.example.com/frames\n"
        )
        
        cfg = load_config(str(path))
        
        assert cfg.throttle.target_fps == 24.0
        assert cfg.artwork.total_frames == 100
        assert cfg.artwork.base_url == "https://cdn.example.com/frames"
        assert cfg.cache.capacity == 150
    
    def test_empty_yaml(self, tmp_path):
        from nowplaying_sync.config import load_config
        
        path = tmp_path / "config.yaml"
        path.write_text("")
        
        assert load_config(str(path)).media.artist == "Alstroemeria Records"
    
    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        from nowplaying_sync.config import load_config
        
        path = tmp_path / "config.yaml"
        path.write_text("throttle:\n  target_fps: 24\n")
        monkeypatch.setenv("NOWPLAYING_TARGET_FPS", "60")
        monkeypatch.setenv("NOWPLAYING_USER_AGENT", "Mozilla/5.0 (iPhone)")
        monkeypatch.setenv("NOWPLAYING_MAX_TOUCH_POINTS", "5")
        monkeypatch.setenv("NOWPLAYING_LOG_LEVEL", "DEBUG")
        
        cfg = load_config(str(path))
        
        assert cfg.throttle.target_fps == 60.0
        assert cfg.platform.user_agent == "Mozilla/5.0 (iPhone)"
        assert cfg.platform.max_touch_points == 5
        assert cfg.logging.level == "DEBUG"
    
    def test_cloud_run_port_wins(self, tmp_path, monkeypatch):
        from nowplaying_sync.config import load_config
        
        monkeypatch.setenv("NOWPLAYING_PORT", "9001")
        monkeypatch.setenv("PORT", "9000")
        
        assert load_config(str(tmp_path / "missing.yaml")).server.port == 9000
    
    def test_missing_file_uses_defaults(self, tmp_path):
        from nowplaying_sync.config import load_config
        
        cfg = load_config(str(tmp_path / "missing.yaml"))
        
        assert cfg.server.port == 8002
        assert cfg.artwork.frames_dir == "./assets/frames"
