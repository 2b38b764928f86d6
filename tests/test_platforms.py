"""
Unit tests for the platform geometry table and configuration.

Tests for:
- Platform lookups and unknown identifiers
- Preview container sizing and the display width clamp
- Media types that can be cropped
- Crop configuration validation
"""

import pytest
from pydantic import ValidationError

from postcrop.core.config import AppConfig, CropConfig, Settings, get_test_settings
from postcrop.media.platforms import (
    PLATFORM_SPECS,
    Size,
    UnknownPlatformError,
    display_size,
    get_all_platforms,
    get_platform_spec,
    platform_dimensions,
    platform_label,
    supports_crop,
)


class TestPlatformTable:
    """Test platform geometry lookups."""

    @pytest.mark.parametrize(
        "platform,width,height",
        [
            ("facebook", 1200, 630),
            ("instagram", 1080, 1350),
            ("twitter", 1200, 675),
            ("linkedin", 1200, 627),
            ("youtube", 1280, 720),
        ],
    )
    def test_required_dimensions(self, platform, width, height):
        assert platform_dimensions(platform) == Size(width, height)

    def test_lookup_is_case_insensitive(self):
        assert get_platform_spec("Instagram") is PLATFORM_SPECS["instagram"]

    def test_unknown_platform_raises(self):
        with pytest.raises(UnknownPlatformError, match="myspace"):
            get_platform_spec("myspace")

    def test_all_platforms_listed(self):
        platforms = get_all_platforms()

        assert platforms[:5] == ["facebook", "instagram", "twitter", "linkedin", "youtube"]
        assert set(platforms) == set(PLATFORM_SPECS)

    def test_label_falls_back_to_identifier(self):
        assert platform_label("twitter") == "X (Twitter)"
        assert platform_label("mastodon") == "mastodon"


class TestDisplaySize:
    """Test preview container sizing."""

    def test_default_width_instagram(self):
        # 350 * 1350 / 1080 = 437.5, rounded half-up
        assert display_size("instagram") == Size(350, 438)

    def test_default_width_facebook(self):
        assert display_size("facebook") == Size(350, 184)

    def test_width_clamped_to_minimum(self):
        assert display_size("facebook", max_width=100) == Size(200, 105)

    def test_width_clamped_to_maximum(self):
        assert display_size("facebook", max_width=5000) == Size(800, 420)

    def test_aspect_preserved(self):
        size = display_size("youtube", max_width=640)

        assert size == Size(640, 360)
        assert size.aspect == pytest.approx(1280 / 720)

    def test_unknown_platform_raises(self):
        with pytest.raises(UnknownPlatformError):
            display_size("myspace")


class TestSupportsCrop:
    """Test which media types go through the crop engine."""

    def test_image_is_croppable(self):
        assert supports_crop("image") is True
        assert supports_crop("IMAGE") is True

    def test_video_passes_through(self):
        assert supports_crop("video") is False

    def test_missing_media_type(self):
        assert supports_crop(None) is False


class TestCropConfig:
    """Test crop configuration validation."""

    def test_defaults(self):
        config = CropConfig()

        assert config.display_max_width == 350
        assert config.min_box_size == 50.0
        assert config.max_zoom == 3.0
        assert config.pan_sensitivity == 0.2
        assert config.resample_filter == "lanczos"

    def test_resample_filter_normalised(self):
        assert CropConfig(resample_filter="BICUBIC").resample_filter == "bicubic"

    def test_unknown_resample_filter_rejected(self):
        with pytest.raises(ValidationError):
            CropConfig(resample_filter="sinc")

    def test_max_zoom_below_one_rejected(self):
        with pytest.raises(ValidationError):
            CropConfig(max_zoom=0.5)

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("CROP_DISPLAY_MAX_WIDTH", "500")

        assert CropConfig().display_max_width == 500

    def test_log_format_validated(self):
        assert AppConfig(LOG_FORMAT="CONSOLE").log_format == "console"
        with pytest.raises(ValidationError):
            AppConfig(LOG_FORMAT="xml")

    def test_clamp_display_width(self):
        settings = Settings()

        assert settings.clamp_display_width() == 350
        assert settings.clamp_display_width(10) == 200
        assert settings.clamp_display_width(10_000) == 800

    def test_test_settings(self, monkeypatch):
        # Registered with monkeypatch so the overrides are undone afterwards
        monkeypatch.setenv("ENVIRONMENT", "development")
        monkeypatch.setenv("LOG_FORMAT", "json")
        monkeypatch.setenv("LOG_LEVEL", "INFO")

        settings = get_test_settings()

        assert settings.app.environment == "testing"
        assert settings.app.log_level == "DEBUG"
