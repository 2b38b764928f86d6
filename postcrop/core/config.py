"""
Configuration management for Postcrop.

This module provides:
- Pydantic Settings for environment variable loading
- Structured configuration classes for the crop engine sections
- Validation and type safety for configuration values
- Default values and environment-specific overrides
"""

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CropConfig(BaseSettings):
    """Crop editor and rasterizer configuration."""
    model_config = SettingsConfigDict(
        env_prefix="CROP_",
        case_sensitive=False,
        extra="ignore"
    )

    # Preview container
    display_max_width: int = Field(default=350, description="Max preview width before the [200, 800] clamp")
    display_min_width: int = Field(default=200)
    display_max_width_limit: int = Field(default=800)

    # Crop box limits (container pixels)
    min_box_size: float = Field(default=50.0)
    default_box_ratio: float = Field(default=0.8)
    default_box_max_width: float = Field(default=280.0)
    default_box_max_height: float = Field(default=300.0)

    # Transform limits
    min_zoom: float = Field(default=1.0)
    max_zoom: float = Field(default=3.0)
    max_offset: float = Field(default=100.0)

    # Modal variant: percent of offset per pointer pixel
    pan_sensitivity: float = Field(default=0.2)

    # Rasterizer
    resample_filter: str = Field(default="lanczos")
    cache_enabled: bool = Field(default=True)

    @field_validator('resample_filter')
    @classmethod
    def validate_resample_filter(cls, v: str) -> str:
        allowed = ['nearest', 'bilinear', 'bicubic', 'lanczos']
        if v.lower() not in allowed:
            raise ValueError(f'Resample filter must be one of: {allowed}')
        return v.lower()

    @field_validator('max_zoom')
    @classmethod
    def validate_max_zoom(cls, v: float) -> float:
        if v < 1.0:
            raise ValueError('max_zoom must be >= 1.0')
        return v


class ImageSourceConfig(BaseSettings):
    """Source image loading configuration."""
    model_config = SettingsConfigDict(
        env_prefix="IMAGE_",
        case_sensitive=False,
        extra="ignore"
    )

    http_timeout: float = Field(default=30.0)
    max_image_bytes: int = Field(default=25 * 1024 * 1024)  # 25MB
    user_agent: str = Field(default="postcrop/1.0")


class AppConfig(BaseSettings):
    """Main application configuration."""
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # App metadata
    app_name: str = Field(default="Postcrop", validation_alias="APP_NAME")
    version: str = Field(default="1.0.0", validation_alias="APP_VERSION")
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")  # rotated JSON sink for warnings

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = ['development', 'testing', 'staging', 'production']
        if v not in allowed:
            raise ValueError(f'Environment must be one of: {allowed}')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in allowed:
            raise ValueError(f'Log level must be one of: {allowed}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in ('json', 'console'):
            raise ValueError('Log format must be json or console')
        return v.lower()


class Settings:
    """Main settings container with all configuration sections."""

    def __init__(self):
        self.app = AppConfig()
        self.crop = CropConfig()
        self.image = ImageSourceConfig()

    def clamp_display_width(self, max_width: int | None = None) -> int:
        """Clamp a requested preview width to the allowed range."""
        width = self.crop.display_max_width if max_width is None else max_width
        return min(max(width, self.crop.display_min_width), self.crop.display_max_width_limit)


# Global settings instance
settings = Settings()


def get_test_settings() -> Settings:
    """Get test-specific settings with overrides."""

    # Override with test values
    os.environ.update({
        'ENVIRONMENT': 'testing',
        'LOG_FORMAT': 'console',
        'LOG_LEVEL': 'DEBUG',
    })

    return Settings()
