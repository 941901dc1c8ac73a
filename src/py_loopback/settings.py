"""
Centralized configuration management using Pydantic Settings.

This module defines the global defaults for loopback measurements, allowing
values to be overridden via environment variables or a .env file.

Usage:
    from py_loopback.settings import get_settings
    settings = get_settings()
    print(settings.CAPTURE.TIMEOUT_SECONDS)
"""

from functools import lru_cache

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class AudioSettings(BaseModel):
    """Sample rate and latency defaults."""

    SAMPLE_RATE: int = 44100
    LATENCY_BASE_SECONDS: float = 0.1
    LATENCY_REFERENCE_RATE: int = 44100
    STANDARD_SAMPLE_RATES: list[int] = [
        8000,
        11025,
        16000,
        22050,
        32000,
        44100,
        48000,
        88200,
        96000,
        176400,
        192000,
    ]


class CaptureSettings(BaseModel):
    """Settings for the external playback/capture program."""

    TESTTONE_PATH: str = "TestTonePA19"
    TIMEOUT_SECONDS: float = 60.0
    CLIP_THRESHOLD: float = 0.95


class ChannelSettings(BaseModel):
    """Channel roles of the capture device (1-based)."""

    DUT: int = 1
    REF: int = 2


class CalibrationSettings(BaseModel):
    """Where calibration files live and how transfer filters are designed."""

    SEARCH_DIR: str = "calibration"
    NUM_TAPS: int = 1025


class Settings(BaseSettings):
    """
    Main settings class acting as the source of truth for the application.

    Environment variables are prefixed with 'LOOPBACK__'.
    Example: LOOPBACK__CAPTURE__TIMEOUT_SECONDS=120
    """

    model_config = SettingsConfigDict(
        env_prefix="LOOPBACK__", env_nested_delimiter="__", env_file=".env", extra="ignore"
    )

    AUDIO: AudioSettings = AudioSettings()
    CAPTURE: CaptureSettings = CaptureSettings()
    CHANNELS: ChannelSettings = ChannelSettings()
    CALIBRATION: CalibrationSettings = CalibrationSettings()


@lru_cache
def get_settings() -> Settings:
    """Returns the process-wide settings instance."""
    return Settings()
