"""
Pipeline configuration management using Pydantic Settings.
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Closet Vision"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Vision analysis service
    ANTHROPIC_API_KEY: Optional[str] = None
    VISION_API_URL: str = "https://api.anthropic.com/v1/messages"
    VISION_API_VERSION: str = "2023-06-01"
    VISION_DETECTION_MODEL: str = "claude-3-haiku-20240307"
    VISION_SCAN_MODEL: str = "claude-3-5-sonnet-20241022"
    VISION_MAX_TOKENS: int = 2000
    VISION_TIMEOUT_SECONDS: float = 60.0
    VISION_MAX_DIMENSION: int = 1024  # Longest side sent to the service
    VISION_JPEG_QUALITY: int = 85

    # Cropping
    CROP_PADDING_RATIO: float = 0.1
    CROP_MAX_WORKERS: int = 4
    CROP_VALIDATION_ENABLED: bool = False
    CROP_VALIDATION_MIN_CONFIDENCE: float = 0.3

    # Background removal providers
    FAL_API_URL: str = "https://fal.run/fal-ai/birefnet/v2"
    FAL_API_KEY: Optional[str] = None
    BIREFNET_MODEL: str = "General Use (Light)"
    BIREFNET_RESOLUTION: str = "2048x2048"
    REMOVEBG_API_URL: str = "https://api.remove.bg/v1.0/removebg"
    REMOVEBG_API_KEY: Optional[str] = None
    LOCAL_REMOVAL_ENABLED: bool = False
    REMOVAL_TIMEOUT_SECONDS: float = 60.0

    # Background removal cache
    REMOVAL_CACHE_BACKEND: str = "memory"  # or "redis"
    REMOVAL_CACHE_MAX_ENTRIES: int = 256
    REDIS_URL: str = "redis://localhost:6379/0"
    REMOVAL_CACHE_TTL_SECONDS: int = 86400  # 24 hours
    REMOVAL_CACHE_PREFIX: str = "bg-removal:"

    # Closet matching (empirical, open for tuning)
    MATCH_THRESHOLD: float = 0.5
    MATCH_CATEGORY_WEIGHT: float = 0.3
    MATCH_COLOR_WEIGHT: float = 0.4
    MATCH_TEXT_WEIGHT: float = 0.3
    COLOR_SYNONYM_SCORE: float = 0.8
    COLOR_PARTIAL_SCORE: float = 0.6
    COLOR_REASON_THRESHOLD: float = 0.7
    TEXT_REASON_THRESHOLD: float = 0.3
    MIN_TOKEN_LENGTH: int = 3  # Tokens must be longer than this


settings = Settings()
