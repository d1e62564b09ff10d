"""
Startup helpers.

Handles initialization that hosts should run once before using the pipeline:
- Logging configuration
- Report of which providers and cache backend are active
"""
import logging
from typing import Optional

from closet_vision.core.config import settings

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """
    Configure root logging from settings.

    Args:
        level: Log level name (defaults to settings.LOG_LEVEL)
        fmt: Log format string (defaults to settings.LOG_FORMAT)
    """
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=fmt or settings.LOG_FORMAT,
    )


def log_pipeline_configuration() -> None:
    """Log the active vision, removal and cache configuration (never the keys)."""
    from closet_vision.services.removal_providers import create_default_providers

    logger.info("=" * 60)
    logger.info(f"{settings.APP_NAME} pipeline configuration")
    logger.info("=" * 60)

    if settings.ANTHROPIC_API_KEY:
        logger.info(f"✅ Vision service: {settings.VISION_DETECTION_MODEL}")
    else:
        logger.warning("⚠️  No vision API key configured, detection will degrade to whole images")

    providers = create_default_providers()
    logger.info(f"Background removal chain: {' -> '.join(p.name for p in providers)} -> original image")
    logger.info(f"Removal cache backend: {settings.REMOVAL_CACHE_BACKEND}")
    logger.info(f"Crop validation: {'enabled' if settings.CROP_VALIDATION_ENABLED else 'disabled'}")

    logger.info("=" * 60)
