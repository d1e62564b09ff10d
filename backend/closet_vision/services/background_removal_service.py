"""
Background Removal Service

Strips the background from garment images through a prioritized provider
chain, with a result cache keyed by source image identity.

Priority: primary provider -> secondary provider(s) -> original image.

remove_background never fails: if every provider fails, the original image
comes back with success=True and used_fallback=True. A failed removal is a
quality degradation, not an error.
"""
import asyncio
import logging
from typing import List, Optional, Sequence

from closet_vision.cv.image_utils import content_hash, is_decodable
from closet_vision.models.removal import BackgroundRemovalResult
from closet_vision.services.removal_cache import (
    InMemoryRemovalCache,
    RemovalCache,
    create_removal_cache,
)
from closet_vision.services.removal_providers import (
    BackgroundRemovalProvider,
    create_default_providers,
)

logger = logging.getLogger(__name__)


class BackgroundRemovalService:
    """
    Orchestrate background removal across a fallback chain.

    Each provider attempt is isolated: an exception, an unsuccessful result
    or an undecodable image from one provider just moves on to the next.
    Only successful provider results are cached.
    """

    def __init__(
        self,
        providers: Sequence[BackgroundRemovalProvider],
        cache: Optional[RemovalCache] = None,
        validate_output: bool = True,
    ):
        """
        Initialize removal orchestrator.

        Args:
            providers: Providers in priority order
            cache: Result cache (defaults to an unbounded in-memory cache)
            validate_output: Reject provider results that do not decode as images
        """
        self.providers: List[BackgroundRemovalProvider] = list(providers)
        self.cache = cache if cache is not None else InMemoryRemovalCache()
        self.validate_output = validate_output

    @staticmethod
    def cache_key(image: bytes, source_url: Optional[str] = None) -> str:
        """Canonical URL when the caller has one, otherwise the content hash."""
        return source_url or content_hash(image)

    async def remove_background(
        self,
        image: bytes,
        source_url: Optional[str] = None,
    ) -> BackgroundRemovalResult:
        """
        Remove the background from an image.

        Args:
            image: Encoded source image
            source_url: Canonical URL of the source, used as cache key if given

        Returns:
            BackgroundRemovalResult (always success=True)
        """
        loop = asyncio.get_running_loop()
        key = self.cache_key(image, source_url)

        cached = await loop.run_in_executor(None, self.cache.get, key)
        if cached is not None:
            logger.debug(f"💾 Using cached background removal for {key[:8]}")
            return BackgroundRemovalResult(
                success=True,
                result_image=cached,
                used_fallback=False,
                cached=True,
            )

        failures = []
        for provider in self.providers:
            try:
                result = await provider.attempt(image)
            except Exception as e:
                failures.append(f"{provider.name}: {type(e).__name__}: {e}")
                logger.warning(f"⚠️  {provider.name} raised, trying next provider: {e}")
                continue

            if not result.success or not result.image:
                failures.append(result.error or f"{provider.name}: no image")
                logger.warning(f"⚠️  {provider.name} failed, trying next provider: {result.error}")
                continue

            if self.validate_output and not await loop.run_in_executor(None, is_decodable, result.image):
                failures.append(f"{provider.name}: malformed image")
                logger.warning(f"⚠️  {provider.name} returned an undecodable image")
                continue

            await loop.run_in_executor(None, self.cache.set, key, result.image)
            logger.info(f"✅ Background removed by {provider.name}")
            return BackgroundRemovalResult(
                success=True,
                result_image=result.image,
                used_fallback=False,
                provider=provider.name,
            )

        logger.info("ℹ️  Using original image (no background removal)")
        return BackgroundRemovalResult(
            success=True,
            result_image=image,
            used_fallback=True,
            error="All background removal methods failed"
            + (f": {'; '.join(failures)}" if failures else ""),
        )

    def clear_cache(self) -> int:
        """Drop all cached results; return how many were removed."""
        return self.cache.clear()

    def cache_size(self) -> int:
        return self.cache.size()


def create_background_removal_service() -> BackgroundRemovalService:
    """
    Factory function to create the removal orchestrator from settings.

    Returns:
        BackgroundRemovalService instance
    """
    return BackgroundRemovalService(
        providers=create_default_providers(),
        cache=create_removal_cache(),
    )
