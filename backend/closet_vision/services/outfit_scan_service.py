"""
Outfit Scan Service

Identifies every garment a person is wearing in a "what did I wear" photo.
The scanned items are then matched against the closet by ClosetMatcher.
"""
import asyncio
import logging
from typing import Optional

from closet_vision.core.config import settings
from closet_vision.core.exceptions import DetectionError, ParseError
from closet_vision.cv.image_utils import content_hash, prepare_for_vision
from closet_vision.models.closet import OutfitScanResult, ScannedItem
from closet_vision.models.detection import BoundingBox
from closet_vision.schemas.vision import OutfitScanResponse, parse_vision_reply
from closet_vision.services.prompts import OUTFIT_SCAN_PROMPT
from closet_vision.services.vision_client import VisionAnalysisClient, create_vision_client

logger = logging.getLogger(__name__)


class OutfitScanService:
    """Scan outfit photos into ScannedItems (same degradation policy as detection)."""

    def __init__(
        self,
        vision_client: VisionAnalysisClient,
        max_dimension: int = 1024,
        jpeg_quality: int = 85,
    ):
        self.vision_client = vision_client
        self.max_dimension = max_dimension
        self.jpeg_quality = jpeg_quality

    async def scan(self, image: bytes) -> OutfitScanResult:
        """
        Identify all visible garments in an outfit photo.

        Args:
            image: Raw image bytes

        Returns:
            OutfitScanResult; success is False and error is set on failure
        """
        source_ref = content_hash(image) if image else ""
        logger.info(f"📸 Starting outfit photo analysis for image {source_ref[:8]}")

        try:
            try:
                prepared = await asyncio.get_running_loop().run_in_executor(
                    None, prepare_for_vision, image, self.max_dimension, self.jpeg_quality
                )
            except ValueError as e:
                raise DetectionError(f"Unusable image: {e}")

            reply = await self.vision_client.detect(prepared, OUTFIT_SCAN_PROMPT, "image/jpeg")
            response = parse_vision_reply(reply, OutfitScanResponse)
        except Exception as e:
            if isinstance(e, (DetectionError, ParseError)):
                logger.warning(f"⚠️  Outfit scan failed ({type(e).__name__}): {e}")
            else:
                logger.exception("Unexpected outfit scan failure")
            return OutfitScanResult(
                success=False,
                items=(),
                total_items_detected=0,
                source_image_ref=source_ref,
                error=str(e),
            )

        items = tuple(
            ScannedItem(
                name=item.name,
                category=item.category,
                color=item.color,
                description=item.description,
                confidence=item.confidence,
                bounding_box=(
                    BoundingBox(**item.bounding_box.model_dump())
                    if item.bounding_box is not None
                    else None
                ),
            )
            for item in response.items
        )

        logger.info(
            f"✅ Outfit scan detected {len(items)} items: "
            + ", ".join(f"{item.name} ({item.category})" for item in items)
        )

        return OutfitScanResult(
            success=True,
            items=items,
            total_items_detected=len(items),
            source_image_ref=source_ref,
        )


def create_outfit_scan_service(
    vision_client: Optional[VisionAnalysisClient] = None,
) -> OutfitScanService:
    """Factory function to create an outfit scan service from settings."""
    return OutfitScanService(
        vision_client=vision_client or create_vision_client(settings.VISION_SCAN_MODEL),
        max_dimension=settings.VISION_MAX_DIMENSION,
        jpeg_quality=settings.VISION_JPEG_QUALITY,
    )
