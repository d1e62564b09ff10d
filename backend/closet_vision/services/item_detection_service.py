"""
Multi-Item Detection Service

Asks the vision service which garments a photo contains and where they are,
then validates the reply into a MultiItemDetectionResult.

Detection is a quality enhancement, not a required step: every failure
(undecodable image, service error, timeout, malformed reply) degrades to a
result with no items and the error recorded, so the caller can carry on
with the whole image as a single item.
"""
import asyncio
import logging
from typing import Optional

from closet_vision.core.config import settings
from closet_vision.core.exceptions import DetectionError, ParseError
from closet_vision.cv.image_utils import content_hash, prepare_for_vision
from closet_vision.models.detection import (
    BoundingBox,
    DetectedItem,
    MultiItemDetectionResult,
    PhotoHint,
)
from closet_vision.schemas.vision import VisionDetectionResponse, parse_vision_reply
from closet_vision.services.prompts import build_detection_prompt
from closet_vision.services.vision_client import VisionAnalysisClient, create_vision_client

logger = logging.getLogger(__name__)


class ItemDetectionService:
    """
    Detect individual garments in flat-lay and worn-outfit photos.

    Workflow:
    1. Decode and downscale the image to a bounded JPEG
    2. Send it to the vision client with the detection prompt
    3. Parse the reply into DetectedItems
    4. Decide single vs multiple items (more than one item means multiple)
    """

    def __init__(
        self,
        vision_client: VisionAnalysisClient,
        max_dimension: int = 1024,
        jpeg_quality: int = 85,
        timeout: Optional[float] = None,
    ):
        """
        Initialize detection service.

        Args:
            vision_client: Backend used for image analysis
            max_dimension: Longest side of the image sent for analysis
            jpeg_quality: JPEG quality of the image sent for analysis
            timeout: Overall deadline for one detection call (None = client's own)
        """
        self.vision_client = vision_client
        self.max_dimension = max_dimension
        self.jpeg_quality = jpeg_quality
        self.timeout = timeout

    async def detect(
        self,
        image: bytes,
        hint: Optional[PhotoHint] = None,
    ) -> MultiItemDetectionResult:
        """
        Detect garments in an image.

        Args:
            image: Raw image bytes (any common raster format)
            hint: Optional flat-lay / worn-outfit hint

        Returns:
            MultiItemDetectionResult; on failure items is empty and error is set
        """
        source_ref = content_hash(image) if image else ""
        logger.info(f"🔍 Starting multi-item detection for image {source_ref[:8]}")

        try:
            response = await self._analyze(image, hint)
        except (DetectionError, ParseError) as e:
            return self._degraded(source_ref, e)
        except asyncio.TimeoutError:
            return self._degraded(source_ref, DetectionError(f"Detection timed out after {self.timeout}s"))
        except Exception as e:
            logger.exception("Unexpected detection failure")
            return self._degraded(source_ref, DetectionError(f"Detection failed: {e}"))

        items = tuple(
            DetectedItem(
                name=item.name,
                category=item.category,
                bounding_box=BoundingBox(
                    x=item.bounding_box.x,
                    y=item.bounding_box.y,
                    width=item.bounding_box.width,
                    height=item.bounding_box.height,
                ),
                confidence=item.confidence,
            )
            for item in response.items
        )

        has_multiple = len(items) > 1
        if has_multiple:
            logger.info(
                f"✅ Detected {len(items)} items: "
                + ", ".join(f"{item.name} ({item.category})" for item in items)
            )
        else:
            logger.info(f"Single item detected ({len(items)} returned), no splitting needed")

        return MultiItemDetectionResult(
            has_multiple_items=has_multiple,
            item_count=len(items),
            items=items,
            source_image_ref=source_ref,
        )

    async def _analyze(self, image: bytes, hint: Optional[PhotoHint]) -> VisionDetectionResponse:
        loop = asyncio.get_running_loop()
        try:
            prepared = await loop.run_in_executor(
                None, prepare_for_vision, image, self.max_dimension, self.jpeg_quality
            )
        except ValueError as e:
            raise DetectionError(f"Unusable image: {e}")

        call = self.vision_client.detect(prepared, build_detection_prompt(hint), "image/jpeg")
        if self.timeout is not None:
            reply = await asyncio.wait_for(call, timeout=self.timeout)
        else:
            reply = await call

        return parse_vision_reply(reply, VisionDetectionResponse)

    def _degraded(self, source_ref: str, error: Exception) -> MultiItemDetectionResult:
        """Whole-image fallback: no items, one logical item, error recorded."""
        logger.warning(f"⚠️  Detection degraded to whole image ({type(error).__name__}): {error}")
        return MultiItemDetectionResult(
            has_multiple_items=False,
            item_count=1,
            items=(),
            source_image_ref=source_ref,
            error=str(error),
        )


def create_item_detection_service(
    vision_client: Optional[VisionAnalysisClient] = None,
) -> ItemDetectionService:
    """
    Factory function to create a detection service from settings.

    Returns:
        ItemDetectionService instance
    """
    return ItemDetectionService(
        vision_client=vision_client or create_vision_client(settings.VISION_DETECTION_MODEL),
        max_dimension=settings.VISION_MAX_DIMENSION,
        jpeg_quality=settings.VISION_JPEG_QUALITY,
    )
