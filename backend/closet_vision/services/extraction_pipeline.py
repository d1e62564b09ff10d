"""
Garment Extraction Pipeline

End-to-end upload flow for a photo that may contain several garments:

1. Multi-item detection (vision service)
2. Crop each detected item (bounded thread pool)
3. Optional crop validation (vision service)
4. Optional background removal per item (provider chain)

Any stage that cannot help degrades to the whole original image as a single
pending item. Nothing here writes to the closet inventory, so the caller may
cancel between stages at any time.
"""
import asyncio
import logging
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from closet_vision.core.config import settings
from closet_vision.cv.image_cropper import ImageCropper, create_image_cropper
from closet_vision.models.detection import (
    CropOutcome,
    CropValidationResult,
    ExtractionResult,
    MultiItemDetectionResult,
    PendingItem,
    PhotoHint,
)
from closet_vision.services.background_removal_service import (
    BackgroundRemovalService,
    create_background_removal_service,
)
from closet_vision.services.crop_validation_service import (
    CropValidationService,
    create_crop_validation_service,
)
from closet_vision.services.item_detection_service import (
    ItemDetectionService,
    create_item_detection_service,
)

logger = logging.getLogger(__name__)

DEFAULT_ITEM_NAME = "Clothing item"


class GarmentExtractionPipeline:
    """
    Turn one uploaded photo into pending closet items.

    Example:
        >>> pipeline = create_extraction_pipeline()
        >>> result = asyncio.run(pipeline.process(photo_bytes, remove_background=True))
        >>> [item.name for item in result.items]
        ['Black T-shirt', 'Blue jeans']
    """

    def __init__(
        self,
        detection_service: ItemDetectionService,
        cropper: ImageCropper,
        background_removal: Optional[BackgroundRemovalService] = None,
        crop_validator: Optional[CropValidationService] = None,
        min_validation_confidence: float = 0.3,
    ):
        """
        Initialize extraction pipeline.

        Args:
            detection_service: Multi-item detection
            cropper: Bounding box cropper
            background_removal: Removal orchestrator (required for remove_background=True)
            crop_validator: Optional crop validation; None skips validation
            min_validation_confidence: Invalid crops at or above this confidence are kept
        """
        self.detection_service = detection_service
        self.cropper = cropper
        self.background_removal = background_removal
        self.crop_validator = crop_validator
        self.min_validation_confidence = min_validation_confidence

    async def process(
        self,
        image: bytes,
        hint: Optional[PhotoHint] = None,
        remove_background: bool = False,
    ) -> ExtractionResult:
        """
        Run detection, cropping, validation and background removal.

        Args:
            image: Encoded source photo
            hint: Optional flat-lay / worn-outfit hint for detection
            remove_background: Strip backgrounds from the resulting images

        Returns:
            ExtractionResult with at least one pending item
        """
        detection = await self.detection_service.detect(image, hint)
        crop_failures: Tuple[str, ...] = ()

        if detection.degraded or not detection.has_multiple_items:
            items = [self._whole_image(image, detection)]
        else:
            outcomes = await self.cropper.crop_items_async(image, detection.items)
            crop_failures = tuple(outcome.item.name for outcome in outcomes if not outcome.ok)
            cropped = [outcome for outcome in outcomes if outcome.ok]

            if self.crop_validator is not None and cropped:
                items = await self._validate(image, cropped)
            else:
                items = [self._pending_from_crop(image, outcome) for outcome in cropped]

            if not items:
                logger.warning("⚠️  No usable crops, falling back to whole image")
                items = [self._whole_image(image, detection)]

        if remove_background:
            items = await self._remove_backgrounds(items)

        logger.info(f"✅ Extraction produced {len(items)} pending item(s)")
        return ExtractionResult(
            detection=detection,
            items=tuple(items),
            crop_failures=crop_failures,
        )

    def _whole_image(self, image: bytes, detection: MultiItemDetectionResult) -> PendingItem:
        single = detection.items[0] if len(detection.items) == 1 else None
        return PendingItem(
            name=single.name if single else DEFAULT_ITEM_NAME,
            suggested_category=single.category if single else None,
            image=image,
            original_image=image,
            confidence=single.confidence if single else None,
        )

    @staticmethod
    def _pending_from_crop(original: bytes, outcome: CropOutcome) -> PendingItem:
        return PendingItem(
            name=outcome.item.name,
            suggested_category=outcome.item.category,
            image=outcome.image.data,
            original_image=original,
            confidence=outcome.item.confidence,
            source_item=outcome.item,
        )

    async def _validate(self, original: bytes, outcomes: Sequence[CropOutcome]) -> List[PendingItem]:
        """Validate crops concurrently; drop those that are invalid and low confidence."""
        results: List[CropValidationResult] = await asyncio.gather(*[
            self.crop_validator.validate(outcome.image, outcome.item.name, outcome.item.category)
            for outcome in outcomes
        ])

        kept = []
        for outcome, validation in zip(outcomes, results):
            if not validation.is_valid and validation.confidence < self.min_validation_confidence:
                logger.warning(f"⚠️  Skipping '{outcome.item.name}': crop failed validation")
                continue
            kept.append(replace(self._pending_from_crop(original, outcome), validation=validation))
        return kept

    async def _remove_backgrounds(self, items: Sequence[PendingItem]) -> List[PendingItem]:
        if self.background_removal is None:
            logger.warning("⚠️  Background removal requested but no service configured")
            return list(items)

        results = await asyncio.gather(*[
            self.background_removal.remove_background(item.image) for item in items
        ])
        return [
            replace(item, image=result.result_image, background_removed=not result.used_fallback)
            for item, result in zip(items, results)
        ]


def create_extraction_pipeline() -> GarmentExtractionPipeline:
    """
    Factory function to create the extraction pipeline from settings.

    Returns:
        GarmentExtractionPipeline instance
    """
    return GarmentExtractionPipeline(
        detection_service=create_item_detection_service(),
        cropper=create_image_cropper(),
        background_removal=create_background_removal_service(),
        crop_validator=create_crop_validation_service() if settings.CROP_VALIDATION_ENABLED else None,
        min_validation_confidence=settings.CROP_VALIDATION_MIN_CONFIDENCE,
    )
