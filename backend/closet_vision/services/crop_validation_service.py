"""
Crop Validation Service

Asks the vision service whether an extracted crop actually shows the garment
detection said it would. Used by the extraction pipeline to drop crops that
framed the wrong thing.
"""
import logging
from typing import List, Optional

from closet_vision.core.config import settings
from closet_vision.core.exceptions import DetectionError, ParseError
from closet_vision.models.detection import CropValidationResult, ExtractedImage
from closet_vision.schemas.vision import CropValidationResponse, parse_vision_reply
from closet_vision.services.prompts import build_crop_validation_prompt
from closet_vision.services.vision_client import VisionAnalysisClient, create_vision_client

logger = logging.getLogger(__name__)


def suggest_fixes(response: CropValidationResponse) -> List[str]:
    """Turn reported crop issues into follow-up suggestions."""
    issues = [issue.lower() for issue in response.issues]
    suggestions = []

    if any("partial garment" in issue for issue in issues):
        suggestions.append("Expand bounding box to capture full garment")
    if any("too much background" in issue for issue in issues):
        suggestions.append("Tighten bounding box around garment")
    if not response.matches_expected:
        suggestions.append("Re-run detection with more specific prompts")
        suggestions.append("Manually verify image contains expected item")

    return suggestions


class CropValidationService:
    """Validate extracted crops with the vision service."""

    def __init__(self, vision_client: VisionAnalysisClient):
        self.vision_client = vision_client

    async def validate(
        self,
        image: ExtractedImage,
        expected_name: str,
        expected_category: str,
    ) -> CropValidationResult:
        """
        Check that a crop contains the expected garment.

        Args:
            image: Extracted crop
            expected_name: Item name reported by detection
            expected_category: Item category reported by detection

        Returns:
            CropValidationResult (invalid with zero confidence if the check itself fails)
        """
        prompt = build_crop_validation_prompt(expected_name, expected_category)

        try:
            reply = await self.vision_client.detect(image.data, prompt, image.media_type)
            response = parse_vision_reply(reply, CropValidationResponse)
        except Exception as e:
            if isinstance(e, (DetectionError, ParseError)):
                logger.warning(f"⚠️  Crop validation error for '{expected_name}': {e}")
            else:
                logger.exception(f"Unexpected crop validation failure for '{expected_name}'")
            return CropValidationResult(
                is_valid=False,
                confidence=0.0,
                detected_item="unknown",
                expected_item=expected_name,
                issues=("Validation failed",),
                suggestions=("Skip this item or retry detection",),
            )

        result = CropValidationResult(
            is_valid=response.matches_expected,
            confidence=response.confidence,
            detected_item=response.detected_item,
            expected_item=expected_name,
            issues=tuple(response.issues),
            suggestions=tuple(suggest_fixes(response)),
        )

        if result.is_valid:
            logger.info(f"✅ Crop validation passed: {expected_name}")
        else:
            logger.warning(
                f"⚠️  Crop validation failed: expected '{expected_name}', "
                f"saw '{result.detected_item}', issues={list(result.issues)}"
            )

        return result


def create_crop_validation_service(
    vision_client: Optional[VisionAnalysisClient] = None,
) -> CropValidationService:
    """Factory function to create a crop validation service from settings."""
    return CropValidationService(
        vision_client or create_vision_client(settings.VISION_DETECTION_MODEL)
    )
