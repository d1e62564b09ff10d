"""
Pydantic schemas for external service payloads.
"""
from closet_vision.schemas.vision import (
    CropValidationResponse,
    OutfitScanResponse,
    VisionBoundingBox,
    VisionDetectedItem,
    VisionDetectionResponse,
    VisionScannedItem,
    extract_json_object,
    parse_vision_reply,
)

__all__ = [
    "CropValidationResponse",
    "OutfitScanResponse",
    "VisionBoundingBox",
    "VisionDetectedItem",
    "VisionDetectionResponse",
    "VisionScannedItem",
    "extract_json_object",
    "parse_vision_reply",
]
