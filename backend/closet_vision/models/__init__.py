"""
Domain models for the garment pipeline.
"""
from closet_vision.models.detection import (
    BoundingBox,
    CropOutcome,
    CropValidationResult,
    DetectedItem,
    ExtractedImage,
    ExtractionResult,
    MultiItemDetectionResult,
    PendingItem,
    PhotoHint,
    PixelRegion,
)
from closet_vision.models.closet import (
    CandidateScore,
    InventoryItem,
    MatchResult,
    OutfitScanResult,
    ScannedItem,
)
from closet_vision.models.removal import BackgroundRemovalResult, ProviderResult

__all__ = [
    "BoundingBox",
    "CropOutcome",
    "CropValidationResult",
    "DetectedItem",
    "ExtractedImage",
    "ExtractionResult",
    "MultiItemDetectionResult",
    "PendingItem",
    "PhotoHint",
    "PixelRegion",
    "CandidateScore",
    "InventoryItem",
    "MatchResult",
    "OutfitScanResult",
    "ScannedItem",
    "BackgroundRemovalResult",
    "ProviderResult",
]
