"""
Services for garment detection, background removal and closet matching.
"""
from closet_vision.services.background_removal_service import (
    BackgroundRemovalService,
    create_background_removal_service,
)
from closet_vision.services.closet_matcher import ClosetMatcher, create_closet_matcher
from closet_vision.services.crop_validation_service import (
    CropValidationService,
    create_crop_validation_service,
)
from closet_vision.services.extraction_pipeline import (
    GarmentExtractionPipeline,
    create_extraction_pipeline,
)
from closet_vision.services.inventory import InMemoryInventoryStore, InventoryStore
from closet_vision.services.item_detection_service import (
    ItemDetectionService,
    create_item_detection_service,
)
from closet_vision.services.outfit_scan_service import OutfitScanService, create_outfit_scan_service
from closet_vision.services.vision_client import AnthropicVisionClient, VisionAnalysisClient

__all__ = [
    "AnthropicVisionClient",
    "VisionAnalysisClient",
    "ItemDetectionService",
    "create_item_detection_service",
    "OutfitScanService",
    "create_outfit_scan_service",
    "CropValidationService",
    "create_crop_validation_service",
    "BackgroundRemovalService",
    "create_background_removal_service",
    "ClosetMatcher",
    "create_closet_matcher",
    "InventoryStore",
    "InMemoryInventoryStore",
    "GarmentExtractionPipeline",
    "create_extraction_pipeline",
]
