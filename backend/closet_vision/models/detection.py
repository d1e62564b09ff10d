"""
Detection and extraction data model.

All records are frozen: each stage produces new values instead of mutating
the output of the stage before it.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple


class PhotoHint(str, Enum):
    """Caller hint about how the garments are photographed."""
    FLAT_LAY = "flat_lay"
    WORN_OUTFIT = "worn_outfit"


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box normalized to the unit square (0-1)."""
    x: float
    y: float
    width: float
    height: float

    def expanded(self, padding_ratio: float) -> "BoundingBox":
        """
        Grow the box symmetrically by padding_ratio of its own size.

        The result may leave the unit square; clamping happens in pixel space.
        """
        return BoundingBox(
            x=self.x - padding_ratio * self.width,
            y=self.y - padding_ratio * self.height,
            width=self.width * (1 + 2 * padding_ratio),
            height=self.height * (1 + 2 * padding_ratio),
        )

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class PixelRegion:
    """Integer pixel rectangle inside a source image."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def is_within(self, image_width: int, image_height: int) -> bool:
        """True if the region lies inside [0, image_width] x [0, image_height]."""
        return (
            self.x >= 0
            and self.y >= 0
            and self.right <= image_width
            and self.bottom <= image_height
        )


@dataclass(frozen=True)
class ExtractedImage:
    """PNG-encoded crop of a single garment."""
    ref: str  # Stable identity: "<source ref>@x,y,w,h"
    data: bytes
    region: PixelRegion
    media_type: str = "image/png"

    @property
    def width(self) -> int:
        return self.region.width

    @property
    def height(self) -> int:
        return self.region.height


@dataclass(frozen=True)
class DetectedItem:
    """Single garment reported by the vision service."""
    name: str
    category: str
    bounding_box: BoundingBox
    confidence: float
    extracted_image_ref: Optional[str] = None

    def with_extracted_image(self, image: ExtractedImage) -> "DetectedItem":
        return replace(self, extracted_image_ref=image.ref)


@dataclass(frozen=True)
class MultiItemDetectionResult:
    """Outcome of one detection call."""
    has_multiple_items: bool
    item_count: int
    items: Tuple[DetectedItem, ...]
    source_image_ref: str
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        """True when detection failed and the image should be treated as one item."""
        return self.error is not None


@dataclass(frozen=True)
class CropOutcome:
    """Per-item result of a batch crop; failures never affect siblings."""
    item: DetectedItem
    image: Optional[ExtractedImage] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.image is not None


@dataclass(frozen=True)
class CropValidationResult:
    """Vision check that a crop really shows the expected garment."""
    is_valid: bool
    confidence: float
    detected_item: str
    expected_item: str
    issues: Tuple[str, ...] = ()
    suggestions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PendingItem:
    """
    Garment ready to be confirmed by the user before it enters the closet.

    Replaces the loosely typed metadata bag passed between upload stages.
    """
    name: str
    suggested_category: Optional[str]
    image: bytes
    original_image: bytes
    background_removed: bool = False
    confidence: Optional[float] = None
    source_item: Optional[DetectedItem] = None
    validation: Optional[CropValidationResult] = None


@dataclass(frozen=True)
class ExtractionResult:
    """Everything the extraction pipeline hands back to the caller."""
    detection: MultiItemDetectionResult
    items: Tuple[PendingItem, ...]
    crop_failures: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def used_whole_image(self) -> bool:
        return len(self.items) == 1 and self.items[0].source_item is None
