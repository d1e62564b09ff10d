"""
Closet matching data model.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from closet_vision.models.detection import BoundingBox, DetectedItem


@dataclass(frozen=True)
class InventoryItem:
    """Read-only snapshot of an item already in the user's closet."""
    id: str
    name: str
    category: str
    color: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class ScannedItem:
    """Garment observed in a photo (outfit scan or upload detection)."""
    name: str
    category: str
    color: str = ""
    description: str = ""
    confidence: float = 0.0
    bounding_box: Optional[BoundingBox] = None

    @classmethod
    def from_detected(cls, item: DetectedItem, color: str = "", description: str = "") -> "ScannedItem":
        """Build a scanned item from an upload-flow detection."""
        return cls(
            name=item.name,
            category=item.category,
            color=color,
            description=description,
            confidence=item.confidence,
            bounding_box=item.bounding_box,
        )


@dataclass(frozen=True)
class MatchResult:
    """Best closet match (or no match) for one scanned item."""
    scanned_item: ScannedItem
    matched_inventory_item: Optional[InventoryItem]
    match_confidence: float
    match_reason: str

    @property
    def is_match(self) -> bool:
        return self.matched_inventory_item is not None


@dataclass(frozen=True)
class CandidateScore:
    """Scoring breakdown for one inventory candidate."""
    item: InventoryItem
    score: float
    color_similarity: float
    text_similarity: float
    reasons: Tuple[str, ...]


@dataclass(frozen=True)
class OutfitScanResult:
    """Garments found in a "what did I wear" photo."""
    success: bool
    items: Tuple[ScannedItem, ...]
    total_items_detected: int
    source_image_ref: str
    error: Optional[str] = None
