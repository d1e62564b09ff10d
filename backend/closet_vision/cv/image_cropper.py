"""
Garment Crop Extraction

Cuts one image per detected garment out of the source photo.

Geometry:
1. Pad the normalized box by padding_ratio of its own width/height
2. Scale to pixels
3. Clamp the origin to the image, then clamp width/height to the remaining space
4. Slice exactly that rectangle

The output rectangle is always inside [0, W] x [0, H]; no crop ever reads
outside the source image.
"""
import asyncio
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Union

import numpy as np

from closet_vision.core.config import settings
from closet_vision.core.exceptions import CropError
from closet_vision.cv.image_utils import content_hash, decode_image, encode_png, image_size
from closet_vision.models.detection import (
    BoundingBox,
    CropOutcome,
    DetectedItem,
    ExtractedImage,
    PixelRegion,
)

logger = logging.getLogger(__name__)

DEFAULT_PADDING_RATIO = 0.1
DEFAULT_MAX_WORKERS = 4

ImageSource = Union[bytes, np.ndarray]


def compute_crop_region(
    box: BoundingBox,
    image_width: int,
    image_height: int,
    padding_ratio: float = DEFAULT_PADDING_RATIO,
) -> PixelRegion:
    """
    Convert a normalized box to a padded, clamped pixel region.

    Args:
        box: Normalized bounding box (may violate the unit square)
        image_width: Source width in pixels
        image_height: Source height in pixels
        padding_ratio: Fraction of the box size added on every side

    Returns:
        PixelRegion fully contained in the image

    Raises:
        CropError: If the region is degenerate after clamping

    Example:
        >>> compute_crop_region(BoundingBox(0.1, 0.1, 0.3, 0.4), 1000, 1000)
        PixelRegion(x=70, y=60, width=360, height=480)
    """
    if image_width <= 0 or image_height <= 0:
        raise CropError(f"Invalid image size: {image_width}x{image_height}")

    padded = box.expanded(padding_ratio)

    px = padded.x * image_width
    py = padded.y * image_height
    pw = padded.width * image_width
    ph = padded.height * image_height

    if not all(math.isfinite(v) for v in (px, py, pw, ph)):
        raise CropError(f"Non-finite bounding box: {box}")

    # Clamp origin, then size to the space left after the origin
    px = max(0.0, px)
    py = max(0.0, py)
    pw = min(image_width - px, pw)
    ph = min(image_height - py, ph)

    if pw <= 0 or ph <= 0:
        raise CropError(f"Degenerate crop region for box {box}: {pw:.1f}x{ph:.1f}px")

    # Round edges rather than sizes so adjacent crops agree on boundaries
    x = int(round(px))
    y = int(round(py))
    right = min(image_width, int(round(px + pw)))
    bottom = min(image_height, int(round(py + ph)))

    if right <= x or bottom <= y:
        raise CropError(f"Crop region for box {box} rounds to zero pixels")

    return PixelRegion(x=x, y=y, width=right - x, height=bottom - y)


class ImageCropper:
    """
    Extract per-garment images from a detection batch.

    Each crop is pure and independent, so batches run on a bounded thread
    pool. A failing item yields a failed CropOutcome; siblings are unaffected.
    """

    def __init__(
        self,
        padding_ratio: float = DEFAULT_PADDING_RATIO,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        """
        Initialize image cropper.

        Args:
            padding_ratio: Default padding around each box (default 0.1)
            max_workers: Upper bound on concurrent crops in a batch
        """
        if padding_ratio < 0:
            raise ValueError(f"padding_ratio must be >= 0, got {padding_ratio}")
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self.padding_ratio = padding_ratio
        self.max_workers = max_workers

    def crop(
        self,
        source_image: ImageSource,
        bounding_box: BoundingBox,
        padding_ratio: Optional[float] = None,
        source_ref: Optional[str] = None,
    ) -> ExtractedImage:
        """
        Crop one garment out of the source image.

        Args:
            source_image: Encoded image bytes or an already decoded array
            bounding_box: Normalized garment box
            padding_ratio: Override for the default padding
            source_ref: Identity of the source (computed if omitted)

        Returns:
            ExtractedImage with PNG data and the pixel region used

        Raises:
            CropError: If the image does not decode or the region is degenerate
        """
        pixels, source_ref = self._load(source_image, source_ref)
        ratio = self.padding_ratio if padding_ratio is None else padding_ratio

        width, height = image_size(pixels)
        region = compute_crop_region(bounding_box, width, height, ratio)

        logger.debug(
            f"Cropping {region.width}x{region.height}px at ({region.x}, {region.y}) "
            f"from {width}x{height} image"
        )

        patch = np.ascontiguousarray(pixels[region.y:region.bottom, region.x:region.right])
        try:
            data = encode_png(patch)
        except ValueError as e:
            raise CropError(f"Failed to encode crop: {e}")

        return ExtractedImage(
            ref=f"{source_ref}@{region.x},{region.y},{region.width},{region.height}",
            data=data,
            region=region,
        )

    def crop_items(
        self,
        source_image: ImageSource,
        items: Sequence[DetectedItem],
        padding_ratio: Optional[float] = None,
    ) -> List[CropOutcome]:
        """
        Crop every detected item concurrently.

        Args:
            source_image: Encoded image bytes or decoded array
            items: Detected items to crop
            padding_ratio: Override for the default padding

        Returns:
            One CropOutcome per item, in input order
        """
        if not items:
            return []

        try:
            pixels, source_ref = self._load(source_image, None)
        except CropError as e:
            logger.warning(f"⚠️  Source image unusable, all {len(items)} crops failed: {e}")
            return [CropOutcome(item=item, error=str(e)) for item in items]

        def crop_one(item: DetectedItem) -> CropOutcome:
            try:
                image = self.crop(pixels, item.bounding_box, padding_ratio, source_ref)
            except CropError as e:
                logger.warning(f"Failed to crop '{item.name}': {e}")
                return CropOutcome(item=item, error=str(e))
            return CropOutcome(item=item.with_extracted_image(image), image=image)

        workers = min(self.max_workers, len(items))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(crop_one, items))

        succeeded = sum(1 for outcome in outcomes if outcome.ok)
        logger.info(f"✂️  Cropped {succeeded}/{len(items)} items")
        return outcomes

    async def crop_items_async(
        self,
        source_image: ImageSource,
        items: Sequence[DetectedItem],
        padding_ratio: Optional[float] = None,
    ) -> List[CropOutcome]:
        """Awaitable crop_items that keeps the event loop free."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self.crop_items, source_image, items, padding_ratio
        )

    def _load(self, source_image: ImageSource, source_ref: Optional[str]):
        """Decode the source if needed and work out its identity."""
        if isinstance(source_image, np.ndarray):
            if source_image.ndim < 2 or source_image.size == 0:
                raise CropError(f"Invalid source array shape: {source_image.shape}")
            pixels = source_image
            if source_ref is None:
                source_ref = content_hash(pixels.tobytes())
        else:
            try:
                pixels = decode_image(source_image)
            except ValueError as e:
                raise CropError(f"Failed to decode source image: {e}")
            if source_ref is None:
                source_ref = content_hash(source_image)
        return pixels, source_ref


def create_image_cropper(
    padding_ratio: Optional[float] = None,
    max_workers: Optional[int] = None,
) -> ImageCropper:
    """
    Factory function to create an image cropper from settings.

    Returns:
        ImageCropper instance
    """
    return ImageCropper(
        padding_ratio=settings.CROP_PADDING_RATIO if padding_ratio is None else padding_ratio,
        max_workers=max_workers or settings.CROP_MAX_WORKERS,
    )
