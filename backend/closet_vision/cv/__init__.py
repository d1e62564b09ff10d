"""
Image processing

Pure OpenCV/NumPy code for the garment pipeline:
- Encoding, decoding and resizing helpers
- Padded, boundary-clamped garment crops
"""

from closet_vision.cv.image_cropper import ImageCropper, compute_crop_region, create_image_cropper

__all__ = [
    "ImageCropper",
    "compute_crop_region",
    "create_image_cropper",
]
