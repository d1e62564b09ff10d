"""
Error kinds raised inside the garment pipeline.

Vision clients and providers raise these; the detection, scan, validation and
removal services absorb them and record the message on their result objects.
ImageCropper.crop raises CropError to its caller.
"""


class ClosetVisionError(Exception):
    """Base class for pipeline errors."""


class DetectionError(ClosetVisionError):
    """Vision service call failed, timed out, or the image was unusable."""


class ParseError(ClosetVisionError):
    """Vision service reply did not match the expected shape."""


class CropError(ClosetVisionError):
    """A single item could not be cropped (degenerate geometry or undecodable image)."""


class ProviderError(ClosetVisionError):
    """A background removal provider failed."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
