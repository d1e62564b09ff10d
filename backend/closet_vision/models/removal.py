"""
Background removal data model.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ProviderResult:
    """Uniform result of a single provider attempt."""
    success: bool
    image: Optional[bytes] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class BackgroundRemovalResult:
    """
    Outcome of the removal chain.

    success is always True: when every provider fails the original image is
    returned with used_fallback set.
    """
    success: bool
    result_image: bytes
    used_fallback: bool
    provider: Optional[str] = None
    cached: bool = False
    error: Optional[str] = None
