"""
Background removal providers.

Every provider satisfies one capability, attempt(image) -> ProviderResult,
so the orchestrator can walk an ordered chain without per-provider
try/except/fallback code.

Providers:
- FalBiRefNetProvider: BiRefNet v2 on fal.ai (primary, best for clothing)
- RemoveBgProvider: remove.bg commercial API (secondary)
- RembgProvider: local rembg model (optional, needs the "local" extra)
"""
import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import requests

from closet_vision.core.config import settings
from closet_vision.core.exceptions import ProviderError
from closet_vision.cv.image_utils import decode_data_url, to_data_url
from closet_vision.models.removal import ProviderResult

logger = logging.getLogger(__name__)


class BackgroundRemovalProvider(ABC):
    """One link in the removal fallback chain."""

    name: str = "provider"

    @abstractmethod
    def remove(self, image: bytes) -> bytes:
        """
        Remove the background from an encoded image (blocking).

        Returns:
            Encoded result image (PNG with transparency)

        Raises:
            ProviderError: If this provider cannot produce a result
        """

    async def attempt(self, image: bytes) -> ProviderResult:
        """Run remove() off the event loop and report the outcome without raising."""
        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, self.remove, image)
        except ProviderError as e:
            return ProviderResult(success=False, error=str(e))
        except Exception as e:
            return ProviderResult(success=False, error=f"{self.name}: {type(e).__name__}: {e}")

        if not data:
            return ProviderResult(success=False, error=f"{self.name}: empty result")

        return ProviderResult(success=True, image=data)


def _dig(payload: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(payload, dict):
            return None
        payload = payload.get(key)
    return payload


class FalBiRefNetProvider(BackgroundRemovalProvider):
    """BiRefNet v2 via the fal.ai HTTP API."""

    name = "fal-birefnet"

    # Known response shapes, tried in order
    RESULT_URL_PATHS = (
        ("data", "image", "url"),
        ("image", "url"),
        ("data", "output", "url"),
    )

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str] = None,
        model: str = "General Use (Light)",
        operating_resolution: str = "2048x2048",
        refine_foreground: bool = True,
        output_format: str = "png",
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.operating_resolution = operating_resolution
        self.refine_foreground = refine_foreground
        self.output_format = output_format
        self.timeout = timeout
        self.session = session or requests.Session()

    def build_request(self, image: bytes) -> dict:
        return {
            "image_url": to_data_url(image),
            "model": self.model,
            "operating_resolution": self.operating_resolution,
            "output_mask": False,
            "refine_foreground": self.refine_foreground,
            "output_format": self.output_format,
            "sync_mode": True,
        }

    @classmethod
    def extract_result_url(cls, payload: Any) -> Optional[str]:
        """Find the processed image URL in any of the known response shapes."""
        if isinstance(payload, str):
            return payload or None

        for path in cls.RESULT_URL_PATHS:
            url = _dig(payload, *path)
            if isinstance(url, str) and url:
                return url

        image = _dig(payload, "image")
        if isinstance(image, str) and image:
            return image

        return None

    def remove(self, image: bytes) -> bytes:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Key {self.api_key}"

        try:
            response = self.session.post(
                self.api_url,
                json=self.build_request(image),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ProviderError(self.name, f"request failed: {e}")

        if not response.ok:
            raise ProviderError(self.name, f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError:
            raise ProviderError(self.name, "non-JSON response")

        url = self.extract_result_url(payload)
        if not url:
            raise ProviderError(self.name, "no processed image URL in response")

        return self._fetch(url)

    def _fetch(self, url: str) -> bytes:
        if url.startswith("data:"):
            try:
                return decode_data_url(url)
            except ValueError as e:
                raise ProviderError(self.name, f"bad data URL: {e}")

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderError(self.name, f"result download failed: {e}")

        if not response.ok:
            raise ProviderError(self.name, f"result download HTTP {response.status_code}")

        return response.content


class RemoveBgProvider(BackgroundRemovalProvider):
    """remove.bg API, tuned for product/clothing photos."""

    name = "remove.bg"

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = "https://api.remove.bg/v1.0/removebg",
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def build_form(self, image: bytes) -> dict:
        return {
            "image_file_b64": base64.b64encode(image).decode("ascii"),
            "size": "auto",
            "type": "product",
            "format": "png",
            "crop": "false",  # Keep original dimensions
        }

    def build_multipart(self, image: bytes) -> dict:
        """Form fields as multipart/form-data parts (no filenames)."""
        return {field: (None, value) for field, value in self.build_form(image).items()}

    def remove(self, image: bytes) -> bytes:
        if not self.api_key:
            raise ProviderError(self.name, "API key not configured")

        try:
            response = self.session.post(
                self.api_url,
                files=self.build_multipart(image),
                headers={"X-Api-Key": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ProviderError(self.name, f"request failed: {e}")

        if not response.ok:
            raise ProviderError(self.name, f"HTTP {response.status_code}: {response.text[:200]}")

        return response.content


class RembgProvider(BackgroundRemovalProvider):
    """Local U2-Net removal through the rembg library."""

    name = "rembg"

    def remove(self, image: bytes) -> bytes:
        # Imported lazily: rembg pulls in onnxruntime and downloads model weights
        from rembg import remove as rembg_remove

        return rembg_remove(image)


def create_default_providers() -> List[BackgroundRemovalProvider]:
    """
    Build the provider chain from settings, highest priority first.

    remove.bg is only chained when a key is configured; rembg only when
    LOCAL_REMOVAL_ENABLED is set.
    """
    providers: List[BackgroundRemovalProvider] = [
        FalBiRefNetProvider(
            api_url=settings.FAL_API_URL,
            api_key=settings.FAL_API_KEY,
            model=settings.BIREFNET_MODEL,
            operating_resolution=settings.BIREFNET_RESOLUTION,
            timeout=settings.REMOVAL_TIMEOUT_SECONDS,
        )
    ]

    if settings.REMOVEBG_API_KEY:
        providers.append(
            RemoveBgProvider(
                api_key=settings.REMOVEBG_API_KEY,
                api_url=settings.REMOVEBG_API_URL,
                timeout=settings.REMOVAL_TIMEOUT_SECONDS,
            )
        )

    if settings.LOCAL_REMOVAL_ENABLED:
        providers.append(RembgProvider())

    logger.debug(f"Background removal chain: {[p.name for p in providers]}")
    return providers
