"""
Pytest configuration and fixtures for testing.
"""
import asyncio
import json
from typing import List, Optional
from unittest.mock import Mock

import cv2
import numpy as np
import pytest

from closet_vision.models.removal import ProviderResult
from closet_vision.services.removal_providers import BackgroundRemovalProvider
from closet_vision.services.vision_client import VisionAnalysisClient


def encode(image: np.ndarray, ext: str = ".png") -> bytes:
    ok, buffer = cv2.imencode(ext, image)
    assert ok
    return buffer.tobytes()


class StubVisionClient(VisionAnalysisClient):
    """Vision client returning canned replies (or raising) and recording calls."""

    def __init__(self, replies=None, error: Optional[Exception] = None):
        if isinstance(replies, (str, dict)) or replies is None:
            replies = [replies]
        self.replies = [json.dumps(r) if isinstance(r, dict) else r for r in replies]
        self.error = error
        self.calls: List[dict] = []

    async def detect(self, image_bytes, task_prompt, media_type="image/jpeg"):
        self.calls.append({"image": image_bytes, "prompt": task_prompt, "media_type": media_type})
        if self.error is not None:
            raise self.error
        return self.replies[min(len(self.calls), len(self.replies)) - 1]


class StubProvider(BackgroundRemovalProvider):
    """Removal provider with a fixed outcome and a call counter."""

    def __init__(self, name: str, result: Optional[bytes] = None, error: Optional[Exception] = None):
        self.name = name
        self.result = result
        self.error = error
        self.calls = 0

    def remove(self, image: bytes) -> bytes:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


class RaisingProvider(BackgroundRemovalProvider):
    """Provider whose attempt() itself blows up."""

    name = "raising"

    def remove(self, image: bytes) -> bytes:
        raise AssertionError("remove() should not be reached")

    async def attempt(self, image: bytes) -> ProviderResult:
        raise RuntimeError("provider crashed")


@pytest.fixture
def make_image():
    """Factory for encoded solid-color test images."""

    def _make(width: int = 200, height: int = 100, color=(40, 80, 160), ext: str = ".png") -> bytes:
        image = np.zeros((height, width, 3), dtype=np.uint8)
        image[:, :] = color
        return encode(image, ext)

    return _make


@pytest.fixture
def sample_image(make_image):
    """200x100 PNG test image."""
    return make_image(200, 100)


@pytest.fixture
def gradient_image():
    """1000x1000 PNG whose pixel values encode their coordinates."""
    ys, xs = np.mgrid[0:1000, 0:1000]
    image = np.stack([xs % 256, ys % 256, (xs // 256) * 16 + ys // 256], axis=-1).astype(np.uint8)
    return encode(image)


@pytest.fixture
def stub_vision_client():
    """StubVisionClient class for building canned vision replies."""
    return StubVisionClient


@pytest.fixture
def stub_provider():
    """StubProvider class for building removal chains."""
    return StubProvider


@pytest.fixture
def raising_provider():
    return RaisingProvider()


@pytest.fixture
def mock_redis():
    """Create a mock Redis client for testing."""
    redis_mock = Mock()
    redis_mock.get = Mock(return_value=None)
    redis_mock.setex = Mock(return_value=True)
    redis_mock.delete = Mock(return_value=1)
    redis_mock.scan_iter = Mock(return_value=iter([]))
    redis_mock.ping = Mock(return_value=True)
    return redis_mock


@pytest.fixture
def two_item_reply():
    """Detection reply with two garments side by side."""
    return {
        "hasMultipleItems": True,
        "items": [
            {
                "name": "Black T-shirt",
                "category": "Tops",
                "boundingBox": {"x": 0.05, "y": 0.1, "width": 0.4, "height": 0.5},
                "confidence": 0.95,
            },
            {
                "name": "Blue jeans",
                "category": "pants",
                "boundingBox": {"x": 0.55, "y": 0.2, "width": 0.4, "height": 0.7},
                "confidence": 0.9,
            },
        ],
    }


async def _run_with_ticker(coro, interval: float = 0.005):
    """Await coro while a ticker measures the longest gap between its wake-ups."""
    loop = asyncio.get_running_loop()
    gaps = []
    done = asyncio.Event()

    async def tick():
        last = loop.time()
        while not done.is_set():
            await asyncio.sleep(interval)
            now = loop.time()
            gaps.append(now - last - interval)
            last = now

    ticker = asyncio.create_task(tick())
    await asyncio.sleep(0)
    try:
        result = await coro
    finally:
        done.set()
        await ticker
    return result, max(gaps, default=0.0)


@pytest.fixture
def loop_stall():
    """Run a coroutine and report (result, longest event loop stall in seconds)."""

    def _measure(coro):
        return asyncio.run(_run_with_ticker(coro))

    return _measure


@pytest.fixture(scope="session")
def large_photo():
    """6000x4000 PNG, big enough that decoding it on the loop would stall it."""
    image = np.empty((4000, 6000, 3), dtype=np.uint8)
    image[..., 0] = (np.arange(6000) % 256).astype(np.uint8)[None, :]
    image[..., 1] = (np.arange(4000) % 256).astype(np.uint8)[:, None]
    image[..., 2] = 128
    return encode(image)
