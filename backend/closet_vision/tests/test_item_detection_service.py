"""
Unit tests for multi-item detection.

Tests reply parsing, the single vs multiple decision and graceful
degradation to the whole image on every kind of failure.
"""
import asyncio
import json

import pytest

from closet_vision.core.exceptions import DetectionError
from closet_vision.cv.image_utils import content_hash, detect_media_type
from closet_vision.models.detection import PhotoHint
from closet_vision.services.item_detection_service import ItemDetectionService


def _detect(client, image, hint=None, **kwargs):
    service = ItemDetectionService(client, **kwargs)
    return asyncio.run(service.detect(image, hint))


def _single_item_reply():
    return {
        "hasMultipleItems": False,
        "items": [{
            "name": "Red dress",
            "category": "dresses",
            "boundingBox": {"x": 0.1, "y": 0.05, "width": 0.8, "height": 0.9},
            "confidence": 0.97,
        }],
    }


@pytest.mark.unit
class TestDetectionSuccess:
    """Test successful detection."""

    def test_two_items_detected(self, stub_vision_client, sample_image, two_item_reply):
        """Test that two reported items give a multiple-item result."""
        result = _detect(stub_vision_client(two_item_reply), sample_image)

        assert result.has_multiple_items is True
        assert result.item_count == 2
        assert result.error is None
        assert [item.category for item in result.items] == ["tops", "pants"]
        assert result.items[1].bounding_box.height == 0.7

    def test_single_item_is_not_multiple(self, stub_vision_client, sample_image):
        """Test that one item is never flagged as multiple."""
        result = _detect(stub_vision_client(_single_item_reply()), sample_image)

        assert result.has_multiple_items is False
        assert result.item_count == 1
        assert result.items[0].name == "Red dress"

    def test_model_flag_is_not_trusted(self, stub_vision_client, sample_image):
        """Test that hasMultipleItems=true with one item is corrected."""
        reply = _single_item_reply()
        reply["hasMultipleItems"] = True
        result = _detect(stub_vision_client(reply), sample_image)
        assert result.has_multiple_items is False

    def test_reply_with_prose_around_json(self, stub_vision_client, sample_image, two_item_reply):
        """Test that JSON embedded in prose is found."""
        reply = f"Sure! Here you go:\n{json.dumps(two_item_reply)}\nLet me know."
        assert _detect(stub_vision_client(reply), sample_image).item_count == 2

    def test_source_ref_is_content_hash(self, stub_vision_client, sample_image, two_item_reply):
        """Test that the source image identity is its content hash."""
        result = _detect(stub_vision_client(two_item_reply), sample_image)
        assert result.source_image_ref == content_hash(sample_image)

    def test_image_sent_as_bounded_jpeg(self, stub_vision_client, make_image, two_item_reply):
        """Test that the image is re-encoded before it is sent."""
        client = stub_vision_client(two_item_reply)
        _detect(client, make_image(3000, 1500), max_dimension=1024)

        call = client.calls[0]
        assert call["media_type"] == "image/jpeg"
        assert detect_media_type(call["image"]) == "image/jpeg"

    def test_hint_appended_to_prompt(self, stub_vision_client, sample_image, two_item_reply):
        """Test that a photo hint narrows the prompt."""
        client = stub_vision_client(two_item_reply)
        _detect(client, sample_image, hint=PhotoHint.FLAT_LAY)
        assert "flat-lay" in client.calls[0]["prompt"]


@pytest.mark.unit
class TestDetectionDegradation:
    """Test that failures degrade to the whole image."""

    def _assert_degraded(self, result):
        assert result.degraded
        assert result.has_multiple_items is False
        assert result.item_count == 1
        assert result.items == ()
        assert result.error

    def test_service_error(self, stub_vision_client, sample_image):
        """Test that a vision service error degrades."""
        client = stub_vision_client(error=DetectionError("Vision API error: 500 - boom"))
        result = _detect(client, sample_image)
        self._assert_degraded(result)
        assert "500" in result.error

    def test_reply_without_json(self, stub_vision_client, sample_image):
        """Test that a prose-only reply degrades."""
        self._assert_degraded(_detect(stub_vision_client("I see a nice shirt."), sample_image))

    def test_reply_failing_schema(self, stub_vision_client, sample_image):
        """Test that items without boxes degrade."""
        reply = {"items": [{"name": "Shirt", "category": "tops"}]}
        self._assert_degraded(_detect(stub_vision_client(reply), sample_image))

    def test_undecodable_image(self, stub_vision_client):
        """Test that garbage bytes degrade without calling the service."""
        client = stub_vision_client({"items": []})
        self._assert_degraded(_detect(client, b"garbage"))
        assert client.calls == []

    def test_unexpected_exception(self, stub_vision_client, sample_image):
        """Test that an unexpected client exception still degrades."""
        client = stub_vision_client(error=RuntimeError("socket closed"))
        self._assert_degraded(_detect(client, sample_image))

    def test_timeout(self, sample_image):
        """Test that exceeding the detection deadline degrades."""
        from closet_vision.services.vision_client import VisionAnalysisClient

        class SlowClient(VisionAnalysisClient):
            async def detect(self, image_bytes, task_prompt, media_type="image/jpeg"):
                await asyncio.sleep(5)
                return "{}"

        result = _detect(SlowClient(), sample_image, timeout=0.01)
        self._assert_degraded(result)
        assert "timed out" in result.error

    def test_empty_item_list_is_not_degraded(self, stub_vision_client, sample_image):
        """Test that a valid reply with no items is a normal zero-item result."""
        result = _detect(stub_vision_client({"hasMultipleItems": False, "items": []}), sample_image)
        assert not result.degraded
        assert result.item_count == 0
        assert result.has_multiple_items is False


@pytest.mark.unit
class TestEventLoopResponsiveness:
    """Test that image preparation does not block other coroutines."""

    def test_large_image_does_not_stall_loop(self, stub_vision_client, large_photo, two_item_reply, loop_stall):
        """Test that decoding and resizing a large photo runs off the event loop."""
        service = ItemDetectionService(stub_vision_client(two_item_reply))

        result, stall = loop_stall(service.detect(large_photo))

        assert result.item_count == 2
        assert stall < 0.1
