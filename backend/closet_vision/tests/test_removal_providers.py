"""
Unit tests for background removal providers.

HTTP sessions are mocked; no network access.
"""
import asyncio
import base64
from unittest.mock import Mock

import pytest
import requests

from closet_vision.core.exceptions import ProviderError
from closet_vision.services.removal_providers import FalBiRefNetProvider, RemoveBgProvider


def _response(status=200, payload=None, content=b"", text=""):
    response = Mock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.content = content
    response.text = text
    response.json = Mock(return_value=payload)
    return response


@pytest.mark.unit
class TestFalBiRefNet:
    """Test the BiRefNet provider."""

    @pytest.mark.parametrize("payload", [
        {"data": {"image": {"url": "https://cdn.test/out.png"}}},
        {"image": {"url": "https://cdn.test/out.png"}},
        {"data": {"output": {"url": "https://cdn.test/out.png"}}},
        "https://cdn.test/out.png",
        {"image": "https://cdn.test/out.png"},
    ])
    def test_known_response_shapes(self, payload):
        """Test that every known response shape yields the result URL."""
        assert FalBiRefNetProvider.extract_result_url(payload) == "https://cdn.test/out.png"

    def test_unknown_response_shape(self):
        """Test that unknown shapes yield no URL."""
        assert FalBiRefNetProvider.extract_result_url({"result": []}) is None

    def test_request_options(self, sample_image):
        """Test that the request carries model options and a data URL."""
        provider = FalBiRefNetProvider("https://fal.test", model="General Use (Heavy)")
        body = provider.build_request(sample_image)

        assert body["image_url"].startswith("data:image/png;base64,")
        assert body["model"] == "General Use (Heavy)"
        assert body["refine_foreground"] is True
        assert body["output_format"] == "png"

    def test_remove_downloads_result(self, sample_image):
        """Test that the processed image is downloaded from the result URL."""
        session = Mock()
        session.post = Mock(return_value=_response(payload={"image": {"url": "https://cdn.test/o.png"}}))
        session.get = Mock(return_value=_response(content=b"png-result"))
        provider = FalBiRefNetProvider("https://fal.test", api_key="k", session=session)

        assert provider.remove(sample_image) == b"png-result"
        assert session.post.call_args.kwargs["headers"]["Authorization"] == "Key k"
        session.get.assert_called_once()

    def test_remove_decodes_data_url_result(self, sample_image):
        """Test that data URL results are decoded locally."""
        data_url = "data:image/png;base64," + base64.b64encode(b"inline").decode()
        session = Mock()
        session.post = Mock(return_value=_response(payload={"image": {"url": data_url}}))
        provider = FalBiRefNetProvider("https://fal.test", session=session)

        assert provider.remove(sample_image) == b"inline"
        session.get.assert_not_called()

    def test_attempt_reports_http_failure(self, sample_image):
        """Test that attempt() turns HTTP errors into a failed result."""
        session = Mock()
        session.post = Mock(return_value=_response(status=503, text="busy"))
        provider = FalBiRefNetProvider("https://fal.test", session=session)

        result = asyncio.run(provider.attempt(sample_image))

        assert result.success is False
        assert "503" in result.error

    def test_attempt_reports_transport_failure(self, sample_image):
        """Test that attempt() never raises on transport errors."""
        session = Mock()
        session.post = Mock(side_effect=requests.ConnectionError("refused"))
        provider = FalBiRefNetProvider("https://fal.test", session=session)

        assert asyncio.run(provider.attempt(sample_image)).success is False


@pytest.mark.unit
class TestRemoveBg:
    """Test the remove.bg provider."""

    def test_form_options(self):
        """Test the product/clothing form options."""
        form = RemoveBgProvider("key").build_form(b"img")
        assert form["size"] == "auto"
        assert form["type"] == "product"
        assert form["format"] == "png"
        assert form["crop"] == "false"
        assert base64.b64decode(form["image_file_b64"]) == b"img"

    def test_missing_key(self):
        """Test that the provider refuses to run without a key."""
        with pytest.raises(ProviderError, match="remove.bg"):
            RemoveBgProvider(None).remove(b"img")

    def test_remove_returns_body(self):
        """Test that the response body is the result image."""
        session = Mock()
        session.post = Mock(return_value=_response(content=b"png-result"))
        provider = RemoveBgProvider("key", session=session)

        assert provider.remove(b"img") == b"png-result"
        assert session.post.call_args.kwargs["headers"] == {"X-Api-Key": "key"}

    def test_request_is_multipart(self):
        """Test that the form is sent as multipart/form-data parts."""
        session = Mock()
        session.post = Mock(return_value=_response(content=b"png-result"))
        RemoveBgProvider("key", session=session).remove(b"img")

        kwargs = session.post.call_args.kwargs
        assert "data" not in kwargs
        assert kwargs["files"]["type"] == (None, "product")
        assert base64.b64decode(kwargs["files"]["image_file_b64"][1]) == b"img"

        prepared = requests.Request("POST", "https://api.test/removebg", files=kwargs["files"]).prepare()
        assert prepared.headers["Content-Type"].startswith("multipart/form-data")
        assert b'name="size"' in prepared.body

    def test_empty_body_is_failure(self):
        """Test that attempt() treats an empty body as failure."""
        session = Mock()
        session.post = Mock(return_value=_response(content=b""))
        result = asyncio.run(RemoveBgProvider("key", session=session).attempt(b"img"))
        assert result.success is False
