"""
Unit tests for the Messages API vision client.

The requests session is mocked; no network access.
"""
import asyncio
import base64
from unittest.mock import Mock

import pytest
import requests

from closet_vision.core.exceptions import DetectionError, ParseError
from closet_vision.services.vision_client import AnthropicVisionClient, extract_reply_text


def _response(status=200, payload=None, text=""):
    response = Mock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.text = text
    if isinstance(payload, Exception):
        response.json = Mock(side_effect=payload)
    else:
        response.json = Mock(return_value=payload)
    return response


@pytest.fixture
def mock_session():
    session = Mock()
    session.post = Mock(return_value=_response(payload={
        "content": [{"type": "text", "text": '{"items": []}'}],
    }))
    return session


@pytest.fixture
def client(mock_session):
    return AnthropicVisionClient(
        api_url="https://vision.test/v1/messages",
        model="test-model",
        api_key="secret",
        max_tokens=500,
        timeout=12,
        session=mock_session,
    )


@pytest.mark.unit
class TestVisionRequest:
    """Test request construction."""

    def test_request_body(self, client):
        """Test that the body carries model, token budget, image and prompt."""
        body = client.build_request(b"jpeg-bytes", "Find garments", "image/jpeg")

        assert body["model"] == "test-model"
        assert body["max_tokens"] == 500
        image_block, text_block = body["messages"][0]["content"]
        assert image_block["source"]["media_type"] == "image/jpeg"
        assert base64.b64decode(image_block["source"]["data"]) == b"jpeg-bytes"
        assert text_block == {"type": "text", "text": "Find garments"}

    def test_detect_returns_reply_text(self, client, mock_session):
        """Test a successful round trip."""
        reply = asyncio.run(client.detect(b"img", "prompt"))

        assert reply == '{"items": []}'
        kwargs = mock_session.post.call_args.kwargs
        assert kwargs["headers"]["x-api-key"] == "secret"
        assert kwargs["headers"]["anthropic-version"] == "2023-06-01"
        assert kwargs["timeout"] == 12

    def test_no_key_sends_no_auth_headers(self, mock_session):
        """Test that proxy mode omits credentials."""
        client = AnthropicVisionClient("https://proxy.test", "m", session=mock_session)
        asyncio.run(client.detect(b"img", "prompt"))

        headers = mock_session.post.call_args.kwargs["headers"]
        assert "x-api-key" not in headers


@pytest.mark.unit
class TestVisionErrors:
    """Test error mapping."""

    def test_http_error(self, client, mock_session):
        """Test that non-2xx responses raise DetectionError with the status."""
        mock_session.post.return_value = _response(status=529, text="overloaded")
        with pytest.raises(DetectionError, match="529"):
            asyncio.run(client.detect(b"img", "prompt"))

    def test_timeout(self, client, mock_session):
        """Test that request timeouts raise DetectionError."""
        mock_session.post.side_effect = requests.Timeout()
        with pytest.raises(DetectionError, match="timed out"):
            asyncio.run(client.detect(b"img", "prompt"))

    def test_connection_error(self, client, mock_session):
        """Test that transport errors raise DetectionError."""
        mock_session.post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(DetectionError):
            asyncio.run(client.detect(b"img", "prompt"))

    def test_non_json_body(self, client, mock_session):
        """Test that a non-JSON body raises ParseError."""
        mock_session.post.return_value = _response(payload=ValueError("no json"))
        with pytest.raises(ParseError):
            asyncio.run(client.detect(b"img", "prompt"))

    @pytest.mark.parametrize("payload", [{}, {"content": []}, {"content": [{"type": "image"}]}])
    def test_reply_without_text(self, payload):
        """Test that replies without a text block raise ParseError."""
        with pytest.raises(ParseError):
            extract_reply_text(payload)
