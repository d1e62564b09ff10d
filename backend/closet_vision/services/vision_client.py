"""
Vision analysis client.

Request/response boundary to the external vision model. Callers send image
bytes plus a task prompt and receive the model's raw text reply; parsing
that reply into structured results is the caller's job.
"""
import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from closet_vision.core.config import settings
from closet_vision.core.exceptions import DetectionError, ParseError

logger = logging.getLogger(__name__)


class VisionAnalysisClient(ABC):
    """Capability interface for any vision backend (real or test double)."""

    @abstractmethod
    async def detect(
        self,
        image_bytes: bytes,
        task_prompt: str,
        media_type: str = "image/jpeg",
    ) -> str:
        """
        Analyze an image with a task prompt.

        Args:
            image_bytes: Encoded image
            task_prompt: Instructions for the model
            media_type: MIME type of image_bytes

        Returns:
            Text reply from the model

        Raises:
            DetectionError: If the call fails or times out
            ParseError: If the reply carries no text
        """


def extract_reply_text(payload: Dict[str, Any]) -> str:
    """
    Return the first text block of a Messages API reply.

    Raises:
        ParseError: If the payload has no text content
    """
    content = payload.get("content") if isinstance(payload, dict) else None
    if not isinstance(content, list):
        raise ParseError("No content in vision response")

    for block in content:
        if isinstance(block, dict) and block.get("type", "text") == "text":
            text = block.get("text")
            if isinstance(text, str) and text.strip():
                return text

    raise ParseError("No text content in vision response")


class AnthropicVisionClient(VisionAnalysisClient):
    """
    Vision client for a Messages-style HTTP API.

    The blocking HTTP call runs in the default executor so detection can be
    awaited (and cancelled) without stalling other work.
    """

    def __init__(
        self,
        api_url: str,
        model: str,
        api_key: Optional[str] = None,
        api_version: str = "2023-06-01",
        max_tokens: int = 2000,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize vision client.

        Args:
            api_url: Messages endpoint (or a proxy in front of it)
            model: Model identifier sent with each request
            api_key: API key; omitted when calling through an authenticating proxy
            api_version: Value of the anthropic-version header
            max_tokens: Reply token budget
            timeout: Request timeout in seconds
            session: Optional requests session (injected in tests)
        """
        self.api_url = api_url
        self.model = model
        self.api_key = api_key
        self.api_version = api_version
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.session = session or requests.Session()

    async def detect(
        self,
        image_bytes: bytes,
        task_prompt: str,
        media_type: str = "image/jpeg",
    ) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._post, image_bytes, task_prompt, media_type
        )

    def build_request(self, image_bytes: bytes, task_prompt: str, media_type: str) -> Dict[str, Any]:
        """Build the JSON request body."""
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": media_type,
                                "data": base64.b64encode(image_bytes).decode("ascii"),
                            },
                        },
                        {"type": "text", "text": task_prompt},
                    ],
                }
            ],
        }

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
            headers["anthropic-version"] = self.api_version
        return headers

    def _post(self, image_bytes: bytes, task_prompt: str, media_type: str) -> str:
        body = self.build_request(image_bytes, task_prompt, media_type)

        try:
            response = self.session.post(
                self.api_url,
                json=body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise DetectionError(f"Vision request timed out after {self.timeout}s")
        except requests.RequestException as e:
            raise DetectionError(f"Vision request failed: {e}")

        if not response.ok:
            raise DetectionError(
                f"Vision API error: {response.status_code} - {response.text[:200]}"
            )

        try:
            payload = response.json()
        except ValueError:
            raise ParseError("Vision API returned non-JSON body")

        return extract_reply_text(payload)


def create_vision_client(model: Optional[str] = None) -> AnthropicVisionClient:
    """
    Factory function to create a vision client from settings.

    Args:
        model: Model override (defaults to VISION_DETECTION_MODEL)

    Returns:
        AnthropicVisionClient instance
    """
    return AnthropicVisionClient(
        api_url=settings.VISION_API_URL,
        model=model or settings.VISION_DETECTION_MODEL,
        api_key=settings.ANTHROPIC_API_KEY,
        api_version=settings.VISION_API_VERSION,
        max_tokens=settings.VISION_MAX_TOKENS,
        timeout=settings.VISION_TIMEOUT_SECONDS,
    )
