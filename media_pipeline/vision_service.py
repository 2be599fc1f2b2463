"""
Gemini vision service for content analysis
Sends a listing photo plus an instruction prompt and returns the model's text
"""
import base64
import logging
from typing import Optional, Dict, Any
from dataclasses import dataclass

import httpx

from .config import get_config

logger = logging.getLogger(__name__)


@dataclass
class VisionResult:
    """Result from a vision description call"""
    success: bool
    text: Optional[str] = None
    prompt: Optional[str] = None
    usage_metadata: Optional[Dict[str, Any]] = None
    model_version: Optional[str] = None
    error: Optional[str] = None


class GeminiVisionService:
    """Describes images with Google's Gemini models over the REST API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        """
        Args:
            api_key: Gemini API key. Falls back to GEMINI_API_KEY via config
            model: Gemini model name
            timeout: Request timeout in seconds
            client: Pre-built httpx client (tests pass a MockTransport client)
        """
        cfg = get_config().providers
        self.api_key = api_key or cfg.gemini_api_key
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY environment variable is not set")

        self.base_url = "https://generativelanguage.googleapis.com/v1beta/models"
        self.model = model or cfg.gemini_model
        self.timeout = timeout or cfg.vision_timeout_seconds
        self._client = client

    def describe(self, image_bytes: bytes, prompt: str, mime_type: str = "image/jpeg") -> VisionResult:
        """
        Ask the model to describe an image

        Returns:
            VisionResult with the concatenated text parts or an error
        """
        try:
            if not image_bytes:
                return VisionResult(success=False, error="Image bytes cannot be empty")

            payload = {
                "contents": [
                    {
                        "parts": [
                            {"text": prompt},
                            {
                                "inline_data": {
                                    "mime_type": mime_type,
                                    "data": base64.b64encode(image_bytes).decode('utf-8'),
                                }
                            },
                        ]
                    }
                ],
                "generationConfig": {"responseMimeType": "application/json"},
            }

            url = f"{self.base_url}/{self.model}:generateContent"
            headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}

            if self._client is not None:
                response = self._client.post(url, json=payload, headers=headers, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(url, json=payload, headers=headers)

            if response.status_code != 200:
                error_msg = f"Gemini API error {response.status_code}: {response.text[:300]}"
                logger.warning(error_msg)
                return VisionResult(success=False, prompt=prompt, error=error_msg)

            response_data = response.json()
            candidates = response_data.get("candidates", [])
            if not candidates:
                return VisionResult(success=False, prompt=prompt, error="No candidates in Gemini response")

            parts = candidates[0].get("content", {}).get("parts", [])
            text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
            if not text.strip():
                return VisionResult(success=False, prompt=prompt, error="No text in Gemini response")

            return VisionResult(
                success=True,
                text=text,
                prompt=prompt,
                usage_metadata=response_data.get("usageMetadata"),
                model_version=response_data.get("modelVersion"),
            )

        except (httpx.HTTPError, ValueError) as e:
            error_msg = f"Gemini vision call failed: {str(e)}"
            logger.warning(error_msg)
            return VisionResult(success=False, prompt=prompt, error=error_msg)
