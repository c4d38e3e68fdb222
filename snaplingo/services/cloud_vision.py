"""
Cloud Vision OCR client - first stage of the recognition cascade.

API endpoint: https://vision.googleapis.com/v1/images:annotate?key=...

Sends one base64 encoded image with TEXT_DETECTION (or DOCUMENT_TEXT_DETECTION)
and returns the full text annotation plus the detected locale.
"""

import logging
from typing import Any, Dict, Optional, Sequence

import httpx
import numpy as np

from snaplingo.exceptions import (
    CredentialMissing,
    EmptyResult,
    InvalidRequest,
    RemoteAPIError,
    TransportError,
)
from snaplingo.models.recognition import CloudOCRText
from snaplingo.utils.image_utils import encode_image_base64

logger = logging.getLogger(__name__)


DEFAULT_API_URL = "https://vision.googleapis.com/v1/images:annotate"
DEFAULT_TIMEOUT = 30.0
CLOUD_LANGUAGE_HINTS = ("ja", "zh-TW", "zh-CN", "en", "ko", "fr", "de", "es", "it", "pt", "ru")


def extract_error_message(response: httpx.Response) -> str:
    """Pull `error.message` from a top-level or per-response envelope, else the raw body."""
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        top = data.get("error")
        if isinstance(top, dict) and top.get("message"):
            return str(top["message"])
        responses = data.get("responses")
        if isinstance(responses, list) and responses and isinstance(responses[0], dict):
            nested = responses[0].get("error")
            if isinstance(nested, dict) and nested.get("message"):
                return str(nested["message"])

    return response.text or "Unknown Error"


def parse_annotation(data: Dict[str, Any]) -> CloudOCRText:
    """Decode a 200 response body into text + locale, raising on in-payload errors."""
    top = data.get("error") if isinstance(data, dict) else None
    if isinstance(top, dict):
        message = top.get("message") or "Unknown Error"
        raise RemoteAPIError(f"Cloud Vision API Error: {message}", code=top.get("code") or 500)

    responses = data.get("responses") if isinstance(data, dict) else None
    if not isinstance(responses, list) or not responses:
        raise EmptyResult("Cloud Vision returned empty response")

    first = responses[0] if isinstance(responses[0], dict) else {}
    error = first.get("error")
    if isinstance(error, dict) and error.get("message"):
        raise RemoteAPIError(f"Cloud Vision Error: {error['message']}", code=error.get("code") or 500)

    annotations = first.get("textAnnotations") or []
    head = annotations[0] if annotations and isinstance(annotations[0], dict) else {}
    full = first.get("fullTextAnnotation") or {}

    text = full.get("text") if isinstance(full, dict) else None
    if text is None:
        text = head.get("description")
    locale = head.get("locale")

    normalized = (text or "").strip()
    if not normalized:
        raise EmptyResult("Cloud Vision returned empty OCR text")
    return CloudOCRText(text=normalized, locale=locale or None)


class CloudVisionClient:
    """
    Cloud Vision text detection.

    Usage:
        client = CloudVisionClient(api_key="...")
        result = client.annotate(bgr)
        print(result.text, result.locale)
    """

    def __init__(
        self,
        api_key: str,
        api_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        feature_type: str = "TEXT_DETECTION",
        language_hints: Sequence[str] = CLOUD_LANGUAGE_HINTS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            api_key: Google Cloud API key sent as the `key` query parameter
            api_url: Endpoint URL (defaults to the public annotate endpoint)
            timeout: Request timeout in seconds
            feature_type: TEXT_DETECTION or DOCUMENT_TEXT_DETECTION
            language_hints: imageContext.languageHints sent with every request
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = (api_key or "").strip()
        self.api_url = api_url or DEFAULT_API_URL
        self.timeout = timeout
        self.feature_type = feature_type
        self.language_hints = list(language_hints)
        self._transport = transport

    def build_request_body(self, image_base64: str) -> Dict[str, Any]:
        return {
            "requests": [
                {
                    "image": {"content": image_base64},
                    "features": [{"type": self.feature_type}],
                    "imageContext": {"languageHints": self.language_hints},
                }
            ]
        }

    def annotate(self, bgr: np.ndarray) -> CloudOCRText:
        """
        Run text detection on one image.

        Raises:
            CredentialMissing: no API key
            InvalidRequest: the image could not be encoded or the URL is malformed
            TransportError: network failure or timeout
            RemoteAPIError: non-200 status or error inside the payload
            EmptyResult: no responses or blank text
        """
        if not self.api_key:
            raise CredentialMissing("Google Cloud API key not set")

        body = self.build_request_body(encode_image_base64(bgr))

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    self.api_url,
                    params={"key": self.api_key},
                    json=body,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.InvalidURL as e:
            raise InvalidRequest(f"Invalid Cloud Vision API URL: {e}") from e
        except httpx.TimeoutException as e:
            raise TransportError(f"Cloud Vision request timed out after {self.timeout}s") from e
        except httpx.RequestError as e:
            raise TransportError(f"Cloud Vision request failed: {e}") from e

        if response.status_code != 200:
            message = extract_error_message(response)
            logger.error(f"Cloud Vision API failed: HTTP {response.status_code}")
            raise RemoteAPIError(f"Cloud Vision API Error: {message}", code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteAPIError("Cloud Vision returned a non-JSON body", code=502) from e

        return parse_annotation(data)
