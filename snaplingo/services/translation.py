"""
Translation resolver - turns recognized text into the target language.

API endpoint: https://translation.googleapis.com/language/translate/v2?key=...

Two short-circuits avoid needless round-trips:
    A) target is Japanese and the text already is Japanese (kana, no Latin):
       returned as-is without calling the API.
    B) the API reports the source language equals the target: the original
       text is returned instead of the (possibly paraphrased) translation.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from snaplingo.exceptions import (
    CredentialMissing,
    EmptyResult,
    InvalidRequest,
    RemoteAPIError,
    TranslationCancelled,
    TransportError,
)
from snaplingo.models.recognition import PipelineConfig, TranslationOutput
from snaplingo.services.script_detect import contains_ascii_letter, contains_kana

logger = logging.getLogger(__name__)


DEFAULT_API_URL = "https://translation.googleapis.com/language/translate/v2"
DEFAULT_TIMEOUT = 30.0
DEFAULT_TARGET_LANGUAGE = "ja"

# Applied in this order; the API escapes these even with format=text.
HTML_ENTITIES = (
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
)


def decode_common_html_entities(text: str) -> str:
    for entity, char in HTML_ENTITIES:
        text = text.replace(entity, char)
    return text


def should_keep_original_as_japanese(text: str) -> bool:
    """Kana and no Latin letters. Kana-less CJK text is left for translation."""
    if contains_ascii_letter(text):
        return False
    return contains_kana(text)


def same_language(detected: str, target: str) -> bool:
    """Prefix match on language subtags: "ja" ~ "ja-jp", "zh-tw" !~ "zh-cn"."""
    if not detected or not target:
        return False
    return (
        detected == target
        or detected.startswith(target + "-")
        or target.startswith(detected + "-")
    )


class CancellationToken:
    """
    Cooperative cancellation for one in-flight translation.

    The resolver stops awaiting the network response once cancelled; the
    request itself may still complete but its result is discarded.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise TranslationCancelled(f"Translation {self.reason}")


class TranslationResolver:
    """
    Translate text through the Cloud Translation API.

    Usage:
        resolver = TranslationResolver(settings.snapshot())
        output = await resolver.resolve("Hello", target_language="ja")
        print(output.translated_text, output.detected_source_language)
    """

    def __init__(
        self,
        config: PipelineConfig,
        api_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.api_url = api_url or DEFAULT_API_URL
        self.timeout = timeout
        self._transport = transport

    async def resolve(
        self,
        text: str,
        target_language: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> TranslationOutput:
        """
        Args:
            text: Recognized source text
            target_language: Target code; the configured default when None
            cancel_token: Checked before any result is returned

        Raises:
            CredentialMissing, EmptyResult, TransportError, RemoteAPIError,
            InvalidRequest, TranslationCancelled
        """
        api_key = self.config.api_key.strip()
        if not api_key:
            raise CredentialMissing("Google Translate API key not set")

        trimmed = (text or "").strip()
        if not trimmed:
            raise EmptyResult("No text detected in selected area", code=422)

        target = (target_language or self.config.target_language or DEFAULT_TARGET_LANGUAGE).strip().lower()

        if target.startswith("ja") and should_keep_original_as_japanese(trimmed):
            logger.info("Text is already Japanese, skipping translation")
            self._check(cancel_token)
            return TranslationOutput(translated_text=trimmed, detected_source_language="ja")

        self._check(cancel_token)
        payload = {"q": trimmed, "target": target, "format": "text"}
        data = await self._post_cancellable(api_key, payload, cancel_token)

        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict):
            message = error.get("message") or "Unknown Error"
            raise RemoteAPIError(f"Google Translate API Error: {message}", code=error.get("code") or 500)

        translations = []
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            translations = data["data"].get("translations") or []
        if not isinstance(translations, list):
            translations = []
        entry = translations[0] if translations and isinstance(translations[0], dict) else {}

        translated = entry.get("translatedText")
        translated = translated.strip() if isinstance(translated, str) else ""
        normalized = decode_common_html_entities(translated)
        detected = entry.get("detectedSourceLanguage")
        if not isinstance(detected, str) or not detected.strip():
            detected = None
        else:
            detected = detected.strip().lower()

        if not normalized:
            raise EmptyResult("Empty response from Google Translate API")

        self._check(cancel_token)

        if detected and same_language(detected, target):
            logger.info(f"Source language {detected} matches target {target}, keeping original text")
            return TranslationOutput(translated_text=trimmed, detected_source_language=detected)

        return TranslationOutput(translated_text=normalized, detected_source_language=detected)

    @staticmethod
    def _check(cancel_token: Optional[CancellationToken]) -> None:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

    async def _post_cancellable(
        self,
        api_key: str,
        payload: Dict[str, Any],
        cancel_token: Optional[CancellationToken],
    ) -> Any:
        if cancel_token is None:
            return await self._post(api_key, payload)

        request = asyncio.ensure_future(self._post(api_key, payload))
        waiter = asyncio.ensure_future(cancel_token.wait())
        try:
            done, _ = await asyncio.wait({request, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not request.done():
                request.cancel()

        if request not in done:
            logger.info("Translation request abandoned after cancellation")
            raise TranslationCancelled(f"Translation {cancel_token.reason}")
        return request.result()

    async def _post(self, api_key: str, payload: Dict[str, Any]) -> Any:
        logger.info(f"Calling translation API: target={payload['target']}, chars={len(payload['q'])}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    params={"key": api_key},
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.InvalidURL as e:
            raise InvalidRequest(f"Invalid Google Translate API URL: {e}") from e
        except httpx.TimeoutException as e:
            logger.error(f"Translation request timed out: {e}")
            raise TransportError(f"Request timed out after {self.timeout}s") from e
        except httpx.RequestError as e:
            logger.error(f"Translation request failed: {e}")
            raise TransportError(f"Request error: {e}") from e

        if response.status_code != 200:
            message = extract_error_message(response)
            logger.error(f"Translation API failed: HTTP {response.status_code}")
            raise RemoteAPIError(f"Google Translate API Error: {message}", code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise RemoteAPIError("Google Translate API returned a non-JSON body", code=502) from e


def extract_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        message = data["error"].get("message")
        if message:
            return str(message)
    return response.text or "Unknown Error"
