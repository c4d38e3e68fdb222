"""
Capture service: recognize one captured bitmap, then translate it.
Provides the singleton used by the API and CLI, with a lazily built OCR engine.
"""

import asyncio
import logging
import threading
import time
from typing import Optional

import numpy as np

from snaplingo.config import Settings, get_settings
from snaplingo.exceptions import SnapLingoError, TranslationCancelled
from snaplingo.models.recognition import CaptureOutcome, RecognitionResult, TranslationOutput
from snaplingo.services.cloud_vision import CloudVisionClient
from snaplingo.services.image_variants import ImageVariantGenerator
from snaplingo.services.local_ocr import LocalOCRBackend, build_local_ocr
from snaplingo.services.ocr_cascade import OCRCascade
from snaplingo.services.translation import CancellationToken, TranslationResolver

logger = logging.getLogger(__name__)


class CaptureService:
    """
    Runs capture -> OCR cascade -> translation for a single result consumer.

    Only one capture is live at a time: starting a new one cancels the
    translation still pending for the previous capture.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        local_ocr: Optional[LocalOCRBackend] = None,
        cloud_client: Optional[CloudVisionClient] = None,
        resolver: Optional[TranslationResolver] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._local_ocr = local_ocr
        self._cloud_client = cloud_client
        self._resolver = resolver
        self._current_token: Optional[CancellationToken] = None
        self._ocr_lock = threading.Lock()

    def _get_local_ocr(self) -> LocalOCRBackend:
        """Get or create the local OCR backend."""
        if self._local_ocr is None:
            self._local_ocr = build_local_ocr(
                self._settings.LOCAL_OCR_BACKEND,
                paddle_device=self._settings.PADDLE_DEVICE,
            )
        return self._local_ocr

    def _get_cloud_client(self) -> Optional[CloudVisionClient]:
        if self._cloud_client is None and self._settings.has_api_key:
            self._cloud_client = CloudVisionClient(
                api_key=self._settings.GOOGLE_API_KEY,
                api_url=self._settings.VISION_API_URL,
                timeout=self._settings.HTTP_TIMEOUT,
                feature_type=self._settings.VISION_FEATURE_TYPE,
            )
        return self._cloud_client

    def _get_resolver(self) -> TranslationResolver:
        if self._resolver is None:
            self._resolver = TranslationResolver(
                self._settings.snapshot(),
                api_url=self._settings.TRANSLATE_API_URL,
                timeout=self._settings.HTTP_TIMEOUT,
            )
        return self._resolver

    def build_cascade(self) -> OCRCascade:
        return OCRCascade(
            self._settings.snapshot(),
            self._get_local_ocr(),
            cloud_client=self._get_cloud_client(),
            variants=ImageVariantGenerator(scale=self._settings.VARIANT_SCALE),
        )

    def warm_up(self) -> None:
        """Load the local OCR model ahead of the first capture."""
        self._get_local_ocr()

    def begin_capture(self) -> CancellationToken:
        """Supersede any pending translation and issue a token for the new capture."""
        if self._current_token is not None:
            self._current_token.cancel("superseded by a new capture")
        self._current_token = CancellationToken()
        return self._current_token

    def cancel_pending(self) -> None:
        if self._current_token is not None:
            self._current_token.cancel()

    def recognize_sync(self, image: np.ndarray) -> RecognitionResult:
        """Run the cascade; the shared OCR engine serves one capture at a time."""
        with self._ocr_lock:
            return self.build_cascade().recognize(image)

    async def recognize(self, image: np.ndarray) -> RecognitionResult:
        return await asyncio.to_thread(self.recognize_sync, image)

    async def translate_text(
        self,
        text: str,
        target_language: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> TranslationOutput:
        return await self._get_resolver().resolve(text, target_language, cancel_token)

    async def process(self, image: np.ndarray, target_language: Optional[str] = None) -> CaptureOutcome:
        """
        Recognize and translate one capture.

        Recognition failure degrades to empty text with `recognition_error`
        set. Translation failure keeps the recognized text and reports the
        error in `translation_error`. A capture superseded while translating
        raises TranslationCancelled.
        """
        token = self.begin_capture()
        outcome = CaptureOutcome()

        start = time.time()
        try:
            recognition = await self.recognize(image)
            outcome.recognized_text = recognition.stripped_text
            outcome.detected_language = recognition.detected_language
        except SnapLingoError as e:
            logger.error(f"Recognition failed: {e}")
            outcome.recognition_error = str(e)
        outcome.timings_ms["recognize"] = int((time.time() - start) * 1000)

        token.raise_if_cancelled()
        if not outcome.recognized_text:
            return outcome

        start = time.time()
        try:
            translation = await self.translate_text(outcome.recognized_text, target_language, token)
            outcome.translated_text = translation.translated_text
            outcome.detected_source_language = translation.detected_source_language
        except TranslationCancelled:
            raise
        except SnapLingoError as e:
            logger.error(f"Translation failed: {e}")
            outcome.translation_error = f"Translation failed: {e}"
        outcome.timings_ms["translate"] = int((time.time() - start) * 1000)

        return outcome


_capture_service: Optional[CaptureService] = None


def get_capture_service() -> CaptureService:
    """Get singleton CaptureService instance."""
    global _capture_service
    if _capture_service is None:
        _capture_service = CaptureService()
    return _capture_service
