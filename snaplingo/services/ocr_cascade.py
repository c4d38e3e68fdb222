"""
OCR cascade: cloud recognition first, then a multi-pass local fallback over
several image variants. The first usable result wins.

Stage A (only with an API key): Cloud Vision on the original image, retried once
on a scaled+enhanced copy. Errors are logged and fall through.

Stage B: for each local variant, up to six passes with different language hints:
    auto -> japanese -> traditional chinese -> simplified chinese -> english -> mixed
Each pass has its own acceptance rule; the mixed pass always returns. A variant's
result that is still not usable sends the cascade on to the next variant.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from snaplingo.exceptions import InvalidRequest, RecognitionFailed, SnapLingoError
from snaplingo.models.recognition import (
    ImageVariant,
    PipelineConfig,
    RecognitionAttempt,
    RecognitionResult,
    VariantOrigin,
)
from snaplingo.services.cloud_vision import CloudVisionClient
from snaplingo.services.image_variants import ImageVariantGenerator, as_bgr
from snaplingo.services.local_ocr import LocalOCRBackend
from snaplingo.services.script_detect import (
    CHINESE,
    JAPANESE,
    contains_chinese,
    contains_japanese,
    guess_language,
    matches_script,
)
from snaplingo.services.text_quality import is_usable

logger = logging.getLogger(__name__)


SUPPORTED_LOCALES: Tuple[str, ...] = (
    "en", "ja", "zh-Hant", "zh-Hans", "ko", "fr", "de", "es", "it", "pt", "ru",
)


@dataclass(frozen=True)
class LocalPass:
    name: str
    language_hints: Tuple[str, ...]
    allow_language_correction: bool
    preferred_script: Optional[str]
    accept: Callable[[str], bool]
    label: Callable[[str], Optional[str]]


def _fixed(code: str) -> Callable[[str], Optional[str]]:
    return lambda _text: code


def _non_blank(text: str) -> bool:
    return bool(text.strip())


# Language correction is off for the three script-priority passes only.
PRIORITY_PASSES: Tuple[LocalPass, ...] = (
    LocalPass("auto", (), True, None, is_usable, guess_language),
    LocalPass("japanese", ("ja",), False, JAPANESE, contains_japanese, _fixed("ja")),
    LocalPass("traditional-chinese", ("zh-Hant",), False, CHINESE, contains_chinese, _fixed("zh-TW")),
    LocalPass("simplified-chinese", ("zh-Hans",), False, CHINESE, contains_chinese, _fixed("zh-CN")),
    LocalPass("english", ("en",), True, None, _non_blank, _fixed("en")),
)
MIXED_PASS = LocalPass("mixed", SUPPORTED_LOCALES, True, None, lambda _text: True, guess_language)


def rank_candidates(candidates: Sequence[str], preferred_script: Optional[str]) -> List[str]:
    """Stable re-ranking: candidates in the preferred script move to the front."""
    if not preferred_script:
        return list(candidates)
    return sorted(candidates, key=lambda c: not matches_script(c, preferred_script))


def select_candidate(candidates: Sequence[str], preferred_script: Optional[str] = None) -> Optional[str]:
    ranked = rank_candidates(candidates, preferred_script)
    return ranked[0] if ranked else None


class OCRCascade:
    """
    Runs the recognition cascade for one captured bitmap.

    Usage:
        cascade = OCRCascade(settings.snapshot(), build_local_ocr("rapid"))
        result = cascade.recognize(bgr)
    """

    def __init__(
        self,
        config: PipelineConfig,
        local_ocr: LocalOCRBackend,
        cloud_client: Optional[CloudVisionClient] = None,
        variants: Optional[ImageVariantGenerator] = None,
    ) -> None:
        self.config = config
        self.local_ocr = local_ocr
        if cloud_client is None and config.has_api_key:
            cloud_client = CloudVisionClient(api_key=config.api_key)
        self.cloud_client = cloud_client
        self.variants = variants or ImageVariantGenerator()
        self._supported: Optional[frozenset] = None

    # -----------------------------
    # Entry points
    # -----------------------------
    def recognize(self, image: np.ndarray) -> RecognitionResult:
        """
        Return the first accepted result, or the best effort one.

        Raises:
            InvalidRequest: image is empty or not a bitmap
            RecognitionFailed: no stage produced any text and every local attempt raised
        """
        identity = as_bgr(image)
        if identity is None:
            raise InvalidRequest("Captured image is empty or invalid")

        start = time.time()
        fallback: Optional[RecognitionResult] = None

        if self.config.has_api_key and self.cloud_client is not None:
            accepted, fallback = self._run_cloud_stage(identity)
            if accepted is not None:
                logger.info(f"Cascade accepted cloud result in {int((time.time() - start) * 1000)}ms")
                return accepted

        logger.info("Local OCR fallback started")
        result = self._run_local_stage(identity, fallback)
        logger.info(
            f"Cascade finished in {int((time.time() - start) * 1000)}ms: "
            f"source={result.source}, variant={result.variant}, lang={result.detected_language}"
        )
        return result

    async def recognize_async(self, image: np.ndarray) -> RecognitionResult:
        """Run the cascade in a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.recognize, image)

    # -----------------------------
    # Stage A: cloud
    # -----------------------------
    def _run_cloud_stage(
        self, identity: np.ndarray
    ) -> Tuple[Optional[RecognitionResult], Optional[RecognitionResult]]:
        inputs: List[ImageVariant] = [ImageVariant(pixels=identity, origin=VariantOrigin.IDENTITY)]
        retry = self.variants.cloud_retry(identity)
        if retry is not None:
            inputs.append(retry)

        last_error: Optional[SnapLingoError] = None
        unusable: Optional[RecognitionResult] = None

        for index, variant in enumerate(inputs, start=1):
            try:
                cloud = self.cloud_client.annotate(variant.pixels)
            except SnapLingoError as e:
                last_error = e
                logger.warning(f"Cloud Vision OCR pass {index} failed: {e}")
                continue

            logger.info(f"Cloud Vision OCR pass {index}: {len(cloud.text.strip())} chars")
            result = RecognitionResult(
                text=cloud.text,
                detected_language=cloud.locale,
                source="cloud",
                variant=variant.origin.value,
            )
            if is_usable(cloud.text):
                if cloud.locale:
                    logger.info(f"Cloud Vision detected locale: {cloud.locale}")
                return result, None
            unusable = result

        if last_error is not None:
            logger.warning(f"Cloud Vision OCR fallback to local OCR: {last_error}")
        return None, unusable

    # -----------------------------
    # Stage B: local
    # -----------------------------
    def _run_local_stage(
        self, identity: np.ndarray, fallback: Optional[RecognitionResult]
    ) -> RecognitionResult:
        variants = self.variants.local_variants(identity)
        last_result: Optional[RecognitionResult] = None
        last_error: Optional[Exception] = None

        for index, variant in enumerate(variants, start=1):
            try:
                result = self._run_local_passes(variant)
            # Local engines surface onnxruntime/paddle errors of arbitrary types.
            except Exception as e:
                last_error = e
                logger.warning(f"Local OCR variant {index} ({variant.origin.value}) failed: {e}")
                continue

            last_result = result
            logger.info(
                f"Local OCR variant {index} ({variant.origin.value}): "
                f"{len(result.stripped_text)} chars"
            )
            if is_usable(result.text):
                return result

        if last_result is not None:
            return last_result
        if fallback is not None:
            logger.info("Local OCR produced nothing, keeping unusable cloud text")
            return fallback

        message = "No text could be recognized in the selected area"
        if last_error is not None:
            raise RecognitionFailed(f"{message}: {last_error}") from last_error
        raise RecognitionFailed(message)

    def _run_local_passes(self, variant: ImageVariant) -> RecognitionResult:
        for local_pass in PRIORITY_PASSES:
            text = self._perform(self._attempt(local_pass, variant), local_pass.preferred_script)
            if local_pass.accept(text):
                logger.debug(f"Pass '{local_pass.name}' accepted on {variant.origin.value}")
                return self._result(local_pass, variant, text)
            logger.debug(f"Pass '{local_pass.name}' rejected on {variant.origin.value}")

        text = self._perform(self._attempt(MIXED_PASS, variant), MIXED_PASS.preferred_script)
        return self._result(MIXED_PASS, variant, text)

    @staticmethod
    def _attempt(local_pass: LocalPass, variant: ImageVariant) -> RecognitionAttempt:
        return RecognitionAttempt(
            language_hints=local_pass.language_hints,
            allow_language_correction=local_pass.allow_language_correction,
            source_variant=variant,
        )

    @staticmethod
    def _result(local_pass: LocalPass, variant: ImageVariant, text: str) -> RecognitionResult:
        return RecognitionResult(
            text=text,
            detected_language=local_pass.label(text),
            source="local",
            variant=variant.origin.value,
        )

    def supported_hints(self) -> frozenset:
        if self._supported is None:
            self._supported = frozenset(self.local_ocr.supported_languages())
        return self._supported

    def _perform(self, attempt: RecognitionAttempt, preferred_script: Optional[str]) -> str:
        supported = self.supported_hints()
        hints = tuple(h for h in attempt.language_hints if h in supported)
        observations = self.local_ocr.recognize(
            attempt.source_variant.pixels,
            hints,
            attempt.allow_language_correction,
        )
        lines = [select_candidate(obs.candidates, preferred_script) for obs in observations]
        return "\n".join(line for line in lines if line is not None)
