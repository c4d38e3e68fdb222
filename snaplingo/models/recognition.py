"""
Value types passed through the capture -> recognize -> translate pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np


class VariantOrigin(str, Enum):
    """Label identifying which transform produced an image variant."""
    IDENTITY = "identity"
    SCALED = "scaled"
    ENHANCED = "enhanced"
    SCALED_ENHANCED = "scaled+enhanced"
    INVERTED_SCALED_ENHANCED = "inverted(scaled+enhanced)"
    INVERTED_ENHANCED = "inverted(enhanced)"


@dataclass(frozen=True)
class PipelineConfig:
    """Snapshot of the process-wide settings the pipeline reads."""
    api_key: str = ""
    target_language: str = "ja"

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key.strip())


@dataclass(frozen=True)
class ImageVariant:
    pixels: np.ndarray  # BGR uint8
    origin: VariantOrigin


@dataclass(frozen=True)
class RecognitionAttempt:
    """One cascade step's configuration."""
    language_hints: Tuple[str, ...]
    allow_language_correction: bool
    source_variant: ImageVariant


@dataclass(frozen=True)
class LineObservation:
    """One recognized line with its ranked candidate strings (best first)."""
    candidates: Tuple[str, ...] = ()

    @property
    def top(self) -> Optional[str]:
        return self.candidates[0] if self.candidates else None


@dataclass(frozen=True)
class CloudOCRText:
    text: str
    locale: Optional[str] = None


@dataclass(frozen=True)
class RecognitionResult:
    text: str
    detected_language: Optional[str] = None
    source: str = "local"
    variant: Optional[str] = None

    @property
    def stripped_text(self) -> str:
        return self.text.strip()


@dataclass(frozen=True)
class TranslationOutput:
    translated_text: str
    detected_source_language: Optional[str] = None


@dataclass
class CaptureOutcome:
    """What one capture produced, handed back to the single result consumer."""
    recognized_text: str = ""
    detected_language: Optional[str] = None
    translated_text: Optional[str] = None
    detected_source_language: Optional[str] = None
    translation_error: Optional[str] = None
    recognition_error: Optional[str] = None
    timings_ms: dict = field(default_factory=dict)

    @property
    def language_hint(self) -> Optional[str]:
        return self.detected_source_language or self.detected_language
