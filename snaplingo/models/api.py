"""
Pydantic models for the capture/translate API request/response.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field

from snaplingo.models.recognition import CaptureOutcome, RecognitionResult, TranslationOutput


class TranslateTextRequest(BaseModel):
    """Request model for text-only translation."""

    text: str = Field(..., description="Source text to translate")
    target_language: Optional[str] = Field(
        default=None,
        description="Target language code (configured default when omitted)"
    )


class RecognitionData(BaseModel):
    text: str = Field(default="", description="Recognized text")
    detected_language: Optional[str] = Field(default=None, description="Detected or guessed language code")
    source: str = Field(default="local", description="Stage that produced the text: cloud or local")
    variant: Optional[str] = Field(default=None, description="Image variant the text was read from")

    @classmethod
    def from_result(cls, result: RecognitionResult) -> "RecognitionData":
        return cls(
            text=result.stripped_text,
            detected_language=result.detected_language,
            source=result.source,
            variant=result.variant,
        )


class TranslationData(BaseModel):
    translated_text: str = Field(description="Translated text")
    detected_source_language: Optional[str] = Field(default=None, description="Source language reported by the API")

    @classmethod
    def from_output(cls, output: TranslationOutput) -> "TranslationData":
        return cls(
            translated_text=output.translated_text,
            detected_source_language=output.detected_source_language,
        )


class CaptureData(BaseModel):
    recognized_text: str = Field(default="", description="Recognized source text")
    detected_language: Optional[str] = Field(default=None)
    translated_text: Optional[str] = Field(default=None)
    detected_source_language: Optional[str] = Field(default=None)
    translation_error: Optional[str] = Field(default=None, description="Shown in place of the translation")
    recognition_error: Optional[str] = Field(default=None)
    timings_ms: Dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_outcome(cls, outcome: CaptureOutcome) -> "CaptureData":
        return cls(
            recognized_text=outcome.recognized_text,
            detected_language=outcome.detected_language,
            translated_text=outcome.translated_text,
            detected_source_language=outcome.detected_source_language,
            translation_error=outcome.translation_error,
            recognition_error=outcome.recognition_error,
            timings_ms=outcome.timings_ms,
        )


class RecognitionResponse(BaseModel):
    success: bool = Field(description="Whether the request was successful")
    data: Optional[RecognitionData] = None
    error: Optional[str] = None


class TranslationResponse(BaseModel):
    success: bool = Field(description="Whether the request was successful")
    data: Optional[TranslationData] = None
    error: Optional[str] = None


class CaptureResponse(BaseModel):
    success: bool = Field(description="Whether the request was successful")
    data: Optional[CaptureData] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="ok")
    version: str = Field(default="0.1.0")
    cloud_enabled: bool = Field(default=False)
