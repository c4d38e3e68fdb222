"""
Capture and translation API endpoints.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from snaplingo.config import get_settings
from snaplingo.exceptions import SnapLingoError
from snaplingo.models.api import (
    CaptureData,
    CaptureResponse,
    HealthResponse,
    RecognitionData,
    RecognitionResponse,
    TranslateTextRequest,
    TranslationData,
    TranslationResponse,
)
from snaplingo.services.capture_service import CaptureService, get_capture_service
from snaplingo.utils.image_utils import decode_image_bytes

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_image(file: UploadFile):
    if file.content_type and not file.content_type.startswith("image/"):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type: {file.content_type}. Expected image/*"
        )
    return decode_image_bytes(await file.read())


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """
    Health check endpoint.
    Returns service status, version and whether cloud services are configured.
    """
    return HealthResponse(status="ok", version="0.1.0", cloud_enabled=get_settings().has_api_key)


@router.post(
    "/api/v1/recognize",
    response_model=RecognitionResponse,
    tags=["Recognition"],
    summary="Recognize text in a captured image",
)
async def recognize_image(
    file: Annotated[UploadFile, File(description="Captured image")],
    service: CaptureService = Depends(get_capture_service),
) -> RecognitionResponse:
    """Run the OCR cascade only and return the accepted text."""
    try:
        image = await _read_image(file)
        result = await service.recognize(image)
        return RecognitionResponse(success=True, data=RecognitionData.from_result(result))
    except SnapLingoError as e:
        logger.warning(f"Recognition request failed: {e}")
        return RecognitionResponse(success=False, error=str(e))


@router.post(
    "/api/v1/capture",
    response_model=CaptureResponse,
    tags=["Recognition"],
    summary="Recognize and translate a captured image",
    description=(
        "Runs the OCR cascade and translates the accepted text. A translation "
        "failure is reported in data.translation_error while the recognized "
        "text is still returned."
    ),
)
async def capture_and_translate(
    file: Annotated[UploadFile, File(description="Captured image")],
    target_language: Annotated[Optional[str], Form()] = None,
    service: CaptureService = Depends(get_capture_service),
) -> CaptureResponse:
    try:
        image = await _read_image(file)
        outcome = await service.process(image, target_language=target_language)
        return CaptureResponse(success=True, data=CaptureData.from_outcome(outcome))
    except SnapLingoError as e:
        logger.warning(f"Capture request failed: {e}")
        return CaptureResponse(success=False, error=str(e))


@router.post(
    "/api/v1/translate",
    response_model=TranslationResponse,
    tags=["Translation"],
    summary="Translate text",
)
async def translate_text(
    request: TranslateTextRequest,
    service: CaptureService = Depends(get_capture_service),
) -> TranslationResponse:
    try:
        output = await service.translate_text(request.text, request.target_language)
        return TranslationResponse(success=True, data=TranslationData.from_output(output))
    except SnapLingoError as e:
        return TranslationResponse(success=False, error=str(e))
