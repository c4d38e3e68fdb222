"""
Configuration management using pydantic-settings.
Loads from environment variables and .env file.
"""

from functools import lru_cache
from typing import Optional
import logging

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from snaplingo.models.recognition import PipelineConfig

logger = logging.getLogger(__name__)


DEFAULT_TARGET_LANGUAGE = "ja"


class SnapLingoConfig(BaseSettings):
    """
    Capture/translate pipeline settings.

    These settings can be overridden with environment variables.
    """
    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # API settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "SnapLingo Capture Translate API"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    # CORS settings (comma-separated string)
    BACKEND_CORS_ORIGINS: str = "*"

    # Google Cloud credential shared by Vision and Translation.
    # GEMINI_API_KEY is the legacy name kept for older .env files.
    GOOGLE_API_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("GOOGLE_API_KEY", "GEMINI_API_KEY"),
    )
    TARGET_LANGUAGE: str = DEFAULT_TARGET_LANGUAGE

    # Remote endpoints
    VISION_API_URL: str = "https://vision.googleapis.com/v1/images:annotate"
    TRANSLATE_API_URL: str = "https://translation.googleapis.com/language/translate/v2"
    VISION_FEATURE_TYPE: str = "TEXT_DETECTION"
    HTTP_TIMEOUT: float = 30.0

    # Local OCR
    LOCAL_OCR_BACKEND: str = "rapid"
    PADDLE_DEVICE: Optional[str] = None
    VARIANT_SCALE: float = 2.0

    @field_validator("GOOGLE_API_KEY", mode="before")
    @classmethod
    def strip_api_key(cls, v: Optional[str]) -> str:
        key = (v or "").strip()
        if not key:
            logger.warning("GOOGLE_API_KEY is not set. Cloud OCR and translation will not work.")
        return key

    @field_validator("TARGET_LANGUAGE", mode="before")
    @classmethod
    def strip_target_language(cls, v: Optional[str]) -> str:
        return (v or "").strip() or DEFAULT_TARGET_LANGUAGE

    @field_validator("VISION_FEATURE_TYPE")
    @classmethod
    def validate_feature_type(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in ("TEXT_DETECTION", "DOCUMENT_TEXT_DETECTION"):
            raise ValueError(f"Unsupported VISION_FEATURE_TYPE: {v}")
        return v

    @property
    def has_api_key(self) -> bool:
        return bool(self.GOOGLE_API_KEY)

    def snapshot(self) -> PipelineConfig:
        """Read-only view of the values the pipeline consumes."""
        return PipelineConfig(
            api_key=self.GOOGLE_API_KEY,
            target_language=self.TARGET_LANGUAGE,
        )


class Settings(SnapLingoConfig):
    """
    Combined application settings.
    """
    pass


@lru_cache()
def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()
