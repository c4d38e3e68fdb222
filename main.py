"""
FastAPI application entry point for the capture/translate service.
"""

# Load .env first so every settings object sees it
from dotenv import load_dotenv
load_dotenv()

import logging
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from snaplingo.api.capture import router as capture_router
from snaplingo.config import get_settings
from snaplingo.logging_config import setup_logging


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""

    settings = get_settings()
    setup_logging(log_dir=settings.LOG_DIR, log_level=settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=(
            "Recognizes text in a captured screen region (cloud OCR with a "
            "multi-pass local fallback) and translates it."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    cors_origins = [o.strip() for o in settings.BACKEND_CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins if cors_origins else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(capture_router)

    @app.on_event("startup")
    async def startup_event():
        """Pre-load the local OCR model so the first capture is not slow."""
        logger = logging.getLogger(__name__)
        try:
            logger.info("Pre-loading local OCR backend...")
            from snaplingo.services.capture_service import get_capture_service
            get_capture_service().warm_up()
            logger.info("Local OCR backend ready.")
        except Exception as e:
            logger.warning(f"Pre-loading failed (will retry on first request): {e}")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cancel any translation still pending."""
        from snaplingo.services.capture_service import get_capture_service
        get_capture_service().cancel_pending()

    return app


# Application instance
app = create_app()


def run():
    """Run the application with uvicorn."""
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=False,
    )


if __name__ == "__main__":
    run()
