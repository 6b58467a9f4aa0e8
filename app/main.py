"""Main FastAPI application."""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from app.api import auth, health, ocr, orders, pharmacist, verification
from app.core.config import Settings
from app.core.exceptions import register_exception_handlers
from app.core.logging import setup_logging
from app.db.database import create_engine, create_session_factory, init_db
from app.services.medication.catalog import MedicationCatalog
from app.services.ocr.base import OcrProvider
from app.services.ocr.openai_provider import OpenAIVisionOcrProvider
from app.services.ocr.retry import with_retries


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging(app.state.settings.log_level)
    await init_db(app.state.engine)
    yield
    # Shutdown
    await app.state.engine.dispose()


def create_app(
    settings: Optional[Settings] = None,
    ocr_provider: Optional[OcrProvider] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to run with (read from the environment when omitted)
        ocr_provider: OCR provider (OpenAI vision when omitted)
    """
    settings = settings or Settings()

    app = FastAPI(
        title="Prescription Order Engine",
        description="Prescription order lifecycle: OCR, verification, pharmacist review and fulfillment",
        version="0.1.0",
        lifespan=lifespan,
    )

    engine = create_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.medication_catalog = MedicationCatalog(settings.medication_catalog_path)
    app.state.ocr_provider = with_retries(
        ocr_provider or OpenAIVisionOcrProvider(settings),
        max_attempts=settings.ocr_max_attempts,
        delay_seconds=settings.ocr_retry_delay_seconds,
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(auth.router, tags=["auth"])
    app.include_router(orders.router, tags=["orders"])
    app.include_router(ocr.router, tags=["ocr"])
    app.include_router(verification.router, tags=["verification"])
    app.include_router(pharmacist.router, tags=["pharmacist"])

    @app.get("/")
    async def root():
        return {"message": "Prescription Order Engine API", "version": "0.1.0"}

    return app


app = create_app()
