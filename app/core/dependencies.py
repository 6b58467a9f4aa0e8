"""FastAPI dependencies."""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.db.database import get_db
from app.services.medication.catalog import MedicationCatalog
from app.services.ocr.base import OcrProvider
from app.services.ocr.orchestrator import OcrOrchestrator
from app.services.orders.intake import OrderIntake
from app.services.persistence.orders import OrderPersistenceService
from app.services.review.queue import PharmacistQueueManager
from app.services.verification.gate import VerificationGate


def get_settings(request: Request) -> Settings:
    """Get the settings the application was created with."""
    return request.app.state.settings


def get_medication_catalog(request: Request) -> MedicationCatalog:
    return request.app.state.medication_catalog


def get_ocr_provider(request: Request) -> OcrProvider:
    return request.app.state.ocr_provider


def get_order_store(db: AsyncSession = Depends(get_db)) -> OrderPersistenceService:
    """Get order store bound to the request session."""
    return OrderPersistenceService(db)


def get_order_intake(
    store: OrderPersistenceService = Depends(get_order_store),
    settings: Settings = Depends(get_settings),
) -> OrderIntake:
    return OrderIntake(store, settings)


def get_ocr_orchestrator(
    request: Request,
    store: OrderPersistenceService = Depends(get_order_store),
    provider: OcrProvider = Depends(get_ocr_provider),
    settings: Settings = Depends(get_settings),
    catalog: MedicationCatalog = Depends(get_medication_catalog),
) -> OcrOrchestrator:
    """Get OCR orchestrator; background jobs open their own sessions."""
    return OcrOrchestrator(
        store,
        provider,
        settings,
        catalog=catalog,
        session_factory=request.app.state.session_factory,
    )


def get_verification_gate(
    store: OrderPersistenceService = Depends(get_order_store),
    catalog: MedicationCatalog = Depends(get_medication_catalog),
) -> VerificationGate:
    return VerificationGate(store, catalog=catalog)


def get_queue_manager(
    store: OrderPersistenceService = Depends(get_order_store),
    settings: Settings = Depends(get_settings),
    catalog: MedicationCatalog = Depends(get_medication_catalog),
) -> PharmacistQueueManager:
    return PharmacistQueueManager(store, settings, catalog=catalog)
