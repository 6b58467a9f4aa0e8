"""Shared test fixtures and configuration."""
import pytest
import os
from unittest.mock import Mock, AsyncMock
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from app.main import create_app
from app.db.database import init_db
from app.db.models import Base
from app.core.config import Settings
from app.services.medication.catalog import MedicationCatalog
from app.services.ocr.base import OcrExtraction
from app.services.persistence.orders import OrderPersistenceService
from app.services.verification.gate import VerificationGate
from tests.helpers import COMPLETE_DETAILS, PRESCRIPTION_TEXT, TEST_IMAGE_URL


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def test_settings():
    """Settings for testing."""
    return Settings(
        openai_api_key="test-key",
        database_url=TEST_DATABASE_URL,
        pharmacist_password="testpass123",
        ocr_timeout_seconds=2.0,
        ocr_max_attempts=1,
        queue_default_page_size=20,
        queue_max_page_size=100,
        order_poll_interval_seconds=15,
        queue_poll_interval_seconds=30,
    )


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_db(test_db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def store(test_db):
    """Order store on the test session."""
    return OrderPersistenceService(test_db)


@pytest.fixture
def catalog():
    """Bundled medication catalog."""
    return MedicationCatalog()


@pytest.fixture
def mock_ocr_provider():
    """OCR provider returning a legible amoxicillin prescription."""
    provider = Mock()
    provider.name = "fake"
    provider.extract_text = AsyncMock(
        return_value=OcrExtraction(text=PRESCRIPTION_TEXT, confidence=0.95, provider="fake")
    )
    provider.health_check = AsyncMock(return_value=True)
    return provider


@pytest.fixture
def order_factory(store):
    """Create orders in pending_verification."""
    async def _create(image_ref=TEST_IMAGE_URL, **kwargs):
        return await store.create_order(image_ref=image_ref, **kwargs)
    return _create


@pytest.fixture
def queued_order_factory(store, catalog):
    """Create orders already confirmed into the pharmacist queue."""
    async def _create(details=None, patient_name="John Doe", urgency="medium", **kwargs):
        order = await store.create_order(
            image_ref=TEST_IMAGE_URL, patient_name=patient_name, urgency=urgency, **kwargs
        )
        gate = VerificationGate(store, catalog=catalog)
        return await gate.confirm(order.id, details or COMPLETE_DETAILS, verified_by="patient-1")
    return _create


@pytest.fixture
async def app(test_settings, mock_ocr_provider):
    """Application wired to an in-memory database and the mock OCR provider."""
    application = create_app(test_settings, ocr_provider=mock_ocr_provider)
    await init_db(application.state.engine)

    yield application

    await application.state.engine.dispose()


@pytest.fixture
async def app_store(app):
    """Order store on the application's database."""
    async with app.state.session_factory() as session:
        yield OrderPersistenceService(session)


@pytest.fixture
async def test_client(app):
    """Create async test client; background tasks finish before each call returns."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def clean_auth_sessions():
    """Clean up authentication sessions before and after tests."""
    from app.api import auth
    auth._sessions.clear()
    yield
    auth._sessions.clear()


@pytest.fixture
async def authenticated_client(test_client, test_settings, clean_auth_sessions):
    """Create test client with a valid pharmacist session cookie."""
    response = await test_client.post(
        "/auth/login",
        json={"pharmacist_id": "pharm-1", "password": test_settings.pharmacist_password},
    )
    assert response.status_code == 200

    # Session cookie is automatically stored in the client
    return test_client


# Pytest configuration
def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio test"
    )
