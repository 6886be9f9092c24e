# Standard Library
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncGenerator, Callable

# Third-Party Libraries
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

# First-Party Libraries
from quotedesk.main import app
from quotedesk.pdf.dependencies import get_pdf_generator
from quotedesk.pdf.exceptions import PDFGenerationException
from quotedesk.pdf.generator import AbstractPDFGenerator
from quotedesk.quotations.dependencies import get_draft_registry, get_quotation_repository
from quotedesk.quotations.drafts import DraftRegistry
from quotedesk.quotations.json_repository import JsonFileQuotationRepository
from quotedesk.quotations.models import LineItem, Quotation, QuotationStatus
from quotedesk.quotations.repositories import SQLModelQuotationRepository
from quotedesk.quotations.service import QuotationService
from quotedesk.quotations.subscriptions import SnapshotBroadcaster

# URL de base pour la DB en mémoire
TEST_DATABASE_BASE_URL = "sqlite+aiosqlite:///:memory:"


# --- Fixtures de Base ---

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Crée un engine, la table des devis, et fournit une session DB en mémoire pour chaque test."""
    engine: AsyncEngine = create_async_engine(TEST_DATABASE_BASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with TestingSessionLocal() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def broadcaster() -> SnapshotBroadcaster:
    return SnapshotBroadcaster()


@pytest.fixture
def json_path(tmp_path: Path) -> Path:
    return tmp_path / "db.json"


@pytest.fixture
def json_repository(json_path: Path, broadcaster: SnapshotBroadcaster) -> JsonFileQuotationRepository:
    """Stockage fichier isolé dans le répertoire temporaire du test."""
    return JsonFileQuotationRepository(json_path, broadcaster=broadcaster, legacy_owner_scope="default")


@pytest.fixture
def sql_repository(db_session: AsyncSession, broadcaster: SnapshotBroadcaster) -> SQLModelQuotationRepository:
    return SQLModelQuotationRepository(db_session=db_session, broadcaster=broadcaster)


@pytest.fixture
def quotation_service(json_repository: JsonFileQuotationRepository) -> QuotationService:
    return QuotationService(quotation_repo=json_repository, timeout=5.0)


@pytest.fixture
def draft_registry() -> DraftRegistry:
    return DraftRegistry()


@pytest.fixture
def make_quotation() -> Callable[..., Quotation]:
    """Fabrique de devis de test avec des valeurs lisibles."""
    def _make(**overrides) -> Quotation:
        data = dict(
            client_name="Priya Raman",
            company_name="Raman Weddings",
            quotation_number="QT-2024-0001",
            date_issued="05/03/2024",
            valid_until="2024-04-04",
            items=[
                LineItem(requirement="Stage decoration", qty=2, unit_price="100"),
                LineItem(requirement="Sound system", qty=1, unit_price="50.50"),
            ],
            tax_rate=18,
            discount=10,
            status=QuotationStatus.DRAFT,
            terms="Payment due within 30 days.",
            notes="Evening event.",
            created_at=datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc),
        )
        data.update(overrides)
        return Quotation(**data)

    return _make


# --- Fixtures PDF ---

class MockPDFGenerator(AbstractPDFGenerator):
    """Un générateur PDF simulé pour les tests."""

    async def generate_quotation_pdf(self, quotation: Quotation) -> bytes:
        if quotation.client_name == "fail":
            raise PDFGenerationException("Mock generation failed intentionally.")
        return f"Mock PDF content for {quotation.quotation_number}".encode("utf-8")


# --- Client HTTP ---

@pytest_asyncio.fixture(scope="function")
async def test_client(
    json_repository: JsonFileQuotationRepository,
    draft_registry: DraftRegistry,
) -> AsyncGenerator[AsyncClient, None]:
    """Fournit un AsyncClient httpx branché sur un stockage JSON isolé, des brouillons isolés et un PDF mocké."""
    async def override_get_quotation_repository():
        return json_repository

    def override_get_pdf_generator() -> AbstractPDFGenerator:
        return MockPDFGenerator()

    app.dependency_overrides[get_quotation_repository] = override_get_quotation_repository
    app.dependency_overrides[get_pdf_generator] = override_get_pdf_generator
    app.dependency_overrides[get_draft_registry] = lambda: draft_registry

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
