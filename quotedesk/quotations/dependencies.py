import logging
from typing import Annotated, AsyncGenerator, Dict, Optional

from fastapi import Depends, Header

from quotedesk.config import Settings, get_settings, settings as app_settings
from quotedesk.database import AsyncSessionLocal
from quotedesk.quotations.drafts import DraftRegistry
from quotedesk.quotations.http_repository import HttpQuotationRepository
from quotedesk.quotations.interfaces.repositories import AbstractQuotationRepository
from quotedesk.quotations.json_repository import JsonFileQuotationRepository
from quotedesk.quotations.repositories import SQLModelQuotationRepository
from quotedesk.quotations.service import QuotationService
from quotedesk.quotations.subscriptions import SnapshotBroadcaster

logger = logging.getLogger(__name__)

SettingsDep = Annotated[Settings, Depends(get_settings)]

# Partagés par toutes les requêtes du processus
snapshot_broadcaster = SnapshotBroadcaster()
_json_repositories: Dict[str, JsonFileQuotationRepository] = {}
_http_repositories: Dict[str, HttpQuotationRepository] = {}
draft_registry = DraftRegistry()


# --- Propriétaire ---

def get_owner_scope(
    settings: SettingsDep,
    owner_scope: Annotated[Optional[str], Header(alias=app_settings.OWNER_SCOPE_HEADER)] = None,
) -> str:
    """Partition des devis: en-tête X-Owner-Scope, sinon le propriétaire par défaut."""
    return (owner_scope or "").strip() or settings.DEFAULT_OWNER_SCOPE


OwnerScopeDep = Annotated[str, Depends(get_owner_scope)]


# --- Dépendances Repository ---

def get_snapshot_broadcaster() -> SnapshotBroadcaster:
    return snapshot_broadcaster


def get_json_repository(settings: Settings) -> JsonFileQuotationRepository:
    """Un seul repository (et donc un seul verrou) par fichier JSON."""
    repository = _json_repositories.get(settings.JSON_DB_PATH)
    if repository is None:
        repository = JsonFileQuotationRepository(
            settings.JSON_DB_PATH,
            broadcaster=snapshot_broadcaster,
            legacy_owner_scope=settings.DEFAULT_OWNER_SCOPE,
        )
        _json_repositories[settings.JSON_DB_PATH] = repository
        logger.info(f"Stockage JSON initialisé: {settings.JSON_DB_PATH}")
    return repository


def get_http_repository(settings: Settings) -> HttpQuotationRepository:
    """Un client HTTP partagé par service distant, fermé à l'arrêt de l'application."""
    repository = _http_repositories.get(settings.STORE_BASE_URL)
    if repository is None:
        repository = HttpQuotationRepository(
            settings.STORE_BASE_URL,
            owner_scope_header=settings.OWNER_SCOPE_HEADER,
            timeout=settings.STORE_TIMEOUT_SECONDS,
            poll_interval=settings.SUBSCRIPTION_POLL_INTERVAL,
        )
        _http_repositories[settings.STORE_BASE_URL] = repository
        logger.info(f"Stockage HTTP initialisé: {settings.STORE_BASE_URL}")
    return repository


async def close_http_repositories():
    for repository in _http_repositories.values():
        await repository.aclose()
    _http_repositories.clear()


async def get_quotation_repository(
    settings: SettingsDep,
    broadcaster: Annotated[SnapshotBroadcaster, Depends(get_snapshot_broadcaster)],
) -> AsyncGenerator[AbstractQuotationRepository, None]:
    """
    Fournit le repository de devis selon STORE_BACKEND.

    Returns:
        AbstractQuotationRepository: fichier JSON (par défaut), table SQL ou service HTTP distant.
    """
    if settings.STORE_BACKEND == "sql":
        if AsyncSessionLocal is None:
            raise RuntimeError("Database session factory is not initialized.")
        logger.debug("Fourniture de SQLModelQuotationRepository")
        async with AsyncSessionLocal() as session:
            yield SQLModelQuotationRepository(db_session=session, broadcaster=broadcaster)
    elif settings.STORE_BACKEND == "http":
        logger.debug(f"Fourniture de HttpQuotationRepository ({settings.STORE_BASE_URL})")
        yield get_http_repository(settings)
    else:
        logger.debug("Fourniture de JsonFileQuotationRepository")
        yield get_json_repository(settings)


QuotationRepositoryDep = Annotated[AbstractQuotationRepository, Depends(get_quotation_repository)]


# --- Dépendances Service ---

def get_quotation_service(quotation_repo: QuotationRepositoryDep, settings: SettingsDep) -> QuotationService:
    """Fournit une instance du service de gestion des devis."""
    return QuotationService(quotation_repo=quotation_repo, timeout=settings.STORE_TIMEOUT_SECONDS)


QuotationServiceDep = Annotated[QuotationService, Depends(get_quotation_service)]


# --- Brouillons ---

def get_draft_registry() -> DraftRegistry:
    return draft_registry


DraftRegistryDep = Annotated[DraftRegistry, Depends(get_draft_registry)]
