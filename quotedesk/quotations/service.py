import asyncio
import logging
from typing import Awaitable, List, TypeVar

from quotedesk.quotations.exceptions import QuotationNotFoundException, StoreUnavailableException
from quotedesk.quotations.factory import create_new_quotation
from quotedesk.quotations.formatting import format_display_date
from quotedesk.quotations.interfaces.repositories import AbstractQuotationRepository
from quotedesk.quotations.models import Quotation, QuotationCreate, QuotationUpdate, utc_now
from quotedesk.quotations.subscriptions import QuotationSubscription

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QuotationService:
    """Service applicatif des devis, utilisant le pattern Repository.

    Chaque appel au stockage est borné par `timeout`: au-delà, l'opération
    échoue avec StoreUnavailableException (aucune nouvelle tentative).
    Les totaux sont recalculés avant toute écriture.
    """

    def __init__(self, quotation_repo: AbstractQuotationRepository, timeout: float = 10.0):
        self.quotation_repo = quotation_repo
        self.timeout = timeout

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"[QuotationService] Délai dépassé ({self.timeout}s) pour '{operation}'.")
            raise StoreUnavailableException(operation, f"délai de {self.timeout}s dépassé")

    async def list_quotations(self, owner_scope: str) -> List[Quotation]:
        logger.debug(f"[QuotationService] Listage des devis pour '{owner_scope}'")
        return await self._call("list", self.quotation_repo.list_quotations(owner_scope=owner_scope))

    async def get_quotation(self, owner_scope: str, quotation_id: str) -> Quotation:
        quotation = await self._call(
            "get", self.quotation_repo.get_by_id(owner_scope=owner_scope, quotation_id=quotation_id)
        )
        if quotation is None:
            logger.warning(f"[QuotationService] Devis {quotation_id} non trouvé pour '{owner_scope}'.")
            raise QuotationNotFoundException(quotation_id)
        return quotation

    async def new_draft(self, owner_scope: str) -> Quotation:
        """Brouillon non persisté, numéroté après la collection courante."""
        existing = await self.list_quotations(owner_scope)
        draft = create_new_quotation(existing)
        logger.info(f"[QuotationService] Brouillon {draft.quotation_number} préparé pour '{owner_scope}'.")
        return draft

    async def create_quotation(self, owner_scope: str, payload: QuotationCreate) -> Quotation:
        """Crée un devis: l'id et createdAt fournis sont conservés, le numéro est attribué s'il manque."""
        changes = payload.changes()
        now = utc_now()
        existing = [] if changes.get("quotation_number") else await self.list_quotations(owner_scope)
        base = create_new_quotation(existing, now)

        changes["id"] = changes.get("id") or base.id
        changes["created_at"] = changes.get("created_at") or now
        quotation = base.with_changes(**changes, updated_at=now).with_totals()

        saved = await self._call(
            "create", self.quotation_repo.upsert(owner_scope=owner_scope, quotation=quotation)
        )
        logger.info(f"[QuotationService] Devis {saved.id} ({saved.quotation_number}) créé pour '{owner_scope}'.")
        return saved

    async def update_quotation(self, owner_scope: str, quotation_id: str, payload: QuotationUpdate) -> Quotation:
        """Fusionne le patch dans le devis existant; id et createdAt restent inchangés."""
        existing = await self.get_quotation(owner_scope, quotation_id)
        merged = existing.with_changes(**payload.changes(), updated_at=utc_now()).with_totals()
        saved = await self._call(
            "update", self.quotation_repo.upsert(owner_scope=owner_scope, quotation=merged)
        )
        logger.info(f"[QuotationService] Devis {quotation_id} mis à jour pour '{owner_scope}'.")
        return saved

    async def save_quotation(self, owner_scope: str, quotation: Quotation) -> Quotation:
        """Sauvegarde d'éditeur: dateIssued et updatedAt rafraîchis, totaux matérialisés."""
        now = utc_now()
        prepared = quotation.with_changes(
            date_issued=format_display_date(now),
            updated_at=now,
            created_at=quotation.created_at or now,
        ).with_totals()
        saved = await self._call(
            "save", self.quotation_repo.upsert(owner_scope=owner_scope, quotation=prepared)
        )
        logger.info(f"[QuotationService] Devis {saved.id} sauvegardé pour '{owner_scope}'.")
        return saved

    async def delete_quotation(self, owner_scope: str, quotation_id: str) -> bool:
        """Suppression définitive et idempotente."""
        deleted = await self._call(
            "delete", self.quotation_repo.delete(owner_scope=owner_scope, quotation_id=quotation_id)
        )
        if not deleted:
            logger.info(f"[QuotationService] Devis {quotation_id} déjà absent pour '{owner_scope}'.")
        return deleted

    async def subscribe(self, owner_scope: str) -> QuotationSubscription:
        return await self._call("subscribe", self.quotation_repo.subscribe(owner_scope=owner_scope))
