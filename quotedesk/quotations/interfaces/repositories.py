from abc import ABC, abstractmethod
import logging
from typing import List, Optional

from quotedesk.quotations.exceptions import StoreUnavailableException
from quotedesk.quotations.models import Quotation
from quotedesk.quotations.subscriptions import (
    CollectionSnapshot,
    PollingSubscription,
    QuotationSubscription,
    SnapshotBroadcaster,
)

logger = logging.getLogger(__name__)


class AbstractQuotationRepository(ABC):
    """Interface abstraite du stockage des devis, partitionné par propriétaire."""

    poll_interval: float = 5.0

    @abstractmethod
    async def list_quotations(self, *, owner_scope: str) -> List[Quotation]:
        """Liste tous les devis du propriétaire."""
        pass

    @abstractmethod
    async def get_by_id(self, *, owner_scope: str, quotation_id: str) -> Optional[Quotation]:
        """Récupère un devis par son ID (None si absent)."""
        pass

    @abstractmethod
    async def upsert(self, *, owner_scope: str, quotation: Quotation) -> Quotation:
        """Crée le devis s'il est absent, sinon remplace ses champs (createdAt conservé)."""
        pass

    @abstractmethod
    async def delete(self, *, owner_scope: str, quotation_id: str) -> bool:
        """Supprime définitivement un devis. Idempotent: False si déjà absent."""
        pass

    async def subscribe(self, *, owner_scope: str) -> QuotationSubscription:
        """Abonnement par défaut: ré-interrogation périodique de `list_quotations`."""
        async def fetch() -> List[Quotation]:
            return await self.list_quotations(owner_scope=owner_scope)

        return PollingSubscription(owner_scope, fetch, self.poll_interval).start()


class BroadcastingQuotationRepository(AbstractQuotationRepository):
    """Base des stockages locaux: diffusion d'un instantané après chaque écriture."""

    def __init__(self, broadcaster: Optional[SnapshotBroadcaster] = None):
        self.broadcaster = broadcaster

    async def subscribe(self, *, owner_scope: str) -> QuotationSubscription:
        if self.broadcaster is None:
            return await super().subscribe(owner_scope=owner_scope)

        subscription = self.broadcaster.register(owner_scope)
        try:
            quotations = await self.list_quotations(owner_scope=owner_scope)
            subscription.push(CollectionSnapshot(owner_scope=owner_scope, quotations=quotations))
        except StoreUnavailableException as e:
            subscription.push(CollectionSnapshot(owner_scope=owner_scope, error=e.message))
        return subscription

    async def _publish(self, owner_scope: str):
        if self.broadcaster is None or not self.broadcaster.has_subscribers(owner_scope):
            return
        try:
            quotations = await self.list_quotations(owner_scope=owner_scope)
        except StoreUnavailableException as e:
            logger.warning(f"Instantané non diffusé pour '{owner_scope}': {e}")
            self.broadcaster.publish_error(owner_scope, e.message)
            return
        self.broadcaster.publish(owner_scope, quotations)
