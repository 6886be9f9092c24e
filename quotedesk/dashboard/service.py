"""Agrégation du tableau de bord: filtre, tri et statistiques.

Fonctions pures de (collection, terme de recherche). `DashboardFeed` garde la
dernière collection reçue d'un abonnement et recalcule la vue à chaque lecture.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable, List, Optional

from quotedesk.dashboard.models import DashboardStats, DashboardView
from quotedesk.quotations.arithmetic import ZERO, round_money, to_decimal
from quotedesk.quotations.models import Quotation, QuotationStatus
from quotedesk.quotations.subscriptions import CollectionSnapshot, QuotationSubscription

logger = logging.getLogger(__name__)

# Rang des devis sans createdAt: toujours les plus anciens
_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def filter_quotations(quotations: Iterable[Quotation], search: Optional[str]) -> List[Quotation]:
    """Client ou numéro contenant le terme (insensible à la casse); terme vide = tout."""
    term = (search or "").lower()
    if not term:
        return list(quotations)
    return [
        q for q in quotations
        if term in q.client_name.lower() or term in q.quotation_number.lower()
    ]


def sort_newest_first(quotations: Iterable[Quotation]) -> List[Quotation]:
    return sorted(quotations, key=lambda q: q.created_at or _OLDEST, reverse=True)


def compute_stats(quotations: Iterable[Quotation]) -> DashboardStats:
    total = pending = accepted = 0
    revenue = ZERO
    for quotation in quotations:
        total += 1
        if quotation.status == QuotationStatus.PENDING:
            pending += 1
        elif quotation.status == QuotationStatus.ACCEPTED:
            accepted += 1
            revenue += to_decimal(quotation.grand_total)
    return DashboardStats(total=total, pending=pending, accepted=accepted, revenue=round_money(revenue))


def build_dashboard(quotations: Iterable[Quotation], search: Optional[str] = "",
                    error: Optional[str] = None) -> DashboardView:
    """Liste filtrée et triée, avec les statistiques calculées sur cette même liste."""
    filtered = sort_newest_first(filter_quotations(quotations, search))
    return DashboardView(search=search or "", quotations=filtered, stats=compute_stats(filtered), error=error)


class DashboardFeed:
    """Vue vivante du tableau de bord alimentée par un abonnement.

    Chaque instantané remplace la collection précédente. Un instantané
    d'erreur la laisse inchangée et renseigne `last_error`.
    """

    def __init__(self, subscription: QuotationSubscription):
        self.subscription = subscription
        self.quotations: List[Quotation] = []
        self.last_error: Optional[str] = None
        self.last_update: Optional[datetime] = None
        # Nombre d'instantanés appliqués
        self.version = 0
        self._task: Optional[asyncio.Task] = None
        self._updated = asyncio.Event()

    def apply(self, snapshot: CollectionSnapshot):
        if snapshot.is_error:
            logger.warning(f"[DashboardFeed] Collection non rafraîchie: {snapshot.error}")
            self.last_error = snapshot.error
        else:
            self.quotations = list(snapshot.quotations)
            self.last_error = None
            self.last_update = snapshot.received_at
        self.version += 1
        self._updated.set()

    async def wait_for_update(self, timeout: Optional[float] = None, since: Optional[int] = None) -> bool:
        """Attend un instantané appliqué après la version `since` (par défaut: le prochain).

        Renvoie False si le délai expire.
        """
        target = self.version if since is None else since
        while self.version <= target:
            self._updated.clear()
            try:
                await asyncio.wait_for(self._updated.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                return False
        return True

    def view(self, search: Optional[str] = "") -> DashboardView:
        return build_dashboard(self.quotations, search, error=self.last_error)

    async def _consume(self):
        async for snapshot in self.subscription:
            self.apply(snapshot)

    def start(self) -> "DashboardFeed":
        if self._task is None:
            self._task = asyncio.create_task(self._consume())
        return self

    async def stop(self):
        self.subscription.cancel()
        if self._task is not None:
            await self._task
            self._task = None


async def stream_dashboard(feed: DashboardFeed, search: Optional[str] = "",
                           limit: Optional[int] = None) -> AsyncIterator[str]:
    """Une ligne JSON (DashboardView) par instantané appliqué, au plus `limit` lignes.

    Le flux est arrêté, et son abonnement annulé, à la fin de l'itération.
    """
    seen = 0
    sent = 0
    try:
        while limit is None or sent < limit:
            await feed.wait_for_update(since=seen)
            seen = feed.version
            yield feed.view(search).model_dump_json(by_alias=True) + "\n"
            sent += 1
    finally:
        await feed.stop()
