"""Abonnements à la collection de devis d'un propriétaire.

Un abonnement est un objet annulable qui reçoit des instantanés complets de
la collection (jamais des différences). Deux sources existent:

- `SnapshotBroadcaster`: diffusion en direct après chaque écriture locale;
- `PollingSubscription`: ré-interrogation périodique d'un stockage distant.
"""
import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from quotedesk.quotations.exceptions import StoreUnavailableException
from quotedesk.quotations.models import Quotation, utc_now

logger = logging.getLogger(__name__)

_CLOSED = object()


class CollectionSnapshot(BaseModel):
    """Instantané complet de la collection, ou signal d'erreur non bloquant."""

    owner_scope: str
    quotations: List[Quotation] = []
    error: Optional[str] = None
    received_at: datetime = Field(default_factory=utc_now)

    @property
    def is_error(self) -> bool:
        return self.error is not None


class QuotationSubscription:
    """File d'instantanés, itérable de façon asynchrone jusqu'à `cancel()`."""

    def __init__(self, owner_scope: str,
                 on_cancel: Optional[Callable[["QuotationSubscription"], None]] = None):
        self.owner_scope = owner_scope
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_cancel = on_cancel
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def push(self, snapshot: CollectionSnapshot):
        if not self._cancelled:
            self._queue.put_nowait(snapshot)

    async def next(self) -> Optional[CollectionSnapshot]:
        """Prochain instantané, ou None une fois l'abonnement annulé et vidé."""
        if self._cancelled and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def __aiter__(self):
        return self

    async def __anext__(self) -> CollectionSnapshot:
        snapshot = await self.next()
        if snapshot is None:
            raise StopAsyncIteration
        return snapshot

    def cancel(self):
        if self._cancelled:
            return
        self._cancelled = True
        self._queue.put_nowait(_CLOSED)
        if self._on_cancel:
            self._on_cancel(self)
        logger.debug(f"[Subscription] Abonnement '{self.owner_scope}' annulé.")

    async def __aenter__(self) -> "QuotationSubscription":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.cancel()


class PollingSubscription(QuotationSubscription):
    """Abonnement par interrogation périodique (stockage sans notification)."""

    def __init__(self, owner_scope: str, fetch: Callable[[], Awaitable[List[Quotation]]],
                 interval: float):
        super().__init__(owner_scope)
        self._fetch = fetch
        self._interval = interval
        self._task: Optional[asyncio.Task] = None

    def start(self) -> "PollingSubscription":
        if self._task is None:
            self._task = asyncio.create_task(self._run())
        return self

    async def _run(self):
        while not self._cancelled:
            try:
                quotations = await self._fetch()
                self.push(CollectionSnapshot(owner_scope=self.owner_scope, quotations=quotations))
            except StoreUnavailableException as e:
                logger.warning(f"[Subscription] Échec interrogation '{self.owner_scope}': {e}")
                self.push(CollectionSnapshot(owner_scope=self.owner_scope, error=e.message))
            except Exception as e:
                logger.error(f"[Subscription] Erreur inattendue interrogation '{self.owner_scope}': {e}", exc_info=True)
                self.push(CollectionSnapshot(owner_scope=self.owner_scope, error=str(e) or type(e).__name__))
            await asyncio.sleep(self._interval)

    def cancel(self):
        super().cancel()
        if self._task is not None:
            self._task.cancel()


class SnapshotBroadcaster:
    """Registre des abonnements en direct, par propriétaire."""

    def __init__(self):
        self._subscribers: Dict[str, Set[QuotationSubscription]] = defaultdict(set)

    def register(self, owner_scope: str) -> QuotationSubscription:
        subscription = QuotationSubscription(owner_scope, on_cancel=self._unregister)
        self._subscribers[owner_scope].add(subscription)
        logger.debug(f"[Broadcaster] Nouvel abonné pour '{owner_scope}' ({len(self._subscribers[owner_scope])}).")
        return subscription

    def _unregister(self, subscription: QuotationSubscription):
        subscribers = self._subscribers.get(subscription.owner_scope)
        if subscribers is not None:
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[subscription.owner_scope]

    def has_subscribers(self, owner_scope: str) -> bool:
        return bool(self._subscribers.get(owner_scope))

    def publish(self, owner_scope: str, quotations: List[Quotation]):
        for subscription in list(self._subscribers.get(owner_scope, ())):
            subscription.push(CollectionSnapshot(owner_scope=owner_scope, quotations=quotations))

    def publish_error(self, owner_scope: str, detail: str):
        for subscription in list(self._subscribers.get(owner_scope, ())):
            subscription.push(CollectionSnapshot(owner_scope=owner_scope, error=detail))
