from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from quotedesk.quotations.arithmetic import Money
from quotedesk.quotations.models import Quotation


class DashboardStats(BaseModel):
    """Compteurs et chiffre d'affaires (devis acceptés) de la liste filtrée."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    pending: int = 0
    accepted: int = 0
    revenue: Money = Decimal("0.00")


class DashboardView(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    search: str = ""
    quotations: List[Quotation] = []
    stats: DashboardStats = DashboardStats()
    # Dernière erreur du flux vivant; la liste est alors celle du dernier instantané valide
    error: Optional[str] = None
