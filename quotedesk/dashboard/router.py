import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from quotedesk.dashboard.models import DashboardView
from quotedesk.dashboard.service import DashboardFeed, build_dashboard, stream_dashboard
from quotedesk.quotations.dependencies import OwnerScopeDep, QuotationServiceDep
from quotedesk.quotations.exceptions import StoreUnavailableException

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboard"]
)


@router.get("", response_model=DashboardView)
async def read_dashboard(
    quotation_service: QuotationServiceDep,
    owner_scope: OwnerScopeDep,
    search: Optional[str] = Query("", description="Filtre sur le client ou le numéro de devis"),
):
    """Liste filtrée (plus récents d'abord) et statistiques du propriétaire."""
    logger.info(f"API read_dashboard pour '{owner_scope}', search='{search}'")
    try:
        quotations = await quotation_service.list_quotations(owner_scope)
    except StoreUnavailableException as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    return build_dashboard(quotations, search)


@router.get("/stream")
async def stream_dashboard_view(
    quotation_service: QuotationServiceDep,
    owner_scope: OwnerScopeDep,
    search: Optional[str] = Query("", description="Filtre sur le client ou le numéro de devis"),
    limit: Optional[int] = Query(None, ge=1, description="Nombre maximal de vues envoyées"),
):
    """Vue vivante du tableau de bord: une ligne JSON à chaque changement de la collection."""
    logger.info(f"API stream_dashboard pour '{owner_scope}', search='{search}'")
    try:
        subscription = await quotation_service.subscribe(owner_scope)
    except StoreUnavailableException as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    feed = DashboardFeed(subscription).start()
    return StreamingResponse(stream_dashboard(feed, search, limit), media_type="application/x-ndjson")
