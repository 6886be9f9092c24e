import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from quotedesk.quotations.dependencies import DraftRegistryDep, OwnerScopeDep, QuotationServiceDep
from quotedesk.quotations.drafts import draft_view
from quotedesk.quotations.exceptions import (
    DraftNotFoundException,
    EditorClosedException,
    InvalidQuotationFieldException,
    InvalidQuotationStatusException,
    QuotationDomainException,
    QuotationNotFoundException,
    QuotationSaveInProgressException,
    StoreUnavailableException,
)
from quotedesk.quotations.models import DeleteResponse, DraftOpenRequest, DraftView, FieldChange

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/drafts",
    tags=["Drafts"]
)


def _domain_error(e: QuotationDomainException) -> HTTPException:
    if isinstance(e, (DraftNotFoundException, QuotationNotFoundException)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, (QuotationSaveInProgressException, EditorClosedException)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, (InvalidQuotationFieldException, InvalidQuotationStatusException)):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, StoreUnavailableException):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=e.message)


@router.post("", response_model=DraftView, status_code=status.HTTP_201_CREATED)
async def open_draft(
    quotation_service: QuotationServiceDep,
    registry: DraftRegistryDep,
    owner_scope: OwnerScopeDep,
    open_request: Optional[DraftOpenRequest] = None,
):
    """Ouvre un brouillon sur un devis existant, ou sur un nouveau devis numéroté."""
    quotation_id = open_request.quotation_id if open_request else None
    logger.info(f"API open_draft: ID={quotation_id or 'nouveau'} pour '{owner_scope}'")
    try:
        if quotation_id:
            quotation = await quotation_service.get_quotation(owner_scope, quotation_id)
        else:
            quotation = await quotation_service.new_draft(owner_scope)
        return draft_view(registry.open(owner_scope, quotation, quotation_service))
    except QuotationDomainException as e:
        raise _domain_error(e)
    except Exception as e:
        logger.error(f"Erreur API open_draft pour '{owner_scope}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne ouverture brouillon.")


@router.get("/{draft_id}", response_model=DraftView)
async def read_draft(draft_id: str, registry: DraftRegistryDep, owner_scope: OwnerScopeDep):
    try:
        return draft_view(registry.get(owner_scope, draft_id))
    except QuotationDomainException as e:
        raise _domain_error(e)


@router.patch("/{draft_id}", response_model=DraftView)
async def set_draft_field(draft_id: str, change: FieldChange, registry: DraftRegistryDep, owner_scope: OwnerScopeDep):
    """Champ d'en-tête (client, taxe, remise, statut...). Les saisies numériques invalides valent 0."""
    logger.info(f"API set_draft_field: ID={draft_id}, champ={change.field}")
    try:
        session = registry.get(owner_scope, draft_id)
        session.editor.set_field(change.field, change.value)
        return draft_view(session)
    except QuotationDomainException as e:
        raise _domain_error(e)


@router.post("/{draft_id}/items", response_model=DraftView, status_code=status.HTTP_201_CREATED)
async def add_draft_item(draft_id: str, registry: DraftRegistryDep, owner_scope: OwnerScopeDep):
    try:
        session = registry.get(owner_scope, draft_id)
        session.editor.add_item()
        return draft_view(session)
    except QuotationDomainException as e:
        raise _domain_error(e)


@router.patch("/{draft_id}/items/{item_id}", response_model=DraftView)
async def edit_draft_item(
    draft_id: str,
    item_id: str,
    change: FieldChange,
    registry: DraftRegistryDep,
    owner_scope: OwnerScopeDep,
):
    """Champ de ligne; une ligne inconnue laisse le brouillon inchangé."""
    try:
        session = registry.get(owner_scope, draft_id)
        session.editor.edit_item(item_id, change.field, change.value)
        return draft_view(session)
    except QuotationDomainException as e:
        raise _domain_error(e)


@router.delete("/{draft_id}/items/{item_id}", response_model=DraftView)
async def remove_draft_item(draft_id: str, item_id: str, registry: DraftRegistryDep, owner_scope: OwnerScopeDep):
    """Supprime la ligne, sauf la dernière restante."""
    try:
        session = registry.get(owner_scope, draft_id)
        session.editor.remove_item(item_id)
        return draft_view(session)
    except QuotationDomainException as e:
        raise _domain_error(e)


@router.post("/{draft_id}/save", response_model=DraftView)
async def save_draft(
    draft_id: str,
    quotation_service: QuotationServiceDep,
    registry: DraftRegistryDep,
    owner_scope: OwnerScopeDep,
):
    """Enregistre le brouillon; il reste ouvert pour la suite de l'édition."""
    logger.info(f"API save_draft: ID={draft_id} pour '{owner_scope}'")
    try:
        session = registry.get(owner_scope, draft_id, service=quotation_service)
        await session.save()
        return draft_view(session)
    except QuotationDomainException as e:
        raise _domain_error(e)
    except Exception as e:
        logger.error(f"Erreur API save_draft {draft_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne sauvegarde brouillon.")


@router.delete("/{draft_id}", response_model=DeleteResponse)
async def close_draft(
    draft_id: str,
    quotation_service: QuotationServiceDep,
    registry: DraftRegistryDep,
    owner_scope: OwnerScopeDep,
    delete_quotation: bool = Query(False, description="Supprime aussi le devis enregistré"),
):
    """Abandonne le brouillon; avec `delete_quotation`, supprime aussi le devis stocké."""
    logger.info(f"API close_draft: ID={draft_id}, suppression={delete_quotation} pour '{owner_scope}'")
    try:
        session = registry.get(owner_scope, draft_id, service=quotation_service)
        if delete_quotation:
            await session.delete()
        registry.discard(owner_scope, draft_id)
        return DeleteResponse(success=True)
    except QuotationDomainException as e:
        raise _domain_error(e)
    except Exception as e:
        logger.error(f"Erreur API close_draft {draft_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne fermeture brouillon.")
