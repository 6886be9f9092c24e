import logging
from typing import List

from fastapi import APIRouter, HTTPException, Response, status

from quotedesk.pdf.dependencies import PDFGeneratorDep
from quotedesk.pdf.exceptions import PDFGenerationException
from quotedesk.quotations.dependencies import OwnerScopeDep, QuotationServiceDep
from quotedesk.quotations.exceptions import (
    InvalidQuotationFieldException,
    InvalidQuotationStatusException,
    QuotationNotFoundException,
    StoreUnavailableException,
)
from quotedesk.quotations.models import DeleteResponse, Quotation, QuotationCreate, QuotationUpdate

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/quotations",
    tags=["Quotations"]
)


def _unavailable(e: StoreUnavailableException) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


@router.get("", response_model=List[Quotation])
async def list_quotations(quotation_service: QuotationServiceDep, owner_scope: OwnerScopeDep):
    """Liste tous les devis du propriétaire."""
    logger.info(f"API list_quotations pour '{owner_scope}'")
    try:
        return await quotation_service.list_quotations(owner_scope)
    except StoreUnavailableException as e:
        raise _unavailable(e)
    except Exception as e:
        logger.error(f"Erreur API list_quotations pour '{owner_scope}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne listage devis.")


@router.get("/draft", response_model=Quotation)
async def new_draft(quotation_service: QuotationServiceDep, owner_scope: OwnerScopeDep):
    """Brouillon par défaut, numéroté mais non enregistré."""
    try:
        return await quotation_service.new_draft(owner_scope)
    except StoreUnavailableException as e:
        raise _unavailable(e)
    except Exception as e:
        logger.error(f"Erreur API new_draft pour '{owner_scope}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne brouillon.")


@router.get("/{quotation_id}", response_model=Quotation)
async def read_quotation(quotation_id: str, quotation_service: QuotationServiceDep, owner_scope: OwnerScopeDep):
    logger.info(f"API read_quotation: ID={quotation_id} pour '{owner_scope}'")
    try:
        return await quotation_service.get_quotation(owner_scope, quotation_id)
    except QuotationNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except StoreUnavailableException as e:
        raise _unavailable(e)
    except Exception as e:
        logger.error(f"Erreur API read_quotation {quotation_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne récupération devis.")


@router.post("", response_model=Quotation, status_code=status.HTTP_201_CREATED)
async def create_quotation(
    quotation_request: QuotationCreate,
    quotation_service: QuotationServiceDep,
    owner_scope: OwnerScopeDep,
):
    """Crée un devis. L'id fourni par le client est conservé."""
    logger.info(f"API create_quotation pour '{owner_scope}'")
    try:
        return await quotation_service.create_quotation(owner_scope, quotation_request)
    except (InvalidQuotationFieldException, InvalidQuotationStatusException) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except StoreUnavailableException as e:
        raise _unavailable(e)
    except Exception as e:
        logger.error(f"Erreur API create_quotation pour '{owner_scope}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne création devis.")


@router.put("/{quotation_id}", response_model=Quotation)
async def update_quotation(
    quotation_id: str,
    quotation_update: QuotationUpdate,
    quotation_service: QuotationServiceDep,
    owner_scope: OwnerScopeDep,
):
    """Fusionne les champs fournis dans le devis existant."""
    logger.info(f"API update_quotation: ID={quotation_id} pour '{owner_scope}'")
    try:
        return await quotation_service.update_quotation(owner_scope, quotation_id, quotation_update)
    except QuotationNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except (InvalidQuotationFieldException, InvalidQuotationStatusException) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except StoreUnavailableException as e:
        raise _unavailable(e)
    except Exception as e:
        logger.error(f"Erreur API update_quotation {quotation_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne mise à jour devis.")


@router.delete("/{quotation_id}", response_model=DeleteResponse)
async def delete_quotation(quotation_id: str, quotation_service: QuotationServiceDep, owner_scope: OwnerScopeDep):
    """Suppression idempotente: succès même si le devis n'existe plus."""
    logger.info(f"API delete_quotation: ID={quotation_id} pour '{owner_scope}'")
    try:
        await quotation_service.delete_quotation(owner_scope, quotation_id)
        return DeleteResponse(success=True)
    except StoreUnavailableException as e:
        raise _unavailable(e)
    except Exception as e:
        logger.error(f"Erreur API delete_quotation {quotation_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne suppression devis.")


@router.get("/{quotation_id}/pdf")
async def download_quotation_pdf(
    quotation_id: str,
    quotation_service: QuotationServiceDep,
    pdf_generator: PDFGeneratorDep,
    owner_scope: OwnerScopeDep,
):
    """Télécharge le devis au format PDF."""
    logger.info(f"API download_quotation_pdf: ID={quotation_id} pour '{owner_scope}'")
    try:
        quotation = await quotation_service.get_quotation(owner_scope, quotation_id)
        pdf_bytes = await pdf_generator.generate_quotation_pdf(quotation)
    except QuotationNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except StoreUnavailableException as e:
        raise _unavailable(e)
    except PDFGenerationException as e:
        logger.error(f"Erreur génération PDF devis {quotation_id}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne génération PDF.")

    filename = f"{quotation.quotation_number or quotation.id}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
