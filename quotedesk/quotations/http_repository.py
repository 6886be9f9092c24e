import logging
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from quotedesk.quotations.exceptions import StoreUnavailableException
from quotedesk.quotations.interfaces.repositories import AbstractQuotationRepository
from quotedesk.quotations.models import Quotation

logger = logging.getLogger(__name__)


class HttpQuotationRepository(AbstractQuotationRepository):
    """Client du service REST de devis (GET/POST/PUT/DELETE /quotations).

    `base_url` pointe sur le préfixe de l'API, ex: http://localhost:8000/api/v1.
    Pas de notification côté serveur: les abonnements interrogent périodiquement.
    """

    def __init__(self, base_url: str = "", *, client: Optional[httpx.AsyncClient] = None,
                 owner_scope_header: str = "X-Owner-Scope", timeout: float = 10.0,
                 poll_interval: float = 5.0):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.owner_scope_header = owner_scope_header
        self.poll_interval = poll_interval

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    async def _request(self, method: str, path: str, owner_scope: str, **kwargs: Any) -> httpx.Response:
        headers = {self.owner_scope_header: owner_scope}
        try:
            response = await self.client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[HttpQuotationRepo] {method} {path} injoignable: {e}")
            raise StoreUnavailableException(f"{method} {path}", str(e) or type(e).__name__)

        if response.status_code in (401, 403) or response.status_code >= 500:
            logger.error(f"[HttpQuotationRepo] {method} {path} refusé: HTTP {response.status_code}")
            raise StoreUnavailableException(f"{method} {path}", f"HTTP {response.status_code}")
        return response

    @staticmethod
    def _raise_for_client_error(response: httpx.Response, operation: str):
        if response.is_error:
            raise StoreUnavailableException(operation, f"HTTP {response.status_code}: {response.text}")

    @staticmethod
    def _json(response: httpx.Response, operation: str) -> Any:
        """Corps JSON de la réponse; un corps illisible rend le stockage indisponible."""
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"[HttpQuotationRepo] Réponse non JSON pour '{operation}': {e}")
            raise StoreUnavailableException(operation, "réponse du serveur illisible")

    @staticmethod
    def _to_quotation(document: Any) -> Optional[Quotation]:
        try:
            return Quotation.model_validate(document)
        except ValidationError as e:
            logger.warning(f"[HttpQuotationRepo] Document reçu ignoré (invalide): {e}")
            return None

    async def list_quotations(self, *, owner_scope: str) -> List[Quotation]:
        response = await self._request("GET", "/quotations", owner_scope)
        self._raise_for_client_error(response, "list")
        documents = self._json(response, "list")
        if not isinstance(documents, list):
            raise StoreUnavailableException("list", "réponse du serveur illisible")
        quotations = [self._to_quotation(document) for document in documents]
        return [quotation for quotation in quotations if quotation is not None]

    async def get_by_id(self, *, owner_scope: str, quotation_id: str) -> Optional[Quotation]:
        response = await self._request("GET", f"/quotations/{quotation_id}", owner_scope)
        if response.status_code == 404:
            return None
        self._raise_for_client_error(response, "get")
        return self._to_quotation(self._json(response, "get"))

    async def upsert(self, *, owner_scope: str, quotation: Quotation) -> Quotation:
        document = quotation.to_document()
        response = await self._request("PUT", f"/quotations/{quotation.id}", owner_scope, json=document)
        if response.status_code == 404:
            logger.debug(f"[HttpQuotationRepo] Devis {quotation.id} absent du serveur, création.")
            response = await self._request("POST", "/quotations", owner_scope, json=document)
        self._raise_for_client_error(response, "upsert")
        stored = self._to_quotation(self._json(response, "upsert"))
        if stored is None:
            raise StoreUnavailableException("upsert", "réponse du serveur illisible")
        return stored

    async def delete(self, *, owner_scope: str, quotation_id: str) -> bool:
        # Le serveur répond {"success": true} que le devis ait existé ou non
        response = await self._request("DELETE", f"/quotations/{quotation_id}", owner_scope)
        self._raise_for_client_error(response, "delete")
        body = self._json(response, "delete")
        return bool(body.get("success", True)) if isinstance(body, dict) else True
