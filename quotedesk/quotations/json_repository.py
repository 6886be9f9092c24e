import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from quotedesk.quotations.exceptions import StoreUnavailableException
from quotedesk.quotations.interfaces.repositories import BroadcastingQuotationRepository
from quotedesk.quotations.models import Quotation
from quotedesk.quotations.subscriptions import SnapshotBroadcaster

logger = logging.getLogger(__name__)

OWNER_KEY = "ownerScope"
# Horodatages écrits en snake_case par l'ancien serveur Express
LEGACY_TIMESTAMP_KEYS = ("created_at", "updated_at")


class JsonFileQuotationRepository(BroadcastingQuotationRepository):
    """Stockage dans un fichier JSON plat: {"quotations": [...]}.

    Chaque enregistrement porte la clé `ownerScope`. Les enregistrements sans
    cette clé (fichiers hérités) appartiennent à `legacy_owner_scope`.
    """

    def __init__(self, path: Union[str, Path], broadcaster: Optional[SnapshotBroadcaster] = None,
                 legacy_owner_scope: Optional[str] = None):
        super().__init__(broadcaster)
        self.path = Path(path)
        self.legacy_owner_scope = legacy_owner_scope
        self._lock = asyncio.Lock()

    # --- Accès fichier (exécuté hors boucle via to_thread) ---

    def _read_db(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"quotations": []}
        try:
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw) if raw.strip() else {"quotations": []}
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"[JsonQuotationRepo] Lecture impossible de {self.path}: {e}", exc_info=True)
            raise StoreUnavailableException("read", str(e))
        if not isinstance(data, dict) or not isinstance(data.get("quotations"), list):
            raise StoreUnavailableException("read", f"format inattendu dans {self.path}")
        return data

    def _write_db(self, data: Dict[str, Any]):
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"[JsonQuotationRepo] Écriture impossible de {self.path}: {e}", exc_info=True)
            raise StoreUnavailableException("write", str(e))

    def _belongs(self, record: Dict[str, Any], owner_scope: str) -> bool:
        return record.get(OWNER_KEY, self.legacy_owner_scope) == owner_scope

    def _find_index(self, records: List[Dict[str, Any]], owner_scope: str, quotation_id: str) -> int:
        for index, record in enumerate(records):
            if record.get("id") == quotation_id and self._belongs(record, owner_scope):
                return index
        return -1

    @staticmethod
    def _to_quotation(record: Dict[str, Any]) -> Optional[Quotation]:
        try:
            return Quotation.model_validate(record)
        except ValidationError as e:
            logger.warning(f"[JsonQuotationRepo] Enregistrement {record.get('id')} ignoré (invalide): {e}")
            return None

    # --- Contrat du repository ---

    async def list_quotations(self, *, owner_scope: str) -> List[Quotation]:
        data = await asyncio.to_thread(self._read_db)
        quotations = []
        for record in data["quotations"]:
            if isinstance(record, dict) and self._belongs(record, owner_scope):
                quotation = self._to_quotation(record)
                if quotation is not None:
                    quotations.append(quotation)
        logger.debug(f"[JsonQuotationRepo] {len(quotations)} devis listés pour '{owner_scope}'.")
        return quotations

    async def get_by_id(self, *, owner_scope: str, quotation_id: str) -> Optional[Quotation]:
        data = await asyncio.to_thread(self._read_db)
        index = self._find_index(data["quotations"], owner_scope, quotation_id)
        if index == -1:
            logger.debug(f"[JsonQuotationRepo] Devis {quotation_id} non trouvé pour '{owner_scope}'.")
            return None
        return self._to_quotation(data["quotations"][index])

    async def upsert(self, *, owner_scope: str, quotation: Quotation) -> Quotation:
        document = quotation.to_document()
        async with self._lock:
            data = await asyncio.to_thread(self._read_db)
            records = data["quotations"]
            index = self._find_index(records, owner_scope, quotation.id)
            if index == -1:
                stored = {**document, OWNER_KEY: owner_scope}
                records.append(stored)
                logger.info(f"[JsonQuotationRepo] Devis {quotation.id} créé pour '{owner_scope}'.")
            else:
                existing = records[index]
                created_at = existing.get("createdAt") or existing.get("created_at") or document["createdAt"]
                stored = {
                    key: value for key, value in existing.items()
                    if key not in LEGACY_TIMESTAMP_KEYS
                }
                stored.update(document)
                stored.update({"createdAt": created_at, OWNER_KEY: owner_scope})
                records[index] = stored
                logger.info(f"[JsonQuotationRepo] Devis {quotation.id} mis à jour pour '{owner_scope}'.")
            await asyncio.to_thread(self._write_db, data)

        await self._publish(owner_scope)
        return Quotation.model_validate(stored)

    async def delete(self, *, owner_scope: str, quotation_id: str) -> bool:
        async with self._lock:
            data = await asyncio.to_thread(self._read_db)
            records = data["quotations"]
            remaining = [
                record for record in records
                if not (record.get("id") == quotation_id and self._belongs(record, owner_scope))
            ]
            if len(remaining) == len(records):
                logger.info(f"[JsonQuotationRepo] Devis {quotation_id} déjà absent, rien à supprimer.")
                return False
            data["quotations"] = remaining
            await asyncio.to_thread(self._write_db, data)

        logger.info(f"[JsonQuotationRepo] Devis {quotation_id} supprimé pour '{owner_scope}'.")
        await self._publish(owner_scope)
        return True
