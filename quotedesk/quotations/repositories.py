import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastcrud import FastCRUD
from pydantic import ValidationError
from sqlalchemy import Column, JSON, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import Field, SQLModel

from quotedesk.quotations.exceptions import StoreUnavailableException
from quotedesk.quotations.interfaces.repositories import BroadcastingQuotationRepository
from quotedesk.quotations.models import Quotation, QuotationStatus
from quotedesk.quotations.subscriptions import SnapshotBroadcaster

logger = logging.getLogger(__name__)


class QuotationRecordBase(SQLModel):
    """Colonnes indexables + document JSON complet du devis."""

    id: str = Field(primary_key=True, max_length=64)
    owner_scope: str = Field(primary_key=True, max_length=128, index=True)
    quotation_number: str = Field(default="", max_length=64, index=True)
    client_name: str = Field(default="", max_length=255)
    status: str = Field(default=QuotationStatus.DRAFT.value, max_length=20)
    grand_total: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    created_at: Optional[datetime] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)
    document: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))


class QuotationRecord(QuotationRecordBase, table=True):
    __tablename__ = "quotations"


class QuotationRecordCreate(QuotationRecordBase):
    pass


def _record_values(owner_scope: str, quotation: Quotation, document: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": quotation.id,
        "owner_scope": owner_scope,
        "quotation_number": quotation.quotation_number,
        "client_name": quotation.client_name,
        "status": quotation.status.value,
        "grand_total": quotation.grand_total,
        "created_at": quotation.created_at,
        "updated_at": quotation.updated_at,
        "document": document,
    }


class SQLModelQuotationRepository(BroadcastingQuotationRepository):
    """Implémentation SQLAlchemy: une ligne par devis, document JSON en colonne."""

    def __init__(self, db_session: AsyncSession, broadcaster: Optional[SnapshotBroadcaster] = None):
        super().__init__(broadcaster)
        self.db = db_session
        self.crud = FastCRUD(QuotationRecord)

    @staticmethod
    def _to_quotation(document: Dict[str, Any]) -> Optional[Quotation]:
        try:
            return Quotation.model_validate(document)
        except ValidationError as e:
            logger.warning(f"[SQLQuotationRepo] Document {document.get('id')} ignoré (invalide): {e}")
            return None

    async def list_quotations(self, *, owner_scope: str) -> List[Quotation]:
        # Sélection de colonne: évite les objets périmés de l'identity map
        statement = (
            select(QuotationRecord.document)
            .where(QuotationRecord.owner_scope == owner_scope)
            .order_by(QuotationRecord.created_at)
        )
        try:
            result = await self.db.execute(statement)
            documents = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"[SQLQuotationRepo] Erreur DB lors du listage ({owner_scope}): {e}", exc_info=True)
            raise StoreUnavailableException("list", str(e))
        quotations = [self._to_quotation(document) for document in documents]
        return [quotation for quotation in quotations if quotation is not None]

    async def get_by_id(self, *, owner_scope: str, quotation_id: str) -> Optional[Quotation]:
        try:
            row = await self.crud.get(self.db, id=quotation_id, owner_scope=owner_scope)
        except SQLAlchemyError as e:
            logger.error(f"[SQLQuotationRepo] Erreur DB lecture devis {quotation_id}: {e}", exc_info=True)
            raise StoreUnavailableException("get", str(e))
        if not row:
            logger.debug(f"[SQLQuotationRepo] Devis {quotation_id} non trouvé pour '{owner_scope}'.")
            return None
        return self._to_quotation(row["document"])

    async def upsert(self, *, owner_scope: str, quotation: Quotation) -> Quotation:
        try:
            row = await self.crud.get(self.db, id=quotation.id, owner_scope=owner_scope)
            if row:
                created_at = row["document"].get("createdAt") or quotation.to_document()["createdAt"]
                stored = quotation.with_changes(created_at=created_at)
                values = _record_values(owner_scope, stored, stored.to_document())
                del values["id"], values["owner_scope"]
                await self.crud.update(self.db, values, id=quotation.id, owner_scope=owner_scope)
                logger.info(f"[SQLQuotationRepo] Devis {quotation.id} mis à jour pour '{owner_scope}'.")
            else:
                stored = quotation
                record = QuotationRecordCreate(**_record_values(owner_scope, stored, stored.to_document()))
                await self.crud.create(self.db, record)
                logger.info(f"[SQLQuotationRepo] Devis {quotation.id} créé pour '{owner_scope}'.")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[SQLQuotationRepo] Erreur DB écriture devis {quotation.id}: {e}", exc_info=True)
            raise StoreUnavailableException("upsert", str(e))

        await self._publish(owner_scope)
        return stored

    async def delete(self, *, owner_scope: str, quotation_id: str) -> bool:
        try:
            exists = await self.crud.exists(self.db, id=quotation_id, owner_scope=owner_scope)
            if not exists:
                logger.info(f"[SQLQuotationRepo] Devis {quotation_id} déjà absent, rien à supprimer.")
                return False
            await self.crud.delete(self.db, id=quotation_id, owner_scope=owner_scope)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[SQLQuotationRepo] Erreur DB suppression devis {quotation_id}: {e}", exc_info=True)
            raise StoreUnavailableException("delete", str(e))

        logger.info(f"[SQLQuotationRepo] Devis {quotation_id} supprimé pour '{owner_scope}'.")
        await self._publish(owner_scope)
        return True
