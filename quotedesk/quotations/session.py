"""Session d'édition: relie un éditeur de brouillon au service de stockage.

Une seule écriture à la fois par devis: une seconde sauvegarde (ou une
suppression) demandée pendant qu'une écriture est en vol est refusée.
Un échec laisse le brouillon intact; l'utilisateur peut relancer.
"""
import logging

from quotedesk.quotations.editor import QuotationEditor
from quotedesk.quotations.exceptions import (
    EditorClosedException,
    QuotationDomainException,
    QuotationSaveInProgressException,
)
from quotedesk.quotations.models import Quotation
from quotedesk.quotations.service import QuotationService

logger = logging.getLogger(__name__)


class EditorSession:

    def __init__(self, editor: QuotationEditor, service: QuotationService, owner_scope: str):
        self.editor = editor
        self.service = service
        self.owner_scope = owner_scope
        self._pending = False

    @property
    def is_pending(self) -> bool:
        return self._pending

    def _ensure_idle(self):
        if self._pending:
            raise QuotationSaveInProgressException(self.editor.draft.id)

    async def save(self) -> Quotation:
        self._ensure_idle()
        prepared = self.editor.prepare_for_save()
        revision = self.editor.revision
        self._pending = True
        try:
            saved = await self.service.save_quotation(self.owner_scope, prepared)
        except QuotationDomainException as e:
            logger.error(f"[EditorSession] Échec sauvegarde devis {prepared.id}: {e}")
            raise
        finally:
            self._pending = False

        if not self.editor.closed:
            self.editor.mark_saved(saved, revision)
        return saved

    async def delete(self) -> bool:
        self._ensure_idle()
        if self.editor.closed:
            raise EditorClosedException(self.editor.draft.id)
        quotation_id = self.editor.draft.id
        self._pending = True
        try:
            deleted = await self.service.delete_quotation(self.owner_scope, quotation_id)
        except QuotationDomainException as e:
            logger.error(f"[EditorSession] Échec suppression devis {quotation_id}: {e}")
            raise
        finally:
            self._pending = False

        self.editor.close()
        logger.info(f"[EditorSession] Devis {quotation_id} supprimé, éditeur fermé.")
        return deleted
