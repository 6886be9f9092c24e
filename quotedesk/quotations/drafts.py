"""Brouillons ouverts côté serveur.

Un brouillon est une `EditorSession` identifiée par l'id de son devis et
rangée par propriétaire. Il vit en mémoire du processus jusqu'à son abandon
ou la suppression du devis.
"""
import logging
from typing import Dict, Optional, Tuple

from quotedesk.quotations.editor import QuotationEditor
from quotedesk.quotations.exceptions import DraftNotFoundException
from quotedesk.quotations.models import DraftView, Quotation
from quotedesk.quotations.service import QuotationService
from quotedesk.quotations.session import EditorSession

logger = logging.getLogger(__name__)


def draft_view(session: EditorSession) -> DraftView:
    editor = session.editor
    return DraftView(
        draft=editor.draft,
        totals=editor.totals,
        revision=editor.revision,
        pending=session.is_pending,
    )


class DraftRegistry:

    def __init__(self):
        self._sessions: Dict[Tuple[str, str], EditorSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def open(self, owner_scope: str, quotation: Quotation, service: QuotationService) -> EditorSession:
        """Ouvre un brouillon; un brouillon déjà ouvert pour ce devis est repris tel quel."""
        key = (owner_scope, quotation.id)
        session = self._sessions.get(key)
        if session is not None and not session.editor.closed:
            logger.info(f"[DraftRegistry] Reprise du brouillon {quotation.id} pour '{owner_scope}'.")
            session.service = service
            return session

        session = EditorSession(QuotationEditor(quotation), service, owner_scope)
        self._sessions[key] = session
        logger.info(f"[DraftRegistry] Brouillon {quotation.id} ouvert pour '{owner_scope}'.")
        return session

    def get(self, owner_scope: str, draft_id: str,
            service: Optional[QuotationService] = None) -> EditorSession:
        """Brouillon ouvert; `service` remplace celui de la requête précédente."""
        session = self._sessions.get((owner_scope, draft_id))
        if session is None or session.editor.closed:
            raise DraftNotFoundException(draft_id)
        if service is not None:
            session.service = service
        return session

    def discard(self, owner_scope: str, draft_id: str) -> bool:
        """Ferme et oublie le brouillon, sans toucher au stockage."""
        session = self._sessions.pop((owner_scope, draft_id), None)
        if session is None:
            return False
        session.editor.close()
        logger.info(f"[DraftRegistry] Brouillon {draft_id} abandonné pour '{owner_scope}'.")
        return True
