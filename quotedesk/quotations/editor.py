"""Éditeur de brouillon: surface de mutation en mémoire d'un seul devis.

Chaque mutation construit un nouveau `Quotation` immuable à partir du
précédent et d'un patch de champ. Les totaux ne sont jamais patchés: ils sont
recalculés à la lecture (`totals`) et matérialisés seulement à la sauvegarde.
"""
import logging
from typing import Any, Dict, Optional

from quotedesk.quotations.arithmetic import QuotationTotals, to_decimal
from quotedesk.quotations.exceptions import (
    EditorClosedException,
    InvalidQuotationFieldException,
    InvalidQuotationStatusException,
)
from quotedesk.quotations.factory import create_default_line_item
from quotedesk.quotations.models import LineItem, Quotation, QuotationStatus, parse_date

logger = logging.getLogger(__name__)

TEXT_HEADER_FIELDS = (
    "client_name", "company_name", "address", "contact_number",
    "quotation_number", "terms", "notes",
)
NUMERIC_HEADER_FIELDS = ("tax_rate", "discount")
ITEM_NUMERIC_FIELDS = ("qty", "unit_price")
ITEM_TEXT_FIELDS = ("requirement", "remark")

# Champs stampés par le stockage, repris après une sauvegarde
SERVER_STAMPED_FIELDS = ("date_issued", "created_at", "updated_at")

ALLOWED_STATUSES = [status.value for status in QuotationStatus]


def _field_name(name: str, model: type) -> str:
    """Accepte le nom Python ou l'alias camelCase (clientName, unitPrice...)."""
    if name in model.model_fields:
        return name
    for field_name, info in model.model_fields.items():
        if info.alias == name:
            return field_name
    return name


class QuotationEditor:
    """Détient un devis en cours d'édition (aucune persistance avant sauvegarde)."""

    def __init__(self, quotation: Quotation):
        self._draft = quotation
        self._revision = 0
        self._closed = False

    @property
    def draft(self) -> Quotation:
        return self._draft

    @property
    def revision(self) -> int:
        """Compteur incrémenté à chaque mutation effective."""
        return self._revision

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def totals(self) -> QuotationTotals:
        return self._draft.calculate_totals()

    def _ensure_open(self):
        if self._closed:
            raise EditorClosedException(self._draft.id)

    def _replace(self, quotation: Quotation):
        self._draft = quotation
        self._revision += 1

    # --- En-tête ---

    def set_field(self, name: str, value: Any) -> Quotation:
        """Met à jour un champ d'en-tête. Les champs numériques invalides valent 0."""
        self._ensure_open()
        field = _field_name(name, Quotation)

        if field in NUMERIC_HEADER_FIELDS:
            new_value = to_decimal(value)
        elif field in TEXT_HEADER_FIELDS:
            new_value = "" if value is None else str(value)
        elif field == "status":
            return self.set_status(value)
        elif field == "valid_until":
            new_value = parse_date(value)
            if new_value is None and value not in (None, ""):
                raise InvalidQuotationFieldException(name, f"date illisible '{value}'")
        else:
            raise InvalidQuotationFieldException(name, "champ non modifiable")

        self._replace(self._draft.with_changes(**{field: new_value}))
        return self._draft

    def set_status(self, status: Any) -> Quotation:
        """Change le statut. Toute valeur connue est acceptée depuis n'importe quel statut."""
        self._ensure_open()
        try:
            new_status = QuotationStatus(status)
        except ValueError:
            raise InvalidQuotationStatusException(str(status), ALLOWED_STATUSES)
        self._replace(self._draft.with_changes(status=new_status))
        return self._draft

    # --- Lignes ---

    def edit_item(self, item_id: str, field: str, value: Any) -> Quotation:
        """Modifie un champ de ligne; sans effet si `item_id` est inconnu."""
        self._ensure_open()
        name = _field_name(field, LineItem)
        if name in ITEM_NUMERIC_FIELDS:
            new_value = to_decimal(value)
        elif name in ITEM_TEXT_FIELDS:
            new_value = "" if value is None else str(value)
        else:
            raise InvalidQuotationFieldException(field, "champ de ligne non modifiable")

        if not any(item.id == item_id for item in self._draft.items):
            logger.debug(f"[QuotationEditor] Ligne {item_id} introuvable, modification ignorée.")
            return self._draft

        items = []
        for item in self._draft.items:
            if item.id == item_id:
                data = item.model_dump()
                data[name] = new_value
                item = LineItem.model_validate(data)
            items.append(item)
        self._replace(self._draft.with_changes(items=items))
        return self._draft

    def add_item(self) -> LineItem:
        """Ajoute une ligne par défaut en fin de devis."""
        self._ensure_open()
        item = create_default_line_item()
        self._replace(self._draft.with_changes(items=[*self._draft.items, item]))
        return item

    def remove_item(self, item_id: str) -> bool:
        """Supprime une ligne sauf s'il s'agit de la dernière restante."""
        self._ensure_open()
        remaining = [item for item in self._draft.items if item.id != item_id]
        if not remaining or len(remaining) == len(self._draft.items):
            return False
        self._replace(self._draft.with_changes(items=remaining))
        return True

    # --- Sauvegarde / suppression ---

    def prepare_for_save(self) -> Quotation:
        """Brouillon avec totaux matérialisés, prêt pour l'écriture."""
        self._ensure_open()
        return self._draft.with_totals()

    def mark_saved(self, saved: Quotation, revision_at_save: Optional[int] = None):
        """Adopte la version stockée, ou seulement ses tampons si le brouillon a changé entretemps."""
        if revision_at_save is None or revision_at_save == self._revision:
            self._draft = saved
            return
        stamps: Dict[str, Any] = {name: getattr(saved, name) for name in SERVER_STAMPED_FIELDS}
        self._draft = self._draft.with_changes(**stamps)

    def close(self):
        self._closed = True
