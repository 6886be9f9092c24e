"""Construction des valeurs par défaut et numérotation des nouveaux devis."""
import logging
import re
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from quotedesk.quotations.formatting import format_display_date
from quotedesk.quotations.models import LineItem, Quotation, QuotationStatus, utc_now

logger = logging.getLogger(__name__)

QUOTATION_NUMBER_PREFIX = "QT"
VALIDITY_DAYS = 30
DEFAULT_TAX_RATE = Decimal("18")
DEFAULT_DISCOUNT = Decimal("0")
DEFAULT_CLIENT_NAME = "New Client"
DEFAULT_TERMS = "Payment due within 30 days. 50% advance required."
DEFAULT_NOTES = "Additional notes or special instructions for the event."

_TRAILING_DIGITS = re.compile(r"(\d+)$")


def create_default_line_item() -> LineItem:
    """Nouvelle ligne vide: id unique, champs numériques à zéro."""
    return LineItem()


def extract_sequence_number(quotation_number: Optional[str]) -> Optional[int]:
    """Numéro de séquence = suite de chiffres finale (None si absente)."""
    if not quotation_number:
        return None
    match = _TRAILING_DIGITS.search(quotation_number.strip())
    return int(match.group(1)) if match else None


def next_sequence_number(existing: Iterable[Quotation]) -> int:
    """Max des séquences existantes + 1; 1 si aucun numéro n'est exploitable."""
    sequences = [
        seq for seq in (extract_sequence_number(q.quotation_number) for q in existing)
        if seq is not None
    ]
    return max(sequences, default=0) + 1


def format_quotation_number(year: int, sequence: int) -> str:
    return f"{QUOTATION_NUMBER_PREFIX}-{year}-{sequence:04d}"


def create_new_quotation(existing: Iterable[Quotation], now: Optional[datetime] = None) -> Quotation:
    """Crée un brouillon non persisté numéroté après les devis existants."""
    now = now or utc_now()
    sequence = next_sequence_number(existing)
    quotation = Quotation(
        client_name=DEFAULT_CLIENT_NAME,
        quotation_number=format_quotation_number(now.year, sequence),
        date_issued=format_display_date(now),
        valid_until=(now + timedelta(days=VALIDITY_DAYS)).date(),
        items=[create_default_line_item()],
        tax_rate=DEFAULT_TAX_RATE,
        discount=DEFAULT_DISCOUNT,
        status=QuotationStatus.DRAFT,
        terms=DEFAULT_TERMS,
        notes=DEFAULT_NOTES,
        created_at=now,
    )
    logger.debug(f"Nouveau brouillon {quotation.quotation_number} (id={quotation.id})")
    return quotation
