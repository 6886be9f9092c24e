import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from quotedesk.quotations.arithmetic import (
    Money,
    Quantity,
    QuotationTotals,
    calculate_totals,
    line_amount,
    to_money,
)

# Champs calculés: jamais acceptés depuis un patch, toujours recalculés
DERIVED_FIELDS = ("subtotal", "tax_amount", "grand_total")


def new_identifier() -> str:
    """Identifiant opaque unique (UUID4)."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Horodatage tolérant: None pour toute valeur absente ou illisible."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # Epoch en millisecondes (format JavaScript)
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value: Any) -> Optional[date]:
    """Date ISO (yyyy-mm-dd) ou affichée (dd/mm/yyyy); None si illisible."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
            try:
                return datetime.strptime(value.strip()[:10], fmt).date()
            except ValueError:
                continue
    return None


class QuotationStatus(str, enum.Enum):
    """Statut d'un devis. Aucune transition n'est imposée entre ces valeurs."""

    DRAFT = "Draft"
    PENDING = "Pending"
    ACCEPTED = "Accepted"


class CamelModel(BaseModel):
    """Base des documents: attributs snake_case, format JSON camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class LineItem(CamelModel):
    """Ligne de devis. Le montant est toujours dérivé de qty * unitPrice."""

    id: str = Field(default_factory=new_identifier)
    requirement: str = ""
    qty: Quantity = Decimal("0")
    unit_price: Money = Decimal("0.00")
    remark: str = ""
    amount: Money = Decimal("0.00")

    @model_validator(mode="before")
    @classmethod
    def _derive_amount(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            qty = data.get("qty")
            # Le prix est arrondi avant le calcul du montant
            unit_price = to_money(data.get("unit_price", data.get("unitPrice")))
            data.pop("unitPrice", None)
            data["unit_price"] = unit_price
            data["amount"] = line_amount(qty, unit_price)
        return data


class Quotation(CamelModel):
    """Devis: en-tête client, lignes, taxe, remise, statut et totaux matérialisés."""

    id: str = Field(default_factory=new_identifier)
    client_name: str = ""
    company_name: str = ""
    address: str = ""
    contact_number: str = ""
    quotation_number: str = ""
    date_issued: str = ""
    valid_until: Optional[date] = None
    items: List[LineItem] = Field(default_factory=lambda: [LineItem()], min_length=1)
    tax_rate: Quantity = Decimal("18")
    discount: Money = Decimal("0.00")
    status: QuotationStatus = QuotationStatus.DRAFT
    terms: str = ""
    notes: str = ""

    subtotal: Money = Decimal("0.00")
    tax_amount: Money = Decimal("0.00")
    grand_total: Money = Decimal("0.00")

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _lenient_timestamp(cls, value: Any) -> Optional[datetime]:
        return parse_timestamp(value)

    @field_validator("valid_until", mode="before")
    @classmethod
    def _lenient_date(cls, value: Any) -> Optional[date]:
        return parse_date(value)

    @field_validator("client_name", "company_name", "address", "contact_number",
                     "quotation_number", "date_issued", "terms", "notes", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    def calculate_totals(self) -> QuotationTotals:
        return calculate_totals(self.items, self.tax_rate, self.discount)

    def with_changes(self, **changes: Any) -> "Quotation":
        """Nouveau devis = valeur courante + patch (revalidé)."""
        data = self.model_dump()
        data.update(changes)
        return Quotation.model_validate(data)

    def with_totals(self) -> "Quotation":
        """Copie dont subtotal/taxAmount/grandTotal sont recalculés."""
        return self.with_changes(**self.calculate_totals().model_dump())

    def to_document(self) -> Dict[str, Any]:
        """Représentation JSON plate (camelCase) pour la persistance."""
        return self.model_dump(mode="json", by_alias=True)


class QuotationUpdate(BaseModel):
    """Patch partiel d'un devis (PUT). Seuls les champs fournis sont appliqués."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    client_name: Optional[str] = None
    company_name: Optional[str] = None
    address: Optional[str] = None
    contact_number: Optional[str] = None
    quotation_number: Optional[str] = None
    date_issued: Optional[str] = None
    valid_until: Optional[date] = None
    items: Optional[Annotated[List[LineItem], Field(min_length=1)]] = None
    tax_rate: Optional[Quantity] = None
    discount: Optional[Money] = None
    status: Optional[QuotationStatus] = None
    terms: Optional[str] = None
    notes: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        """Champs explicitement fournis, sans les valeurs dérivées."""
        data = self.model_dump(exclude_unset=True)
        return {
            name: value for name, value in data.items()
            if value is not None or name == "valid_until"
        }


class QuotationCreate(QuotationUpdate):
    """Création (POST): un id fourni par le client est conservé."""

    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _lenient_timestamp(cls, value: Any) -> Optional[datetime]:
        return parse_timestamp(value)


class DeleteResponse(BaseModel):
    success: bool = True


# --- Brouillons ---

class DraftOpenRequest(BaseModel):
    """Ouverture d'un brouillon: devis existant, ou nouveau devis si `quotationId` est absent."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    quotation_id: Optional[str] = None


class FieldChange(BaseModel):
    """Modification d'un champ: nom Python ou camelCase, valeur brute saisie."""

    field: str
    value: Any = None


class DraftView(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    draft: Quotation
    totals: QuotationTotals
    revision: int = 0
    pending: bool = False
