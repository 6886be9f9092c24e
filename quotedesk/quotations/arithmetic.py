"""Calculs monétaires des devis.

Fonctions pures: montant de ligne, sous-total, taxe et total général.
Toute saisie numérique invalide (texte, négatif, NaN, None) vaut 0.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Annotated, Any, Iterable, Protocol

from pydantic import BaseModel, BeforeValidator, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TWO_PLACES = Decimal("0.01")
# Au-delà de 10^100, une saisie est traitée comme invalide
MAX_MAGNITUDE = 100


def to_decimal(value: Any) -> Decimal:
    """Convertit une saisie en Decimal positif ou nul (0 si invalide)."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            return ZERO
    else:
        return ZERO

    if not number.is_finite() or number < 0 or number.adjusted() > MAX_MAGNITUDE:
        return ZERO
    return number + ZERO  # -0 -> 0


def round_money(value: Any) -> Decimal:
    """Arrondit à 2 décimales (demi vers le haut), quelle que soit la magnitude."""
    number = Decimal(value)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, number.adjusted() + 3)
        return number.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_money(value: Any) -> Decimal:
    return round_money(to_decimal(value))


def _as_float(value: Decimal) -> float:
    return float(value)


# Quantités: décimales libres. Montants: 2 décimales. Sérialisés en nombres JSON.
Quantity = Annotated[
    Decimal,
    BeforeValidator(to_decimal),
    PlainSerializer(_as_float, return_type=float, when_used="json"),
]
Money = Annotated[
    Decimal,
    BeforeValidator(to_money),
    PlainSerializer(_as_float, return_type=float, when_used="json"),
]


class PricedLine(Protocol):
    qty: Any
    unit_price: Any


class QuotationTotals(BaseModel):
    """Totaux dérivés d'un devis."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    subtotal: Money = ZERO
    tax_amount: Money = ZERO
    grand_total: Money = ZERO


def line_amount(qty: Any, unit_price: Any) -> Decimal:
    """Montant d'une ligne: qty * prix unitaire, arrondi à 2 décimales."""
    return round_money(to_decimal(qty) * to_decimal(unit_price))


def calculate_totals(items: Iterable[PricedLine], tax_rate: Any, discount: Any) -> QuotationTotals:
    """Calcule {subtotal, taxAmount, grandTotal}.

    Le sous-total est la somme des montants de ligne déjà arrondis. La remise
    est appliquée après la taxe et le total général ne descend jamais sous 0.
    """
    subtotal = round_money(sum((line_amount(item.qty, item.unit_price) for item in items), ZERO))
    tax_amount = round_money(subtotal * to_decimal(tax_rate) / HUNDRED)
    grand_total = round_money(max(ZERO, subtotal + tax_amount - to_decimal(discount)))
    return QuotationTotals(subtotal=subtotal, tax_amount=tax_amount, grand_total=grand_total)
