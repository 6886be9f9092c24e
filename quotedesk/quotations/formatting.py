"""Formats d'affichage: dates en-GB (dd/mm/yyyy), montants en-IN (1,23,456.00)."""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Union

from quotedesk.quotations.arithmetic import round_money


def format_display_date(value: Optional[Union[date, datetime]]) -> str:
    if value is None:
        return ""
    return value.strftime("%d/%m/%Y")


def _group_indian(digits: str) -> str:
    # 3 derniers chiffres, puis groupes de 2: 12345678 -> 1,23,45,678
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_money(amount: Any, symbol: str = "") -> str:
    """Montant à 2 décimales avec regroupement indien des milliers."""
    value = round_money(amount if isinstance(amount, Decimal) else Decimal(str(amount or 0)))
    sign = "-" if value < 0 else ""
    integer_part, _, fraction = f"{abs(value):.2f}".partition(".")
    return f"{sign}{symbol}{_group_indian(integer_part)}.{fraction}"
