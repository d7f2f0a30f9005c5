"""
Currency formatting shared by API responses and logs.

IDR has no minor unit and id-ID groups thousands with ".", so 70000 renders
as "Rp 70.000".
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Union


def format_idr(amount: Union[int, Decimal, float]) -> str:
    value = int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    sign = "-" if value < 0 else ""
    grouped = f"{abs(value):,}".replace(",", ".")
    return f"{sign}Rp {grouped}"
