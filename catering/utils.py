from __future__ import annotations

from datetime import datetime, date, timezone
from decimal import Decimal, ROUND_HALF_EVEN, ROUND_HALF_UP

from catering.config import DEFAULT_ROUNDING, Rounding

_DECIMAL_MODES = {"HALF_UP": ROUND_HALF_UP, "HALF_EVEN": ROUND_HALF_EVEN}


def iso_today() -> str:
    return date.today().isoformat()


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def safe_div(n: float, d: float) -> float:
    return float(n) / float(d) if d else 0.0


def round_to(value: float, decimals: int, mode: str = "HALF_UP") -> float:
    # Goes through the repr so 2.675 rounds like a person would read it.
    exp = Decimal(1).scaleb(-int(decimals))
    return float(Decimal(repr(float(value))).quantize(exp, rounding=_DECIMAL_MODES[mode]))


def round_quantity(value: float, rounding: Rounding = DEFAULT_ROUNDING) -> float:
    return round_to(value, rounding.quantity_decimals, rounding.mode)


def round_money(value: float, rounding: Rounding = DEFAULT_ROUNDING) -> float:
    return round_to(value, rounding.money_decimals, rounding.mode)
