# claimdesk/utils/parsers.py
from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation


# ======================
# Lenient parsers: bad input -> None
# ======================
def clean_str(value) -> str:
    return ("" if value is None else str(value)).strip()


def parse_int(val):
    try:
        if val is None or str(val).strip() == "":
            return None
        if isinstance(val, bool):
            return None
        return int(str(val).strip())
    except (TypeError, ValueError):
        return None


def parse_decimal(val):
    try:
        if val is None or str(val).strip() == "":
            return None
        if isinstance(val, bool):
            return None
        d = Decimal(str(val).strip())
        if not d.is_finite():
            return None
        # Past the context precision quantize raises instead of rounding.
        return d.quantize(Decimal("0.01"))
    except (InvalidOperation, TypeError, ValueError):
        return None


def parse_date(val):
    try:
        if not val:
            return None
        if isinstance(val, date):
            return val
        return date.fromisoformat(str(val).strip()[:10])
    except (TypeError, ValueError):
        return None


def parse_bool(val) -> bool:
    if isinstance(val, bool):
        return val
    return clean_str(val).lower() in ("1", "true", "yes", "on")
