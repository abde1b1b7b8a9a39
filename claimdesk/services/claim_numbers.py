# claimdesk/services/claim_numbers.py
from __future__ import annotations

import re
from typing import Optional, Tuple

from claimdesk.errors import ClaimNumberExhaustedError
from claimdesk.extensions import db
from claimdesk.models import Claim

CLAIM_NO_PREFIX = "CLM"
MAX_SEQUENCE = 9999

_CLAIM_NO_RE = re.compile(r"^CLM-(\d{4})-(\d{4})$")


def format_claim_no(year: int, sequence: int) -> str:
    if sequence < 1 or sequence > MAX_SEQUENCE:
        raise ClaimNumberExhaustedError(
            f"Claim sequence {sequence} for {year} is outside 0001-{MAX_SEQUENCE:04d}."
        )
    return f"{CLAIM_NO_PREFIX}-{year:04d}-{sequence:04d}"


def parse_claim_no(claim_no: str | None) -> Optional[Tuple[int, int]]:
    """Return (year, sequence) for a well-formed claim number, else None."""
    match = _CLAIM_NO_RE.match(claim_no or "")
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def last_sequence_for_year(year: int) -> int:
    prefix = f"{CLAIM_NO_PREFIX}-{year:04d}-"
    last = (
        db.session.query(Claim.claim_no)
        .filter(Claim.claim_no.startswith(prefix, autoescape=True))
        .order_by(Claim.claim_no.desc())
        .limit(1)
        .scalar()
    )
    parsed = parse_claim_no(last)
    return parsed[1] if parsed else 0


def next_claim_no(year: int) -> str:
    """
    Next claim number for the given calendar year.

    Reads the greatest existing number and adds one; nothing is locked, so two
    concurrent callers can get the same value. The unique index on
    claim.claim_no rejects the second insert and the caller retries.
    """
    return format_claim_no(year, last_sequence_for_year(year) + 1)
