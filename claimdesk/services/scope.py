# claimdesk/services/scope.py
"""
Typed filter clauses for claim queries.

Every clause is a small frozen dataclass that renders itself to a SQLAlchemy
expression. Clauses are combined with ``AllOf`` (logical AND) so the list
view, the statistics tiles and the report export all filter the same way.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta, tzinfo
from typing import Optional, Tuple, Union

import sqlalchemy as sa

from claimdesk.models import Claim, ClaimStatus
from claimdesk.services.identity import IdentityContext
from claimdesk.utils.clock import local_midnight_utc


@dataclass(frozen=True)
class Unrestricted:
    def to_sql(self):
        return sa.true()


@dataclass(frozen=True)
class MatchNothing:
    def to_sql(self):
        return sa.false()


@dataclass(frozen=True)
class IsActive:
    def to_sql(self):
        return Claim.is_active.is_(True)


@dataclass(frozen=True)
class StatusEquals:
    status: ClaimStatus

    def to_sql(self):
        return Claim.status == ClaimStatus(self.status)


@dataclass(frozen=True)
class BranchEquals:
    branch_id: int

    def to_sql(self):
        return Claim.branch_id == self.branch_id


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive on both ends: ``end`` covers the whole calendar day.

    Days are calendar days in ``tz`` (stored timestamps are naive UTC); with
    no ``tz`` the days are taken as UTC.
    """

    start: Optional[date] = None
    end: Optional[date] = None
    tz: Optional[tzinfo] = None

    def to_sql(self):
        conds = []
        if self.start is not None:
            conds.append(Claim.claim_date >= local_midnight_utc(self.start, self.tz))
        if self.end is not None:
            conds.append(Claim.claim_date < local_midnight_utc(self.end + timedelta(days=1), self.tz))
        if not conds:
            return sa.true()
        return sa.and_(*conds)


@dataclass(frozen=True)
class TextSearch:
    """Case-insensitive substring match on claim no, customer name, car register."""

    text: str

    def to_sql(self):
        needle = self.text.strip().lower()
        return sa.or_(
            sa.func.lower(Claim.claim_no, type_=sa.String).contains(needle, autoescape=True),
            sa.func.lower(Claim.customer_name, type_=sa.String).contains(needle, autoescape=True),
            sa.func.lower(Claim.car_register, type_=sa.String).contains(needle, autoescape=True),
        )


Clause = Union[
    Unrestricted, MatchNothing, IsActive, StatusEquals, BranchEquals, DateRange, TextSearch, "AllOf"
]


@dataclass(frozen=True)
class AllOf:
    clauses: Tuple[Clause, ...] = field(default_factory=tuple)

    def to_sql(self):
        if not self.clauses:
            return sa.true()
        return sa.and_(*(c.to_sql() for c in self.clauses))


def all_of(*clauses: Clause) -> AllOf:
    flat = []
    for c in clauses:
        if c is None:
            continue
        if isinstance(c, AllOf):
            flat.extend(c.clauses)
        else:
            flat.append(c)
    return AllOf(tuple(flat))


# =========================================================
# Access scope
# =========================================================
def access_scope(identity: IdentityContext, requested_branch_id: Optional[int] = None) -> Clause:
    """
    Rows the caller is allowed to see.

    - ADMIN: everything, or only ``requested_branch_id`` when one is given.
    - SERVICE_CENTER: always their own branch; the requested branch is ignored.
    - SERVICE_CENTER without a branch: nothing (fail closed).
    """
    if identity.is_admin:
        if requested_branch_id is not None:
            return BranchEquals(requested_branch_id)
        return Unrestricted()

    if identity.branch_id is not None:
        return BranchEquals(identity.branch_id)

    return MatchNothing()


def can_access_claim(identity: IdentityContext, claim: Claim) -> bool:
    """Row-level check for direct-by-id access."""
    if identity.is_admin:
        return True
    return identity.branch_id is not None and claim.branch_id == identity.branch_id
