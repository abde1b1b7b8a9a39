# claimdesk/services/queries.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from flask import current_app

from claimdesk.errors import Forbidden, NotFound, ValidationError
from claimdesk.extensions import db
from claimdesk.models import Claim, ClaimStatus
from claimdesk.services.identity import IdentityContext
from claimdesk.services.scope import (
    AllOf,
    DateRange,
    IsActive,
    StatusEquals,
    TextSearch,
    access_scope,
    all_of,
    can_access_claim,
)
from claimdesk.utils.clock import business_tz
from claimdesk.utils.parsers import clean_str, parse_date, parse_int


@dataclass
class ClaimFilters:
    status: Optional[ClaimStatus] = None
    branch_id: Optional[int] = None
    search: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @classmethod
    def from_args(cls, args) -> "ClaimFilters":
        """
        Build filters from query-string style args (``request.args`` or a dict).

        Empty values are ignored. A status outside 0-4 or a malformed date is a
        ValidationError rather than being silently dropped.
        """
        status = None
        raw_status = clean_str(args.get("status"))
        if raw_status != "":
            code = parse_int(raw_status)
            if code is None or code not in ClaimStatus._value2member_map_:
                raise ValidationError("status must be one of 0, 1, 2, 3, 4.")
            status = ClaimStatus(code)

        branch_id = None
        raw_branch = clean_str(args.get("branch_id") or args.get("branchId"))
        if raw_branch != "":
            branch_id = parse_int(raw_branch)
            if branch_id is None:
                raise ValidationError("branch_id must be an integer.")

        start_date = _date_arg(args, "start_date", "startDate")
        end_date = _date_arg(args, "end_date", "endDate")
        if start_date and end_date and start_date > end_date:
            raise ValidationError("start_date must not be after end_date.")

        return cls(
            status=status,
            branch_id=branch_id,
            search=clean_str(args.get("search") or args.get("q")) or None,
            start_date=start_date,
            end_date=end_date,
        )

    def to_clause(self, identity: IdentityContext) -> AllOf:
        """Access scope AND active AND every supplied filter."""
        return all_of(
            access_scope(identity, self.branch_id),
            IsActive(),
            StatusEquals(self.status) if self.status is not None else None,
            DateRange(self.start_date, self.end_date, business_tz())
            if (self.start_date or self.end_date)
            else None,
            TextSearch(self.search) if self.search else None,
        )


def _date_arg(args, *names) -> Optional[date]:
    for name in names:
        raw = clean_str(args.get(name))
        if raw:
            value = parse_date(raw)
            if value is None:
                raise ValidationError(f"{names[0]} must be an ISO date (YYYY-MM-DD).")
            return value
    return None


@dataclass
class ClaimPage:
    items: List[Claim] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 10
    total_pages: int = 0

    def to_dict(self) -> dict:
        return {
            "items": [c.to_dict() for c in self.items],
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
        }


def _clamp_page_size(page_size) -> int:
    default = int(current_app.config.get("CLAIMS_DEFAULT_PAGE_SIZE", 10))
    limit = int(current_app.config.get("CLAIMS_MAX_PAGE_SIZE", 100))
    size = parse_int(page_size)
    if size is None:
        size = default
    return max(1, min(size, limit))


def scoped_claims_query(identity: IdentityContext, filters: Optional[ClaimFilters] = None):
    """Claim query with scope + filters applied, newest first."""
    filters = filters or ClaimFilters()
    return Claim.query.filter(filters.to_clause(identity).to_sql()).order_by(
        Claim.claim_date.desc(), Claim.id.desc()
    )


def list_claims(
    identity: IdentityContext,
    filters: Optional[ClaimFilters] = None,
    page=1,
    page_size=None,
) -> ClaimPage:
    page = max(1, parse_int(page) or 1)
    page_size = _clamp_page_size(page_size)

    pagination = scoped_claims_query(identity, filters).paginate(
        page=page, per_page=page_size, error_out=False
    )

    return ClaimPage(
        items=list(pagination.items),
        total=pagination.total or 0,
        page=pagination.page,
        page_size=pagination.per_page,
        total_pages=pagination.pages,
    )


def get_claim(identity: IdentityContext, claim_id) -> Claim:
    cid = parse_int(claim_id)
    claim = db.session.get(Claim, cid) if cid is not None else None
    if claim is None or not claim.is_active:
        raise NotFound()
    if not can_access_claim(identity, claim):
        raise Forbidden("You do not have access to this claim.")
    return claim
