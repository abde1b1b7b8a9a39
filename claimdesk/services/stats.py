# claimdesk/services/stats.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Optional

import sqlalchemy as sa

from claimdesk.extensions import db
from claimdesk.models import Claim, ClaimStatus
from claimdesk.services.identity import IdentityContext
from claimdesk.services.scope import DateRange, IsActive, access_scope, all_of
from claimdesk.utils.clock import business_tz

_BUCKETS = {
    ClaimStatus.DRAFT: "draft",
    ClaimStatus.PENDING: "pending",
    ClaimStatus.APPROVED: "approved",
    ClaimStatus.REJECTED: "rejected",
    ClaimStatus.NEED_INFO: "need_info",
}


@dataclass
class ClaimStats:
    total: int = 0
    draft: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    need_info: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def claim_stats(
    identity: IdentityContext,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    branch_id: Optional[int] = None,
) -> ClaimStats:
    """
    Status-bucketed counts for the dashboard tiles.

    Uses the same scope, active flag and inclusive date rule as list_claims.
    """
    clause = all_of(
        access_scope(identity, branch_id),
        IsActive(),
        DateRange(start_date, end_date, business_tz()) if (start_date or end_date) else None,
    )
    rows = (
        db.session.query(Claim.status, sa.func.count(Claim.id))
        .filter(clause.to_sql())
        .group_by(Claim.status)
        .all()
    )

    stats = ClaimStats()
    for status, count in rows:
        setattr(stats, _BUCKETS[ClaimStatus(status)], int(count))
        stats.total += int(count)
    return stats
