# claimdesk/services/audit.py
from __future__ import annotations

from typing import List, Optional

from claimdesk.extensions import db
from claimdesk.models import Claim, ClaimAction, ClaimLog, ClaimStatus, utcnow_naive


def append(
    claim: Claim,
    action: ClaimAction,
    description: str,
    old_status: Optional[ClaimStatus],
    new_status: ClaimStatus,
    actor_id: int,
) -> ClaimLog:
    """
    Add one audit row for ``claim`` to the current session.

    Does NOT commit: the caller commits it together with the claim change.
    The claim must already be flushed so the row is never orphaned.
    """
    if claim is None or claim.id is None:
        raise ValueError("Cannot write a claim log for an unsaved claim.")

    entry = ClaimLog(
        claim_id=claim.id,
        action=ClaimAction(action),
        description=description,
        old_status=None if old_status is None else ClaimStatus(old_status),
        new_status=ClaimStatus(new_status),
        action_by=actor_id,
        action_date=utcnow_naive(),
    )
    db.session.add(entry)
    return entry


def list_for_claim(claim_id: int) -> List[ClaimLog]:
    return (
        ClaimLog.query.filter_by(claim_id=claim_id)
        .order_by(ClaimLog.action_date.desc(), ClaimLog.id.desc())
        .all()
    )
