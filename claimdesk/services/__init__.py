# claimdesk/services/__init__.py
"""
Claim services. Every operation takes an explicit IdentityContext first.
"""
from claimdesk.services import audit
from claimdesk.services.identity import IdentityContext, resolve_identity
from claimdesk.services.lifecycle import (
    approve_claim,
    create_claim,
    delete_claim,
    reject_claim,
    request_info,
    update_claim,
)
from claimdesk.services.queries import ClaimFilters, ClaimPage, get_claim, list_claims
from claimdesk.services.stats import ClaimStats, claim_stats

__all__ = [
    "audit",
    "IdentityContext",
    "resolve_identity",
    "create_claim",
    "update_claim",
    "approve_claim",
    "reject_claim",
    "request_info",
    "delete_claim",
    "get_claim",
    "list_claims",
    "ClaimFilters",
    "ClaimPage",
    "claim_stats",
    "ClaimStats",
]
