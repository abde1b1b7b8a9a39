# claimdesk/services/lifecycle.py
"""
Claim lifecycle: every status change and claim mutation goes through here.

Each operation validates input, checks the caller's permissions, guards the
current status, writes the claim row with a conditional UPDATE (so a
concurrent change makes the write affect zero rows) and appends audit rows in
the same transaction.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from claimdesk.errors import ConflictError, DependencyError, Forbidden, NotFound, ValidationError
from claimdesk.extensions import db
from claimdesk.models import (
    EDITABLE_STATUSES,
    Branch,
    Claim,
    ClaimAction,
    ClaimStatus,
    can_transition,
    utcnow_naive,
)
from claimdesk.services import audit
from claimdesk.services.claim_numbers import next_claim_no
from claimdesk.services.identity import IdentityContext
from claimdesk.services.scope import can_access_claim
from claimdesk.utils.clock import to_business_time
from claimdesk.utils.db import commit_or_rollback
from claimdesk.utils.parsers import clean_str, parse_bool, parse_decimal, parse_int

DEFAULT_APPROVAL_NOTE = "Approved"

REQUIRED_TEXT_FIELDS = ("customer_name", "car_model", "car_register")
OPTIONAL_TEXT_FIELDS = ("vin_no", "project_type", "claim_detail")
COUNTER_FIELDS = ("mileage", "last_mileage")

# Column limits (models.Claim); checked here so an oversized value is a 400,
# not a DataError from the database.
CLAIM_FIELD_MAXLEN = {
    "customer_name": 160,
    "car_model": 120,
    "car_register": 30,
    "vin_no": 40,
    "project_type": 60,
}
AMOUNT_MAX = Decimal("9999999999.99")  # Numeric(12, 2)
INT_COLUMN_MAX = 2_147_483_647
INT_FIELDS = COUNTER_FIELDS + ("inventory_item_id", "branch_id")


# =========================================================
# Payload parsing
# =========================================================
class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def _bound_errors(values: Dict[str, Any]) -> list:
    """Messages for supplied values that would not fit their column."""
    errors = []
    for name, limit in CLAIM_FIELD_MAXLEN.items():
        value = values.get(name)
        if isinstance(value, str) and len(value) > limit:
            errors.append(f"{name} must be at most {limit} characters.")

    amount = values.get("amount")
    if isinstance(amount, Decimal) and amount > AMOUNT_MAX:
        errors.append(f"amount must not exceed {AMOUNT_MAX:,}.")

    for name in INT_FIELDS:
        value = values.get(name)
        if isinstance(value, int) and not -INT_COLUMN_MAX - 1 <= value <= INT_COLUMN_MAX:
            errors.append(f"{name} is too large.")
    return errors


@dataclass
class ClaimPatch:
    """
    Field changes for a claim.

    A field left as ``UNSET`` was omitted by the caller and is not touched.
    ``None`` on an optional text field means "clear it".
    """

    customer_name: Any = UNSET
    car_model: Any = UNSET
    car_register: Any = UNSET
    vin_no: Any = UNSET
    project_type: Any = UNSET
    claim_detail: Any = UNSET
    inventory_item_id: Any = UNSET
    amount: Any = UNSET
    is_check_mileage: Any = UNSET
    mileage: Any = UNSET
    last_mileage: Any = UNSET
    branch_id: Any = UNSET
    submit_now: bool = False

    @classmethod
    def from_payload(cls, payload: Optional[dict]) -> "ClaimPatch":
        payload = payload or {}
        patch = cls(submit_now=parse_bool(payload.get("submit_now")))
        errors = []

        for name in REQUIRED_TEXT_FIELDS:
            if name in payload:
                value = clean_str(payload[name])
                if not value:
                    errors.append(f"{name} cannot be empty.")
                setattr(patch, name, value)

        for name in OPTIONAL_TEXT_FIELDS:
            if name in payload:
                setattr(patch, name, clean_str(payload[name]) or None)

        if "inventory_item_id" in payload:
            raw = payload["inventory_item_id"]
            if raw is None or clean_str(raw) == "":
                patch.inventory_item_id = None
            else:
                patch.inventory_item_id = parse_int(raw)
                if patch.inventory_item_id is None:
                    errors.append("inventory_item_id must be an integer.")

        if "amount" in payload:
            raw = payload["amount"]
            if raw is None:
                patch.amount = Decimal("0.00")
            else:
                patch.amount = parse_decimal(raw)
                if patch.amount is None or patch.amount < 0:
                    errors.append("amount must be a non-negative number.")

        if "is_check_mileage" in payload:
            patch.is_check_mileage = parse_bool(payload["is_check_mileage"])

        for name in COUNTER_FIELDS:
            if name in payload:
                raw = payload[name]
                if raw is None:
                    setattr(patch, name, 0)
                    continue
                value = parse_int(raw)
                if value is None or value < 0:
                    errors.append(f"{name} must be a non-negative integer.")
                setattr(patch, name, value)

        if "branch_id" in payload and payload["branch_id"] not in (None, ""):
            patch.branch_id = parse_int(payload["branch_id"])
            if patch.branch_id is None:
                errors.append("branch_id must be an integer.")

        errors.extend(_bound_errors({f.name: getattr(patch, f.name) for f in fields(patch)}))
        if errors:
            raise ValidationError(" ".join(errors))
        return patch

    def changes(self) -> Dict[str, Any]:
        """Column values that were supplied (branch_id and submit_now excluded)."""
        out = {}
        for f in fields(self):
            if f.name in ("branch_id", "submit_now"):
                continue
            value = getattr(self, f.name)
            if value is not UNSET:
                out[f.name] = value
        return out


@dataclass
class NewClaim:
    customer_name: str
    car_model: str
    car_register: str
    vin_no: Optional[str]
    project_type: Optional[str]
    claim_detail: Optional[str]
    inventory_item_id: Optional[int]
    amount: Decimal
    is_check_mileage: bool
    mileage: int
    last_mileage: int
    branch_id: Optional[int]
    submit_now: bool

    @classmethod
    def from_payload(cls, payload: Optional[dict]) -> "NewClaim":
        """
        Creation is lenient with numbers: an absent or unparseable amount or
        mileage becomes 0. Negative values, and values too large for their
        column, are still rejected.
        """
        payload = payload or {}

        missing = [name for name in REQUIRED_TEXT_FIELDS if not clean_str(payload.get(name))]
        if missing:
            raise ValidationError("Required fields missing: " + ", ".join(missing) + ".")

        amount = parse_decimal(payload.get("amount"))
        if amount is None:
            amount = Decimal("0.00")
        mileage = parse_int(payload.get("mileage")) or 0
        last_mileage = parse_int(payload.get("last_mileage")) or 0

        if amount < 0:
            raise ValidationError("amount must be a non-negative number.")
        if mileage < 0 or last_mileage < 0:
            raise ValidationError("mileage must be a non-negative integer.")

        data = cls(
            customer_name=clean_str(payload.get("customer_name")),
            car_model=clean_str(payload.get("car_model")),
            car_register=clean_str(payload.get("car_register")),
            vin_no=clean_str(payload.get("vin_no")) or None,
            project_type=clean_str(payload.get("project_type")) or None,
            claim_detail=clean_str(payload.get("claim_detail")) or None,
            inventory_item_id=parse_int(payload.get("inventory_item_id")),
            amount=amount,
            is_check_mileage=parse_bool(payload.get("is_check_mileage")),
            mileage=mileage,
            last_mileage=last_mileage,
            branch_id=parse_int(payload.get("branch_id")),
            submit_now=parse_bool(payload.get("submit_now")),
        )

        errors = _bound_errors(vars(data))
        if errors:
            raise ValidationError(" ".join(errors))
        return data


# =========================================================
# Helpers
# =========================================================
def _get_active_claim(claim_id) -> Claim:
    cid = parse_int(claim_id)
    claim = db.session.get(Claim, cid) if cid is not None else None
    if claim is None or not claim.is_active:
        raise NotFound()
    return claim


def _require_admin(identity: IdentityContext, message: str) -> None:
    if not identity.is_admin:
        raise Forbidden(message)


def _require_note(note: Optional[str], message: str) -> str:
    text = clean_str(note)
    if not text:
        raise ValidationError(message)
    return text


def _ensure_owner_or_admin(identity: IdentityContext, claim: Claim) -> None:
    if identity.is_admin:
        return
    if not can_access_claim(identity, claim):
        raise Forbidden("You do not have access to this claim.")
    if claim.create_by != identity.user_id:
        raise Forbidden("Only the creator of this claim can change it.")


def _ensure_branch_exists(branch_id: int) -> None:
    if db.session.get(Branch, branch_id) is None:
        raise ValidationError(f"Branch {branch_id} does not exist.")


def _conditional_update(claim: Claim, expected_status: ClaimStatus, values: Dict[str, Any]) -> None:
    """
    UPDATE claim SET ... WHERE id = :id AND status = :expected AND is_active.

    Zero affected rows means someone else changed the claim after we read it.
    """
    try:
        rows = (
            Claim.query.filter(
                Claim.id == claim.id,
                Claim.status == ClaimStatus(expected_status),
                Claim.is_active.is_(True),
            )
            .update(values, synchronize_session=False)
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Claim %s update failed", claim.id)
        raise DependencyError("Saving the claim failed. Please try again.") from exc
    if rows != 1:
        db.session.rollback()
        raise ConflictError("Claim was changed by another request. Reload and try again.")
    db.session.refresh(claim)


# =========================================================
# Create
# =========================================================
def create_claim(identity: IdentityContext, payload: Optional[dict]) -> Claim:
    data = NewClaim.from_payload(payload)

    if identity.is_admin:
        branch_id = data.branch_id if data.branch_id is not None else identity.branch_id
        if branch_id is None:
            raise ValidationError("branch_id is required.")
        _ensure_branch_exists(branch_id)
    else:
        if identity.branch_id is None:
            raise Forbidden("Your account has no branch assigned.")
        branch_id = identity.branch_id

    status = ClaimStatus.PENDING if data.submit_now else ClaimStatus.DRAFT
    attempts = max(1, int(current_app.config.get("CLAIM_NO_MAX_ATTEMPTS", 3)))

    for attempt in range(1, attempts + 1):
        now = utcnow_naive()
        claim = Claim(
            claim_no=next_claim_no(to_business_time(now).year),
            claim_date=now,
            customer_name=data.customer_name,
            car_model=data.car_model,
            car_register=data.car_register,
            vin_no=data.vin_no,
            project_type=data.project_type,
            claim_detail=data.claim_detail,
            inventory_item_id=data.inventory_item_id,
            amount=data.amount,
            is_check_mileage=data.is_check_mileage,
            mileage=data.mileage,
            last_mileage=data.last_mileage,
            status=status,
            branch_id=branch_id,
            create_by=identity.user_id,
            create_date=now,
            is_active=True,
        )
        db.session.add(claim)

        try:
            db.session.flush()
        except IntegrityError:
            # Another request took this claim number first.
            db.session.rollback()
            current_app.logger.warning(
                "Claim number clash on attempt %s/%s", attempt, attempts
            )
            continue
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Create claim failed")
            raise DependencyError("Saving the claim failed. Please try again.") from exc

        audit.append(claim, ClaimAction.CREATED, "Claim created", None, status, identity.user_id)
        if data.submit_now:
            audit.append(
                claim,
                ClaimAction.SUBMITTED,
                "Claim submitted for approval",
                ClaimStatus.DRAFT,
                ClaimStatus.PENDING,
                identity.user_id,
            )

        commit_or_rollback("Create claim")
        current_app.logger.info(
            "Claim %s created by user %s (status=%s)", claim.claim_no, identity.user_id, status.name
        )
        return claim

    raise ConflictError("Could not allocate a unique claim number. Please try again.")


# =========================================================
# Update / Submit
# =========================================================
def update_claim(identity: IdentityContext, claim_id, payload: Optional[dict]) -> Claim:
    patch = ClaimPatch.from_payload(payload)

    claim = _get_active_claim(claim_id)
    _ensure_owner_or_admin(identity, claim)

    old_status = ClaimStatus(claim.status)
    if old_status not in EDITABLE_STATUSES and not identity.is_admin:
        raise Forbidden("Cannot edit a submitted claim.")

    new_status = old_status
    if patch.submit_now:
        if can_transition(old_status, ClaimStatus.PENDING):
            new_status = ClaimStatus.PENDING
        elif old_status != ClaimStatus.PENDING:
            raise ConflictError("Approved or rejected claims cannot be resubmitted.")

    values = patch.changes()
    if identity.is_admin and patch.branch_id is not UNSET and patch.branch_id != claim.branch_id:
        _ensure_branch_exists(patch.branch_id)
        values["branch_id"] = patch.branch_id

    values.update(
        status=new_status,
        update_by=identity.user_id,
        update_date=utcnow_naive(),
    )
    _conditional_update(claim, old_status, values)

    audit.append(
        claim, ClaimAction.UPDATED, "Claim details updated", old_status, new_status, identity.user_id
    )
    if patch.submit_now and old_status in EDITABLE_STATUSES:
        description = (
            "Claim resubmitted after edits"
            if old_status == ClaimStatus.NEED_INFO
            else "Claim submitted for approval"
        )
        audit.append(
            claim, ClaimAction.SUBMITTED, description, old_status, ClaimStatus.PENDING, identity.user_id
        )

    commit_or_rollback("Update claim")
    current_app.logger.info(
        "Claim %s updated by user %s (%s -> %s)",
        claim.claim_no,
        identity.user_id,
        old_status.name,
        new_status.name,
    )
    return claim


# =========================================================
# Admin decisions
# =========================================================
def _decide(
    identity: IdentityContext,
    claim_id,
    *,
    target: ClaimStatus,
    action: ClaimAction,
    values: Dict[str, Any],
    description: str,
    refusal: str,
) -> Claim:
    claim = _get_active_claim(claim_id)

    current = ClaimStatus(claim.status)
    if current != ClaimStatus.PENDING or not can_transition(current, target):
        raise ConflictError(refusal)

    values = dict(values, status=target, update_by=identity.user_id, update_date=utcnow_naive())
    _conditional_update(claim, ClaimStatus.PENDING, values)
    audit.append(claim, action, description, ClaimStatus.PENDING, target, identity.user_id)

    commit_or_rollback(f"Claim {action.value.lower().replace('_', ' ')}")
    current_app.logger.info(
        "Claim %s %s by user %s", claim.claim_no, action.value, identity.user_id
    )
    return claim


def approve_claim(identity: IdentityContext, claim_id, note: Optional[str] = None) -> Claim:
    _require_admin(identity, "Only administrators can approve claims.")
    text = clean_str(note)
    return _decide(
        identity,
        claim_id,
        target=ClaimStatus.APPROVED,
        action=ClaimAction.APPROVED,
        values={
            "approval_note": text or DEFAULT_APPROVAL_NOTE,
            "approved_date": utcnow_naive(),
            "approved_by": identity.user_id,
        },
        description=text or "Claim approved",
        refusal="Only pending claims can be approved.",
    )


def reject_claim(identity: IdentityContext, claim_id, note: Optional[str]) -> Claim:
    _require_admin(identity, "Only administrators can reject claims.")
    text = _require_note(note, "A reason is required to reject a claim.")
    return _decide(
        identity,
        claim_id,
        target=ClaimStatus.REJECTED,
        action=ClaimAction.REJECTED,
        values={
            "approval_note": text,
            "approved_date": utcnow_naive(),
            "approved_by": identity.user_id,
        },
        description=text,
        refusal="Only pending claims can be rejected.",
    )


def request_info(identity: IdentityContext, claim_id, note: Optional[str]) -> Claim:
    _require_admin(identity, "Only administrators can request more information.")
    text = _require_note(note, "Describe the information you need.")
    return _decide(
        identity,
        claim_id,
        target=ClaimStatus.NEED_INFO,
        action=ClaimAction.INFO_REQUESTED,
        values={"approval_note": text},
        description=text,
        refusal="Information can only be requested for pending claims.",
    )


# =========================================================
# Soft delete
# =========================================================
def delete_claim(identity: IdentityContext, claim_id) -> None:
    claim = _get_active_claim(claim_id)
    _ensure_owner_or_admin(identity, claim)

    status = ClaimStatus(claim.status)
    if status != ClaimStatus.DRAFT and not identity.is_admin:
        raise Forbidden("Only draft claims can be deleted.")

    rows = (
        Claim.query.filter(Claim.id == claim.id, Claim.is_active.is_(True))
        .update(
            {"is_active": False, "update_by": identity.user_id, "update_date": utcnow_naive()},
            synchronize_session=False,
        )
    )
    if rows != 1:
        db.session.rollback()
        raise NotFound()
    db.session.refresh(claim)

    audit.append(claim, ClaimAction.DELETED, "Claim deleted", status, status, identity.user_id)
    commit_or_rollback("Delete claim")
    current_app.logger.info("Claim %s deleted by user %s", claim.claim_no, identity.user_id)
