# claimdesk/models.py
from __future__ import annotations

import enum
from datetime import datetime

import sqlalchemy as sa
from flask_login import UserMixin
from sqlalchemy import Enum as SAEnum
from sqlalchemy import event
from sqlalchemy.orm import Session
from sqlalchemy.types import TypeDecorator

from .errors import AuditLogImmutableError
from .extensions import db


# Naive UTC everywhere: the columns are "timestamp without time zone".
def utcnow_naive() -> datetime:
    return datetime.utcnow()


# =========================================================
# Roles
# =========================================================
ROLE_ADMIN = "ADMIN"
ROLE_SERVICE_CENTER = "SERVICE_CENTER"

ROLES = {
    ROLE_ADMIN: "Administrator",
    ROLE_SERVICE_CENTER: "Service Center",
}


# =========================================================
# Claim Status / Actions (Enums)
# =========================================================
class ClaimStatus(enum.IntEnum):
    DRAFT = 0
    PENDING = 1
    APPROVED = 2
    REJECTED = 3
    NEED_INFO = 4

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


STATUS_LABELS = {
    ClaimStatus.DRAFT: "Draft",
    ClaimStatus.PENDING: "Pending approval",
    ClaimStatus.APPROVED: "Approved",
    ClaimStatus.REJECTED: "Rejected",
    ClaimStatus.NEED_INFO: "Need more info",
}

TERMINAL_STATUSES = frozenset({ClaimStatus.APPROVED, ClaimStatus.REJECTED})

# Statuses a service center can still edit.
EDITABLE_STATUSES = frozenset({ClaimStatus.DRAFT, ClaimStatus.NEED_INFO})

ALLOWED_TRANSITIONS = {
    ClaimStatus.DRAFT: {ClaimStatus.PENDING},
    ClaimStatus.NEED_INFO: {ClaimStatus.PENDING},
    ClaimStatus.PENDING: {ClaimStatus.APPROVED, ClaimStatus.REJECTED, ClaimStatus.NEED_INFO},
    ClaimStatus.APPROVED: set(),
    ClaimStatus.REJECTED: set(),
}


def can_transition(current: ClaimStatus, target: ClaimStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(ClaimStatus(current), set())


class ClaimAction(enum.Enum):
    CREATED = "CREATED"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    INFO_REQUESTED = "INFO_REQUESTED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"


class ClaimStatusType(TypeDecorator):
    """Stores ClaimStatus as its plain integer code (0-4)."""

    impl = sa.SmallInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return ClaimStatus(value)


# =========================================================
# Reference data: Role / Branch
# =========================================================
class Role(db.Model):
    __tablename__ = "role"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(30), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)

    def __repr__(self) -> str:
        return f"<Role {self.code}>"


class Branch(db.Model):
    __tablename__ = "service_branch"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(30), unique=True, nullable=False)
    name = db.Column(db.String(160), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    def __repr__(self) -> str:
        return f"<Branch {self.id} {self.code}>"


# =========================================================
# User model (Authentication + Roles)
# =========================================================
class User(UserMixin, db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(120), unique=True, nullable=False)
    full_name = db.Column(db.String(160), nullable=False)
    phone = db.Column(db.String(30), nullable=True)

    password_hash = db.Column(db.String(255), nullable=False)

    role_id = db.Column(db.Integer, db.ForeignKey("role.id"), nullable=False)
    role = db.relationship("Role", foreign_keys=[role_id], lazy="joined")

    # ADMIN accounts usually have no branch; SERVICE_CENTER needs one.
    branch_id = db.Column(db.Integer, db.ForeignKey("service_branch.id"), nullable=True, index=True)
    branch = db.relationship("Branch", foreign_keys=[branch_id], lazy="joined")

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_login_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow_naive,
        onupdate=utcnow_naive,
    )

    @property
    def role_code(self) -> str | None:
        return self.role.code if self.role else None

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email}>"


# =========================================================
# Claim
# =========================================================
class Claim(db.Model):
    __tablename__ = "claim"

    id = db.Column(db.Integer, primary_key=True)
    claim_no = db.Column(db.String(20), unique=True, nullable=False)
    claim_date = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    customer_name = db.Column(db.String(160), nullable=False)
    car_model = db.Column(db.String(120), nullable=False)
    car_register = db.Column(db.String(30), nullable=False)
    vin_no = db.Column(db.String(40), nullable=True)
    project_type = db.Column(db.String(60), nullable=True)
    inventory_item_id = db.Column(db.Integer, nullable=True)
    claim_detail = db.Column(db.Text, nullable=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    is_check_mileage = db.Column(db.Boolean, nullable=False, default=False)
    mileage = db.Column(db.Integer, nullable=False, default=0)
    last_mileage = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(ClaimStatusType(), nullable=False, default=ClaimStatus.DRAFT)
    approval_note = db.Column(db.Text, nullable=True)
    approved_date = db.Column(db.DateTime, nullable=True)
    approved_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    approver = db.relationship("User", foreign_keys=[approved_by], lazy="joined")

    branch_id = db.Column(db.Integer, db.ForeignKey("service_branch.id"), nullable=False)
    branch = db.relationship("Branch", foreign_keys=[branch_id], lazy="joined")

    create_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    creator = db.relationship("User", foreign_keys=[create_by], lazy="joined")
    create_date = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    update_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    update_date = db.Column(db.DateTime, nullable=True, onupdate=utcnow_naive)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    files = db.relationship(
        "ClaimFile",
        back_populates="claim",
        lazy="select",
        order_by=lambda: ClaimFile.create_date.desc(),
    )
    logs = db.relationship(
        "ClaimLog",
        back_populates="claim",
        lazy="select",
        order_by=lambda: [ClaimLog.action_date.desc(), ClaimLog.id.desc()],
    )

    __table_args__ = (
        db.Index("ix_claim_branch_status", "branch_id", "status"),
        db.Index("ix_claim_claim_date", "claim_date"),
        db.CheckConstraint("amount >= 0", name="ck_claim_amount_non_negative"),
        db.CheckConstraint("status between 0 and 4", name="ck_claim_status_range"),
    )

    def to_dict(self, *, detail: bool = False) -> dict:
        data = {
            "id": self.id,
            "claim_no": self.claim_no,
            "claim_date": _iso(self.claim_date),
            "customer_name": self.customer_name,
            "car_model": self.car_model,
            "car_register": self.car_register,
            "vin_no": self.vin_no,
            "project_type": self.project_type,
            "inventory_item_id": self.inventory_item_id,
            "claim_detail": self.claim_detail,
            "amount": float(self.amount or 0),
            "is_check_mileage": bool(self.is_check_mileage),
            "mileage": self.mileage,
            "last_mileage": self.last_mileage,
            "status": int(self.status),
            "status_label": ClaimStatus(self.status).label,
            "approval_note": self.approval_note,
            "approved_date": _iso(self.approved_date),
            "approved_by": self.approved_by,
            "branch_id": self.branch_id,
            "branch_name": self.branch.name if self.branch else None,
            "create_by": self.create_by,
            "creator_name": self.creator.full_name if self.creator else None,
            "create_date": _iso(self.create_date),
            "update_by": self.update_by,
            "update_date": _iso(self.update_date),
        }
        if detail:
            data["files"] = [f.to_dict() for f in self.files if f.is_active]
            data["logs"] = [log.to_dict() for log in self.logs]
        return data

    def __repr__(self) -> str:
        return f"<Claim {self.id} {self.claim_no} {self.status!r}>"


# =========================================================
# ClaimLog (append-only audit trail)
# =========================================================
class ClaimLog(db.Model):
    __tablename__ = "claim_log"

    id = db.Column(db.Integer, primary_key=True)

    claim_id = db.Column(db.Integer, db.ForeignKey("claim.id"), nullable=False, index=True)
    claim = db.relationship("Claim", back_populates="logs")

    action = db.Column(
        SAEnum(
            ClaimAction,
            name="claim_action",
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
            native_enum=False,
        ),
        nullable=False,
    )
    description = db.Column(db.Text, nullable=True)
    old_status = db.Column(ClaimStatusType(), nullable=True)
    new_status = db.Column(ClaimStatusType(), nullable=False)

    action_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    actor = db.relationship("User", foreign_keys=[action_by], lazy="joined")
    action_date = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "claim_id": self.claim_id,
            "action": self.action.value,
            "description": self.description,
            "old_status": None if self.old_status is None else int(self.old_status),
            "new_status": int(self.new_status),
            "action_by": self.action_by,
            "actor_name": self.actor.full_name if self.actor else None,
            "action_date": _iso(self.action_date),
        }

    def __repr__(self) -> str:
        return f"<ClaimLog {self.id} {self.action} claim={self.claim_id}>"


@event.listens_for(ClaimLog, "before_update")
def _reject_log_update(mapper, connection, target):
    raise AuditLogImmutableError(f"ClaimLog {target.id} is append-only and cannot be updated.")


@event.listens_for(ClaimLog, "before_delete")
def _reject_log_delete(mapper, connection, target):
    raise AuditLogImmutableError(f"ClaimLog {target.id} is append-only and cannot be deleted.")


@event.listens_for(Session, "do_orm_execute")
def _reject_bulk_log_mutation(orm_execute_state):
    # Bulk query.update()/query.delete() skip the mapper events above.
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    if any(m.class_ is ClaimLog for m in orm_execute_state.all_mappers):
        raise AuditLogImmutableError("ClaimLog rows are append-only.")


# =========================================================
# ClaimFile (evidence attachments)
# =========================================================
class ClaimFile(db.Model):
    __tablename__ = "claim_file"

    id = db.Column(db.Integer, primary_key=True)

    claim_id = db.Column(db.Integer, db.ForeignKey("claim.id"), nullable=False, index=True)
    claim = db.relationship("Claim", back_populates="files")

    file_name = db.Column(db.String(255), nullable=False)
    file_type = db.Column(db.String(120), nullable=False)
    file_size = db.Column(db.Integer, nullable=False)
    storage_key = db.Column(db.String(500), nullable=False)
    public_url = db.Column(db.String(1000), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    create_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    create_date = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "claim_id": self.claim_id,
            "file_name": self.file_name,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "url": self.public_url,
            "storage_key": self.storage_key,
            "create_by": self.create_by,
            "create_date": _iso(self.create_date),
        }

    def __repr__(self) -> str:
        return f"<ClaimFile {self.id} {self.file_name}>"


def _iso(value):
    return value.isoformat() if value else None
