# claimdesk/services/evidence_files.py
from __future__ import annotations

import os
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List

from flask import current_app
from werkzeug.utils import secure_filename

from claimdesk.errors import DependencyError, Forbidden, NotFound, ValidationError
from claimdesk.extensions import db
from claimdesk.models import Claim, ClaimFile, ClaimStatus, utcnow_naive
from claimdesk.services.identity import IdentityContext
from claimdesk.services.queries import get_claim
from claimdesk.utils.db import commit_or_rollback

ALLOWED_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


# =========================================================
# Types
# =========================================================
@dataclass(frozen=True)
class StoredFile:
    storage_key: str
    public_url: str
    size: int


# =========================================================
# Storage helpers
# =========================================================
def _evidence_storage_dir() -> str:
    """
    Local storage root.
    Priority:
      1) Flask config: EVIDENCE_STORAGE_DIR
      2) instance_path/evidence_store
    """
    base = current_app.config.get("EVIDENCE_STORAGE_DIR")
    if not base:
        base = os.path.join(current_app.instance_path, "evidence_store")

    os.makedirs(base, exist_ok=True)
    return base


def public_url_for(storage_key: str) -> str:
    base = (current_app.config.get("EVIDENCE_PUBLIC_BASE_URL") or "/evidence").rstrip("/")
    return f"{base}/{storage_key}"


def evidence_storage_key(filename: str, *, now: datetime | None = None) -> str:
    """
    Example:
      evidence/202601/front_bumper_1767225600000_k3j9x2.jpg
    """
    now = now or utcnow_naive()
    stem, ext = os.path.splitext(filename)
    safe = secure_filename(stem)[:80] or "file"
    ts = int(now.timestamp() * 1000)
    rand = secrets.token_hex(3)
    return f"evidence/{now:%Y%m}/{safe}_{ts}_{rand}{ext.lower()}"


def store_bytes(storage_key: str, data: bytes) -> StoredFile:
    base = _evidence_storage_dir()
    abs_path = os.path.join(base, storage_key)
    os.makedirs(os.path.dirname(abs_path), exist_ok=True)

    with open(abs_path, "wb") as f:
        f.write(data)

    return StoredFile(storage_key=storage_key, public_url=public_url_for(storage_key), size=len(data))


def _discard(keys: Iterable[str]) -> None:
    base = _evidence_storage_dir()
    for key in keys:
        try:
            os.remove(os.path.join(base, key))
        except OSError:
            current_app.logger.warning("Could not remove orphaned evidence file %s", key)


# =========================================================
# Validation
# =========================================================
def _extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lstrip(".").lower()


def _validate_uploads(uploads) -> List[tuple]:
    max_files = int(current_app.config.get("EVIDENCE_MAX_FILES", 5))
    max_size = int(current_app.config.get("EVIDENCE_MAX_FILE_SIZE", 10 * 1024 * 1024))

    uploads = [u for u in (uploads or []) if u is not None and getattr(u, "filename", "")]
    if not uploads:
        raise ValidationError("No files uploaded.")
    if len(uploads) > max_files:
        raise ValidationError(f"At most {max_files} files can be uploaded at once.")

    prepared = []
    for upload in uploads:
        ext = _extension(upload.filename)
        if ext not in ALLOWED_TYPES:
            raise ValidationError(f"File type not allowed: {upload.filename}")
        data = upload.read()
        if len(data) > max_size:
            raise ValidationError(f"File too large: {upload.filename}")
        if not data:
            raise ValidationError(f"File is empty: {upload.filename}")
        prepared.append((upload.filename, ALLOWED_TYPES[ext], data))
    return prepared


# =========================================================
# Operations
# =========================================================
def attach_files(identity: IdentityContext, claim_id, uploads) -> List[ClaimFile]:
    """
    Store uploaded evidence for a claim.

    ``uploads`` are werkzeug ``FileStorage`` objects (or anything with
    ``filename`` and ``read()``). Rows are added only after every file has been
    written, so a storage failure leaves no partial attachment rows.
    """
    prepared = _validate_uploads(uploads)
    claim = get_claim(identity, claim_id)
    if ClaimStatus(claim.status).is_terminal and not identity.is_admin:
        raise Forbidden("Files cannot be added to a closed claim.")

    stored: List[tuple] = []
    try:
        for filename, content_type, data in prepared:
            key = evidence_storage_key(filename)
            stored.append((filename, content_type, store_bytes(key, data)))
    except OSError as exc:
        current_app.logger.exception("Evidence upload failed for claim %s", claim.id)
        _discard(s.storage_key for _, _, s in stored)
        raise DependencyError("File storage is unavailable. Please try again.") from exc

    rows = []
    for filename, content_type, s in stored:
        row = ClaimFile(
            claim_id=claim.id,
            file_name=filename,
            file_type=content_type,
            file_size=s.size,
            storage_key=s.storage_key,
            public_url=s.public_url,
            is_active=True,
            create_by=identity.user_id,
            create_date=utcnow_naive(),
        )
        db.session.add(row)
        rows.append(row)

    try:
        commit_or_rollback("Attach evidence files")
    except DependencyError:
        _discard(s.storage_key for _, _, s in stored)
        raise

    current_app.logger.info(
        "Attached %s file(s) to claim %s by user %s", len(rows), claim.claim_no, identity.user_id
    )
    return rows


def list_files(identity: IdentityContext, claim_id) -> List[ClaimFile]:
    claim = get_claim(identity, claim_id)
    return (
        ClaimFile.query.filter_by(claim_id=claim.id, is_active=True)
        .order_by(ClaimFile.create_date.desc(), ClaimFile.id.desc())
        .all()
    )


def remove_file(identity: IdentityContext, file_id) -> None:
    row = db.session.get(ClaimFile, file_id)
    if row is None or not row.is_active:
        raise NotFound("File not found.")

    claim: Claim = get_claim(identity, row.claim_id)
    if not identity.is_admin:
        if claim.create_by != identity.user_id:
            raise Forbidden("Only the creator of this claim can remove its files.")
        if ClaimStatus(claim.status).is_terminal:
            raise Forbidden("Files cannot be removed from a closed claim.")

    row.is_active = False
    commit_or_rollback("Remove evidence file")
    current_app.logger.info("Evidence file %s removed by user %s", row.id, identity.user_id)
