# claimdesk/routes.py
from __future__ import annotations

from flask import Blueprint, jsonify, make_response, request

from .errors import ValidationError
from .models import Branch
from .services import (
    ClaimFilters,
    approve_claim,
    claim_stats,
    create_claim,
    delete_claim,
    get_claim,
    list_claims,
    reject_claim,
    request_info,
    update_claim,
)
from .services.evidence_files import attach_files, list_files, remove_file
from .utils.approval_pdf import render_approval_pdf
from .utils.guards import current_identity, login_required

api = Blueprint("api", __name__, url_prefix="/api")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def _ok(data=None, status: int = 200):
    return jsonify({"success": True, "data": data}), status


# -------------------------------------------------------------------
# Claims
# GET+POST /api/claims
# GET+PUT+DELETE /api/claims/<id>
# -------------------------------------------------------------------
@api.route("/claims", methods=["GET"])
@login_required
def claims_list():
    filters = ClaimFilters.from_args(request.args)
    page = list_claims(
        current_identity(),
        filters,
        page=request.args.get("page", 1),
        page_size=request.args.get("page_size") or request.args.get("pageSize"),
    )
    return _ok(page.to_dict())


@api.route("/claims", methods=["POST"])
@login_required
def claims_create():
    claim = create_claim(current_identity(), _json_body())
    return _ok(claim.to_dict(detail=True), 201)


@api.route("/claims/<int:claim_id>", methods=["GET"])
@login_required
def claims_detail(claim_id: int):
    claim = get_claim(current_identity(), claim_id)
    return _ok(claim.to_dict(detail=True))


@api.route("/claims/<int:claim_id>", methods=["PUT", "PATCH"])
@login_required
def claims_update(claim_id: int):
    claim = update_claim(current_identity(), claim_id, _json_body())
    return _ok(claim.to_dict(detail=True))


@api.route("/claims/<int:claim_id>", methods=["DELETE"])
@login_required
def claims_delete(claim_id: int):
    delete_claim(current_identity(), claim_id)
    return _ok(None)


# -------------------------------------------------------------------
# Admin decisions
# POST /api/claims/<id>/approve | /reject | /request-info
# -------------------------------------------------------------------
@api.route("/claims/<int:claim_id>/approve", methods=["POST"])
@login_required
def claims_approve(claim_id: int):
    claim = approve_claim(current_identity(), claim_id, _json_body().get("note"))
    return _ok(claim.to_dict(detail=True))


@api.route("/claims/<int:claim_id>/reject", methods=["POST"])
@login_required
def claims_reject(claim_id: int):
    claim = reject_claim(current_identity(), claim_id, _json_body().get("note"))
    return _ok(claim.to_dict(detail=True))


@api.route("/claims/<int:claim_id>/request-info", methods=["POST"])
@login_required
def claims_request_info(claim_id: int):
    claim = request_info(current_identity(), claim_id, _json_body().get("note"))
    return _ok(claim.to_dict(detail=True))


# -------------------------------------------------------------------
# Approval document
# GET /api/claims/<id>/pdf
# -------------------------------------------------------------------
@api.route("/claims/<int:claim_id>/pdf", methods=["GET"])
@login_required
def claims_pdf(claim_id: int):
    claim = get_claim(current_identity(), claim_id)
    pdf = render_approval_pdf(claim)

    resp = make_response(pdf)
    resp.headers["Content-Type"] = "application/pdf"
    resp.headers["Content-Disposition"] = f'inline; filename="approval-{claim.claim_no}.pdf"'
    return resp


# -------------------------------------------------------------------
# Evidence files
# GET+POST /api/claims/<id>/files
# DELETE /api/files/<id>
# -------------------------------------------------------------------
@api.route("/claims/<int:claim_id>/files", methods=["GET"])
@login_required
def claim_files_list(claim_id: int):
    files = list_files(current_identity(), claim_id)
    return _ok([f.to_dict() for f in files])


@api.route("/claims/<int:claim_id>/files", methods=["POST"])
@login_required
def claim_files_upload(claim_id: int):
    uploads = request.files.getlist("files")
    rows = attach_files(current_identity(), claim_id, uploads)
    return _ok([f.to_dict() for f in rows], 201)


@api.route("/files/<int:file_id>", methods=["DELETE"])
@login_required
def claim_files_delete(file_id: int):
    remove_file(current_identity(), file_id)
    return _ok(None)


# -------------------------------------------------------------------
# Dashboard / reference data
# -------------------------------------------------------------------
@api.route("/dashboard/stats", methods=["GET"])
@login_required
def dashboard_stats():
    filters = ClaimFilters.from_args(request.args)
    stats = claim_stats(
        current_identity(),
        start_date=filters.start_date,
        end_date=filters.end_date,
        branch_id=filters.branch_id,
    )
    return _ok(stats.to_dict())


@api.route("/branches", methods=["GET"])
@login_required
def branches_list():
    branches = Branch.query.filter_by(is_active=True).order_by(Branch.name.asc()).all()
    return _ok([{"id": b.id, "code": b.code, "name": b.name} for b in branches])
