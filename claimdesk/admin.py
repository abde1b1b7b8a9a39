# claimdesk/admin.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, make_response, request
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .errors import ConflictError, DependencyError, NotFound, ValidationError
from .extensions import db
from .models import ROLE_ADMIN, ROLE_SERVICE_CENTER, ROLES, Branch, Role, User, utcnow_naive
from .services.queries import ClaimFilters
from .services.reports import export_claims_xlsx
from .utils.guards import admin_required, current_identity
from .utils.parsers import clean_str, parse_bool, parse_int
from .utils.passwords import generate_temporary_password, hash_password, validate_password

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

# -------------------------------------------------------------------
# Helpers / Constants
# -------------------------------------------------------------------
USER_NAME_MAXLEN = 160
USER_EMAIL_MAXLEN = 120
USER_PHONE_MAXLEN = 30


def _user_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "phone": user.phone,
        "role": user.role_code,
        "branch_id": user.branch_id,
        "branch_name": user.branch.name if user.branch else None,
        "is_active": bool(user.is_active),
        "last_login_at": user.last_login_at.isoformat() if user.last_login_at else None,
    }


# -------------------------------------------------------------------
# Users
# GET /admin/users
# POST /admin/users
# -------------------------------------------------------------------
@admin_bp.route("/users", methods=["GET"])
@admin_required
def users_list():
    q = clean_str(request.args.get("q"))
    role = clean_str(request.args.get("role")).upper()
    status = clean_str(request.args.get("status")).lower()
    page = request.args.get("page", 1, type=int)
    per_page = min(request.args.get("per_page", 20, type=int), 100)

    qry = User.query

    if q:
        like = f"%{q.lower()}%"
        qry = qry.filter(
            or_(
                db.func.lower(User.full_name).like(like),
                db.func.lower(User.email).like(like),
                db.func.lower(User.phone).like(like),
            )
        )

    if role:
        qry = qry.join(Role, User.role_id == Role.id).filter(Role.code == role)

    if status in ("active", "inactive"):
        qry = qry.filter(User.is_active.is_(status == "active"))

    pagination = qry.order_by(User.id.desc()).paginate(page=page, per_page=per_page, error_out=False)

    return (
        jsonify(
            {
                "success": True,
                "data": {
                    "items": [_user_dict(u) for u in pagination.items],
                    "total": pagination.total,
                    "page": pagination.page,
                    "page_size": per_page,
                    "total_pages": pagination.pages,
                },
            }
        ),
        200,
    )


@admin_bp.route("/users", methods=["POST"])
@admin_required
def users_create():
    data = request.get_json(silent=True) or {}

    full_name = clean_str(data.get("full_name"))[:USER_NAME_MAXLEN]
    email = clean_str(data.get("email")).lower()[:USER_EMAIL_MAXLEN]
    phone = clean_str(data.get("phone"))[:USER_PHONE_MAXLEN] or None
    role_code = clean_str(data.get("role")).upper()
    password = data.get("password") or ""
    branch_id = parse_int(data.get("branch_id"))

    if not full_name or not email or not password or not role_code:
        raise ValidationError("Full name, email, password, and role are required.")

    if role_code not in ROLES:
        raise ValidationError("Invalid role selected.")

    ok, msg = validate_password(password)
    if not ok:
        raise ValidationError(msg)

    role = Role.query.filter_by(code=role_code).first()
    if role is None:
        raise ValidationError(f"Role {role_code} is not set up. Run create_admin.py first.")

    if branch_id is not None and db.session.get(Branch, branch_id) is None:
        raise ValidationError(f"Branch {branch_id} does not exist.")

    if role_code == ROLE_SERVICE_CENTER and branch_id is None:
        raise ValidationError("Service center accounts need a branch.")

    if User.query.filter(db.func.lower(User.email) == email).first():
        raise ConflictError("Email already exists.")

    user = User(
        full_name=full_name,
        email=email,
        phone=phone,
        role_id=role.id,
        branch_id=branch_id,
        is_active=True,
        password_hash=hash_password(password),
    )

    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("Email already exists.") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Create user failed")
        raise DependencyError("Failed to create user. Try again.") from exc

    current_app.logger.info("User %s (%s) created by admin %s", user.email, role_code, current_identity().user_id)
    return jsonify({"success": True, "data": _user_dict(user)}), 201


def _get_user_or_404(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


def _commit_user(action: str, user: User) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("%s failed for user %s", action, user.id)
        raise DependencyError(f"{action} failed. Try again.") from exc


# -------------------------------------------------------------------
# Single user
# GET /admin/users/<id>
# PUT/PATCH /admin/users/<id>
# DELETE /admin/users/<id>   (deactivate)
# -------------------------------------------------------------------
@admin_bp.route("/users/<int:user_id>", methods=["GET"])
@admin_required
def users_get(user_id: int):
    return jsonify({"success": True, "data": _user_dict(_get_user_or_404(user_id))}), 200


@admin_bp.route("/users/<int:user_id>", methods=["PUT", "PATCH"])
@admin_required
def users_update(user_id: int):
    """
    Update name, phone, role, branch and active flag. Omitted fields are left
    alone; ``branch_id: null`` clears the branch. Email and password are not
    changed here.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")

    user = _get_user_or_404(user_id)
    me = current_identity()
    changes = {}

    if "full_name" in data:
        full_name = clean_str(data.get("full_name"))
        if not full_name:
            raise ValidationError("Full name cannot be empty.")
        if len(full_name) > USER_NAME_MAXLEN:
            raise ValidationError(f"Full name must be at most {USER_NAME_MAXLEN} characters.")
        changes["full_name"] = full_name

    if "phone" in data:
        phone = clean_str(data.get("phone"))
        if len(phone) > USER_PHONE_MAXLEN:
            raise ValidationError(f"Phone must be at most {USER_PHONE_MAXLEN} characters.")
        changes["phone"] = phone or None

    role_code = user.role_code
    if "role" in data:
        role_code = clean_str(data.get("role")).upper()
        if role_code not in ROLES:
            raise ValidationError("Invalid role selected.")
        if user.id == me.user_id and role_code != ROLE_ADMIN:
            raise ValidationError("You cannot remove your own administrator role.")
        role = Role.query.filter_by(code=role_code).first()
        if role is None:
            raise ValidationError(f"Role {role_code} is not set up. Run create_admin.py first.")
        changes["role"] = role

    branch_id = user.branch_id
    if "branch_id" in data:
        raw = data.get("branch_id")
        if raw is None or clean_str(raw) == "":
            branch_id = None
        else:
            branch_id = parse_int(raw)
            if branch_id is None or db.session.get(Branch, branch_id) is None:
                raise ValidationError(f"Branch {raw} does not exist.")
        changes["branch_id"] = branch_id

    if "is_active" in data:
        is_active = parse_bool(data.get("is_active"))
        if user.id == me.user_id and not is_active:
            raise ValidationError("You cannot deactivate your own account.")
        changes["is_active"] = is_active

    if role_code == ROLE_SERVICE_CENTER and branch_id is None:
        raise ValidationError("Service center accounts need a branch.")

    for name, value in changes.items():
        setattr(user, name, value)

    _commit_user("Update user", user)
    current_app.logger.info("User %s updated by admin %s", user.id, me.user_id)
    return jsonify({"success": True, "data": _user_dict(user)}), 200


@admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
@admin_required
def users_deactivate(user_id: int):
    me = current_identity()
    if user_id == me.user_id:
        raise ValidationError("You cannot deactivate your own account.")

    user = _get_user_or_404(user_id)
    user.is_active = False
    _commit_user("Deactivate user", user)

    current_app.logger.info("User %s deactivated by admin %s", user.id, me.user_id)
    return jsonify({"success": True, "data": _user_dict(user)}), 200


# -------------------------------------------------------------------
# POST /admin/users/<id>/reset-password
# -------------------------------------------------------------------
@admin_bp.route("/users/<int:user_id>/reset-password", methods=["POST"])
@admin_required
def users_reset_password(user_id: int):
    """
    Set a new password for a user. Without a ``password`` in the body a
    temporary one is generated and returned once in the response.
    """
    data = request.get_json(silent=True) or {}
    user = _get_user_or_404(user_id)

    password = data.get("password") or ""
    generated = not password
    if generated:
        password = generate_temporary_password()

    ok, msg = validate_password(password)
    if not ok:
        raise ValidationError(msg)

    user.password_hash = hash_password(password)
    _commit_user("Reset password", user)

    current_app.logger.info("Password for user %s reset by admin %s", user.id, current_identity().user_id)
    body = {"success": True, "data": _user_dict(user)}
    if generated:
        body["temporary_password"] = password
    return jsonify(body), 200


# -------------------------------------------------------------------
# Reports
# GET /admin/reports/claims.xlsx
# -------------------------------------------------------------------
@admin_bp.route("/reports/claims.xlsx", methods=["GET"])
@admin_required
def claims_report():
    filters = ClaimFilters.from_args(request.args)
    content = export_claims_xlsx(current_identity(), filters)

    stamp = utcnow_naive().strftime("%Y%m%d")
    resp = make_response(content)
    resp.headers["Content-Type"] = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    resp.headers["Content-Disposition"] = f'attachment; filename="claims-report-{stamp}.xlsx"'
    return resp
