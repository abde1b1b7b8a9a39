# claimdesk/auth.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_user, logout_user
from sqlalchemy.exc import SQLAlchemyError

from .errors import Unauthenticated, ValidationError
from .extensions import db, limiter, login_manager
from .models import User, utcnow_naive
from .utils.db import commit_or_rollback
from .utils.guards import current_identity, login_required
from .utils.passwords import hash_password, validate_password, verify_password

auth = Blueprint("auth", __name__)


# =========================================================
# Flask-Login user loader
# =========================================================
@login_manager.user_loader
def load_user(user_id: str):
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


@login_manager.unauthorized_handler
def unauthorized():
    raise Unauthenticated()


def _user_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role_code,
        "branch_id": user.branch_id,
        "branch_name": user.branch.name if user.branch else None,
    }


# =========================================================
# Login / Logout
# =========================================================
@auth.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    data = request.get_json(silent=True) or request.form
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email or not password:
        raise ValidationError("Email and password are required.")

    user = User.query.filter(db.func.lower(User.email) == email).first()

    if user and user.is_active is False:
        raise Unauthenticated("This account is inactive. Contact an admin.")

    if not user or not verify_password(user.password_hash, password):
        current_app.logger.info("Failed login for %s", email)
        raise Unauthenticated("Invalid email or password.")

    login_user(user)

    # Stamp last_login_at; a failure here must not block the login.
    try:
        user.last_login_at = utcnow_naive()
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Could not stamp last_login_at for user %s", user.id)

    return jsonify({"success": True, "data": _user_dict(user)}), 200


@auth.route("/logout")
def logout():
    # Not login_required: logging out twice is harmless.
    logout_user()
    return jsonify({"success": True}), 200


@auth.route("/api/me", methods=["GET"])
@login_required
def me():
    identity = current_identity()
    user = db.session.get(User, identity.user_id)
    return jsonify({"success": True, "data": {**_user_dict(user), "identity": identity.to_dict()}}), 200


# =========================================================
# Change Password (logged-in users)
# =========================================================
@auth.route("/change-password", methods=["POST"])
@login_required
def change_password():
    data = request.get_json(silent=True) or request.form
    current_password = data.get("current_password") or ""
    new_password = data.get("new_password") or ""
    confirm_password = data.get("confirm_password") or ""

    if not current_password or not new_password or not confirm_password:
        raise ValidationError("All fields are required.")

    user = db.session.get(User, current_identity().user_id)

    if not verify_password(user.password_hash, current_password):
        raise ValidationError("Current password is incorrect.")

    if new_password != confirm_password:
        raise ValidationError("New password and confirmation do not match.")

    ok, msg = validate_password(new_password)
    if not ok:
        raise ValidationError(msg)

    if verify_password(user.password_hash, new_password):
        raise ValidationError("New password must be different from the current password.")

    user.password_hash = hash_password(new_password)
    commit_or_rollback("Change password")

    current_app.logger.info("User %s changed their password", user.id)
    return jsonify({"success": True}), 200
