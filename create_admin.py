"""
Seed reference data and the first administrator.

    ADMIN_EMAIL=admin@claimdesk.example ADMIN_PASSWORD='...' python create_admin.py

Idempotent: existing roles, the default branch and an existing admin email are
left as they are.
"""
import os

from claimdesk import create_app
from claimdesk.extensions import db
from claimdesk.models import ROLE_ADMIN, ROLES, Branch, Role, User
from claimdesk.utils.passwords import hash_password, validate_password

EMAIL = os.environ.get("ADMIN_EMAIL", "admin@claimdesk.example").strip().lower()
PASSWORD = os.environ.get("ADMIN_PASSWORD", "")
DEFAULT_BRANCH = {"code": "HQ", "name": "Head Office Service Center"}

app = create_app()

with app.app_context():
    ok, msg = validate_password(PASSWORD)
    if not ok:
        raise SystemExit(f"ADMIN_PASSWORD rejected: {msg}")

    for code, name in ROLES.items():
        if not Role.query.filter_by(code=code).first():
            db.session.add(Role(code=code, name=name))
            print(f"Created role {code}")

    if not Branch.query.filter_by(code=DEFAULT_BRANCH["code"]).first():
        db.session.add(Branch(**DEFAULT_BRANCH))
        print(f"Created branch {DEFAULT_BRANCH['code']}")

    db.session.flush()

    if User.query.filter_by(email=EMAIL).first():
        print("Admin already exists:", EMAIL)
    else:
        admin_role = Role.query.filter_by(code=ROLE_ADMIN).one()
        db.session.add(
            User(
                full_name="Claims Administrator",
                email=EMAIL,
                role_id=admin_role.id,
                branch_id=None,
                is_active=True,
                password_hash=hash_password(PASSWORD),
            )
        )
        print("Admin created:", EMAIL)

    db.session.commit()
