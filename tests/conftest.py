from __future__ import annotations

import pytest

from claimdesk import create_app
from claimdesk.extensions import db
from claimdesk.models import ROLE_ADMIN, ROLE_SERVICE_CENTER, Branch, Role, User
from claimdesk.services import create_claim
from claimdesk.services.identity import IdentityContext
from claimdesk.settings import TestConfig
from claimdesk.utils.passwords import hash_password

PASSWORD = "Claimdesk2026"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
def app(tmp_path):
    class _Config(TestConfig):
        EVIDENCE_STORAGE_DIR = str(tmp_path / "evidence")

    app = create_app(_Config)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def branches(app):
    north = Branch(code="BKK-N", name="Bangkok North", address="12 Phahonyothin Rd")
    south = Branch(code="BKK-S", name="Bangkok South")
    db.session.add_all([north, south])
    db.session.commit()
    return north, south


@pytest.fixture
def users(app, branches):
    north, south = branches
    admin_role = Role(code=ROLE_ADMIN, name="Administrator")
    sc_role = Role(code=ROLE_SERVICE_CENTER, name="Service Center")
    db.session.add_all([admin_role, sc_role])
    db.session.flush()

    def _user(email, name, role, branch=None):
        return User(
            email=email,
            full_name=name,
            role_id=role.id,
            branch_id=branch.id if branch else None,
            password_hash=PASSWORD_HASH,
            is_active=True,
        )

    out = {
        "admin": _user("admin@claimdesk.test", "Alice Admin", admin_role),
        "north": _user("north@claimdesk.test", "Niran North", sc_role, north),
        "north2": _user("north2@claimdesk.test", "Nok North", sc_role, north),
        "south": _user("south@claimdesk.test", "Sunee South", sc_role, south),
        "orphan": _user("orphan@claimdesk.test", "Olan Nobranch", sc_role),
    }
    db.session.add_all(out.values())
    db.session.commit()
    return out


@pytest.fixture
def ids(users):
    """IdentityContext per fixture user."""
    return {
        key: IdentityContext(user_id=u.id, role=u.role_code, branch_id=u.branch_id)
        for key, u in users.items()
    }


@pytest.fixture
def make_claim(ids):
    def _make(identity=None, **overrides):
        payload = {
            "customer_name": "Somchai",
            "car_model": "Vios",
            "car_register": "AB1234",
            "amount": "2500",
        }
        payload.update(overrides)
        return create_claim(identity or ids["north"], payload)

    return _make


@pytest.fixture
def login_as(client, users):
    def _login(key, password=PASSWORD):
        return client.post("/login", json={"email": users[key].email, "password": password})

    return _login
