import pytest

from claimdesk.errors import Unauthenticated
from claimdesk.extensions import db
from claimdesk.services.identity import IdentityContext, resolve_identity


class _Anonymous:
    is_authenticated = False


def test_resolves_service_center(users, branches):
    identity = resolve_identity(users["north"])
    assert identity == IdentityContext(user_id=users["north"].id, role="SERVICE_CENTER", branch_id=branches[0].id)
    assert identity.is_service_center
    assert not identity.is_admin


def test_resolves_admin_without_branch(users):
    identity = resolve_identity(users["admin"])
    assert identity.is_admin
    assert identity.branch_id is None


def test_anonymous_is_rejected():
    with pytest.raises(Unauthenticated):
        resolve_identity(_Anonymous())
    with pytest.raises(Unauthenticated):
        resolve_identity(None)


def test_inactive_user_is_rejected(users):
    users["north"].is_active = False
    db.session.commit()
    with pytest.raises(Unauthenticated):
        resolve_identity(users["north"])


def test_identity_is_immutable():
    identity = IdentityContext(user_id=1, role="ADMIN")
    with pytest.raises(AttributeError):
        identity.branch_id = 5
