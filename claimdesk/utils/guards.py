# claimdesk/utils/guards.py

from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from flask_login import current_user

from claimdesk.errors import Forbidden
from claimdesk.services.identity import IdentityContext, resolve_identity


def current_identity() -> IdentityContext:
    """Identity of the logged-in user (raises Unauthenticated)."""
    return resolve_identity(current_user)


def login_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """
    JSON flavour of flask_login.login_required: resolves the identity up front
    so an anonymous or inactive caller gets a 401 body instead of a redirect.
    """
    @wraps(view)
    def wrapped(*args, **kwargs):
        current_identity()
        return view(*args, **kwargs)

    return wrapped


def admin_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """Allow only ADMIN. Returns 403 for all other logged-in roles."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_identity().is_admin:
            raise Forbidden("Administrator access required.")
        return view(*args, **kwargs)

    return wrapped
