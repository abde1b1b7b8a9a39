# claimdesk/config/__init__.py
from __future__ import annotations

"""
claimdesk.config holds static company identity.

Runtime settings (env driven) live in claimdesk.settings.
"""

from .company import company_context

__all__ = ["company_context"]
