# claimdesk/config/company.py
from __future__ import annotations

"""
Company identity printed on approval documents and reports.

Kept in one place so the PDF header, the footer and the Excel report title
never drift apart.
"""

COMPANY_NAME = "Claimdesk Motors Co., Ltd."
COMPANY_TAGLINE = "Authorised Service Network"

# Single display line (PDF-friendly)
COMPANY_ADDRESS = "88 Rama IV Road, Khlong Toei, Bangkok 10110"

COMPANY_EMAIL = "claims@claimdesk.example"
COMPANY_PHONES = ["+66-2-000-1234", "+66-2-000-5678"]
COMPANY_PHONE = COMPANY_PHONES[0]

# Signature block on approval documents
APPROVER_TITLE = "Service Claims Manager"
DEFAULT_APPROVER_NAME = "Claims Administrator"


def company_context() -> dict:
    """Flat mapping for PDF/report headers."""
    return {
        "COMPANY_NAME": COMPANY_NAME,
        "COMPANY_TAGLINE": COMPANY_TAGLINE,
        "COMPANY_ADDRESS": COMPANY_ADDRESS,
        "COMPANY_EMAIL": COMPANY_EMAIL,
        "COMPANY_PHONE": COMPANY_PHONE,
        "COMPANY_PHONES": COMPANY_PHONES,
        "APPROVER_TITLE": APPROVER_TITLE,
        "DEFAULT_APPROVER_NAME": DEFAULT_APPROVER_NAME,
    }
