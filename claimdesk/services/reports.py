# claimdesk/services/reports.py
from __future__ import annotations

from io import BytesIO
from typing import Optional

from flask import current_app
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from claimdesk.models import ClaimStatus
from claimdesk.services.identity import IdentityContext
from claimdesk.services.queries import ClaimFilters, scoped_claims_query

REPORT_COLUMNS = [
    ("Claim No", 16),
    ("Claim Date", 12),
    ("Detail", 40),
    ("Amount", 14),
    ("Branch", 24),
    ("Mileage", 10),
    ("Car Model", 18),
    ("Car Register", 14),
    ("Customer", 24),
    ("Last Mileage", 12),
    ("VIN", 20),
    ("Status", 16),
]


def _row(claim) -> list:
    return [
        claim.claim_no,
        claim.claim_date.date() if claim.claim_date else None,
        claim.claim_detail or "",
        float(claim.amount or 0),
        claim.branch.name if claim.branch else "",
        claim.mileage,
        claim.car_model,
        claim.car_register,
        claim.customer_name,
        claim.last_mileage,
        claim.vin_no or "",
        ClaimStatus(claim.status).label,
    ]


def export_claims_xlsx(identity: IdentityContext, filters: Optional[ClaimFilters] = None) -> bytes:
    """
    Claim report as an .xlsx workbook (single "Claims" sheet).

    Scoped exactly like list_claims but not paginated; rows beyond
    REPORT_MAX_ROWS are dropped and a warning is logged.
    """
    max_rows = int(current_app.config.get("REPORT_MAX_ROWS", 10000))
    claims = scoped_claims_query(identity, filters).limit(max_rows + 1).all()
    if len(claims) > max_rows:
        current_app.logger.warning("Claim report truncated to %s rows", max_rows)
        claims = claims[:max_rows]

    wb = Workbook()
    ws = wb.active
    ws.title = "Claims"

    ws.append([name for name, _ in REPORT_COLUMNS])
    header_fill = PatternFill("solid", fgColor="1E3A8A")
    for idx, (_, col_width) in enumerate(REPORT_COLUMNS, start=1):
        cell = ws.cell(row=1, column=idx)
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = header_fill
        ws.column_dimensions[get_column_letter(idx)].width = col_width
    ws.freeze_panes = "A2"

    for claim in claims:
        ws.append(_row(claim))

    for row in ws.iter_rows(min_row=2, min_col=2, max_col=2):
        row[0].number_format = "yyyy-mm-dd"
    for row in ws.iter_rows(min_row=2, min_col=4, max_col=4):
        row[0].number_format = "#,##0.00"

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()
