from io import BytesIO

from openpyxl import load_workbook

from claimdesk.services import ClaimFilters, approve_claim
from claimdesk.services.reports import REPORT_COLUMNS, export_claims_xlsx


def _sheet(content):
    wb = load_workbook(filename=BytesIO(content))
    return wb["Claims"]


def test_report_header_and_rows(make_claim, ids):
    claim = make_claim(submit_now=True, claim_detail="Replace wiper motor", vin_no="VIN-1")
    approve_claim(ids["admin"], claim.id)
    make_claim(ids["south"])

    ws = _sheet(export_claims_xlsx(ids["admin"]))
    rows = list(ws.iter_rows(values_only=True))

    assert list(rows[0]) == [name for name, _ in REPORT_COLUMNS]
    assert len(rows) == 3

    by_no = {r[0]: r for r in rows[1:]}
    row = by_no[claim.claim_no]
    assert row[2] == "Replace wiper motor"
    assert row[3] == 2500
    assert row[4] == "Bangkok North"
    assert row[10] == "VIN-1"
    assert row[11] == "Approved"


def test_report_is_scoped(make_claim, ids):
    make_claim(ids["north"])
    make_claim(ids["south"])

    ws = _sheet(export_claims_xlsx(ids["north"]))
    assert ws.max_row == 2
    assert ws.cell(row=2, column=5).value == "Bangkok North"


def test_report_honours_filters(make_claim, ids):
    make_claim(customer_name="Alpha")
    make_claim(customer_name="Beta")

    ws = _sheet(export_claims_xlsx(ids["admin"], ClaimFilters(search="beta")))
    assert ws.max_row == 2
    assert ws.cell(row=2, column=9).value == "Beta"


def test_report_row_cap(app, make_claim, ids):
    app.config["REPORT_MAX_ROWS"] = 2
    for _ in range(3):
        make_claim()

    ws = _sheet(export_claims_xlsx(ids["admin"]))
    assert ws.max_row == 3
