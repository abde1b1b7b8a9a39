from datetime import date, datetime

import pytest

from claimdesk.errors import Forbidden, NotFound, ValidationError
from claimdesk.extensions import db
from claimdesk.models import ClaimStatus
from claimdesk.services import (
    ClaimFilters,
    approve_claim,
    claim_stats,
    delete_claim,
    get_claim,
    list_claims,
)


@pytest.fixture
def spread(make_claim, ids):
    """Two north claims, one south claim, at known dates."""
    a = make_claim(ids["north"], customer_name="Somchai", car_register="AB1234")
    b = make_claim(ids["north"], customer_name="Malee", car_register="KK-55", submit_now=True)
    c = make_claim(ids["south"], customer_name="Somsak", car_register="XY9", submit_now=True)

    a.claim_date = datetime(2026, 3, 1, 8, 0)
    b.claim_date = datetime(2026, 3, 31, 23, 59, 59)
    c.claim_date = datetime(2026, 4, 1, 0, 0)
    db.session.commit()
    return a, b, c


def _nos(page):
    return [c.claim_no for c in page.items]


# =========================================================
# list_claims
# =========================================================
def test_admin_sees_all_newest_first(spread, ids):
    a, b, c = spread
    page = list_claims(ids["admin"])
    assert _nos(page) == [c.claim_no, b.claim_no, a.claim_no]
    assert page.total == 3
    assert page.total_pages == 1


def test_admin_branch_filter(spread, ids, branches):
    page = list_claims(ids["admin"], ClaimFilters(branch_id=branches[1].id))
    assert _nos(page) == [spread[2].claim_no]


def test_service_center_scope_cannot_be_widened(spread, ids, branches):
    a, b, _ = spread
    for filters in (ClaimFilters(), ClaimFilters(branch_id=branches[1].id), ClaimFilters(search="som")):
        page = list_claims(ids["north"], filters)
        assert set(_nos(page)) <= {a.claim_no, b.claim_no}
        assert all(c.branch_id == branches[0].id for c in page.items)


def test_orphan_service_center_sees_nothing(spread, ids):
    page = list_claims(ids["orphan"])
    assert page.items == []
    assert page.total == 0
    assert page.total_pages == 0


def test_status_filter(spread, ids):
    page = list_claims(ids["admin"], ClaimFilters(status=ClaimStatus.PENDING))
    assert set(_nos(page)) == {spread[1].claim_no, spread[2].claim_no}


def test_search_is_case_insensitive_across_fields(spread, ids):
    a, b, c = spread
    assert set(_nos(list_claims(ids["admin"], ClaimFilters(search="SOM")))) == {a.claim_no, c.claim_no}
    assert _nos(list_claims(ids["admin"], ClaimFilters(search="kk-5"))) == [b.claim_no]
    assert len(list_claims(ids["admin"], ClaimFilters(search=b.claim_no[-4:])).items) == 1


def test_search_treats_wildcards_literally(spread, ids):
    assert list_claims(ids["admin"], ClaimFilters(search="%")).total == 0


def test_end_date_covers_whole_day(spread, ids):
    a, b, c = spread
    page = list_claims(ids["admin"], ClaimFilters(start_date=date(2026, 3, 1), end_date=date(2026, 3, 31)))
    assert _nos(page) == [b.claim_no, a.claim_no]

    page = list_claims(ids["admin"], ClaimFilters(start_date=date(2026, 4, 1)))
    assert _nos(page) == [c.claim_no]


def test_pagination(make_claim, ids):
    for _ in range(7):
        make_claim()

    page = list_claims(ids["north"], page=2, page_size=3)
    assert page.total == 7
    assert page.total_pages == 3
    assert page.page == 2
    assert len(page.items) == 3

    last = list_claims(ids["north"], page=3, page_size=3)
    assert len(last.items) == 1


def test_page_size_is_clamped(make_claim, ids):
    make_claim()
    assert list_claims(ids["north"], page_size=1000).page_size == 100
    assert list_claims(ids["north"], page_size=0).page_size == 1
    assert list_claims(ids["north"], page=-4).page == 1


def test_page_past_the_end_is_empty(make_claim, ids):
    make_claim()
    page = list_claims(ids["north"], page=5, page_size=10)
    assert page.items == []
    assert page.total == 1
    assert page.total_pages == 1
    assert page.page == 5


def test_date_filter_uses_business_days(app, make_claim, ids):
    app.config["BUSINESS_TZ"] = "Asia/Bangkok"
    claim = make_claim()
    # 01:00 on 1 April in Bangkok
    claim.claim_date = datetime(2026, 3, 31, 18, 0)
    db.session.commit()

    april_first = ClaimFilters(start_date=date(2026, 4, 1), end_date=date(2026, 4, 1))
    march = ClaimFilters(start_date=date(2026, 3, 1), end_date=date(2026, 3, 31))

    assert _nos(list_claims(ids["admin"], april_first)) == [claim.claim_no]
    assert list_claims(ids["admin"], march).total == 0
    assert claim_stats(ids["admin"], date(2026, 4, 1), date(2026, 4, 1)).total == 1


def test_soft_deleted_claims_are_hidden(spread, ids):
    a, _, _ = spread
    delete_claim(ids["north"], a.id)

    assert a.claim_no not in _nos(list_claims(ids["admin"]))
    with pytest.raises(NotFound):
        get_claim(ids["admin"], a.id)


# =========================================================
# ClaimFilters.from_args
# =========================================================
def test_filters_from_args():
    filters = ClaimFilters.from_args(
        {"status": "1", "branchId": "3", "search": "  vios ", "startDate": "2026-01-01", "end_date": "2026-01-31"}
    )
    assert filters == ClaimFilters(
        status=ClaimStatus.PENDING,
        branch_id=3,
        search="vios",
        start_date=date(2026, 1, 1),
        end_date=date(2026, 1, 31),
    )


def test_filters_ignore_blank_values():
    assert ClaimFilters.from_args({"status": "", "search": " ", "start_date": ""}) == ClaimFilters()


@pytest.mark.parametrize(
    "args",
    [
        {"status": "9"},
        {"status": "pending"},
        {"start_date": "01/02/2026"},
        {"start_date": "2026-02-01", "end_date": "2026-01-01"},
        {"branch_id": "north"},
    ],
)
def test_filters_reject_bad_values(args):
    with pytest.raises(ValidationError):
        ClaimFilters.from_args(args)


# =========================================================
# get_claim
# =========================================================
def test_get_claim_for_own_branch(spread, ids):
    a = spread[0]
    assert get_claim(ids["north2"], a.id).id == a.id


def test_get_claim_from_other_branch_is_forbidden(spread, ids):
    with pytest.raises(Forbidden):
        get_claim(ids["south"], spread[0].id)
    with pytest.raises(Forbidden):
        get_claim(ids["orphan"], spread[0].id)


def test_get_missing_claim(app, ids):
    with pytest.raises(NotFound):
        get_claim(ids["admin"], 4242)


def test_detail_includes_logs(spread, ids):
    data = get_claim(ids["admin"], spread[1].id).to_dict(detail=True)
    assert [log["action"] for log in data["logs"]] == ["SUBMITTED", "CREATED"]
    assert data["files"] == []


# =========================================================
# claim_stats
# =========================================================
def test_stats_buckets(spread, ids):
    approve_claim(ids["admin"], spread[1].id)
    stats = claim_stats(ids["admin"])
    assert stats.to_dict() == {
        "total": 3,
        "draft": 1,
        "pending": 1,
        "approved": 1,
        "rejected": 0,
        "need_info": 0,
    }


def test_stats_follow_scope_and_dates(spread, ids):
    north = claim_stats(ids["north"])
    assert (north.total, north.draft, north.pending) == (2, 1, 1)

    march = claim_stats(ids["admin"], date(2026, 3, 1), date(2026, 3, 31))
    assert march.total == 2

    assert claim_stats(ids["orphan"]).total == 0


def test_stats_skip_deleted(spread, ids):
    delete_claim(ids["north"], spread[0].id)
    stats = claim_stats(ids["north"])
    assert stats.total == 1
    assert stats.draft == 0
