from datetime import date
from decimal import Decimal

import pytest

from claimdesk.settings import _normalize_db_url
from claimdesk.utils.parsers import parse_bool, parse_date, parse_decimal, parse_int


@pytest.mark.parametrize("raw, expected", [("12", 12), (" 7 ", 7), ("", None), ("x", None), (True, None), (None, None)])
def test_parse_int(raw, expected):
    assert parse_int(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [("2500", Decimal("2500.00")), ("10.005", Decimal("10.00")), ("nan", None), ("inf", None), ("abc", None),
     ("1e30", None), ("123456789012345678901234567890", None)],
)
def test_parse_decimal(raw, expected):
    assert parse_decimal(raw) == expected


def test_parse_date_accepts_iso_timestamps():
    assert parse_date("2026-03-31T17:00:00.000Z") == date(2026, 3, 31)
    assert parse_date("31/03/2026") is None


@pytest.mark.parametrize("raw", [True, "true", "1", "yes", "on", "ON"])
def test_parse_bool_truthy(raw):
    assert parse_bool(raw) is True


@pytest.mark.parametrize("raw", [False, None, "", "0", "false", "no"])
def test_parse_bool_falsy(raw):
    assert parse_bool(raw) is False


def test_database_url_normalization():
    assert _normalize_db_url("postgres://u:p@h/db") == "postgresql+psycopg2://u:p@h/db"
    assert _normalize_db_url("postgresql://u:p@h/db") == "postgresql+psycopg2://u:p@h/db"
    assert _normalize_db_url("sqlite://") == "sqlite://"
    assert _normalize_db_url("") is None
