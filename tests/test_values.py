import pytest

from finkit.ingestion.values import parse_amount, parse_date, parse_transfer_flag


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1.234,56", 1234.56),
        ("1,234.56", 1234.56),
        ("-23,45", -23.45),
        ("50,00 €", 50.0),
        ("1,234", 1234.0),
        ("1.234.567", 1234567.0),
        ("12,50-", -12.5),
        ("+7.5", 7.5),
        ("EUR -3.99", -3.99),
        ("100", 100.0),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", [None, "", "abc", "--", "1-2"])
def test_parse_amount_invalid(raw):
    assert parse_amount(raw) is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("15.03.2024", "2024-03-15"),
        ("1.3.2024", "2024-03-01"),
        ("2024-03-15", "2024-03-15"),
        ("2024-03-15T10:30:00", "2024-03-15"),
        ("03/15/2024", "2024-03-15"),
    ],
)
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "31.02.2024", "not a date"])
def test_parse_date_invalid(raw):
    assert parse_date(raw) is None


def test_parse_transfer_flag():
    assert parse_transfer_flag("Ja") is True
    assert parse_transfer_flag("true") is True
    assert parse_transfer_flag("nein") is False
    assert parse_transfer_flag("") is False
    assert parse_transfer_flag(None) is False
