import pytest
from openpyxl import Workbook

from finkit.errors import EmptyFileError, ParseError, UnsupportedFileError
from finkit.ingestion.formats import detect_bank_format
from finkit.ingestion.parser import (
    detect_currency,
    filter_by_date_range,
    get_file_type,
    parse_bytes,
    parse_file,
)
from finkit.models import RawTransaction

GERMAN_CSV = (
    "Buchungstag;Verwendungszweck;Betrag;Begünstigter/Auftraggeber\n"
    "01.05.2024;REWE SAGT DANKE;-23,45;REWE Markt GmbH\n"
    ";;;\n"
    "03.05.2024;Gehalt Mai;2.500,00;Arbeitgeber GmbH\n"
    "04.05.2024;Kein Betrag;;Someone\n"
    "02.05.2024;Miete Mai;-900,00;Hausverwaltung\n"
)

OFX = """OFXHEADER:100
<OFX><BANKMSGSRSV1><STMTTRNRS><STMTRS><BANKTRANLIST>
<STMTTRN>
<TRNTYPE>DEBIT
<DTPOSTED>20240510120000
<TRNAMT>-12.99
<NAME>NETFLIX.COM
<MEMO>Monthly plan
</STMTTRN>
<STMTTRN>
<TRNTYPE>CREDIT
<DTPOSTED>20240511
<TRNAMT>0.00
<NAME>Zero
</STMTTRN>
</BANKTRANLIST></STMTRS></STMTTRNRS></BANKMSGSRSV1></OFX>
"""


@pytest.fixture
def german_csv(tmp_path):
    path = tmp_path / "export.csv"
    path.write_bytes(GERMAN_CSV.encode("utf-8"))
    return path


def test_parse_german_csv(german_csv):
    transactions = parse_file(str(german_csv))

    # Empty and incomplete rows are dropped, newest first.
    assert [tx.date for tx in transactions] == ["2024-05-03", "2024-05-02", "2024-05-01"]
    rewe = transactions[-1]
    assert rewe.description == "REWE SAGT DANKE"
    assert rewe.amount == pytest.approx(-23.45)
    assert rewe.recipient == "REWE Markt GmbH"
    assert rewe.currency == "EUR"
    assert rewe.raw_data["Betrag"] == "-23,45"
    assert transactions[0].amount == pytest.approx(2500.0)


def test_parse_generic_csv_with_currency():
    data = b"Date,Description,Amount,Currency\n2024-01-02,Coffee,-3.50,usd\n2024-01-01,Refund,10.00,usd\n"
    transactions = parse_bytes(data, "generic.csv")

    assert len(transactions) == 2
    assert transactions[0].description == "Coffee"
    assert transactions[0].currency == "USD"
    assert detect_currency(transactions) == "USD"


def test_parse_excel(tmp_path):
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["Date", "Description", "Amount"])
    sheet.append(["2024-02-01", "Netflix", "-12.99"])
    sheet.append(["2024-02-15", "Salary", "3000"])
    path = tmp_path / "export.xlsx"
    workbook.save(path)

    transactions = parse_file(str(path))

    assert [tx.description for tx in transactions] == ["Salary", "Netflix"]
    assert transactions[1].amount == pytest.approx(-12.99)


def test_parse_ofx_skips_zero_amounts():
    transactions = parse_bytes(OFX.encode("utf-8"), "statement.ofx")

    assert len(transactions) == 1
    tx = transactions[0]
    assert tx.date == "2024-05-10"
    assert tx.amount == pytest.approx(-12.99)
    assert tx.description == "Monthly plan"
    assert tx.recipient == "NETFLIX.COM"


def test_empty_file_raises(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_bytes(b"")
    with pytest.raises(EmptyFileError) as excinfo:
        parse_file(str(path))
    assert "empty.csv" in str(excinfo.value)


def test_header_only_file_raises():
    with pytest.raises(EmptyFileError):
        parse_bytes(b"Date,Description,Amount\n", "headers.csv")


def test_unsupported_file_type():
    with pytest.raises(UnsupportedFileError):
        parse_bytes(b"%PDF-1.4", "statement.pdf")


def test_missing_file_raises_parse_error(tmp_path):
    with pytest.raises(ParseError):
        parse_file(str(tmp_path / "missing.csv"))


def test_get_file_type_uses_mime_type():
    assert get_file_type("upload", "text/csv") == "csv"
    assert get_file_type("export.XLSX") == "excel"
    assert get_file_type("notes.doc") == "unknown"


def test_detect_bank_format():
    assert detect_bank_format(["Buchungstag", "Analyse-Hauptkategorie"]) == "Finanzguru"
    assert detect_bank_format(["Datum", "Amount (EUR)"]) == "N26"
    assert detect_bank_format(["Buchung", "Auftraggeber/Empfänger"]) == "ING-DiBa"
    assert detect_bank_format(["Date", "Amount"]) == "Generic CSV"


def test_finanzguru_columns():
    data = (
        "Buchungstag;Referenzkonto;Name Referenzkonto;Betrag;Verwendungszweck;"
        "Analyse-Hauptkategorie;Analyse-Unterkategorie;Analyse-Umbuchung\n"
        "05.05.2024;DE00123;Girokonto;-50,00;Sparen;Sparen;Sparplan;ja\n"
    ).encode("utf-8")

    [tx] = parse_bytes(data, "finanzguru.csv")

    assert tx.reference_account == "DE00123"
    assert tx.reference_account_name == "Girokonto"
    assert tx.category == "Sparen"
    assert tx.subcategory == "Sparplan"
    assert tx.is_transfer is True


def test_filter_by_date_range():
    transactions = [
        RawTransaction(date=day, description="x", amount=-1.0)
        for day in ("2024-01-01", "2024-01-15", "2024-02-01")
    ]

    kept = filter_by_date_range(transactions, "15.01.2024", "2024-02-01")

    assert [tx.date for tx in kept] == ["2024-01-15", "2024-02-01"]
    assert filter_by_date_range(transactions) == transactions
    with pytest.raises(ValueError):
        filter_by_date_range(transactions, "someday")


def test_detect_currency_defaults_to_eur():
    assert detect_currency([]) == "EUR"
