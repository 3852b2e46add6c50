import csv
import io
import os
import re
from typing import Any, Literal

import pandas as pd

from finkit.errors import EmptyFileError, ParseError, UnsupportedFileError
from finkit.ingestion.formats import build_column_map
from finkit.ingestion.values import parse_amount, parse_date, parse_transfer_flag
from finkit.logger import get_logger
from finkit.models import RawTransaction
from finkit.rules.table import RuleTable

logger = get_logger(__name__)

FileType = Literal["csv", "excel", "ofx", "unknown"]

SUPPORTED_FILE_TYPES: dict[str, tuple[str, ...]] = {
    "csv": (".csv", ".txt", "text/csv", "application/csv"),
    "excel": (
        ".xlsx",
        ".xlsm",
        ".xls",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-excel",
    ),
    "ofx": (".ofx", ".qfx", "application/x-ofx"),
}

_CSV_ENCODINGS = ("utf-8-sig", "latin-1")

_TEXT_FIELDS = (
    "description",
    "category",
    "subcategory",
    "recipient",
    "recipient_iban",
    "reference_account",
    "reference_account_name",
)

_OFX_TRANSACTION = re.compile(r"<STMTTRN>(.*?)</STMTTRN>", re.IGNORECASE | re.DOTALL)


def supported_extensions() -> str:
    return ", ".join(
        ext for types in SUPPORTED_FILE_TYPES.values() for ext in types if ext.startswith(".")
    )


def get_file_type(file_name: str, mime_type: str | None = None) -> FileType:
    ext = os.path.splitext(file_name)[1].lower()
    mime = (mime_type or "").lower()
    for file_type, markers in SUPPORTED_FILE_TYPES.items():
        if ext and ext in markers:
            return file_type  # type: ignore[return-value]
    for file_type, markers in SUPPORTED_FILE_TYPES.items():
        if mime and mime in markers:
            return file_type  # type: ignore[return-value]
    return "unknown"


def parse_file(path: str, rules: RuleTable | None = None) -> list[RawTransaction]:
    file_name = os.path.basename(path)
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        raise ParseError(file_name, f"could not read file ({exc.strerror or exc})") from exc
    return parse_bytes(data, file_name, rules=rules)


def parse_bytes(
    data: bytes,
    file_name: str,
    mime_type: str | None = None,
    rules: RuleTable | None = None,
) -> list[RawTransaction]:
    """
    Parse an uploaded bank export into raw transactions, newest first.

    Raises ``ParseError`` for anything that prevents reading the file as a
    whole. Individual malformed rows are dropped.
    """
    rules = rules or RuleTable.default()
    file_type = get_file_type(file_name, mime_type)

    if file_type == "csv":
        headers, rows = _read_csv(data, file_name)
        transactions = process_rows(rows, headers, rules, file_name=file_name)
    elif file_type == "excel":
        headers, rows = _read_excel(data, file_name)
        transactions = process_rows(rows, headers, rules, file_name=file_name)
    elif file_type == "ofx":
        transactions = parse_ofx(_decode_text(data), file_name=file_name)
    else:
        raise UnsupportedFileError(
            file_name,
            f"unsupported file type. Supported formats: {supported_extensions()}",
        )

    if not transactions:
        raise EmptyFileError(file_name)
    return transactions


def _decode_text(data: bytes) -> str:
    for encoding in _CSV_ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    return data.decode("utf-8", errors="replace")


def _frame_to_rows(frame: pd.DataFrame) -> tuple[list[str], list[dict[str, str]]]:
    headers = [str(column).strip() for column in frame.columns]
    frame.columns = headers
    frame = frame.fillna("")
    rows = [
        {header: str(value) for header, value in record.items()}
        for record in frame.to_dict(orient="records")
    ]
    return headers, rows


def _read_csv(data: bytes, file_name: str) -> tuple[list[str], list[dict[str, str]]]:
    if not data.strip():
        raise EmptyFileError(file_name, "file is empty")

    last_error: Exception | None = None
    for encoding in _CSV_ENCODINGS:
        try:
            frame = pd.read_csv(
                io.BytesIO(data),
                sep=None,
                engine="python",
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                encoding=encoding,
            )
        except UnicodeDecodeError as exc:
            last_error = exc
            continue
        except pd.errors.EmptyDataError as exc:
            raise EmptyFileError(file_name, "file is empty") from exc
        except (pd.errors.ParserError, ValueError, csv.Error) as exc:
            raise ParseError(file_name, f"failed to parse CSV ({exc})") from exc
        logger.debug("[PARSE] Read %s as CSV (%s), %d rows.", file_name, encoding, len(frame))
        return _frame_to_rows(frame)

    raise ParseError(file_name, f"failed to decode CSV ({last_error})")


def _read_excel(data: bytes, file_name: str) -> tuple[list[str], list[dict[str, str]]]:
    try:
        frame = pd.read_excel(
            io.BytesIO(data),
            sheet_name=0,
            header=0,
            dtype=str,
            keep_default_na=False,
        )
    except ImportError as exc:
        raise ParseError(file_name, f"missing spreadsheet engine ({exc})") from exc
    except Exception as exc:
        raise ParseError(file_name, f"failed to parse Excel file ({exc})") from exc
    logger.debug("[PARSE] Read %s as spreadsheet, %d rows.", file_name, len(frame))
    return _frame_to_rows(frame)


def _is_empty_row(row: dict[str, Any]) -> bool:
    return all(not value or not str(value).strip() for value in row.values())


def process_rows(
    rows: list[dict[str, str]],
    headers: list[str],
    rules: RuleTable,
    *,
    file_name: str = "<memory>",
) -> list[RawTransaction]:
    bank_format, column_map = build_column_map(headers, rules)
    logger.info("[PARSE] %s: detected %s format.", file_name, bank_format)

    transactions: list[RawTransaction] = []
    skipped_empty = 0
    skipped_invalid = 0

    for row in rows:
        if _is_empty_row(row):
            skipped_empty += 1
            continue

        mapped: dict[str, Any] = {}
        for original, field_name in column_map.items():
            value = (row.get(original) or "").strip()
            if field_name == "date":
                if "date" not in mapped or mapped["date"] is None:
                    mapped["date"] = parse_date(value)
            elif field_name == "amount":
                if mapped.get("amount") is None:
                    mapped["amount"] = parse_amount(value)
            elif field_name == "is_transfer":
                mapped["is_transfer"] = parse_transfer_flag(value)
            elif field_name == "currency":
                mapped["currency"] = value.upper() or mapped.get("currency") or "EUR"
            elif field_name in _TEXT_FIELDS:
                if value and not mapped.get(field_name):
                    mapped[field_name] = value

        if not mapped.get("date") or mapped.get("amount") is None:
            skipped_invalid += 1
            continue

        transactions.append(RawTransaction(
            date=mapped["date"],
            description=mapped.get("description", ""),
            amount=mapped["amount"],
            currency=mapped.get("currency") or "EUR",
            category=mapped.get("category"),
            subcategory=mapped.get("subcategory"),
            recipient=mapped.get("recipient"),
            recipient_iban=mapped.get("recipient_iban"),
            reference_account=mapped.get("reference_account"),
            reference_account_name=mapped.get("reference_account_name"),
            is_transfer=mapped.get("is_transfer"),
            raw_data={key: str(value) for key, value in row.items()},
        ))

    if skipped_empty or skipped_invalid:
        logger.debug(
            "[PARSE] %s: skipped %d empty and %d incomplete rows.",
            file_name,
            skipped_empty,
            skipped_invalid,
        )

    return sort_newest_first(transactions)


def sort_newest_first(transactions: list[RawTransaction]) -> list[RawTransaction]:
    # sorted() is stable with reverse=True, so same-day rows keep file order.
    return sorted(transactions, key=lambda tx: tx.date, reverse=True)


def _ofx_field(block: str, name: str) -> str:
    match = re.search(rf"<{name}>([^<\r\n]+)", block, re.IGNORECASE)
    return match.group(1).strip() if match else ""


def parse_ofx(content: str, *, file_name: str = "<memory>") -> list[RawTransaction]:
    """Extract ``<STMTTRN>`` blocks from OFX/QFX text. Not a full OFX parser."""
    transactions: list[RawTransaction] = []
    for match in _OFX_TRANSACTION.finditer(content):
        block = match.group(1)
        date_raw = _ofx_field(block, "DTPOSTED")
        amount = parse_amount(_ofx_field(block, "TRNAMT"))
        name = _ofx_field(block, "NAME")
        memo = _ofx_field(block, "MEMO")
        trn_type = _ofx_field(block, "TRNTYPE")

        date_value = None
        if len(date_raw) >= 8:
            date_value = parse_date(f"{date_raw[0:4]}-{date_raw[4:6]}-{date_raw[6:8]}")

        if not date_value or not amount:
            continue

        transactions.append(RawTransaction(
            date=date_value,
            description=memo or name or trn_type,
            amount=amount,
            currency=_ofx_field(block, "CURRENCY") or "EUR",
            recipient=name or None,
            category=trn_type or None,
            raw_data={
                "DTPOSTED": date_raw,
                "TRNAMT": str(amount),
                "NAME": name,
                "MEMO": memo,
                "TRNTYPE": trn_type,
            },
        ))

    logger.info("[PARSE] %s: read %d OFX transactions.", file_name, len(transactions))
    return sort_newest_first(transactions)


def detect_currency(transactions: list[RawTransaction]) -> str:
    counts: dict[str, int] = {}
    for tx in transactions:
        currency = tx.currency or "EUR"
        counts[currency] = counts.get(currency, 0) + 1
    if not counts:
        return "EUR"
    # max() keeps the first currency seen on ties.
    return max(counts, key=lambda currency: counts[currency])


def filter_by_date_range(
    transactions: list[RawTransaction],
    start: str | None = None,
    end: str | None = None,
) -> list[RawTransaction]:
    """Keep transactions dated within ``[start, end]``. Either bound may be open."""
    start_date = parse_date(start) if start else None
    end_date = parse_date(end) if end else None
    if start and not start_date:
        raise ValueError(f"Invalid start date: {start!r}")
    if end and not end_date:
        raise ValueError(f"Invalid end date: {end!r}")

    # ISO strings compare in date order.
    return [
        tx
        for tx in transactions
        if (start_date is None or tx.date >= start_date)
        and (end_date is None or tx.date <= end_date)
    ]
