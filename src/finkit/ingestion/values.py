import re
from datetime import date, datetime

from dateutil import parser as date_parser

_GERMAN_DATE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_US_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

_TRUE_FLAGS = {"ja", "yes", "true", "1"}


def _iso(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_date(value: str | None) -> str | None:
    """
    Normalize a booking date to ``YYYY-MM-DD``.

    Tries ``DD.MM.YYYY``, ``YYYY-MM-DD`` (with or without a time part) and
    ``MM/DD/YYYY`` before handing the string to dateutil. Returns ``None`` when
    nothing fits so the caller can drop the row.
    """
    if not value:
        return None
    text = value.strip()
    if not text:
        return None

    match = _GERMAN_DATE.match(text)
    if match:
        day, month, year = match.groups()
        return _iso(int(year), int(month), int(day))

    match = _ISO_DATE.match(text)
    if match:
        year, month, day = match.groups()
        return _iso(int(year), int(month), int(day))

    match = _US_DATE.match(text)
    if match:
        month, day, year = match.groups()
        return _iso(int(year), int(month), int(day))

    try:
        parsed = date_parser.parse(text, dayfirst=True)
    except (ValueError, OverflowError):
        return None
    return parsed.date().isoformat()


def to_date(value: str) -> date:
    return datetime.strptime(value[:10], "%Y-%m-%d").date()


def parse_amount(value: str | None) -> float | None:
    """
    Parse a bank amount written in European or US notation.

    The later of the last ``.`` and last ``,`` is the decimal separator. With
    only commas present, a comma followed by exactly two digits is decimal and
    any other comma groups thousands.
    """
    if value is None:
        return None
    # Drop quotes, whitespace, currency symbols and codes.
    cleaned = re.sub(r"[^\d.,+-]", "", str(value)).lstrip("+")
    if not re.search(r"\d", cleaned):
        return None

    # Trailing minus, e.g. "12,50-" in some Sparkasse exports.
    if cleaned.endswith("-") and not cleaned.startswith("-"):
        cleaned = "-" + cleaned[:-1]

    last_dot = cleaned.rfind(".")
    last_comma = cleaned.rfind(",")

    if last_dot == -1 and last_comma == -1:
        cleaned = re.sub(r"[^\d-]", "", cleaned)
    elif last_dot > last_comma:
        cleaned = cleaned.replace(",", "")
        if cleaned.count(".") > 1:
            # "1.234.567": dots can only be grouping here
            cleaned = cleaned.replace(".", "")
    elif last_dot != -1:
        cleaned = cleaned.replace(".", "").replace(",", ".")
    else:
        after_comma = cleaned[last_comma + 1:]
        if len(after_comma) == 2 and after_comma.isdigit() and cleaned.count(",") == 1:
            cleaned = cleaned.replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")

    if cleaned.count("-") > 1 or (cleaned.count("-") == 1 and not cleaned.startswith("-")):
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_transfer_flag(value: str | None) -> bool:
    if not value:
        return False
    return value.strip().lower() in _TRUE_FLAGS
