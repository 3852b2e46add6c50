import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from finkit.rules.table import RuleTable

GENERIC_FORMAT = "Generic CSV"


@dataclass(frozen=True)
class BankFormat:
    """
    One known export layout: a name plus the header fingerprint that identifies it.

    The header-to-field mapping lives in the rule table so it can be extended
    without touching code.
    """

    name: str
    fingerprint: Callable[[set[str]], bool]

    def matches(self, headers: set[str]) -> bool:
        return self.fingerprint(headers)


def _has_any(*names: str) -> Callable[[set[str]], bool]:
    return lambda headers: any(name in headers for name in names)


def _has_all(*names: str) -> Callable[[set[str]], bool]:
    return lambda headers: all(name in headers for name in names)


# Most distinctive header combination first.
BANK_FORMATS: tuple[BankFormat, ...] = (
    BankFormat("Finanzguru", _has_any("Analyse-Hauptkategorie", "Name Referenzkonto")),
    BankFormat("N26", _has_any("Betrag (EUR)", "Amount (EUR)")),
    BankFormat("DKB", _has_any("Gläubiger-ID", "Mandatsreferenz")),
    BankFormat("ING-DiBa", _has_all("Auftraggeber/Empfänger", "Buchung")),
    BankFormat("Sparkasse", _has_any("Beguenstigter/Zahlungspflichtiger")),
)

# Lookup order for headers that the detected format does not know.
MAPPING_PRIORITY: tuple[str, ...] = (
    "Finanzguru",
    "N26",
    "DKB",
    "ING-DiBa",
    "Sparkasse",
    GENERIC_FORMAT,
)


def detect_bank_format(headers: Iterable[str]) -> str:
    header_set = {header.strip() for header in headers}
    for bank_format in BANK_FORMATS:
        if bank_format.matches(header_set):
            return bank_format.name
    return GENERIC_FORMAT


def slugify_header(header: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", header.lower())


def normalize_column_name(header: str, rules: RuleTable, bank_format: str | None = None) -> str:
    header = header.strip()
    order = list(MAPPING_PRIORITY)
    if bank_format and bank_format in rules.header_mappings:
        order.insert(0, bank_format)
    # Mappings added through the rules file come last.
    order.extend(name for name in rules.header_mappings if name not in order)
    for name in order:
        mapping = rules.header_mappings.get(name, {})
        if header in mapping:
            return mapping[header]
    return slugify_header(header)


def build_column_map(headers: list[str], rules: RuleTable) -> tuple[str, dict[str, str]]:
    bank_format = detect_bank_format(headers)
    column_map = {
        header: normalize_column_name(header, rules, bank_format)
        for header in headers
    }
    return bank_format, column_map
