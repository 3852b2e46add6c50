import re
from collections.abc import Iterable

from pydantic import BaseModel, Field

from finkit.anonymization.anonymizer import COMPACT_IBAN_PATTERN, EMAIL_PATTERN, PHONE_PATTERN
from finkit.models import Transaction

# Only checked before the AI call. The anonymizer leaves postal codes in place.
ADDRESS_PATTERN = re.compile(r"\b\d{5}\s+[A-Za-zÄÖÜäöüß]+")

PERSONAL_DATA_PATTERNS: dict[str, re.Pattern[str]] = {
    "full_iban": COMPACT_IBAN_PATTERN,
    "email": EMAIL_PATTERN,
    "phone": PHONE_PATTERN,
    "address_with_postal_code": ADDRESS_PATTERN,
}


class AnonymizationCheck(BaseModel):
    is_valid: bool
    issues: list[str] = Field(default_factory=list)


def contains_personal_data(text: str | None) -> bool:
    if not text:
        return False
    return any(pattern.search(text) for pattern in PERSONAL_DATA_PATTERNS.values())


def validate_anonymized(transactions: Iterable[Transaction]) -> AnonymizationCheck:
    """Check descriptions for personal data before they leave the process."""
    issues: list[str] = []
    for tx in transactions:
        for name, pattern in PERSONAL_DATA_PATTERNS.items():
            if pattern.search(tx.description or ""):
                issues.append(f"Transaction {tx.id}: contains {name} in description")
    return AnonymizationCheck(is_valid=not issues, issues=issues)
