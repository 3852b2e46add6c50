import re
import time
from collections.abc import Callable

from finkit.anonymization.store import AnonymizationStore
from finkit.logger import get_logger
from finkit.models import AnonymizedBatch, RawTransaction, Transaction
from finkit.rules.table import RuleTable

logger = get_logger(__name__)

IBAN_PATTERN = re.compile(r"\b[A-Z]{2}\d{2}(?: ?[A-Z0-9]{4}){1,2}(?: ?\d{4}){2,}(?: ?[A-Z0-9]{1,4})?\b")
COMPACT_IBAN_PATTERN = re.compile(r"[A-Z]{2}\d{2}[A-Z0-9]{4}\d{7}[A-Z0-9]{0,16}")
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"(?:\+\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")

MIN_NAME_LENGTH = 4

_MERCHANT_SUFFIXES = re.compile(r"\b(gmbh|ag|ltd|ug|kg|inc|co)\b\.?", re.IGNORECASE)

IdFactory = Callable[[int], str]


def session_id_factory() -> IdFactory:
    """Ids of the form ``tx_<epoch millis>_<row index>``, unique per import."""
    stamp = int(time.time() * 1000)
    return lambda index: f"tx_{stamp}_{index}"


def is_likely_business(name: str | None, rules: RuleTable) -> bool:
    """
    Decide whether a counterparty is a business that may stay in clear text.

    Unknown names are treated as personal data.
    """
    if not name:
        return False
    lower = name.lower().strip()
    tokens = {token.strip(".") for token in re.findall(r"[\w.&]+", lower)}

    for merchant in rules.known_merchants:
        # Short brand names ("dm", "db", "ing") only count as whole words,
        # otherwise "Ingrid" or "Richard" would pass as businesses.
        if len(merchant) < 4:
            if re.search(rf"(?<!\w){re.escape(merchant)}(?!\w)", lower):
                return True
        elif merchant in lower:
            return True

    for suffix in rules.business_suffixes:
        if suffix.strip(".") in tokens:
            return True
        if len(suffix) >= 5 and suffix in lower:
            return True
    return False


def clean_merchant_name(name: str) -> str:
    cleaned = _MERCHANT_SUFFIXES.sub("", name)
    return re.sub(r"\s+", " ", cleaned).strip(" ,.-")


def to_transaction(raw: RawTransaction, tx_id: str, **updates: object) -> Transaction:
    data = raw.model_dump()
    data.update(
        id=tx_id,
        type="expense" if raw.amount < 0 else "income",
        amount=abs(raw.amount),
        category_source="rule" if raw.category else None,
    )
    data.update(updates)
    return Transaction(**data)


class Anonymizer:
    """
    Replaces personal data in a batch of raw transactions with pseudonyms.

    One instance owns one :class:`AnonymizationStore`. The store is reset at the
    start of every :meth:`anonymize` call, so mappings never leak between
    imports.
    """

    def __init__(
        self,
        rules: RuleTable | None = None,
        store: AnonymizationStore | None = None,
        id_factory: IdFactory | None = None,
    ) -> None:
        self.rules = rules or RuleTable.default()
        self.store = store if store is not None else AnonymizationStore()
        self.id_factory = id_factory

    def anonymize(self, raw_transactions: list[RawTransaction]) -> AnonymizedBatch:
        self.store.clear()
        make_id = self.id_factory or session_id_factory()

        personal_names = self._collect_personal_names(raw_transactions)

        transactions: list[Transaction] = []
        for index, raw in enumerate(raw_transactions):
            business = is_likely_business(raw.recipient, self.rules)

            recipient = raw.recipient
            if recipient and recipient.strip() and not business:
                recipient = self.store.get_or_create(recipient.strip(), "name")

            transactions.append(to_transaction(
                raw,
                make_id(index),
                recipient=recipient,
                recipient_iban=self._anonymize_account(raw.recipient_iban),
                description=self.anonymize_text(raw.description, personal_names),
                merchant=clean_merchant_name(raw.recipient) if raw.recipient and business else None,
            ))

        logger.info(
            "[ANON] Anonymized %d transactions, %d pseudonyms created.",
            len(transactions),
            len(self.store),
        )
        return AnonymizedBatch(transactions=transactions, mappings=self.store.mappings())

    def passthrough(self, raw_transactions: list[RawTransaction]) -> AnonymizedBatch:
        """Same output shape as :meth:`anonymize` but with every value left intact."""
        make_id = self.id_factory or session_id_factory()
        transactions = [
            to_transaction(
                raw,
                make_id(index),
                merchant=(
                    clean_merchant_name(raw.recipient)
                    if raw.recipient and is_likely_business(raw.recipient, self.rules)
                    else None
                ),
            )
            for index, raw in enumerate(raw_transactions)
        ]
        return AnonymizedBatch(transactions=transactions, mappings=[])

    def get_original(self, anonymized: str) -> str | None:
        return self.store.get_original(anonymized)

    def clear(self) -> None:
        self.store.clear()

    def _collect_personal_names(self, raw_transactions: list[RawTransaction]) -> list[str]:
        names: dict[str, None] = {}
        for raw in raw_transactions:
            recipient = (raw.recipient or "").strip()
            if len(recipient) >= MIN_NAME_LENGTH and not is_likely_business(recipient, self.rules):
                names[recipient] = None
        # Longest first so "Anna Schmidt" wins over "Anna".
        return sorted(names, key=len, reverse=True)

    def _anonymize_account(self, value: str | None) -> str | None:
        if not value:
            return value
        compact = value.replace(" ", "").upper()
        if COMPACT_IBAN_PATTERN.fullmatch(compact):
            return self.store.get_or_create(compact, "iban")
        return self.store.get_or_create(value, "account")

    def anonymize_text(self, text: str, personal_names: list[str]) -> str:
        if not text:
            return text

        result = IBAN_PATTERN.sub(
            lambda match: self.store.get_or_create(match.group(0).replace(" ", ""), "iban"),
            text,
        )
        result = COMPACT_IBAN_PATTERN.sub(
            lambda match: self.store.get_or_create(match.group(0), "iban"),
            result,
        )
        result = EMAIL_PATTERN.sub(
            lambda match: self.store.get_or_create(match.group(0), "email"),
            result,
        )
        result = PHONE_PATTERN.sub(
            lambda match: self.store.get_or_create(match.group(0), "phone"),
            result,
        )

        for name in personal_names:
            pattern = re.compile(rf"(?<!\w){re.escape(name)}(?!\w)", re.IGNORECASE)
            if pattern.search(result):
                pseudonym = self.store.get_or_create(name, "name")
                result = pattern.sub(lambda _match: pseudonym, result)

        return result
