import re
from collections import defaultdict
from collections.abc import Iterable, Sequence

from pydantic import BaseModel

from finkit.logger import get_logger
from finkit.models import Transaction, TransferDetection, TransferPair
from finkit.rules.categories import TRANSFER
from finkit.rules.table import RuleTable

logger = get_logger(__name__)

# Amounts closer than this are treated as the same transfer.
AMOUNT_TOLERANCE = 0.01
# Account identifiers must be longer than this to be searched in descriptions.
MIN_DESCRIPTION_ACCOUNT_LENGTH = 6
MIN_ACCOUNT_NAME_LENGTH = 3

_DIGITS = re.compile(r"(\d+)")


def row_order(tx: Transaction) -> list[str | int]:
    """Sort key for ids of the form ``tx_<stamp>_<index>``: numeric parts compare as numbers."""
    return [int(part) if part.isdigit() else part for part in _DIGITS.split(tx.id)]


class PairSummary(BaseModel):
    count: int
    total_amount: float


class InternalTransferSummary(BaseModel):
    excluded_income: float
    excluded_expense: float
    internal_count: int


class TransferDetector:
    """
    Flags money moving between the user's own accounts.

    The user's accounts are taken from the reference account columns of the
    batch itself. Internal incomes are excluded from totals so a move between
    two accounts is not counted as both spending and earning.
    """

    def __init__(self, rules: RuleTable | None = None) -> None:
        self.rules = rules or RuleTable.default()

    @staticmethod
    def collect_accounts(transactions: Iterable[Transaction]) -> tuple[set[str], set[str]]:
        accounts: set[str] = set()
        names: set[str] = set()
        for tx in transactions:
            if tx.reference_account:
                accounts.add(tx.reference_account.strip().lower())
            if tx.reference_account_name:
                names.add(tx.reference_account_name.strip().lower())
        accounts.discard("")
        names.discard("")
        return accounts, names

    def _mentions_other_account(self, description: str, tx: Transaction, accounts: set[str]) -> bool:
        own = (tx.reference_account or "").strip().lower()
        words = "|".join(re.escape(word) for word in self.rules.account_direction_words)
        if not words:
            return False
        for account in accounts:
            if account == own:
                continue
            if re.search(rf"\b(?:{words})\s+{re.escape(account)}(?!\w)", description):
                return True
        return False

    def is_internal(self, tx: Transaction, accounts: set[str], names: set[str]) -> bool:
        if tx.is_transfer:
            return True

        description = (tx.description or "").lower()
        recipient = (tx.recipient or "").lower()
        recipient_iban = (tx.recipient_iban or "").lower()

        for account in accounts:
            if account in recipient_iban or account in recipient:
                return True
            if len(account) > MIN_DESCRIPTION_ACCOUNT_LENGTH and account in description:
                return True

        if any(keyword in description for keyword in self.rules.transfer_keywords):
            return True

        for name in names:
            if len(name) > MIN_ACCOUNT_NAME_LENGTH and name in recipient:
                return True

        # "Transfer to Wise" booked on the N26 account
        if self._mentions_other_account(description, tx, accounts):
            return True

        # "Sent <person>" is left to the pairing step.
        return False

    @staticmethod
    def pair(internal: Sequence[Transaction]) -> list[TransferPair]:
        """Greedy same-day pairing. Within a day, rows are visited in row order."""
        by_date: dict[str, list[Transaction]] = defaultdict(list)
        for tx in internal:
            by_date[tx.date].append(tx)

        pairs: list[TransferPair] = []
        for date in sorted(by_date):
            day = sorted(by_date[date], key=row_order)
            expenses = [tx for tx in day if tx.type == "expense"]
            incomes = [tx for tx in day if tx.type == "income"]
            paired: set[str] = set()

            for expense in expenses:
                for income in incomes:
                    if income.id in paired:
                        continue
                    if abs(expense.amount - income.amount) > AMOUNT_TOLERANCE:
                        continue
                    pairs.append(
                        TransferPair(
                            outgoing=expense,
                            incoming=income,
                            amount=expense.amount,
                            date=date,
                        )
                    )
                    paired.add(expense.id)
                    paired.add(income.id)
                    break
        return pairs

    def detect(self, transactions: Sequence[Transaction]) -> TransferDetection:
        accounts, names = self.collect_accounts(transactions)
        internal = [tx for tx in transactions if self.is_internal(tx, accounts, names)]
        internal_ids = {tx.id for tx in internal}
        pairs = self.pair(internal)

        partners: dict[str, str] = {}
        for p in pairs:
            partners[p.outgoing.id] = p.incoming.id
            partners[p.incoming.id] = p.outgoing.id

        result = []
        for tx in transactions:
            if tx.id not in internal_ids:
                result.append(tx)
                continue
            result.append(
                tx.model_copy(
                    update={
                        "category": TRANSFER,
                        "is_transfer": True,
                        "is_excluded": tx.type == "income",
                        "double_booking_match": partners.get(tx.id),
                    }
                )
            )

        # Pairs carry the annotated transactions.
        annotated = {tx.id: tx for tx in result}
        pairs = [
            p.model_copy(
                update={
                    "outgoing": annotated[p.outgoing.id],
                    "incoming": annotated[p.incoming.id],
                }
            )
            for p in pairs
        ]

        logger.info(
            "[TRANSFER] %d internal transactions, %d pairs.", len(internal), len(pairs)
        )
        return TransferDetection(transactions=result, pairs=pairs)


def pair_summary(pairs: Iterable[TransferPair]) -> PairSummary:
    pairs = list(pairs)
    return PairSummary(
        count=len(pairs),
        total_amount=round(sum(p.amount for p in pairs), 2),
    )


def internal_transfer_summary(transactions: Iterable[Transaction]) -> InternalTransferSummary:
    internal = [tx for tx in transactions if tx.is_transfer and tx.category == TRANSFER]
    return InternalTransferSummary(
        excluded_income=round(
            sum(tx.amount for tx in internal if tx.type == "income" and tx.is_excluded), 2
        ),
        excluded_expense=round(
            sum(tx.amount for tx in internal if tx.type == "expense" and tx.is_excluded), 2
        ),
        internal_count=len(internal),
    )
