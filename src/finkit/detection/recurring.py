import math
from collections import defaultdict
from collections.abc import Iterable, Sequence

from pydantic import BaseModel

from finkit.ingestion.values import to_date
from finkit.logger import get_logger
from finkit.models import Frequency, RecurringPattern, Transaction
from finkit.rules.categories import OTHER, TRANSFER

logger = get_logger(__name__)

AMOUNT_TOLERANCE = 0.05
MIN_OCCURRENCES = 2
DAY_TOLERANCE = 3
KEY_DESCRIPTION_LENGTH = 30

# (frequency, min average gap, max average gap) in days
FREQUENCY_BUCKETS: list[tuple[Frequency, float, float]] = [
    ("weekly", 5, 9),
    ("monthly", 25, 35),
    ("quarterly", 80, 100),
    ("yearly", 350, 380),
]

MONTHLY_FACTORS: dict[str, float] = {
    "weekly": 4.33,
    "monthly": 1.0,
    "quarterly": 1 / 3,
    "yearly": 1 / 12,
}


class CategoryAmount(BaseModel):
    category: str
    amount: float


class RecurringSummary(BaseModel):
    total_monthly_recurring: float
    recurring_by_category: list[CategoryAmount]


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def merchant_label(tx: Transaction) -> str:
    return tx.merchant or tx.recipient or (tx.description or "")[:KEY_DESCRIPTION_LENGTH]


def group_key(tx: Transaction) -> str:
    return f"{merchant_label(tx).lower()}_{_round_half_up(tx.amount)}"


def amounts_similar(first: float, second: float) -> bool:
    larger = max(first, second)
    if larger == 0:
        return True
    return abs(first - second) / larger <= AMOUNT_TOLERANCE


def frequency_for(average_gap: float) -> Frequency | None:
    for frequency, low, high in FREQUENCY_BUCKETS:
        if low <= average_gap <= high:
            return frequency
    return None


class RecurrenceDetector:
    def group(self, transactions: Iterable[Transaction]) -> dict[str, list[Transaction]]:
        groups: dict[str, list[Transaction]] = defaultdict(list)
        for tx in transactions:
            if tx.type == "income" or tx.category == TRANSFER:
                continue
            groups[group_key(tx)].append(tx)
        return groups

    def find_patterns(self, transactions: Iterable[Transaction]) -> list[RecurringPattern]:
        patterns: list[RecurringPattern] = []
        for key, members in self.group(transactions).items():
            if len(members) < MIN_OCCURRENCES:
                continue

            ordered = sorted(members, key=lambda tx: to_date(tx.date))
            first_amount = ordered[0].amount
            if not all(amounts_similar(tx.amount, first_amount) for tx in ordered):
                continue

            dates = [to_date(tx.date) for tx in ordered]
            gaps = [(later - earlier).days for earlier, later in zip(dates, dates[1:])]
            average = sum(gaps) / len(gaps)
            frequency = frequency_for(average)
            if frequency is None:
                continue
            if len(gaps) > 1 and any(abs(gap - average) > DAY_TOLERANCE * 2 for gap in gaps):
                logger.debug("[RECURRING] Irregular gaps for %s.", key)
                continue

            patterns.append(
                RecurringPattern(
                    merchant=merchant_label(ordered[0]),
                    category=ordered[0].category or OTHER,
                    avg_amount=sum(tx.amount for tx in ordered) / len(ordered),
                    frequency=frequency,
                    transactions=[tx.id for tx in ordered],
                )
            )
        return patterns

    def detect(self, transactions: Sequence[Transaction]) -> list[Transaction]:
        patterns = self.find_patterns(transactions)
        frequencies: dict[str, Frequency] = {}
        for pattern in patterns:
            for tx_id in pattern.transactions:
                frequencies[tx_id] = pattern.frequency

        logger.info(
            "[RECURRING] %d patterns covering %d transactions.", len(patterns), len(frequencies)
        )
        return [
            tx.model_copy(update={"is_recurring": True, "recurring_frequency": frequencies[tx.id]})
            if tx.id in frequencies
            else tx
            for tx in transactions
        ]


def monthly_equivalent(tx: Transaction) -> float:
    return tx.amount * MONTHLY_FACTORS.get(tx.recurring_frequency or "monthly", 1.0)


def recurring_summary(transactions: Iterable[Transaction]) -> RecurringSummary:
    """Monthly cost of recurring expenses, counting each merchant/amount once."""
    by_category: dict[str, float] = defaultdict(float)
    total = 0.0
    seen: set[str] = set()

    for tx in transactions:
        if not tx.is_recurring or tx.type != "expense":
            continue
        key = f"{merchant_label(tx)}_{_round_half_up(tx.amount)}"
        if key in seen:
            continue
        seen.add(key)

        monthly = monthly_equivalent(tx)
        total += monthly
        by_category[tx.category or OTHER] += monthly

    breakdown = [
        CategoryAmount(category=category, amount=round(amount, 2))
        for category, amount in by_category.items()
    ]
    breakdown.sort(key=lambda item: (-item.amount, item.category))
    return RecurringSummary(total_monthly_recurring=round(total, 2), recurring_by_category=breakdown)
