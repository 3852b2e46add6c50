from collections import defaultdict
from collections.abc import Iterable

from pydantic import BaseModel, Field

from finkit.models import Transaction
from finkit.rules.categories import OTHER, TRANSFER


class CategoryTotal(BaseModel):
    category: str
    type: str
    amount: float
    count: int


class Summary(BaseModel):
    total_income: float
    total_expense: float
    balance: float
    categories: list[CategoryTotal] = Field(default_factory=list)


def counts_towards_totals(tx: Transaction) -> bool:
    return not tx.is_excluded and tx.category != TRANSFER


def summarize(transactions: Iterable[Transaction]) -> Summary:
    """
    Totals per category and type.

    Excluded rows and internal transfers are left out so moving money between
    own accounts does not inflate income or spending. Categories are ordered by
    type, then amount descending, then name.
    """
    amounts: dict[tuple[str, str], float] = defaultdict(float)
    counts: dict[tuple[str, str], int] = defaultdict(int)
    income = 0.0
    expense = 0.0

    for tx in transactions:
        if not counts_towards_totals(tx):
            continue
        key = (tx.category or OTHER, tx.type)
        amounts[key] += tx.amount
        counts[key] += 1
        if tx.type == "income":
            income += tx.amount
        else:
            expense += tx.amount

    categories = [
        CategoryTotal(category=category, type=type_, amount=round(amount, 2), count=counts[(category, type_)])
        for (category, type_), amount in amounts.items()
    ]
    categories.sort(key=lambda item: (item.type != "income", -item.amount, item.category))

    return Summary(
        total_income=round(income, 2),
        total_expense=round(expense, 2),
        balance=round(income - expense, 2),
        categories=categories,
    )
