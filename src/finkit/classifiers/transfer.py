from finkit.models import CategoryMatch, Transaction
from finkit.rules.categories import TRANSFER
from finkit.rules.table import RuleTable

from .base import Classifier


class TransferKeywordClassifier(Classifier):
    name = "transfer"

    def __init__(self, rules: RuleTable) -> None:
        self.rules = rules

    def classify(self, transaction: Transaction) -> CategoryMatch | None:
        if transaction.is_transfer:
            return CategoryMatch(category=TRANSFER, source=self.name, is_transfer=True)

        description = transaction.description or ""
        for pattern in self.rules.transfer_patterns:
            if pattern.search(description):
                return CategoryMatch(category=TRANSFER, source=self.name, is_transfer=True)
        return None
