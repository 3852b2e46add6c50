import re

from finkit.models import CategoryMatch, Transaction
from finkit.rules.table import RuleTable

from .base import Classifier


def extract_merchant(match: re.Match[str]) -> str | None:
    text = match.group(0).strip()
    if not text:
        return None
    return text[0].upper() + text[1:].lower()


class MerchantRuleClassifier(Classifier):
    name = "merchant_rule"

    def __init__(self, rules: RuleTable) -> None:
        self.rules = rules

    @staticmethod
    def match_text(transaction: Transaction) -> str:
        parts = (
            transaction.description,
            transaction.recipient,
            transaction.category,
            transaction.subcategory,
        )
        return " ".join(part or "" for part in parts)

    def classify(self, transaction: Transaction) -> CategoryMatch | None:
        text = self.match_text(transaction)
        for rule in self.rules.merchant_rules:
            match = rule.pattern.search(text)
            if match:
                return CategoryMatch(
                    category=rule.category,
                    source=self.name,
                    merchant=rule.merchant or extract_merchant(match),
                )
        return None
