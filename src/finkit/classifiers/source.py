from finkit.models import CategoryMatch, Transaction
from finkit.rules.categories import OTHER
from finkit.rules.table import RuleTable

from .base import Classifier


class SourceCategoryTranslator(Classifier):
    """
    Maps the category an export already carries (Finanzguru analysis columns)
    onto the canonical vocabulary.
    """

    name = "source"

    def __init__(self, rules: RuleTable) -> None:
        self.rules = rules

    def translate(self, category: str | None, subcategory: str | None = None) -> str | None:
        if not category:
            return None
        table = self.rules.source_categories
        if subcategory:
            combined = f"{category}/{subcategory}"
            if combined in table:
                return table[combined]
        return table.get(category)

    def classify(self, transaction: Transaction) -> CategoryMatch | None:
        translated = self.translate(transaction.category, transaction.subcategory)
        # "Other" from the source is only a fallback; merchant rules may do better.
        if translated and translated != OTHER:
            return CategoryMatch(category=translated, source=self.name)
        return None
