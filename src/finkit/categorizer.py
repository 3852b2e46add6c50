from collections.abc import Iterable

from finkit.classifiers.base import Classifier
from finkit.classifiers.memory import LearnedMappingMatcher
from finkit.classifiers.rules import MerchantRuleClassifier
from finkit.classifiers.source import SourceCategoryTranslator
from finkit.classifiers.transfer import TransferKeywordClassifier
from finkit.logger import get_logger
from finkit.models import CategoryMatch, LearnedMapping, Transaction
from finkit.rules.categories import OTHER
from finkit.rules.table import RuleTable

logger = get_logger(__name__)

LEARNED_KEY_LENGTH = 30


def learned_key(transaction: Transaction) -> str:
    """Key a manual correction for this transaction is stored under."""
    return (
        transaction.merchant
        or transaction.recipient
        or (transaction.description or "")[:LEARNED_KEY_LENGTH]
    )


class RuleCategorizer:
    def __init__(
        self,
        rules: RuleTable | None = None,
        learned_mappings: Iterable[LearnedMapping] = (),
        fuzzy_threshold: float | None = 90.0,
    ) -> None:
        self.rules = rules or RuleTable.default()

        # 1. Transfers (highest priority)
        self.transfers = TransferKeywordClassifier(self.rules)
        # 2. User corrections
        self.memory = LearnedMappingMatcher(
            learned_mappings, rules=self.rules, threshold=fuzzy_threshold
        )
        # 3. Category shipped with the export
        self.source = SourceCategoryTranslator(self.rules)
        # 4. Merchant pattern table
        self.merchants = MerchantRuleClassifier(self.rules)

        self.classifiers: list[Classifier] = [
            self.transfers,
            self.memory,
            self.source,
            self.merchants,
        ]

    def match(self, transaction: Transaction) -> CategoryMatch | None:
        for classifier in self.classifiers:
            result = classifier.classify(transaction)
            if result:
                logger.debug(
                    "[CATEGORIZE] %s -> %s (%s).",
                    transaction.id,
                    result.category,
                    classifier.__class__.__name__,
                )
                return result
        return None

    def categorize_one(self, transaction: Transaction) -> Transaction:
        result = self.match(transaction)
        if result is None:
            translated = self.source.translate(transaction.category, transaction.subcategory)
            return transaction.model_copy(
                update={
                    "category": translated or OTHER,
                    "category_source": "rule" if transaction.category else None,
                }
            )

        update: dict[str, object] = {
            "category": result.category,
            "category_source": result.category_source,
        }
        if result.merchant:
            update["merchant"] = result.merchant
        if result.is_transfer:
            update["is_transfer"] = True
        return transaction.model_copy(update=update)

    def categorize(self, transactions: Iterable[Transaction]) -> list[Transaction]:
        categorized = [self.categorize_one(tx) for tx in transactions]
        fallbacks = sum(1 for tx in categorized if tx.category == OTHER)
        logger.info(
            "[CATEGORIZE] %d transactions categorized, %d fell back to %s.",
            len(categorized),
            fallbacks,
            OTHER,
        )
        return categorized

    def learn(self, merchant: str, category: str) -> None:
        """Remember a correction for the rest of the session. Persisting it is up to the caller."""
        self.memory.learn(merchant, category)
