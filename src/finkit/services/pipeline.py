from collections.abc import Iterable

from pydantic import BaseModel, Field

from finkit.anonymization.anonymizer import Anonymizer, IdFactory
from finkit.anonymization.store import AnonymizationStore
from finkit.categorizer import RuleCategorizer, learned_key
from finkit.detection.recurring import RecurrenceDetector
from finkit.detection.transfers import TransferDetector
from finkit.errors import UnknownCategoryError, UnknownTransactionError
from finkit.ingestion.parser import filter_by_date_range, parse_file
from finkit.logger import get_logger
from finkit.models import (
    AnonymizationMapping,
    CategoryOverride,
    CategorySource,
    LearnedMapping,
    RawTransaction,
    Transaction,
    TransferPair,
)
from finkit.rules.categories import is_canonical
from finkit.rules.table import RuleTable

logger = get_logger(__name__)


class PipelineResult(BaseModel):
    transactions: list[Transaction]
    mappings: list[AnonymizationMapping] = Field(default_factory=list)
    pairs: list[TransferPair] = Field(default_factory=list)


class TransactionPipeline:
    """
    Runs one import through anonymization, categorization, transfer detection
    and recurrence detection.

    The pipeline owns its anonymization store and categorizer. Run at most one
    import at a time per instance; the store is reset at the start of each call.
    """

    def __init__(
        self,
        rules: RuleTable | None = None,
        learned_mappings: Iterable[LearnedMapping] = (),
        anonymize: bool = True,
        *,
        fuzzy_threshold: float | None = 90.0,
        id_factory: IdFactory | None = None,
    ) -> None:
        self.rules = rules or RuleTable.default()
        self.anonymize = anonymize
        self.store = AnonymizationStore()
        self.anonymizer = Anonymizer(self.rules, store=self.store, id_factory=id_factory)
        self.categorizer = RuleCategorizer(
            self.rules, learned_mappings, fuzzy_threshold=fuzzy_threshold
        )
        self.transfers = TransferDetector(self.rules)
        self.recurring = RecurrenceDetector()

    def process(self, raw_transactions: list[RawTransaction]) -> PipelineResult:
        if self.anonymize:
            batch = self.anonymizer.anonymize(raw_transactions)
        else:
            self.store.clear()
            batch = self.anonymizer.passthrough(raw_transactions)

        categorized = self.categorizer.categorize(batch.transactions)
        detection = self.transfers.detect(categorized)
        transactions = self.recurring.detect(detection.transactions)

        return PipelineResult(
            transactions=transactions,
            mappings=batch.mappings,
            pairs=detection.pairs,
        )

    def process_file(
        self,
        path: str,
        *,
        start: str | None = None,
        end: str | None = None,
    ) -> PipelineResult:
        raw = parse_file(path, self.rules)
        if start or end:
            raw = filter_by_date_range(raw, start, end)
            logger.info("[PARSE] %d transactions inside the selected date range.", len(raw))
        return self.process(raw)

    def learn(self, merchant: str, category: str) -> LearnedMapping:
        if not is_canonical(category):
            raise UnknownCategoryError(category)
        self.categorizer.learn(merchant, category)
        return LearnedMapping(merchant=merchant, category=category)

    def get_original(self, anonymized: str) -> str | None:
        return self.store.get_original(anonymized)


def apply_overrides(
    transactions: list[Transaction],
    overrides: Iterable[CategoryOverride],
    source: CategorySource = "ai",
) -> list[Transaction]:
    """Replace categories by id without re-running the pipeline."""
    by_id = {override.id: override for override in overrides}
    applied = 0
    result = []
    for tx in transactions:
        override = by_id.get(tx.id)
        if override is None or not is_canonical(override.category):
            result.append(tx)
            continue
        update: dict[str, object] = {"category": override.category, "category_source": source}
        if override.merchant:
            update["merchant"] = override.merchant
        result.append(tx.model_copy(update=update))
        applied += 1

    skipped = len(by_id) - applied
    if skipped:
        logger.debug("[CATEGORIZE] %d overrides skipped (unknown id or category).", skipped)
    return result


def update_transaction(
    transactions: list[Transaction],
    transaction_id: str,
    *,
    category: str | None = None,
    is_excluded: bool | None = None,
) -> tuple[list[Transaction], LearnedMapping | None]:
    """
    Apply a manual edit to one transaction.

    Returns the updated list and, when the category changed, the learned
    mapping the caller should persist.
    """
    if category is not None and not is_canonical(category):
        raise UnknownCategoryError(category)

    result = list(transactions)
    for index, tx in enumerate(result):
        if tx.id != transaction_id:
            continue

        update: dict[str, object] = {}
        learned = None
        if category is not None and category != tx.category:
            update["category"] = category
            update["category_source"] = "manual"
            key = learned_key(tx)
            if key:
                learned = LearnedMapping(merchant=key, category=category)
        if is_excluded is not None:
            update["is_excluded"] = is_excluded

        result[index] = tx.model_copy(update=update)
        return result, learned

    raise UnknownTransactionError(transaction_id)
