import re
from collections.abc import Iterable

from rapidfuzz import fuzz, process

from finkit.logger import get_logger
from finkit.models import CategoryMatch, LearnedMapping, Transaction
from finkit.rules.categories import is_canonical
from finkit.rules.table import RuleTable

from .base import Classifier

logger = get_logger(__name__)

_NON_ALNUM = re.compile(r"[\W_]+")

# Keys shorter than this only match whole words when searched inside text.
MIN_SUBSTRING_LENGTH = 4


def normalize(text: str | None) -> str:
    if not text:
        return ""
    return _NON_ALNUM.sub(" ", text.lower()).strip()


def _contains(haystack: str, needle: str) -> bool:
    if not needle or not haystack:
        return False
    if len(needle) >= MIN_SUBSTRING_LENGTH:
        return needle in haystack
    return re.search(rf"\b{re.escape(needle)}\b", haystack) is not None


class LearnedMappingMatcher(Classifier):
    """Matches transactions against merchant -> category corrections made by the user."""

    name = "learned"

    def __init__(
        self,
        mappings: Iterable[LearnedMapping] = (),
        rules: RuleTable | None = None,
        threshold: float | None = 90.0,
    ) -> None:
        self.rules = rules or RuleTable.default()
        self.threshold = threshold
        self.memory: dict[str, str] = {}  # normalized merchant -> category
        for mapping in mappings:
            self.learn(mapping.merchant, mapping.category)

    def __len__(self) -> int:
        return len(self.memory)

    def learn(self, merchant: str, category: str) -> None:
        if not is_canonical(category):
            logger.warning("[LEARN] Skipping %r: unknown category %r.", merchant, category)
            return
        key = normalize(merchant)
        if key:
            self.memory[key] = category

    def strip_variant(self, text: str) -> str:
        """Remove payment processor prefixes and trailing legal suffixes."""
        for prefix in self.rules.payment_prefixes:
            candidate = normalize(prefix)
            if candidate and text.startswith(candidate + " "):
                text = text[len(candidate) + 1:]
                break
        words = text.split()
        legal = {normalize(suffix) for suffix in self.rules.legal_suffixes}
        while len(words) > 1 and words[-1] in legal:
            words.pop()
        return " ".join(words)

    def _match(self, category: str, step: str) -> CategoryMatch:
        logger.debug("[CATEGORIZE] Learned mapping hit (%s).", step)
        return CategoryMatch(
            category=category,
            source=f"{self.name}_{step}",
            category_source="learned",
        )

    def classify(self, transaction: Transaction) -> CategoryMatch | None:
        if not self.memory:
            return None

        description = normalize(transaction.description)
        candidates = [
            value
            for value in (
                normalize(transaction.merchant),
                normalize(transaction.recipient),
                description,
            )
            if value
        ]
        if not candidates:
            return None

        # 1. Exact match
        for candidate in candidates:
            if candidate in self.memory:
                return self._match(self.memory[candidate], "exact")

        # 2. Learned key inside the description, longest key first
        keys = sorted(self.memory, key=lambda key: (-len(key), key))
        for key in keys:
            if _contains(description, key):
                return self._match(self.memory[key], "substring")

        # 3. Variants without legal suffixes / payment prefixes
        stripped_keys = {key: self.strip_variant(key) for key in keys}
        for candidate in candidates:
            variant = self.strip_variant(candidate)
            if not variant:
                continue
            for key in keys:
                stripped = stripped_keys[key]
                if not stripped:
                    continue
                if (
                    variant == stripped
                    or _contains(variant, stripped)
                    or _contains(stripped, variant)
                ):
                    return self._match(self.memory[key], "variant")

        # 4. Fuzzy match
        if self.threshold is None:
            return None
        for candidate in candidates:
            result = process.extractOne(
                candidate,
                keys,
                scorer=fuzz.token_sort_ratio,
                score_cutoff=self.threshold,
            )
            if result:
                key, score, _ = result
                logger.debug("[CATEGORIZE] Fuzzy score %.1f.", score)
                return self._match(self.memory[key], "fuzzy")

        return None
