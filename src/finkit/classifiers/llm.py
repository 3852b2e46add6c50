import json
import os
import time
from collections.abc import Callable, Iterable

from openai import OpenAI

from finkit.anonymization.validation import validate_anonymized
from finkit.core import settings
from finkit.errors import PersonalDataError
from finkit.logger import get_logger
from finkit.models import CategoryOverride, Transaction
from finkit.rules.categories import AVAILABLE_CATEGORIES, is_canonical

logger = get_logger(__name__)

RETRY_DELAY = 1.0

SYSTEM_PROMPT = f"""You are a transaction categorization assistant. Given a list of bank
transactions, categorize each one into the most appropriate category and extract
the merchant name if possible.

Use ONLY one of the following categories: {", ".join(AVAILABLE_CATEGORIES)}.
Use "Transfer" only for money moved between the user's own accounts.

Respond with a JSON object only:
{{"transactions": [{{"id": "...", "category": "...", "merchant": "..."}}]}}"""


class LLMCategorizer:
    """
    Batch fallback for rows the rule chain could not place.

    Only id, signed amount, date and the anonymized description are sent.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        *,
        batch_size: int | None = None,
        max_attempts: int | None = None,
        client: OpenAI | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client or OpenAI(
            api_key=api_key or os.getenv("OPENAI_API_KEY"),
            base_url=base_url or os.getenv("OPENAI_BASE_URL") or None,
        )
        self.model = model or settings.get_env_str("OPENAI_MODEL", settings.DEFAULT_OPENAI_MODEL)
        self.batch_size = batch_size or settings.ai_batch_size()
        self.max_attempts = max_attempts or settings.ai_max_attempts()
        self.sleep = sleep

    @staticmethod
    def select(transactions: Iterable[Transaction], include_all: bool = False) -> list[Transaction]:
        return [tx for tx in transactions if include_all or tx.category_source is None]

    @staticmethod
    def format_batch(batch: list[Transaction]) -> str:
        lines = []
        for tx in batch:
            signed = tx.amount if tx.type == "income" else -tx.amount
            lines.append(
                f"ID: {tx.id}, Amount: {signed:.2f}, Date: {tx.date}, Description: {tx.description}"
            )
        return "\n".join(lines)

    def categorize(
        self, transactions: Iterable[Transaction], include_all: bool = False
    ) -> list[CategoryOverride]:
        pending = self.select(transactions, include_all)
        if not pending:
            return []

        check = validate_anonymized(pending)
        if not check.is_valid:
            raise PersonalDataError(check.issues)

        overrides: list[CategoryOverride] = []
        batches = [
            pending[start:start + self.batch_size]
            for start in range(0, len(pending), self.batch_size)
        ]
        for index, batch in enumerate(batches, start=1):
            result = self._run_batch(batch, index, len(batches))
            overrides.extend(result)

        logger.info(
            "[AI] %d of %d transactions received a category.", len(overrides), len(pending)
        )
        return overrides

    def _run_batch(self, batch: list[Transaction], index: int, total: int) -> list[CategoryOverride]:
        for attempt in range(1, self.max_attempts + 1):
            try:
                content = self._request(self.format_batch(batch))
                return self.parse_response(content, {tx.id for tx in batch})
            except Exception as e:
                logger.warning(
                    "[AI] Attempt %d/%d failed for batch %d/%d: %s",
                    attempt,
                    self.max_attempts,
                    index,
                    total,
                    e,
                )
                if attempt < self.max_attempts:
                    self.sleep(RETRY_DELAY * attempt)

        logger.error("[AI] Giving up on batch %d/%d (%d transactions).", index, total, len(batch))
        return []

    def _request(self, user_message: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_message},
            ],
            temperature=0.1,
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ValueError("empty response")
        return content

    @staticmethod
    def parse_response(content: str, expected_ids: set[str]) -> list[CategoryOverride]:
        parsed = json.loads(content)
        if isinstance(parsed, dict):
            items = parsed.get("transactions", [])
        elif isinstance(parsed, list):
            items = parsed
        else:
            raise ValueError("unexpected JSON shape")

        overrides = []
        for item in items:
            if not isinstance(item, dict):
                continue
            tx_id = str(item.get("id", ""))
            category = item.get("category")
            if tx_id not in expected_ids or not is_canonical(category):
                logger.debug("[AI] Dropping answer for %s: %r", tx_id, category)
                continue
            merchant = item.get("merchant") or None
            overrides.append(CategoryOverride(id=tx_id, category=category, merchant=merchant))
        return overrides
