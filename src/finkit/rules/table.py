import json
import os
import re
from dataclasses import dataclass, field
from typing import Any

from finkit.errors import RuleTableError
from finkit.logger import get_logger
from finkit.rules import defaults
from finkit.rules.categories import AVAILABLE_CATEGORIES, SOURCE_CATEGORY_MAP

logger = get_logger(__name__)


@dataclass(frozen=True)
class MerchantRule:
    pattern: re.Pattern[str]
    category: str
    merchant: str | None = None


def _compile(pattern: str, origin: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        raise RuleTableError(f"Invalid pattern in {origin}: {pattern!r} ({exc})") from exc


def _check_category(category: str, origin: str) -> str:
    if category not in AVAILABLE_CATEGORIES:
        raise RuleTableError(
            f"Unknown category {category!r} in {origin}. "
            f"Expected one of: {', '.join(AVAILABLE_CATEGORIES)}."
        )
    return category


def _lowered(values: list[str]) -> tuple[str, ...]:
    return tuple(value.lower() for value in values if value)


@dataclass(frozen=True)
class RuleTable:
    """All pattern tables the pipeline consults, compiled once per session."""

    merchant_rules: tuple[MerchantRule, ...]
    transfer_patterns: tuple[re.Pattern[str], ...]
    transfer_keywords: tuple[str, ...]
    account_direction_words: tuple[str, ...]
    known_merchants: tuple[str, ...]
    business_suffixes: tuple[str, ...]
    legal_suffixes: tuple[str, ...]
    payment_prefixes: tuple[str, ...]
    source_categories: dict[str, str] = field(default_factory=dict)
    header_mappings: dict[str, dict[str, str]] = field(default_factory=dict)

    @classmethod
    def default(cls) -> "RuleTable":
        return cls.from_dict({})

    @classmethod
    def from_dict(cls, overrides: dict[str, Any]) -> "RuleTable":
        """
        Build a table from the defaults with ``overrides`` applied.

        List entries replace the default list; ``source_categories`` and
        ``header_mappings`` are merged key by key.
        """
        raw_rules = overrides.get("merchant_rules", defaults.MERCHANT_RULES)
        merchant_rules = []
        for index, entry in enumerate(raw_rules):
            origin = f"merchant_rules[{index}]"
            if isinstance(entry, dict):
                pattern = entry.get("pattern")
                category = entry.get("category")
                merchant = entry.get("merchant")
            elif isinstance(entry, (list, tuple)) and len(entry) in (2, 3):
                pattern, category = entry[0], entry[1]
                merchant = entry[2] if len(entry) == 3 else None
            else:
                raise RuleTableError(f"Malformed rule at {origin}: {entry!r}")
            if not pattern or not category:
                raise RuleTableError(f"Rule at {origin} needs a pattern and a category.")
            merchant_rules.append(MerchantRule(
                pattern=_compile(pattern, origin),
                category=_check_category(category, origin),
                merchant=merchant or None,
            ))

        transfer_patterns = tuple(
            _compile(pattern, "transfer_patterns")
            for pattern in overrides.get("transfer_patterns", defaults.TRANSFER_PATTERNS)
        )

        source_categories = dict(SOURCE_CATEGORY_MAP)
        for key, category in overrides.get("source_categories", {}).items():
            source_categories[key] = _check_category(category, f"source_categories[{key!r}]")

        header_mappings = {name: dict(mapping) for name, mapping in defaults.HEADER_MAPPINGS.items()}
        for name, mapping in overrides.get("header_mappings", {}).items():
            header_mappings.setdefault(name, {}).update(mapping)

        return cls(
            merchant_rules=tuple(merchant_rules),
            transfer_patterns=transfer_patterns,
            transfer_keywords=_lowered(overrides.get("transfer_keywords", defaults.TRANSFER_KEYWORDS)),
            account_direction_words=_lowered(
                overrides.get("account_direction_words", defaults.ACCOUNT_DIRECTION_WORDS)
            ),
            known_merchants=_lowered(overrides.get("known_merchants", defaults.KNOWN_MERCHANTS)),
            business_suffixes=_lowered(overrides.get("business_suffixes", defaults.BUSINESS_SUFFIXES)),
            legal_suffixes=_lowered(overrides.get("legal_suffixes", defaults.LEGAL_SUFFIXES)),
            payment_prefixes=_lowered(overrides.get("payment_prefixes", defaults.PAYMENT_PREFIXES)),
            source_categories=source_categories,
            header_mappings=header_mappings,
        )

    @classmethod
    def from_file(cls, path: str) -> "RuleTable":
        if not os.path.exists(path):
            raise RuleTableError(f"Rules file not found: {path}")
        try:
            with open(path, encoding="utf-8") as handle:
                overrides = json.load(handle)
        except json.JSONDecodeError as exc:
            raise RuleTableError(f"Rules file {path} is not valid JSON: {exc}") from exc
        if not isinstance(overrides, dict):
            raise RuleTableError(f"Rules file {path} must contain a JSON object.")
        table = cls.from_dict(overrides)
        logger.info(
            "[RULES] Loaded %s (%d merchant rules, %d transfer patterns).",
            path,
            len(table.merchant_rules),
            len(table.transfer_patterns),
        )
        return table

    @classmethod
    def load(cls, path: str | None = None) -> "RuleTable":
        return cls.from_file(path) if path else cls.default()
