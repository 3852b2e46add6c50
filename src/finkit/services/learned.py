import json
import os

from finkit.logger import get_logger
from finkit.models import LearnedMapping
from finkit.rules.categories import is_canonical

logger = get_logger(__name__)


def load_learned_mappings(path: str | None) -> list[LearnedMapping]:
    """Read ``{merchant: category}`` from a JSON file. A missing or unreadable file yields no mappings."""
    if not path or not os.path.exists(path):
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        logger.warning("[LEARN] Ignoring unreadable mappings file %s: %s", path, exc)
        return []

    if not isinstance(data, dict):
        logger.warning("[LEARN] Ignoring %s: expected a JSON object.", path)
        return []

    mappings = []
    for merchant, category in data.items():
        if not merchant or not category:
            continue
        if not is_canonical(str(category)):
            logger.warning("[LEARN] Ignoring %r in %s: unknown category %r.", merchant, path, category)
            continue
        mappings.append(LearnedMapping(merchant=str(merchant), category=str(category)))
    logger.debug("[LEARN] Loaded %d learned mappings from %s.", len(mappings), path)
    return mappings


def save_learned_mappings(path: str, mappings: list[LearnedMapping]) -> None:
    data = {mapping.merchant: mapping.category for mapping in mappings}
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def upsert_mapping(mappings: list[LearnedMapping], mapping: LearnedMapping) -> list[LearnedMapping]:
    """Replace the mapping for the same merchant (case-insensitive) or append it."""
    key = mapping.merchant.lower()
    kept = [existing for existing in mappings if existing.merchant.lower() != key]
    kept.append(mapping)
    return kept
