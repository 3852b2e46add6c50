import argparse
import json
import os
import sys

from finkit.classifiers.llm import LLMCategorizer
from finkit.core import settings
from finkit.detection.recurring import recurring_summary
from finkit.detection.transfers import internal_transfer_summary, pair_summary
from finkit.errors import FinKitError, ParseError
from finkit.logger import get_logger, setup_logging
from finkit.models import LearnedMapping
from finkit.rules.categories import is_canonical
from finkit.rules.table import RuleTable
from finkit.services.learned import load_learned_mappings, save_learned_mappings, upsert_mapping
from finkit.services.pipeline import TransactionPipeline, apply_overrides
from finkit.services.summary import summarize

logger = get_logger(__name__)


def _print_json(data: object) -> None:
    json.dump(data, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_process(args: argparse.Namespace) -> int:
    rules = RuleTable.load(args.rules or settings.rules_file())
    learned = load_learned_mappings(args.learned or settings.learned_mappings_file())
    anonymize = settings.anonymize_by_default() and not args.no_anonymize

    pipeline = TransactionPipeline(
        rules,
        learned,
        anonymize=anonymize,
        fuzzy_threshold=settings.fuzzy_threshold(),
    )
    result = pipeline.process_file(args.file, start=args.start, end=args.end)
    transactions = result.transactions

    if args.ai:
        if not os.getenv("OPENAI_API_KEY"):
            logger.warning("[AI] OPENAI_API_KEY not set. Skipping AI categorization.")
        else:
            overrides = LLMCategorizer().categorize(transactions)
            transactions = apply_overrides(transactions, overrides, source="ai")

    if args.summary:
        _print_json({
            "summary": summarize(transactions).model_dump(),
            "recurring": recurring_summary(transactions).model_dump(),
            "transfer_pairs": pair_summary(result.pairs).model_dump(),
            "internal_transfers": internal_transfer_summary(transactions).model_dump(),
        })
    else:
        _print_json([tx.model_dump(exclude={"raw_data"}) for tx in transactions])
    return 0


def cmd_learn(args: argparse.Namespace) -> int:
    path = args.learned or settings.learned_mappings_file()
    if not path:
        print("No learned mappings file configured (use --learned).", file=sys.stderr)
        return 2
    if not is_canonical(args.category):
        print(f"Unknown category: {args.category}", file=sys.stderr)
        return 2

    mappings = upsert_mapping(
        load_learned_mappings(path),
        LearnedMapping(merchant=args.merchant, category=args.category),
    )
    save_learned_mappings(path, mappings)
    logger.info("[LEARN] %s -> %s saved to %s.", args.merchant, args.category, path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="finkit", description="Normalize and categorize bank exports.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("process", help="Parse, anonymize and categorize an export file")
    p.add_argument("file", help="CSV, Excel or OFX export")
    p.add_argument("--no-anonymize", action="store_true", help="Keep names, IBANs and contact data")
    p.add_argument("--rules", help="JSON file overriding the built-in rule tables")
    p.add_argument("--learned", help="JSON file with learned merchant -> category mappings")
    p.add_argument("--from", dest="start", help="Only keep transactions on or after this date")
    p.add_argument("--to", dest="end", help="Only keep transactions on or before this date")
    p.add_argument("--summary", action="store_true", help="Print totals instead of transactions")
    p.add_argument("--ai", action="store_true", help="Send uncategorized rows to the OpenAI fallback")
    p.set_defaults(fn=cmd_process)

    learn = sub.add_parser("learn", help="Store a merchant -> category correction")
    learn.add_argument("merchant")
    learn.add_argument("category")
    learn.add_argument("--learned", help="JSON file with learned mappings")
    learn.set_defaults(fn=cmd_learn)

    return parser


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    args = build_parser().parse_args(argv)
    settings.log_environment()
    try:
        return args.fn(args)
    except ParseError as e:
        print(str(e), file=sys.stderr)
        return 1
    except (FinKitError, ValueError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
