import pytest

from finkit.errors import UnknownCategoryError, UnknownTransactionError
from finkit.models import CategoryOverride, LearnedMapping, RawTransaction
from finkit.services.learned import load_learned_mappings, save_learned_mappings, upsert_mapping
from finkit.services.pipeline import TransactionPipeline, apply_overrides, update_transaction
from finkit.services.summary import summarize

CSV = (
    "Date,Description,Amount,Recipient\n"
    "2024-03-15,NETFLIX.COM,-12.99,Netflix International B.V.\n"
    "2024-02-15,NETFLIX.COM,-12.99,Netflix International B.V.\n"
    "2024-01-15,NETFLIX.COM,-12.99,Netflix International B.V.\n"
    "2024-03-01,Miete Maerz,-900.00,Maria Hoffmann\n"
    "2024-03-01,Gehalt Maerz,3000.00,Example Holding\n"
    "2023-12-01,REWE SAGT DANKE,-40.00,REWE Markt GmbH\n"
)


@pytest.fixture
def pipeline():
    return TransactionPipeline(id_factory=lambda index: f"tx_{index}")


@pytest.fixture
def export_file(tmp_path):
    path = tmp_path / "export.csv"
    path.write_text(CSV, encoding="utf-8")
    return path


def test_process_file(pipeline, export_file):
    result = pipeline.process_file(str(export_file))

    by_description = {}
    for tx in result.transactions:
        by_description.setdefault(tx.description, []).append(tx)

    netflix = by_description["NETFLIX.COM"]
    assert len(netflix) == 3
    assert all(tx.category == "Subscriptions" for tx in netflix)
    assert all(tx.is_recurring and tx.recurring_frequency == "monthly" for tx in netflix)

    [rent] = by_description["Miete Maerz"]
    assert rent.category == "Rent"
    assert rent.recipient.startswith("Person_")
    assert pipeline.get_original(rent.recipient) == "Maria Hoffmann"

    [salary] = by_description["Gehalt Maerz"]
    assert salary.category == "Income"
    assert salary.type == "income"


def test_process_file_date_range(pipeline, export_file):
    result = pipeline.process_file(str(export_file), start="2024-01-01", end="2024-02-29")
    assert {tx.date for tx in result.transactions} == {"2024-01-15", "2024-02-15"}


def test_process_without_anonymization(export_file):
    pipeline = TransactionPipeline(anonymize=False)
    result = pipeline.process_file(str(export_file))

    assert result.mappings == []
    assert "Maria Hoffmann" in {tx.recipient for tx in result.transactions}


def test_learned_mappings_applied():
    pipeline = TransactionPipeline(
        learned_mappings=[LearnedMapping(merchant="Kiosk Sonnenschein", category="Eating Out")],
        id_factory=lambda index: f"tx_{index}",
    )
    result = pipeline.process([
        RawTransaction(date="2024-01-01", description="KIOSK SONNENSCHEIN 22", amount=-4.5),
    ])

    tx = result.transactions[0]
    assert tx.category == "Eating Out"
    assert tx.category_source == "learned"


def test_apply_overrides(pipeline):
    result = pipeline.process([
        RawTransaction(date="2024-01-01", description="Mystery shop", amount=-20.0),
        RawTransaction(date="2024-01-02", description="Another", amount=-5.0),
    ])

    updated = apply_overrides(
        result.transactions,
        [
            CategoryOverride(id="tx_0", category="Shopping", merchant="Mystery"),
            CategoryOverride(id="tx_1", category="Not a category"),
            CategoryOverride(id="tx_9", category="Travel"),
        ],
    )

    assert updated[0].category == "Shopping"
    assert updated[0].category_source == "ai"
    assert updated[0].merchant == "Mystery"
    assert updated[1].category == result.transactions[1].category
    assert len(updated) == 2


def test_update_transaction_returns_learned_mapping(pipeline):
    result = pipeline.process([
        RawTransaction(date="2024-01-01", description="Mystery shop", amount=-20.0, recipient="Foo Laden GmbH"),
    ])

    updated, learned = update_transaction(result.transactions, "tx_0", category="Gifts")

    assert updated[0].category == "Gifts"
    assert updated[0].category_source == "manual"
    assert learned == LearnedMapping(merchant="Foo Laden", category="Gifts")

    updated, learned = update_transaction(updated, "tx_0", category="Gifts", is_excluded=True)
    assert learned is None
    assert updated[0].is_excluded is True

    with pytest.raises(UnknownTransactionError):
        update_transaction(updated, "missing", category="Gifts")


def test_summarize_skips_transfers_and_excluded(pipeline):
    result = pipeline.process([
        RawTransaction(date="2024-05-01", description="Gehalt", amount=3000.0),
        RawTransaction(date="2024-05-02", description="REWE SAGT DANKE", amount=-50.0),
        RawTransaction(date="2024-05-03", description="Moved to savings", amount=-500.0),
        RawTransaction(date="2024-05-03", description="Moved from main", amount=500.0),
    ])

    summary = summarize(result.transactions)

    assert summary.total_income == 3000.0
    assert summary.total_expense == 50.0
    assert summary.balance == 2950.0
    assert [(c.category, c.type) for c in summary.categories] == [("Income", "income"), ("Groceries", "expense")]


def test_learned_mappings_round_trip_file(tmp_path):
    path = tmp_path / "data" / "learned.json"
    mappings = upsert_mapping(
        [LearnedMapping(merchant="Rewe", category="Other")],
        LearnedMapping(merchant="REWE", category="Groceries"),
    )

    save_learned_mappings(str(path), mappings)

    assert load_learned_mappings(str(path)) == [LearnedMapping(merchant="REWE", category="Groceries")]
    assert load_learned_mappings(str(tmp_path / "missing.json")) == []


def test_corrupt_learned_mappings_file(tmp_path):
    path = tmp_path / "learned.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_learned_mappings(str(path)) == []


def test_processing_twice_gives_same_result_except_ids(export_file):
    first = TransactionPipeline().process_file(str(export_file))
    second = TransactionPipeline().process_file(str(export_file))

    def strip_ids(result):
        return [tx.model_dump(exclude={"id", "double_booking_match"}) for tx in result.transactions]

    assert strip_ids(first) == strip_ids(second)


def test_amounts_are_unsigned(pipeline, export_file):
    result = pipeline.process_file(str(export_file))
    for tx in result.transactions:
        assert tx.amount >= 0
        expected = "expense" if float(tx.raw_data["Amount"]) < 0 else "income"
        assert tx.type == expected


def test_postal_code_does_not_hide_merchant(pipeline):
    result = pipeline.process([
        RawTransaction(date="2024-05-01", description="Lastschrift 12345 REWE SAGT DANKE", amount=-20.0),
    ])

    assert result.transactions[0].category == "Groceries"


def test_unknown_categories_rejected(pipeline, tmp_path):
    result = pipeline.process([
        RawTransaction(date="2024-01-01", description="Kiosk am Eck", amount=-3.0),
    ])

    with pytest.raises(UnknownCategoryError):
        update_transaction(result.transactions, "tx_0", category="Snacks")
    with pytest.raises(UnknownCategoryError):
        pipeline.learn("Kiosk", "Snacks")

    path = tmp_path / "learned.json"
    path.write_text('{"Kiosk": "Snacks", "Bakery": "Eating Out"}', encoding="utf-8")
    assert load_learned_mappings(str(path)) == [LearnedMapping(merchant="Bakery", category="Eating Out")]
