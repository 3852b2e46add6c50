import pytest

from finkit.detection.recurring import (
    RecurrenceDetector,
    amounts_similar,
    frequency_for,
    monthly_equivalent,
    recurring_summary,
)
from finkit.models import Transaction


def make_tx(tx_id, date, amount, description="NETFLIX.COM", type_="expense", **kwargs):
    return Transaction(
        id=tx_id,
        date=date,
        description=description,
        amount=amount,
        type=type_,
        **kwargs,
    )


@pytest.fixture
def detector():
    return RecurrenceDetector()


def test_monthly_subscription(detector):
    rows = [
        make_tx("tx_1", "2024-01-15", 12.99, merchant="Netflix", category="Subscriptions"),
        make_tx("tx_2", "2024-02-15", 12.99, merchant="Netflix", category="Subscriptions"),
        make_tx("tx_3", "2024-03-15", 12.99, merchant="Netflix", category="Subscriptions"),
    ]

    result = detector.detect(rows)

    assert all(tx.is_recurring for tx in result)
    assert {tx.recurring_frequency for tx in result} == {"monthly"}

    [pattern] = detector.find_patterns(rows)
    assert pattern.merchant == "Netflix"
    assert pattern.category == "Subscriptions"
    assert pattern.avg_amount == pytest.approx(12.99)
    assert pattern.transactions == ["tx_1", "tx_2", "tx_3"]


def test_weekly_and_input_order(detector):
    rows = [
        make_tx("tx_3", "2024-01-15", 5.0, description="Gym"),
        make_tx("tx_1", "2024-01-01", 5.0, description="Gym"),
        make_tx("tx_2", "2024-01-08", 5.0, description="Gym"),
    ]

    result = detector.detect(rows)

    assert [tx.id for tx in result] == ["tx_3", "tx_1", "tx_2"]
    assert all(tx.recurring_frequency == "weekly" for tx in result)


def test_single_occurrence_is_not_recurring(detector):
    [tx] = detector.detect([make_tx("tx_1", "2024-01-15", 12.99)])
    assert tx.is_recurring is False
    assert tx.recurring_frequency is None


def test_amount_drift_discards_group(detector):
    # Both round to 10 but differ by more than 5%.
    result = detector.detect([
        make_tx("tx_1", "2024-01-01", 9.6),
        make_tx("tx_2", "2024-02-01", 10.4),
    ])
    assert not any(tx.is_recurring for tx in result)


def test_small_amount_drift_is_tolerated(detector):
    result = detector.detect([
        make_tx("tx_1", "2024-01-01", 10.0),
        make_tx("tx_2", "2024-02-01", 10.45),
    ])
    assert all(tx.is_recurring for tx in result)


def test_irregular_gaps_discard_group(detector):
    # Gaps of 20 and 40 days average to a monthly cadence but are not consistent.
    result = detector.detect([
        make_tx("tx_1", "2024-01-01", 30.0),
        make_tx("tx_2", "2024-01-21", 30.0),
        make_tx("tx_3", "2024-03-01", 30.0),
    ])
    assert not any(tx.is_recurring for tx in result)


def test_gap_outside_buckets(detector):
    result = detector.detect([
        make_tx("tx_1", "2024-01-01", 30.0),
        make_tx("tx_2", "2024-01-15", 30.0),
    ])
    assert not any(tx.is_recurring for tx in result)


def test_income_and_transfers_ignored(detector):
    result = detector.detect([
        make_tx("tx_1", "2024-01-01", 2500.0, description="Gehalt", type_="income"),
        make_tx("tx_2", "2024-02-01", 2500.0, description="Gehalt", type_="income"),
        make_tx("tx_3", "2024-01-01", 100.0, description="Umbuchung", category="Transfer"),
        make_tx("tx_4", "2024-02-01", 100.0, description="Umbuchung", category="Transfer"),
    ])
    assert not any(tx.is_recurring for tx in result)


def test_frequency_buckets():
    assert frequency_for(7) == "weekly"
    assert frequency_for(30) == "monthly"
    assert frequency_for(91) == "quarterly"
    assert frequency_for(365) == "yearly"
    assert frequency_for(50) is None


def test_amounts_similar():
    assert amounts_similar(100.0, 95.0)
    assert not amounts_similar(100.0, 94.0)


def test_monthly_equivalent():
    assert monthly_equivalent(make_tx("a", "2024-01-01", 10.0, recurring_frequency="weekly")) == pytest.approx(43.3)
    assert monthly_equivalent(make_tx("b", "2024-01-01", 30.0, recurring_frequency="quarterly")) == pytest.approx(10.0)
    assert monthly_equivalent(make_tx("c", "2024-01-01", 120.0, recurring_frequency="yearly")) == pytest.approx(10.0)
    assert monthly_equivalent(make_tx("d", "2024-01-01", 9.99)) == pytest.approx(9.99)


def test_recurring_summary_counts_each_subscription_once():
    transactions = [
        make_tx("tx_1", "2024-01-15", 12.99, merchant="Netflix", category="Subscriptions",
                is_recurring=True, recurring_frequency="monthly"),
        make_tx("tx_2", "2024-02-15", 12.99, merchant="Netflix", category="Subscriptions",
                is_recurring=True, recurring_frequency="monthly"),
        make_tx("tx_3", "2024-01-01", 120.0, description="Versicherung", category="Insurance",
                is_recurring=True, recurring_frequency="yearly"),
        make_tx("tx_4", "2024-01-01", 999.0, description="Not recurring", category="Travel"),
    ]

    summary = recurring_summary(transactions)

    assert summary.total_monthly_recurring == pytest.approx(22.99)
    assert [item.category for item in summary.recurring_by_category] == ["Subscriptions", "Insurance"]
    assert summary.recurring_by_category[0].amount == pytest.approx(12.99)
