import json

import pytest

from finkit.cli import main
from finkit.services.learned import load_learned_mappings

CSV = (
    "Date,Description,Amount\n"
    "2024-05-01,REWE SAGT DANKE,-23.45\n"
    "2024-05-02,Gehalt Mai,2500.00\n"
    "2024-05-03,Kiosk Sonnenschein,-4.50\n"
)


@pytest.fixture
def export_file(tmp_path):
    path = tmp_path / "export.csv"
    path.write_text(CSV, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("FINKIT_RULES_FILE", "FINKIT_LEARNED_MAPPINGS_FILE", "FINKIT_ANONYMIZE", "OPENAI_API_KEY"):
        monkeypatch.delenv(key, raising=False)


def test_process_prints_transactions(export_file, capsys):
    assert main(["process", str(export_file)]) == 0

    transactions = json.loads(capsys.readouterr().out)
    categories = {tx["description"]: tx["category"] for tx in transactions}
    assert categories["REWE SAGT DANKE"] == "Groceries"
    assert categories["Gehalt Mai"] == "Income"
    assert "raw_data" not in transactions[0]


def test_process_summary(export_file, capsys):
    assert main(["process", str(export_file), "--summary", "--from", "2024-05-02"]) == 0

    output = json.loads(capsys.readouterr().out)
    assert output["summary"]["total_income"] == 2500.0
    assert output["summary"]["total_expense"] == 4.5
    assert output["transfer_pairs"]["count"] == 0


def test_learn_then_process(export_file, tmp_path, capsys):
    learned = tmp_path / "learned.json"

    assert main(["learn", "Kiosk Sonnenschein", "Eating Out", "--learned", str(learned)]) == 0
    assert [m.category for m in load_learned_mappings(str(learned))] == ["Eating Out"]

    assert main(["process", str(export_file), "--learned", str(learned)]) == 0
    transactions = json.loads(capsys.readouterr().out)
    kiosk = next(tx for tx in transactions if tx["description"] == "Kiosk Sonnenschein")
    assert kiosk["category"] == "Eating Out"
    assert kiosk["category_source"] == "learned"


def test_learn_rejects_unknown_category(tmp_path):
    assert main(["learn", "Kiosk", "Snacks", "--learned", str(tmp_path / "learned.json")]) == 2


def test_parse_error_exits_with_one(tmp_path, capsys):
    path = tmp_path / "empty.csv"
    path.write_bytes(b"")

    assert main(["process", str(path)]) == 1
    assert "empty.csv" in capsys.readouterr().err


def test_ai_without_key_is_skipped(export_file, capsys):
    assert main(["process", str(export_file), "--ai"]) == 0
    assert json.loads(capsys.readouterr().out)
