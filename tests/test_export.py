import asyncio
import csv

import openpyxl
import pytest

from conftest import make_input
from bankbridge.errors import ValidationError
from bankbridge.export import EXPORT_COLUMNS, export_transactions


@pytest.fixture
def transactions(store):
    return asyncio.run(store.add_transactions([
        make_input(tags=["food", "morning"]),
        make_input(merchant="Employer", amount=2500.0, category="Income"),
    ]))


def test_export_csv(tmp_path, transactions):
    path = tmp_path / "out.csv"
    assert export_transactions(transactions, path) == 2
    with open(path, newline="") as f:
        rows = list(csv.reader(f))
    assert rows[0] == EXPORT_COLUMNS
    assert rows[1][EXPORT_COLUMNS.index("merchant")] == "Coffee Shop"
    assert rows[1][EXPORT_COLUMNS.index("tags")] == "food, morning"
    assert rows[2][EXPORT_COLUMNS.index("amount")] == "2500.0"


def test_export_xlsx(tmp_path, transactions):
    path = tmp_path / "out.xlsx"
    assert export_transactions(transactions, path) == 2
    wb = openpyxl.load_workbook(path)
    ws = wb["Transactions"]
    rows = list(ws.iter_rows(values_only=True))
    assert list(rows[0]) == EXPORT_COLUMNS
    assert rows[1][EXPORT_COLUMNS.index("amount")] == -4.5
    assert rows[2][EXPORT_COLUMNS.index("category")] == "Income"


def test_export_unknown_type(tmp_path, transactions):
    with pytest.raises(ValidationError):
        export_transactions(transactions, tmp_path / "out.json")
