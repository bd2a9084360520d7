import csv
from pathlib import Path

from bankbridge.errors import ValidationError
from bankbridge.models import Transaction

EXPORT_COLUMNS = [
    "date", "merchant", "category", "institutionName", "accountName",
    "originalStatement", "notes", "amount", "tags", "sourceFile", "importedAt",
]


def _export_row(txn: Transaction) -> list:
    data = txn.to_dict()
    return [", ".join(data[c]) if c == "tags" else data[c] for c in EXPORT_COLUMNS]


def export_csv(transactions: list[Transaction], file_path: Path) -> int:
    """Write transactions to CSV. Returns the number of rows written."""
    with open(file_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(EXPORT_COLUMNS)
        for txn in transactions:
            writer.writerow(_export_row(txn))
    return len(transactions)


def export_xlsx(transactions: list[Transaction], file_path: Path) -> int:
    from openpyxl import Workbook

    wb = Workbook()
    ws = wb.active
    ws.title = "Transactions"
    ws.append(EXPORT_COLUMNS)
    for txn in transactions:
        ws.append(_export_row(txn))
    wb.save(file_path)
    return len(transactions)


EXPORTERS = {".csv": export_csv, ".xlsx": export_xlsx}


def export_transactions(transactions: list[Transaction], file_path: Path) -> int:
    exporter = EXPORTERS.get(Path(file_path).suffix.lower())
    if exporter is None:
        raise ValidationError(f"Unsupported export type: {Path(file_path).suffix} (use .csv or .xlsx)")
    return exporter(transactions, Path(file_path))
