"""Read CSV/XLSX files into headers plus rows of text for the import pipeline."""

import csv
import zipfile
from datetime import date, datetime
from pathlib import Path

from openpyxl.utils.exceptions import InvalidFileException

from bankbridge.errors import ValidationError
from bankbridge.models import ReaderInfo, TabularData
from bankbridge.registry import registry


def read_csv(file_path: Path) -> TabularData:
    with open(file_path, newline="", encoding="utf-8-sig") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is None:
            return TabularData(source_columns=[], sample_data=[])
        columns = [h.strip() for h in header]
        rows = []
        for line in reader:
            # Skip blank lines
            if not any(cell.strip() for cell in line):
                continue
            padded = line + [""] * (len(columns) - len(line))
            rows.append(dict(zip(columns, padded)))
    return TabularData(source_columns=columns, sample_data=rows)


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def read_xlsx(file_path: Path) -> TabularData:
    """Read the first worksheet; its first row holds the headers."""
    from openpyxl import load_workbook

    wb = load_workbook(file_path, read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        rows_iter = ws.iter_rows(values_only=True)
        header = next(rows_iter, None)
        if header is None:
            return TabularData(source_columns=[], sample_data=[])
        columns = [_cell_text(h).strip() for h in header]
        rows = []
        for values in rows_iter:
            if all(v is None or str(v).strip() == "" for v in values):
                continue
            padded = tuple(values) + (None,) * (len(columns) - len(values))
            rows.append({col: _cell_text(v) for col, v in zip(columns, padded)})
    finally:
        wb.close()
    return TabularData(source_columns=columns, sample_data=rows)


registry.register(ReaderInfo(
    key="csv", name="Comma-separated values",
    file_extensions=[".csv"], read=read_csv,
))
registry.register(ReaderInfo(
    key="xlsx", name="Excel workbook",
    file_extensions=[".xlsx"], read=read_xlsx,
))


def read_tabular(file_path: Path) -> TabularData:
    reader = registry.get_for_file(file_path)
    if reader is None:
        supported = ", ".join(registry.supported_extensions())
        raise ValidationError(f"Unsupported file type: {Path(file_path).suffix or '(none)'} (supported: {supported})")
    try:
        return reader.read(Path(file_path))
    except (UnicodeDecodeError, csv.Error) as e:
        raise ValidationError(f"Could not read {Path(file_path).name} as {reader.name}: {e}") from e
    except (InvalidFileException, zipfile.BadZipFile, KeyError) as e:
        raise ValidationError(f"Could not open workbook {Path(file_path).name}: {e}") from e
