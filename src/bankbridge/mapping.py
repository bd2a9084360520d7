"""Column mapping from source file headers onto canonical transaction fields,
and the transform that turns raw rows into ``CreateTransactionInput`` records."""

import re
from dataclasses import dataclass
from datetime import date

from bankbridge.errors import ValidationError
from bankbridge.models import ColumnMapping, CreateTransactionInput


@dataclass(frozen=True)
class FieldDefinition:
    field: str
    label: str
    required: bool
    description: str


FIELD_DEFINITIONS = [
    FieldDefinition("date", "Date", True, "Transaction date"),
    FieldDefinition("merchant", "Merchant", True, "Merchant or payee name"),
    FieldDefinition("amount", "Amount", True, "Transaction amount"),
    FieldDefinition("category", "Category", False, "Transaction category"),
    FieldDefinition("institution_name", "Institution", False, "Financial institution name"),
    FieldDefinition("account_name", "Account", False, "Account name"),
    FieldDefinition("original_statement", "Original Statement", False, "Bank's original description"),
    FieldDefinition("notes", "Notes", False, "Additional notes"),
    FieldDefinition("tags", "Tags", False, "Tags (comma-separated)"),
]

CANONICAL_FIELDS = [d.field for d in FIELD_DEFINITIONS]
REQUIRED_FIELDS = [d.field for d in FIELD_DEFINITIONS if d.required]

# Tried in CANONICAL_FIELDS order; the first unused field whose pattern matches wins
AUTO_DETECT_PATTERNS = {
    "date": re.compile(r"^(date|trans.*date|posted|posting.*date|transaction.*date)$", re.IGNORECASE),
    "merchant": re.compile(r"^(merchant|payee|description|vendor|name|memo)$", re.IGNORECASE),
    "amount": re.compile(r"^(amount|value|sum|total|debit|credit)$", re.IGNORECASE),
    "category": re.compile(r"^(category|type|class)$", re.IGNORECASE),
    "institution_name": re.compile(r"^(bank|institution|financial.*inst|bank.*name)$", re.IGNORECASE),
    "account_name": re.compile(r"^(account|account.*name|acct)$", re.IGNORECASE),
    "original_statement": re.compile(r"^(statement|original|orig.*desc|bank.*desc)$", re.IGNORECASE),
    "notes": re.compile(r"^(notes?|comment|remarks?)$", re.IGNORECASE),
    "tags": re.compile(r"^(tags?|labels?)$", re.IGNORECASE),
}

_AMOUNT_NOISE = re.compile(r"[^0-9.\-]")
_LEADING_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def detect_field(column: str, used: set[str]) -> str | None:
    for field in CANONICAL_FIELDS:
        if field not in used and AUTO_DETECT_PATTERNS[field].match(column.strip()):
            return field
    return None


def auto_detect_mappings(source_columns: list[str]) -> list[ColumnMapping]:
    """Propose one mapping per column from its header text."""
    used: set[str] = set()
    mappings = []
    for column in source_columns:
        field = detect_field(column, used)
        if field:
            used.add(field)
        mappings.append(ColumnMapping(source_column=column, target_field=field))
    return mappings


def assign_field(mappings: list[ColumnMapping], source_column: str, target_field: str | None) -> None:
    """Point ``source_column`` at ``target_field`` (None clears it).

    A canonical field may back only one column at a time; claiming a field
    held by another column is rejected rather than silently moved.
    """
    if target_field is not None and target_field not in CANONICAL_FIELDS:
        raise ValidationError(f"Unknown field: {target_field}")
    target = next((m for m in mappings if m.source_column == source_column), None)
    if target is None:
        raise ValidationError(f"Unknown source column: {source_column}")
    if target_field is not None:
        for m in mappings:
            if m is not target and m.target_field == target_field:
                raise ValidationError(
                    f"Field '{target_field}' is already mapped to column '{m.source_column}'"
                )
    target.target_field = target_field


def used_fields(mappings: list[ColumnMapping]) -> set[str]:
    return {m.target_field for m in mappings if m.target_field}


def missing_required_fields(mappings: list[ColumnMapping]) -> list[str]:
    used = used_fields(mappings)
    return [f for f in REQUIRED_FIELDS if f not in used]


def validate_mappings(mappings: list[ColumnMapping]) -> None:
    missing = missing_required_fields(mappings)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing_fields=missing)


def parse_amount(raw: str | None) -> float:
    """Lenient amount parser: "$1,234.56" -> 1234.56, anything unparsable -> 0.0."""
    cleaned = _AMOUNT_NOISE.sub("", raw or "")
    negative = cleaned.startswith("-")
    match = _LEADING_NUMBER.match(cleaned.replace("-", ""))
    if not match:
        return 0.0
    value = float(match.group())
    return -value if negative else value


def parse_tags(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


def transform_row(
    row: dict[str, str],
    mappings: list[ColumnMapping],
    source_file: str = "",
    today: date | None = None,
) -> CreateTransactionInput:
    values: dict = {}
    for m in mappings:
        if not m.target_field:
            continue
        raw = row.get(m.source_column)
        raw = "" if raw is None else str(raw)
        if m.target_field == "amount":
            values["amount"] = parse_amount(raw)
        elif m.target_field == "tags":
            values["tags"] = parse_tags(raw)
        else:
            values[m.target_field] = raw.strip()

    return CreateTransactionInput(
        date=values.get("date") or (today or date.today()).isoformat(),
        merchant=values.get("merchant", ""),
        amount=values.get("amount", 0.0),
        institution_name=values.get("institution_name", ""),
        account_name=values.get("account_name", ""),
        category=values.get("category", ""),
        original_statement=values.get("original_statement", ""),
        notes=values.get("notes", ""),
        tags=values.get("tags", []),
        source_file=source_file,
    )


def transform_rows(
    rows: list[dict[str, str]],
    mappings: list[ColumnMapping],
    source_file: str = "",
    today: date | None = None,
) -> list[CreateTransactionInput]:
    """One input per row, in row order."""
    today = today or date.today()
    return [transform_row(row, mappings, source_file, today) for row in rows]
