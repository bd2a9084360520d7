import random
import string
import time
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Callable

MASTER_DATA_VERSION = "1.0.0"

# Python attribute name -> key in the persisted JSON document
FIELD_KEYS = {
    "id": "id",
    "date": "date",
    "merchant": "merchant",
    "category": "category",
    "institution_name": "institutionName",
    "account_name": "accountName",
    "original_statement": "originalStatement",
    "notes": "notes",
    "amount": "amount",
    "tags": "tags",
    "source_file": "sourceFile",
    "imported_at": "importedAt",
}


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Transaction:
    id: str
    date: str  # ISO 8601 YYYY-MM-DD
    merchant: str
    amount: float  # negative = debit, positive = credit
    institution_name: str = ""
    account_name: str = ""
    category: str = ""
    original_statement: str = ""
    notes: str = ""
    tags: list[str] = field(default_factory=list)
    source_file: str = ""
    imported_at: str = ""

    def to_dict(self) -> dict:
        return {FIELD_KEYS[f.name]: _copy_value(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        return cls(
            id=str(data["id"]),
            date=data.get("date", ""),
            merchant=data.get("merchant", ""),
            amount=float(data.get("amount", 0.0)),
            institution_name=data.get("institutionName", ""),
            account_name=data.get("accountName", ""),
            category=data.get("category", ""),
            original_statement=data.get("originalStatement", ""),
            notes=data.get("notes") or "",
            tags=list(data.get("tags") or []),
            source_file=data.get("sourceFile", ""),
            imported_at=data.get("importedAt", ""),
        )


@dataclass
class CreateTransactionInput:
    """A transaction before the store assigns its id and import timestamp."""
    date: str
    merchant: str
    amount: float
    institution_name: str = ""
    account_name: str = ""
    category: str = ""
    original_statement: str = ""
    notes: str = ""
    tags: list[str] = field(default_factory=list)
    source_file: str = ""


@dataclass
class DateRange:
    earliest: str = ""
    latest: str = ""


@dataclass
class MasterDataMetadata:
    total_transactions: int = 0
    date_range: DateRange = field(default_factory=DateRange)
    accounts: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalTransactions": self.total_transactions,
            "dateRange": {"earliest": self.date_range.earliest, "latest": self.date_range.latest},
            "accounts": list(self.accounts),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MasterDataMetadata":
        date_range = data.get("dateRange") or {}
        return cls(
            total_transactions=int(data.get("totalTransactions", 0)),
            date_range=DateRange(
                earliest=date_range.get("earliest", ""),
                latest=date_range.get("latest", ""),
            ),
            accounts=list(data.get("accounts") or []),
        )


@dataclass
class MasterDataFile:
    version: str
    last_updated: str
    transactions: list[Transaction] = field(default_factory=list)
    metadata: MasterDataMetadata = field(default_factory=MasterDataMetadata)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "lastUpdated": self.last_updated,
            "metadata": self.metadata.to_dict(),
            "transactions": [t.to_dict() for t in self.transactions],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MasterDataFile":
        return cls(
            version=data.get("version", ""),
            last_updated=data.get("lastUpdated", ""),
            transactions=[Transaction.from_dict(t) for t in data.get("transactions") or []],
            metadata=MasterDataMetadata.from_dict(data.get("metadata") or {}),
        )


@dataclass
class ColumnMapping:
    source_column: str
    target_field: str | None = None


@dataclass
class PreviewTransaction:
    """A transformed import row annotated with its duplicate status."""
    index: int
    input: CreateTransactionInput
    is_duplicate: bool = False
    existing_transaction: Transaction | None = None


@dataclass
class FileInfo:
    path: str
    exists: bool
    last_modified: datetime | None = None
    size: int | None = None


@dataclass
class TransactionFilters:
    date_from: str | None = None
    date_to: str | None = None
    institution_name: str | None = None
    account_name: str | None = None
    category: str | None = None
    search_text: str | None = None
    amount_min: float | None = None
    amount_max: float | None = None
    tags: list[str] | None = None


@dataclass
class SortOptions:
    field: str
    direction: str = "asc"  # asc or desc


@dataclass
class Pagination:
    page: int
    page_size: int


@dataclass
class PaginatedResult:
    items: list[Transaction]
    total: int
    page: int
    page_size: int
    total_pages: int


def _copy_value(value):
    return list(value) if isinstance(value, list) else value


def generate_transaction_id() -> str:
    millis = int(time.time() * 1000)
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"txn_{millis}_{suffix}"


def create_transaction(data: CreateTransactionInput) -> Transaction:
    """Build a stored transaction from an input, assigning id and import timestamp."""
    return Transaction(
        id=generate_transaction_id(),
        date=data.date,
        merchant=data.merchant,
        amount=data.amount,
        institution_name=data.institution_name,
        account_name=data.account_name,
        category=data.category,
        original_statement=data.original_statement,
        notes=data.notes or "",
        tags=list(data.tags or []),
        source_file=data.source_file,
        imported_at=now_iso(),
    )


def compute_metadata(transactions: list[Transaction]) -> MasterDataMetadata:
    if not transactions:
        return MasterDataMetadata()
    dates = sorted(t.date for t in transactions if t.date)
    accounts = sorted({t.account_name for t in transactions if t.account_name})
    return MasterDataMetadata(
        total_transactions=len(transactions),
        date_range=DateRange(
            earliest=dates[0] if dates else "",
            latest=dates[-1] if dates else "",
        ),
        accounts=accounts,
    )


def create_default_master_data() -> MasterDataFile:
    return MasterDataFile(version=MASTER_DATA_VERSION, last_updated=now_iso())


@dataclass
class TabularData:
    """Headers and rows read from an import file, every cell as text."""
    source_columns: list[str]
    sample_data: list[dict[str, str]]


@dataclass
class ReaderInfo:
    """Metadata and read function for a tabular file format."""
    key: str
    name: str
    file_extensions: list[str]
    read: Callable
