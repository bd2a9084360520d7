"""Transaction storage over an injected persistence backend.

Every mutation loads the whole master data file, changes it in memory and
saves it back in one backend call. Metadata is recomputed on each save and
never edited directly. There is no locking: two writers racing on the same
backend lose one writer's changes.
"""

from dataclasses import fields, replace

from bankbridge.backends import PersistenceBackend
from bankbridge.duplicates import find_duplicates
from bankbridge.errors import NotFoundError, PersistenceError, ValidationError
from bankbridge.logging_setup import get_logger
from bankbridge.models import (
    CreateTransactionInput,
    FileInfo,
    MasterDataFile,
    MasterDataMetadata,
    PaginatedResult,
    Pagination,
    SortOptions,
    Transaction,
    TransactionFilters,
    compute_metadata,
    create_default_master_data,
    create_transaction,
    now_iso,
)
from bankbridge.query import query_transactions

logger = get_logger(__name__)

IMMUTABLE_FIELDS = ("id", "imported_at")
UNIQUE_VALUE_FIELDS = ("institution_name", "account_name", "category")
_TRANSACTION_FIELDS = {f.name for f in fields(Transaction)}


class TransactionStore:
    def __init__(self, backend: PersistenceBackend):
        self.backend = backend

    # --- Core operations ---

    async def load_master_data(self) -> MasterDataFile:
        """Return persisted master data, or an empty file if none can be loaded."""
        try:
            data = await self.backend.load()
        except PersistenceError as e:
            logger.error("Error loading master data, starting empty: %s", e)
            return create_default_master_data()
        if data is None:
            return create_default_master_data()
        return data

    async def save_master_data(self, data: MasterDataFile) -> None:
        data.metadata = compute_metadata(data.transactions)
        data.last_updated = now_iso()
        await self.backend.save(data)

    async def get_file_info(self) -> FileInfo:
        return await self.backend.get_file_info()

    async def check_modified(self) -> bool:
        """True when the persisted source changed since it was last loaded."""
        return await self.backend.check_modified()

    async def has_master_data(self) -> bool:
        info = await self.get_file_info()
        return info.exists

    async def clear_master_data(self) -> None:
        await self.backend.clear()
        logger.info("Master data cleared")

    # --- Transaction operations ---

    async def get_all_transactions(self) -> list[Transaction]:
        data = await self.load_master_data()
        return data.transactions

    async def get_transaction_by_id(self, transaction_id: str) -> Transaction | None:
        for txn in await self.get_all_transactions():
            if txn.id == transaction_id:
                return txn
        return None

    async def get_transactions(
        self,
        filters: TransactionFilters | None = None,
        sort: SortOptions | None = None,
        pagination: Pagination | None = None,
    ) -> PaginatedResult:
        return query_transactions(await self.get_all_transactions(), filters, sort, pagination)

    async def add_transactions(self, inputs: list[CreateTransactionInput]) -> list[Transaction]:
        """Create one transaction per input and persist them with a single save."""
        if not inputs:
            return []
        data = await self.load_master_data()
        created = [create_transaction(i) for i in inputs]
        data.transactions.extend(created)
        await self.save_master_data(data)
        logger.info("Added %d transactions", len(created))
        return created

    async def add_transaction(self, data: CreateTransactionInput) -> Transaction:
        created = await self.add_transactions([data])
        return created[0]

    async def update_transaction(self, transaction_id: str, **updates) -> Transaction:
        """Merge ``updates`` onto the stored transaction. Id and import time never change."""
        unknown = sorted(set(updates) - _TRANSACTION_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown transaction fields: {', '.join(unknown)}")
        changes = {k: v for k, v in updates.items() if k not in IMMUTABLE_FIELDS}
        if "tags" in changes:
            changes["tags"] = list(changes["tags"] or [])

        data = await self.load_master_data()
        pos = _index_of(data.transactions, transaction_id)
        if pos is None:
            raise NotFoundError(transaction_id)

        updated = replace(data.transactions[pos], **changes)
        data.transactions[pos] = updated
        await self.save_master_data(data)
        return updated

    async def delete_transaction(self, transaction_id: str) -> None:
        data = await self.load_master_data()
        pos = _index_of(data.transactions, transaction_id)
        if pos is None:
            raise NotFoundError(transaction_id)
        del data.transactions[pos]
        await self.save_master_data(data)

    async def delete_transactions(self, transaction_ids: list[str]) -> int:
        """Delete every listed id that exists. Unknown ids are ignored, unlike
        ``delete_transaction``. Returns how many were removed."""
        wanted = set(transaction_ids)
        data = await self.load_master_data()
        before = len(data.transactions)
        data.transactions = [t for t in data.transactions if t.id not in wanted]
        await self.save_master_data(data)
        return before - len(data.transactions)

    # --- Duplicate detection ---

    async def find_duplicates(self, batch: list[CreateTransactionInput]) -> dict[int, Transaction]:
        return find_duplicates(batch, await self.get_all_transactions())

    # --- Statistics and metadata ---

    async def get_metadata(self) -> MasterDataMetadata:
        data = await self.load_master_data()
        return data.metadata

    async def get_unique_values(self, field: str) -> list[str]:
        if field not in UNIQUE_VALUE_FIELDS:
            raise ValidationError(f"Unique values are only available for: {', '.join(UNIQUE_VALUE_FIELDS)}")
        values = {getattr(t, field) for t in await self.get_all_transactions()}
        return sorted(v for v in values if v)

    async def get_unique_tags(self) -> list[str]:
        tags = {tag for t in await self.get_all_transactions() for tag in t.tags}
        return sorted(tags)

    async def get_transaction_count(self) -> int:
        return len(await self.get_all_transactions())

    async def get_transactions_by_account(self, institution_name: str, account_name: str) -> list[Transaction]:
        return [
            t for t in await self.get_all_transactions()
            if t.institution_name == institution_name and t.account_name == account_name
        ]

    async def count_transactions_by_account(self, institution_name: str, account_name: str) -> int:
        return len(await self.get_transactions_by_account(institution_name, account_name))


def _index_of(transactions: list[Transaction], transaction_id: str) -> int | None:
    for pos, txn in enumerate(transactions):
        if txn.id == transaction_id:
            return pos
    return None
