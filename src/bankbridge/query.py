import locale
import math
from functools import cmp_to_key

from bankbridge.errors import ValidationError
from bankbridge.models import (
    FIELD_KEYS,
    PaginatedResult,
    Pagination,
    SortOptions,
    Transaction,
    TransactionFilters,
)

SORT_DIRECTIONS = ("asc", "desc")


def _contains(haystack: str, needle: str) -> bool:
    return needle.lower() in (haystack or "").lower()


def _matches(txn: Transaction, filters: TransactionFilters) -> bool:
    if filters.date_from and txn.date < filters.date_from:
        return False
    if filters.date_to and txn.date > filters.date_to:
        return False

    if filters.institution_name and not _contains(txn.institution_name, filters.institution_name):
        return False
    if filters.account_name and not _contains(txn.account_name, filters.account_name):
        return False
    if filters.category and not _contains(txn.category, filters.category):
        return False

    if filters.amount_min is not None and txn.amount < filters.amount_min:
        return False
    if filters.amount_max is not None and txn.amount > filters.amount_max:
        return False

    # Any filter tag appearing inside any transaction tag
    if filters.tags:
        if not any(_contains(t, tag) for tag in filters.tags for t in txn.tags):
            return False

    if filters.search_text:
        text = filters.search_text
        if not (
            _contains(txn.merchant, text)
            or _contains(txn.original_statement, text)
            or _contains(txn.notes, text)
        ):
            return False

    return True


def filter_transactions(transactions: list[Transaction], filters: TransactionFilters) -> list[Transaction]:
    """Return the transactions satisfying every configured predicate."""
    return [t for t in transactions if _matches(t, filters)]


def _compare_values(a, b) -> float:
    if isinstance(a, str) and isinstance(b, str):
        return locale.strcoll(a, b)
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a - b
    # Tag lists order by how many tags they hold, not by content
    if isinstance(a, list) and isinstance(b, list):
        return len(a) - len(b)
    return 0


def sort_transactions(transactions: list[Transaction], sort: SortOptions) -> list[Transaction]:
    """Return a new list ordered by ``sort.field``. Ties keep their input order."""
    if sort.field not in FIELD_KEYS:
        raise ValidationError(f"Unknown sort field: {sort.field}")
    if sort.direction not in SORT_DIRECTIONS:
        raise ValidationError(f"Unknown sort direction: {sort.direction}")

    sign = 1 if sort.direction == "asc" else -1

    def compare(a: Transaction, b: Transaction) -> int:
        result = _compare_values(getattr(a, sort.field), getattr(b, sort.field)) * sign
        return (result > 0) - (result < 0)

    return sorted(transactions, key=cmp_to_key(compare))


def paginate(transactions: list[Transaction], page: int, page_size: int) -> tuple[list[Transaction], int]:
    """Return the 1-indexed ``page`` of size ``page_size`` and the unsliced total."""
    if page < 1:
        raise ValidationError(f"Page must be 1 or greater, got {page}")
    if page_size < 1:
        raise ValidationError(f"Page size must be 1 or greater, got {page_size}")
    start = (page - 1) * page_size
    return transactions[start:start + page_size], len(transactions)


def query_transactions(
    transactions: list[Transaction],
    filters: TransactionFilters | None = None,
    sort: SortOptions | None = None,
    pagination: Pagination | None = None,
) -> PaginatedResult:
    """Filter, then sort, then paginate."""
    items = list(transactions)
    if filters:
        items = filter_transactions(items, filters)
    if sort:
        items = sort_transactions(items, sort)

    if pagination is None:
        return PaginatedResult(items=items, total=len(items), page=1, page_size=len(items), total_pages=1)

    page_items, total = paginate(items, pagination.page, pagination.page_size)
    return PaginatedResult(
        items=page_items,
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
        total_pages=math.ceil(total / pagination.page_size),
    )
