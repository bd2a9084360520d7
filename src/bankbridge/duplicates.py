"""Duplicate detection for incoming transactions.

A candidate is a duplicate of a stored transaction when date, amount,
institution and account are exactly equal and the two original statements
are similar: equal after normalization, or within an edit distance of 2.
"""

import re

from bankbridge.models import CreateTransactionInput, Transaction

# Edit distances strictly below this are "similar". Fixed regardless of length.
SIMILARITY_THRESHOLD = 3

_NON_ALNUM = re.compile(r"[^a-z0-9]")

MatchKey = tuple[str, float, str, str]


def normalize_description(text: str) -> str:
    return _NON_ALNUM.sub("", (text or "").lower())


def levenshtein_distance(a: str, b: str) -> int:
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(min(previous[j - 1], current[j - 1], previous[j]) + 1)
        previous = current
    return previous[-1]


def similar_description(a: str, b: str) -> bool:
    norm_a = normalize_description(a)
    norm_b = normalize_description(b)
    if norm_a == norm_b:
        return True
    return levenshtein_distance(norm_a, norm_b) < SIMILARITY_THRESHOLD


def match_key(txn: Transaction | CreateTransactionInput) -> MatchKey:
    return (txn.date, txn.amount, txn.institution_name, txn.account_name)


def is_duplicate_transaction(
    candidate: CreateTransactionInput,
    existing: list[Transaction],
) -> Transaction | None:
    """Return the first stored transaction that ``candidate`` duplicates, if any."""
    key = match_key(candidate)
    for txn in existing:
        if match_key(txn) == key and similar_description(txn.original_statement, candidate.original_statement):
            return txn
    return None


class DuplicateIndex:
    """Stored transactions bucketed by their exact-match key.

    Buckets keep collection order, so looking a candidate up here returns
    the same record a linear scan over the collection would.
    """

    def __init__(self, existing: list[Transaction]):
        self._buckets: dict[MatchKey, list[Transaction]] = {}
        for txn in existing:
            self._buckets.setdefault(match_key(txn), []).append(txn)

    def candidates(self, candidate: CreateTransactionInput) -> list[Transaction]:
        return self._buckets.get(match_key(candidate), [])

    def find(self, candidate: CreateTransactionInput) -> Transaction | None:
        return is_duplicate_transaction(candidate, self.candidates(candidate))


def find_duplicates(
    batch: list[CreateTransactionInput],
    existing: list[Transaction],
) -> dict[int, Transaction]:
    """Map batch positions to the stored transaction each one duplicates.

    Entries are checked independently against ``existing`` only, never
    against each other. Nothing is mutated.
    """
    index = DuplicateIndex(existing)
    duplicates: dict[int, Transaction] = {}
    for pos, candidate in enumerate(batch):
        match = index.find(candidate)
        if match is not None:
            duplicates[pos] = match
    return duplicates
