from dataclasses import replace

from bankbridge.duplicates import (
    DuplicateIndex,
    find_duplicates,
    is_duplicate_transaction,
    levenshtein_distance,
    normalize_description,
    similar_description,
)
from bankbridge.models import Transaction, create_transaction

from conftest import make_input


def _stored(**overrides) -> Transaction:
    return create_transaction(make_input(**overrides))


def test_normalize_description_strips_case_and_punctuation():
    assert normalize_description("Coffee Shop #123, Toronto!") == "coffeeshop123toronto"
    assert normalize_description("") == ""


def test_levenshtein_distance():
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("", "abc") == 3
    assert levenshtein_distance("abc", "") == 3
    assert levenshtein_distance("same", "same") == 0


def test_similarity_boundary_two_is_similar_three_is_not():
    assert similar_description("coffeeshop", "coffeeshxx")  # distance 2
    assert not similar_description("coffeeshop", "coffeesxxx")  # distance 3


def test_similarity_ignores_case_and_punctuation():
    assert similar_description("COFFEE-SHOP #123", "coffee shop 123")


def test_identical_candidate_is_duplicate():
    existing = [_stored()]
    assert is_duplicate_transaction(make_input(), existing) is existing[0]


def test_any_key_field_change_breaks_the_match():
    existing = [_stored()]
    for change in (
        {"date": "2024-01-02"},
        {"amount": -4.51},
        {"institution_name": "RBC"},
        {"account_name": "Savings"},
    ):
        assert is_duplicate_transaction(make_input(**change), existing) is None, change


def test_dissimilar_statement_is_not_duplicate():
    existing = [_stored(original_statement="COFFEE SHOP #123")]
    candidate = make_input(original_statement="GROCERY STORE #9")
    assert is_duplicate_transaction(candidate, existing) is None


def test_first_matching_record_wins():
    first = _stored(original_statement="COFFEE SHOP 1")
    second = _stored(original_statement="COFFEE SHOP 1")
    assert is_duplicate_transaction(make_input(original_statement="COFFEE SHOP 1"), [first, second]) is first


def test_find_duplicates_maps_batch_positions():
    existing = [_stored(), _stored(date="2024-02-01", original_statement="RENT")]
    batch = [
        make_input(date="2024-03-01"),
        make_input(),
        make_input(date="2024-02-01", original_statement="RENT"),
    ]
    result = find_duplicates(batch, existing)
    assert set(result) == {1, 2}
    assert result[1] is existing[0]
    assert result[2] is existing[1]


def test_find_duplicates_ignores_duplicates_within_the_batch():
    batch = [make_input(), make_input()]
    assert find_duplicates(batch, []) == {}


def test_find_duplicates_is_idempotent_and_does_not_mutate():
    existing = [_stored(), _stored(amount=-10.0)]
    batch = [make_input(), make_input(amount=-10.0), make_input(amount=1.0)]
    existing_before = [replace(t) for t in existing]
    batch_before = [replace(b) for b in batch]

    first = find_duplicates(batch, existing)
    second = find_duplicates(batch, existing)

    assert first == second
    assert existing == existing_before
    assert batch == batch_before


def test_index_matches_linear_scan():
    existing = [
        _stored(original_statement="A STORE"),
        _stored(original_statement="COFFEE SHOP #123"),
        _stored(original_statement="COFFEE SHOP #124"),
        _stored(amount=-3.0),
    ]
    index = DuplicateIndex(existing)
    for candidate in (make_input(), make_input(amount=-3.0), make_input(amount=99.0)):
        assert index.find(candidate) is is_duplicate_transaction(candidate, existing)
    assert len(index.candidates(make_input())) == 3
