import pytest

from bankbridge.backends import JsonFileBackend, MemoryBackend
from bankbridge.models import CreateTransactionInput
from bankbridge.store import TransactionStore


class CountingBackend(MemoryBackend):
    """Memory backend that records how many times it was asked to save."""

    def __init__(self):
        super().__init__()
        self.save_calls = 0

    async def save(self, data):
        self.save_calls += 1
        await super().save(data)


@pytest.fixture
def backend():
    return CountingBackend()


@pytest.fixture
def store(backend):
    """Provide a store over a fresh in-memory backend."""
    return TransactionStore(backend)


@pytest.fixture
def file_store(tmp_path):
    return TransactionStore(JsonFileBackend(tmp_path / "master_data.json"))


def make_input(**overrides) -> CreateTransactionInput:
    values = dict(
        date="2024-01-01",
        merchant="Coffee Shop",
        amount=-4.50,
        institution_name="TD Bank",
        account_name="Checking",
        category="Dining",
        original_statement="COFFEE SHOP #123",
        notes="",
        tags=[],
        source_file="test.csv",
    )
    values.update(overrides)
    return CreateTransactionInput(**values)
