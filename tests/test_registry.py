from pathlib import Path

from bankbridge.models import ReaderInfo, TabularData
from bankbridge.registry import ReaderRegistry, registry


def _dummy_read(path: Path) -> TabularData:
    return TabularData(source_columns=["Date"], sample_data=[{"Date": "2025-01-01"}])


def test_register_and_get_by_key():
    reg = ReaderRegistry()
    info = ReaderInfo(key="tsv", name="Tab separated", file_extensions=[".tsv"], read=_dummy_read)
    reg.register(info)
    assert reg.get_by_key("tsv") is info
    assert reg.get_by_key("nonexistent") is None


def test_get_for_file_matches_extension_case_insensitively():
    reg = ReaderRegistry()
    info = ReaderInfo(key="tsv", name="Tab separated", file_extensions=[".TSV"], read=_dummy_read)
    reg.register(info)
    assert reg.get_for_file(Path("statement.tsv")) is info
    assert reg.get_for_file(Path("STATEMENT.Tsv")) is info
    assert reg.get_for_file(Path("statement.pdf")) is None


def test_first_registered_reader_wins_for_extension():
    reg = ReaderRegistry()
    first = ReaderInfo(key="a", name="A", file_extensions=[".txt"], read=_dummy_read)
    second = ReaderInfo(key="b", name="B", file_extensions=[".txt"], read=_dummy_read)
    reg.register(first)
    reg.register(second)
    assert reg.get_for_file(Path("x.txt")) is first
    assert len(reg.list_all()) == 2


def test_supported_extensions():
    reg = ReaderRegistry()
    reg.register(ReaderInfo(key="multi", name="Multi", file_extensions=[".b", ".a"], read=_dummy_read))
    assert reg.supported_extensions() == [".a", ".b"]


def test_builtin_readers_registered():
    import bankbridge.readers  # noqa: F401

    assert registry.get_by_key("csv") is not None
    assert registry.get_by_key("xlsx") is not None
    assert {".csv", ".xlsx"} <= set(registry.supported_extensions())
