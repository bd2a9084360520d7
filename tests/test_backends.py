import asyncio
import json
import os
from pathlib import Path

import pytest

from conftest import make_input
from bankbridge.backends import JsonFileBackend, MemoryBackend, create_backend
from bankbridge.errors import PersistenceError, ValidationError
from bankbridge.models import create_default_master_data, create_transaction


def _sample_file():
    data = create_default_master_data()
    data.transactions.append(create_transaction(make_input(tags=["coffee"], notes="latte")))
    return data


def test_missing_file_loads_none(tmp_path):
    backend = JsonFileBackend(tmp_path / "master_data.json")
    assert asyncio.run(backend.load()) is None
    info = asyncio.run(backend.get_file_info())
    assert info.exists is False
    assert info.last_modified is None


def test_save_then_load(tmp_path):
    backend = JsonFileBackend(tmp_path / "nested" / "master_data.json")
    data = _sample_file()
    asyncio.run(backend.save(data))
    loaded = asyncio.run(backend.load())
    assert loaded.transactions == data.transactions
    assert loaded.version == "1.0.0"


def test_persisted_document_uses_camel_case_keys(tmp_path):
    path = tmp_path / "master_data.json"
    asyncio.run(JsonFileBackend(path).save(_sample_file()))
    raw = json.loads(path.read_text())
    assert set(raw) == {"version", "lastUpdated", "metadata", "transactions"}
    assert set(raw["transactions"][0]) == {
        "id", "date", "merchant", "category", "institutionName", "accountName",
        "originalStatement", "notes", "amount", "tags", "sourceFile", "importedAt",
    }
    assert raw["transactions"][0]["tags"] == ["coffee"]


def test_file_info_after_save(tmp_path):
    path = tmp_path / "master_data.json"
    backend = JsonFileBackend(path)
    asyncio.run(backend.save(_sample_file()))
    info = asyncio.run(backend.get_file_info())
    assert info.exists is True
    assert info.path == str(path)
    assert info.size == path.stat().st_size
    assert info.last_modified is not None


def test_check_modified_detects_external_change(tmp_path):
    path = tmp_path / "master_data.json"
    backend = JsonFileBackend(path)
    assert asyncio.run(backend.check_modified()) is False

    asyncio.run(backend.save(_sample_file()))
    assert asyncio.run(backend.check_modified()) is False

    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))
    assert asyncio.run(backend.check_modified()) is True

    asyncio.run(backend.load())
    assert asyncio.run(backend.check_modified()) is False


def test_malformed_file_raises(tmp_path):
    path = tmp_path / "master_data.json"
    path.write_text('{"version": "1.0.0", "transactions": [{"merchant": "no id"}]}')
    with pytest.raises(PersistenceError):
        asyncio.run(JsonFileBackend(path).load())


def test_clear_removes_file(tmp_path):
    path = tmp_path / "master_data.json"
    backend = JsonFileBackend(path)
    asyncio.run(backend.save(_sample_file()))
    asyncio.run(backend.clear())
    assert not path.exists()
    asyncio.run(backend.clear())


def test_memory_backend_roundtrip():
    storage: dict[str, str] = {}
    backend = MemoryBackend(storage)
    assert asyncio.run(backend.load()) is None
    asyncio.run(backend.save(_sample_file()))
    assert "bankbridge_master_data" in storage
    loaded = asyncio.run(MemoryBackend(storage).load())
    assert len(loaded.transactions) == 1
    assert asyncio.run(backend.check_modified()) is False

    info = asyncio.run(backend.get_file_info())
    assert info.path == "memory"
    assert info.exists is True
    asyncio.run(backend.clear())
    assert storage == {}


def test_create_backend(tmp_path):
    file_backend = create_backend({"backend": "file", "data_dir": str(tmp_path), "master_data_path": ""})
    assert isinstance(file_backend, JsonFileBackend)
    assert file_backend.path == tmp_path / "master_data.json"

    explicit = create_backend({"backend": "file", "data_dir": str(tmp_path),
                               "master_data_path": str(tmp_path / "ledger.json")})
    assert explicit.path == tmp_path / "ledger.json"

    assert isinstance(create_backend({"backend": "memory"}), MemoryBackend)
    with pytest.raises(ValidationError):
        create_backend({"backend": "s3"})


def test_undecodable_file_raises_persistence_error(tmp_path):
    path = tmp_path / "master_data.json"
    path.write_bytes(b"\xff\xfe\x00")
    with pytest.raises(PersistenceError):
        asyncio.run(JsonFileBackend(path).load())


def test_clear_failure_raises_persistence_error(tmp_path, monkeypatch):
    path = tmp_path / "master_data.json"
    backend = JsonFileBackend(path)
    asyncio.run(backend.save(_sample_file()))

    def deny(self, missing_ok=False):
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "unlink", deny)
    with pytest.raises(PersistenceError):
        asyncio.run(backend.clear())


def test_check_modified_after_file_removed(tmp_path):
    path = tmp_path / "master_data.json"
    backend = JsonFileBackend(path)
    asyncio.run(backend.save(_sample_file()))
    path.unlink()
    assert asyncio.run(backend.check_modified()) is False
