"""Persistence backends for master data.

A backend is picked once at startup (``create_backend``) and handed to
``TransactionStore``. Every method is a coroutine; failures surface as
``PersistenceError``.
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Protocol

from bankbridge.errors import PersistenceError, ValidationError
from bankbridge.logging_setup import get_logger
from bankbridge.models import MASTER_DATA_VERSION, FileInfo, MasterDataFile

logger = get_logger(__name__)

MEMORY_STORAGE_KEY = "bankbridge_master_data"


class PersistenceBackend(Protocol):
    async def load(self) -> MasterDataFile | None:
        """Return the persisted file, or None when nothing has been saved yet."""
        ...

    async def save(self, data: MasterDataFile) -> None: ...

    async def get_file_info(self) -> FileInfo: ...

    async def check_modified(self) -> bool: ...

    async def clear(self) -> None: ...


def _decode(raw: str, source: str) -> MasterDataFile:
    try:
        data = MasterDataFile.from_dict(json.loads(raw))
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise PersistenceError(f"Malformed master data in {source}: {e}") from e
    if data.version != MASTER_DATA_VERSION:
        logger.warning(
            "Master data version mismatch. Expected %s, found %s", MASTER_DATA_VERSION, data.version
        )
    return data


def _encode(data: MasterDataFile) -> str:
    return json.dumps(data.to_dict(), indent=2) + "\n"


class JsonFileBackend:
    """Master data stored as one JSON document on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._last_known_mtime: int | None = None

    def _read(self) -> MasterDataFile | None:
        if not self.path.exists():
            logger.info("Master data file not found: %s", self.path)
            return None
        try:
            raw = self.path.read_text(encoding="utf-8")
            mtime = self.path.stat().st_mtime_ns
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Could not read {self.path}: {e}") from e
        data = _decode(raw, str(self.path))
        self._last_known_mtime = mtime
        return data

    def _write(self, data: MasterDataFile) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(_encode(data), encoding="utf-8")
            self._last_known_mtime = self.path.stat().st_mtime_ns
        except OSError as e:
            raise PersistenceError(f"Failed to save master data to {self.path}: {e}") from e
        logger.info("Master data saved to %s (%d transactions)", self.path, len(data.transactions))

    def _file_info(self) -> FileInfo:
        if not self.path.exists():
            return FileInfo(path=str(self.path), exists=False)
        try:
            stats = self.path.stat()
        except OSError as e:
            raise PersistenceError(f"Could not stat {self.path}: {e}") from e
        return FileInfo(
            path=str(self.path),
            exists=True,
            last_modified=datetime.fromtimestamp(stats.st_mtime),
            size=stats.st_size,
        )

    def _modified(self) -> bool:
        if self._last_known_mtime is None or not self.path.exists():
            return False
        try:
            mtime = self.path.stat().st_mtime_ns
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PersistenceError(f"Could not stat {self.path}: {e}") from e
        return mtime != self._last_known_mtime

    def _remove(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Could not remove {self.path}: {e}") from e
        self._last_known_mtime = None

    async def load(self) -> MasterDataFile | None:
        return await asyncio.to_thread(self._read)

    async def save(self, data: MasterDataFile) -> None:
        await asyncio.to_thread(self._write, data)

    async def get_file_info(self) -> FileInfo:
        return await asyncio.to_thread(self._file_info)

    async def check_modified(self) -> bool:
        return await asyncio.to_thread(self._modified)

    async def clear(self) -> None:
        await asyncio.to_thread(self._remove)


class MemoryBackend:
    """Key/value fallback holding the serialized document in a dict.

    Pass a shared ``storage`` dict to let several backends see the same data.
    Nothing outside the process can change it, so it never reports external
    modification.
    """

    def __init__(self, storage: dict[str, str] | None = None, key: str = MEMORY_STORAGE_KEY):
        self.storage = storage if storage is not None else {}
        self.key = key

    async def load(self) -> MasterDataFile | None:
        raw = self.storage.get(self.key)
        if raw is None:
            return None
        return _decode(raw, "memory")

    async def save(self, data: MasterDataFile) -> None:
        self.storage[self.key] = _encode(data)

    async def get_file_info(self) -> FileInfo:
        return FileInfo(path="memory", exists=self.key in self.storage)

    async def check_modified(self) -> bool:
        return False

    async def clear(self) -> None:
        self.storage.pop(self.key, None)


BACKENDS = ("file", "memory")


def create_backend(settings: dict) -> PersistenceBackend:
    """Build the backend named by ``settings["backend"]``."""
    from bankbridge.settings import master_data_path

    kind = settings.get("backend", "file")
    if kind == "file":
        return JsonFileBackend(master_data_path(settings))
    if kind == "memory":
        return MemoryBackend()
    raise ValidationError(f"Unknown backend: {kind} (expected one of {', '.join(BACKENDS)})")
