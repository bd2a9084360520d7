from pathlib import Path

from bankbridge.models import ReaderInfo


class ReaderRegistry:
    def __init__(self):
        self._readers: dict[str, ReaderInfo] = {}
        self._by_extension: dict[str, list[ReaderInfo]] = {}

    def register(self, info: ReaderInfo) -> None:
        self._readers[info.key] = info
        for ext in info.file_extensions:
            self._by_extension.setdefault(ext.lower(), []).append(info)

    def get_by_key(self, key: str) -> ReaderInfo | None:
        return self._readers.get(key)

    def get_for_file(self, file_path: Path) -> ReaderInfo | None:
        readers = self._by_extension.get(Path(file_path).suffix.lower(), [])
        return readers[0] if readers else None

    def supported_extensions(self) -> list[str]:
        return sorted(self._by_extension)

    def list_all(self) -> list[ReaderInfo]:
        return list(self._readers.values())


registry = ReaderRegistry()
