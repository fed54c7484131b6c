# custody/storage/__init__.py
"""
Storage backends for persistent custody logs.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Type

from custody.core.types import ChainRecord


class StorageBackend(ABC):
    """Abstract base for append-only record stores."""

    @abstractmethod
    def append(self, record: ChainRecord) -> None:
        pass

    @abstractmethod
    def load_lines(self) -> List[str]:
        """Raw serialized records in append order. Raises StoreNotFound if absent."""
        pass

    @abstractmethod
    def load_records(self, record_type: Type[ChainRecord]) -> List[ChainRecord]:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


def create_storage(uri: str) -> StorageBackend:
    if uri.startswith("jsonl:"):
        from .jsonl import JSONLStorage
        raw_path = uri[len("jsonl:"):]
        if raw_path.startswith("//"):
            raw_path = raw_path[2:]
        if not raw_path:
            raise ValueError(f"Storage URI has no path: {uri}")
        return JSONLStorage(Path(raw_path).resolve())
    elif "://" in uri:
        raise ValueError(f"Unsupported storage URI: {uri}")
    else:
        # Plain file path
        from .jsonl import JSONLStorage
        return JSONLStorage(Path(uri).resolve())


from .jsonl import JSONLStorage

__all__ = ["StorageBackend", "create_storage", "JSONLStorage"]
