# custody/storage/jsonl.py
import json
import logging
import os
from pathlib import Path
from typing import List, Type

from custody.core.errors import MalformedRecord, StoreNotFound
from custody.core.types import ChainRecord
from . import StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_LOG_PATH = Path.home() / ".custody" / "custody-log.jsonl"


def default_log_path() -> Path:
    """CUSTODY_LOG_PATH if set, else ~/.custody/custody-log.jsonl (shared by writers and the CLI)."""
    env_path = os.environ.get("CUSTODY_LOG_PATH")
    return Path(env_path) if env_path else DEFAULT_LOG_PATH


def serialize_record(record: ChainRecord) -> str:
    return json.dumps(record.to_dict(), separators=(",", ":"), ensure_ascii=False)


def parse_record(line: str, record_type: Type[ChainRecord]) -> ChainRecord:
    """One stored line back into a record; MalformedRecord if it doesn't fit the shape."""
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise MalformedRecord(f"malformed record: invalid JSON ({e.msg})") from e
    except (ValueError, RecursionError) as e:
        # integer literals past the digit limit, or nesting past the parser stack
        raise MalformedRecord(f"malformed record: unparseable JSON ({type(e).__name__})") from e
    return record_type.from_dict(data)


class JSONLStorage(StorageBackend):
    """
    Newline-delimited JSON log, one record per line.
    Opened append-or-create; existing lines are never rewritten.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path is not None else default_log_path()
        self._fh = None
        self._closed = False

    def _handle(self):
        if self._closed:
            raise RuntimeError("Storage is closed")
        if self._fh is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self.path, "a", encoding="utf-8")
        return self._fh

    def append(self, record: ChainRecord) -> None:
        fh = self._handle()
        fh.write(serialize_record(record) + "\n")
        fh.flush()
        logger.debug("Appended %s record to %s", record.PROFILE, self.path)

    def load_lines(self) -> List[str]:
        if self._closed:
            raise RuntimeError("Storage is closed")
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise StoreNotFound("file not found", path=str(self.path)) from e
        except (OSError, UnicodeDecodeError) as e:
            raise StoreNotFound(f"store unreadable: {e}", path=str(self.path)) from e
        return [line for line in text.split("\n") if line]

    def load_records(self, record_type: Type[ChainRecord]) -> List[ChainRecord]:
        records = []
        for index, line in enumerate(self.load_lines()):
            try:
                records.append(parse_record(line, record_type))
            except MalformedRecord as e:
                e.details.setdefault("index", index)
                raise
        return records

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
