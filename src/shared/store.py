"""Persistence port for the stateful aggregates plus the in-memory adapter.

Stores hand out fresh aggregate instances built from a stored record, so a
caller never mutates persisted state without going through ``save``. Every
store enforces a unique index on ``idempotency_key``; a second insert under
the same key raises ``DuplicateEffect``.

Records carry the aggregate's ``_version``. ``save`` only writes over the
version the caller loaded and bumps it; a stale copy raises
``ConcurrentModification`` instead of overwriting a newer state.
"""

import json
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import structlog
from protean.utils.reflection import declared_fields

from shared.errors import ConcurrentModification, DuplicateEffect, NotFound

logger = structlog.get_logger(__name__)

_DATETIME_TAG = "$datetime"


# ---------------------------------------------------------------------------
# Record codec
# ---------------------------------------------------------------------------
def to_record(entity) -> dict[str, Any]:
    """Snapshot the declared fields and version of an aggregate into a plain dict."""
    record = {
        name: getattr(entity, name)
        for name in declared_fields(type(entity))
        if not name.startswith("_")
    }
    record["_version"] = entity._version
    return record


def from_record(entity_cls, record: dict[str, Any]):
    return entity_cls(**record)


def _encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return {_DATETIME_TAG: value.isoformat()}
    return str(value)


def _decode_object(obj: dict[str, Any]) -> Any:
    if len(obj) == 1 and _DATETIME_TAG in obj:
        return datetime.fromisoformat(obj[_DATETIME_TAG])
    return obj


def encode_record(record: dict[str, Any]) -> str:
    return json.dumps(record, default=_encode_value)


def decode_record(data: str) -> dict[str, Any]:
    return json.loads(data, object_hook=_decode_object)


# ---------------------------------------------------------------------------
# Port
# ---------------------------------------------------------------------------
class EntityStore(ABC):
    """Durable home of one aggregate type."""

    def __init__(self, entity_cls) -> None:
        self.entity_cls = entity_cls

    @property
    def kind(self) -> str:
        return self.entity_cls.__name__

    @abstractmethod
    def get(self, entity_id: str):
        """Load an aggregate by id; raises ``NotFound``."""

    @abstractmethod
    def add(self, entity):
        """Insert a new aggregate; raises ``DuplicateEffect`` if its id or key is taken."""

    @abstractmethod
    def save(self, entity):
        """Insert or update an aggregate by id.

        A new aggregate (version -1) is inserted; a loaded one is written only
        if the stored version still matches, else ``ConcurrentModification``.
        """

    @abstractmethod
    def find_by_idempotency_key(self, key: str):
        """Return the aggregate stored under ``key`` or ``None``."""

    @abstractmethod
    def find_by(self, **filters) -> list:
        """Return aggregates whose fields equal every filter, oldest first."""

    @abstractmethod
    def find_retryable(self, failed_status: str, max_retries: int, limit: int = 10) -> list:
        """Return failed aggregates with retries left, oldest first."""


# ---------------------------------------------------------------------------
# In-memory adapter
# ---------------------------------------------------------------------------
class MemoryStore(EntityStore):
    """Thread-safe store for tests and single-process development runs."""

    def __init__(self, entity_cls) -> None:
        super().__init__(entity_cls)
        self._lock = threading.Lock()
        self._records: dict[str, dict[str, Any]] = {}
        self._keys: dict[str, str] = {}

    def get(self, entity_id: str):
        with self._lock:
            record = self._records.get(str(entity_id))
            record = dict(record) if record is not None else None
        if record is None:
            raise NotFound(self.kind, str(entity_id))
        return from_record(self.entity_cls, record)

    def add(self, entity):
        record = to_record(entity)
        entity_id = str(record["id"])
        key = record["idempotency_key"]
        record["_version"] = 0
        with self._lock:
            if entity_id in self._records or key in self._keys:
                raise DuplicateEffect(key)
            self._records[entity_id] = record
            self._keys[key] = entity_id
        entity._version = 0
        return entity

    def save(self, entity):
        record = to_record(entity)
        entity_id = str(record["id"])
        key = record["idempotency_key"]
        expected = record["_version"]
        with self._lock:
            stored = self._records.get(entity_id)
            stored_version = stored["_version"] if stored is not None else None
            if stored_version != (expected if expected >= 0 else None):
                raise ConcurrentModification(self.kind, entity_id, expected, stored_version)
            owner = self._keys.get(key)
            if owner is not None and owner != entity_id:
                raise DuplicateEffect(key)
            record["_version"] = expected + 1
            self._records[entity_id] = record
            self._keys[key] = entity_id
        entity._version = record["_version"]
        return entity

    def find_by_idempotency_key(self, key: str):
        with self._lock:
            entity_id = self._keys.get(key)
            record = dict(self._records[entity_id]) if entity_id is not None else None
        return from_record(self.entity_cls, record) if record is not None else None

    def find_by(self, **filters) -> list:
        with self._lock:
            records = [
                dict(record)
                for record in self._records.values()
                if all(record.get(name) == value for name, value in filters.items())
            ]
        records.sort(key=lambda record: record["created_at"])
        return [from_record(self.entity_cls, record) for record in records]

    def find_retryable(self, failed_status: str, max_retries: int, limit: int = 10) -> list:
        with self._lock:
            records = [
                dict(record)
                for record in self._records.values()
                if record["status"] == failed_status and (record["retries"] or 0) < max_retries
            ]
        records.sort(key=lambda record: record["created_at"])
        return [from_record(self.entity_cls, record) for record in records[:limit]]


def store_for(url: str, entity_cls, *, table_name: str, indexed: tuple[str, ...] = ()) -> EntityStore:
    """Build a store from a ``STORE_URL`` style setting.

    ``memory://`` selects ``MemoryStore``; anything else is handed to
    SQLAlchemy as a database URL.
    """
    if url.startswith("memory://"):
        return MemoryStore(entity_cls)

    from sqlalchemy import create_engine

    from shared.sql_store import SqlStore

    engine = create_engine(url, pool_pre_ping=True)
    logger.info("store_configured", table=table_name, dialect=engine.dialect.name)
    return SqlStore(engine, entity_cls, table_name=table_name, indexed=indexed)
