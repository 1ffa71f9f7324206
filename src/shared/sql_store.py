"""SQLAlchemy-backed entity store.

Each aggregate type gets one table. The lifecycle columns that queries need
are promoted to real columns; the full record lives in a JSON ``data``
column. ``idempotency_key`` carries a UNIQUE constraint, which is what makes
concurrent claims on the same side effect collapse to a single row. Updates
are conditional on the ``version`` column, so a writer holding a stale copy
matches no row and gets ``ConcurrentModification``.
"""

import structlog
from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from shared.errors import ConcurrentModification, DuplicateEffect, NotFound
from shared.store import EntityStore, decode_record, encode_record, from_record, to_record

logger = structlog.get_logger(__name__)

_PROMOTED = ("idempotency_key", "correlation_id", "status", "retries", "created_at", "updated_at")


class SqlStore(EntityStore):
    def __init__(
        self,
        engine: Engine,
        entity_cls,
        *,
        table_name: str,
        indexed: tuple[str, ...] = (),
    ) -> None:
        super().__init__(entity_cls)
        self._engine = engine
        self._indexed = tuple(indexed)
        self.metadata = MetaData()
        self.table = Table(
            table_name,
            self.metadata,
            Column("id", String(64), primary_key=True),
            Column("idempotency_key", String(600), nullable=False),
            Column("correlation_id", String(255), index=True),
            Column("status", String(50), index=True),
            Column("retries", Integer, nullable=False, default=0),
            Column("version", Integer, nullable=False, default=0),
            Column("created_at", String(64)),
            Column("updated_at", String(64)),
            *[Column(name, String(255), index=True) for name in self._indexed],
            Column("data", Text, nullable=False),
            UniqueConstraint("idempotency_key", name=f"uq_{table_name}_idempotency_key"),
        )

    # -------------------------------------------------------------------
    # Schema management
    # -------------------------------------------------------------------
    def create_schema(self) -> None:
        self.metadata.create_all(self._engine)
        logger.info("table_created", table=self.table.name)

    def drop_schema(self) -> None:
        self.metadata.drop_all(self._engine)
        logger.info("table_dropped", table=self.table.name)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _row(self, entity, version: int) -> dict:
        record = to_record(entity)
        record["_version"] = version
        row = {"id": str(record["id"]), "version": version, "data": encode_record(record)}
        for name in _PROMOTED + self._indexed:
            value = record.get(name)
            if name in ("created_at", "updated_at"):
                value = value.isoformat() if value is not None else None
            elif name == "retries":
                value = value or 0
            elif value is not None:
                value = str(value)
            row[name] = value
        return row

    def _load(self, data: str):
        return from_record(self.entity_cls, decode_record(data))

    def _stored_version(self, conn, entity_id: str) -> int | None:
        return conn.execute(select(self.table.c.version).where(self.table.c.id == entity_id)).scalar()

    def _column(self, name: str):
        if name not in self.table.c:
            raise ValueError(f"{self.table.name} cannot be filtered by {name!r}")
        return self.table.c[name]

    # -------------------------------------------------------------------
    # EntityStore
    # -------------------------------------------------------------------
    def get(self, entity_id: str):
        with self._engine.connect() as conn:
            data = conn.execute(select(self.table.c.data).where(self.table.c.id == str(entity_id))).scalar()
        if data is None:
            raise NotFound(self.kind, str(entity_id))
        return self._load(data)

    def add(self, entity):
        row = self._row(entity, version=0)
        try:
            with self._engine.begin() as conn:
                conn.execute(insert(self.table).values(**row))
        except IntegrityError as exc:
            raise DuplicateEffect(row["idempotency_key"]) from exc
        entity._version = 0
        return entity

    def save(self, entity):
        expected = entity._version
        row = self._row(entity, version=expected + 1)
        values = {name: value for name, value in row.items() if name != "id"}
        try:
            with self._engine.begin() as conn:
                if expected < 0:
                    conn.execute(insert(self.table).values(**row))
                else:
                    result = conn.execute(
                        update(self.table)
                        .where(self.table.c.id == row["id"])
                        .where(self.table.c.version == expected)
                        .values(**values)
                    )
                    if result.rowcount == 0:
                        stored = self._stored_version(conn, row["id"])
                        raise ConcurrentModification(self.kind, row["id"], expected, stored)
        except IntegrityError as exc:
            stored = None
            if expected < 0:
                with self._engine.connect() as conn:
                    stored = self._stored_version(conn, row["id"])
            if stored is not None:
                raise ConcurrentModification(self.kind, row["id"], expected, stored) from exc
            raise DuplicateEffect(row["idempotency_key"]) from exc
        entity._version = expected + 1
        return entity

    def find_by_idempotency_key(self, key: str):
        with self._engine.connect() as conn:
            data = conn.execute(select(self.table.c.data).where(self.table.c.idempotency_key == key)).scalar()
        return self._load(data) if data is not None else None

    def find_by(self, **filters) -> list:
        query = select(self.table.c.data).order_by(self.table.c.created_at)
        for name, value in filters.items():
            column = self._column(name)
            query = query.where(column == (value if name == "retries" else str(value)))
        with self._engine.connect() as conn:
            rows = conn.execute(query).scalars().all()
        return [self._load(data) for data in rows]

    def find_retryable(self, failed_status: str, max_retries: int, limit: int = 10) -> list:
        query = (
            select(self.table.c.data)
            .where(self.table.c.status == failed_status)
            .where(self.table.c.retries < max_retries)
            .order_by(self.table.c.created_at)
            .limit(limit)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(query).scalars().all()
        return [self._load(data) for data in rows]
