"""SQLAlchemy-backed document store."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import structlog
from sqlalchemy import JSON, String, create_engine, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from bundle_scheduler.errors import NotFoundError
from bundle_scheduler.storage import Kind, Predicate, new_record, utc_timestamp

logger = structlog.get_logger()


class Base(DeclarativeBase):
    pass


class Document(Base):
    """One stored record of any kind, keyed by (kind, id)."""

    __tablename__ = "documents"

    kind: Mapped[str] = mapped_column(String(32), primary_key=True, index=True)
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[str] = mapped_column(String(40), nullable=False)
    updated_at: Mapped[str] = mapped_column(String(40), nullable=False)


class SqlStore:
    """Store records as JSON documents in a single SQL table.

    Call :meth:`setup` once at process start before using the store.
    """

    def __init__(self, database_url: str) -> None:
        self._engine = create_engine(database_url, future=True)
        self._sessions = sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False,
            future=True,
        )
        self._ready = False

    def setup(self) -> None:
        """Create the documents table if it does not exist yet."""
        if self._ready:
            return
        url = self._engine.url
        if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        Base.metadata.create_all(self._engine)
        self._ready = True
        logger.info("store_ready", url=self._engine.url.render_as_string(hide_password=True))

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create(self, kind: Kind, data: dict[str, Any]) -> dict[str, Any]:
        record = new_record(data)
        with self._session() as session:
            session.add(
                Document(
                    kind=kind.value,
                    id=record["id"],
                    data=record,
                    created_at=record["created_at"],
                    updated_at=record["updated_at"],
                )
            )
        logger.debug("record_created", kind=kind.value, id=record["id"])
        return dict(record)

    def get(self, kind: Kind, entity_id: str) -> dict[str, Any] | None:
        with self._session() as session:
            doc = session.get(Document, (kind.value, entity_id))
            return dict(doc.data) if doc is not None else None

    def update(self, kind: Kind, entity_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        with self._session() as session:
            doc = session.get(Document, (kind.value, entity_id))
            if doc is None:
                raise NotFoundError(kind.value, entity_id)
            now = utc_timestamp()
            # Reassign so the JSON column is flagged dirty
            doc.data = {**doc.data, **fields, "updated_at": now}
            doc.updated_at = now
            return dict(doc.data)

    def scan(self, kind: Kind, predicate: Predicate | None = None) -> list[dict[str, Any]]:
        with self._session() as session:
            docs = session.scalars(
                select(Document).where(Document.kind == kind.value).order_by(Document.created_at)
            ).all()
            records = [dict(doc.data) for doc in docs]
        return [r for r in records if predicate is None or predicate(r)]
