"""Storage collaborator interface and an in-memory implementation."""

from __future__ import annotations

import copy
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

import structlog

from bundle_scheduler.errors import NotFoundError

logger = structlog.get_logger()

Predicate = Callable[[dict[str, Any]], bool]


class Kind(str, Enum):
    """Aggregate kinds held by a store."""

    TEMPLATE = "template"
    RECURRING_RULE = "recurring_rule"
    BUNDLE = "bundle"
    TASK = "task"
    NOTIFICATION = "notification"
    FILE = "file"


class Store(Protocol):
    """Create/read/update/scan access to JSON-safe records."""

    def create(self, kind: Kind, data: dict[str, Any]) -> dict[str, Any]:
        """Persist a new record, assigning ``id``, ``created_at`` and ``updated_at``."""
        ...

    def get(self, kind: Kind, entity_id: str) -> dict[str, Any] | None:
        """Return the record or None if it does not exist."""
        ...

    def update(self, kind: Kind, entity_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Merge ``fields`` into a record. Raises NotFoundError for unknown ids."""
        ...

    def scan(self, kind: Kind, predicate: Predicate | None = None) -> list[dict[str, Any]]:
        """Return every record of ``kind`` matching ``predicate``."""
        ...


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_record(data: dict[str, Any]) -> dict[str, Any]:
    """Stamp a record with a fresh id and timestamps."""
    now = utc_timestamp()
    record = {"id": str(uuid.uuid4()), "created_at": now, "updated_at": now}
    record.update({k: v for k, v in data.items() if k not in record})
    return record


class InMemoryStore:
    """Dictionary-backed store for tests and dry runs."""

    def __init__(self) -> None:
        self._records: dict[Kind, dict[str, dict[str, Any]]] = {kind: {} for kind in Kind}

    def create(self, kind: Kind, data: dict[str, Any]) -> dict[str, Any]:
        record = new_record(copy.deepcopy(data))
        self._records[kind][record["id"]] = record
        logger.debug("record_created", kind=kind.value, id=record["id"])
        return copy.deepcopy(record)

    def get(self, kind: Kind, entity_id: str) -> dict[str, Any] | None:
        record = self._records[kind].get(entity_id)
        return copy.deepcopy(record) if record is not None else None

    def update(self, kind: Kind, entity_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        record = self._records[kind].get(entity_id)
        if record is None:
            raise NotFoundError(kind.value, entity_id)
        record.update(copy.deepcopy(fields))
        record["updated_at"] = utc_timestamp()
        return copy.deepcopy(record)

    def scan(self, kind: Kind, predicate: Predicate | None = None) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(record)
            for record in self._records[kind].values()
            if predicate is None or predicate(record)
        ]
