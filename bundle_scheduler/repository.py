"""Typed access to the storage collaborator."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any

import structlog

from bundle_scheduler.errors import InvalidInputError, NotFoundError
from bundle_scheduler.models import (
    BUNDLE_ENUM_FIELDS,
    BUNDLE_UPDATE_FIELDS,
    RECURRING_UPDATE_FIELDS,
    TASK_ENUM_FIELDS,
    TASK_UPDATE_FIELDS,
    TEMPLATE_ENUM_FIELDS,
    TEMPLATE_UPDATE_FIELDS,
    Bundle,
    BundleStatus,
    FileRef,
    Notification,
    RecurringRule,
    Task,
    TaskSource,
    Template,
    TriggerType,
    json_safe,
)
from bundle_scheduler.storage import Kind, Store

logger = structlog.get_logger()


def filter_update(
    kind: Kind,
    allowed: frozenset[str],
    changes: dict[str, Any],
    enum_fields: dict[str, type[Enum]] | None = None,
) -> dict[str, Any]:
    """Keep only allow-listed fields of a partial update.

    Enum-typed fields are validated and every value is made JSON-safe.

    Raises:
        InvalidInputError: If an enum value is invalid or nothing is left to update.
    """
    updates: dict[str, Any] = {}
    for name, value in changes.items():
        if name not in allowed:
            logger.warning("update_field_ignored", kind=kind.value, field=name)
            continue
        enum_type = (enum_fields or {}).get(name)
        if enum_type is not None and value is not None:
            try:
                value = enum_type(value)
            except ValueError as e:
                allowed_values = ", ".join(v.value for v in enum_type)
                raise InvalidInputError(f"{name} must be one of: {allowed_values}") from e
        updates[name] = json_safe(value)

    if not updates:
        raise InvalidInputError("No valid fields to update")
    return updates


def require_fields(data: dict[str, Any], *names: str) -> None:
    """Reject a record whose required text fields are missing or blank.

    Raises:
        InvalidInputError: Naming the first missing field.
    """
    for name in names:
        value = data.get(name)
        if not isinstance(value, str) or not value.strip():
            raise InvalidInputError(f"Missing required field: {name}")


class Repository:
    """Wraps a Store with per-entity accessors and allow-listed updates."""

    def __init__(self, store: Store) -> None:
        self._store = store

    # Templates

    def create_template(self, data: dict[str, Any]) -> Template:
        require_fields(data, "name")
        record = self._store.create(Kind.TEMPLATE, json_safe(data))
        logger.info("template_created", template_id=record["id"], name=record.get("name"))
        return Template.from_record(record)

    def get_template(self, template_id: str) -> Template:
        record = self._store.get(Kind.TEMPLATE, template_id)
        if record is None:
            raise NotFoundError("template", template_id)
        return Template.from_record(record)

    def list_templates(self) -> list[Template]:
        return [Template.from_record(r) for r in self.list_template_records()]

    def list_template_records(self, automatic_only: bool = False) -> list[dict[str, Any]]:
        """Stored template records, unconverted, for callers that isolate bad ones."""
        predicate = (
            (lambda r: r.get("trigger_type") == TriggerType.AUTOMATIC.value) if automatic_only else None
        )
        return self._store.scan(Kind.TEMPLATE, predicate)

    def list_automatic_templates(self) -> list[Template]:
        return [Template.from_record(r) for r in self.list_template_records(automatic_only=True)]

    def update_template(self, template_id: str, changes: dict[str, Any]) -> Template:
        updates = filter_update(
            Kind.TEMPLATE, TEMPLATE_UPDATE_FIELDS, changes, TEMPLATE_ENUM_FIELDS
        )
        return Template.from_record(self._store.update(Kind.TEMPLATE, template_id, updates))

    # Recurring rules

    def create_rule(self, data: dict[str, Any]) -> RecurringRule:
        require_fields(data, "description", "schedule")
        record = self._store.create(Kind.RECURRING_RULE, {"enabled": True, **json_safe(data)})
        logger.info("recurring_rule_created", rule_id=record["id"], schedule=record.get("schedule"))
        return RecurringRule.from_record(record)

    def get_rule(self, rule_id: str) -> RecurringRule:
        record = self._store.get(Kind.RECURRING_RULE, rule_id)
        if record is None:
            raise NotFoundError("recurring rule", rule_id)
        return RecurringRule.from_record(record)

    def list_rules(self, enabled_only: bool = False) -> list[RecurringRule]:
        return [RecurringRule.from_record(r) for r in self.list_rule_records(enabled_only)]

    def list_rule_records(self, enabled_only: bool = False) -> list[dict[str, Any]]:
        """Stored rule records, unconverted, for callers that isolate bad ones."""
        predicate = (lambda r: bool(r.get("enabled", True))) if enabled_only else None
        return self._store.scan(Kind.RECURRING_RULE, predicate)

    def update_rule(self, rule_id: str, changes: dict[str, Any]) -> RecurringRule:
        updates = filter_update(Kind.RECURRING_RULE, RECURRING_UPDATE_FIELDS, changes)
        return RecurringRule.from_record(self._store.update(Kind.RECURRING_RULE, rule_id, updates))

    # Bundles

    def create_bundle(self, data: dict[str, Any]) -> Bundle:
        record = self._store.create(Kind.BUNDLE, json_safe(data))
        logger.info(
            "bundle_created",
            bundle_id=record["id"],
            template_id=record.get("template_id"),
            anchor_date=record.get("anchor_date"),
        )
        return Bundle.from_record(record)

    def get_bundle(self, bundle_id: str) -> Bundle:
        record = self._store.get(Kind.BUNDLE, bundle_id)
        if record is None:
            raise NotFoundError("bundle", bundle_id)
        return Bundle.from_record(record)

    def list_bundles(self) -> list[Bundle]:
        return [Bundle.from_record(r) for r in self._store.scan(Kind.BUNDLE)]

    def find_bundle(self, template_id: str, anchor_date: date) -> Bundle | None:
        """Find a bundle produced from a template for an anchor date."""
        anchor = anchor_date.isoformat()
        records = self._store.scan(
            Kind.BUNDLE,
            lambda r: r.get("template_id") == template_id and r.get("anchor_date") == anchor,
        )
        return Bundle.from_record(records[0]) if records else None

    def update_bundle(self, bundle_id: str, changes: dict[str, Any]) -> Bundle:
        updates = filter_update(Kind.BUNDLE, BUNDLE_UPDATE_FIELDS, changes, BUNDLE_ENUM_FIELDS)
        return Bundle.from_record(self._store.update(Kind.BUNDLE, bundle_id, updates))

    def archive_bundle(self, bundle_id: str) -> Bundle:
        self.get_bundle(bundle_id)
        return self.update_bundle(bundle_id, {"status": BundleStatus.ARCHIVED})

    # Tasks

    def create_task(self, data: dict[str, Any]) -> Task:
        record = self._store.create(Kind.TASK, {"status": "todo", **json_safe(data)})
        return Task.from_record(record)

    def get_task(self, task_id: str) -> Task:
        record = self._store.get(Kind.TASK, task_id)
        if record is None:
            raise NotFoundError("task", task_id)
        return Task.from_record(record)

    def list_tasks_by_bundle(self, bundle_id: str) -> list[Task]:
        records = self._store.scan(Kind.TASK, lambda r: r.get("bundle_id") == bundle_id)
        tasks = [Task.from_record(r) for r in records]
        return sorted(tasks, key=lambda t: t.date)

    def list_tasks_by_date_range(self, start: date, end: date) -> list[Task]:
        first, last = start.isoformat(), end.isoformat()
        records = self._store.scan(Kind.TASK, lambda r: first <= r.get("date", "") <= last)
        return sorted((Task.from_record(r) for r in records), key=lambda t: t.date)

    def recurring_task_exists(self, rule_id: str, task_date: date) -> bool:
        day = task_date.isoformat()
        records = self._store.scan(
            Kind.TASK,
            lambda r: r.get("source") == TaskSource.RECURRING.value
            and r.get("recurring_rule_id") == rule_id
            and r.get("date") == day,
        )
        return len(records) > 0

    def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        updates = filter_update(Kind.TASK, TASK_UPDATE_FIELDS, changes, TASK_ENUM_FIELDS)
        return Task.from_record(self._store.update(Kind.TASK, task_id, updates))

    # Notifications

    def create_notification(self, data: dict[str, Any]) -> Notification:
        record = self._store.create(Kind.NOTIFICATION, {"dismissed": False, **json_safe(data)})
        logger.info("notification_created", notification_id=record["id"], bundle_id=record.get("bundle_id"))
        return Notification.from_record(record)

    def list_notifications(
        self, user_id: str | None = None, include_dismissed: bool = False
    ) -> list[Notification]:
        """List notifications, undismissed first, newest first within each group.

        With ``user_id``, notifications addressed to nobody are included.
        """
        notifications = [
            Notification.from_record(r)
            for r in self._store.scan(Kind.NOTIFICATION)
            if include_dismissed or not r.get("dismissed", False)
        ]
        if user_id:
            notifications = [n for n in notifications if not n.user_id or n.user_id == user_id]
        notifications.sort(key=lambda n: n.created_at, reverse=True)
        notifications.sort(key=lambda n: n.dismissed)
        return notifications

    def dismiss_notification(self, notification_id: str) -> Notification:
        if self._store.get(Kind.NOTIFICATION, notification_id) is None:
            raise NotFoundError("notification", notification_id)
        record = self._store.update(Kind.NOTIFICATION, notification_id, {"dismissed": True})
        return Notification.from_record(record)

    def dismiss_all_notifications(self) -> int:
        pending = self.list_notifications()
        for notification in pending:
            self._store.update(Kind.NOTIFICATION, notification.id, {"dismissed": True})
        return len(pending)

    # Files

    def attach_file(
        self,
        task_id: str,
        filename: str,
        content_type: str = "application/octet-stream",
        size: int = 0,
    ) -> FileRef:
        self.get_task(task_id)
        record = self._store.create(
            Kind.FILE,
            {"task_id": task_id, "filename": filename, "content_type": content_type, "size": size},
        )
        logger.info("file_attached", task_id=task_id, file_id=record["id"])
        return FileRef.from_record(record)

    def list_files(self, task_id: str) -> list[FileRef]:
        records = self._store.scan(Kind.FILE, lambda r: r.get("task_id") == task_id)
        return [FileRef.from_record(r) for r in records]
