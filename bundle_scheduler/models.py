"""Data models for bundle-scheduler."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any


class TriggerType(str, Enum):
    """How a template produces bundles."""

    MANUAL = "manual"
    AUTOMATIC = "automatic"


class BundleStage(str, Enum):
    """Lifecycle stage of a bundle."""

    PREPARATION = "preparation"
    ANNOUNCED = "announced"
    AFTER_EVENT = "after-event"
    DONE = "done"


class BundleStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class TaskStatus(str, Enum):
    TODO = "todo"
    DONE = "done"
    ARCHIVED = "archived"


class TaskSource(str, Enum):
    """Where a task came from."""

    MANUAL = "manual"
    TEMPLATE = "template"
    RECURRING = "recurring"
    TELEGRAM = "telegram"
    EMAIL = "email"


class LegacySchedule(str, Enum):
    """Simplified recurring schedule kept for older rules."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# Fields each entity accepts in a partial update. Anything else is dropped.
TASK_UPDATE_FIELDS: frozenset[str] = frozenset(
    {
        "description",
        "status",
        "comment",
        "instructions_url",
        "link",
        "required_link_name",
        "requires_file",
        "assignee_id",
        "project_id",
        "tags",
    }
)

BUNDLE_UPDATE_FIELDS: frozenset[str] = frozenset(
    {
        "title",
        "description",
        "stage",
        "status",
        "emoji",
        "tags",
        "references",
        "bundle_links",
    }
)

TEMPLATE_UPDATE_FIELDS: frozenset[str] = frozenset(
    {
        "name",
        "type",
        "emoji",
        "tags",
        "default_assignee_id",
        "references",
        "bundle_link_definitions",
        "trigger_type",
        "trigger_schedule",
        "trigger_lead_days",
        "task_definitions",
    }
)

RECURRING_UPDATE_FIELDS: frozenset[str] = frozenset(
    {
        "description",
        "schedule",
        "day_of_week",
        "day_of_month",
        "enabled",
        "assignee_id",
        "project_id",
    }
)

# Enum-typed fields, checked when an update is applied
TASK_ENUM_FIELDS: dict[str, type[Enum]] = {"status": TaskStatus}
BUNDLE_ENUM_FIELDS: dict[str, type[Enum]] = {"stage": BundleStage, "status": BundleStatus}
TEMPLATE_ENUM_FIELDS: dict[str, type[Enum]] = {"trigger_type": TriggerType}


def json_safe(value: Any) -> Any:
    """Convert enums, dates and nested records into plain JSON values."""
    if isinstance(value, Record):
        return value.to_record()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [json_safe(v) for v in value]
    return value


def _as_date(value: Any) -> date | None:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _as_enum(enum_type: type[Enum], value: Any) -> Any:
    if value is None:
        return None
    return enum_type(value)


class Record:
    """Mixin converting dataclasses to JSON-safe storage records."""

    def to_record(self) -> dict[str, Any]:
        return json_safe(asdict(self))


@dataclass
class Reference(Record):
    name: str
    url: str = ""

    @classmethod
    def from_record(cls, data: dict) -> Reference:
        return cls(name=data["name"], url=data.get("url") or "")


@dataclass
class BundleLinkDefinition(Record):
    name: str

    @classmethod
    def from_record(cls, data: dict) -> BundleLinkDefinition:
        return cls(name=data["name"])


@dataclass
class BundleLink(Record):
    name: str
    url: str = ""

    @classmethod
    def from_record(cls, data: dict) -> BundleLink:
        return cls(name=data["name"], url=data.get("url") or "")


@dataclass
class TaskDefinition(Record):
    """One task a template produces, dated relative to the bundle anchor."""

    ref_id: str
    description: str
    offset_days: int = 0
    instructions_url: str | None = None
    assignee_id: str | None = None
    required_link_name: str | None = None
    requires_file: bool = False
    is_milestone: bool = False
    stage_on_complete: BundleStage | None = None

    @classmethod
    def from_record(cls, data: dict) -> TaskDefinition:
        return cls(
            ref_id=data["ref_id"],
            description=data["description"],
            offset_days=int(data.get("offset_days") or 0),
            instructions_url=data.get("instructions_url"),
            assignee_id=data.get("assignee_id"),
            required_link_name=data.get("required_link_name"),
            requires_file=bool(data.get("requires_file", False)),
            is_milestone=bool(data.get("is_milestone", False)),
            stage_on_complete=_as_enum(BundleStage, data.get("stage_on_complete")),
        )


@dataclass
class Template(Record):
    """Blueprint for a bundle and its dated tasks."""

    id: str
    name: str
    type: str = ""
    task_definitions: list[TaskDefinition] = field(default_factory=list)
    trigger_type: TriggerType = TriggerType.MANUAL
    trigger_schedule: str | None = None
    trigger_lead_days: int = 0
    default_assignee_id: str | None = None
    tags: list[str] = field(default_factory=list)
    emoji: str | None = None
    references: list[Reference] = field(default_factory=list)
    bundle_link_definitions: list[BundleLinkDefinition] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_record(cls, data: dict) -> Template:
        return cls(
            id=data["id"],
            name=data["name"],
            type=data.get("type") or "",
            task_definitions=[
                TaskDefinition.from_record(d) for d in data.get("task_definitions") or []
            ],
            trigger_type=TriggerType(data.get("trigger_type") or TriggerType.MANUAL),
            trigger_schedule=data.get("trigger_schedule"),
            trigger_lead_days=int(data.get("trigger_lead_days") or 0),
            default_assignee_id=data.get("default_assignee_id"),
            tags=list(data.get("tags") or []),
            emoji=data.get("emoji"),
            references=[Reference.from_record(r) for r in data.get("references") or []],
            bundle_link_definitions=[
                BundleLinkDefinition.from_record(d)
                for d in data.get("bundle_link_definitions") or []
            ],
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


@dataclass
class RecurringRule(Record):
    """A rule producing one task on every date its schedule matches.

    ``schedule`` is a 5-field cron expression; older rules may still hold a
    ``daily``/``weekly``/``monthly`` keyword with a day selector.
    """

    id: str
    description: str
    schedule: str
    enabled: bool = True
    day_of_week: int | None = None
    day_of_month: int | None = None
    assignee_id: str | None = None
    project_id: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_record(cls, data: dict) -> RecurringRule:
        return cls(
            id=data["id"],
            description=data["description"],
            schedule=data["schedule"],
            enabled=bool(data.get("enabled", True)),
            day_of_week=data.get("day_of_week"),
            day_of_month=data.get("day_of_month"),
            assignee_id=data.get("assignee_id"),
            project_id=data.get("project_id"),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


@dataclass
class Bundle(Record):
    """A dated group of tasks built around an anchor date."""

    id: str
    title: str
    anchor_date: date
    stage: BundleStage = BundleStage.PREPARATION
    status: BundleStatus = BundleStatus.ACTIVE
    description: str | None = None
    template_id: str | None = None
    tags: list[str] = field(default_factory=list)
    emoji: str | None = None
    references: list[Reference] = field(default_factory=list)
    bundle_links: list[BundleLink] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_record(cls, data: dict) -> Bundle:
        return cls(
            id=data["id"],
            title=data["title"],
            anchor_date=_as_date(data["anchor_date"]),
            stage=BundleStage(data.get("stage") or BundleStage.PREPARATION),
            status=BundleStatus(data.get("status") or BundleStatus.ACTIVE),
            description=data.get("description"),
            template_id=data.get("template_id"),
            tags=list(data.get("tags") or []),
            emoji=data.get("emoji"),
            references=[Reference.from_record(r) for r in data.get("references") or []],
            bundle_links=[BundleLink.from_record(b) for b in data.get("bundle_links") or []],
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


@dataclass
class Task(Record):
    """A single dated unit of work."""

    id: str
    description: str
    date: date
    status: TaskStatus = TaskStatus.TODO
    source: TaskSource = TaskSource.MANUAL
    bundle_id: str | None = None
    template_task_ref: str | None = None
    recurring_rule_id: str | None = None
    assignee_id: str | None = None
    project_id: str | None = None
    required_link_name: str | None = None
    link: str | None = None
    requires_file: bool = False
    instructions_url: str | None = None
    is_milestone: bool = False
    stage_on_complete: BundleStage | None = None
    tags: list[str] = field(default_factory=list)
    comment: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_record(cls, data: dict) -> Task:
        return cls(
            id=data["id"],
            description=data["description"],
            date=_as_date(data["date"]),
            status=TaskStatus(data.get("status") or TaskStatus.TODO),
            source=TaskSource(data.get("source") or TaskSource.MANUAL),
            bundle_id=data.get("bundle_id"),
            template_task_ref=data.get("template_task_ref"),
            recurring_rule_id=data.get("recurring_rule_id"),
            assignee_id=data.get("assignee_id"),
            project_id=data.get("project_id"),
            required_link_name=data.get("required_link_name"),
            link=data.get("link"),
            requires_file=bool(data.get("requires_file", False)),
            instructions_url=data.get("instructions_url"),
            is_milestone=bool(data.get("is_milestone", False)),
            stage_on_complete=_as_enum(BundleStage, data.get("stage_on_complete")),
            tags=list(data.get("tags") or []),
            comment=data.get("comment"),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


@dataclass
class Notification(Record):
    id: str
    message: str
    template_id: str | None = None
    bundle_id: str | None = None
    user_id: str | None = None
    dismissed: bool = False
    created_at: str = ""

    @classmethod
    def from_record(cls, data: dict) -> Notification:
        return cls(
            id=data["id"],
            message=data["message"],
            template_id=data.get("template_id"),
            bundle_id=data.get("bundle_id"),
            user_id=data.get("user_id"),
            dismissed=bool(data.get("dismissed", False)),
            created_at=data.get("created_at", ""),
        )


@dataclass
class FileRef(Record):
    """Metadata of a file attached to a task. Content lives elsewhere."""

    id: str
    task_id: str
    filename: str
    content_type: str = "application/octet-stream"
    size: int = 0
    created_at: str = ""

    @classmethod
    def from_record(cls, data: dict) -> FileRef:
        return cls(
            id=data["id"],
            task_id=data["task_id"],
            filename=data["filename"],
            content_type=data.get("content_type") or "application/octet-stream",
            size=int(data.get("size") or 0),
            created_at=data.get("created_at", ""),
        )
