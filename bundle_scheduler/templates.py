"""Template validation, bundle creation and template expansion."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

import structlog

from bundle_scheduler.dates import add_days, parse_date
from bundle_scheduler.errors import ExpansionError, InvalidInputError
from bundle_scheduler.models import (
    Bundle,
    BundleLink,
    BundleStage,
    BundleStatus,
    Reference,
    Task,
    TaskDefinition,
    TaskSource,
    TaskStatus,
    Template,
    TriggerType,
    json_safe,
)
from bundle_scheduler.repository import Repository
from bundle_scheduler.schedule import validate_cron

logger = structlog.get_logger()

_VALID_STAGES = [s.value for s in BundleStage]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_task_definitions(definitions: Any) -> None:
    if not isinstance(definitions, list) or not definitions:
        raise InvalidInputError("task_definitions must be a non-empty list")

    seen_refs: set[str] = set()
    for i, td in enumerate(definitions):
        if not isinstance(td, dict):
            raise InvalidInputError(f"task_definitions[{i}] must be a mapping")
        ref_id = td.get("ref_id")
        if not ref_id or not isinstance(ref_id, str):
            raise InvalidInputError(f"task_definitions[{i}] is missing required field: ref_id")
        if ref_id in seen_refs:
            raise InvalidInputError(f"task_definitions[{i}] repeats ref_id {ref_id!r}")
        seen_refs.add(ref_id)
        if not td.get("description") or not isinstance(td["description"], str):
            raise InvalidInputError(f"task_definitions[{i}] is missing required field: description")
        if not _is_int(td.get("offset_days")):
            raise InvalidInputError(f"task_definitions[{i}] is missing required field: offset_days")
        for name in ("instructions_url", "assignee_id", "required_link_name"):
            if td.get(name) is not None and not isinstance(td[name], str):
                raise InvalidInputError(f"task_definitions[{i}].{name} must be a string")
        for name in ("requires_file", "is_milestone"):
            if td.get(name) is not None and not isinstance(td[name], bool):
                raise InvalidInputError(f"task_definitions[{i}].{name} must be a boolean")
        stage = td.get("stage_on_complete")
        if stage is not None and stage not in _VALID_STAGES:
            raise InvalidInputError(
                f"task_definitions[{i}].stage_on_complete must be one of: {', '.join(_VALID_STAGES)}"
            )


def validate_template(data: dict[str, Any]) -> None:
    """Validate raw template data before it is stored.

    Args:
        data: Template fields keyed by their snake_case names.

    Raises:
        InvalidInputError: On the first problem found.
    """
    name = data.get("name")
    if not name or not isinstance(name, str) or not name.strip():
        raise InvalidInputError("Missing required field: name")

    _validate_task_definitions(json_safe(data.get("task_definitions")))

    trigger_type = json_safe(data.get("trigger_type") or TriggerType.MANUAL)
    if trigger_type not in {t.value for t in TriggerType}:
        raise InvalidInputError("trigger_type must be one of: manual, automatic")

    lead_days = data.get("trigger_lead_days", 0)
    if lead_days is not None and (not _is_int(lead_days) or lead_days < 0):
        raise InvalidInputError("trigger_lead_days must be a non-negative integer")

    if trigger_type == TriggerType.AUTOMATIC.value:
        if not data.get("trigger_schedule"):
            raise InvalidInputError("trigger_schedule is required when trigger_type is automatic")
        validate_cron(data["trigger_schedule"])


def create_template(repository: Repository, data: dict[str, Any]) -> Template:
    validate_template(data)
    return repository.create_template(data)


def update_template(repository: Repository, template_id: str, changes: dict[str, Any]) -> Template:
    """Apply a partial update, validating the template as it would be stored."""
    existing = repository.get_template(template_id).to_record()
    validate_template({**existing, **json_safe(changes)})
    return repository.update_template(template_id, changes)


def instantiate_definition(
    template: Template, definition: TaskDefinition, bundle_id: str, anchor_date: date
) -> dict[str, Any]:
    """Build the task fields produced by one task definition."""
    data: dict[str, Any] = {
        "description": definition.description,
        "date": add_days(anchor_date, definition.offset_days),
        "status": TaskStatus.TODO,
        "source": TaskSource.TEMPLATE,
        "bundle_id": bundle_id,
        "template_task_ref": definition.ref_id,
        "requires_file": definition.requires_file,
        "is_milestone": definition.is_milestone,
        "tags": list(template.tags),
    }

    # Explicit per-task assignee wins over the template default
    assignee_id = definition.assignee_id or template.default_assignee_id
    if assignee_id:
        data["assignee_id"] = assignee_id
    if definition.instructions_url:
        data["instructions_url"] = definition.instructions_url
    if definition.required_link_name:
        data["required_link_name"] = definition.required_link_name
    if definition.stage_on_complete:
        data["stage_on_complete"] = definition.stage_on_complete
    return data


def inherit_bundle_fields(
    template: Template,
    emoji: str | None = None,
    tags: list[str] | None = None,
    references: list[Reference] | list[dict] | None = None,
    bundle_links: list[BundleLink] | list[dict] | None = None,
) -> dict[str, Any]:
    """Resolve bundle fields from caller values, falling back to the template.

    A caller value replaces the template value outright; lists are never merged.
    """
    return {
        "emoji": emoji if emoji is not None else template.emoji,
        "tags": tags if tags is not None else list(template.tags),
        "references": references if references is not None else list(template.references),
        "bundle_links": (
            bundle_links
            if bundle_links is not None
            else [BundleLink(name=d.name, url="") for d in template.bundle_link_definitions]
        ),
    }


@dataclass
class BundleCreation:
    """A new bundle with the tasks its template produced."""

    bundle: Bundle
    tasks: list[Task] = field(default_factory=list)


class TemplateExpander:
    """Turns templates into bundles and dated task instances."""

    def __init__(self, repository: Repository) -> None:
        self._repo = repository

    def expand(self, template_id: str, bundle_id: str, anchor_date: date | str) -> list[Task]:
        """Create one task per task definition of a template.

        Definitions that already have a task in the bundle are not created
        again, so a failed expansion can be retried as a whole.

        Args:
            template_id: Template to expand.
            bundle_id: Bundle the tasks belong to.
            anchor_date: Reference date for every offset.

        Returns:
            One task per task definition, in definition order.

        Raises:
            NotFoundError: If the template or bundle does not exist.
            InvalidInputError: If the template has no task definitions.
            ExpansionError: If a task write fails partway through.
        """
        anchor = parse_date(anchor_date, "anchor_date")
        template = self._repo.get_template(template_id)
        if not template.task_definitions:
            raise InvalidInputError(f"Template {template_id} has no task definitions")
        self._repo.get_bundle(bundle_id)

        existing = {
            task.template_task_ref: task
            for task in self._repo.list_tasks_by_bundle(bundle_id)
            if task.source == TaskSource.TEMPLATE and task.template_task_ref
        }

        log = logger.bind(template_id=template_id, bundle_id=bundle_id, anchor_date=anchor.isoformat())
        tasks: list[Task] = []
        created: list[Task] = []

        for definition in template.task_definitions:
            if definition.ref_id in existing:
                tasks.append(existing[definition.ref_id])
                continue

            data = instantiate_definition(template, definition, bundle_id, anchor)
            try:
                task = self._repo.create_task(data)
            except Exception as e:
                log.error(
                    "template_expansion_failed",
                    ref_id=definition.ref_id,
                    created=len(created),
                    error=str(e),
                )
                raise ExpansionError(bundle_id, definition.ref_id, created, e) from e

            created.append(task)
            tasks.append(task)

        log.info("template_expanded", created=len(created), existing=len(tasks) - len(created))
        return tasks

    def create_bundle(
        self,
        title: str,
        anchor_date: date | str,
        template_id: str | None = None,
        *,
        description: str | None = None,
        stage: BundleStage | str | None = None,
        status: BundleStatus | str | None = None,
        emoji: str | None = None,
        tags: list[str] | None = None,
        references: list[Reference] | list[dict] | None = None,
        bundle_links: list[BundleLink] | list[dict] | None = None,
    ) -> BundleCreation:
        """Create a bundle, inheriting from and expanding a template when given.

        Raises:
            InvalidInputError: On a bad title, date, stage or status.
            NotFoundError: If ``template_id`` does not exist.
        """
        if not title or not isinstance(title, str) or not title.strip():
            raise InvalidInputError("Missing required field: title")
        anchor = parse_date(anchor_date, "anchor_date")
        try:
            stage = BundleStage(stage or BundleStage.PREPARATION)
            status = BundleStatus(status or BundleStatus.ACTIVE)
        except ValueError as e:
            raise InvalidInputError(str(e)) from e

        data: dict[str, Any] = {
            "title": title,
            "anchor_date": anchor,
            "stage": stage,
            "status": status,
        }
        if description is not None:
            data["description"] = description

        template: Template | None = None
        if template_id:
            template = self._repo.get_template(template_id)
            if not template.task_definitions:
                raise InvalidInputError(f"Template {template_id} has no task definitions")
            data["template_id"] = template.id
            data.update(inherit_bundle_fields(template, emoji, tags, references, bundle_links))
        else:
            data.update(
                {
                    "emoji": emoji,
                    "tags": tags or [],
                    "references": references or [],
                    "bundle_links": bundle_links or [],
                }
            )

        bundle = self._repo.create_bundle(data)
        if template is None:
            return BundleCreation(bundle=bundle)

        tasks = self.expand(template.id, bundle.id, anchor)
        return BundleCreation(bundle=bundle, tasks=tasks)
