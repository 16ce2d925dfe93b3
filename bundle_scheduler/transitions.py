"""Task updates, completion gating and milestone stage transitions."""

from __future__ import annotations

from datetime import date
from typing import Any

import structlog

from bundle_scheduler.dates import parse_date
from bundle_scheduler.errors import InvalidInputError, InvalidStateError
from bundle_scheduler.models import Bundle, Task, TaskSource, TaskStatus
from bundle_scheduler.repository import Repository

logger = structlog.get_logger()

# Sources a caller may set when creating a task by hand
MANUAL_SOURCES: frozenset[TaskSource] = frozenset(
    {TaskSource.MANUAL, TaskSource.TELEGRAM, TaskSource.EMAIL}
)

# Optional fields accepted when creating a task by hand
_CREATE_FIELDS: frozenset[str] = frozenset(
    {
        "comment",
        "bundle_id",
        "instructions_url",
        "link",
        "required_link_name",
        "requires_file",
        "assignee_id",
        "project_id",
        "tags",
    }
)


class StageTransitionHandler:
    """Advances a bundle's stage when one of its milestone tasks completes."""

    def __init__(self, repository: Repository) -> None:
        self._repo = repository

    def on_task_completed(self, task: Task) -> Bundle | None:
        """Apply the task's target stage to its bundle. Returns the updated bundle, if any."""
        if not task.stage_on_complete or not task.bundle_id:
            return None
        if task.source != TaskSource.TEMPLATE:
            return None

        # Last writer wins when several milestones complete together
        bundle = self._repo.update_bundle(task.bundle_id, {"stage": task.stage_on_complete})
        logger.info(
            "bundle_stage_changed",
            bundle_id=bundle.id,
            task_id=task.id,
            stage=bundle.stage.value,
        )
        return bundle


class TaskUpdater:
    """Applies task updates and fires stage transitions on completion."""

    def __init__(self, repository: Repository, transitions: StageTransitionHandler | None = None) -> None:
        self._repo = repository
        self._transitions = transitions or StageTransitionHandler(repository)

    def create_task(
        self,
        description: str,
        task_date: date | str,
        source: TaskSource | str = TaskSource.MANUAL,
        **fields: Any,
    ) -> Task:
        """Create a task with an explicit date, as entered by hand or by a webhook.

        Raises:
            InvalidInputError: On a missing description, bad date or source.
        """
        if not description or not isinstance(description, str) or not description.strip():
            raise InvalidInputError("Missing required field: description")
        day = parse_date(task_date, "date")
        try:
            source = TaskSource(source)
        except ValueError as e:
            raise InvalidInputError(f"Invalid task source: {source!r}") from e
        if source not in MANUAL_SOURCES:
            raise InvalidInputError(f"Tasks with source {source.value!r} are created by the engine")

        data = {k: v for k, v in fields.items() if k in _CREATE_FIELDS and v is not None}
        data.update({"description": description, "date": day, "source": source})
        task = self._repo.create_task(data)
        logger.info("task_created", task_id=task.id, source=source.value, date=day.isoformat())
        return task

    def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        """Apply a partial update to a task.

        Moving a task to done is rejected while its required link is empty or
        its required file is missing; a task already done is not re-checked.
        A todo->done edge on a template milestone moves the owning bundle to
        the milestone's stage.

        Raises:
            NotFoundError: If the task does not exist.
            InvalidInputError: If no allowed field is present or a value is invalid.
            InvalidStateError: If the task may not be marked done yet.
        """
        existing = self._repo.get_task(task_id)
        log = logger.bind(task_id=task_id, from_status=existing.status.value)

        if changes.get("status") == TaskStatus.DONE and existing.status != TaskStatus.DONE:
            self._check_completion(existing, changes)

        updated = self._repo.update_task(task_id, changes)

        if updated.status == TaskStatus.DONE and existing.status != TaskStatus.DONE:
            log.info("task_completed")
            self._transitions.on_task_completed(updated)

        return updated

    def complete_task(self, task_id: str, link: str | None = None) -> Task:
        """Mark a task done, optionally filling its required link."""
        changes: dict[str, Any] = {"status": TaskStatus.DONE}
        if link is not None:
            changes["link"] = link
        return self.update_task(task_id, changes)

    def _check_completion(self, existing: Task, changes: dict[str, Any]) -> None:
        required_link_name = changes.get("required_link_name", existing.required_link_name)
        link = changes.get("link", existing.link)
        if required_link_name and not link:
            raise InvalidStateError(
                f"Cannot mark task as done: required link '{required_link_name}' is not filled"
            )

        requires_file = changes.get("requires_file", existing.requires_file)
        if requires_file and not self._repo.list_files(existing.id):
            raise InvalidStateError("Cannot mark task as done: required file has not been uploaded")
