"""Recurring rule management and idempotent task generation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

import structlog

from bundle_scheduler.dates import date_range, parse_date
from bundle_scheduler.errors import InvalidInputError
from bundle_scheduler.models import RecurringRule, Task, TaskSource, TaskStatus
from bundle_scheduler.repository import Repository
from bundle_scheduler.schedule import normalize_schedule, rule_matches_date

logger = structlog.get_logger()

DEFAULT_MAX_RANGE_DAYS = 90


@dataclass
class GenerationResult:
    """Outcome of one recurring generation run."""

    created: list[Task] = field(default_factory=list)
    skipped_count: int = 0
    failed_rule_ids: list[str] = field(default_factory=list)


def create_rule(repository: Repository, data: dict[str, Any]) -> RecurringRule:
    """Validate and store a recurring rule.

    Legacy daily/weekly/monthly schedules are converted to cron expressions.

    Raises:
        InvalidInputError: If the description or schedule is invalid.
    """
    description = data.get("description")
    if not description or not isinstance(description, str) or not description.strip():
        raise InvalidInputError("Missing required field: description")
    if not data.get("schedule"):
        raise InvalidInputError("Missing required field: schedule")

    schedule = normalize_schedule(data["schedule"], data.get("day_of_week"), data.get("day_of_month"))
    rule_data = {
        "description": description,
        "schedule": schedule,
        "enabled": bool(data.get("enabled", True)),
    }
    if data.get("assignee_id"):
        rule_data["assignee_id"] = data["assignee_id"]
    if data.get("project_id"):
        rule_data["project_id"] = data["project_id"]
    return repository.create_rule(rule_data)


def update_rule(repository: Repository, rule_id: str, changes: dict[str, Any]) -> RecurringRule:
    """Apply a partial update, normalizing any new schedule."""
    existing = repository.get_rule(rule_id)
    changes = dict(changes)
    if "schedule" in changes:
        changes["schedule"] = normalize_schedule(
            changes["schedule"],
            changes.pop("day_of_week", existing.day_of_week),
            changes.pop("day_of_month", existing.day_of_month),
        )
        changes["day_of_week"] = None
        changes["day_of_month"] = None
    return repository.update_rule(rule_id, changes)


class RecurringExpander:
    """Creates one task per matching (rule, date) pair, never twice."""

    def __init__(self, repository: Repository, max_range_days: int = DEFAULT_MAX_RANGE_DAYS) -> None:
        self._repo = repository
        self._max_range_days = max_range_days

    def generate(
        self,
        start_date: date | str,
        end_date: date | str,
        rules: list[RecurringRule] | None = None,
    ) -> GenerationResult:
        """Generate recurring tasks for an inclusive date range.

        Args:
            start_date: First date of the range.
            end_date: Last date of the range, inclusive.
            rules: Rules to evaluate. Defaults to every enabled rule in the store.

        Returns:
            The created tasks, the number of (rule, date) pairs that already
            had a task, and the ids of rules that failed. A failing rule is
            reported only by its id; tasks it wrote before failing stay in the
            store and are skipped by the next run.

        Raises:
            InvalidInputError: On malformed dates, a reversed range or a range
                longer than the configured bound.
        """
        start = parse_date(start_date, "start_date")
        end = parse_date(end_date, "end_date")
        if end < start:
            raise InvalidInputError("end_date must be greater than or equal to start_date")
        if (end - start).days > self._max_range_days:
            raise InvalidInputError(f"Date range must not exceed {self._max_range_days} days")

        if rules is None:
            entries: list[RecurringRule | dict[str, Any]] = self._repo.list_rule_records(
                enabled_only=True
            )
        else:
            entries = list(rules)

        result = GenerationResult()
        dates = list(date_range(start, end))

        for entry in entries:
            rule_id = entry.id if isinstance(entry, RecurringRule) else entry.get("id")
            log = logger.bind(rule_id=rule_id)
            try:
                rule = entry if isinstance(entry, RecurringRule) else RecurringRule.from_record(entry)
                if not rule.enabled:
                    continue
                # Counted only once the whole rule succeeds
                rule_result = GenerationResult()
                self._generate_for_rule(rule, dates, rule_result)
            except Exception as e:
                log.error("recurring_rule_failed", error=str(e))
                result.failed_rule_ids.append(rule_id)
                continue
            result.created.extend(rule_result.created)
            result.skipped_count += rule_result.skipped_count

        logger.info(
            "recurring_generated",
            start_date=start.isoformat(),
            end_date=end.isoformat(),
            created=len(result.created),
            skipped=result.skipped_count,
            failed=len(result.failed_rule_ids),
        )
        return result

    def _generate_for_rule(self, rule: RecurringRule, dates: list[date], result: GenerationResult) -> None:
        for day in dates:
            if not rule_matches_date(rule, day):
                continue

            if self._repo.recurring_task_exists(rule.id, day):
                result.skipped_count += 1
                continue

            data: dict[str, Any] = {
                "description": rule.description,
                "date": day,
                "status": TaskStatus.TODO,
                "source": TaskSource.RECURRING,
                "recurring_rule_id": rule.id,
            }
            if rule.assignee_id:
                data["assignee_id"] = rule.assignee_id
            if rule.project_id:
                data["project_id"] = rule.project_id

            task = self._repo.create_task(data)
            logger.debug("recurring_task_created", rule_id=rule.id, task_id=task.id, date=day.isoformat())
            result.created.append(task)
