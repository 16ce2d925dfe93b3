"""Periodic creation of bundles from automatically triggered templates."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

import structlog

from bundle_scheduler.dates import add_days, format_anchor_date, today_utc
from bundle_scheduler.models import Bundle, Template
from bundle_scheduler.repository import Repository
from bundle_scheduler.schedule import next_occurrence
from bundle_scheduler.templates import TemplateExpander

logger = structlog.get_logger()


@dataclass
class TriggerResult:
    """Outcome of one automatic trigger run."""

    created: list[Bundle] = field(default_factory=list)
    skipped: int = 0
    failed_template_ids: list[str] = field(default_factory=list)


class AutomaticTriggerRunner:
    """Creates one bundle per automatic template and upcoming occurrence.

    A template fires once ``today`` enters its lead window: the
    ``trigger_lead_days`` days before the next date its schedule matches.
    The bundle is anchored on that date and created at most once.
    """

    def __init__(
        self,
        repository: Repository,
        expander: TemplateExpander,
        search_days: int = 1464,
    ) -> None:
        self._repo = repository
        self._expander = expander
        self._search_days = search_days

    def run_once(self, today: date | None = None) -> TriggerResult:
        """Evaluate every automatic template for ``today`` (UTC by default)."""
        today = today or today_utc()
        result = TriggerResult()

        records = self._repo.list_template_records(automatic_only=True)
        logger.info("trigger_run_started", today=today.isoformat(), templates=len(records))

        for record in records:
            log = logger.bind(template_id=record.get("id"), template=record.get("name"))
            try:
                self._evaluate(Template.from_record(record), today, result)
            except Exception as e:
                log.error("trigger_template_failed", error=str(e))
                result.failed_template_ids.append(record.get("id"))

        logger.info(
            "trigger_run_finished",
            created=len(result.created),
            skipped=result.skipped,
            failed=len(result.failed_template_ids),
        )
        return result

    def _evaluate(self, template: Template, today: date, result: TriggerResult) -> None:
        log = logger.bind(template_id=template.id, template=template.name)
        if not template.trigger_schedule:
            log.warning("trigger_schedule_missing")
            return

        occurrence = next_occurrence(template.trigger_schedule, today, self._search_days)
        if occurrence is None:
            log.warning("no_upcoming_occurrence", schedule=template.trigger_schedule)
            return

        lead_start = add_days(occurrence, -template.trigger_lead_days)
        if today < lead_start:
            log.debug("outside_lead_window", occurrence=occurrence.isoformat(), lead_start=lead_start.isoformat())
            return

        if self._repo.find_bundle(template.id, occurrence) is not None:
            log.info("bundle_already_exists", anchor_date=occurrence.isoformat())
            result.skipped += 1
            return

        label = format_anchor_date(occurrence)
        creation = self._expander.create_bundle(
            f"{template.name} - {label}",
            occurrence,
            template.id,
        )

        notification = {
            "message": f"{template.name} bundle auto-created for {label}",
            "bundle_id": creation.bundle.id,
            "template_id": template.id,
        }
        if template.default_assignee_id:
            notification["user_id"] = template.default_assignee_id
        self._repo.create_notification(notification)

        log.info(
            "bundle_auto_created",
            bundle_id=creation.bundle.id,
            anchor_date=occurrence.isoformat(),
            tasks=len(creation.tasks),
        )
        result.created.append(creation.bundle)
