"""One-shot periodic cycle for bundle-scheduler.

There is no internal timer: an external scheduler (cron, a systemd timer)
invokes :meth:`Scheduler.run_cycle`, typically once per day. Invocations
should not overlap, since duplicate checks are read-then-write.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import date

import structlog

from bundle_scheduler.config import Settings
from bundle_scheduler.dates import add_days, today_utc
from bundle_scheduler.errors import EngineError
from bundle_scheduler.recurring import GenerationResult, RecurringExpander
from bundle_scheduler.repository import Repository
from bundle_scheduler.sql_store import SqlStore
from bundle_scheduler.storage import Store
from bundle_scheduler.templates import TemplateExpander
from bundle_scheduler.transitions import TaskUpdater
from bundle_scheduler.triggers import AutomaticTriggerRunner, TriggerResult

logger = structlog.get_logger()


@dataclass
class CycleResult:
    """Combined outcome of one periodic cycle."""

    triggers: TriggerResult = field(default_factory=TriggerResult)
    recurring: GenerationResult = field(default_factory=GenerationResult)


class Scheduler:
    """Wires the engine components around one store."""

    def __init__(self, settings: Settings, store: Store) -> None:
        self._settings = settings
        self.repository = Repository(store)
        self.expander = TemplateExpander(self.repository)
        self.recurring = RecurringExpander(
            self.repository, max_range_days=settings.recurring_max_range_days
        )
        self.triggers = AutomaticTriggerRunner(
            self.repository, self.expander, search_days=settings.trigger_search_days
        )
        self.tasks = TaskUpdater(self.repository)

    def run_cycle(self, today: date | None = None) -> CycleResult:
        """Run automatic triggers, then generate recurring tasks ahead of ``today``."""
        today = today or today_utc()
        logger.info("cycle_started", today=today.isoformat())

        result = CycleResult()
        result.triggers = self.triggers.run_once(today)

        window_end = add_days(today, max(self._settings.recurring_window_days, 1) - 1)
        try:
            result.recurring = self.recurring.generate(today, window_end)
        except EngineError as e:
            logger.error("recurring_generation_rejected", error=str(e))

        logger.info(
            "cycle_finished",
            bundles_created=len(result.triggers.created),
            bundles_skipped=result.triggers.skipped,
            tasks_created=len(result.recurring.created),
            tasks_skipped=result.recurring.skipped_count,
        )
        return result


def configure_logging(log_level: str) -> None:
    """Configure structlog console output on stderr, keeping stdout for command results."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog.stdlib.NAME_TO_LEVEL.get(log_level.lower(), 20)
        ),
    )


def create_scheduler(settings: Settings | None = None) -> Scheduler:
    """Create a scheduler backed by the configured SQL database."""
    settings = settings or Settings()
    configure_logging(settings.log_level)

    store = SqlStore(settings.database_url)
    store.setup()
    return Scheduler(settings, store)
