"""Tests for bundle_scheduler.scheduler."""

from datetime import date
from unittest.mock import MagicMock

from bundle_scheduler.config import Settings
from bundle_scheduler.errors import InvalidInputError
from bundle_scheduler.recurring import GenerationResult, create_rule
from bundle_scheduler.scheduler import Scheduler
from bundle_scheduler.storage import InMemoryStore, Kind
from bundle_scheduler.templates import create_template
from bundle_scheduler.triggers import TriggerResult

FRIDAY = date(2026, 10, 16)


def _make_settings(**overrides) -> Settings:
    return Settings(database_url="sqlite+pysqlite:///:memory:", **overrides)


def _make_scheduler(**overrides) -> tuple[Scheduler, InMemoryStore]:
    store = InMemoryStore()
    return Scheduler(_make_settings(**overrides), store), store


class TestScheduler:
    """Tests for Scheduler."""

    def test_cycle_with_nothing_configured(self):
        scheduler, store = _make_scheduler()

        result = scheduler.run_cycle(FRIDAY)

        assert result.triggers.created == []
        assert result.recurring.created == []
        assert store.scan(Kind.TASK) == []

    def test_cycle_runs_triggers_and_recurring(self):
        scheduler, store = _make_scheduler(recurring_window_days=7)
        create_template(
            scheduler.repository,
            {
                "name": "Newsletter",
                "trigger_type": "automatic",
                "trigger_schedule": "0 9 * * 1",
                "trigger_lead_days": 3,
                "task_definitions": [{"ref_id": "send", "description": "Send", "offset_days": 0}],
            },
        )
        create_rule(scheduler.repository, {"description": "Daily check", "schedule": "daily"})

        result = scheduler.run_cycle(FRIDAY)

        assert [b.anchor_date for b in result.triggers.created] == [date(2026, 10, 19)]
        recurring_dates = [t.date for t in result.recurring.created]
        assert recurring_dates[0] == FRIDAY
        assert recurring_dates[-1] == date(2026, 10, 22)
        assert len(recurring_dates) == 7

    def test_cycle_is_idempotent(self):
        scheduler, store = _make_scheduler()
        create_rule(scheduler.repository, {"description": "Daily check", "schedule": "0 8 * * *"})

        first = scheduler.run_cycle(FRIDAY)
        second = scheduler.run_cycle(FRIDAY)

        assert len(first.recurring.created) == 14
        assert second.recurring.created == []
        assert second.recurring.skipped_count == 14
        assert len(store.scan(Kind.TASK)) == 14

    def test_cycle_calls_components_in_order(self):
        scheduler, _ = _make_scheduler(recurring_window_days=1)
        calls = MagicMock()
        scheduler.triggers = calls.triggers
        scheduler.recurring = calls.recurring
        calls.triggers.run_once.return_value = TriggerResult()
        calls.recurring.generate.return_value = GenerationResult()

        scheduler.run_cycle(FRIDAY)

        assert [c[0] for c in calls.mock_calls] == ["triggers.run_once", "recurring.generate"]
        calls.triggers.run_once.assert_called_once_with(FRIDAY)
        calls.recurring.generate.assert_called_once_with(FRIDAY, FRIDAY)

    def test_rejected_recurring_range_keeps_trigger_result(self):
        scheduler, _ = _make_scheduler()
        scheduler.recurring = MagicMock()
        scheduler.recurring.generate.side_effect = InvalidInputError("range too long")

        result = scheduler.run_cycle(FRIDAY)

        assert isinstance(result.triggers, TriggerResult)
        assert result.recurring.created == []

    def test_malformed_template_does_not_stop_recurring(self):
        scheduler, store = _make_scheduler()
        broken = store.create(
            Kind.TEMPLATE, {"trigger_type": "automatic", "trigger_schedule": "0 0 * * *"}
        )
        create_rule(scheduler.repository, {"description": "Daily check", "schedule": "daily"})

        result = scheduler.run_cycle(date(2026, 10, 19))

        assert result.triggers.failed_template_ids == [broken["id"]]
        assert len(result.recurring.created) == 14
