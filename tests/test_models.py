"""Tests for bundle_scheduler.models."""

from datetime import date

from bundle_scheduler.models import (
    BUNDLE_UPDATE_FIELDS,
    TASK_UPDATE_FIELDS,
    Bundle,
    BundleLink,
    BundleStage,
    Task,
    TaskSource,
    TaskStatus,
    Template,
    TriggerType,
)


class TestEnums:
    """Tests for the string enums."""

    def test_stage_values_match_storage(self):
        """Stage values must match exactly what is stored and exchanged."""
        assert [s.value for s in BundleStage] == ["preparation", "announced", "after-event", "done"]

    def test_task_sources(self):
        assert {s.value for s in TaskSource} == {"manual", "template", "recurring", "telegram", "email"}

    def test_str_enum_compares_to_value(self):
        assert TaskStatus.DONE == "done"
        assert TriggerType("automatic") is TriggerType.AUTOMATIC


class TestUpdateAllowLists:
    """Tests for the partial update allow-lists."""

    def test_task_date_is_not_updatable(self):
        assert "date" not in TASK_UPDATE_FIELDS
        assert "source" not in TASK_UPDATE_FIELDS
        assert "bundle_id" not in TASK_UPDATE_FIELDS

    def test_bundle_anchor_is_not_updatable(self):
        assert "anchor_date" not in BUNDLE_UPDATE_FIELDS
        assert "template_id" not in BUNDLE_UPDATE_FIELDS
        assert "stage" in BUNDLE_UPDATE_FIELDS


class TestTask:
    """Tests for Task dataclass."""

    def test_from_minimal_record(self):
        task = Task.from_record({"id": "t-1", "description": "Write draft", "date": "2026-04-15"})
        assert task.date == date(2026, 4, 15)
        assert task.status == TaskStatus.TODO
        assert task.source == TaskSource.MANUAL
        assert task.tags == []
        assert task.stage_on_complete is None

    def test_to_record_is_json_safe(self):
        task = Task(
            id="t-1",
            description="Send",
            date=date(2026, 4, 15),
            source=TaskSource.TEMPLATE,
            stage_on_complete=BundleStage.AFTER_EVENT,
        )
        record = task.to_record()
        assert record["date"] == "2026-04-15"
        assert record["source"] == "template"
        assert record["stage_on_complete"] == "after-event"

    def test_unknown_record_keys_are_ignored(self):
        task = Task.from_record(
            {"id": "t-1", "description": "x", "date": "2026-04-15", "legacy_field": 1}
        )
        assert task.id == "t-1"


class TestTemplate:
    """Tests for Template dataclass."""

    def test_from_record_parses_definitions(self):
        template = Template.from_record(
            {
                "id": "tpl-1",
                "name": "Newsletter",
                "trigger_type": "automatic",
                "trigger_schedule": "0 9 * * 1",
                "task_definitions": [
                    {"ref_id": "send", "description": "Send", "offset_days": 0, "stage_on_complete": "done"},
                ],
                "bundle_link_definitions": [{"name": "Draft"}],
            }
        )
        assert template.trigger_type == TriggerType.AUTOMATIC
        assert template.task_definitions[0].stage_on_complete == BundleStage.DONE
        assert template.bundle_link_definitions[0].name == "Draft"
        assert template.trigger_lead_days == 0


class TestBundle:
    """Tests for Bundle dataclass."""

    def test_nested_links_round_trip(self):
        bundle = Bundle(
            id="b-1",
            title="Newsletter - Apr 15",
            anchor_date=date(2026, 4, 15),
            bundle_links=[BundleLink(name="Draft")],
        )
        restored = Bundle.from_record(bundle.to_record())
        assert restored.bundle_links == [BundleLink(name="Draft", url="")]
        assert restored.stage == BundleStage.PREPARATION
