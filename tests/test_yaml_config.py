"""Tests for bundle_scheduler.yaml_config."""

from pathlib import Path

from bundle_scheduler.repository import Repository
from bundle_scheduler.storage import InMemoryStore, Kind
from bundle_scheduler.yaml_config import YamlConfig

CONFIG = """
templates:
  - name: Newsletter
    trigger_type: automatic
    trigger_schedule: "0 9 * * 1"
    trigger_lead_days: 10
    task_definitions:
      - {ref_id: draft, description: Write draft, offset_days: -7}
      - {ref_id: send, description: Send, offset_days: 0, is_milestone: true, stage_on_complete: done}
  - name: Broken
    task_definitions: []
  - name: Newsletter
    task_definitions:
      - {ref_id: other, description: Other, offset_days: 0}
  - just a string
recurring:
  - description: Review inbox
    schedule: "0 9 * * 1,2,3,4,5"
  - description: Pay rent
    schedule: monthly
    day_of_month: 1
  - description: Water plants
    schedule: weekly
    day_of_week: 4
  - description: Broken weekly
    schedule: weekly
  - schedule: daily
"""


def _write_config(tmp_path: Path, content: str = CONFIG) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(content)
    return str(path)


class TestYamlConfig:
    """Tests for YamlConfig."""

    def test_missing_file(self, tmp_path):
        config = YamlConfig(str(tmp_path / "missing.yaml"))
        assert config.templates == []
        assert config.rules == []

    def test_invalid_yaml(self, tmp_path):
        config = YamlConfig(_write_config(tmp_path, "templates: [unclosed"))
        assert config.templates == []

    def test_not_a_mapping(self, tmp_path):
        config = YamlConfig(_write_config(tmp_path, "- a\n- b\n"))
        assert config.templates == []
        assert config.rules == []

    def test_invalid_templates_skipped(self, tmp_path):
        config = YamlConfig(_write_config(tmp_path))
        assert [t["name"] for t in config.templates] == ["Newsletter"]
        assert len(config.templates[0]["task_definitions"]) == 2

    def test_rules_normalized(self, tmp_path):
        config = YamlConfig(_write_config(tmp_path))
        schedules = {r["description"]: r["schedule"] for r in config.rules}
        assert schedules == {
            "Review inbox": "0 9 * * 1,2,3,4,5",
            "Pay rent": "0 0 1 * *",
            "Water plants": "0 0 * * 4",
        }

    def test_seed_is_idempotent(self, tmp_path):
        config = YamlConfig(_write_config(tmp_path))
        repo = Repository(InMemoryStore())

        first = config.seed(repo)
        second = config.seed(repo)

        assert first.templates_created == ["Newsletter"]
        assert first.rules_created == ["Review inbox", "Pay rent", "Water plants"]
        assert first.existing == 0
        assert second.templates_created == []
        assert second.rules_created == []
        assert second.existing == 4
        assert len(repo.list_templates()) == 1
        assert len(repo.list_rules()) == 3

    def test_seed_tolerates_malformed_stored_records(self, tmp_path):
        config = YamlConfig(_write_config(tmp_path))
        store = InMemoryStore()
        store.create(Kind.TEMPLATE, {"trigger_type": "manual"})
        store.create(Kind.RECURRING_RULE, {"description": "Pay rent"})

        result = config.seed(Repository(store))

        assert result.templates_created == ["Newsletter"]
        assert result.rules_created == ["Review inbox", "Water plants"]
        assert result.existing == 1
