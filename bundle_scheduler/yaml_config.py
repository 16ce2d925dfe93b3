"""YAML seed loader for templates and recurring rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

from bundle_scheduler.errors import InvalidInputError
from bundle_scheduler.recurring import create_rule
from bundle_scheduler.repository import Repository
from bundle_scheduler.schedule import normalize_schedule
from bundle_scheduler.templates import create_template, validate_template

logger = structlog.get_logger()


@dataclass
class SeedResult:
    """Names of the entries created or already present during seeding."""

    templates_created: list[str] = field(default_factory=list)
    rules_created: list[str] = field(default_factory=list)
    existing: int = 0


class YamlConfig:
    """YAML loader for template and recurring rule definitions.

    The file holds two optional top-level lists::

        templates:
          - name: Newsletter
            task_definitions:
              - {ref_id: send, description: Send newsletter, offset_days: 0}
        recurring:
          - description: Water the plants
            schedule: "0 9 * * 1,4"
    """

    def __init__(self, config_path: str = "config.yaml") -> None:
        """Initialize the YAML config loader.

        Args:
            config_path: Path to the YAML configuration file.
        """
        self._templates: list[dict[str, Any]] = []
        self._rules: list[dict[str, Any]] = []
        self._load(config_path)

    def _load(self, config_path: str) -> None:
        """Load and validate the YAML configuration file.

        Args:
            config_path: Path to the YAML configuration file.
        """
        config_file = Path(config_path)

        if not config_file.exists():
            logger.info("config_file_not_found", path=config_path)
            return

        try:
            with config_file.open("r") as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error("yaml_parse_error", path=config_path, error=str(e))
            return

        if not isinstance(config_data, dict):
            logger.warning("config_not_mapping", path=config_path)
            return

        self._load_templates(config_data.get("templates") or [])
        self._load_rules(config_data.get("recurring") or [])

        logger.info(
            "config_loaded",
            template_count=len(self._templates),
            rule_count=len(self._rules),
        )

    def _load_templates(self, entries: Any) -> None:
        if not isinstance(entries, list):
            logger.warning("templates_not_list")
            return

        seen_names = set()
        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning("invalid_template_entry", entry=entry)
                continue

            try:
                validate_template(entry)
            except InvalidInputError as e:
                logger.warning("invalid_template", name=entry.get("name"), error=str(e))
                continue

            if entry["name"] in seen_names:
                logger.warning("duplicate_template_name", name=entry["name"])
                continue

            seen_names.add(entry["name"])
            self._templates.append(entry)

    def _load_rules(self, entries: Any) -> None:
        if not isinstance(entries, list):
            logger.warning("recurring_not_list")
            return

        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning("invalid_recurring_entry", entry=entry)
                continue

            description = entry.get("description")
            if not description or not isinstance(description, str) or not description.strip():
                logger.warning("missing_or_empty_description", entry=entry)
                continue

            # Legacy daily/weekly/monthly rules become cron expressions here
            try:
                schedule = normalize_schedule(
                    entry.get("schedule") or "",
                    entry.get("day_of_week"),
                    entry.get("day_of_month"),
                )
            except InvalidInputError as e:
                logger.warning("invalid_schedule", description=description, error=str(e))
                continue

            rule = {k: v for k, v in entry.items() if k not in ("day_of_week", "day_of_month")}
            rule["schedule"] = schedule
            self._rules.append(rule)

    @property
    def templates(self) -> list[dict[str, Any]]:
        """Return all valid template definitions."""
        return list(self._templates)

    @property
    def rules(self) -> list[dict[str, Any]]:
        """Return all valid recurring rule definitions."""
        return list(self._rules)

    def seed(self, repository: Repository) -> SeedResult:
        """Create the templates and rules that are not in the store yet.

        Templates are matched by name and rules by description.
        """
        result = SeedResult()
        existing_templates = {r.get("name") for r in repository.list_template_records()}
        existing_rules = {r.get("description") for r in repository.list_rule_records()}

        for entry in self._templates:
            if entry["name"] in existing_templates:
                result.existing += 1
                continue
            create_template(repository, entry)
            result.templates_created.append(entry["name"])

        for entry in self._rules:
            if entry["description"] in existing_rules:
                result.existing += 1
                continue
            create_rule(repository, entry)
            result.rules_created.append(entry["description"])

        logger.info(
            "seed_complete",
            templates_created=len(result.templates_created),
            rules_created=len(result.rules_created),
            existing=result.existing,
        )
        return result
