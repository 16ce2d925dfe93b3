"""Bundle Scheduler - template and recurring task engine.

Usage:
    python main.py cycle
    python main.py recurring 2026-05-01 2026-05-31
    # or via entry point:
    bundle-scheduler cycle
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from bundle_scheduler.config import Settings
from bundle_scheduler.dates import parse_date
from bundle_scheduler.errors import EngineError
from bundle_scheduler.scheduler import Scheduler, create_scheduler
from bundle_scheduler.yaml_config import YamlConfig


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _today(args: argparse.Namespace):
    return parse_date(args.today, "today") if args.today else None


def _cmd_cycle(scheduler: Scheduler, args: argparse.Namespace, settings: Settings) -> None:
    result = scheduler.run_cycle(_today(args))
    _print_json(
        {
            "bundles_created": [b.id for b in result.triggers.created],
            "bundles_skipped": result.triggers.skipped,
            "tasks_created": [t.id for t in result.recurring.created],
            "tasks_skipped": result.recurring.skipped_count,
        }
    )


def _cmd_triggers(scheduler: Scheduler, args: argparse.Namespace, settings: Settings) -> None:
    result = scheduler.triggers.run_once(_today(args))
    print(f"Created: {len(result.created)} bundles")
    print(f"Skipped: {result.skipped} (duplicates)")
    for bundle in result.created:
        print(f"  {bundle.id}  {bundle.title}")


def _cmd_recurring(scheduler: Scheduler, args: argparse.Namespace, settings: Settings) -> None:
    result = scheduler.recurring.generate(args.start_date, args.end_date)
    _print_json(
        {
            "generated": [t.to_record() for t in result.created],
            "skipped": result.skipped_count,
            "failed_rules": result.failed_rule_ids,
        }
    )


def _cmd_expand(scheduler: Scheduler, args: argparse.Namespace, settings: Settings) -> None:
    tasks = scheduler.expander.expand(args.template_id, args.bundle_id, args.anchor_date)
    _print_json({"tasks": [t.to_record() for t in tasks]})


def _cmd_create_bundle(scheduler: Scheduler, args: argparse.Namespace, settings: Settings) -> None:
    creation = scheduler.expander.create_bundle(args.title, args.anchor_date, args.template)
    _print_json(
        {
            "bundle": creation.bundle.to_record(),
            "tasks": [t.to_record() for t in creation.tasks],
        }
    )


def _cmd_complete(scheduler: Scheduler, args: argparse.Namespace, settings: Settings) -> None:
    task = scheduler.tasks.complete_task(args.task_id, link=args.link)
    _print_json(task.to_record())


def _cmd_seed(scheduler: Scheduler, args: argparse.Namespace, settings: Settings) -> None:
    config = YamlConfig(args.file or settings.seed_file)
    result = config.seed(scheduler.repository)
    print(f"Templates created: {len(result.templates_created)}")
    print(f"Recurring rules created: {len(result.rules_created)}")
    print(f"Already present: {result.existing}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bundle-scheduler", description=__doc__.splitlines()[0])
    commands = parser.add_subparsers(dest="command", required=True)

    cycle = commands.add_parser("cycle", help="run automatic triggers and recurring generation")
    cycle.add_argument("--today", help="override today's date (YYYY-MM-DD)")
    cycle.set_defaults(handler=_cmd_cycle)

    triggers = commands.add_parser("triggers", help="run automatic template triggers once")
    triggers.add_argument("--today", help="override today's date (YYYY-MM-DD)")
    triggers.set_defaults(handler=_cmd_triggers)

    recurring = commands.add_parser("recurring", help="generate recurring tasks for a date range")
    recurring.add_argument("start_date")
    recurring.add_argument("end_date")
    recurring.set_defaults(handler=_cmd_recurring)

    expand = commands.add_parser("expand", help="expand a template into an existing bundle")
    expand.add_argument("template_id")
    expand.add_argument("bundle_id")
    expand.add_argument("anchor_date")
    expand.set_defaults(handler=_cmd_expand)

    create_bundle = commands.add_parser("create-bundle", help="create a bundle, optionally from a template")
    create_bundle.add_argument("title")
    create_bundle.add_argument("anchor_date")
    create_bundle.add_argument("--template", help="template id to inherit from and expand")
    create_bundle.set_defaults(handler=_cmd_create_bundle)

    complete = commands.add_parser("complete", help="mark a task done")
    complete.add_argument("task_id")
    complete.add_argument("--link", help="value for the task's required link")
    complete.set_defaults(handler=_cmd_complete)

    seed = commands.add_parser("seed", help="load templates and recurring rules from YAML")
    seed.add_argument("--file", help="YAML file (defaults to SEED_FILE)")
    seed.set_defaults(handler=_cmd_seed)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for bundle-scheduler."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    scheduler = create_scheduler(settings)

    try:
        args.handler(scheduler, args, settings)
    except EngineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
