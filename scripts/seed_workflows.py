#!/usr/bin/env python3
"""
Seed approval workflows from a workflow set into the database.

Creates the tables if needed, then creates every workflow of the set
whose name is not in the database yet.  Existing workflows are left
untouched, so the script can be re-run safely.

Usage:
  python3 scripts/seed_workflows.py [--set default] [--db-url URL] [--dry-run]

The database URL defaults to $DATABASE_URL, then to a local SQLite file.
"""

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DEFAULT_DB_URL = os.environ.get("DATABASE_URL", "sqlite:///procurement.db")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Seed approval workflows from a workflow set")
    p.add_argument(
        "--set",
        dest="set_name",
        default=None,
        help="Workflow set name under procurement_config/sets (default: 'default')",
    )
    p.add_argument(
        "--config-dir",
        default=None,
        help="Override the workflow sets directory",
    )
    p.add_argument(
        "--db-url",
        default=DEFAULT_DB_URL,
        help="Database URL (default: $DATABASE_URL or sqlite:///procurement.db)",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Load and validate the set without touching the database",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from procurement_config import build_definitions, get_workflow_set
    from procurement_kernel.db.engine import (
        create_tables,
        init_engine_from_url,
        session_scope,
    )
    from procurement_kernel.logging_config import configure_logging
    from procurement_kernel.services.workflow_definition_service import (
        WorkflowDefinitionService,
    )

    configure_logging()

    config_dir = Path(args.config_dir) if args.config_dir else None
    try:
        workflow_set = get_workflow_set(args.set_name, config_dir=config_dir)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    definitions = build_definitions(workflow_set)
    print(f"Workflow set: {workflow_set.set_id} v{workflow_set.version}")
    print(f"  checksum:  {workflow_set.checksum[:16]}...")
    for definition in definitions:
        scope = definition.scope_id or "default"
        print(f"  {definition.name} ({definition.entity_type.value}, scope {scope})")
        for step in definition.steps:
            roles = ", ".join(sorted(step.allowed_approver_roles))
            print(f"    {step.step_order}. {step.name} [{roles}] x{step.min_approvals}")

    if args.dry_run:
        print("Dry run; nothing written.")
        return 0

    init_engine_from_url(args.db_url)
    create_tables()

    with session_scope() as session:
        created = WorkflowDefinitionService(session).seed_definitions(definitions)

    skipped = len(definitions) - len(created)
    print(f"Created {len(created)} workflow(s), skipped {skipped} already present.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
