"""
procurement_config -- single public entrypoint for approval workflow configuration.

Responsibility:
    Provides the way to obtain a workflow set at runtime through
    ``get_workflow_set()``.  Sets live under ``sets/<set_name>/workflows.yaml``;
    ``bridges`` turns a loaded set into kernel domain objects.

Architecture position:
    Configuration -- YAML-driven workflow definitions, load-time validation.
    Sits above ``procurement_kernel`` and below ``procurement_services``
    and ``scripts/``.  The kernel MUST NEVER import from
    ``procurement_config``.

Invariants enforced:
    - Load-time validation: a set with validation errors is never returned.
    - Deterministic checksum: the same YAML always produces the same
      ``WorkflowSetDef.checksum``.

Failure modes:
    - ``FileNotFoundError`` -- no such workflow set.
    - ``ValueError`` -- schema or structural validation failures.
"""

from __future__ import annotations

import logging
from pathlib import Path

from procurement_config.bridges import build_definitions, build_labels
from procurement_config.loader import load_workflow_set
from procurement_config.schema import WorkflowSetDef
from procurement_config.validator import ConfigValidationResult, validate_workflow_set

_logger = logging.getLogger("procurement_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
DEFAULT_SET_NAME = "default"
WORKFLOWS_FILENAME = "workflows.yaml"


def get_workflow_set(
    set_name: str | None = None,
    config_dir: Path | None = None,
) -> WorkflowSetDef:
    """Load and validate a named workflow set.

    Args:
        set_name: Directory name under the sets directory. Defaults to
            ``default``.
        config_dir: Override path to the sets directory. Defaults to
            procurement_config/sets/.

    Raises:
        FileNotFoundError: If the set does not exist.
        ValueError: If validation fails.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    name = set_name or DEFAULT_SET_NAME
    path = sets_dir / name / WORKFLOWS_FILENAME
    if not path.is_file():
        raise FileNotFoundError(f"No workflow set '{name}' at {path}")

    workflow_set = load_workflow_set(path)

    validation = validate_workflow_set(workflow_set)
    if not validation.is_valid:
        raise ValueError(
            "Workflow set validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("workflow_set_warning", extra={"warning": warning})

    _logger.info(
        "PROCUREMENT_CONFIG_TRACE",
        extra={
            "trace_type": "PROCUREMENT_CONFIG_TRACE",
            "set_id": workflow_set.set_id,
            "version": workflow_set.version,
            "checksum": workflow_set.checksum,
            "workflow_count": len(workflow_set.workflows),
        },
    )
    return workflow_set


def list_workflow_sets(config_dir: Path | None = None) -> list[str]:
    """Names of the sets available under the sets directory."""
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    if not sets_dir.is_dir():
        return []
    return sorted(
        p.name for p in sets_dir.iterdir()
        if p.is_dir() and (p / WORKFLOWS_FILENAME).is_file()
    )


__all__ = [
    "ConfigValidationResult",
    "WorkflowSetDef",
    "build_definitions",
    "build_labels",
    "get_workflow_set",
    "list_workflow_sets",
    "validate_workflow_set",
]
