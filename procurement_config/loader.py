"""
Configuration Loader (``procurement_config.loader``).

Responsibility
--------------
Loads a workflow set YAML file and parses it into typed
``procurement_config.schema`` dataclass instances.  Runtime callers use
``procurement_config.get_workflow_set()`` instead of calling this
directly.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on kernel,
engines, or services.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from procurement_config.schema import (
    ApprovalLabelsDef,
    StepDef,
    WorkflowDef,
    WorkflowSetDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _as_tuple(value: Any, field_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list):
        return tuple(str(v) for v in value)
    raise ValueError(f"'{field_name}' must be a string or a list, got {value!r}")


def parse_step(data: dict[str, Any]) -> StepDef:
    """Parse a StepDef from a dict."""
    min_approvals = data.get("min_approvals", 1)
    if isinstance(min_approvals, bool) or not isinstance(min_approvals, int):
        raise ValueError(
            f"Step '{data.get('name')}' min_approvals must be an integer, "
            f"got {min_approvals!r}"
        )
    return StepDef(
        name=data["name"],
        primary_role=data.get("primary_role"),
        alternate_roles=_as_tuple(data.get("alternate_roles"), "alternate_roles"),
        min_approvals=min_approvals,
        description=data.get("description"),
    )


def parse_workflow(data: dict[str, Any]) -> WorkflowDef:
    """Parse a WorkflowDef from a dict; steps keep their list order."""
    scope_id = data.get("scope_id")
    return WorkflowDef(
        name=data["name"],
        entity_type=data["entity_type"],
        steps=tuple(parse_step(s) for s in data.get("steps") or []),
        display_name=data.get("display_name", ""),
        scope_id=str(scope_id) if scope_id is not None else None,
        active=bool(data.get("active", True)),
    )


def parse_labels(data: dict[str, Any] | None) -> ApprovalLabelsDef:
    """Parse the labels block; missing keys keep their defaults."""
    if not data:
        return ApprovalLabelsDef()
    defaults = ApprovalLabelsDef()
    return ApprovalLabelsDef(
        approved_label=data.get("approved_label", defaults.approved_label),
        rejected_label=data.get("rejected_label", defaults.rejected_label),
        pending_suffix=data.get("pending_suffix", defaults.pending_suffix),
    )


def parse_workflow_set(data: dict[str, Any]) -> WorkflowSetDef:
    """Parse a WorkflowSetDef from the root dict of a workflows file."""
    return WorkflowSetDef(
        set_id=data["set_id"],
        version=int(data.get("version", 1)),
        description=data.get("description", ""),
        labels=parse_labels(data.get("labels")),
        workflows=tuple(parse_workflow(w) for w in data.get("workflows") or []),
        checksum=compute_checksum(data),
    )


def load_workflow_set(path: Path) -> WorkflowSetDef:
    """Load and parse a workflows YAML file."""
    return parse_workflow_set(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
