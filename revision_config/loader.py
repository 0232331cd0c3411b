"""
Configuration Loader (``revision_config.loader``).

Responsibility
--------------
Loads a revision-engine YAML file and parses it into a typed
``RevisionConfig``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on the kernel domain
types and engine threshold types; nothing in the kernel depends on it.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Bad values  -> ``ValueError``.

Example file::

    order_kind: purchase
    lock_timeout_seconds: 2.5
    cost_threshold:
      percent: "0.05"
      absolute: "1000"
      mode: OR
    approvers:
      - {id: approver-1, name: Michael Chen, role: Purchasing Manager, level: 1}
      - {id: approver-2, name: Jennifer Martinez, role: Finance Director, level: 2}
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from revision_config.schema import RevisionConfig
from revision_kernel.logging_config import get_logger

logger = get_logger("config.loader")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load and parse a YAML file.

    Raises:
        FileNotFoundError: if ``path`` does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level, got {type(data).__name__}")
    return data


def load_revision_config(path: Path | str) -> RevisionConfig:
    """Load a ``RevisionConfig`` from a YAML file."""
    path = Path(path)
    data = load_yaml_file(path)
    config = RevisionConfig.from_dict(data)
    logger.info(
        "revision_config_loaded",
        extra={
            "path": str(path),
            "checksum": compute_checksum(config.to_dict()),
        },
    )
    return config


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
