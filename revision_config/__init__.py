"""
Revision engine configuration.

Public surface:
    RevisionConfig          -- typed config with purchase/sales presets
    load_revision_config()  -- parse a YAML file into RevisionConfig
    compute_checksum()      -- deterministic identity of a config dict
    build_revision_service() -- wire the lifecycle service from config
"""

from revision_config.bridges import build_revision_service
from revision_config.loader import compute_checksum, load_revision_config
from revision_config.schema import OrderKind, RevisionConfig

__all__ = [
    "OrderKind",
    "RevisionConfig",
    "build_revision_service",
    "compute_checksum",
    "load_revision_config",
]
