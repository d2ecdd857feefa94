"""
Configuration Loader (``payables_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a validated
``PayablesConfig``.  The runtime entry point is
``payables_config.get_active_config()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on the kernel domain
policies only through ``payables_config.schema``.

Invariants enforced
-------------------
* Every failure surfaces as ``ConfigurationError`` naming the source file;
  no silent defaults for malformed sections.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  document for configuration identity and change detection.

Failure modes
-------------
* Missing file  -> ``ConfigurationError`` (reason "file not found").
* Malformed YAML or schema violation  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from payables_config.schema import PayablesConfig
from payables_kernel.exceptions import ConfigurationError
from payables_kernel.logging_config import get_logger

logger = get_logger("config.loader")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_config(path: Path | str) -> PayablesConfig:
    """Load and validate a configuration file."""
    path = Path(path)
    try:
        data = load_yaml_file(path)
    except FileNotFoundError as exc:
        raise ConfigurationError(str(path), "file not found") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(str(path), f"invalid YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")

    checksum = compute_checksum(data)
    try:
        config = PayablesConfig.from_dict(data, checksum=checksum)
    except (ValueError, TypeError, ArithmeticError) as exc:
        raise ConfigurationError(str(path), str(exc)) from exc

    logger.info("payables_config_loaded", extra={
        "path": str(path),
        "config_id": config.config_id,
        "checksum": checksum,
    })
    return config
