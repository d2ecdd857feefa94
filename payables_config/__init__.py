"""
payables_config -- single public entrypoint for engine configuration.

Responsibility:
    ``get_active_config()`` returns the validated ``PayablesConfig`` the
    services build their engines from.  Without a path it loads the
    bundled ``sets/default.yaml``.

Architecture position:
    Configuration -- sits above ``payables_kernel`` and below
    ``payables_services``.  The kernel and the engines MUST NEVER import
    from ``payables_config``.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PAYABLES_CONFIG_TRACE`` log entry with the config id, version,
    checksum and the approval tier roles.
"""

from __future__ import annotations

import logging
from pathlib import Path

from payables_config.loader import compute_checksum, load_config
from payables_config.schema import PayablesConfig

_logger = logging.getLogger("payables_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "PayablesConfig",
    "compute_checksum",
    "get_active_config",
    "load_config",
]


def get_active_config(path: Path | str | None = None) -> PayablesConfig:
    """The public configuration entrypoint.

    Raises:
        ConfigurationError: if the file is missing or fails validation.
    """
    config = load_config(path or DEFAULT_CONFIG_PATH)

    _logger.info(
        "PAYABLES_CONFIG_TRACE",
        extra={
            "trace_type": "PAYABLES_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "approval_tiers": [t.role for t in config.approval_tiers],
            "discount_anchor": config.discount_anchor.value,
        },
    )
    return config
