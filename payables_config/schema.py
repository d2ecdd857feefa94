"""
Payables Configuration Schema (``payables_config.schema``).

Responsibility
--------------
Defines ``PayablesConfig``: the complete, validated set of policies the
engines run with (vendor analytics, forecast, optimizer, risk, approval
tiers, recommendations) plus the discount anchor and default horizon.
Default values reproduce the documented business rules.

Architecture position
---------------------
**Config layer** -- schema only.  Policy value objects live in
``payables_kernel.domain.policies`` so engines never import this package.

Invariants enforced
-------------------
* All thresholds use ``Decimal`` (never ``float``); ``from_dict`` converts
  YAML scalars through ``str``.
* ``__post_init__`` validates cross-section consistency: approver ids are
  unique, tier thresholds ascend, the horizon is non-negative.

Failure modes
-------------
* ``ValueError`` / ``TypeError`` at construction if a constraint is violated.
* ``ValueError`` from ``from_dict`` on unknown keys.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Self

from payables_kernel.domain.policies import (
    DEFAULT_APPROVAL_TIERS,
    AnalyticsPolicy,
    ApprovalTier,
    DiscountAnchor,
    ForecastPolicy,
    OptimizerPolicy,
    RecommendationPolicy,
    RiskPolicy,
)
from payables_kernel.logging_config import get_logger

logger = get_logger("config.schema")


def _coerce(annotation: str, value: Any) -> Any:
    if value is None:
        return None
    if "Decimal" in annotation and not isinstance(value, Decimal):
        if isinstance(value, bool):
            raise TypeError(f"expected a decimal, got {value!r}")
        return Decimal(str(value))
    if annotation.startswith("tuple") and isinstance(value, list):
        return tuple(value)
    if annotation == "int" and not isinstance(value, int):
        return int(value)
    return value


def build_policy(cls: type, data: dict[str, Any] | None, section: str) -> Any:
    """
    Instantiate a policy dataclass from a plain mapping.

    Unknown keys are rejected; Decimal fields accept strings, ints and
    YAML floats.
    """
    if data is None:
        return cls()
    known = {f.name: f for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ValueError(f"{section}: unknown keys {unknown}")
    kwargs = {
        name: _coerce(str(known[name].type), value)
        for name, value in data.items()
    }
    return cls(**kwargs)


@dataclass(frozen=True)
class PayablesConfig:
    """
    Configuration for the payables decision engine.

    Override sections at instantiation:

        config = PayablesConfig(
            optimizer=OptimizerPolicy(discount_anchor=DiscountAnchor.RECEIVED_DATE),
            default_horizon_days=60,
        )
    """

    config_id: str = "default"
    version: int = 1
    analytics: AnalyticsPolicy = field(default_factory=AnalyticsPolicy)
    forecast: ForecastPolicy = field(default_factory=ForecastPolicy)
    optimizer: OptimizerPolicy = field(default_factory=OptimizerPolicy)
    risk: RiskPolicy = field(default_factory=RiskPolicy)
    approval_tiers: tuple[ApprovalTier, ...] = DEFAULT_APPROVAL_TIERS
    recommendations: RecommendationPolicy = field(default_factory=RecommendationPolicy)
    default_horizon_days: int = 30
    checksum: str = ""

    def __post_init__(self) -> None:
        if not self.config_id or not self.config_id.strip():
            raise ValueError("config_id cannot be empty")
        if self.version < 1:
            raise ValueError("version must be >= 1")
        if self.default_horizon_days < 0:
            raise ValueError("default_horizon_days cannot be negative")

        if not isinstance(self.approval_tiers, tuple):
            object.__setattr__(self, "approval_tiers", tuple(self.approval_tiers))
        approver_ids = [t.approver_id for t in self.approval_tiers]
        if len(approver_ids) != len(set(approver_ids)):
            raise ValueError("approval tier approver_ids must be unique")
        thresholds = [t.amount_above for t in self.approval_tiers]
        if thresholds != sorted(thresholds):
            raise ValueError("approval_tiers must be sorted by amount_above ascending")

        logger.debug(
            "payables_config_initialized",
            extra={
                "config_id": self.config_id,
                "version": self.version,
                "approval_tiers": [t.role for t in self.approval_tiers],
                "discount_anchor": self.discount_anchor.value,
                "default_horizon_days": self.default_horizon_days,
            },
        )

    @property
    def discount_anchor(self) -> DiscountAnchor:
        return self.optimizer.discount_anchor

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("payables_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any], checksum: str = "") -> Self:
        """Create config from a dictionary (e.g., a parsed YAML file).

        A top-level ``discount_anchor`` is folded into the optimizer section.

        Raises:
            ValueError: on unknown keys or failed validation.
        """
        data = dict(data)
        logger.info(
            "payables_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )

        optimizer = dict(data.pop("optimizer", None) or {})
        if "discount_anchor" in data:
            optimizer["discount_anchor"] = data.pop("discount_anchor")

        tiers_data = data.pop("approval_tiers", None)
        if tiers_data is None:
            tiers = DEFAULT_APPROVAL_TIERS
        else:
            tiers = tuple(
                build_policy(ApprovalTier, tier, f"approval_tiers[{i}]")
                for i, tier in enumerate(tiers_data)
            )

        sections = {
            "analytics": build_policy(AnalyticsPolicy, data.pop("analytics", None), "analytics"),
            "forecast": build_policy(ForecastPolicy, data.pop("forecast", None), "forecast"),
            "optimizer": build_policy(OptimizerPolicy, optimizer, "optimizer"),
            "risk": build_policy(RiskPolicy, data.pop("risk", None), "risk"),
            "recommendations": build_policy(
                RecommendationPolicy, data.pop("recommendations", None), "recommendations",
            ),
        }

        scalars = {"config_id", "version", "default_horizon_days"}
        unknown = sorted(set(data) - scalars)
        if unknown:
            raise ValueError(f"unknown configuration keys {unknown}")

        return cls(
            approval_tiers=tiers,
            checksum=checksum,
            **sections,
            **{k: data[k] for k in scalars if k in data},
        )
