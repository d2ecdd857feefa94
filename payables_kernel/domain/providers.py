"""
External signal providers.

Vendor quality/delivery/price scores and expected cash receipts come from
systems outside this library.  Engines depend only on the protocols below;
the concrete classes are the defaults and the deterministic test doubles.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Mapping, Protocol, runtime_checkable

from payables_kernel.domain.values import ZERO, to_decimal


@dataclass(frozen=True)
class VendorScores:
    """Externally maintained vendor scores in [0, 1]; ``None`` means unknown."""

    quality: Decimal | None = None
    delivery: Decimal | None = None
    price: Decimal | None = None
    responsiveness: Decimal | None = None


@runtime_checkable
class VendorScoreProvider(Protocol):
    def scores_for(self, vendor_id: str) -> VendorScores | None: ...


class NeutralScoreProvider:
    """No scoring source wired in; every vendor gets the neutral defaults."""

    def scores_for(self, vendor_id: str) -> VendorScores | None:
        return None


class StaticScoreProvider:
    """Fixed scores per vendor id."""

    def __init__(self, scores: Mapping[str, VendorScores]):
        self._scores = dict(scores)

    def scores_for(self, vendor_id: str) -> VendorScores | None:
        return self._scores.get(vendor_id)


@runtime_checkable
class ReceiptsSignal(Protocol):
    def expected_receipts(self, on: date) -> Decimal: ...


class NoExpectedReceipts:
    def expected_receipts(self, on: date) -> Decimal:
        return ZERO


class ScheduledReceipts:
    """Receipts known per calendar date; unlisted dates receive nothing."""

    def __init__(self, schedule: Mapping[date, Decimal | int | str]):
        self._schedule = {
            day: to_decimal(amount, f"receipts[{day.isoformat()}]")
            for day, amount in schedule.items()
        }

    def expected_receipts(self, on: date) -> Decimal:
        return self._schedule.get(on, ZERO)


class ConstantDailyReceipts:
    def __init__(self, amount: Decimal):
        self._amount = to_decimal(amount, "amount")

    def expected_receipts(self, on: date) -> Decimal:
        return self._amount
