"""
Module: payables_engines.cash_forecast
Responsibility:
    Project the daily net cash position over a horizon: bill balances due
    each day against expected receipts, with a running cumulative balance,
    a decaying confidence and per-day risk flags.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Receipts come from an injected ``ReceiptsSignal``.

Invariants enforced:
    - Length: ``horizon_days + 1`` entries, entry ``i`` dated ``as_of + i``.
    - Continuity: ``cumulative[i] == cumulative[i-1] + net[i]`` with
      ``cumulative[-1]`` equal to the explicit starting balance.
    - Confidence is non-increasing in ``i`` and never below the floor.
    - Day 0 receipts are always 0 (already in the starting balance).

Failure modes:
    - InvalidHorizonError for a negative horizon.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Sequence

from payables_engines.tracer import traced_engine
from payables_kernel.domain.policies import ForecastPolicy
from payables_kernel.domain.providers import NoExpectedReceipts, ReceiptsSignal
from payables_kernel.domain.records import Bill
from payables_kernel.domain.results import CashFlowForecast, ForecastRiskFlag
from payables_kernel.domain.values import ZERO
from payables_kernel.exceptions import InvalidHorizonError
from payables_kernel.logging_config import get_logger

logger = get_logger("engines.cash_forecast")


def find_entry(
    forecast: Sequence[CashFlowForecast],
    on: date,
) -> CashFlowForecast | None:
    """Return the forecast entry dated ``on``, if the horizon covers it."""
    for entry in forecast:
        if entry.forecast_date == on:
            return entry
    return None


class CashFlowForecaster:
    """
    Daily cash-position projection.

    Contract:
        Deterministic for a fixed bill set, starting balance and receipts
        signal.
    """

    def __init__(
        self,
        policy: ForecastPolicy | None = None,
        receipts: ReceiptsSignal | None = None,
    ):
        self._policy = policy or ForecastPolicy()
        self._receipts = receipts or NoExpectedReceipts()

    @property
    def policy(self) -> ForecastPolicy:
        return self._policy

    def confidence_for_day(self, day_offset: int) -> Decimal:
        decayed = self._policy.base_confidence - self._policy.daily_confidence_decay * day_offset
        return max(self._policy.confidence_floor, decayed)

    def _risk_flags(
        self,
        day_offset: int,
        payments: Decimal,
        receipts: Decimal,
        cumulative: Decimal,
        confidence: Decimal,
    ) -> tuple[ForecastRiskFlag, ...]:
        flags: list[ForecastRiskFlag] = []
        if cumulative < self._policy.low_balance_threshold:
            flags.append(ForecastRiskFlag.LOW_CASH_BALANCE)
        if payments > self._policy.heavy_payment_ratio * receipts:
            flags.append(ForecastRiskFlag.HEAVY_PAYMENT_OBLIGATIONS)
        if (
            day_offset > self._policy.uncertainty_after_days
            and confidence < self._policy.uncertainty_below_confidence
        ):
            flags.append(ForecastRiskFlag.FORECAST_UNCERTAINTY)
        return tuple(flags)

    @traced_engine(
        "cash_forecast", "1.0",
        fingerprint_fields=("horizon_days", "as_of", "starting_balance"),
    )
    def forecast(
        self,
        horizon_days: int,
        *,
        bills: Sequence[Bill],
        as_of: date,
        starting_balance: Decimal,
    ) -> list[CashFlowForecast]:
        """
        Project ``horizon_days + 1`` days starting at ``as_of``.

        Bills are read as given; integrity checking is the caller's concern.
        """
        if horizon_days < 0:
            raise InvalidHorizonError(horizon_days)

        due_by_date: dict[date, Decimal] = defaultdict(lambda: ZERO)
        for bill in bills:
            if bill.is_unpaid:
                due_by_date[bill.due_date] += bill.balance

        entries: list[CashFlowForecast] = []
        cumulative = starting_balance
        for i in range(horizon_days + 1):
            day = as_of + timedelta(days=i)
            payments = due_by_date.get(day, ZERO)
            receipts = ZERO if i == 0 else self._receipts.expected_receipts(day)
            net = receipts - payments
            cumulative = cumulative + net
            confidence = self.confidence_for_day(i)

            entries.append(CashFlowForecast(
                forecast_date=day,
                expected_payments=payments,
                expected_receipts=receipts,
                net_cash_flow=net,
                cumulative_balance=cumulative,
                confidence=confidence,
                risk_factors=self._risk_flags(i, payments, receipts, cumulative, confidence),
            ))

        low_days = sum(
            1 for e in entries if ForecastRiskFlag.LOW_CASH_BALANCE in e.risk_factors
        )
        logger.info("cash_forecast_generated", extra={
            "as_of": as_of.isoformat(),
            "horizon_days": horizon_days,
            "starting_balance": str(starting_balance),
            "ending_balance": str(cumulative),
            "low_balance_days": low_days,
        })
        return entries
