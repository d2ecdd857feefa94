"""
Snapshot documents.

A snapshot is a YAML or JSON document describing one moment of the
payables ledger: vendors (with terms and optional external scores), bills,
payments, the cash position and optional expected receipts.  Loading one
yields an ``InMemoryPayablesRepository`` plus the score provider and
receipts signal the decision service needs.

    as_of: 2024-03-01
    cash_balance: "50000"
    vendors:
      - id: V1
        name: Acme Supplies
        terms: {standard_days: 30, discount_percent: "2", discount_days: 10}
        scores: {quality: "0.92", delivery: "0.9", price: "0.88"}
    bills:
      - id: B1
        vendor_id: V1
        bill_number: INV-001
        issue_date: 2024-02-25
        due_date: 2024-03-26
        total_amount: "12000"
        balance: "12000"
        line_items: [{description: Widgets, amount: "12000"}]
    payments: []
    receipts:
      - {date: 2024-03-05, amount: "4000"}

Amounts may be strings, ints or floats; floats are read through ``str`` so
``1000.1`` becomes ``Decimal("1000.1")``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping

import yaml

from payables_config.loader import parse_date
from payables_kernel.domain.providers import (
    ConstantDailyReceipts,
    NoExpectedReceipts,
    ReceiptsSignal,
    ScheduledReceipts,
    StaticScoreProvider,
    VendorScores,
)
from payables_kernel.domain.records import (
    Bill,
    BillStatus,
    LineItem,
    Payment,
    PaymentTerms,
    Vendor,
)
from payables_kernel.exceptions import SnapshotFormatError
from payables_kernel.logging_config import get_logger
from payables_services.repository import InMemoryPayablesRepository

logger = get_logger("services.snapshot")


@dataclass(frozen=True)
class LoadedSnapshot:
    repository: InMemoryPayablesRepository
    score_provider: StaticScoreProvider
    receipts: ReceiptsSignal
    as_of: date | None = None


def _decimal(value: Any, where: str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"{where}: expected an amount, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{where}: not a decimal: {value!r}") from exc


def _optional_decimal(value: Any, where: str) -> Decimal | None:
    return None if value is None else _decimal(value, where)


def _optional_date(value: Any) -> date | None:
    return None if value is None else parse_date(value)


def parse_vendor(data: Mapping[str, Any]) -> Vendor:
    terms = data.get("terms") or {}
    where = f"vendor {data.get('id')}"
    return Vendor(
        id=str(data["id"]),
        name=str(data.get("name", data["id"])),
        is_active=bool(data.get("is_active", True)),
        terms=PaymentTerms(
            standard_days=int(terms.get("standard_days", 30)),
            discount_percent=_optional_decimal(terms.get("discount_percent"), where),
            discount_days=(
                int(terms["discount_days"]) if terms.get("discount_days") is not None else None
            ),
        ),
    )


def parse_scores(data: Mapping[str, Any], vendor_id: str) -> VendorScores:
    where = f"scores of vendor {vendor_id}"
    return VendorScores(
        quality=_optional_decimal(data.get("quality"), where),
        delivery=_optional_decimal(data.get("delivery"), where),
        price=_optional_decimal(data.get("price"), where),
        responsiveness=_optional_decimal(data.get("responsiveness"), where),
    )


def parse_bill(data: Mapping[str, Any]) -> Bill:
    where = f"bill {data.get('id')}"
    total = _decimal(data["total_amount"], where)
    lines = tuple(
        LineItem(
            description=str(line.get("description", "")),
            amount=_decimal(line["amount"], where),
            quantity=_decimal(line.get("quantity", 1), where),
            unit_price=_optional_decimal(line.get("unit_price"), where),
        )
        for line in data.get("line_items") or ()
    )
    return Bill(
        id=str(data["id"]),
        vendor_id=str(data["vendor_id"]),
        issue_date=parse_date(data["issue_date"]),
        due_date=parse_date(data["due_date"]),
        total_amount=total,
        balance=_decimal(data.get("balance", total), where),
        status=BillStatus(data.get("status", BillStatus.OPEN.value)),
        bill_number=data.get("bill_number"),
        line_items=lines,
        received_date=_optional_date(data.get("received_date")),
    )


def parse_payment(data: Mapping[str, Any]) -> Payment:
    return Payment(
        id=str(data["id"]),
        vendor_id=str(data["vendor_id"]),
        payment_date=parse_date(data["payment_date"]),
        amount=_decimal(data["amount"], f"payment {data.get('id')}"),
        bill_id=data.get("bill_id"),
    )


def _parse_receipts(data: Mapping[str, Any]) -> ReceiptsSignal:
    if data.get("daily_receipts") is not None:
        return ConstantDailyReceipts(_decimal(data["daily_receipts"], "daily_receipts"))
    entries = data.get("receipts") or ()
    if not entries:
        return NoExpectedReceipts()
    schedule: dict[date, Decimal] = {}
    for entry in entries:
        day = parse_date(entry["date"])
        schedule[day] = schedule.get(day, Decimal("0")) + _decimal(entry["amount"], "receipts")
    return ScheduledReceipts(schedule)


def snapshot_from_dict(data: Mapping[str, Any], source: str = "<dict>") -> LoadedSnapshot:
    """
    Build the repository and signals from a parsed snapshot document.

    Raises:
        SnapshotFormatError: missing keys or unparseable values.
    """
    try:
        vendors = [parse_vendor(v) for v in data.get("vendors") or ()]
        scores = {
            str(v["id"]): parse_scores(v["scores"], str(v["id"]))
            for v in data.get("vendors") or ()
            if v.get("scores")
        }
        bills = [parse_bill(b) for b in data.get("bills") or ()]
        payments = [parse_payment(p) for p in data.get("payments") or ()]
        receipts = _parse_receipts(data)
        cash = _decimal(data.get("cash_balance", 0), "cash_balance")
        as_of = _optional_date(data.get("as_of"))
    except KeyError as exc:
        raise SnapshotFormatError(source, f"missing key {exc}") from exc
    except (ValueError, TypeError) as exc:
        raise SnapshotFormatError(source, str(exc)) from exc

    repository = InMemoryPayablesRepository(
        vendors=vendors,
        bills=bills,
        payments=payments,
        cash_balance=cash,
    )
    logger.info("snapshot_loaded", extra={
        "source": source,
        "vendors": len(vendors),
        "bills": len(bills),
        "payments": len(payments),
        "scored_vendors": len(scores),
    })
    return LoadedSnapshot(
        repository=repository,
        score_provider=StaticScoreProvider(scores),
        receipts=receipts,
        as_of=as_of,
    )


def load_snapshot(path: Path | str) -> LoadedSnapshot:
    """Read a ``.json``, ``.yaml`` or ``.yml`` snapshot file."""
    path = Path(path)
    try:
        with open(path) as f:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        raise SnapshotFormatError(str(path), "file not found") from exc
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise SnapshotFormatError(str(path), f"unparseable document: {exc}") from exc

    if not isinstance(data, dict):
        raise SnapshotFormatError(str(path), "top level must be a mapping")
    return snapshot_from_dict(data, source=str(path))
