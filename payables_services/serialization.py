"""
JSON rendering of result records.

Result records are frozen dataclasses holding Decimals, dates and closed
enumerations.  ``to_jsonable`` turns any of them (or containers of them)
into plain JSON types without losing precision: Decimals become strings,
dates ISO strings, enums their value.
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from payables_kernel.exceptions import PayablesError


def to_jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, PayablesError):
        return error_to_dict(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, Mapping):
        return {str(to_jsonable(k)): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    raise TypeError(f"Cannot render {type(value).__name__} as JSON")


def error_to_dict(error: PayablesError) -> dict[str, Any]:
    """Machine-readable code, message and structured attributes of an error."""
    payload: dict[str, Any] = {"code": error.code, "message": str(error)}
    for key, val in vars(error).items():
        if not key.startswith("_"):
            payload[key] = to_jsonable(val)
    return payload


def dumps(value: Any, *, indent: int | None = 2) -> str:
    return json.dumps(to_jsonable(value), indent=indent, sort_keys=False)
