"""
Convert audit payloads to JSON-safe values before they hit a JSON column
"""
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel


def to_json_safe(value: Any) -> Any:
    """
    Recursively convert Python objects to JSON-safe values

    datetime/date/time -> isoformat, Decimal -> float, Enum -> value,
    UUID -> str, pydantic models -> dict; anything else falls back to str().
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return to_json_safe(value.value)
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, BaseModel):
        return to_json_safe(value.model_dump())
    if isinstance(value, dict):
        return {str(k): to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_json_safe(item) for item in value]
    return str(value)
