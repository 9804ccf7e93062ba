"""Field value classification and loose-typing coercions.

Rules are authored against loosely typed entity snapshots (numbers stored
as text, timestamps as ISO strings, nulls next to missing keys). Operators
never inspect raw values directly; they go through the coercions below so
that ``1000``, ``1000.0`` and ``"1000"`` compare the way rule authors expect.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional


class _Missing:
    """Marker for a field that is absent from the snapshot."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

_NUMERIC_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_ISO_FRACTION_RE = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


class ValueKind(str, Enum):
    """Tag describing the shape of a field value."""

    MISSING = "missing"
    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    DATETIME = "datetime"
    OTHER = "other"


def classify(value: Any) -> ValueKind:
    """Tag a raw snapshot value."""
    if value is MISSING:
        return ValueKind.MISSING
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (datetime, date)):
        return ValueKind.DATETIME
    return ValueKind.OTHER


def read_field(data: Optional[Mapping[str, Any]], field: Optional[str]) -> Any:
    """Read a field from a snapshot, returning MISSING when absent."""
    if not data or not field:
        return MISSING
    return data.get(field, MISSING)


def is_null(value: Any) -> bool:
    """Loose null check: only missing and None count, not 0 or False."""
    return classify(value) in (ValueKind.MISSING, ValueKind.NULL)


def is_truthy(value: Any) -> bool:
    """Truthiness as rule authors see it: NaN is falsy, empty containers are not."""
    kind = classify(value)
    if kind in (ValueKind.MISSING, ValueKind.NULL):
        return False
    if kind == ValueKind.NUMBER:
        return value != 0 and not math.isnan(value)
    if kind in (ValueKind.BOOLEAN, ValueKind.STRING):
        return bool(value)
    return True


def _number_text(number: float) -> str:
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "Infinity" if number > 0 else "-Infinity"
    if number == int(number) and abs(number) < 1e21:
        return str(int(number))
    return repr(number)


def to_text(value: Any) -> str:
    """Render a value the way it is compared by text operators."""
    kind = classify(value)
    if kind == ValueKind.MISSING:
        return "undefined"
    if kind == ValueKind.NULL:
        return "null"
    if kind == ValueKind.BOOLEAN:
        return "true" if value else "false"
    if kind == ValueKind.NUMBER:
        return _number_text(float(value)) if isinstance(value, float) else str(value)
    if kind == ValueKind.STRING:
        return value
    if kind == ValueKind.DATETIME:
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ",".join("" if is_null(item) else to_text(item) for item in value)
    if isinstance(value, Enum):
        return to_text(value.value)
    return str(value)


def to_number(value: Any) -> float:
    """Coerce a value to a float, NaN when it has no numeric reading."""
    kind = classify(value)
    if kind == ValueKind.NULL:
        return 0.0
    if kind == ValueKind.BOOLEAN:
        return 1.0 if value else 0.0
    if kind == ValueKind.NUMBER:
        return float(value)
    if kind == ValueKind.STRING:
        text = value.strip()
        if not text:
            return 0.0
        if text in ("Infinity", "+Infinity"):
            return math.inf
        if text == "-Infinity":
            return -math.inf
        if _NUMERIC_RE.match(text):
            return float(text)
        return math.nan
    if kind == ValueKind.DATETIME:
        timestamp = to_timestamp(value)
        return timestamp if timestamp is not None else math.nan
    return math.nan


def _six_digit_fraction(match: re.Match) -> str:
    return f"{match.group(1)}.{match.group(2)[:6].ljust(6, '0')}"


def to_timestamp(value: Any) -> Optional[float]:
    """Epoch milliseconds for a timestamp-like value, None when unparsable.

    Naive datetimes and date-only strings are read as UTC. Numbers are
    taken as epoch milliseconds.
    """
    kind = classify(value)
    if kind == ValueKind.NUMBER:
        return None if math.isnan(value) else float(value)
    if kind == ValueKind.DATETIME:
        if not isinstance(value, datetime):
            value = datetime(value.year, value.month, value.day)
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp() * 1000
    if kind == ValueKind.STRING:
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        # fromisoformat before 3.11 only takes 3 or 6 fractional digits
        text = _ISO_FRACTION_RE.sub(_six_digit_fraction, text, count=1)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return to_timestamp(parsed)
    return None


def utc_now_ms() -> float:
    """Current time in epoch milliseconds."""
    return datetime.now(timezone.utc).timestamp() * 1000
