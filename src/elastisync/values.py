"""
Elastisync Values — Tagged Document Values
==========================================

Values read from records are wrapped into one of three shapes before
formatting, so the formatter dispatches on the shape instead of probing
for list-ness at runtime:

    Scalar(value)          a single attribute value
    ListValue([Value...])  a to-many aggregation or array attribute
    Nested({name: Value})  a sub-document

`format_value(spec_type, value)` turns a wrapped value into the plain
JSON-ready Python value sent to Elasticsearch.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

# Tried in order when the value is not ISO-8601
DATE_FORMATS = (
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y",
)


@dataclass(frozen=True)
class Scalar:
    value: Any = None


@dataclass(frozen=True)
class ListValue:
    items: List["Value"] = field(default_factory=list)


@dataclass(frozen=True)
class Nested:
    fields: Dict[str, "Value"] = field(default_factory=dict)


Value = Union[Scalar, ListValue, Nested]


def wrap(raw: Any) -> Value:
    """Wrap a raw Python value, recursing through lists and dicts."""
    if isinstance(raw, (Scalar, ListValue, Nested)):
        return raw
    if isinstance(raw, (list, tuple)):
        return ListValue([wrap(item) for item in raw])
    if isinstance(raw, dict):
        return Nested({key: wrap(item) for key, item in raw.items()})
    return Scalar(raw)


def unwrap(value: Value) -> Any:
    """Return the plain Python value without any formatting."""
    if isinstance(value, ListValue):
        return [unwrap(item) for item in value.items]
    if isinstance(value, Nested):
        return {key: unwrap(item) for key, item in value.fields.items()}
    return value.value


def format_boolean(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false", "no", "off")
    return bool(value)


def format_date(value: Any) -> Optional[str]:
    """
    Format as `YYYY-MM-DDTHH:MM:SS`.

    Empty input and strings that match no known date format give None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        parsed = parse_date(str(value))
        if parsed is None:
            logger.warning("Unparseable date %r, indexing it as null", value)
            return None
    return parsed.strftime("%Y-%m-%dT%H:%M:%S")


def parse_date(text: str) -> Optional[datetime]:
    """ISO-8601 (with an optional trailing `Z`) first, then DATE_FORMATS."""
    text = text.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def format_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str):
        return int(float(value)) if value.strip() else 0
    return int(value)


def format_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return 0.0
    return float(value)


FORMATTERS = {
    "boolean": format_boolean,
    "date": format_date,
    "integer": format_int,
    "float": format_float,
    "double": format_float,
}


def format_value(spec_type: Optional[str], value: Value) -> Any:
    """
    Format a wrapped value for the given schema type.

    Lists are formatted element-wise with the same schema type. Nested
    sub-documents are assumed to be formatted already and are unwrapped.
    """
    if isinstance(value, ListValue):
        return [format_value(spec_type, item) for item in value.items]
    if isinstance(value, Nested):
        return unwrap(value)
    formatter = FORMATTERS.get(spec_type or "")
    if formatter is None:
        return value.value
    return formatter(value.value)
