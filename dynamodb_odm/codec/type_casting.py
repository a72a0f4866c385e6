"""
Type casting of assigned values into a field's declared type.

Casting runs on every attribute write, before any dumping. Each caster takes
arbitrary user input and returns a value of the field's application type (or
None). Casting an already-cast value returns it unchanged.
"""

import math
import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from numbers import Number, Rational
from typing import Any, Callable, Dict, Optional

from ..config import DynamoDBConfig, get_config
from ..exceptions import ArgumentError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_FALSE_VALUES = {'0', 'f', 'false', 'off'}
_LEADING_NUMBER = re.compile(r'^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?')


def _is_blank(value: Any) -> bool:
    return isinstance(value, str) and not value.strip()


def _is_finite(value: Any) -> bool:
    if isinstance(value, Decimal):
        return value.is_finite()
    if isinstance(value, float):
        return math.isfinite(value)
    return True


# =============================================================================
# Scalars
# =============================================================================

def _cast_string(value, field, config):
    if value is None or isinstance(value, str):
        return value
    try:
        return str(value)
    except Exception:
        return None


def _cast_integer(value, field, config):
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        if not value.strip():
            return None
        text = value.strip()
        for base in (10, 0):
            try:
                return int(text, base)
            except ValueError:
                continue
        raise ArgumentError(f"invalid value for integer: {value!r}", {'field': field.name})
    if isinstance(value, Number):
        if not _is_finite(value):
            return None
        return int(value)
    if hasattr(value, '__int__'):
        return int(value)
    return None


def _cast_number(value, field, config):
    if value is None:
        return None
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value)) if math.isfinite(value) else None
    if isinstance(value, Rational):
        return Decimal(value.numerator) / Decimal(value.denominator)
    if isinstance(value, Number):
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ArgumentError(f"invalid value for number: {value!r}", {'field': field.name})
        return Decimal(str(value)) if math.isfinite(value) else None
    if _is_blank(value):
        return None

    match = _LEADING_NUMBER.match(str(value))
    if not match:
        return Decimal(0)
    try:
        return Decimal(match.group(0).strip())
    except InvalidOperation:
        return Decimal(0)


def _cast_boolean(value, field, config):
    if value is None or value == '':
        return None
    if value is False:
        return False
    if isinstance(value, Number) and value == 0:
        return False
    if isinstance(value, str) and value.strip().lower() in _FALSE_VALUES:
        return False
    return True


# =============================================================================
# Dates and times
# =============================================================================

def _cast_datetime(value, field, config):
    if value is None:
        return None
    timezones = config.get_timezone_manager()

    if isinstance(value, datetime):
        return timezones.ensure_timezone(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezones.get_timezone())
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return timezones.parse_iso(value)
        except ValueError:
            return None
    if isinstance(value, Number) and not isinstance(value, bool):
        if not _is_finite(value):
            return None
        micros = int(Decimal(str(value)) * 1000000)
        return timezones.to_application(EPOCH + timedelta(microseconds=micros))
    return None


def _cast_date(value, field, config):
    if value is None:
        return None
    if isinstance(value, datetime):
        return config.get_timezone_manager().to_application(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return config.get_timezone_manager().parse_iso(text).date()
        except ValueError:
            return None
    return None


# =============================================================================
# Collections
# =============================================================================

def _is_enumerable(value: Any) -> bool:
    return isinstance(value, Iterable) and not isinstance(value, (str, bytes, bytearray, Mapping))


def _cast_elements(values, field, config):
    element_field = field.element_field()
    if element_field is None:
        return list(values)
    return [cast_field(element, element_field, config) for element in values]


def _cast_set(value, field, config):
    if value is None or not _is_enumerable(value):
        return None
    try:
        return set(_cast_elements(value, field, config))
    except TypeError:
        return None


def _cast_array(value, field, config):
    if value is None or not _is_enumerable(value):
        return None
    return _cast_elements(value, field, config)


def _cast_map(value, field, config):
    if value is None or isinstance(value, str):
        return None
    try:
        return dict(value)
    except (TypeError, ValueError):
        return None


def _cast_binary(value, field, config):
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode('utf-8')
    return None


def _passthrough(value, field, config):
    return value


_CASTERS: Dict[str, Callable[[Any, Any, DynamoDBConfig], Any]] = {
    'string': _cast_string,
    'integer': _cast_integer,
    'number': _cast_number,
    'boolean': _cast_boolean,
    'datetime': _cast_datetime,
    'date': _cast_date,
    'set': _cast_set,
    'array': _cast_array,
    'map': _cast_map,
    'raw': _passthrough,
    'serialized': _passthrough,
    'binary': _cast_binary,
}


def cast_field(value: Any, field, config: Optional[DynamoDBConfig] = None) -> Any:
    """Coerce ``value`` into the declared type of ``field``.

    Raises:
        ArgumentError: If the declared type is unknown, or an integer field
            receives a non-numeric string
    """
    if field.is_custom:
        return value

    caster = _CASTERS.get(field.type)
    if caster is None:
        raise ArgumentError(f"Unknown type {field.type}", {'field': field.name})
    return caster(value, field, config or get_config())
