"""
Undumping of stored primitives back into application values.

Every representation ``dump_field`` can produce is accepted regardless of the
current storage settings, so items written under a different configuration
still load: booleans as BOOL or 't'/'f', datetimes as epoch seconds or
ISO-8601 strings, dates as epoch days or ISO-8601 strings. Datetimes are
returned in the application time zone.
"""

import base64
import logging
from collections.abc import Mapping
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from numbers import Number
from typing import Any, Callable, Dict, Optional

import yaml

from ..config import DynamoDBConfig, get_config
from ..exceptions import ArgumentError
from .adapters import get_type_adapter

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
EPOCH_DATE = date(1970, 1, 1)


# =============================================================================
# Scalars
# =============================================================================

def _undump_string(value, field, config):
    return str(value)


def _undump_integer(value, field, config):
    return int(value)


def _undump_number(value, field, config):
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _undump_boolean(value, field, config):
    if isinstance(value, bool):
        return value
    if value == 't':
        return True
    if value == 'f':
        return False
    raise ArgumentError("Boolean column neither true nor false", {'field': field.name, 'value': value})


def _undump_binary(value, field, config):
    # boto3 hands back B attributes wrapped in Binary
    if hasattr(value, 'value'):
        return bytes(value.value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return base64.b64decode(value)


def _undump_serialized(value, field, config):
    serializer = field.options.get('serializer')
    if serializer is not None:
        return serializer.load(value)
    return yaml.safe_load(value)


# =============================================================================
# Dates and times
# =============================================================================

def _undump_datetime(value, field, config):
    timezones = config.get_timezone_manager()

    if isinstance(value, datetime):
        return timezones.to_application(value)
    if isinstance(value, str):
        return timezones.parse_iso(value, assumed_tz=timezones.storage_timezone)
    if isinstance(value, Number) and not isinstance(value, bool):
        micros = int((Decimal(str(value)) * 1000000).to_integral_value())
        return timezones.to_application(EPOCH + timedelta(microseconds=micros))
    raise ArgumentError(f"Cannot load {value!r} as a datetime", {'field': field.name})


def _undump_date(value, field, config):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    if isinstance(value, Number) and not isinstance(value, bool):
        return EPOCH_DATE + timedelta(days=int(value))
    raise ArgumentError(f"Cannot load {value!r} as a date", {'field': field.name})


# =============================================================================
# Collections
# =============================================================================

def _undump_set(value, field, config):
    element_field = field.element_field()
    if element_field is None:
        return set(value)
    return {undump_field(v, element_field, config) for v in value}


def _undump_array(value, field, config):
    element_field = field.element_field()
    if element_field is None:
        return list(value)
    return [undump_field(v, element_field, config) for v in value]


def _undump_nested(value, config):
    if isinstance(value, Mapping):
        return {k: _undump_nested(v, config) for k, v in value.items()}
    if isinstance(value, list):
        return [_undump_nested(v, config) for v in value]
    if isinstance(value, Decimal) and config.convert_big_decimal:
        return float(value)
    return value


def _undump_map(value, field, config):
    return _undump_nested(value, config)


# =============================================================================
# Custom types
# =============================================================================

def _undump_custom(value, field, config):
    loader = getattr(field.type, 'dynamodb_load', None)
    if loader is not None:
        return loader(value)

    adapter = get_type_adapter(field.type)
    if adapter is None:
        raise ArgumentError(
            f"Field type is not supported: {field.type.__name__} has no dynamodb_load hook or registered adapter",
            {'field': field.name}
        )
    return adapter.load(value)


_UNDUMPERS: Dict[str, Callable[[Any, Any, DynamoDBConfig], Any]] = {
    'string': _undump_string,
    'integer': _undump_integer,
    'number': _undump_number,
    'boolean': _undump_boolean,
    'datetime': _undump_datetime,
    'date': _undump_date,
    'set': _undump_set,
    'array': _undump_array,
    'map': _undump_map,
    'raw': _undump_map,
    'serialized': _undump_serialized,
    'binary': _undump_binary,
}


def undump_field(value: Any, field, config: Optional[DynamoDBConfig] = None) -> Any:
    """Convert a stored primitive back into ``field``'s application type.

    An absent (None) value always loads as None.
    """
    if value is None:
        return None

    config = config or get_config()
    if field.is_custom:
        return _undump_custom(value, field, config)

    undumper = _UNDUMPERS.get(field.type)
    if undumper is None:
        raise ArgumentError(f"Unknown type {field.type}", {'field': field.name})
    return undumper(value, field, config)


def undump_attributes(item: Dict[str, Any], fields: Dict[str, Any], config: Optional[DynamoDBConfig] = None) -> Dict[str, Any]:
    """Undump the declared attributes of a raw item; undeclared ones are dropped."""
    config = config or get_config()
    loaded = {}
    for name, value in item.items():
        field = fields.get(name)
        if field is None:
            logger.debug(f"Ignoring undeclared attribute '{name}' in stored item")
            continue
        loaded[name] = undump_field(value, field, config)
    return loaded
