"""
Dumping of typed attribute values into DynamoDB-storable primitives.

The output of ``dump_field`` is what the boto3 resource client serializes:
str, int, Decimal, bool, sets, lists and dicts. Binary values travel as
base64 strings and floats are converted to Decimal before reaching boto3.

Representation choices that have both a field option and a global setting
resolve field option first, then ``DynamoDBConfig``:

    boolean   store_as_native_boolean  / store_boolean_as_native
    datetime  store_as_string          / store_datetime_as_string
    date      store_as_string          / store_date_as_string
"""

import base64
import logging
from collections.abc import Mapping
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

import yaml

from ..config import DynamoDBConfig, get_config
from ..exceptions import ArgumentError
from .adapters import get_type_adapter

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
EPOCH_DATE = date(1970, 1, 1)
NANOSECOND = Decimal('0.000000001')

ALLOWED_ELEMENT_TYPES = ('string', 'integer', 'number', 'date', 'datetime', 'serialized')


def _option(field, name: str, default: Any) -> Any:
    value = field.options.get(name)
    return default if value is None else value


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_decimal(value: Any) -> Any:
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def sanitize_value(value: Any) -> Any:
    """Deep-walk a map/raw value into storable form.

    Map keys become strings, empty strings and empty sets become None, floats
    become Decimal and tuples become lists, at every depth.
    """
    if isinstance(value, Mapping):
        return {str(k): sanitize_value(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        if not value:
            return None
        return {_to_decimal(v) for v in value}
    if isinstance(value, (list, tuple)):
        return [sanitize_value(v) for v in value]
    if isinstance(value, str):
        return value or None
    return _to_decimal(value)


# =============================================================================
# Scalars
# =============================================================================

def _dump_string(value, field, config):
    value = str(value)
    if value == '' and config.store_empty_string_as_nil:
        return None
    return value


def _dump_integer(value, field, config):
    return int(value)


def _dump_number(value, field, config):
    return _to_decimal(value)


def _dump_boolean(value, field, config):
    if _option(field, 'store_as_native_boolean', config.store_boolean_as_native):
        return bool(value)
    return 't' if value else 'f'


def _dump_binary(value, field, config):
    if isinstance(value, str):
        value = value.encode('utf-8')
    return base64.b64encode(bytes(value)).decode('ascii')


def _dump_serialized(value, field, config):
    serializer = field.options.get('serializer')
    if serializer is not None:
        return serializer.dump(value)
    return yaml.safe_dump(value)


# =============================================================================
# Dates and times
# =============================================================================

def _epoch_seconds(value: datetime) -> Decimal:
    delta = value - EPOCH
    seconds = delta.days * 86400 + delta.seconds
    return (Decimal(seconds) + Decimal(delta.microseconds).scaleb(-6)).quantize(NANOSECOND)


def _dump_datetime(value, field, config):
    timezones = config.get_timezone_manager()
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min, tzinfo=timezones.get_timezone())

    if _option(field, 'store_as_string', config.store_datetime_as_string):
        return timezones.format_iso(value, timezones.storage_timezone)
    return _epoch_seconds(timezones.ensure_timezone(value))


def _dump_date(value, field, config):
    if isinstance(value, datetime):
        value = config.get_timezone_manager().to_application(value).date()

    if _option(field, 'store_as_string', config.store_date_as_string):
        return value.isoformat()
    return (value - EPOCH_DATE).days


# =============================================================================
# Collections
# =============================================================================

def _element_field(field):
    element_field = field.element_field()
    if element_field is None:
        return None
    if not element_field.is_custom and element_field.type not in ALLOWED_ELEMENT_TYPES:
        raise ArgumentError(
            f"{field.type.capitalize()} element type {element_field.type} isn't supported",
            {'field': field.name}
        )
    return element_field


def _dump_elements(values, field, config):
    element_field = _element_field(field)
    if element_field is None:
        return [sanitize_value(v) for v in values]

    dumped = (dump_field(v, element_field, config) for v in values)
    return [v for v in dumped if not _is_blank(v)]


def _dump_set(value, field, config):
    elements = {v for v in _dump_elements(value, field, config) if v is not None}
    return elements or None


def _dump_array(value, field, config):
    return _dump_elements(value, field, config)


def _dump_map(value, field, config):
    return sanitize_value(value)


# =============================================================================
# Custom types
# =============================================================================

def _coerce_shape(value: Any, shape: Optional[str]) -> Any:
    if value is None or shape is None:
        return sanitize_value(value)
    if shape == 'array':
        return [sanitize_value(v) for v in value]
    if shape == 'set':
        return sanitize_value(set(value))
    if shape == 'number':
        return _to_decimal(value)
    if shape == 'string':
        return str(value)
    raise ArgumentError(f"Unsupported storage type {shape} for a custom field")


def _dump_custom(value, field, config):
    # Hooks on the declared type win over the registry, same as on load
    if hasattr(field.type, 'dynamodb_dump'):
        dumped = value.dynamodb_dump()
    else:
        adapter = get_type_adapter(field.type)
        if adapter is None:
            raise ArgumentError(
                f"Field type is not supported: {field.type.__name__} has no dynamodb_dump hook or registered adapter",
                {'field': field.name}
            )
        dumped = adapter.dump(value)

    shape = field.options.get('field_type') or getattr(field.type, 'dynamodb_field_type', None)
    return _coerce_shape(dumped, shape)


_DUMPERS: Dict[str, Callable[[Any, Any, DynamoDBConfig], Any]] = {
    'string': _dump_string,
    'integer': _dump_integer,
    'number': _dump_number,
    'boolean': _dump_boolean,
    'datetime': _dump_datetime,
    'date': _dump_date,
    'set': _dump_set,
    'array': _dump_array,
    'map': _dump_map,
    'raw': _dump_map,
    'serialized': _dump_serialized,
    'binary': _dump_binary,
}


def dump_field(value: Any, field, config: Optional[DynamoDBConfig] = None) -> Any:
    """Convert an application value of ``field``'s type into its stored form.

    None dumps to None for every type except serialized, which stores the
    serializer's own representation of None.

    Raises:
        ArgumentError: For unknown field types, unsupported set/array element
            types, or custom values without a dump hook
    """
    config = config or get_config()

    if value is None and field.type != 'serialized':
        return None
    if field.is_custom:
        return _dump_custom(value, field, config)

    dumper = _DUMPERS.get(field.type)
    if dumper is None:
        raise ArgumentError(f"Unknown type {field.type}", {'field': field.name})
    return dumper(value, field, config)


def dump_attributes(attributes: Dict[str, Any], fields: Dict[str, Any], config: Optional[DynamoDBConfig] = None) -> Dict[str, Any]:
    """Dump every attribute that has a declared field; undeclared names are skipped."""
    config = config or get_config()
    dumped = {}
    for name, value in attributes.items():
        field = fields.get(name)
        if field is None:
            logger.debug(f"Skipping undeclared attribute '{name}' while dumping")
            continue
        dumped[name] = dump_field(value, field, config)
    return dumped


def sanitize_item(item: Dict[str, Any], config: Optional[DynamoDBConfig] = None) -> Dict[str, Any]:
    """Prepare a dumped item for a Put.

    Empty strings and empty sets are dropped. None values are dropped unless
    ``store_attribute_with_nil_value`` is enabled.
    """
    config = config or get_config()
    sanitized = {}
    for name, value in item.items():
        if isinstance(value, (str, set, frozenset)) and not value:
            continue
        if value is None and not config.store_attribute_with_nil_value:
            continue
        sanitized[name] = {str(k): v for k, v in value.items()} if isinstance(value, Mapping) else value
    return sanitized
