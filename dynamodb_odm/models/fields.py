"""
Attribute schema declarations.

A ``Field`` is declared as a class attribute on a ``Document`` subclass:

    class User(Document):
        name = Field()
        age = Field('integer')
        tags = Field('set', of='string')
        joined_on = Field('date', store_as_string=True)

Each field is a data descriptor, so the class-level field table doubles as
the per-model accessor table: reads and writes go through
``Document.read_attribute``/``write_attribute`` (casting and dirty tracking)
without generating methods per attribute.

Supported types: string, integer, number, boolean, datetime, date, set,
array, map, raw, serialized, binary, or any class (a custom type).

Storage options understood by the codec:
    of                       element type of a set/array; a type name, a class,
                             or ``{type_name: {option: value}}``
    store_as_string          datetime/date as ISO-8601 instead of epoch numbers
    store_as_native_boolean  boolean as BOOL instead of 't'/'f'
    serializer               object with dump/load for serialized fields
    field_type               storage shape for custom types ('array', 'set',
                             'string', 'number')
"""

import copy
from typing import Any, Callable, Dict, Optional, Union

FIELD_TYPES = (
    'string',
    'integer',
    'number',
    'boolean',
    'datetime',
    'date',
    'set',
    'array',
    'map',
    'raw',
    'serialized',
    'binary',
)


class Field:
    """A declared document attribute: name, type, storage options and default."""

    def __init__(
        self,
        type: Union[str, type] = 'string',
        default: Union[Any, Callable[[], Any]] = None,
        required: bool = False,
        **options: Any
    ):
        self.type = type
        self.default = default
        self.required = required
        self.options: Dict[str, Any] = options
        self.name: Optional[str] = None

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, instance, owner):
        if instance is None:
            return self
        return instance.read_attribute(self.name)

    def __set__(self, instance, value):
        instance.write_attribute(self.name, value)

    @property
    def is_custom(self) -> bool:
        return isinstance(self.type, type)

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def default_value(self) -> Any:
        """Evaluate the default, calling it when it is a zero-argument producer."""
        if callable(self.default):
            return self.default()
        return copy.deepcopy(self.default)

    def element_field(self) -> Optional['Field']:
        """Describe the elements of a set/array declared with ``of``."""
        of = self.options.get('of')
        if of is None:
            return None

        if isinstance(of, dict):
            (element_type, element_options), = of.items()
        else:
            element_type, element_options = of, {}

        element = Field(element_type, **element_options)
        element.name = f"{self.name}[]" if self.name else None
        return element

    def __repr__(self) -> str:
        type_name = self.type.__name__ if self.is_custom else self.type
        return f"Field(name={self.name!r}, type={type_name!r}, options={self.options!r})"
