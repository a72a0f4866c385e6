"""
Value codec: casting, dumping and undumping of document attributes.

    cast_field(raw_input, field)   -> application value   (on assignment)
    dump_field(value, field)       -> stored primitive    (before a write)
    undump_field(primitive, field) -> application value   (after a read)
"""

from .adapters import TypeAdapter, get_type_adapter, register_type_adapter, unregister_type_adapter
from .dumping import dump_attributes, dump_field, sanitize_item, sanitize_value
from .type_casting import cast_field
from .undumping import undump_attributes, undump_field

__all__ = [
    "TypeAdapter",
    "cast_field",
    "dump_attributes",
    "dump_field",
    "get_type_adapter",
    "register_type_adapter",
    "sanitize_item",
    "sanitize_value",
    "undump_attributes",
    "undump_field",
    "unregister_type_adapter",
]
