"""
Registry of dump/load adapters for custom field types.

Lookup is the same in both directions. Hooks on the field's declared type are
used when present, otherwise the adapter registered for that type or its
nearest registered base class.

A custom type can carry its own hooks:

    class Money:
        def dynamodb_dump(self): ...
        @classmethod
        def dynamodb_load(cls, value): ...

or an adapter can be registered for a class the application does not own:

    register_type_adapter(Fraction, FractionAdapter())

where the adapter exposes ``dump(value)`` and ``load(value)``.
"""

import logging
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class TypeAdapter(Protocol):
    def dump(self, value: Any) -> Any: ...

    def load(self, value: Any) -> Any: ...


_adapters: Dict[type, TypeAdapter] = {}


def register_type_adapter(cls: type, adapter: TypeAdapter) -> None:
    """Register ``adapter`` to dump and load values of ``cls``."""
    _adapters[cls] = adapter
    logger.debug(f"Registered type adapter for {cls.__name__}")


def unregister_type_adapter(cls: type) -> None:
    _adapters.pop(cls, None)


def get_type_adapter(cls: type) -> Optional[TypeAdapter]:
    """Find the adapter for ``cls`` or its nearest registered base class."""
    for klass in cls.__mro__:
        adapter = _adapters.get(klass)
        if adapter is not None:
            return adapter
    return None
