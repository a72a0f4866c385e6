"""
Document base class.

A model is a ``Document`` subclass with ``Field`` class attributes and an
optional ``Meta`` describing its table:

    class Order(Document):
        class Meta(TableMeta):
            table_name = 'orders'
            partition_key = 'customer_id'
            sort_key = 'order_id'

        customer_id = Field()
        order_id = Field('integer')
        total = Field('number')

Keys and timestamps are declared automatically when missing: the partition
key (``id`` unless configured) and sort key as string fields, and
``created_at``/``updated_at`` as datetime fields unless ``Meta.timestamps``
is False.

Instances carry every declared attribute (absent ones are None), track dirty
attributes, and persist through one-action ``TransactionWrite`` batches. Reads
go through a ``TableGateway``.

Single-table inheritance is enabled by declaring the inheritance field
(``type`` by default). Every subclass of the declaring class registers under
its class name, instances get that name as discriminator on construction, and
``from_database`` resolves stored items to the registered class.
"""

import logging
import re
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..codec import cast_field, dump_field, undump_attributes
from ..config import DynamoDBConfig, get_config
from ..core import create_table_gateway
from ..exceptions import ItemNotFoundError, MissingHashKey, MissingRangeKey, UnknownAttribute
from ..transactions import TransactionWrite
from .callbacks import CallbackChain, CallbacksMixin, PHASES, collect_callbacks
from .fields import Field
from .validations import Errors, collect_validators, run_validations

logger = logging.getLogger(__name__)

META_OPTIONS = ('table_name', 'partition_key', 'sort_key', 'timestamps', 'inheritance_field')


class TableMeta:
    """Table options of a model. Subclass it as ``Meta`` inside a Document."""

    table_name: Optional[str] = None
    partition_key: str = 'id'
    sort_key: Optional[str] = None
    timestamps: Optional[bool] = None
    inheritance_field: str = 'type'

    def __init__(self, **options: Any):
        for name, value in options.items():
            setattr(self, name, value)

    def __repr__(self) -> str:
        options = ", ".join(f"{name}={getattr(self, name)!r}" for name in META_OPTIONS)
        return f"TableMeta({options})"


def _default_table_name(class_name: str) -> str:
    snake = re.sub(r'(?<!^)(?=[A-Z])', '_', class_name).lower()
    return f"{snake}s"


def _resolve_meta(cls) -> TableMeta:
    parent: Optional[TableMeta] = getattr(cls, '_meta', None)
    options = {name: getattr(parent, name) for name in META_OPTIONS} if parent else {}

    own = cls.__dict__.get('Meta')
    if own is not None:
        for klass in reversed(own.__mro__):
            if klass in (TableMeta, object):
                continue
            options.update({k: v for k, v in vars(klass).items() if k in META_OPTIONS})

    if not options.get('table_name'):
        options['table_name'] = _default_table_name(cls.__name__)
    return TableMeta(**options)


def _declare(cls, name: str, field: Field) -> None:
    field.__set_name__(cls, name)
    setattr(cls, name, field)


class Document(CallbacksMixin):
    """Base class for models persisted in a DynamoDB table."""

    _meta: Optional[TableMeta] = None
    _fields: Dict[str, Field] = {}
    _validators: List = []
    _callback_chains: Dict[str, CallbackChain] = {phase: CallbackChain() for phase in PHASES}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        meta = _resolve_meta(cls)
        cls._meta = meta

        if meta.partition_key not in _collect_fields(cls):
            _declare(cls, meta.partition_key, Field('string'))
        if meta.sort_key and meta.sort_key not in _collect_fields(cls):
            _declare(cls, meta.sort_key, Field('string'))
        if meta.timestamps is not False:
            for name in ('created_at', 'updated_at'):
                if name not in _collect_fields(cls):
                    _declare(cls, name, Field('datetime'))

        cls._fields = _collect_fields(cls)
        cls._callback_chains = collect_callbacks(cls)
        cls._validators = collect_validators(cls)

        # The first class declaring the inheritance field owns the registry
        if not hasattr(cls, '_type_registry') and meta.inheritance_field in cls._fields:
            cls._type_registry = {}
        if hasattr(cls, '_type_registry'):
            cls._type_registry[cls.__name__] = cls

    def __init__(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any):
        """Build a new, unsaved document.

        Unknown attribute names are ignored. Field defaults fill attributes
        that are not given at all; an explicit None is kept.
        """
        given = dict(attributes or {})
        given.update(kwargs)
        self._initialize(given)

    @classmethod
    def build(cls, attributes: Optional[Dict[str, Any]] = None, config: Optional[DynamoDBConfig] = None):
        """Build a new document, casting values with ``config`` rather than the current configuration."""
        document = cls.__new__(cls)
        document._initialize(dict(attributes or {}), config)
        return document

    def _initialize(self, given: Dict[str, Any], config: Optional[DynamoDBConfig] = None) -> None:
        self._init_state()
        self.new_record = True

        for name, field in self.fields().items():
            if name not in given and field.has_default:
                self.write_attribute(name, field.default_value(), config)

        if self.inheritance_enabled():
            self.write_attribute(self._meta.inheritance_field, type(self).__name__, config)

        self.assign_attributes(given, config)

    def _init_state(self) -> None:
        self._attributes: Dict[str, Any] = {name: None for name in self.fields()}
        self._attributes_before_type_cast: Dict[str, Any] = {}
        self._changed_attributes: Dict[str, Any] = {}
        self._previous_changes: Dict[str, Tuple[Any, Any]] = {}
        self.new_record = False
        self.destroyed = False
        self.errors = Errors()

    # =========================================================================
    # Schema
    # =========================================================================

    @classmethod
    def fields(cls) -> Dict[str, Field]:
        return cls._fields

    @classmethod
    def hash_key_name(cls) -> str:
        return cls._meta.partition_key

    @classmethod
    def range_key_name(cls) -> Optional[str]:
        return cls._meta.sort_key

    @classmethod
    def has_range_key(cls) -> bool:
        return cls._meta.sort_key is not None

    @classmethod
    def table_name(cls, config: Optional[DynamoDBConfig] = None) -> str:
        """Full table name, with the configured prefix and environment applied."""
        return (config or get_config()).get_table_name(cls._meta.table_name)

    @classmethod
    def timestamps_enabled(cls, config: Optional[DynamoDBConfig] = None) -> bool:
        if cls._meta.timestamps is not None:
            return cls._meta.timestamps
        return (config or get_config()).timestamps

    @classmethod
    def inheritance_enabled(cls) -> bool:
        return hasattr(cls, '_type_registry')

    @classmethod
    def validate_key(cls, hash_key: Any, range_key: Any = None) -> None:
        """Raise MissingHashKey/MissingRangeKey when a required key value is None."""
        if hash_key is None:
            raise MissingHashKey(cls)
        if cls.has_range_key() and range_key is None:
            raise MissingRangeKey(cls)

    @classmethod
    def dump_key(cls, hash_key: Any, range_key: Any = None, config: Optional[DynamoDBConfig] = None) -> Dict[str, Any]:
        """Cast and dump key values into a boto3 ``Key`` mapping."""
        config = config or get_config()
        hash_field = cls._fields[cls.hash_key_name()]
        key = {hash_field.name: dump_field(cast_field(hash_key, hash_field, config), hash_field, config)}
        if cls.has_range_key():
            range_field = cls._fields[cls.range_key_name()]
            key[range_field.name] = dump_field(cast_field(range_key, range_field, config), range_field, config)
        return key

    # =========================================================================
    # Attributes
    # =========================================================================

    @property
    def attributes(self) -> Dict[str, Any]:
        return dict(self._attributes)

    @property
    def hash_key(self) -> Any:
        return self._attributes.get(self.hash_key_name())

    @hash_key.setter
    def hash_key(self, value: Any) -> None:
        self.write_attribute(self.hash_key_name(), value)

    @property
    def range_key(self) -> Any:
        if not self.has_range_key():
            return None
        return self._attributes.get(self.range_key_name())

    @range_key.setter
    def range_key(self, value: Any) -> None:
        self.write_attribute(self.range_key_name(), value)

    def read_attribute(self, name: str) -> Any:
        return self._attributes.get(name)

    def write_attribute(self, name: str, value: Any, config: Optional[DynamoDBConfig] = None) -> None:
        """Cast and store a single attribute, tracking the change.

        ``config`` drives casting (e.g. the zone of naive datetimes) and
        defaults to the current configuration.

        Raises:
            UnknownAttribute: If ``name`` is not a declared field
        """
        field = self.fields().get(name)
        if field is None:
            raise UnknownAttribute(type(self), name)

        self._attributes_before_type_cast[name] = value
        new_value = cast_field(value, field, config)
        old_value = self._attributes.get(name)

        if name in self._changed_attributes:
            if self._changed_attributes[name] == new_value:
                del self._changed_attributes[name]
        elif old_value != new_value:
            self._changed_attributes[name] = old_value

        self._attributes[name] = new_value

    def assign_attributes(self, attributes: Dict[str, Any], config: Optional[DynamoDBConfig] = None) -> None:
        """Write several attributes at once, skipping names that are not declared."""
        for name, value in attributes.items():
            name = str(name)
            if name not in self.fields():
                logger.debug(f"Ignoring unknown attribute '{name}' for {type(self).__name__}")
                continue
            self.write_attribute(name, value, config)

    def read_attribute_before_type_cast(self, name: str) -> Any:
        return self._attributes_before_type_cast.get(name)

    def attribute_present(self, name: str) -> bool:
        value = self._attributes.get(name)
        if isinstance(value, (str, set, frozenset, list, dict)):
            return bool(value)
        return value is not None

    # =========================================================================
    # Dirty tracking
    # =========================================================================

    @property
    def changed(self) -> List[str]:
        """Names of attributes changed since the last load or save."""
        return list(self._changed_attributes)

    def is_changed(self) -> bool:
        return bool(self._changed_attributes)

    @property
    def changed_attributes(self) -> Dict[str, Any]:
        """Original values of the changed attributes."""
        return dict(self._changed_attributes)

    @property
    def changes(self) -> Dict[str, Tuple[Any, Any]]:
        return {name: (old, self._attributes.get(name)) for name, old in self._changed_attributes.items()}

    @property
    def previous_changes(self) -> Dict[str, Tuple[Any, Any]]:
        return dict(self._previous_changes)

    def attribute_changed(self, name: str) -> bool:
        return name in self._changed_attributes

    def changes_applied(self) -> None:
        self._previous_changes = self.changes
        self._changed_attributes = {}

    def clear_changes_information(self) -> None:
        self._previous_changes = {}
        self._changed_attributes = {}

    # =========================================================================
    # State and validation
    # =========================================================================

    def is_persisted(self) -> bool:
        return not (self.new_record or self.destroyed)

    def is_valid(self) -> bool:
        """Run presence checks and validators inside the validation callbacks."""
        self.errors.clear()
        completed = self.run_callbacks('validation', lambda: run_validations(self))
        return completed and not self.errors

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def from_database(cls, item: Dict[str, Any], config: Optional[DynamoDBConfig] = None) -> 'Document':
        """Build a persisted document from a raw stored item.

        Defaults are not applied. With inheritance enabled the discriminator
        picks the registered subclass.
        """
        config = config or get_config()
        klass = cls
        if cls.inheritance_enabled():
            type_name = item.get(cls._meta.inheritance_field)
            klass = cls._type_registry.get(type_name, cls)

        document = klass.__new__(klass)
        document._init_state()
        document._attributes.update(undump_attributes(item, klass.fields(), config))
        return document

    @classmethod
    def find(
        cls,
        hash_key: Any,
        range_key: Any = None,
        config: Optional[DynamoDBConfig] = None,
        identity_map=None,
        consistent_read: bool = True
    ) -> 'Document':
        """Load a document by primary key.

        Raises:
            MissingHashKey: If ``hash_key`` is None
            MissingRangeKey: If the model has a sort key and ``range_key`` is None
            ItemNotFoundError: If no item has that key
        """
        document = cls.find_or_none(hash_key, range_key, config, identity_map, consistent_read)
        if document is None:
            config = config or get_config()
            raise ItemNotFoundError(cls.table_name(config), cls.dump_key(hash_key, range_key, config))
        return document

    @classmethod
    def find_or_none(
        cls,
        hash_key: Any,
        range_key: Any = None,
        config: Optional[DynamoDBConfig] = None,
        identity_map=None,
        consistent_read: bool = True
    ) -> Optional['Document']:
        cls.validate_key(hash_key, range_key)
        config = config or get_config()
        key = cls.dump_key(hash_key, range_key, config)

        if identity_map is not None:
            cached = identity_map.get(cls, hash_key, range_key, config)
            if cached is not None:
                return cached

        item = create_table_gateway(config, cls._meta.table_name).get_item(key, consistent_read)
        if item is None:
            return None

        document = cls.from_database(item, config)
        if identity_map is not None:
            identity_map.put(document, config)
        return document

    @classmethod
    def exists(cls, hash_key: Any, range_key: Any = None, config: Optional[DynamoDBConfig] = None) -> bool:
        return cls.find_or_none(hash_key, range_key, config) is not None

    @classmethod
    def all(cls, config: Optional[DynamoDBConfig] = None) -> Iterator['Document']:
        """Iterate over every item of the table, paginating transparently."""
        config = config or get_config()
        for item in create_table_gateway(config, cls._meta.table_name).scan_all():
            yield cls.from_database(item, config)

    @classmethod
    def count(cls, config: Optional[DynamoDBConfig] = None) -> int:
        return create_table_gateway(config or get_config(), cls._meta.table_name).count()

    # =========================================================================
    # Persistence
    # =========================================================================

    @classmethod
    def create(cls, attributes=None, config: Optional[DynamoDBConfig] = None, **options: Any):
        """Create and persist one document, or a list of them for a list of attribute dicts.

        ``options`` are passed to ``TransactionWrite.create`` (initializer,
        skip_existence_check).
        Invalid documents are returned unsaved; check ``is_persisted()``.
        """
        with TransactionWrite(config) as transaction:
            return transaction.create(cls, attributes, **options)

    @classmethod
    def create_or_raise(cls, attributes=None, config: Optional[DynamoDBConfig] = None, **options: Any):
        with TransactionWrite(config) as transaction:
            return transaction.create_or_raise(cls, attributes, **options)

    def save(self, config: Optional[DynamoDBConfig] = None) -> bool:
        with TransactionWrite(config) as transaction:
            return transaction.save(self)

    def save_or_raise(self, config: Optional[DynamoDBConfig] = None) -> bool:
        with TransactionWrite(config) as transaction:
            return transaction.save_or_raise(self)

    def update(self, attributes: Dict[str, Any], config: Optional[DynamoDBConfig] = None) -> bool:
        with TransactionWrite(config) as transaction:
            return transaction.update(self, attributes)

    def update_or_raise(self, attributes: Dict[str, Any], config: Optional[DynamoDBConfig] = None) -> bool:
        with TransactionWrite(config) as transaction:
            return transaction.update_or_raise(self, attributes)

    def destroy(self, config: Optional[DynamoDBConfig] = None):
        with TransactionWrite(config) as transaction:
            return transaction.destroy(self)

    def destroy_or_raise(self, config: Optional[DynamoDBConfig] = None):
        with TransactionWrite(config) as transaction:
            return transaction.destroy_or_raise(self)

    def delete(self, config: Optional[DynamoDBConfig] = None):
        with TransactionWrite(config) as transaction:
            return transaction.delete(self)

    # =========================================================================
    # Identity
    # =========================================================================

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Document):
            return NotImplemented
        if self.hash_key is None:
            return self is other
        return (
            type(self)._meta.table_name == type(other)._meta.table_name
            and self.hash_key == other.hash_key
            and self.range_key == other.range_key
        )

    def __hash__(self) -> int:
        if self.hash_key is None:
            return id(self)
        return hash((self._meta.table_name, self.hash_key, self.range_key))

    def __repr__(self) -> str:
        key = f"{self.hash_key_name()}={self.hash_key!r}"
        if self.has_range_key():
            key += f", {self.range_key_name()}={self.range_key!r}"
        return f"<{type(self).__name__} {key}>"


def _collect_fields(cls) -> Dict[str, Field]:
    fields: Dict[str, Field] = {}
    for klass in reversed(cls.__mro__):
        for name, value in vars(klass).items():
            if isinstance(value, Field):
                fields[name] = value
            elif name in fields:
                del fields[name]
    return fields
