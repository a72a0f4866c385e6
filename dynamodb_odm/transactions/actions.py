"""
Transaction actions.

One action is created per queued operation. The coordinator drives each
action through the same protocol:

1. ``on_registration()`` when queued: key checks, validation, before/around
   callbacks and dumping. The boto3 transact item is built here, so later
   changes to the model do not leak into the batch.
2. ``request`` is submitted with the rest of the batch unless the action is
   ``aborted`` (validation failed or a callback halted it) or ``skipped``
   (nothing to write).
3. ``on_commit()`` after the batch succeeded, or ``on_rollback()`` when it
   failed or the transaction was rolled back.

``result()`` is what the coordinator hands back to the caller when the action
is queued.
"""

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..codec import cast_field, dump_attributes, dump_field, sanitize_item
from ..config import DynamoDBConfig
from ..exceptions import (
    ArgumentError,
    DocumentNotValid,
    MissingHashKey,
    MissingRangeKey,
    RecordNotDestroyed,
    RecordNotSaved,
    UnknownAttribute,
)
from .item_updater import ItemUpdater

logger = logging.getLogger(__name__)


# =============================================================================
# Request helpers
# =============================================================================

def _key_condition(model_class, function: str) -> Tuple[str, Dict[str, str]]:
    """Build ``function(#_k0) AND function(#_k1)`` over the primary key attributes."""
    names = {'#_k0': model_class.hash_key_name()}
    expression = f"{function}(#_k0)"
    if model_class.has_range_key():
        names['#_k1'] = model_class.range_key_name()
        expression += f" AND {function}(#_k1)"
    return expression, names


def _split_nil(dumped: Dict[str, Any], config: DynamoDBConfig) -> Tuple[Dict[str, Any], List[str]]:
    """Separate values to SET from attributes to REMOVE.

    Empty values are removed unless ``store_attribute_with_nil_value`` keeps
    None as NULL.
    """
    set_values = {}
    removals = []
    for name, value in dumped.items():
        if isinstance(value, (str, set, frozenset)) and not value:
            value = None
        if value is None and not config.store_attribute_with_nil_value:
            removals.append(name)
        else:
            set_values[name] = value
    return set_values, removals


def _update_request(
    model_class,
    config: DynamoDBConfig,
    key: Dict[str, Any],
    set_values: Dict[str, Any],
    updater: ItemUpdater,
    condition: Optional[Tuple[str, Dict[str, str]]] = None
) -> Optional[Dict[str, Any]]:
    expression, names, values = updater.build(set_values)
    if not expression:
        return None

    request: Dict[str, Any] = {
        'TableName': model_class.table_name(config),
        'Key': key,
        'UpdateExpression': expression,
    }
    if condition is not None:
        condition_expression, condition_names = condition
        request['ConditionExpression'] = condition_expression
        names.update(condition_names)
    if names:
        request['ExpressionAttributeNames'] = names
    if values:
        request['ExpressionAttributeValues'] = values
    return {'Update': request}


def _touch_timestamps(model, config: DynamoDBConfig, skip_created_at: bool) -> None:
    if not type(model).timestamps_enabled(config):
        return
    now = config.get_timezone_manager().now()
    model.write_attribute('updated_at', now, config)
    if not skip_created_at and model.read_attribute('created_at') is None:
        model.write_attribute('created_at', now, config)


def _validate_model_key(model, new_record: bool = False) -> None:
    """A new record only needs its sort key; the partition key can still be generated."""
    model_class = type(model)
    if not new_record and model.hash_key is None:
        raise MissingHashKey(model_class)
    if model_class.has_range_key() and model.range_key is None:
        raise MissingRangeKey(model_class)


# =============================================================================
# Base action
# =============================================================================

class Action:
    """Base class for queued transaction operations."""

    model = None

    def __init__(self, config: DynamoDBConfig):
        self.config = config
        self.request: Optional[Dict[str, Any]] = None
        self.aborted = False
        self.skipped = False

    def on_registration(self) -> None:
        pass

    def on_commit(self) -> None:
        pass

    def on_rollback(self) -> None:
        pass

    def is_committable(self) -> bool:
        return not (self.aborted or self.skipped)

    def result(self) -> Any:
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(aborted={self.aborted}, skipped={self.skipped})"


# =============================================================================
# Model actions (callbacks run)
# =============================================================================

class Save(Action):
    """Create or update a model instance.

    New records become a Put that requires the key to be absent, unless
    ``skip_existence_check`` is set. Persisted records become an Update of
    their changed attributes. Persisted records without changes are skipped.
    """

    def __init__(
        self,
        model,
        config: DynamoDBConfig,
        raise_error: bool = False,
        validate: bool = True,
        skip_existence_check: bool = False
    ):
        super().__init__(config)
        self.model = model
        self.model_class = type(model)
        self.raise_error = raise_error
        self.validate = validate
        self.skip_existence_check = skip_existence_check
        self.validation_failed = False
        self.was_new_record = model.new_record

    def on_registration(self) -> None:
        _validate_model_key(self.model, new_record=self.was_new_record)

        if self.validate and not self.model.is_valid():
            if self.raise_error:
                raise DocumentNotValid(self.model)
            self.aborted = True
            self.validation_failed = True
            return

        phase = 'create' if self.was_new_record else 'update'
        completed = self.model.run_callbacks(
            'save',
            lambda: self.model.run_callbacks(phase, self._prepare)
        )
        if not completed:
            self.aborted = True
            self.request = None
            if self.raise_error:
                raise RecordNotSaved(self.model)

    def _prepare(self) -> None:
        if self.was_new_record:
            self.request = self._create_request()
        elif not self.model.is_changed():
            self.skipped = True
        else:
            self.request = self._update_request()
            self.skipped = self.request is None

    def _create_request(self) -> Dict[str, Any]:
        if self.model.hash_key is None:
            self.model.hash_key = str(uuid.uuid4())
        _touch_timestamps(self.model, self.config, skip_created_at=False)

        item = dump_attributes(self.model.attributes, self.model_class.fields(), self.config)
        request: Dict[str, Any] = {
            'TableName': self.model_class.table_name(self.config),
            'Item': sanitize_item(item, self.config),
        }
        if not self.skip_existence_check:
            condition, names = _key_condition(self.model_class, 'attribute_not_exists')
            request['ConditionExpression'] = condition
            request['ExpressionAttributeNames'] = names
        return {'Put': request}

    def _update_request(self) -> Optional[Dict[str, Any]]:
        _touch_timestamps(self.model, self.config, skip_created_at=True)

        key_names = {self.model_class.hash_key_name(), self.model_class.range_key_name()}
        changes = {
            name: self.model.read_attribute(name)
            for name in self.model.changed
            if name not in key_names
        }
        dumped = dump_attributes(changes, self.model_class.fields(), self.config)
        set_values, removals = _split_nil(dumped, self.config)

        updater = ItemUpdater()
        updater.remove(*removals)
        key = self.model_class.dump_key(self.model.hash_key, self.model.range_key, self.config)
        return _update_request(self.model_class, self.config, key, set_values, updater)

    def on_commit(self) -> None:
        self.model.changes_applied()
        self.model.new_record = False
        self.model.run_callbacks('commit')

    def on_rollback(self) -> None:
        self.model.run_callbacks('rollback')

    def result(self) -> bool:
        return not self.aborted


class Create(Action):
    """Build a model (or take a given instance) and save it as a new record."""

    def __init__(
        self,
        model_class_or_model,
        attributes: Optional[Dict[str, Any]],
        config: DynamoDBConfig,
        raise_error: bool = False,
        initializer: Optional[Callable[[Any], None]] = None,
        skip_existence_check: bool = False
    ):
        super().__init__(config)
        if isinstance(model_class_or_model, type):
            self.model = model_class_or_model.build(attributes, config)
        else:
            self.model = model_class_or_model
            if attributes:
                self.model.assign_attributes(attributes, config)

        if initializer is not None:
            initializer(self.model)

        self.save_action = Save(
            self.model,
            config,
            raise_error=raise_error,
            skip_existence_check=skip_existence_check
        )

    def on_registration(self) -> None:
        self.save_action.on_registration()
        self.request = self.save_action.request
        self.aborted = self.save_action.aborted

    def on_commit(self) -> None:
        self.save_action.on_commit()

    def on_rollback(self) -> None:
        self.save_action.on_rollback()

    def result(self):
        return self.model


class UpdateAttributes(Save):
    """Assign attributes to a model and save it."""

    def __init__(self, model, attributes: Dict[str, Any], config: DynamoDBConfig, raise_error: bool = False):
        model.assign_attributes(attributes or {}, config)
        super().__init__(model, config, raise_error=raise_error)


class Destroy(Action):
    """Delete a model instance, running its destroy callbacks."""

    def __init__(self, model, config: DynamoDBConfig, raise_error: bool = False):
        super().__init__(config)
        self.model = model
        self.model_class = type(model)
        self.raise_error = raise_error

    def on_registration(self) -> None:
        _validate_model_key(self.model)

        if not self.model.run_callbacks('destroy', self._prepare):
            self.aborted = True
            self.request = None
            if self.raise_error:
                raise RecordNotDestroyed(self.model)

    def _prepare(self) -> None:
        key = self.model_class.dump_key(self.model.hash_key, self.model.range_key, self.config)
        self.request = {'Delete': {'TableName': self.model_class.table_name(self.config), 'Key': key}}

    def on_commit(self) -> None:
        self.model.destroyed = True
        self.model.run_callbacks('commit')

    def on_rollback(self) -> None:
        self.model.run_callbacks('rollback')

    def result(self):
        return False if self.aborted else self.model


# =============================================================================
# Delete actions (no callbacks)
# =============================================================================

class DeleteWithInstance(Action):
    """Delete a model instance without running callbacks."""

    def __init__(self, model, config: DynamoDBConfig):
        super().__init__(config)
        self.model = model
        self.model_class = type(model)

    def on_registration(self) -> None:
        _validate_model_key(self.model)
        key = self.model_class.dump_key(self.model.hash_key, self.model.range_key, self.config)
        self.request = {'Delete': {'TableName': self.model_class.table_name(self.config), 'Key': key}}

    def on_commit(self) -> None:
        self.model.destroyed = True

    def result(self):
        return self.model


class DeleteWithPrimaryKey(Action):
    """Delete an item by primary key."""

    def __init__(self, model_class, hash_key: Any, range_key: Any, config: DynamoDBConfig):
        super().__init__(config)
        self.model_class = model_class
        self.hash_key = hash_key
        self.range_key = range_key

    def on_registration(self) -> None:
        self.model_class.validate_key(self.hash_key, self.range_key)
        key = self.model_class.dump_key(self.hash_key, self.range_key, self.config)
        self.request = {'Delete': {'TableName': self.model_class.table_name(self.config), 'Key': key}}


# =============================================================================
# Field-level updates (no callbacks)
# =============================================================================

class UpdateFields(Action):
    """Update attributes of an item addressed by primary key.

    The item must exist. ``builder`` receives the action and may call
    ``set``, ``add``, ``delete`` and ``remove`` on it.
    """

    require_existing = True

    def __init__(
        self,
        model_class,
        hash_key: Any,
        attributes: Optional[Dict[str, Any]],
        config: DynamoDBConfig,
        range_key: Any = None,
        builder: Optional[Callable[['UpdateFields'], None]] = None,
        raise_error: bool = False
    ):
        super().__init__(config)
        self.model_class = model_class
        self.hash_key = hash_key
        self.range_key = range_key
        self.attributes: Dict[str, Any] = dict(attributes or {})
        self.raise_error = raise_error
        self.updater = ItemUpdater()

        if builder is not None:
            builder(self)

    def set(self, **values: Any) -> None:
        self.attributes.update(values)

    def add(self, **values: Any) -> None:
        self.updater.add(**values)

    def delete(self, *names: str, **values: Any) -> None:
        self.updater.delete(*names, **values)

    def remove(self, *names: str) -> None:
        self.updater.remove(*names)

    def on_registration(self) -> None:
        self.model_class.validate_key(self.hash_key, self.range_key)

        fields = self.model_class.fields()
        for name in list(self.attributes) + self.updater.attribute_names():
            if name not in fields:
                raise UnknownAttribute(self.model_class, name)

        if not self.attributes and self.updater.is_empty():
            if self.raise_error:
                raise ArgumentError(
                    "Nothing to update",
                    {'model': self.model_class.__name__, 'operation': type(self).__name__}
                )
            logger.debug(f"Skipping empty {type(self).__name__} for {self.model_class.__name__}")
            self.skipped = True
            return

        self.request = self._build_request()
        self.skipped = self.request is None

    def _build_request(self) -> Optional[Dict[str, Any]]:
        changes = dict(self.attributes)
        if self.model_class.timestamps_enabled(self.config) and changes.get('updated_at') is None:
            changes['updated_at'] = self.config.get_timezone_manager().now()

        fields = self.model_class.fields()
        dumped = {
            name: dump_field(cast_field(value, fields[name], self.config), fields[name], self.config)
            for name, value in changes.items()
        }
        set_values, removals = _split_nil(dumped, self.config)
        self.updater.remove(*removals)

        key = self.model_class.dump_key(self.hash_key, self.range_key, self.config)
        condition = _key_condition(self.model_class, 'attribute_exists') if self.require_existing else None
        return _update_request(self.model_class, self.config, key, set_values, self.updater, condition)


class Upsert(UpdateFields):
    """Update an item by primary key, creating it when missing."""

    require_existing = False

    def __init__(self, *args: Any, **kwargs: Any):
        kwargs['raise_error'] = True
        super().__init__(*args, **kwargs)
