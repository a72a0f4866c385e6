"""
Transactional write coordinator.

``TransactionWrite`` queues create/save/update/destroy/delete/update_fields/
upsert operations across any number of models and commits them as one
TransactWriteItems batch:

    with TransactionWrite() as t:
        t.create_or_raise(User, {'name': 'Alex'})
        t.update_fields(Counter, 'signups', builder=lambda u: u.add(value=1))
        t.destroy(stale_session)

Leaving the block commits. An exception raised inside the block rolls the
transaction back and propagates, except ``Rollback`` which only rolls back.

Queuing does all local work up front: key checks, validation, callbacks and
dumping. Non-raising variants that fail validation or are halted by a
callback return a falsy result and drop out of the batch without affecting
the other operations. The ``*_or_raise`` variants raise instead, which rolls
back the whole transaction when used inside a ``with`` block.

The backend call happens once, in ``commit``. If DynamoDB cancels the batch
(for example because a create collides with an existing key) the mapped
``TransactionAborted`` propagates after every queued action's rollback hook
has run.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from ..config import DynamoDBConfig, get_config
from ..core import TransactionGateway, create_transaction_gateway
from ..exceptions import DynamoDBODMError, Rollback
from .actions import (
    Action,
    Create,
    DeleteWithInstance,
    DeleteWithPrimaryKey,
    Destroy,
    Save,
    UpdateAttributes,
    UpdateFields,
    Upsert,
)

logger = logging.getLogger(__name__)

OPEN = 'open'
COMMITTING = 'committing'
COMMITTED = 'committed'
FAILED = 'failed'


class TransactionWrite:
    """Collects write actions and commits them atomically."""

    def __init__(
        self,
        config: Optional[DynamoDBConfig] = None,
        gateway: Optional[TransactionGateway] = None,
        identity_map=None
    ):
        """Initialize a transaction.

        Args:
            config: Configuration for every action; the current one by default
            gateway: Transaction gateway; one is built from ``config`` by default
            identity_map: Optional IdentityMap kept in sync on commit
        """
        self.config = config or get_config()
        self.gateway = gateway or create_transaction_gateway(self.config)
        self.identity_map = identity_map
        self.state = OPEN
        self.actions: List[Action] = []

    @classmethod
    def execute(cls, block: Callable[['TransactionWrite'], Any], **kwargs: Any) -> Any:
        """Run ``block`` with a new transaction and commit it.

        Example:
            TransactionWrite.execute(lambda t: t.save_or_raise(user))
        """
        with cls(**kwargs) as transaction:
            return block(transaction)

    def __enter__(self) -> 'TransactionWrite':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        if exc_type is None:
            self.commit()
            return False

        logger.debug(f"Rolling back transaction after {exc_type.__name__}")
        self.rollback()
        return issubclass(exc_type, Rollback)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def commit(self) -> None:
        """Submit every committable action as one batch.

        Raises:
            DynamoDBODMError: If the transaction is not open, or the mapped
                gateway error (e.g. TransactionAborted). Any error raised while
                submitting runs the rollback hooks before propagating
        """
        self._ensure_open()
        actions = [action for action in self.actions if action.is_committable()]
        if not actions:
            logger.debug(f"Nothing to commit ({len(self.actions)} actions skipped or aborted)")
            self.state = COMMITTED
            return

        self.state = COMMITTING
        try:
            self.gateway.transact_write_items([action.request for action in actions])
        except Exception:
            self.state = FAILED
            self._run_rollback_hooks()
            raise

        self.state = COMMITTED
        for action in actions:
            action.on_commit()
        self._sync_identity_map(actions)
        logger.debug(f"Committed transaction of {len(actions)} actions")

    def rollback(self) -> None:
        """Discard queued actions and run their rollback hooks. Nothing was written."""
        if self.state != OPEN:
            return
        self.state = FAILED
        self._run_rollback_hooks()

    def _run_rollback_hooks(self) -> None:
        for action in self.actions:
            if action.is_committable():
                action.on_rollback()

    def _ensure_open(self) -> None:
        if self.state != OPEN:
            raise DynamoDBODMError(f"Transaction is {self.state} and cannot be reused")

    def _sync_identity_map(self, actions: List[Action]) -> None:
        if self.identity_map is None:
            return
        for action in actions:
            if isinstance(action, DeleteWithPrimaryKey):
                self.identity_map.evict(action.model_class, action.hash_key, action.range_key, self.config)
            elif action.model is not None and action.model.destroyed:
                self.identity_map.evict_document(action.model, self.config)
            elif action.model is not None:
                self.identity_map.put(action.model, self.config)

    def register_action(self, action: Action) -> Any:
        """Prepare ``action`` and queue it; an action whose preparation raised is not queued."""
        self._ensure_open()
        action.on_registration()
        self.actions.append(action)
        if action.aborted:
            logger.debug(f"{action!r} aborted while queuing")
        return action.result()

    # =========================================================================
    # Operations
    # =========================================================================

    def create(
        self,
        model_class_or_model,
        attributes: Union[Dict[str, Any], List[Dict[str, Any]], None] = None,
        initializer: Optional[Callable[[Any], None]] = None,
        skip_existence_check: bool = False
    ):
        """Queue creation of a new model.

        Args:
            model_class_or_model: A model class, or a new model instance
            attributes: Attributes of the model, or a list of attribute dicts
                to create several models
            initializer: Called with each new model before it is validated
            skip_existence_check: Overwrite an existing item with the same key

        Returns:
            The new model, or a list of them for a list of attribute dicts.
            A model is returned even when its create was dropped (it failed
            validation or a before callback aborted), so check
            ``is_persisted()`` or ``errors`` after the commit.
        """
        return self._create(model_class_or_model, attributes, initializer, skip_existence_check, raise_error=False)

    def create_or_raise(
        self,
        model_class_or_model,
        attributes: Union[Dict[str, Any], List[Dict[str, Any]], None] = None,
        initializer: Optional[Callable[[Any], None]] = None,
        skip_existence_check: bool = False
    ):
        """Like ``create``, raising DocumentNotValid or RecordNotSaved instead of aborting."""
        return self._create(model_class_or_model, attributes, initializer, skip_existence_check, raise_error=True)

    def _create(self, model_class_or_model, attributes, initializer, skip_existence_check, raise_error):
        if isinstance(attributes, list):
            return [
                self._create(model_class_or_model, item, initializer, skip_existence_check, raise_error)
                for item in attributes
            ]
        action = Create(
            model_class_or_model,
            attributes,
            self.config,
            raise_error=raise_error,
            initializer=initializer,
            skip_existence_check=skip_existence_check
        )
        return self.register_action(action)

    def save(self, model, validate: bool = True) -> bool:
        """Queue a create (new model) or update (persisted model).

        Returns:
            False if validation failed or a callback halted the save
        """
        return self.register_action(Save(model, self.config, validate=validate))

    def save_or_raise(self, model, validate: bool = True) -> bool:
        return self.register_action(Save(model, self.config, raise_error=True, validate=validate))

    def update(self, model, attributes: Dict[str, Any]) -> bool:
        """Assign ``attributes`` to ``model`` and queue its save."""
        return self.register_action(UpdateAttributes(model, attributes, self.config))

    def update_or_raise(self, model, attributes: Dict[str, Any]) -> bool:
        return self.register_action(UpdateAttributes(model, attributes, self.config, raise_error=True))

    def update_fields(
        self,
        model_class,
        hash_key: Any,
        attributes: Optional[Dict[str, Any]] = None,
        range_key: Any = None,
        builder: Optional[Callable[[UpdateFields], None]] = None
    ) -> None:
        """Queue an update of an existing item by primary key, without callbacks.

        Example:
            t.update_fields(User, 'u1', {'name': 'Alex'}, builder=lambda u: u.add(logins=1))

        Raises:
            MissingHashKey: If ``hash_key`` is None
            MissingRangeKey: If the model has a sort key and ``range_key`` is None
            UnknownAttribute: If an attribute is not declared on the model
        """
        action = UpdateFields(model_class, hash_key, attributes, self.config, range_key=range_key, builder=builder)
        return self.register_action(action)

    def update_fields_or_raise(
        self,
        model_class,
        hash_key: Any,
        attributes: Optional[Dict[str, Any]] = None,
        range_key: Any = None,
        builder: Optional[Callable[[UpdateFields], None]] = None
    ) -> None:
        """Like ``update_fields``, raising ArgumentError when there is nothing to update."""
        action = UpdateFields(
            model_class, hash_key, attributes, self.config,
            range_key=range_key, builder=builder, raise_error=True
        )
        return self.register_action(action)

    def upsert(
        self,
        model_class,
        hash_key: Any,
        attributes: Optional[Dict[str, Any]] = None,
        range_key: Any = None,
        builder: Optional[Callable[[UpdateFields], None]] = None
    ) -> None:
        """Queue an update by primary key that creates the item when missing."""
        action = Upsert(model_class, hash_key, attributes, self.config, range_key=range_key, builder=builder)
        return self.register_action(action)

    def destroy(self, model):
        """Queue deletion of ``model``, running its destroy callbacks.

        Returns:
            The model, or False if a callback halted the destroy
        """
        return self.register_action(Destroy(model, self.config))

    def destroy_or_raise(self, model):
        return self.register_action(Destroy(model, self.config, raise_error=True))

    def delete(self, model_or_model_class, hash_key: Any = None, range_key: Any = None):
        """Queue deletion without callbacks, by instance or by primary key.

        Returns:
            The model when given an instance, None when given a key
        """
        if isinstance(model_or_model_class, type):
            action = DeleteWithPrimaryKey(model_or_model_class, hash_key, range_key, self.config)
        else:
            action = DeleteWithInstance(model_or_model_class, self.config)
        return self.register_action(action)

    def __len__(self) -> int:
        return len(self.actions)

    def __repr__(self) -> str:
        return f"TransactionWrite(state={self.state!r}, actions={len(self.actions)})"
