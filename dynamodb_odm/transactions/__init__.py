"""
Transactional writes.

- TransactionWrite: queues operations and commits them atomically
- actions: one class per queued operation kind
- ItemUpdater: SET/ADD/DELETE/REMOVE update expression builder
"""

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
from .item_updater import ItemUpdater
from .transaction_write import TransactionWrite

__all__ = [
    "Action",
    "Create",
    "DeleteWithInstance",
    "DeleteWithPrimaryKey",
    "Destroy",
    "ItemUpdater",
    "Save",
    "TransactionWrite",
    "UpdateAttributes",
    "UpdateFields",
    "Upsert",
]
