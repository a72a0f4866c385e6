"""
Explicit identity map for loaded documents.

Nothing is cached implicitly. Callers that want repeated lookups of the same
key to return the same instance create an ``IdentityMap`` and pass it to
``Document.find`` and ``TransactionWrite``:

    identity_map = IdentityMap()
    user = User.find('u1', identity_map=identity_map)
    assert User.find('u1', identity_map=identity_map) is user

Entries are keyed by table and dumped primary key, so documents of
single-table-inheritance subclasses share entries with their base class.
"""

import logging
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class IdentityMap:
    """Cache of documents keyed by (table, primary key)."""

    def __init__(self):
        self._documents: Dict[Tuple, Any] = {}

    @staticmethod
    def _key(model_class, hash_key: Any, range_key: Any = None, config=None) -> Tuple:
        key = model_class.dump_key(hash_key, range_key, config)
        return (model_class._meta.table_name,) + tuple(key.values())

    def get(self, model_class, hash_key: Any, range_key: Any = None, config=None) -> Optional[Any]:
        return self._documents.get(self._key(model_class, hash_key, range_key, config))

    def put(self, document, config=None) -> None:
        model_class = type(document)
        key = self._key(model_class, document.hash_key, document.range_key, config)
        self._documents[key] = document

    def evict(self, model_class, hash_key: Any, range_key: Any = None, config=None) -> None:
        """Drop the entry for a key; missing entries are ignored."""
        self._documents.pop(self._key(model_class, hash_key, range_key, config), None)

    def evict_document(self, document, config=None) -> None:
        self.evict(type(document), document.hash_key, document.range_key, config)

    def clear(self) -> None:
        logger.debug(f"Clearing identity map with {len(self._documents)} documents")
        self._documents.clear()

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, document) -> bool:
        return self._key(type(document), document.hash_key, document.range_key) in self._documents
