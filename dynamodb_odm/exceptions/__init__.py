# Base exception class
from .base import DynamoDBODMError

# Domain-specific exceptions
from .domain_exceptions import (
    ArgumentError,
    ConflictError,
    ConnectionError,
    DocumentNotValid,
    ItemNotFoundError,
    MissingHashKey,
    MissingRangeKey,
    RecordNotDestroyed,
    RecordNotSaved,
    RetryableError,
    Rollback,
    TransactionAborted,
    UnknownAttribute,
    ValidationError,
)

__all__ = [
    # Base exception
    "DynamoDBODMError",

    # Domain exceptions (alphabetically ordered)
    "ArgumentError",
    "ConflictError",
    "ConnectionError",
    "DocumentNotValid",
    "ItemNotFoundError",
    "MissingHashKey",
    "MissingRangeKey",
    "RecordNotDestroyed",
    "RecordNotSaved",
    "RetryableError",
    "Rollback",
    "TransactionAborted",
    "UnknownAttribute",
    "ValidationError",
]
