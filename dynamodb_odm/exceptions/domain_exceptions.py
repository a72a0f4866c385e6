"""
Domain-Specific Exceptions for the DynamoDB ODM

This module holds every exception that extends the base DynamoDBODMError.
They cover schema misuse, document validation, persistence aborts raised by
callbacks, backend transaction outcomes and infrastructure failures.

Organized by category:
1. Data Validation Errors
2. Schema and Key Errors
3. Resource Not Found Errors
4. Persistence Errors
5. Conflict and Transaction Errors
6. Infrastructure and Retry Errors
"""

from typing import Any, Dict, Optional

from .base import DynamoDBODMError


def _model_name(model_class) -> Optional[str]:
    if model_class is None:
        return None
    return getattr(model_class, '__name__', str(model_class))


# =============================================================================
# Data Validation Errors
# =============================================================================

class ValidationError(DynamoDBODMError):
    """Raised when request data is rejected before or by DynamoDB.

    Used for:
    - ValidationException responses from DynamoDB
    - Transactions exceeding the configured item limit
    - Item collection and size limits
    """

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None, original_error: Optional[Exception] = None):
        """Initialize validation error.

        Args:
            message: Human-readable error message
            errors: Dictionary of field-level validation errors
            original_error: The original exception that caused this error
        """
        self.errors = errors or {}
        context = {}
        if self.errors:
            context['validation_errors'] = self.errors
        super().__init__(message, original_error, context)


class DocumentNotValid(DynamoDBODMError):
    """Raised by strict persistence calls when a document fails validation."""

    def __init__(self, document):
        self.document = document
        self.errors = document.errors.to_dict()
        messages = document.errors.full_messages()
        message = f"Validation failed: {', '.join(messages)}" if messages else "Validation failed"
        context = {'model': _model_name(type(document))}
        super().__init__(message, None, context)


class ArgumentError(DynamoDBODMError, ValueError):
    """Raised when a value or call shape cannot be handled.

    Used for:
    - Unsupported field types and set/array element types
    - Custom types without a dump or load hook
    - Stored booleans that are neither true nor false
    - Mutation builders called with nothing to change
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None, original_error: Optional[Exception] = None):
        super().__init__(message, original_error, context)


# =============================================================================
# Schema and Key Errors
# =============================================================================

class UnknownAttribute(DynamoDBODMError):
    """Raised when an attribute name is not declared on the model."""

    def __init__(self, model_class, attribute_name: str):
        self.model_class = model_class
        self.attribute_name = attribute_name
        message = f"Attribute {attribute_name} does not exist in {_model_name(model_class)}"
        context = {
            'model': _model_name(model_class),
            'attribute': attribute_name
        }
        super().__init__(message, None, context)


class MissingHashKey(DynamoDBODMError):
    """Raised when an operation needs a partition key value that is missing."""

    def __init__(self, model_class=None, message: str = "Partition key is missing"):
        self.model_class = model_class
        context = {}
        if model_class is not None:
            context['model'] = _model_name(model_class)
            context['hash_key'] = model_class.hash_key_name()
        super().__init__(message, None, context)


class MissingRangeKey(DynamoDBODMError):
    """Raised when a composite-key model is addressed without its sort key value."""

    def __init__(self, model_class=None, message: str = "Sort key is missing"):
        self.model_class = model_class
        context = {}
        if model_class is not None:
            context['model'] = _model_name(model_class)
            context['range_key'] = model_class.range_key_name()
        super().__init__(message, None, context)


# =============================================================================
# Resource Not Found Errors
# =============================================================================

class ItemNotFoundError(DynamoDBODMError):
    """Raised when a specific item is not found in DynamoDB.

    Used for:
    - Document.find lookups that return no item
    - ResourceNotFoundException responses carrying a resource id
    """

    def __init__(self, table_name: str, key: dict, original_error: Optional[Exception] = None):
        """Initialize item not found error.

        Args:
            table_name: Name of the DynamoDB table
            key: The key that was not found
            original_error: The original exception that caused this error
        """
        self.table_name = table_name
        self.key = key
        message = f"Item not found in table '{table_name}' with key: {key}"
        context = {
            'table_name': table_name,
            'key': key
        }
        super().__init__(message, original_error, context)


# =============================================================================
# Persistence Errors
# =============================================================================

class RecordNotSaved(DynamoDBODMError):
    """Raised by strict saves when a before or around callback aborts the save."""

    def __init__(self, document, message: str = "Failed to save the item"):
        self.document = document
        super().__init__(message, None, {'model': _model_name(type(document))})


class RecordNotDestroyed(DynamoDBODMError):
    """Raised by strict destroys when a before or around callback aborts the destroy."""

    def __init__(self, document, message: str = "Failed to destroy the item"):
        self.document = document
        super().__init__(message, None, {'model': _model_name(type(document))})


# =============================================================================
# Conflict and Transaction Errors
# =============================================================================

class ConflictError(DynamoDBODMError):
    """Raised when a conditional operation fails due to existing data.

    Used for:
    - ConditionalCheckFailedException from DynamoDB
    - TransactionConflictException for concurrent transactions
    """

    def __init__(self, message: str, resource_id: Optional[str] = None, original_error: Optional[Exception] = None):
        """Initialize conflict error.

        Args:
            message: Human-readable error message
            resource_id: ID of the conflicting resource
            original_error: The original exception that caused this error
        """
        self.resource_id = resource_id
        context = {}
        if resource_id:
            context['resource_id'] = resource_id
        super().__init__(message, original_error, context)


class TransactionAborted(DynamoDBODMError):
    """Raised when DynamoDB cancels a TransactWriteItems batch.

    The batch is all-or-nothing, so none of its writes were applied. No
    per-operation detail is exposed beyond the original botocore error.
    """

    def __init__(self, message: str = "Transaction cancelled", original_error: Optional[Exception] = None):
        super().__init__(message, original_error)


class Rollback(DynamoDBODMError):
    """Raise inside a transaction scope to roll it back without re-raising."""

    def __init__(self, message: str = "Transaction rolled back"):
        super().__init__(message)


# =============================================================================
# Infrastructure and Retry Errors
# =============================================================================

class ConnectionError(DynamoDBODMError):
    """Raised when connection to DynamoDB fails.

    Used for:
    - Network connectivity issues
    - Authentication/authorization failures
    - Missing tables
    - Invalid endpoint configurations
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None, context: Optional[Dict[str, Any]] = None):
        """Initialize connection error.

        Args:
            message: Human-readable error message
            original_error: The original exception that caused this error
            context: Additional context information (e.g., endpoint, region)
        """
        super().__init__(message, original_error, context)


class RetryableError(DynamoDBODMError):
    """Raised when operation fails due to temporary/throttling issues that can be retried.

    Used for:
    - ProvisionedThroughputExceededException
    - RequestLimitExceeded errors
    - Temporary service unavailability
    - Transactions still in progress
    """

    def __init__(self, message: str, retry_after_seconds: Optional[int] = None, original_error: Optional[Exception] = None):
        """Initialize retryable error.

        Args:
            message: Human-readable error message
            retry_after_seconds: Suggested retry delay in seconds
            original_error: The original exception that caused this error
        """
        self.retry_after_seconds = retry_after_seconds
        context = {}
        if retry_after_seconds:
            context['retry_after_seconds'] = retry_after_seconds
        super().__init__(message, original_error, context)
